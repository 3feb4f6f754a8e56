"""kpiboard_shared.hierarchy — KPI → KPI detail → Project grouping.

Output order follows the KPI list as given. Each node reports the KPI's own
``count`` verbatim; it is not recomputed from the grouped projects and the two
numbers may differ. Projects whose KPI resolves to no listed KPI are left out
of the hierarchy.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .records import KPI, OTHER_DETAIL_NAME, DetailGroup, HierarchyNode, Project


def kpi_names_by_id(kpis: Iterable[KPI]) -> Dict[str, str]:
    return {kpi.id: kpi.name for kpi in kpis if kpi.id}


def resolve_kpi_name(project: Project, names_by_id: Dict[str, str]) -> Optional[str]:
    """Canonical KPI name for a project, or None when it cannot be resolved.

    Relation links are looked up by KPI record id; label links are used as is.
    """
    if project.kpi.is_relation:
        return names_by_id.get(project.kpi.relation_id or "")
    return project.kpi.label or None


def kpi_slots(kpis: Sequence[KPI]) -> Tuple[Dict[str, int], Dict[str, int]]:
    """Position of each KPI in ``kpis``, indexed by record id and by name.

    The first KPI wins when an id or a name repeats.
    """
    by_id: Dict[str, int] = {}
    by_name: Dict[str, int] = {}
    for index, kpi in enumerate(kpis):
        if kpi.id:
            by_id.setdefault(kpi.id, index)
        by_name.setdefault(kpi.name, index)
    return by_id, by_name


def resolve_kpi_slot(
    project: Project,
    by_id: Dict[str, int],
    by_name: Dict[str, int],
) -> Optional[int]:
    """Position of the KPI a project belongs to, or None.

    Relation links match on record id only; labels match on name.
    """
    if project.kpi.is_relation:
        return by_id.get(project.kpi.relation_id or "")
    if not project.kpi.label:
        return None
    return by_name.get(project.kpi.label)


def group_projects(
    projects: Iterable[Project],
    kpis: Sequence[KPI],
) -> Dict[int, Dict[str, List[Project]]]:
    """Group projects as ``{kpi position: {detail name: [projects]}}``.

    Detail groups keep first-seen order; an empty detail becomes ``Other``.
    """
    by_id, by_name = kpi_slots(kpis)
    groups: Dict[int, Dict[str, List[Project]]] = {}
    for project in projects:
        slot = resolve_kpi_slot(project, by_id, by_name)
        if slot is None:
            continue
        detail = project.kpi_detail or OTHER_DETAIL_NAME
        groups.setdefault(slot, {}).setdefault(detail, []).append(project)
    return groups


def build_hierarchy(kpis: Sequence[KPI], projects: Iterable[Project]) -> List[HierarchyNode]:
    groups = group_projects(projects, kpis)
    hierarchy: List[HierarchyNode] = []
    for index, kpi in enumerate(kpis):
        details = groups.get(index, {})
        hierarchy.append(
            HierarchyNode(
                kpi_name=kpi.name,
                count=kpi.count,
                kpi_id=kpi.id,
                details=[
                    DetailGroup(detail_name=name, projects=list(members))
                    for name, members in details.items()
                ],
            )
        )
    return hierarchy
