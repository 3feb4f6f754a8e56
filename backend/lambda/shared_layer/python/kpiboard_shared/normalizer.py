"""kpiboard_shared.normalizer — Raw Notion records → KPI / Project records.

Each logical field maps to an ordered list of ``(property name, kind)``
aliases collected from every schema variant seen in deployments (English vs.
Korean names, ``Name``/``name``, ``KPI``/``KPI 1``/``kpi``, ``Country`` as
rich text or multi-select, ``KPI_Detail`` as rich text or select). The first
alias that yields a non-empty value wins; otherwise the field default is
used. Adding a historical alias is a one-line edit to the tables below.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .properties import PropertyKind, is_empty, people_ids, properties_of, read_property
from .records import KPI, UNKNOWN_KPI_NAME, KpiRef, Project

K = PropertyKind

Alias = Tuple[str, PropertyKind]


@dataclass(frozen=True)
class FieldSpec:
    aliases: Tuple[Alias, ...]
    default: Any = ""
    convert: Optional[Callable[[Any, PropertyKind], Any]] = None


def _to_int(value: Any, _kind: PropertyKind) -> int:
    return int(round(value))


def _to_count(value: Any, _kind: PropertyKind) -> int:
    return max(int(round(value)), 0)


def _to_kpi_ref(value: Any, kind: PropertyKind) -> KpiRef:
    if kind is K.RELATION:
        return KpiRef.relation(value[0])
    return KpiRef.named(value)


def _to_country_list(value: Any, kind: PropertyKind) -> list:
    if kind is K.MULTI_SELECT:
        return list(value)
    return [part.strip() for part in value.split(",") if part.strip()]


def _to_display_names(value: Any, kind: PropertyKind) -> str:
    if kind is K.PEOPLE:
        return ", ".join(value)
    return value


KPI_FIELDS: Dict[str, FieldSpec] = {
    "name": FieldSpec(
        (("Name", K.TITLE), ("name", K.TITLE), ("title", K.TITLE), ("이름", K.TITLE), ("KPI", K.TITLE)),
        default=UNKNOWN_KPI_NAME,
    ),
    "count": FieldSpec(
        (
            ("Count", K.NUMBER), ("count", K.NUMBER),
            ("갯수", K.ROLLUP), ("갯수", K.NUMBER),
            ("개수", K.ROLLUP), ("개수", K.NUMBER),
            ("Count", K.ROLLUP),
        ),
        default=0,
        convert=_to_count,
    ),
    "related_project_ids": FieldSpec(
        (("Projects", K.RELATION), ("projects", K.RELATION), ("Project", K.RELATION), ("프로젝트", K.RELATION)),
        default=[],
    ),
}

PROJECT_FIELDS: Dict[str, FieldSpec] = {
    "name": FieldSpec(
        (("Name", K.TITLE), ("name", K.TITLE), ("title", K.TITLE), ("프로젝트명", K.TITLE), ("이름", K.TITLE)),
    ),
    "code": FieldSpec((("Code", K.RICH_TEXT), ("code", K.RICH_TEXT), ("코드", K.RICH_TEXT))),
    "kpi": FieldSpec(
        (
            ("KPI 1", K.RELATION), ("KPI", K.RELATION), ("kpi", K.RELATION),
            ("KPI 1", K.SELECT), ("KPI", K.SELECT), ("kpi", K.SELECT),
            ("KPI", K.RICH_TEXT),
        ),
        default=KpiRef(),
        convert=_to_kpi_ref,
    ),
    "kpi_detail": FieldSpec(
        (
            ("KPI_Detail", K.RICH_TEXT), ("KPI_Detail", K.SELECT),
            ("kpi_detail", K.RICH_TEXT), ("kpi_detail", K.SELECT),
            ("KPI Detail", K.RICH_TEXT), ("KPI Detail", K.SELECT),
            ("세부 KPI", K.RICH_TEXT), ("세부 KPI", K.SELECT),
        ),
    ),
    "division": FieldSpec((("Division", K.SELECT), ("division", K.SELECT), ("부문", K.SELECT))),
    "countries": FieldSpec(
        (
            ("Country", K.MULTI_SELECT), ("Countries", K.MULTI_SELECT), ("country", K.MULTI_SELECT),
            ("Country", K.RICH_TEXT), ("country", K.RICH_TEXT), ("Country", K.SELECT),
            ("국가", K.MULTI_SELECT),
        ),
        default=[],
        convert=_to_country_list,
    ),
    "status": FieldSpec(
        (("Status", K.SELECT), ("Status", K.STATUS), ("status", K.SELECT), ("status", K.STATUS), ("상태", K.SELECT)),
    ),
    "progress": FieldSpec(
        (("Progress", K.NUMBER), ("progress", K.NUMBER), ("진행률", K.NUMBER)),
        default=0,
        convert=_to_int,
    ),
    "deadline": FieldSpec(
        (("Deadline", K.DATE), ("deadline", K.DATE), ("마감일", K.DATE)),
        default=None,
    ),
    "owner": FieldSpec(
        (("Owner", K.PEOPLE), ("owner", K.PEOPLE), ("Owner", K.RICH_TEXT), ("owner", K.RICH_TEXT), ("담당자", K.PEOPLE)),
        convert=_to_display_names,
    ),
    "goal": FieldSpec((("Goal", K.RICH_TEXT), ("goal", K.RICH_TEXT), ("목표", K.RICH_TEXT))),
    "link": FieldSpec((("Link", K.URL), ("link", K.URL))),
}


# People properties whose user ids back owner writes.
OWNER_ID_PROPERTIES: Tuple[str, ...] = ("Owner", "owner", "담당자")


def resolve_field(props: Mapping[str, Any], spec: FieldSpec) -> Any:
    """Value of the first alias with a non-empty reading, else the default."""
    for name, kind in spec.aliases:
        value = read_property(props.get(name), kind)
        if is_empty(value):
            continue
        return spec.convert(value, kind) if spec.convert else value
    return copy.copy(spec.default)


def _resolve_all(record: Any, fields: Dict[str, FieldSpec]) -> Dict[str, Any]:
    props = properties_of(record)
    return {attr: resolve_field(props, spec) for attr, spec in fields.items()}


def _meta(record: Any, key: str) -> Optional[str]:
    if not isinstance(record, dict):
        return None
    value = record.get(key)
    return value if isinstance(value, str) and value else None


def _editor(record: Any) -> Optional[str]:
    user = record.get("last_edited_by") if isinstance(record, dict) else None
    if not isinstance(user, dict):
        return None
    for key in ("name", "id"):
        value = user.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _owner_ids(props: Mapping[str, Any]) -> List[str]:
    for name in OWNER_ID_PROPERTIES:
        ids = people_ids(props.get(name))
        if ids:
            return ids
    return []


def normalize_kpi(raw: Any) -> KPI:
    values = _resolve_all(raw, KPI_FIELDS)
    return KPI(id=_meta(raw, "id") or "", **values)


def normalize_project(raw: Any) -> Project:
    values = _resolve_all(raw, PROJECT_FIELDS)
    # The page URL is canonical; a Link property is the older fallback.
    values["link"] = _meta(raw, "url") or values["link"]
    return Project(
        id=_meta(raw, "id") or "",
        created_time=_meta(raw, "created_time"),
        last_edited_time=_meta(raw, "last_edited_time"),
        last_edited_by=_editor(raw),
        owner_ids=_owner_ids(properties_of(raw)),
        **values,
    )
