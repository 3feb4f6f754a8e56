"""kpiboard_shared.records — Normalized domain records.

Records are built fresh per request and serialized with ``to_dict`` into the
camelCase JSON shape the dashboard front end consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN_KPI_NAME = "Unknown"
OTHER_DETAIL_NAME = "Other"


@dataclass(frozen=True)
class KpiRef:
    """How a project points at its KPI.

    Deployments model the link either as a relation to a KPI record
    (``relation_id``) or as a plain select label (``label``). Exactly one
    of the two is meaningful; an empty label means "no KPI".
    """

    relation_id: Optional[str] = None
    label: str = ""

    @classmethod
    def relation(cls, record_id: str) -> "KpiRef":
        return cls(relation_id=record_id)

    @classmethod
    def named(cls, label: str) -> "KpiRef":
        return cls(label=label)

    @property
    def is_relation(self) -> bool:
        return self.relation_id is not None


@dataclass
class KPI:
    id: str = ""
    name: str = UNKNOWN_KPI_NAME
    count: int = 0
    related_project_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "count": self.count,
            "relatedProjectIds": list(self.related_project_ids),
        }


@dataclass
class Project:
    id: str = ""
    name: str = ""
    code: str = ""
    kpi: KpiRef = field(default_factory=KpiRef)
    kpi_detail: str = ""
    division: str = ""
    countries: List[str] = field(default_factory=list)
    status: str = ""
    progress: int = 0
    deadline: Optional[str] = None
    owner: str = ""
    owner_ids: List[str] = field(default_factory=list)
    goal: str = ""
    link: str = ""
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None
    last_edited_by: Optional[str] = None
    content_summary: Optional[str] = None

    @property
    def country(self) -> str:
        """Comma-joined display form of ``countries``."""
        return ", ".join(self.countries)

    def to_dict(self, kpi_name: Optional[str] = None) -> Dict[str, Any]:
        """Serialize for the client.

        ``kpi_name`` overrides the KPI label, used when a relation link has
        been resolved against the KPI list.
        """
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "kpi": kpi_name if kpi_name is not None else self.kpi.label,
            "kpiId": self.kpi.relation_id,
            "kpiDetail": self.kpi_detail,
            "division": self.division,
            "countries": list(self.countries),
            "country": self.country,
            "status": self.status,
            "progress": self.progress,
            "deadline": self.deadline,
            "owner": self.owner,
            "ownerIds": list(self.owner_ids),
            "goal": self.goal,
            "link": self.link,
            "createdTime": self.created_time,
            "lastEditedTime": self.last_edited_time,
            "lastEditedBy": self.last_edited_by,
        }
        if self.content_summary is not None:
            out["contentSummary"] = self.content_summary
        return out


@dataclass
class DetailGroup:
    detail_name: str
    projects: List[Project] = field(default_factory=list)


@dataclass
class HierarchyNode:
    kpi_name: str
    count: int = 0
    kpi_id: str = ""
    details: List[DetailGroup] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kpiName": self.kpi_name,
            "kpiId": self.kpi_id,
            "count": self.count,
            "details": [
                {
                    "detailName": group.detail_name,
                    "projects": [p.to_dict(kpi_name=self.kpi_name) for p in group.projects],
                }
                for group in self.details
            ],
        }
