"""kpi_query/lambda_function.py

Read API for the KPI dashboard. Fetches the KPI and Project collections from
Notion, normalizes them and returns flat JSON records, or the KPI → KPI
detail → Project hierarchy built from them.

Routes (via API Gateway proxy):
    GET     /api/notion?type=<type>[&includeContent=true]
    POST    /api/notion   {"type": "<type>", ...}
    OPTIONS /api/notion   CORS preflight

Query types:
    kpis          normalized KPI list
    projects      normalized Project list
    all           {kpis, projects, hierarchy} (default)
    hierarchy     KPI → KPI detail → Project tree
    schema        enumerated select options per property, per collection
    page-content  {recordId: summary} for recordId / recordIds (comma list)

Environment variables: see kpiboard_shared.config.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from kpiboard_shared.config import ConfigurationError, NotionConfig
from kpiboard_shared.content import summarize_records
from kpiboard_shared.hierarchy import build_hierarchy, kpi_names_by_id, resolve_kpi_name
from kpiboard_shared.http_utils import _error, _ok, _parse_body, _path_method, _preflight
from kpiboard_shared.normalizer import normalize_kpi, normalize_project
from kpiboard_shared.notion_client import NotionAPIError, NotionClient
from kpiboard_shared.pagination import fetch_all, fetch_collections
from kpiboard_shared.records import KPI, Project

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)

QUERY_TYPES = ("kpis", "projects", "all", "hierarchy", "schema", "page-content")
DEFAULT_QUERY_TYPE = "all"
MAX_CONTENT_IDS = 100

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _new_client(config: NotionConfig) -> NotionClient:
    return NotionClient(config)


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_VALUES


def _request_params(event: Dict[str, Any], method: str) -> Optional[Dict[str, Any]]:
    """Query-string parameters, overlaid by the JSON body for POST."""
    params: Dict[str, Any] = dict(event.get("queryStringParameters") or {})
    if method == "POST":
        body = _parse_body(event)
        if body is None:
            return None
        params.update(body)
    return params


def _record_ids(params: Dict[str, Any]) -> List[str]:
    raw = params.get("recordIds") or params.get("recordId") or params.get("pageId") or ""
    if isinstance(raw, list):
        parts = [str(p) for p in raw]
    else:
        parts = str(raw).split(",")
    return [p.strip() for p in parts if p.strip()]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _load_kpis(client: NotionClient, config: NotionConfig) -> List[KPI]:
    return [normalize_kpi(raw) for raw in fetch_all(client, config.kpis_db_id)]


def _load_projects(client: NotionClient, config: NotionConfig) -> List[Project]:
    return [normalize_project(raw) for raw in fetch_all(client, config.projects_db_id)]


def _load_both(client: NotionClient, config: NotionConfig) -> Tuple[List[KPI], List[Project]]:
    raw_kpis, raw_projects = fetch_collections(client, config.kpis_db_id, config.projects_db_id)
    return [normalize_kpi(r) for r in raw_kpis], [normalize_project(r) for r in raw_projects]


def _attach_content(client: NotionClient, config: NotionConfig, projects: List[Project]) -> None:
    summaries = summarize_records(
        client, [p.id for p in projects if p.id], batch_size=config.content_batch_size,
    )
    for project in projects:
        project.content_summary = summaries.get(project.id, "")


def _project_dicts(projects: List[Project], kpis: Optional[List[KPI]] = None) -> List[Dict[str, Any]]:
    if kpis is None:
        return [p.to_dict() for p in projects]
    names = kpi_names_by_id(kpis)
    return [p.to_dict(kpi_name=resolve_kpi_name(p, names) or p.kpi.label) for p in projects]


# ---------------------------------------------------------------------------
# Query handlers
# ---------------------------------------------------------------------------


def _handle_kpis(client: NotionClient, config: NotionConfig, params: Dict) -> Dict:
    kpis = _load_kpis(client, config)
    return _ok([k.to_dict() for k in kpis], config.cors_origin)


def _handle_projects(client: NotionClient, config: NotionConfig, params: Dict) -> Dict:
    projects = _load_projects(client, config)
    if _flag(params.get("includeContent")):
        _attach_content(client, config, projects)
    return _ok(_project_dicts(projects), config.cors_origin)


def _handle_all(client: NotionClient, config: NotionConfig, params: Dict) -> Dict:
    kpis, projects = _load_both(client, config)
    if _flag(params.get("includeContent")):
        _attach_content(client, config, projects)
    hierarchy = build_hierarchy(kpis, projects)
    return _ok(
        {
            "kpis": [k.to_dict() for k in kpis],
            "projects": _project_dicts(projects, kpis),
            "hierarchy": [node.to_dict() for node in hierarchy],
        },
        config.cors_origin,
    )


def _handle_hierarchy(client: NotionClient, config: NotionConfig, params: Dict) -> Dict:
    kpis, projects = _load_both(client, config)
    hierarchy = build_hierarchy(kpis, projects)
    return _ok([node.to_dict() for node in hierarchy], config.cors_origin)


def _handle_schema(client: NotionClient, config: NotionConfig, params: Dict) -> Dict:
    return _ok(
        {
            "kpis": client.get_collection_schema(config.kpis_db_id),
            "projects": client.get_collection_schema(config.projects_db_id),
        },
        config.cors_origin,
    )


def _handle_page_content(client: NotionClient, config: NotionConfig, params: Dict) -> Dict:
    record_ids = _record_ids(params)
    if not record_ids:
        return _error(400, "recordId or recordIds is required for type=page-content", config.cors_origin)
    if len(record_ids) > MAX_CONTENT_IDS:
        return _error(400, f"Too many records. Maximum {MAX_CONTENT_IDS} per request.", config.cors_origin)
    summaries = summarize_records(client, record_ids, batch_size=config.content_batch_size)
    return _ok(summaries, config.cors_origin, count=len(summaries))


_HANDLERS = {
    "kpis": _handle_kpis,
    "projects": _handle_projects,
    "all": _handle_all,
    "hierarchy": _handle_hierarchy,
    "schema": _handle_schema,
    "page-content": _handle_page_content,
}


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


def lambda_handler(event: Dict, context: Any) -> Dict:
    method, path = _path_method(event)

    try:
        config = NotionConfig.from_env()
    except ConfigurationError as exc:
        logger.error("configuration load failed: %s", exc)
        return _error(500, str(exc), missing=list(exc.missing))

    if method == "OPTIONS":
        return _preflight(config.cors_origin)
    if method not in ("GET", "POST"):
        return _error(405, "Method not allowed.", config.cors_origin)

    try:
        config.require()
    except ConfigurationError as exc:
        logger.error("configuration incomplete: %s config=%s", exc, config.to_log_dict())
        return _error(500, str(exc), config.cors_origin, missing=list(exc.missing))

    params = _request_params(event, method)
    if params is None:
        return _error(400, "Invalid JSON body.", config.cors_origin)

    query_type = str(params.get("type") or DEFAULT_QUERY_TYPE).strip().lower()
    handler = _HANDLERS.get(query_type)
    if handler is None:
        return _error(
            400,
            f"Invalid type: {query_type!r}. Please specify type: {', '.join(QUERY_TYPES)}",
            config.cors_origin,
        )

    client = _new_client(config)
    try:
        return handler(client, config, params)
    except NotionAPIError as exc:
        logger.error("query %s failed: %s", query_type, exc)
        return _error(502, str(exc), config.cors_origin, upstreamStatus=exc.status)
    except Exception as exc:
        logger.exception("query %s failed unexpectedly (path=%s)", query_type, path)
        return _error(500, f"Internal server error: {exc}", config.cors_origin)
