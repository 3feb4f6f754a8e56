"""kpi_mutation/lambda_function.py

Write API for the KPI dashboard. Relays client field edits to Notion as
partial page updates.

Routes (via API Gateway proxy):
    POST|PATCH /api/notion/update   single or batch update
    OPTIONS    /api/notion/update   CORS preflight

Request bodies:
    {"recordId": "...", "update": {"progress": 42, "deadline": ""}}
    {"projectId": "...", "updates": {...}}                  (legacy single form)
    {"updates": [{"recordId": "...", "update": {...}}, ...]} (batch)

Only fields present in an update are written. An empty value clears the
property (see kpiboard_shared.updates). Batch items are applied one at a time;
a failing item is reported in its own result entry and does not stop the rest.

Auth:
    Optional shared secret (WRITE_PASSWORD); see kpiboard_shared.auth.

Environment variables: see kpiboard_shared.config.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from kpiboard_shared.auth import _authorize_write
from kpiboard_shared.config import ConfigurationError, NotionConfig
from kpiboard_shared.http_utils import _error, _now_z, _parse_body, _path_method, _preflight, _response
from kpiboard_shared.notion_client import NotionAPIError, NotionClient
from kpiboard_shared.updates import UpdateValidationError, translate

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)

MAX_BATCH_ITEMS = 50


def _new_client(config: NotionConfig) -> NotionClient:
    return NotionClient(config)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_item(
    item: Any,
    property_names: Optional[Dict[str, str]] = None,
) -> Tuple[str, Dict[str, Dict[str, Any]]]:
    """Return ``(record_id, patch)`` for one write request.

    Raises UpdateValidationError before any network call.
    """
    if not isinstance(item, dict):
        raise UpdateValidationError("each update must be an object")
    record_id = str(item.get("recordId") or item.get("projectId") or "").strip()
    if not record_id:
        raise UpdateValidationError("recordId is required")
    update = item.get("update")
    if update is None:
        update = item.get("updates")
    if not isinstance(update, dict):
        raise UpdateValidationError("update must be an object of field values")
    if not update:
        raise UpdateValidationError("update must contain at least one field")
    return record_id, translate(update, property_names)


def _apply(client: NotionClient, record_id: str, patch: Dict[str, Dict[str, Any]]) -> None:
    client.update_record(record_id, patch)
    logger.info("updated %s properties=%s", record_id, sorted(patch))


# ---------------------------------------------------------------------------
# Write handlers
# ---------------------------------------------------------------------------


def _handle_single(client: NotionClient, config: NotionConfig, body: Dict) -> Dict:
    try:
        record_id, patch = _validate_item(body, config.property_overrides())
    except UpdateValidationError as exc:
        return _error(400, str(exc), config.cors_origin)

    try:
        _apply(client, record_id, patch)
    except NotionAPIError as exc:
        logger.error("update %s failed: %s", record_id, exc)
        return _error(502, str(exc), config.cors_origin, recordId=record_id, upstreamStatus=exc.status)

    return _response(200, {
        "success": True,
        "recordId": record_id,
        "updated": sorted(patch),
        "timestamp": _now_z(),
    }, config.cors_origin)


def _batch_item(client: NotionClient, config: NotionConfig, item: Any) -> Dict[str, Any]:
    record_id: Optional[str] = None
    if isinstance(item, dict):
        record_id = str(item.get("recordId") or item.get("projectId") or "").strip() or None
    try:
        record_id, patch = _validate_item(item, config.property_overrides())
        _apply(client, record_id, patch)
    except (UpdateValidationError, NotionAPIError) as exc:
        logger.warning("batch item %s failed: %s", record_id, exc)
        return {"success": False, "recordId": record_id, "error": str(exc)}
    return {"success": True, "recordId": record_id}


def _handle_batch(client: NotionClient, config: NotionConfig, items: List[Any]) -> Dict:
    if not items:
        return _error(400, "updates must contain at least one item", config.cors_origin)
    if len(items) > MAX_BATCH_ITEMS:
        return _error(400, f"Too many updates. Maximum {MAX_BATCH_ITEMS} per request.", config.cors_origin)

    results = [_batch_item(client, config, item) for item in items]
    failed = sum(1 for r in results if not r["success"])
    return _response(200, {
        "success": failed == 0,
        "results": results,
        "succeeded": len(results) - failed,
        "failed": failed,
        "timestamp": _now_z(),
    }, config.cors_origin)


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
    if method not in ("POST", "PATCH"):
        return _error(405, "Method not allowed.", config.cors_origin)

    try:
        config.require("NOTION_TOKEN")
    except ConfigurationError as exc:
        logger.error("configuration incomplete: %s config=%s", exc, config.to_log_dict())
        return _error(500, str(exc), config.cors_origin, missing=list(exc.missing))

    body = _parse_body(event)
    if body is None:
        return _error(400, "Invalid JSON body.", config.cors_origin)

    auth_err = _authorize_write(event, body, config)
    if auth_err:
        return auth_err

    client = _new_client(config)
    try:
        if isinstance(body.get("updates"), list):
            return _handle_batch(client, config, body["updates"])
        return _handle_single(client, config, body)
    except Exception as exc:
        logger.exception("update failed unexpectedly (path=%s)", path)
        return _error(500, f"Internal server error: {exc}", config.cors_origin)
