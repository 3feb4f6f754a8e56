"""kpiboard_shared.http_utils — HTTP response helpers with CORS.

Standard response envelope and error formatting used by the KPI board
Lambda functions.
"""

from __future__ import annotations

import base64
import datetime as dt
import json
import logging
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def _cors_headers(origin: str = "*") -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Write-Password",
        "Access-Control-Allow-Methods": "GET,POST,PATCH,OPTIONS",
    }
    if origin != "*":
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def _now_z() -> str:
    """Current UTC timestamp in ISO 8601 format with Z suffix."""
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _response(status_code: int, body: Any, origin: str = "*") -> Dict[str, Any]:
    """Build a standard API Gateway response with CORS headers."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Cache-Control": "no-store",
            **_cors_headers(origin),
        },
        "body": json.dumps(body, default=str, ensure_ascii=False),
    }


def _preflight(origin: str = "*") -> Dict[str, Any]:
    return {"statusCode": 204, "headers": _cors_headers(origin), "body": ""}


def _ok(data: Any, origin: str = "*", **extra: Any) -> Dict[str, Any]:
    """Build the success envelope: ``{success, data, count?, timestamp}``.

    ``count`` is added automatically for list payloads.
    """
    payload: Dict[str, Any] = {"success": True, "data": data}
    if isinstance(data, list):
        payload["count"] = len(data)
    payload.update(extra)
    payload["timestamp"] = _now_z()
    return _response(200, payload, origin)


def _error(status_code: int, message: str, origin: str = "*", **extra: Any) -> Dict[str, Any]:
    """Build a standard error response.

    Args:
        status_code: HTTP status code.
        message: Human-readable error message.
        origin: CORS origin echoed in the response headers.
        **extra: Additional fields merged into the response payload.
    """
    payload: Dict[str, Any] = {
        "success": False,
        "error": message,
    }
    if extra:
        payload.update(extra)
    return _response(status_code, payload, origin)


def _parse_body(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Parse a JSON object body from an API Gateway event (handles base64).

    Returns ``{}`` for an empty body and ``None`` when the body is not a
    JSON object.
    """
    raw = event.get("body")
    if raw in (None, ""):
        return {}
    if event.get("isBase64Encoded"):
        try:
            raw = base64.b64decode(raw).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from an API Gateway v1/v2 event."""
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    method = (http.get("method") or event.get("httpMethod") or "GET").upper()
    path = http.get("path") or event.get("rawPath") or event.get("path") or "/"
    return method, path


def _header(event: Dict[str, Any], name: str) -> str:
    """Case-insensitive header lookup."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == wanted:
            return value or ""
    return ""
