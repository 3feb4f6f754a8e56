"""kpiboard_shared.notion_client — Thin Notion REST transport.

Wraps the four calls the handlers need:

    query_page(collection_id, cursor)   POST  /databases/{id}/query
    update_record(record_id, patch)     PATCH /pages/{id}
    get_record_body(record_id)          GET   /blocks/{id}/children (all pages)
    get_collection_schema(collection_id) GET  /databases/{id}

Non-2xx responses and network failures raise ``NotionAPIError`` with the
upstream message preserved. Nothing here retries.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from .config import NotionConfig

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class NotionAPIError(RuntimeError):
    """The Notion API call failed or returned a non-success status."""

    def __init__(self, message: str, status: Optional[int] = None, code: str = ""):
        super().__init__(message)
        self.status = status
        self.code = code


def _error_from_http(exc: urllib.error.HTTPError, method: str, path: str) -> NotionAPIError:
    body_text = exc.read().decode("utf-8", errors="replace")
    code = ""
    message = body_text[:500]
    try:
        parsed = json.loads(body_text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        code = str(parsed.get("code") or "")
        message = str(parsed.get("message") or message)
    logger.error("Notion %s %s failed: %s %s %s", method, path, exc.code, code, message)
    return NotionAPIError(f"Notion API error ({exc.code}): {message}", status=exc.code, code=code)


class NotionClient:
    def __init__(self, config: NotionConfig):
        self.config = config

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Notion-Version": self.config.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        query: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.config.api_base}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, method=method, data=data, headers=self._headers())
        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            raise _error_from_http(exc, method, path) from exc
        except urllib.error.URLError as exc:
            logger.error("Notion %s %s unreachable: %s", method, path, exc.reason)
            raise NotionAPIError(f"Notion API unreachable: {exc.reason}") from exc
        try:
            parsed = json.loads(raw or b"{}")
        except ValueError as exc:
            raise NotionAPIError(f"Notion API returned invalid JSON for {method} {path}") from exc
        if not isinstance(parsed, dict):
            raise NotionAPIError(f"Notion API returned an unexpected payload for {method} {path}")
        return parsed

    # -- collections -------------------------------------------------------

    def query_page(
        self,
        collection_id: str,
        cursor: Optional[str] = None,
        page_size: int = PAGE_SIZE,
    ) -> Dict[str, Any]:
        """One page of a collection query: ``{records, next_cursor, has_more}``."""
        body: Dict[str, Any] = {"page_size": page_size}
        if cursor:
            body["start_cursor"] = cursor
        data = self._request("POST", f"/databases/{collection_id}/query", body)
        records = data.get("results")
        return {
            "records": records if isinstance(records, list) else [],
            "next_cursor": data.get("next_cursor"),
            "has_more": bool(data.get("has_more")),
        }

    def get_collection_schema(self, collection_id: str) -> Dict[str, List[str]]:
        """Enumerated option names per select / multi-select / status property."""
        data = self._request("GET", f"/databases/{collection_id}")
        schema: Dict[str, List[str]] = {}
        properties = data.get("properties")
        if not isinstance(properties, dict):
            return schema
        for name, prop in properties.items():
            if not isinstance(prop, dict):
                continue
            prop_type = prop.get("type")
            if prop_type not in ("select", "multi_select", "status"):
                continue
            options = (prop.get(prop_type) or {}).get("options") or []
            schema[name] = [
                opt["name"] for opt in options
                if isinstance(opt, dict) and isinstance(opt.get("name"), str)
            ]
        return schema

    # -- records -----------------------------------------------------------

    def update_record(self, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", f"/pages/{record_id}", {"properties": patch})

    def get_record_body(self, record_id: str) -> List[Dict[str, Any]]:
        """All top-level content blocks of a record, in order."""
        blocks: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            query: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if cursor:
                query["start_cursor"] = cursor
            data = self._request("GET", f"/blocks/{record_id}/children", query=query)
            results = data.get("results")
            if isinstance(results, list):
                blocks.extend(b for b in results if isinstance(b, dict))
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return blocks
