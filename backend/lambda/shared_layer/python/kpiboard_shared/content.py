"""kpiboard_shared.content — Flat text summaries of record bodies."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Sequence

from .properties import plain_text

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5

_PREFIXES: Dict[str, str] = {
    "paragraph": "",
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "• ",
    "numbered_list_item": "- ",
}


def render_block(block: Any) -> str:
    """One display line for a block, or ``""`` when it is not rendered."""
    if not isinstance(block, dict):
        return ""
    block_type = block.get("type")
    payload = block.get(block_type) if isinstance(block_type, str) else None
    if not isinstance(payload, dict):
        return ""
    text = plain_text(payload.get("rich_text")).strip()
    if not text:
        return ""
    if block_type == "to_do":
        return ("[x] " if payload.get("checked") is True else "[ ] ") + text
    prefix = _PREFIXES.get(block_type)
    if prefix is None:
        return ""
    return prefix + text


def summarize(blocks: Iterable[Any]) -> str:
    lines = [line for line in (render_block(b) for b in blocks) if line]
    return "\n".join(lines)


def _summarize_one(transport: Any, record_id: str) -> str:
    return summarize(transport.get_record_body(record_id))


def summarize_records(
    transport: Any,
    record_ids: Sequence[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Dict[str, str]:
    """Summaries for many records, fetched in sequential waves.

    Each wave runs at most ``batch_size`` fetches concurrently and fully
    resolves before the next one starts. A failed fetch yields ``""`` for
    that record only.
    """
    batch_size = max(int(batch_size), 1)
    ids: List[str] = list(dict.fromkeys(record_ids))
    summaries: Dict[str, str] = {}
    for start in range(0, len(ids), batch_size):
        wave = ids[start:start + batch_size]
        with ThreadPoolExecutor(max_workers=len(wave)) as pool:
            futures = {rid: pool.submit(_summarize_one, transport, rid) for rid in wave}
            for rid, future in futures.items():
                try:
                    summaries[rid] = future.result()
                except Exception as exc:
                    logger.warning("content fetch failed for %s: %s", rid, exc)
                    summaries[rid] = ""
    return summaries
