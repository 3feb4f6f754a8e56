"""kpiboard_shared.pagination — Materialize whole collections.

``fetch_all`` follows continuation cursors until the server reports no more
pages. Any failed page aborts the whole fetch; there are no retries.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)


def fetch_all(transport: Any, collection_id: str) -> List[Dict[str, Any]]:
    """Every record of ``collection_id``; an empty collection yields ``[]``.

    ``transport.query_page(collection_id, cursor)`` must return
    ``{records, next_cursor, has_more}``.
    """
    records: List[Dict[str, Any]] = []
    cursor = None
    pages = 0
    while True:
        page = transport.query_page(collection_id, cursor)
        pages += 1
        records.extend(page.get("records") or [])
        if not page.get("has_more"):
            break
        cursor = page.get("next_cursor")
        if not cursor:
            logger.warning(
                "collection %s reported more pages without a cursor after page %d",
                collection_id, pages,
            )
            break
    logger.info("fetched %d records from %s in %d page(s)", len(records), collection_id, pages)
    return records


def fetch_collections(
    transport: Any,
    kpis_id: str,
    projects_id: str,
) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Fetch the KPI and Project collections concurrently."""
    with ThreadPoolExecutor(max_workers=2) as pool:
        kpis_future = pool.submit(fetch_all, transport, kpis_id)
        projects_future = pool.submit(fetch_all, transport, projects_id)
        return kpis_future.result(), projects_future.result()
