"""kpiboard_shared.auth — Shared-secret gate for write requests.

Deployments that set ``WRITE_PASSWORD`` (or the ``WRITE_PASSWORDS`` allowlist)
require the secret either in the JSON body ``password`` field or in the
``X-Write-Password`` header. The active and rollover values are both accepted
so the secret can be rotated without downtime. Without a configured secret,
writes are open.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, Optional, Tuple

from .config import NotionConfig
from .http_utils import _error, _header

logger = logging.getLogger(__name__)

PASSWORD_HEADER = "X-Write-Password"


def _supplied_password(event: Dict[str, Any], body: Dict[str, Any]) -> str:
    supplied = body.get("password")
    if isinstance(supplied, str) and supplied:
        return supplied
    return _header(event, PASSWORD_HEADER)


def _password_matches(supplied: str, allowed: Tuple[str, ...]) -> bool:
    matched = False
    for candidate in allowed:
        # Compare against every candidate so timing does not reveal which one matched.
        if hmac.compare_digest(supplied.encode("utf-8"), candidate.encode("utf-8")):
            matched = True
    return matched


def _authorize_write(
    event: Dict[str, Any],
    body: Dict[str, Any],
    config: NotionConfig,
) -> Optional[Dict[str, Any]]:
    """Return None when the write may proceed, else a 401 response."""
    if not config.write_passwords:
        return None
    supplied = _supplied_password(event, body)
    if not supplied:
        logger.warning("write rejected: no password supplied")
        return _error(401, "Password required.", config.cors_origin)
    if not _password_matches(supplied, config.write_passwords):
        logger.warning("write rejected: password mismatch")
        return _error(401, "Invalid password.", config.cors_origin)
    return None
