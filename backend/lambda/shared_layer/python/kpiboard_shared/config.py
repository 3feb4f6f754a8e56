"""kpiboard_shared.config — Explicit configuration for the Notion-backed handlers.

Every component that talks to Notion receives a ``NotionConfig`` at
construction time; nothing reads the environment behind the caller's back.

Environment variables (read by ``NotionConfig.from_env``):
    NOTION_TOKEN              Notion integration token
    NOTION_TOKEN_SECRET_ID    Secrets Manager secret holding the token (used
                              when NOTION_TOKEN is unset)
    KPIS_DB_ID                KPI collection (database) identifier
    PROJECTS_DB_ID            Project collection (database) identifier
    NOTION_API_BASE           default: https://api.notion.com/v1
    NOTION_VERSION            default: 2022-06-28
    NOTION_TIMEOUT_SECONDS    default: 15
    CORS_ORIGIN               default: *
    WRITE_PASSWORD            optional shared secret gating writes
    WRITE_PASSWORD_PREVIOUS   optional rollover value accepted during rotation
    WRITE_PASSWORDS           optional comma-separated allowlist
    CONTENT_BATCH_SIZE        default: 5
    UPDATE_PROPERTY_NAMES     optional JSON object mapping update fields to the
                              Notion property they write, e.g.
                              {"kpiId": "KPI 1", "status": "상태"}
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .aws_clients import _get_secretsmanager

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.notion.com/v1"
DEFAULT_API_VERSION = "2022-06-28"
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_CONTENT_BATCH_SIZE = 5


class ConfigurationError(RuntimeError):
    """Required identifiers or credentials are absent."""

    def __init__(self, message: str, missing: Tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


def _normalize_api_keys(*raw_values: str) -> tuple[str, ...]:
    """Return deduplicated, non-empty key values from scalar/csv env sources."""
    keys: list[str] = []
    seen: set[str] = set()
    for raw in raw_values:
        if not raw:
            continue
        for part in str(raw).split(","):
            key = part.strip()
            if not key or key in seen:
                continue
            seen.add(key)
            keys.append(key)
    return tuple(keys)


# ---------------------------------------------------------------------------
# Token secret cache
# ---------------------------------------------------------------------------

_token_cache: Dict[str, Tuple[str, float]] = {}
_TOKEN_TTL: float = 3600.0  # re-fetch from Secrets Manager every hour


def _extract_token(secret_string: str) -> str:
    """Accept either a raw token or a JSON secret with a token-like key."""
    text = (secret_string or "").strip()
    if not text.startswith("{"):
        return text
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    if not isinstance(parsed, dict):
        return ""
    for key in ("NOTION_TOKEN", "notion_token", "token", "api_key"):
        value = parsed.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _get_token_from_secret(secret_id: str) -> str:
    """Fetch the Notion token from Secrets Manager (cached)."""
    now = time.time()
    cached = _token_cache.get(secret_id)
    if cached and (now - cached[1]) < _TOKEN_TTL:
        return cached[0]

    try:
        resp = _get_secretsmanager().get_secret_value(SecretId=secret_id)
    except ClientError as exc:
        code = exc.response.get("Error", {}).get("Code", "ClientError")
        raise ConfigurationError(f"Notion token secret fetch failed: {code}") from exc
    except BotoCoreError as exc:
        raise ConfigurationError(
            f"Notion token secret fetch failed: {exc.__class__.__name__}"
        ) from exc

    token = _extract_token(resp.get("SecretString") or "")
    if not token:
        raise ConfigurationError("Notion token secret is empty", missing=("NOTION_TOKEN",))
    _token_cache[secret_id] = (token, now)
    return token


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default
    return value if value > 0 else default


def _property_names_env(env: Mapping[str, str]) -> Tuple[Tuple[str, str], ...]:
    raw = (env.get("UPDATE_PROPERTY_NAMES") or "").strip()
    if not raw:
        return ()
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if not isinstance(parsed, dict) or not all(
        isinstance(k, str) and isinstance(v, str) and v.strip() for k, v in parsed.items()
    ):
        raise ConfigurationError(
            "UPDATE_PROPERTY_NAMES must be a JSON object of field name to property name"
        )
    return tuple((k, v.strip()) for k, v in parsed.items())


# ---------------------------------------------------------------------------
# Config value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotionConfig:
    token: str = ""
    kpis_db_id: str = ""
    projects_db_id: str = ""
    api_base: str = DEFAULT_API_BASE
    api_version: str = DEFAULT_API_VERSION
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    cors_origin: str = "*"
    write_passwords: Tuple[str, ...] = ()
    content_batch_size: int = DEFAULT_CONTENT_BATCH_SIZE
    property_names: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "NotionConfig":
        """Build a config from environment variables.

        The token secret is only consulted when ``NOTION_TOKEN`` is unset.
        A failed secret fetch raises ``ConfigurationError``.
        """
        env = os.environ if environ is None else environ

        token = (env.get("NOTION_TOKEN") or "").strip()
        secret_id = (env.get("NOTION_TOKEN_SECRET_ID") or "").strip()
        if not token and secret_id:
            token = _get_token_from_secret(secret_id)

        batch_size = int(_float_env(env, "CONTENT_BATCH_SIZE", DEFAULT_CONTENT_BATCH_SIZE))

        return cls(
            token=token,
            kpis_db_id=(env.get("KPIS_DB_ID") or "").strip(),
            projects_db_id=(env.get("PROJECTS_DB_ID") or "").strip(),
            api_base=(env.get("NOTION_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            api_version=(env.get("NOTION_VERSION") or DEFAULT_API_VERSION).strip(),
            timeout_seconds=_float_env(env, "NOTION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            cors_origin=(env.get("CORS_ORIGIN") or "*").strip(),
            write_passwords=_normalize_api_keys(
                env.get("WRITE_PASSWORDS", ""),
                env.get("WRITE_PASSWORD", ""),
                env.get("WRITE_PASSWORD_PREVIOUS", ""),
            ),
            content_batch_size=max(batch_size, 1),
            property_names=_property_names_env(env),
        )

    def missing(self) -> Tuple[str, ...]:
        names = []
        if not self.token:
            names.append("NOTION_TOKEN")
        if not self.kpis_db_id:
            names.append("KPIS_DB_ID")
        if not self.projects_db_id:
            names.append("PROJECTS_DB_ID")
        return tuple(names)

    def require(self, *names: str) -> "NotionConfig":
        """Raise ConfigurationError unless the named settings are present.

        With no names, the token and both collection ids are required.
        """
        missing = tuple(n for n in self.missing() if not names or n in names)
        if missing:
            raise ConfigurationError(
                "Missing environment variables: " + ", ".join(missing),
                missing=missing,
            )
        return self

    def property_overrides(self) -> Dict[str, str]:
        """Update field name → Notion property name, per deployment."""
        return dict(self.property_names)

    def to_log_dict(self) -> Dict[str, Any]:
        """Config summary safe to log (never includes secrets)."""
        return {
            "has_token": bool(self.token),
            "kpis_db_id": self.kpis_db_id,
            "projects_db_id": self.projects_db_id,
            "api_base": self.api_base,
            "api_version": self.api_version,
            "write_gate": bool(self.write_passwords),
            "property_names": dict(self.property_names),
        }
