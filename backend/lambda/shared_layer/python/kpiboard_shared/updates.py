"""kpiboard_shared.updates — Client edits → Notion partial-update payloads.

An update is a sparse mapping of logical field names to new values. Only the
keys present are translated:

    * a missing key leaves the property unchanged;
    * a present value sets the property;
    * a present empty value (``""``, ``None`` or ``[]``) clears it - dates,
      selects and URLs are sent as ``null``, text and list properties as an
      empty list.

The same rule applies to every field, including ``division`` and ``status``.
``owner`` writes take Notion user ids, as served in a project's ``ownerIds``;
the display names in ``owner`` are read-only.
Translation makes no network call; ill-typed values raise
``UpdateValidationError`` so nothing is sent.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .properties import PropertyKind

K = PropertyKind

# Notion caps a single text object at 2000 characters.
MAX_TEXT_RUN = 2000


class UpdateValidationError(ValueError):
    """A write request is malformed; raised before any network call."""


UPDATE_FIELDS: Dict[str, Tuple[str, PropertyKind]] = {
    "name": ("Name", K.TITLE),
    "code": ("Code", K.RICH_TEXT),
    "kpi": ("KPI", K.SELECT),
    "kpiId": ("KPI", K.RELATION),
    "kpiDetail": ("KPI_Detail", K.RICH_TEXT),
    "division": ("Division", K.SELECT),
    "countries": ("Country", K.MULTI_SELECT),
    "status": ("Status", K.SELECT),
    "progress": ("Progress", K.NUMBER),
    "deadline": ("Deadline", K.DATE),
    "owner": ("Owner", K.PEOPLE),
    "goal": ("Goal", K.RICH_TEXT),
    "link": ("Link", K.URL),
}

# Alternate client spellings.
FIELD_ALIASES: Dict[str, str] = {
    "kpi_detail": "kpiDetail",
    "kpi_id": "kpiId",
    "country": "countries",
    "owners": "owner",
    "ownerIds": "owner",
}


def _is_clear(value: Any) -> bool:
    return value is None or value == "" or value == []


def _require_str(field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise UpdateValidationError(f"{field}: expected a string, got {type(value).__name__}")
    return value


def _string_list(field: str, value: Any) -> List[str]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise UpdateValidationError(f"{field}: expected a list of strings")
    out: List[str] = []
    for item in items:
        if not isinstance(item, str):
            raise UpdateValidationError(f"{field}: expected a list of strings")
        if item.strip():
            out.append(item.strip())
    return out


# ---------------------------------------------------------------------------
# Per-kind encoders (inverse of the property readers)
# ---------------------------------------------------------------------------


def _encode_text(field: str, value: Any) -> List[Dict[str, Any]]:
    if _is_clear(value):
        return []
    text = _require_str(field, value)
    return [
        {"type": "text", "text": {"content": text[i:i + MAX_TEXT_RUN]}}
        for i in range(0, len(text), MAX_TEXT_RUN)
    ]


def _encode_named(field: str, value: Any) -> Optional[Dict[str, str]]:
    if _is_clear(value):
        return None
    return {"name": _require_str(field, value).strip()}


def _encode_multi_select(field: str, value: Any) -> List[Dict[str, str]]:
    if _is_clear(value):
        return []
    return [{"name": name} for name in _string_list(field, value)]


def _encode_number(field: str, value: Any) -> Optional[float]:
    if _is_clear(value):
        return None
    if isinstance(value, bool):
        raise UpdateValidationError(f"{field}: expected a number")
    number: Any = None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                pass
    # NaN and infinity have no JSON encoding.
    if isinstance(number, int) or (isinstance(number, float) and math.isfinite(number)):
        return number
    raise UpdateValidationError(f"{field}: expected a number, got {value!r}")


def _encode_date(field: str, value: Any) -> Optional[Dict[str, str]]:
    if _is_clear(value):
        return None
    text = _require_str(field, value).strip()
    try:
        dt.date.fromisoformat(text[:10])
    except ValueError:
        raise UpdateValidationError(f"{field}: expected an ISO-8601 date, got {value!r}") from None
    return {"start": text}


def _encode_url(field: str, value: Any) -> Optional[str]:
    if _is_clear(value):
        return None
    return _require_str(field, value).strip()


def _encode_people(field: str, value: Any) -> List[Dict[str, str]]:
    if _is_clear(value):
        return []
    return [{"object": "user", "id": user_id} for user_id in _string_list(field, value)]


def _encode_relation(field: str, value: Any) -> List[Dict[str, str]]:
    if _is_clear(value):
        return []
    return [{"id": record_id} for record_id in _string_list(field, value)]


_ENCODERS: Dict[PropertyKind, Callable[[str, Any], Any]] = {
    K.TITLE: _encode_text,
    K.RICH_TEXT: _encode_text,
    K.SELECT: _encode_named,
    K.STATUS: _encode_named,
    K.MULTI_SELECT: _encode_multi_select,
    K.NUMBER: _encode_number,
    K.DATE: _encode_date,
    K.URL: _encode_url,
    K.PEOPLE: _encode_people,
    K.RELATION: _encode_relation,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def canonical_field(name: str) -> str:
    return FIELD_ALIASES.get(name, name)


def translate(
    update: Mapping[str, Any],
    property_names: Optional[Mapping[str, str]] = None,
) -> Dict[str, Dict[str, Any]]:
    """Translate a sparse client edit into a Notion ``properties`` patch.

    Args:
        update: logical field name → new value.
        property_names: optional per-deployment override of the Notion
            property name a logical field writes to.

    Raises:
        UpdateValidationError: unknown field, ill-typed value, or two fields
            writing the same property.
    """
    if not isinstance(update, Mapping):
        raise UpdateValidationError("update must be an object")

    overrides = property_names or {}
    patch: Dict[str, Dict[str, Any]] = {}
    written_by: Dict[str, str] = {}
    for raw_field, value in update.items():
        field = canonical_field(raw_field)
        if field not in UPDATE_FIELDS:
            raise UpdateValidationError(f"Unknown field: {raw_field}")
        prop_name, kind = UPDATE_FIELDS[field]
        prop_name = overrides.get(field, prop_name)
        if prop_name in written_by:
            raise UpdateValidationError(
                f"{raw_field}: conflicts with {written_by[prop_name]} (both write {prop_name!r})"
            )
        written_by[prop_name] = raw_field
        patch[prop_name] = {kind.value: _ENCODERS[kind](raw_field, value)}
    return patch
