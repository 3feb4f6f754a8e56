"""kpiboard_shared.properties — Typed value extraction from Notion property bags.

A Notion record carries ``properties``: a mapping from property name to a
tagged value such as::

    {"type": "select", "select": {"name": "In progress"}}

``extract(record, name, kind)`` returns the plain value for one property, or
the kind's default when the property is missing, tagged with a different
type, or malformed anywhere along the nested path. It never raises.
"""

from __future__ import annotations

import enum
import math
from typing import Any, Callable, Dict, List, Mapping, Optional


class PropertyKind(str, enum.Enum):
    TITLE = "title"
    RICH_TEXT = "rich_text"
    SELECT = "select"
    STATUS = "status"
    MULTI_SELECT = "multi_select"
    NUMBER = "number"
    ROLLUP = "rollup"
    DATE = "date"
    URL = "url"
    PEOPLE = "people"
    RELATION = "relation"


_TEXT_KINDS = (PropertyKind.TITLE, PropertyKind.RICH_TEXT, PropertyKind.SELECT, PropertyKind.STATUS)
_LIST_KINDS = (PropertyKind.MULTI_SELECT, PropertyKind.PEOPLE, PropertyKind.RELATION)
_NUMBER_KINDS = (PropertyKind.NUMBER, PropertyKind.ROLLUP)


def kind_default(kind: PropertyKind) -> Any:
    """Default returned when a property of ``kind`` cannot be read."""
    if kind in _TEXT_KINDS:
        return ""
    if kind in _LIST_KINDS:
        return []
    if kind in _NUMBER_KINDS:
        return 0
    return None


def is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


# ---------------------------------------------------------------------------
# Per-kind readers. Each returns None when the payload has the wrong shape.
# ---------------------------------------------------------------------------


def plain_text(runs: Any) -> str:
    """Concatenate the plain text of a rich-text run list."""
    if not isinstance(runs, list):
        return ""
    parts: List[str] = []
    for run in runs:
        if not isinstance(run, dict):
            continue
        text = run.get("plain_text")
        if not isinstance(text, str):
            inner = run.get("text")
            text = inner.get("content") if isinstance(inner, dict) else None
        if isinstance(text, str):
            parts.append(text)
    return "".join(parts)


def _read_text(payload: Any) -> Optional[str]:
    if not isinstance(payload, list):
        return None
    return plain_text(payload).strip()


def _read_named(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    name = payload.get("name")
    return name.strip() if isinstance(name, str) else None


def _read_multi_select(payload: Any) -> Optional[List[str]]:
    if not isinstance(payload, list):
        return None
    names = []
    for option in payload:
        name = _read_named(option)
        if name:
            names.append(name)
    return names


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _read_number(payload: Any) -> Optional[float]:
    return payload if _is_number(payload) else None


def _read_rollup(payload: Any) -> Optional[float]:
    """Numeric rollups yield their number; array rollups yield their length."""
    if not isinstance(payload, dict):
        return None
    rollup_type = payload.get("type")
    if rollup_type == "number" or (rollup_type is None and "number" in payload):
        return _read_number(payload.get("number"))
    if rollup_type == "array" or (rollup_type is None and "array" in payload):
        items = payload.get("array")
        return len(items) if isinstance(items, list) else None
    return None


def _read_date(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    start = payload.get("start")
    return start if isinstance(start, str) and start else None


def _read_url(payload: Any) -> Optional[str]:
    return payload if isinstance(payload, str) and payload else None


def _read_people(payload: Any) -> Optional[List[str]]:
    if not isinstance(payload, list):
        return None
    names = []
    for person in payload:
        if not isinstance(person, dict):
            continue
        name = person.get("name")
        if not isinstance(name, str) or not name.strip():
            name = person.get("id")
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


def _read_relation(payload: Any) -> Optional[List[str]]:
    if not isinstance(payload, list):
        return None
    return [
        item["id"] for item in payload
        if isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"]
    ]


def people_ids(prop: Any) -> List[str]:
    """User ids of a people property; the ``people`` reader yields names."""
    if not isinstance(prop, dict) or prop.get("type") not in (None, PropertyKind.PEOPLE.value):
        return []
    return _read_relation(prop.get(PropertyKind.PEOPLE.value)) or []


_READERS: Dict[PropertyKind, Callable[[Any], Any]] = {
    PropertyKind.TITLE: _read_text,
    PropertyKind.RICH_TEXT: _read_text,
    PropertyKind.SELECT: _read_named,
    PropertyKind.STATUS: _read_named,
    PropertyKind.MULTI_SELECT: _read_multi_select,
    PropertyKind.NUMBER: _read_number,
    PropertyKind.ROLLUP: _read_rollup,
    PropertyKind.DATE: _read_date,
    PropertyKind.URL: _read_url,
    PropertyKind.PEOPLE: _read_people,
    PropertyKind.RELATION: _read_relation,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_DEFAULT = object()


def properties_of(record: Any) -> Mapping[str, Any]:
    if not isinstance(record, dict):
        return {}
    props = record.get("properties")
    return props if isinstance(props, dict) else {}


def read_property(prop: Any, kind: PropertyKind) -> Any:
    """Read one tagged property value; None when absent or mismatched.

    A property declaring a ``type`` must declare ``kind``; an untagged
    property is read when it carries the kind's key.
    """
    if not isinstance(prop, dict):
        return None
    declared = prop.get("type")
    if declared is not None and declared != kind.value:
        return None
    if kind.value not in prop:
        return None
    return _READERS[kind](prop[kind.value])


def extract(record: Any, name: str, kind: PropertyKind, default: Any = _DEFAULT) -> Any:
    """Extract property ``name`` of ``kind`` from a raw record.

    Returns ``default`` (the kind's default unless given) when the value
    cannot be read. Never raises on malformed input.
    """
    kind = PropertyKind(kind)
    value = read_property(properties_of(record).get(name), kind)
    if value is None:
        return kind_default(kind) if default is _DEFAULT else default
    return value
