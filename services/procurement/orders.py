"""Query helpers for procurement requests and their workflow state."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

ORDERS_ENTITY = "m_Procurement_Request"
WORKFLOW_PROCESS_ENTITY = "Workflow Process"
WORKFLOW_ACTIVITY_ENTITY = "Workflow Process Activity"
ALLOWED_SEARCH_FIELDS = ("keyed_name", "created_by_id/keyed_name")
DEFAULT_SEARCH_FIELD = "keyed_name"
DEFAULT_PAGE_SIZE = 50

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _literal(value: str) -> str:
    return value.replace("'", "''")


def resolve_search_field(field: Optional[str]) -> str:
    if field in ALLOWED_SEARCH_FIELDS:
        return field  # type: ignore[return-value]
    return DEFAULT_SEARCH_FIELD


def build_orders_params(search: Optional[str] = None, field: Optional[str] = None) -> Dict[str, str]:
    """OData parameters for the order list; searching lifts the page-size limit."""

    term = (search or "").strip()
    params = {"$orderby": "created_on desc"}
    if not term:
        params["$top"] = str(DEFAULT_PAGE_SIZE)
    params["$select"] = "*"
    params["$count"] = "true"
    if term:
        params["$filter"] = f"contains({resolve_search_field(field)},'{_literal(term)}')"
    return params


def total_count(payload: Mapping[str, Any]) -> int:
    count = payload.get("@odata.count")
    if isinstance(count, int) and not isinstance(count, bool):
        return count
    values = payload.get("value")
    return len(values) if isinstance(values, list) else 0


def equality_params(field: str, value: Optional[str]) -> Dict[str, str]:
    params = {"$select": "*"}
    if value:
        params["$filter"] = f"{field} eq '{_literal(value)}'"
    return params


def _created_on(entry: Mapping[str, Any]) -> datetime:
    raw = entry.get("created_on")
    if not isinstance(raw, str) or not raw:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def most_recent(entries: Sequence[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Return the entry with the latest ``created_on`` (first one on ties)."""

    if not entries:
        return None
    ordered: List[Mapping[str, Any]] = sorted(entries, key=_created_on, reverse=True)
    return ordered[0]


__all__ = [
    "ALLOWED_SEARCH_FIELDS",
    "ORDERS_ENTITY",
    "WORKFLOW_ACTIVITY_ENTITY",
    "WORKFLOW_PROCESS_ENTITY",
    "build_orders_params",
    "equality_params",
    "most_recent",
    "resolve_search_field",
    "total_count",
]
