"""Project and supplier pick lists."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

PROJECT_ENTITY = "m_Project"
SUPPLIER_ENTITY = "m_Supplier"
PROJECT_SELECT = "id,item_number,keyed_name,m_name"
SUPPLIER_SELECT = "id,keyed_name,m_name"


def _first_name(entry: Mapping[str, Any], keys: Iterable[str], fallback: str) -> str:
    for key in keys:
        value = entry.get(key)
        if value:
            return str(value)
    return fallback


def map_projects(entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"id": entry.get("id"), "name": _first_name(entry, ("keyed_name", "m_name", "item_number"), "Unnamed Project")}
        for entry in entries
    ]


def map_suppliers(entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"id": entry.get("id"), "name": _first_name(entry, ("keyed_name", "m_name"), "Unnamed Supplier")}
        for entry in entries
    ]


__all__ = ["PROJECT_ENTITY", "SUPPLIER_ENTITY", "map_projects", "map_suppliers"]
