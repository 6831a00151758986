"""Project references attached to inventory instances.

The backend returns the project reference as a plain string, a list of
names, or an expanded object. ``project_ref`` converts the raw value once so
the general-inventory checks only deal with the three known shapes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from .fields import GENERAL_INVENTORY

_SENTINEL = GENERAL_INVENTORY.lower()


@dataclass(frozen=True)
class PlainName:
    name: str


@dataclass(frozen=True)
class NameList:
    names: Tuple[str, ...]


@dataclass(frozen=True)
class ProjectObject:
    item_number: Optional[str] = None
    keyed_name: Optional[str] = None
    name: Optional[str] = None

    def values(self) -> Tuple[Optional[str], ...]:
        return (self.item_number, self.keyed_name, self.name)


ProjectRef = Union[PlainName, NameList, ProjectObject]


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def project_ref(raw: Any) -> Optional[ProjectRef]:
    """Convert a raw backend project value; ``None`` when absent or unrecognised."""

    if isinstance(raw, str):
        return PlainName(raw)
    if isinstance(raw, (list, tuple)):
        return NameList(tuple(entry for entry in raw if isinstance(entry, str)))
    if isinstance(raw, Mapping):
        return ProjectObject(
            item_number=_text(raw.get("item_number")),
            keyed_name=_text(raw.get("keyed_name")),
            name=_text(raw.get("m_name")),
        )
    return None


def _is_sentinel(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() == _SENTINEL


def is_general_inventory(raw: Any) -> bool:
    """Return ``True`` when the project marks the instance as general inventory.

    Objects qualify when any of ``item_number``, ``keyed_name`` or ``m_name``
    carries the marker.
    """

    ref = raw if isinstance(raw, (PlainName, NameList, ProjectObject)) else project_ref(raw)
    if isinstance(ref, PlainName):
        return _is_sentinel(ref.name)
    if isinstance(ref, NameList):
        return any(_is_sentinel(name) for name in ref.names)
    if isinstance(ref, ProjectObject):
        return any(_is_sentinel(value) for value in ref.values())
    return False


def is_spare_project(raw: Any) -> bool:
    """Return ``True`` when quantities under this project count as spare.

    Same as ``is_general_inventory`` except that an expanded project object
    must carry the marker in all three name fields.
    """

    ref = project_ref(raw)
    if isinstance(ref, ProjectObject):
        return all(_is_sentinel(value) for value in ref.values())
    return is_general_inventory(ref)


__all__ = [
    "NameList",
    "PlainName",
    "ProjectObject",
    "ProjectRef",
    "is_general_inventory",
    "is_spare_project",
    "project_ref",
]
