"""Group inventory instances by item number and attach quantity totals."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .fields import DEFAULT_FIELD_CONFIG, UNKNOWN_ITEM, FieldConfig
from .projects import is_general_inventory, is_spare_project


@dataclass
class InventoryGroup:
    """Instances sharing one inventory item number."""

    key: str
    instances: List[Mapping[str, Any]] = field(default_factory=list)
    total: float = 0
    spare: float = 0

    @property
    def in_use(self) -> float:
        return self.total - self.spare


def parse_quantity(value: Any) -> Optional[float]:
    """Return the numeric quantity or ``None`` when it is missing or not a number."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def group_key(record: Mapping[str, Any], config: FieldConfig = DEFAULT_FIELD_CONFIG) -> str:
    return config.field_value(record, config.inventory_item_field) or UNKNOWN_ITEM


def group_parts(
    records: Iterable[Mapping[str, Any]],
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> Dict[str, InventoryGroup]:
    """Group records by item number, preserving first-seen group order."""

    groups: Dict[str, InventoryGroup] = {}
    for record in records:
        key = group_key(record, config)
        group = groups.get(key)
        if group is None:
            group = groups[key] = InventoryGroup(key)
        group.instances.append(record)
        quantity = parse_quantity(record.get(config.quantity_field))
        if quantity is None:
            continue
        group.total += quantity
        if is_spare_project(record.get(config.project_field)):
            group.spare += quantity
    return groups


def group_and_process_parts(
    records: Iterable[Mapping[str, Any]],
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> List[Dict[str, Any]]:
    """Flatten grouped records back into annotated instances.

    Every instance carries its group's ``total``, ``inUse`` and ``spare`` plus
    its own ``generalInventory`` flag.
    """

    annotated: List[Dict[str, Any]] = []
    for group in group_parts(records, config).values():
        for instance in group.instances:
            entry = dict(instance)
            entry["total"] = group.total
            entry["inUse"] = group.in_use
            entry["spare"] = group.spare
            entry["generalInventory"] = is_general_inventory(instance.get(config.project_field))
            annotated.append(entry)
    return annotated


__all__ = ["InventoryGroup", "group_and_process_parts", "group_key", "group_parts", "parse_quantity"]
