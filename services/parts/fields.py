"""Field configuration for the inventory instance entity."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

DISPLAY_QUALIFIER = "@"
GENERAL_INVENTORY = "General Inventory"
UNKNOWN_ITEM = "Unknown"


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class FieldConfig:
    """Static description of the backend schema used by the parts pipeline.

    Instances are immutable and passed explicitly to the query compiler and
    the post-processors, so tests can substitute an alternate schema.
    """

    entity: str = "m_Instance"
    classification: str = "Inventoried"
    quantity_field: str = "m_quantity"
    project_field: str = "m_project"
    inventory_item_field: str = "m_inventory_item"
    max_unfiltered_results: int = 500
    backend_names: Mapping[str, str] = field(
        default_factory=lambda: _frozen(
            {
                "m_inventory_description": "m_inventory_description",
                "m_mfg_part_number": "m_mfg_part_number",
                "m_mfg_name": "m_mfg_name",
                "m_parent_ref_path": "m_parent_ref_path",
                "m_custodian": "m_custodian",
                "m_inventory_item": "m_inventory_item/item_number",
                "m_project": "m_project/item_number",
                "m_id": "m_id",
                "item_number": "item_number",
                "m_maturity": "m_maturity",
                "m_quantity": "m_quantity",
            }
        )
    )
    # Reference fields whose value lives in a nested ``item_number``.
    nested_item_number_fields: Tuple[str, ...] = ("m_inventory_item", "m_project")
    select_fields: Tuple[str, ...] = (
        "m_parent_ref_path",
        "m_inventory_description",
        "m_mfg_part_number",
        "m_mfg_name",
        "id",
        "m_id",
        "m_custodian",
        "classification",
        "m_quantity",
        "m_maturity",
        "item_number",
        "spare_value",
    )
    expand_fields: Tuple[str, ...] = (
        "m_inventory_item($select=item_number)",
        "m_project($select=item_number,keyed_name,m_name)",
    )
    search_fields: Tuple[str, ...] = (
        "m_inventory_item",
        "m_mfg_part_number",
        "m_mfg_name",
        "m_parent_ref_path",
        "m_inventory_description",
        "m_custodian@aras.keyed_name",
        "m_custodian",
        "m_id",
        "item_number",
        "m_maturity",
    )
    highlight_keys: Mapping[str, str] = field(
        default_factory=lambda: _frozen(
            {
                "m_custodian@aras.keyed_name": "m_custodian",
                "item_number": "m_project",
            }
        )
    )

    def backend_name(self, field_name: str) -> str:
        return self.backend_names.get(field_name, field_name)

    def highlight_key(self, field_name: str) -> str:
        return self.highlight_keys.get(canonical_field_name(field_name), field_name)

    def is_numeric(self, field_name: str) -> bool:
        return field_name == self.quantity_field

    def field_value(self, record: Mapping[str, Any], field_name: str) -> Optional[str]:
        """Return the textual value of ``field_name`` on ``record`` or ``None``."""

        key = canonical_field_name(field_name)
        value = record.get(key)
        if value is None and is_display_field(key):
            value = record.get(_dollar_spelling(key))
        if key in self.nested_item_number_fields:
            value = _nested_item_number(value)
        if value is None or value == "" or value is False:
            return None
        if isinstance(value, (list, tuple)):
            parts = [str(entry) for entry in value if entry not in (None, "")]
            return ", ".join(parts) or None
        return str(value)


def is_display_field(field_name: str) -> bool:
    """Return ``True`` for display-name variants such as ``m_custodian@aras.keyed_name``."""

    return DISPLAY_QUALIFIER in field_name


def canonical_field_name(field_name: str) -> str:
    """Normalise the ``@aras$keyed_name`` spelling to ``@aras.keyed_name``."""

    if not is_display_field(field_name):
        return field_name
    base, _, annotation = field_name.partition(DISPLAY_QUALIFIER)
    return f"{base}{DISPLAY_QUALIFIER}{annotation.replace('$', '.')}"


def _dollar_spelling(field_name: str) -> str:
    base, _, annotation = field_name.partition(DISPLAY_QUALIFIER)
    return f"{base}{DISPLAY_QUALIFIER}{annotation.replace('.', '$')}"


def _nested_item_number(value: Any) -> Any:
    # Unexpanded references carry no item number.
    if isinstance(value, Mapping):
        return value.get("item_number")
    return None


DEFAULT_FIELD_CONFIG = FieldConfig()

__all__ = [
    "DEFAULT_FIELD_CONFIG",
    "DISPLAY_QUALIFIER",
    "FieldConfig",
    "GENERAL_INVENTORY",
    "UNKNOWN_ITEM",
    "canonical_field_name",
    "is_display_field",
]
