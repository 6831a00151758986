"""Inventory parts search, grouping and highlighting."""

from .conditions import Condition, collect_field_params, has_field_values, normalize_conditions
from .fields import DEFAULT_FIELD_CONFIG, FieldConfig, is_display_field
from .grouping import group_and_process_parts
from .projects import is_general_inventory, project_ref
from .query import InventoryQuery, build_field_filters, build_inventory_query, build_single_filter_clause
from .search import apply_client_side_filters, apply_field_highlighting, apply_search_filter, parse_search_terms
from .service import PartsService

__all__ = [
    "DEFAULT_FIELD_CONFIG",
    "Condition",
    "FieldConfig",
    "InventoryQuery",
    "PartsService",
    "apply_client_side_filters",
    "apply_field_highlighting",
    "apply_search_filter",
    "build_field_filters",
    "build_inventory_query",
    "build_single_filter_clause",
    "collect_field_params",
    "group_and_process_parts",
    "has_field_values",
    "is_display_field",
    "is_general_inventory",
    "normalize_conditions",
    "parse_search_terms",
    "project_ref",
]
