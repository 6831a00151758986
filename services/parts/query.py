"""Translate client filter parameters into an OData query for inventory instances."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .conditions import DOES_NOT_CONTAIN, IS, IS_NOT, normalize_conditions, normalize_operator
from .fields import DEFAULT_FIELD_CONFIG, FieldConfig, is_display_field

LOGGER = logging.getLogger("procureflow.parts.query")

_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class InventoryQuery:
    """Compiled backend query for the inventory instance entity."""

    filter: str
    select: str
    expand: str
    top: Optional[int] = None
    has_field_filters: bool = False

    def to_params(self) -> Dict[str, str]:
        params = {"$filter": self.filter, "$select": self.select, "$expand": self.expand}
        if self.top is not None:
            params["$top"] = str(self.top)
        return params


def parse_number(value: str) -> Optional[float]:
    """Parse the leading numeric portion of ``value`` (``"12 pcs"`` -> 12.0)."""

    match = _NUMBER_RE.match(value)
    if not match:
        return None
    number = float(match.group(0))
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def format_number(number: float) -> str:
    if number.is_integer():
        return str(int(number))
    return repr(number)


def escape_literal(value: str) -> str:
    return value.replace("'", "''")


def logical_keyword(logical_operator: Optional[str]) -> str:
    return "or" if (logical_operator or "").strip().lower() == "or" else "and"


def build_single_filter_clause(
    field: str,
    operator: str,
    value: str,
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> Optional[str]:
    """Build one OData clause, or ``None`` when the condition cannot be expressed.

    Numeric fields only support equality, so ``contains`` degrades to ``eq``
    and ``does not contain`` to ``ne``.
    """

    backend_field = config.backend_name(field)
    operator = normalize_operator(operator)
    if config.is_numeric(field):
        number = parse_number(value)
        if number is None:
            return None
        comparison = "ne" if operator in (IS_NOT, DOES_NOT_CONTAIN) else "eq"
        return f"{backend_field} {comparison} {format_number(number)}"

    literal = escape_literal(value)
    if operator == DOES_NOT_CONTAIN:
        return f"not contains({backend_field}, '{literal}')"
    if operator == IS:
        return f"{backend_field} eq '{literal}'"
    if operator == IS_NOT:
        return f"{backend_field} ne '{literal}'"
    return f"contains({backend_field}, '{literal}')"


def build_field_filters(
    field_params: Mapping[str, Any],
    logical_operator: Optional[str] = "and",
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> List[str]:
    """Return one clause per field that produced output, in parameter order.

    Display-name fields (``field@annotation``) are never sent to the backend.
    """

    keyword = logical_keyword(logical_operator)
    filters: List[str] = []
    for field, field_value in field_params.items():
        if is_display_field(field):
            continue
        clauses = [
            clause
            for clause in (
                build_single_filter_clause(field, condition.operator, condition.value, config)
                for condition in normalize_conditions(field_value)
            )
            if clause is not None
        ]
        if not clauses:
            continue
        if len(clauses) == 1:
            filters.append(clauses[0])
        else:
            LOGGER.debug("Combining %d conditions for field %s with %s", len(clauses), field, keyword)
            filters.append("(" + f" {keyword} ".join(clauses) + ")")
    return filters


def build_filter_expression(
    field_filters: List[str],
    logical_operator: Optional[str] = "and",
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> str:
    """AND the classification restriction with the combined field clauses."""

    clauses = [f"classification eq '{escape_literal(config.classification)}'"]
    if len(field_filters) == 1:
        clauses.append(field_filters[0])
    elif field_filters:
        keyword = logical_keyword(logical_operator)
        clauses.append("(" + f" {keyword} ".join(field_filters) + ")")
    return " and ".join(clauses)


def build_inventory_query(
    field_params: Mapping[str, Any],
    search: Optional[str] = None,
    logical_operator: Optional[str] = "and",
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
    *,
    cap_unfiltered: bool = True,
) -> InventoryQuery:
    """Compile request parameters into an ``InventoryQuery``.

    When nothing narrows the result set (no search text, no backend field
    filter, no display-field filter) the query is capped at
    ``config.max_unfiltered_results`` rows.
    """

    field_filters = build_field_filters(field_params, logical_operator, config)
    has_client_filters = any(
        is_display_field(field) and normalize_conditions(value)
        for field, value in field_params.items()
    )
    has_search = bool((search or "").strip())
    top: Optional[int] = None
    if cap_unfiltered and not (has_search or field_filters or has_client_filters):
        top = config.max_unfiltered_results
    return InventoryQuery(
        filter=build_filter_expression(field_filters, logical_operator, config),
        select=",".join(config.select_fields),
        expand=",".join(config.expand_fields),
        top=top,
        has_field_filters=bool(field_filters),
    )


__all__ = [
    "InventoryQuery",
    "build_field_filters",
    "build_filter_expression",
    "build_inventory_query",
    "build_single_filter_clause",
    "escape_literal",
    "format_number",
    "logical_keyword",
    "parse_number",
]
