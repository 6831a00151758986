"""Normalisation of per-field filter conditions.

Filter values arrive in several shapes: a structured ``{"operator", "value"}``
object (possibly JSON-encoded in the query string), a bare legacy string with
an optional ``!``/``-`` negation prefix, or a list mixing both. Everything
downstream works on the canonical ``Condition`` sequence produced here.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

CONTAINS = "contains"
DOES_NOT_CONTAIN = "does not contain"
IS = "is"
IS_NOT = "is not"
OPERATORS: Tuple[str, ...] = (CONTAINS, DOES_NOT_CONTAIN, IS, IS_NOT)
NEGATION_PREFIXES: Tuple[str, ...] = ("!", "-")

# Query parameters consumed by the route itself rather than naming a field.
RESERVED_PARAMS: frozenset[str] = frozenset(
    {"search", "classification", "$top", "filterType", "logicalOperator"}
)

FieldValue = Union[str, Mapping[str, Any], Sequence[Union[str, Mapping[str, Any]]]]


@dataclass(frozen=True)
class Condition:
    """A single ``operator``/``value`` filter on one field."""

    operator: str
    value: str


def normalize_operator(operator: object) -> str:
    """Map spelling variants (``does-not-contain``, ``IS NOT``) to a canonical operator."""

    text = " ".join(str(operator or "").replace("-", " ").replace("_", " ").lower().split())
    if text in OPERATORS:
        return text
    return CONTAINS


def is_structured(candidate: object) -> bool:
    return (
        isinstance(candidate, Mapping)
        and bool(candidate.get("operator"))
        and bool(candidate.get("value"))
    )


def _legacy_condition(raw: object) -> Condition:
    if isinstance(raw, Mapping):
        text = str(raw.get("value") or "")
    else:
        text = str(raw or "")
    if text.startswith(NEGATION_PREFIXES):
        return Condition(DOES_NOT_CONTAIN, text[1:])
    return Condition(CONTAINS, text)


def _condition_from(raw: object) -> Condition:
    if is_structured(raw):
        return Condition(normalize_operator(raw["operator"]), str(raw["value"]))  # type: ignore[index]
    return _legacy_condition(raw)


def normalize_conditions(field_value: object) -> List[Condition]:
    """Return the ordered, non-empty conditions carried by ``field_value``.

    Values are trimmed; conditions whose value is empty after trimming are
    dropped.
    """

    if not field_value:
        return []
    if isinstance(field_value, (list, tuple)):
        raw_conditions = [_condition_from(item) for item in field_value]
    else:
        raw_conditions = [_condition_from(field_value)]
    conditions: List[Condition] = []
    for condition in raw_conditions:
        value = condition.value.strip()
        if value:
            conditions.append(Condition(condition.operator, value))
    return conditions


def has_field_values(field_value: object) -> bool:
    return bool(normalize_conditions(field_value))


def decode_field_param(raw: object) -> Any:
    """Decode a JSON-encoded condition, keeping the original string otherwise."""

    if isinstance(raw, (list, tuple)):
        return [decode_field_param(item) for item in raw]
    if not isinstance(raw, str):
        return raw
    try:
        parsed = json.loads(raw)
    except ValueError:
        return raw
    if is_structured(parsed):
        return dict(parsed)
    return raw


def collect_field_params(items: Iterable[Tuple[str, str]]) -> Dict[str, Any]:
    """Group raw query-string pairs into a field -> decoded value mapping.

    Repeated keys (``field=a&field=b`` or ``field[]=a``) become lists. Keys in
    ``RESERVED_PARAMS`` are skipped.
    """

    grouped: Dict[str, List[str]] = {}
    list_keys: set[str] = set()
    for key, value in items:
        name = key
        if name.endswith("[]"):
            name = name[:-2]
            list_keys.add(name)
        if name in RESERVED_PARAMS:
            continue
        grouped.setdefault(name, []).append(value)
    params: Dict[str, Any] = {}
    for name, values in grouped.items():
        if len(values) == 1 and name not in list_keys:
            params[name] = decode_field_param(values[0])
        else:
            params[name] = decode_field_param(values)
    return params


__all__ = [
    "CONTAINS",
    "DOES_NOT_CONTAIN",
    "IS",
    "IS_NOT",
    "NEGATION_PREFIXES",
    "OPERATORS",
    "RESERVED_PARAMS",
    "Condition",
    "collect_field_params",
    "decode_field_param",
    "has_field_values",
    "is_structured",
    "normalize_conditions",
    "normalize_operator",
]
