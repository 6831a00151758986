"""Keyword search, match highlighting and display-field filtering for parts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .conditions import DOES_NOT_CONTAIN, IS, IS_NOT, Condition, NEGATION_PREFIXES, normalize_conditions
from .fields import DEFAULT_FIELD_CONFIG, FieldConfig, canonical_field_name, is_display_field

SEARCH_SEPARATOR = "\x1f"

Matches = Dict[str, List[str]]


@dataclass(frozen=True)
class SearchTerms:
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.include or self.exclude)


def parse_search_terms(search: Optional[str]) -> SearchTerms:
    """Split ``"foo, !bar, -baz"`` into include and exclude keywords (lower-cased)."""

    include: List[str] = []
    exclude: List[str] = []
    for term in (search or "").split(","):
        term = term.strip()
        if not term:
            continue
        if term.startswith(NEGATION_PREFIXES):
            keyword = term[1:].strip().lower()
            if keyword:
                exclude.append(keyword)
        else:
            include.append(term.lower())
    return SearchTerms(tuple(include), tuple(exclude))


def searchable_text(record: Mapping[str, Any], config: FieldConfig = DEFAULT_FIELD_CONFIG) -> str:
    values = (config.field_value(record, field) for field in config.search_fields)
    return SEARCH_SEPARATOR.join(value for value in values if value).lower()


def _add_match(matches: Matches, key: str, keyword: str) -> None:
    keywords = matches.setdefault(key, [])
    if keyword not in keywords:
        keywords.append(keyword)


def keyword_matches(
    record: Mapping[str, Any],
    keywords: Sequence[str],
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> Matches:
    """Map each searchable field to the keywords found in its own value."""

    matches: Matches = {}
    for field in config.search_fields:
        value = config.field_value(record, field)
        if not value:
            continue
        lowered = value.lower()
        for keyword in keywords:
            if keyword in lowered:
                _add_match(matches, field, keyword)
    return matches


def apply_search_filter(
    results: Sequence[Mapping[str, Any]],
    search: Optional[str],
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> List[Dict[str, Any]]:
    """Keep records containing every include keyword and no exclude keyword.

    Surviving records gain a ``_matches`` mapping for highlighting. Matching is
    decided once on the joined searchable text; the per-field pass only
    annotates.
    """

    terms = parse_search_terms(search)
    filtered: List[Dict[str, Any]] = []
    for record in results:
        text = searchable_text(record, config)
        if not all(keyword in text for keyword in terms.include):
            continue
        if any(keyword in text for keyword in terms.exclude):
            continue
        entry = dict(record)
        entry["_matches"] = keyword_matches(record, terms.include, config)
        filtered.append(entry)
    return filtered


def apply_field_highlighting(
    results: Sequence[Mapping[str, Any]],
    field_params: Mapping[str, Any],
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> List[Dict[str, Any]]:
    """Record which filter values occur in each record's fields.

    Every condition counts regardless of operator: the highlight shows what
    was searched for.
    """

    parsed: List[Tuple[str, str, List[str]]] = []
    for field, field_value in field_params.items():
        keywords = [condition.value.lower() for condition in normalize_conditions(field_value)]
        if keywords:
            parsed.append((field, config.highlight_key(field), keywords))

    highlighted: List[Dict[str, Any]] = []
    for record in results:
        matches: Matches = {}
        for field, key, keywords in parsed:
            value = config.field_value(record, field)
            if not value:
                continue
            lowered = value.lower()
            for keyword in keywords:
                if keyword in lowered:
                    _add_match(matches, key, keyword)
        entry = dict(record)
        entry["_matches"] = matches
        highlighted.append(entry)
    return highlighted


def condition_passes(condition: Condition, value: Optional[str]) -> bool:
    """Evaluate one condition against a record value (``None`` when absent)."""

    if value is None:
        return condition.operator in (DOES_NOT_CONTAIN, IS_NOT)
    lowered = value.lower()
    expected = condition.value.lower()
    if condition.operator == DOES_NOT_CONTAIN:
        return expected not in lowered
    if condition.operator == IS:
        return lowered == expected
    if condition.operator == IS_NOT:
        return lowered != expected
    return expected in lowered


def apply_client_side_filters(
    results: Sequence[Mapping[str, Any]],
    field_params: Mapping[str, Any],
    config: FieldConfig = DEFAULT_FIELD_CONFIG,
) -> List[Mapping[str, Any]]:
    """Filter on display-name fields, which the backend cannot query."""

    display_filters = [
        (canonical_field_name(field), normalize_conditions(value))
        for field, value in field_params.items()
        if is_display_field(field)
    ]
    display_filters = [(field, conditions) for field, conditions in display_filters if conditions]
    if not display_filters:
        return list(results)

    kept: List[Mapping[str, Any]] = []
    for record in results:
        if all(
            condition_passes(condition, config.field_value(record, field))
            for field, conditions in display_filters
            for condition in conditions
        ):
            kept.append(record)
    return kept


__all__ = [
    "SearchTerms",
    "apply_client_side_filters",
    "apply_field_highlighting",
    "apply_search_filter",
    "condition_passes",
    "keyword_matches",
    "parse_search_terms",
    "searchable_text",
]
