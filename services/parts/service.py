"""Parts listing pipeline and instance write forwarding."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from packages.ims_client import DEFAULT_PREFER, ImsGateway, ImsResponse

from .conditions import has_field_values
from .fields import DEFAULT_FIELD_CONFIG, FieldConfig
from .grouping import group_and_process_parts
from .query import build_inventory_query, escape_literal
from .search import apply_client_side_filters, apply_field_highlighting, apply_search_filter


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class PartsService:
    """Run the inventory instance search pipeline against the IMS backend."""

    def __init__(
        self,
        client: ImsGateway,
        *,
        config: FieldConfig = DEFAULT_FIELD_CONFIG,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._config = config
        self._logger = logger or logging.getLogger("procureflow.parts")

    def list_parts(
        self,
        token: str,
        field_params: Mapping[str, Any],
        *,
        search: Optional[str] = None,
        logical_operator: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Compile, fetch, group, then search or highlight and filter display fields."""

        started = time.perf_counter()
        search_text = (search or "").strip()
        query = build_inventory_query(field_params, search_text, logical_operator, self._config)

        fetch_started = time.perf_counter()
        records = self._client.fetch_values(self._config.entity, token=token, params=query.to_params())
        fetch_ms = _elapsed_ms(fetch_started)

        group_started = time.perf_counter()
        results = group_and_process_parts(records, self._config)
        group_ms = _elapsed_ms(group_started)

        search_ms = 0.0
        has_field_params = any(has_field_values(value) for value in field_params.values())
        if search_text:
            search_started = time.perf_counter()
            results = apply_search_filter(results, search_text, self._config)
            search_ms = _elapsed_ms(search_started)
        elif has_field_params:
            results = apply_field_highlighting(results, field_params, self._config)

        results = apply_client_side_filters(results, field_params, self._config)

        if not search_text and not has_field_params:
            results = results[: self._config.max_unfiltered_results]

        self._logger.info(
            "Parts query: %d rows fetched, %d returned (fetch %.0fms, grouping %.0fms, search %.0fms, total %.0fms)",
            len(records),
            len(results),
            fetch_ms,
            group_ms,
            search_ms,
            _elapsed_ms(started),
        )
        return results

    def list_parts_client_side(self, token: str, *, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """Fetch every inventoried instance and filter by keywords locally."""

        query = build_inventory_query({}, search, None, self._config, cap_unfiltered=False)
        records = self._client.fetch_values(self._config.entity, token=token, params=query.to_params())
        results = group_and_process_parts(records, self._config)
        if (search or "").strip():
            results = apply_search_filter(results, search, self._config)
        self._logger.info("Client-side parts query: %d rows fetched, %d returned", len(records), len(results))
        return results

    def list_bulk_order_parts(self, token: str) -> List[Dict[str, Any]]:
        params = {
            "$filter": "bulk_order eq true",
            "$select": ",".join(self._config.select_fields),
            "$expand": ",".join(self._config.expand_fields),
        }
        records = self._client.fetch_values(self._config.entity, token=token, params=params)
        return group_and_process_parts(records, self._config)

    def create_inventory(
        self,
        token: Optional[str],
        payload: Mapping[str, Any],
        *,
        prefer: Optional[str] = None,
    ) -> ImsResponse:
        self._logger.info("Forwarding new inventory item to IMS")
        return self._client.send(
            "POST", "m_Inventory", token=token, payload=payload, prefer=prefer or DEFAULT_PREFER
        )

    def update_instance(
        self,
        instance_id: str,
        token: Optional[str],
        changes: Mapping[str, Any],
        *,
        prefer: Optional[str] = None,
    ) -> ImsResponse:
        entity = f"{self._config.entity}('{escape_literal(instance_id)}')"
        self._logger.info("Updating %s with fields %s", entity, sorted(changes))
        return self._client.send(
            "PATCH",
            entity,
            token=token,
            payload=changes,
            prefer=prefer or DEFAULT_PREFER,
            headers={"If-Match": "*"},
        )


__all__ = ["PartsService"]
