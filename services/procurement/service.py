"""Procurement request reads and writes against the IMS backend."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from packages.ims_client import DEFAULT_PREFER, ImsGateway, ImsResponse

from .attachments import Attachment, validate_attachment
from .config import ProcurementConfig
from .lookups import PROJECT_ENTITY, PROJECT_SELECT, SUPPLIER_ENTITY, SUPPLIER_SELECT, map_projects, map_suppliers
from .orders import (
    ORDERS_ENTITY,
    WORKFLOW_ACTIVITY_ENTITY,
    WORKFLOW_PROCESS_ENTITY,
    build_orders_params,
    equality_params,
    most_recent,
    total_count,
)
from .payload import build_file_payload, build_procurement_payload

FILES_ENTITY = "m_Procurement_Request_Files"


class ProcurementService:
    """Orders, workflow lookups, pick lists and request submission."""

    def __init__(
        self,
        client: ImsGateway,
        *,
        config: Optional[ProcurementConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._config = config or ProcurementConfig()
        self._logger = logger or logging.getLogger("procureflow.procurement")

    def list_orders(self, token: str, *, search: Optional[str] = None, field: Optional[str] = None) -> Dict[str, Any]:
        payload = self._client.fetch(ORDERS_ENTITY, token=token, params=build_orders_params(search, field))
        orders = payload.get("value") or []
        return {"orders": orders, "totalCount": total_count(payload), "imsRaw": payload}

    def latest_workflow_process(self, token: str, order_item_number: Optional[str]) -> Optional[Mapping[str, Any]]:
        self._logger.info("Fetching workflow process for order %s", order_item_number)
        entries = self._client.fetch_values(
            WORKFLOW_PROCESS_ENTITY, token=token, params=equality_params("keyed_name", order_item_number)
        )
        return most_recent(entries)

    def latest_workflow_activity(self, token: str, workflow_process_id: Optional[str]) -> Optional[Mapping[str, Any]]:
        self._logger.info("Fetching workflow activities for process %s", workflow_process_id)
        entries = self._client.fetch_values(
            WORKFLOW_ACTIVITY_ENTITY, token=token, params=equality_params("source_id", workflow_process_id)
        )
        return most_recent(entries)

    def list_projects(self, token: str) -> List[Dict[str, Any]]:
        entries = self._client.fetch_values(PROJECT_ENTITY, token=token, params={"$select": PROJECT_SELECT})
        return map_projects(entries)

    def list_suppliers(self, token: str) -> List[Dict[str, Any]]:
        entries = self._client.fetch_values(SUPPLIER_ENTITY, token=token, params={"$select": SUPPLIER_SELECT})
        return map_suppliers(entries)

    def create_request(
        self,
        token: str,
        body: Mapping[str, Any],
        *,
        attachment: Optional[Attachment] = None,
        prefer: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ImsResponse:
        """Validate the optional quote, map the form and forward it.

        Raises ``AttachmentError`` when the quote violates the upload limits.
        """

        if attachment is not None:
            validate_attachment(attachment, self._config.uploads)
            self._logger.info("Procurement request quote attached: %s", attachment.describe())
        payload = build_procurement_payload(body, config=self._config, attachment=attachment, now=now)
        self._logger.info(
            "Submitting procurement request for project %s supplier %s",
            payload.get("m_project"),
            payload.get("m_supplier"),
        )
        response = self._client.send("POST", ORDERS_ENTITY, token=token, payload=payload, prefer=prefer or DEFAULT_PREFER)
        self._logger.info("IMS procurement request response status %s", response.status_code)
        return response

    def upload_file(
        self,
        token: str,
        source_id: str,
        attachment: Attachment,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> ImsResponse:
        validate_attachment(attachment, self._config.uploads)
        self._logger.info("Uploading file for procurement request %s: %s", source_id, attachment.describe())
        payload = build_file_payload(source_id, metadata or {}, attachment)
        return self._client.send("POST", FILES_ENTITY, token=token, payload=payload, prefer=prefer or DEFAULT_PREFER)


__all__ = ["FILES_ENTITY", "ProcurementService"]
