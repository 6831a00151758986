"""Map procurement form submissions onto the IMS ``m_Procurement_Request`` schema."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .attachments import Attachment, default_request_attachment
from .config import ProcurementConfig

LOGGER = logging.getLogger("procureflow.procurement.payload")

REQUIRED_FIELDS = ("m_project", "m_supplier")
NO_FID_REASON = "No FID required for this purchase type"
NO_JUSTIFICATION = "No business justification provided."

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

INVOICE_APPROVERS: Dict[str, int] = {
    "0": 0,
    "PO Owner": 0,
    "1": 1,
    "Procurement team": 1,
    "2": 2,
    "Other": 2,
}
OTHER_INVOICE_APPROVER = 2

BOOLEAN_FIELDS = (
    ("capex", "m_is_capex"),
    ("fid", "m_is_fid"),
    ("reviewedByLabTpm", "m_is_lab_tpm"),
    ("deliverToMsftPoc", "m_is_msft_poc"),
    ("urgent", "m_is_po_urgent"),
)

JUSTIFICATION_FIELDS = (
    "businessJustificationProject",
    "businessJustificationLocation",
    "businessJustificationWhat",
    "businessJustificationWhy",
    "businessJustificationImpact",
    "businessJustificationNotes",
)


def looks_like_uuid(value: object) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def _truthy(value: object) -> bool:
    return value is True or value == "true"


def _is_false(value: object) -> bool:
    return value is False or value == "false"


def validate_request_fields(body: Mapping[str, Any]) -> Optional[str]:
    """Return an error message when required fields are missing, else ``None``."""

    missing = [name for name in REQUIRED_FIELDS if not body.get(name)]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    if not body.get("poOwnerAlias") and not body.get("m_po_owner"):
        return "Missing required field: PO Owner Alias"
    return None


def _map_invoice_approver(fields: Dict[str, Any]) -> None:
    raw = fields.pop("invoiceApprover", None)
    display = fields.pop("invoiceApproverDisplay", None)
    if raw in (None, ""):
        fields["m_invoice_approver"] = 0
        return
    approver = INVOICE_APPROVERS.get(str(raw))
    if approver is None:
        LOGGER.warning("Unknown invoice approver %r; defaulting to PO Owner", raw)
        approver = 0
    fields["m_invoice_approver"] = approver
    if approver == OTHER_INVOICE_APPROVER and display:
        fields["m_invoice_approver_other"] = display


def _map_reviewer(fields: Dict[str, Any], config: ProcurementConfig) -> None:
    reviewer = fields.pop("reviewer", None)
    fields.pop("reviewerName", None)
    if reviewer:
        if config.is_valid_reviewer(reviewer):
            fields["m_reviewer"] = reviewer
        else:
            LOGGER.warning("Invalid reviewer %r; using default reviewer", reviewer)
            fields["m_reviewer"] = config.fallback_reviewer()
    if not config.is_valid_reviewer(fields.get("m_reviewer")):
        fields["m_reviewer"] = config.fallback_reviewer()
    if fields.get("m_reviewer") is None:
        fields.pop("m_reviewer")


def _map_references(fields: Dict[str, Any]) -> None:
    project_id = fields.pop("projectId", None)
    project = fields.pop("project", None)
    if project_id:
        fields["m_project"] = project_id
    elif project:
        fields["m_project"] = project
    supplier = fields.pop("supplier", None)
    if supplier:
        fields["m_supplier"] = supplier
    title = fields.pop("title", None)
    if title:
        fields["m_title"] = title


def _map_booleans(fields: Dict[str, Any]) -> None:
    for source, target in BOOLEAN_FIELDS:
        if source in fields:
            fields[target] = _truthy(fields.pop(source))

    if _is_false(fields.get("m_is_fid")):
        reason = fields.get("m_why_not_forecasted")
        fields["m_why_not_forecasted"] = str(reason).strip() if reason else NO_FID_REASON
        fields.pop("m_fid_code", None)
    elif _truthy(fields.get("m_is_fid")):
        fields.pop("m_why_not_forecasted", None)


def _detail_info(fields: Mapping[str, Any]) -> str:
    parts = [str(fields[name]) for name in JUSTIFICATION_FIELDS if fields.get(name)]
    if not parts:
        return NO_JUSTIFICATION
    return ". ".join(parts) + "."


def build_procurement_payload(
    body: Mapping[str, Any],
    *,
    config: ProcurementConfig,
    attachment: Optional[Attachment] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Return the OData payload for a new procurement request.

    The request always deep-inserts exactly one ``m_Procurement_Request_Files``
    entry: the uploaded quote, or a generated summary when none was sent.
    """

    fields: Dict[str, Any] = dict(body)
    fields.pop("attachments", None)

    _map_invoice_approver(fields)

    po_owner_alias = fields.pop("poOwnerAlias", None)
    if po_owner_alias:
        fields["m_po_owner"] = po_owner_alias
    elif fields.get("poOwnerId") and not fields.get("m_po_owner"):
        LOGGER.warning("poOwnerId supplied without poOwnerAlias; the owner may be stored as an id")

    _map_reviewer(fields, config)
    _map_references(fields)
    _map_booleans(fields)

    if not fields.get("m_deliverto_third_party"):
        fields["m_deliverto_third_party"] = "No"
    if not fields.get("m_detail_info"):
        fields["m_detail_info"] = _detail_info(fields)

    if looks_like_uuid(fields.get("m_po_owner")):
        LOGGER.warning("m_po_owner contains an id instead of an alias")
        if body.get("poOwnerAlias"):
            fields["m_po_owner"] = body["poOwnerAlias"]

    file_entry = attachment or default_request_attachment(fields, now=now or datetime.now())
    fields["m_Procurement_Request_Files"] = [file_entry.to_odata()]
    return fields


def build_file_payload(
    source_id: str,
    metadata: Mapping[str, Any],
    attachment: Attachment,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = dict(metadata)
    payload["source_id"] = source_id
    payload.update(attachment.to_odata())
    return payload


__all__ = [
    "INVOICE_APPROVERS",
    "NO_FID_REASON",
    "NO_JUSTIFICATION",
    "REQUIRED_FIELDS",
    "build_file_payload",
    "build_procurement_payload",
    "looks_like_uuid",
    "validate_request_fields",
]
