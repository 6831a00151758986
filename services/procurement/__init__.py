"""Procurement requests, order tracking and pick lists."""

from .attachments import Attachment, AttachmentError, default_request_attachment, validate_attachment
from .config import ProcurementConfig, UploadConfig
from .lookups import map_projects, map_suppliers
from .orders import build_orders_params, most_recent, total_count
from .payload import build_file_payload, build_procurement_payload, validate_request_fields
from .service import ProcurementService

__all__ = [
    "Attachment",
    "AttachmentError",
    "ProcurementConfig",
    "ProcurementService",
    "UploadConfig",
    "build_file_payload",
    "build_orders_params",
    "build_procurement_payload",
    "default_request_attachment",
    "map_projects",
    "map_suppliers",
    "most_recent",
    "total_count",
    "validate_attachment",
    "validate_request_fields",
]
