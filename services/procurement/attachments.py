"""Attachment validation and encoding for procurement uploads."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping

from .config import UploadConfig


class AttachmentError(ValueError):
    """Raised when an uploaded file violates the configured limits."""


@dataclass
class Attachment:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_odata(self) -> Dict[str, str]:
        return {
            "file_name": self.filename,
            "file_content": base64.b64encode(self.data).decode("ascii"),
            "file_type": self.content_type,
        }

    def describe(self) -> Dict[str, object]:
        """Loggable summary without the file content."""

        return {"file_name": self.filename, "file_type": self.content_type, "file_size": self.size}


def validate_attachment(attachment: Attachment, config: UploadConfig) -> Attachment:
    if attachment.content_type not in config.allowed_mime_types:
        raise AttachmentError(
            f"File type {attachment.content_type} not allowed. "
            f"Allowed types: {', '.join(config.allowed_mime_types)}"
        )
    if attachment.size > config.max_bytes:
        raise AttachmentError(
            f"File {attachment.filename} exceeds the maximum size of {config.max_bytes} bytes"
        )
    return attachment


def default_request_attachment(fields: Mapping[str, Any], *, now: datetime) -> Attachment:
    """Summary text file attached to requests submitted without a quote."""

    lines = [
        f"Procurement Request - {now.isoformat()}",
        "",
        "This is an automatically generated file for procurement requests submitted without attachments.",
        "",
        "Request Details:",
        f"- Project: {fields.get('m_project') or 'N/A'}",
        f"- Supplier: {fields.get('m_supplier') or 'N/A'}",
        f"- PO Owner: {fields.get('m_po_owner') or 'N/A'}",
        f"- Submitted: {now.strftime('%Y-%m-%d %H:%M:%S')}",
        "",
        "No additional attachments were provided with this request.",
        "",
    ]
    return Attachment(
        filename=f"procurement_request_{int(now.timestamp() * 1000)}.txt",
        content_type="text/plain",
        data="\n".join(lines).encode("utf-8"),
    )


__all__ = ["Attachment", "AttachmentError", "default_request_attachment", "validate_attachment"]
