"""Configuration for procurement request handling."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_ALLOWED_MIME_TYPES: Tuple[str, ...] = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/jpeg",
    "image/png",
)


def _string_tuple(raw: object) -> Tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(entry).strip() for entry in raw if str(entry).strip())


@dataclass
class UploadConfig:
    """Limits applied to procurement attachments."""

    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    allowed_mime_types: Tuple[str, ...] = DEFAULT_ALLOWED_MIME_TYPES

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "UploadConfig":
        if not data:
            return cls()
        raw_max = data.get("max_bytes", DEFAULT_MAX_UPLOAD_BYTES)
        try:
            max_bytes = int(raw_max)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            max_bytes = DEFAULT_MAX_UPLOAD_BYTES
        if max_bytes <= 0:
            max_bytes = DEFAULT_MAX_UPLOAD_BYTES
        mime_types = _string_tuple(data.get("allowed_mime_types")) or DEFAULT_ALLOWED_MIME_TYPES
        return cls(max_bytes=max_bytes, allowed_mime_types=mime_types)


@dataclass
class ProcurementConfig:
    """Reviewer list and attachment limits for procurement requests."""

    reviewers: Tuple[str, ...] = ()
    default_reviewer: Optional[str] = None
    uploads: UploadConfig = field(default_factory=UploadConfig)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "ProcurementConfig":
        if not data:
            return cls()
        reviewers = _string_tuple(data.get("reviewers"))
        raw_default = data.get("default_reviewer")
        default_reviewer = str(raw_default).strip() if raw_default not in (None, "") else None
        uploads_data = data.get("uploads")
        uploads = UploadConfig.from_mapping(uploads_data if isinstance(uploads_data, Mapping) else None)
        return cls(reviewers=reviewers, default_reviewer=default_reviewer, uploads=uploads)

    def fallback_reviewer(self) -> Optional[str]:
        if self.default_reviewer and (not self.reviewers or self.default_reviewer in self.reviewers):
            return self.default_reviewer
        return self.reviewers[0] if self.reviewers else self.default_reviewer

    def is_valid_reviewer(self, name: object) -> bool:
        if not isinstance(name, str) or not name:
            return False
        if not self.reviewers:
            return True
        return name in self.reviewers


__all__ = ["DEFAULT_ALLOWED_MIME_TYPES", "DEFAULT_MAX_UPLOAD_BYTES", "ProcurementConfig", "UploadConfig"]
