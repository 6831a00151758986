"""Configuration helpers for the procurement web API."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, MutableMapping, Optional, Tuple

import yaml

from services.parts.fields import DEFAULT_FIELD_CONFIG, FieldConfig
from services.procurement.config import ProcurementConfig

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")
DEFAULT_ALLOWED_ORIGINS: Tuple[str, ...] = ("http://localhost:5173",)


@dataclass
class PartsSettings:
    """Tunables for the parts search pipeline."""

    max_unfiltered_results: int = DEFAULT_FIELD_CONFIG.max_unfiltered_results

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, object]]) -> "PartsSettings":
        if not data:
            return cls()
        raw_limit = data.get("max_unfiltered_results", cls.max_unfiltered_results)
        try:
            limit = int(raw_limit)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            limit = cls.max_unfiltered_results
        if limit <= 0:
            limit = cls.max_unfiltered_results
        return cls(max_unfiltered_results=limit)

    def field_config(self) -> FieldConfig:
        return replace(DEFAULT_FIELD_CONFIG, max_unfiltered_results=self.max_unfiltered_results)


@dataclass
class AppConfig:
    """Top-level configuration for the web API."""

    log_level: str = "INFO"
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    parts: PartsSettings = field(default_factory=PartsSettings)
    procurement: ProcurementConfig = field(default_factory=ProcurementConfig)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "AppConfig":
        log_level_value = data.get("log_level", cls.log_level)
        log_level = str(log_level_value).strip() or cls.log_level
        cors = _get_mapping(data, "cors")
        raw_origins = cors.get("allowed_origins")
        if isinstance(raw_origins, str):
            raw_origins = [raw_origins]
        origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
        if isinstance(raw_origins, (list, tuple)):
            origins = tuple(str(entry).strip() for entry in raw_origins if str(entry).strip()) or DEFAULT_ALLOWED_ORIGINS
        procurement_data = _get_mapping(data, "procurement")
        uploads = _get_mapping(data, "uploads")
        if uploads:
            procurement_data.setdefault("uploads", uploads)
        return cls(
            log_level=log_level.upper(),
            allowed_origins=origins,
            parts=PartsSettings.from_mapping(_get_mapping(data, "parts")),
            procurement=ProcurementConfig.from_mapping(procurement_data),
        )


def load_config(path: Path | None = None) -> AppConfig:
    """Load web configuration from YAML, falling back to defaults when absent."""

    config_path = path or Path(os.getenv("PROCUREFLOW_CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        return AppConfig()
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Web configuration must be a mapping")
    return AppConfig.from_mapping(data)


def _get_mapping(data: Mapping[str, object], key: str) -> MutableMapping[str, object]:
    value = data.get(key)
    if isinstance(value, Mapping):
        return dict(value)
    return {}


__all__ = ["AppConfig", "DEFAULT_CONFIG_PATH", "PartsSettings", "load_config"]
