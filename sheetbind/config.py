"""YAML configuration loading for read/write settings."""

# Module responsibilities:
# - Parse a YAML file with optional ``read`` and ``write`` sections.
# - Validate the payload with pydantic and convert it into ReadConfig / WriteConfig.
# - Report every failure as ConfigError.

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .record import DEFAULT_TAG
from .schema import ReadConfig, UnmarshalErrorHandling, WriteConfig
from .utils.log import get_logger

logger = get_logger("config")


class ReadConfigModel(BaseModel):
    """``read`` section of a configuration file."""

    model_config = ConfigDict(extra="forbid")

    tag_name: str = DEFAULT_TAG
    sheet_name: str = ""
    sheet_index: int = 0
    header_row_index: int = 0
    data_start_row_index: int = 1
    trim_space: bool = False
    fallback_date_formats: List[str] = Field(default_factory=list)
    skip_unknown_columns: bool = True
    skip_unknown_types: bool = False
    unmarshal_error_handling: UnmarshalErrorHandling = UnmarshalErrorHandling.ABORT
    max_unmarshal_errors: int = Field(default=10, ge=0)

    def to_config(self) -> ReadConfig:
        return ReadConfig(**self.model_dump())


class WriteConfigModel(BaseModel):
    """``write`` section of a configuration file."""

    model_config = ConfigDict(extra="forbid")

    sheet_name: str = "Sheet1"
    tag_name: str = DEFAULT_TAG
    ignore_fields_without_tag: bool = False

    def to_config(self) -> WriteConfig:
        return WriteConfig(**self.model_dump())


class SheetbindConfig(BaseModel):
    """Complete configuration file model."""

    model_config = ConfigDict(extra="forbid")

    read: ReadConfigModel = Field(default_factory=ReadConfigModel)
    write: WriteConfigModel = Field(default_factory=WriteConfigModel)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")
    return data


def load_settings(path: str | Path) -> SheetbindConfig:
    """Load and validate a configuration file."""

    config_path = Path(path)
    data = _load_yaml(config_path)
    try:
        settings = SheetbindConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
    logger.info("Configuration loaded", extra={"path": str(config_path), "sections": sorted(data)})
    return settings


def load_config(path: str | Path) -> Tuple[ReadConfig, WriteConfig]:
    """Return the read and write configuration stored in ``path``."""

    settings = load_settings(path)
    return settings.read.to_config(), settings.write.to_config()


def load_read_config(path: str | Path) -> ReadConfig:
    return load_settings(path).read.to_config()


def load_write_config(path: str | Path) -> WriteConfig:
    return load_settings(path).write.to_config()


__all__ = [
    "ReadConfigModel",
    "WriteConfigModel",
    "SheetbindConfig",
    "load_settings",
    "load_config",
    "load_read_config",
    "load_write_config",
]
