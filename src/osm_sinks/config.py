"""Typed configuration for the export sinks."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .env import load_env
from .errors import ConfigurationError

load_env()


class ColumnDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    type: str


class TableDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "geometry"
    columns: List[ColumnDefinition] = Field(default_factory=list)


class GeneralizedTableDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    source: str
    tolerance: float
    sql_filter: Optional[str] = None


class MappingConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tables: Dict[str, TableDefinition] = Field(default_factory=dict)
    generalized_tables: Dict[str, GeneralizedTableDefinition] = Field(default_factory=dict)

    @field_validator("generalized_tables", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or {}


class SinkSettings(BaseModel):
    connection: str
    srid: int = 3857
    import_schema: str = "import"
    production_schema: str = "production"
    backup_schema: str = "backup"

    @field_validator("connection")
    @classmethod
    def _require_connection(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("connection string not specified")
        return value.strip()


class ExportConfig(BaseModel):
    sink: SinkSettings
    mapping: MappingConfig


class ConfigLoader:
    """Loads the YAML export configuration and validates it with Pydantic."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.config_path = Path(path or os.getenv("OSM_SINKS_CONFIG", "config/export.yaml"))
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        self.model = self._parse_yaml()

    def _parse_yaml(self) -> ExportConfig:
        raw: dict
        with self.config_path.open("r", encoding="utf-8") as fp:
            raw = yaml.safe_load(fp) or {}
        connection = os.getenv("OSM_SINKS_CONNECTION")
        if connection:
            raw.setdefault("sink", {})["connection"] = connection
        try:
            return ExportConfig(**raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    @property
    def sink(self) -> SinkSettings:
        return self.model.sink

    @property
    def mapping(self) -> MappingConfig:
        return self.model.mapping


__all__ = [
    "ColumnDefinition",
    "TableDefinition",
    "GeneralizedTableDefinition",
    "MappingConfig",
    "SinkSettings",
    "ExportConfig",
    "ConfigLoader",
]
