"""Table schemas built from the mapping configuration."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .fields import (
    AVRO_ARRAY,
    AVRO_NULL,
    AVRO_RECORD,
    FieldType,
    TagsType,
    resolve_field_type,
)

if TYPE_CHECKING:  # pragma: no cover
    from .config import GeneralizedTableDefinition, TableDefinition

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")

TAGS_RECORD_NAME = "Tags"
TAGS_RECORD_NAMESPACE = "root"
ID_COLUMN = "id"


def sanitize_name(name: str) -> str:
    """Restrict a name to letters, digits and underscores."""
    return _INVALID_NAME_CHARS.sub("_", name)


@dataclass(frozen=True)
class FieldSpec:
    name: str
    logical_type: str
    type: FieldType
    fields: Tuple["FieldSpec", ...] = ()

    @property
    def external_name(self) -> str:
        return sanitize_name(self.name)

    @classmethod
    def from_column(cls, name: str, logical_type: str) -> "FieldSpec":
        field_type = resolve_field_type(logical_type)
        nested: Tuple[FieldSpec, ...] = ()
        if isinstance(field_type, TagsType):
            nested = (
                FieldSpec("key", "string", resolve_field_type("string")),
                FieldSpec("value", "string", resolve_field_type("string")),
            )
        return cls(name, logical_type, field_type, nested)

    def avro_field_schema(self, defined_names: Optional[set] = None) -> dict:
        """Avro field declaration; scalars are nullable unions."""
        if defined_names is None:
            defined_names = set()
        if isinstance(self.type, TagsType):
            full_name = f"{TAGS_RECORD_NAMESPACE}.{TAGS_RECORD_NAME}"
            if full_name in defined_names:
                items: object = full_name
            else:
                defined_names.add(full_name)
                items = {
                    "type": AVRO_RECORD,
                    "name": TAGS_RECORD_NAME,
                    "namespace": TAGS_RECORD_NAMESPACE,
                    "fields": [
                        {"name": nested.external_name, "type": nested.type.avro_type}
                        for nested in self.fields
                    ],
                }
            return {
                "name": self.external_name,
                "type": {"type": AVRO_ARRAY, "items": items},
                "default": [],
            }
        return {
            "name": self.external_name,
            "type": [AVRO_NULL, self.type.avro_type],
            "default": None,
        }


@dataclass(eq=False)
class TableSpec:
    name: str
    dataset: str
    fields: List[FieldSpec]
    geometry_type: str
    srid: int
    generalizations: List["GeneralizedTableSpec"] = field(default_factory=list)

    @classmethod
    def from_definition(
        cls, name: str, definition: "TableDefinition", dataset: str, srid: int
    ) -> "TableSpec":
        """Build a spec; the first unknown column type aborts the whole table."""
        if definition.type == "relation_member":
            geometry_type = "geometry"
        else:
            geometry_type = definition.type
        fields = []
        for column in definition.columns:
            try:
                fields.append(FieldSpec.from_column(column.name, column.type))
            except ConfigurationError as exc:
                raise ConfigurationError(
                    f"creating table spec for {name!r}: {exc}"
                ) from exc
        return cls(
            name=name,
            dataset=dataset,
            fields=fields,
            geometry_type=geometry_type,
            srid=srid,
        )

    @property
    def external_name(self) -> str:
        return sanitize_name(self.name)

    def avro_schema(self) -> dict:
        defined: set = set()
        return {
            "type": AVRO_RECORD,
            "name": self.external_name,
            "fields": [f.avro_field_schema(defined) for f in self.fields],
        }

    def id_column(self) -> str:
        for spec in self.fields:
            if spec.name == ID_COLUMN:
                return spec.external_name
        raise ConfigurationError(f"missing id column in table {self.name!r}")


@dataclass(eq=False)
class GeneralizedTableSpec:
    name: str
    dataset: str
    source_name: str
    tolerance: float
    where: str = ""
    source: Optional[TableSpec] = None
    source_generalized: Optional["GeneralizedTableSpec"] = None
    created: bool = False
    generalizations: List["GeneralizedTableSpec"] = field(default_factory=list)

    @classmethod
    def from_definition(
        cls, name: str, definition: "GeneralizedTableDefinition", dataset: str
    ) -> "GeneralizedTableSpec":
        return cls(
            name=name,
            dataset=dataset,
            source_name=definition.source,
            tolerance=definition.tolerance,
            where=definition.sql_filter or "",
        )

    @property
    def fields(self) -> List[FieldSpec]:
        if self.source is None:
            raise ConfigurationError(f"generalized table {self.name!r} has no resolved source")
        return self.source.fields

    @property
    def direct_source_name(self) -> str:
        if self.source_generalized is not None:
            return self.source_generalized.name
        return self.source.name if self.source is not None else self.source_name

    def id_column(self) -> str:
        if self.source is None:
            raise ConfigurationError(f"generalized table {self.name!r} has no resolved source")
        return self.source.id_column()


def resolve_generalized_sources(
    tables: Mapping[str, TableSpec],
    generalized_tables: Mapping[str, GeneralizedTableSpec],
) -> None:
    """Attach every generalized table to its direct source and its base table.

    Raises ``ConfigurationError`` for a missing source or a dependency cycle.
    """
    for name, table in generalized_tables.items():
        if table.source_name in tables:
            table.source = tables[table.source_name]
        elif table.source_name in generalized_tables:
            table.source_generalized = generalized_tables[table.source_name]
        else:
            raise ConfigurationError(
                f"missing source {table.source_name!r} for generalized table {name!r}"
            )

    pending = [t for t in generalized_tables.values() if t.source is None]
    while pending:
        progressed = False
        for table in pending:
            parent = table.source_generalized
            if parent is not None and parent.source is not None:
                table.source = parent.source
                progressed = True
        pending = [t for t in pending if t.source is None]
        if pending and not progressed:
            names = ", ".join(sorted(t.name for t in pending))
            raise ConfigurationError(f"cyclic generalized table sources: {names}")


def link_generalizations(generalized_tables: Mapping[str, GeneralizedTableSpec]) -> None:
    """Record on each table which generalized tables consume it."""
    for table in generalized_tables.values():
        table.source.generalizations.append(table)
        if table.source_generalized is not None:
            table.source_generalized.generalizations.append(table)


def build_table_specs(
    table_definitions: Mapping[str, "TableDefinition"],
    generalized_definitions: Mapping[str, "GeneralizedTableDefinition"],
    dataset: str,
    srid: int,
) -> Tuple[Dict[str, TableSpec], Dict[str, GeneralizedTableSpec]]:
    tables = {
        name: TableSpec.from_definition(name, definition, dataset, srid)
        for name, definition in table_definitions.items()
    }
    generalized = {
        name: GeneralizedTableSpec.from_definition(name, definition, dataset)
        for name, definition in generalized_definitions.items()
    }
    resolve_generalized_sources(tables, generalized)
    link_generalizations(generalized)
    return tables, generalized


__all__ = [
    "FieldSpec",
    "TableSpec",
    "GeneralizedTableSpec",
    "sanitize_name",
    "resolve_generalized_sources",
    "link_generalizations",
    "build_table_specs",
]
