"""Physical column types for the export sinks.

Each logical column type from the mapping resolves to exactly one of four
field kinds. The set is closed: callers branch on the concrete kind with
``isinstance`` instead of subclassing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Union

from .errors import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from .spec import FieldSpec, GeneralizedTableSpec

logger = logging.getLogger(__name__)

# Avro primitive/complex type names used on the wire.
AVRO_NULL = "null"
AVRO_BOOLEAN = "boolean"
AVRO_INT = "int"
AVRO_LONG = "long"
AVRO_FLOAT = "float"
AVRO_DOUBLE = "double"
AVRO_BYTES = "bytes"
AVRO_STRING = "string"
AVRO_RECORD = "record"
AVRO_ARRAY = "array"

# Warehouse (BigQuery standard SQL) column types.
WAREHOUSE_STRING = "STRING"
WAREHOUSE_BOOLEAN = "BOOLEAN"
WAREHOUSE_INTEGER = "INTEGER"
WAREHOUSE_FLOAT = "FLOAT"
WAREHOUSE_RECORD = "RECORD"
WAREHOUSE_GEOGRAPHY = "GEOGRAPHY"


@dataclass(frozen=True)
class ScalarType:
    avro_type: str
    warehouse_type: str

    @property
    def repeated(self) -> bool:
        return False

    def generalize_sql(self, field: "FieldSpec", table: "GeneralizedTableSpec") -> str:
        return field.external_name


@dataclass(frozen=True)
class TagsType:
    """Key/value tags, emitted as a repeated ``{key, value}`` record."""

    avro_type: str = AVRO_RECORD
    warehouse_type: str = WAREHOUSE_RECORD

    @property
    def repeated(self) -> bool:
        return True

    def generalize_sql(self, field: "FieldSpec", table: "GeneralizedTableSpec") -> str:
        return field.external_name


@dataclass(frozen=True)
class GeometryType:
    """Geometry staged as WKB bytes and decoded to GEOGRAPHY in the warehouse."""

    avro_type: str = AVRO_BYTES
    warehouse_type: str = WAREHOUSE_GEOGRAPHY

    @property
    def repeated(self) -> bool:
        return False

    def generalize_sql(self, field: "FieldSpec", table: "GeneralizedTableSpec") -> str:
        name = field.external_name
        return f"ST_SIMPLIFY({name}, {table.tolerance:f}) AS {name}"


@dataclass(frozen=True)
class ValidatedGeometryType:
    """Geometry whose simplified shape is repaired with a zero-width buffer."""

    avro_type: str = AVRO_BYTES
    warehouse_type: str = WAREHOUSE_GEOGRAPHY

    @property
    def repeated(self) -> bool:
        return False

    def generalize_sql(self, field: "FieldSpec", table: "GeneralizedTableSpec") -> str:
        if table.source is not None and table.source.geometry_type != "polygon":
            logger.warning(
                "validated_geometry column returns polygon geometries for %s", table.name
            )
        name = field.external_name
        return f"ST_BUFFER(ST_SIMPLIFY({name}, {table.tolerance:f}), 0) AS {name}"


FieldType = Union[ScalarType, TagsType, GeometryType, ValidatedGeometryType]

FIELD_TYPES: Dict[str, FieldType] = {
    "string": ScalarType(AVRO_STRING, WAREHOUSE_STRING),
    "bool": ScalarType(AVRO_BOOLEAN, WAREHOUSE_BOOLEAN),
    "int8": ScalarType(AVRO_INT, WAREHOUSE_INTEGER),
    "int32": ScalarType(AVRO_INT, WAREHOUSE_INTEGER),
    "int64": ScalarType(AVRO_LONG, WAREHOUSE_INTEGER),
    "float32": ScalarType(AVRO_FLOAT, WAREHOUSE_FLOAT),
    "float64": ScalarType(AVRO_DOUBLE, WAREHOUSE_FLOAT),
    "hstore_string": TagsType(),
    "geometry": GeometryType(),
    "validated_geometry": ValidatedGeometryType(),
}


def resolve_field_type(logical_type: str) -> FieldType:
    """Return the field kind for a logical column type name."""
    try:
        return FIELD_TYPES[logical_type]
    except KeyError:
        raise ConfigurationError(f"unhandled column type {logical_type!r}") from None


def is_geometry(field_type: FieldType) -> bool:
    return isinstance(field_type, (GeometryType, ValidatedGeometryType))


__all__ = [
    "FieldType",
    "FIELD_TYPES",
    "ScalarType",
    "TagsType",
    "GeometryType",
    "ValidatedGeometryType",
    "resolve_field_type",
    "is_geometry",
]
