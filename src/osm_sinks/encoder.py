"""Conversion of positional rows into Avro wire values."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Sequence

from shapely import wkb
from shapely.geometry.base import BaseGeometry

from .fields import (
    AVRO_BOOLEAN,
    AVRO_BYTES,
    AVRO_DOUBLE,
    AVRO_FLOAT,
    AVRO_INT,
    AVRO_LONG,
    AVRO_NULL,
    AVRO_STRING,
    TagsType,
)
from .spec import FieldSpec

_HSTORE_PAIR = re.compile(
    r"""
    "((?:[^"\\]|\\.)*)"            # key
    \s*=>\s*
    (?:NULL|"((?:[^"\\]|\\.)*)")   # value or NULL
    \s*(?:,\s*|$)
    """,
    re.VERBOSE,
)
_HSTORE_ESCAPE = re.compile(r"\\(.)")


def parse_hstore(text: str) -> Dict[str, str | None]:
    """Parse the text form of a PostgreSQL hstore value.

    Raises ``ValueError`` when the text is not a well formed hstore.
    """
    result: Dict[str, str | None] = {}
    text = text.strip()
    position = 0
    for match in _HSTORE_PAIR.finditer(text):
        if match.start() != position:
            raise ValueError(f"error parsing hstore pair at char {position}")
        key = _HSTORE_ESCAPE.sub(r"\1", match.group(1))
        value = match.group(2)
        if value is not None:
            value = _HSTORE_ESCAPE.sub(r"\1", value)
        result[key] = value
        position = match.end()
    if position < len(text):
        raise ValueError(f"error parsing hstore: unparsed data after char {position}")
    return result


def encode_tags(value: Any) -> List[Dict[str, str]]:
    """Key/value list for a tags cell; unparseable input yields no tags."""
    if isinstance(value, Mapping):
        pairs = value
    elif isinstance(value, (bytes, bytearray)):
        try:
            pairs = parse_hstore(bytes(value).decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return []
    elif isinstance(value, str):
        try:
            pairs = parse_hstore(value)
        except ValueError:
            return []
    else:
        return []
    return [
        {"key": str(key), "value": "" if item is None else str(item)}
        for key, item in pairs.items()
    ]


def _as_wkb(value: Any) -> bytes:
    if isinstance(value, BaseGeometry):
        return wkb.dumps(value)
    if isinstance(value, str):
        return bytes.fromhex(value)
    return bytes(value)


def coerce_value(avro_type: str, value: Any) -> Any:
    if avro_type == AVRO_STRING:
        return value if isinstance(value, str) else str(value)
    if avro_type == AVRO_BOOLEAN:
        return bool(value)
    if avro_type in (AVRO_INT, AVRO_LONG):
        return int(value)
    if avro_type in (AVRO_FLOAT, AVRO_DOUBLE):
        return float(value)
    if avro_type == AVRO_BYTES:
        return _as_wkb(value)
    return value


def encode_field(field: FieldSpec, value: Any) -> Any:
    """Wire value for one cell.

    Present values are always wrapped as ``{avro_type: value}`` so every column
    stays a nullable union; tags are the only exception and become a list.
    """
    if isinstance(field.type, TagsType):
        # The tags column is a non-nullable array defaulting to [], so a
        # missing tags cell is the empty array, not the null branch.
        return encode_tags(value)
    if value is None:
        return {AVRO_NULL: None}
    if field.fields:
        return {
            field.type.avro_type: {
                nested.external_name: encode_field(nested, value.get(nested.name))
                for nested in field.fields
            }
        }
    return {field.type.avro_type: coerce_value(field.type.avro_type, value)}


def encode_row(fields: Sequence[FieldSpec], row: Sequence[Any]) -> Dict[str, Any]:
    if len(row) != len(fields):
        raise ValueError(f"row has {len(row)} values, table defines {len(fields)} columns")
    return {field.external_name: encode_field(field, cell) for field, cell in zip(fields, row)}


def to_writer_datum(wire_value: Any) -> Any:
    """Translate ``{branch: value}`` into fastavro's ``(branch, value)`` union notation."""
    if isinstance(wire_value, dict) and len(wire_value) == 1:
        ((branch, value),) = wire_value.items()
        return (branch, value)
    return wire_value


def to_avro_record(encoded: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: to_writer_datum(value) for name, value in encoded.items()}


__all__ = [
    "parse_hstore",
    "encode_tags",
    "encode_field",
    "encode_row",
    "to_avro_record",
]
