"""Selects and opens a sink from its connection string scheme."""
from __future__ import annotations

from typing import Callable, Dict
from urllib.parse import urlparse

from .config import MappingConfig, SinkSettings
from .errors import ConfigurationError
from .local_sink import LocalAvroSink, parse_avro_path
from .object_sink import ObjectStorageSink
from .sink import Sink
from .spec import build_table_specs
from .warehouse.connection import parse_connection_string
from .warehouse.sink import WarehouseSink
from .writers import ObjectStoreConfig

SinkFactory = Callable[[SinkSettings, MappingConfig], Sink]


def _local_sink(settings: SinkSettings, mapping: MappingConfig) -> Sink:
    tables, _ = build_table_specs(mapping.tables, {}, settings.import_schema, settings.srid)
    return LocalAvroSink(parse_avro_path(settings.connection), tables)


def _object_sink(settings: SinkSettings, mapping: MappingConfig) -> Sink:
    tables, _ = build_table_specs(mapping.tables, {}, settings.import_schema, settings.srid)
    return ObjectStorageSink(ObjectStoreConfig.from_uri(settings.connection), tables)


def _warehouse_sink(settings: SinkSettings, mapping: MappingConfig) -> Sink:
    connection = parse_connection_string(settings.connection)
    tables, generalized = build_table_specs(
        mapping.tables, mapping.generalized_tables, settings.import_schema, settings.srid
    )
    return WarehouseSink(connection, settings, tables, generalized)


SINKS: Dict[str, SinkFactory] = {
    "avro": _local_sink,
    "s3": _object_sink,
    "gs": _object_sink,
    "bigquery": _warehouse_sink,
}


def create_sink(settings: SinkSettings, mapping: MappingConfig) -> Sink:
    """Build table specs, construct the sink for the connection scheme and open it."""
    scheme = urlparse(settings.connection).scheme.lower()
    try:
        factory = SINKS[scheme]
    except KeyError:
        raise ConfigurationError(f"Unsupported sink scheme: {scheme or repr(settings.connection)}") from None
    sink = factory(settings, mapping)
    sink.open()
    return sink


__all__ = ["create_sink", "SINKS"]
