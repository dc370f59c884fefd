"""Warehouse table import: stage Avro in GCS, load, materialize, clean up."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from botocore.client import BaseClient

from ..errors import SinkError
from ..fields import is_geometry
from ..logs import log_step
from ..spec import TableSpec
from ..table_import import TableImport
from ..writers import ObjectStorageWriter, ObjectStoreConfig, artifact_name
from .client import Warehouse, clustering_fields, quote_table

logger = logging.getLogger(__name__)

TEMP_TABLE_SUFFIX = "_tmp"
TEMP_TABLE_TTL = timedelta(hours=24)


def temp_table_name(table: str) -> str:
    return table + TEMP_TABLE_SUFFIX


def staged_projection(spec: TableSpec) -> str:
    """Column list decoding staged WKB bytes into GEOGRAPHY."""
    columns = []
    for field in spec.fields:
        name = field.external_name
        if is_geometry(field.type):
            columns.append(f"ST_GEOGFROMWKB({name}) AS {name}")
        else:
            columns.append(name)
    return ", ".join(columns)


def materialize_sql(spec: TableSpec, temp_table: str, replace: bool) -> str:
    """Statement moving rows from the temp table into the target table.

    ``replace`` recreates the target (bulk import); otherwise rows are appended.
    """
    target = quote_table(spec.dataset, spec.name)
    source = quote_table(spec.dataset, temp_table)
    projection = staged_projection(spec)
    if not replace:
        columns = ", ".join(f.external_name for f in spec.fields)
        return f"INSERT INTO {target} ({columns}) SELECT {projection} FROM {source}"
    cluster = ""
    clustering = clustering_fields(spec)
    if clustering:
        cluster = f" CLUSTER BY {', '.join(clustering)}"
    return f"CREATE OR REPLACE TABLE {target}{cluster} AS (SELECT {projection} FROM {source})"


class WarehouseTableImport(TableImport):
    """Table import whose ``end`` runs the staged bulk-load sequence."""

    def __init__(
        self,
        spec: TableSpec,
        warehouse: Warehouse,
        staging: ObjectStoreConfig,
        object_client: BaseClient,
        bulk: bool = True,
        deleter: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.warehouse = warehouse
        self.staging = staging
        self.staging_key = artifact_name(staging.prefix, spec.name)
        super().__init__(
            spec,
            lambda: ObjectStorageWriter(object_client, staging, self.staging_key),
            bulk=bulk,
            deleter=deleter,
        )

    def _finalize(self) -> None:
        spec = self.spec
        staged_uri = self.staging.uri(self.staging_key)
        temp_table = temp_table_name(spec.name)
        target = self.warehouse.table_id(spec.dataset, spec.name)

        with log_step(f"Loading {staged_uri} into {target}", logger):
            # temp table and staged object stay behind on failure for inspection
            self.warehouse.load_avro(staged_uri, spec.dataset, temp_table)

            self.warehouse.set_expiration(
                spec.dataset,
                temp_table,
                datetime.now(timezone.utc) + TEMP_TABLE_TTL,
                f"osm_sinks: temporary table for loading data into {target!r}",
            )

            if self.bulk:
                # column type changes are not reliably applied in place
                self.warehouse.delete_table(spec.dataset, spec.name)

            self.warehouse.run_query(materialize_sql(spec, temp_table, replace=self.bulk))

            try:
                self.warehouse.delete_table(spec.dataset, temp_table)
            except SinkError as exc:
                logger.error("Removing temporary table %s failed: %s", temp_table, exc)
                raise


__all__ = ["WarehouseTableImport", "materialize_sql", "staged_projection", "temp_table_name"]
