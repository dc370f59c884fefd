"""Synchronous wrapper around the BigQuery client used by the warehouse sink."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import bigquery

from ..errors import SinkError, WarehouseJobError
from ..fields import WAREHOUSE_GEOGRAPHY
from ..spec import FieldSpec, TableSpec

logger = logging.getLogger(__name__)

# BigQuery accepts at most four clustering columns.
MAX_CLUSTERING_FIELDS = 4

COPY = "COPY"
SNAPSHOT = "SNAPSHOT"
RESTORE = "RESTORE"


def schema_field(field: FieldSpec) -> bigquery.SchemaField:
    return bigquery.SchemaField(
        field.external_name,
        field.type.warehouse_type,
        mode="REPEATED" if field.type.repeated else "NULLABLE",
        fields=[schema_field(nested) for nested in field.fields],
    )


def warehouse_schema(spec: TableSpec) -> List[bigquery.SchemaField]:
    return [schema_field(field) for field in spec.fields]


def clustering_fields(spec: TableSpec) -> List[str]:
    names = [f.external_name for f in spec.fields if f.type.warehouse_type == WAREHOUSE_GEOGRAPHY]
    return names[:MAX_CLUSTERING_FIELDS]


def quote_table(dataset: str, table: str) -> str:
    return f"`{dataset}.{table}`"


class Warehouse:
    """Dataset/table administration and blocking job execution."""

    def __init__(self, client: bigquery.Client, location: Optional[str] = None) -> None:
        self.client = client
        self.location = location

    @classmethod
    def connect(cls, project_id: Optional[str], location: Optional[str]) -> "Warehouse":
        try:
            client = bigquery.Client(project=project_id, location=location)
        except (DefaultCredentialsError, GoogleAPIError) as exc:
            raise SinkError(f"creating BigQuery client: {exc}") from exc
        return cls(client, location)

    def close(self) -> None:
        self.client.close()

    def table_id(self, dataset: str, table: str) -> str:
        return f"{self.client.project}.{dataset}.{table}"

    # datasets

    def dataset_exists(self, dataset: str) -> bool:
        try:
            self.client.get_dataset(f"{self.client.project}.{dataset}")
        except NotFound:
            return False
        except GoogleAPIError as exc:
            raise SinkError(f"checking if dataset {dataset} exists: {exc}") from exc
        return True

    def ensure_dataset(self, dataset: str) -> None:
        if self.dataset_exists(dataset):
            return
        ds = bigquery.Dataset(f"{self.client.project}.{dataset}")
        if self.location:
            ds.location = self.location
        try:
            self.client.create_dataset(ds, exists_ok=True)
        except GoogleAPIError as exc:
            raise SinkError(f"creating BigQuery dataset {dataset}: {exc}") from exc
        logger.info("Created dataset %s", dataset)

    # tables

    def get_table(self, dataset: str, table: str) -> Optional[bigquery.Table]:
        table_id = self.table_id(dataset, table)
        try:
            return self.client.get_table(table_id)
        except NotFound:
            return None
        except GoogleAPIError as exc:
            raise SinkError(f"checking if table {table_id} exists: {exc}") from exc

    def table_exists(self, dataset: str, table: str) -> bool:
        return self.get_table(dataset, table) is not None

    def delete_table(self, dataset: str, table: str) -> None:
        """Drop a table; a missing table is not an error."""
        table_id = self.table_id(dataset, table)
        try:
            self.client.delete_table(table_id, not_found_ok=True)
        except GoogleAPIError as exc:
            raise SinkError(f"deleting table {table_id}: {exc}") from exc

    def create_table(self, spec: TableSpec) -> None:
        """Drop and recreate a table from its spec, clustered by geography columns."""
        self.delete_table(spec.dataset, spec.name)
        table = bigquery.Table(self.table_id(spec.dataset, spec.name), schema=warehouse_schema(spec))
        clustering = clustering_fields(spec)
        if clustering:
            table.clustering_fields = clustering
        try:
            self.client.create_table(table)
        except GoogleAPIError as exc:
            raise SinkError(f"creating table {table.table_id}: {exc}") from exc

    def set_expiration(self, dataset: str, table: str, expires: datetime, description: str) -> None:
        table_id = self.table_id(dataset, table)
        try:
            current = self.client.get_table(table_id)
            current.expires = expires
            current.description = description
            self.client.update_table(current, ["expires", "description"])
        except GoogleAPIError as exc:
            raise SinkError(f"updating temporary table {table_id}: {exc}") from exc

    # jobs

    def run_query(
        self,
        sql: str,
        parameters: Optional[Sequence[bigquery.ScalarQueryParameter | bigquery.ArrayQueryParameter]] = None,
    ) -> None:
        job_config = bigquery.QueryJobConfig(query_parameters=list(parameters or []))
        try:
            job = self.client.query(sql, job_config=job_config, location=self.location)
            job.result()
        except GoogleAPIError as exc:
            raise WarehouseJobError(sql, exc) from exc
        if job.error_result:
            raise WarehouseJobError(sql, SinkError(job.error_result.get("message", "query failed")))

    def load_avro(self, source_uri: str, dataset: str, table: str) -> None:
        """Load a deflate-compressed Avro container file into a table, replacing it."""
        job_config = bigquery.LoadJobConfig(
            source_format=bigquery.SourceFormat.AVRO,
            create_disposition=bigquery.CreateDisposition.CREATE_IF_NEEDED,
            write_disposition=bigquery.WriteDisposition.WRITE_TRUNCATE,
        )
        destination = self.table_id(dataset, table)
        try:
            job = self.client.load_table_from_uri(
                source_uri, destination, job_config=job_config, location=self.location
            )
            job.result()
        except GoogleAPIError as exc:
            raise WarehouseJobError(f"load {source_uri} into {destination}", exc) from exc
        if job.error_result:
            raise WarehouseJobError(
                f"load {source_uri} into {destination}",
                SinkError(job.error_result.get("message", "load failed")),
            )

    def copy_table(self, source_dataset: str, dest_dataset: str, table: str, operation: str = COPY) -> None:
        """Copy ``table`` between datasets, truncating the destination."""
        source = self.table_id(source_dataset, table)
        destination = self.table_id(dest_dataset, table)
        job_config = bigquery.CopyJobConfig(
            create_disposition=bigquery.CreateDisposition.CREATE_IF_NEEDED,
            write_disposition=bigquery.WriteDisposition.WRITE_TRUNCATE,
        )
        if operation == SNAPSHOT:
            # snapshots cannot be truncated in place
            self.delete_table(dest_dataset, table)
            job_config.write_disposition = bigquery.WriteDisposition.WRITE_EMPTY
        job_config.operation_type = operation
        try:
            job = self.client.copy_table(source, destination, job_config=job_config, location=self.location)
            job.result()
        except GoogleAPIError as exc:
            raise WarehouseJobError(f"{operation.lower()} {source} to {destination}", exc) from exc


__all__ = [
    "Warehouse",
    "warehouse_schema",
    "clustering_fields",
    "quote_table",
    "COPY",
    "SNAPSHOT",
    "RESTORE",
]
