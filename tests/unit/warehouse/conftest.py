"""In-memory stand-in for ``google.cloud.bigquery.Client``."""
from __future__ import annotations

import re
from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple

import pytest
from google.api_core.exceptions import Conflict, NotFound

from osm_sinks.warehouse.client import Warehouse

_CREATE_TABLE = re.compile(r"CREATE OR REPLACE TABLE `([^.`]+)\.([^`]+)`")


class FakeJob:
    error_result = None

    def result(self):
        return self


class FakeBigQueryClient:
    """Tracks datasets and tables and records every call in ``events``."""

    def __init__(self, project: str = "osm-test") -> None:
        self.project = project
        self.datasets: set = set()
        self.tables: Dict[Tuple[str, str], SimpleNamespace] = {}
        self.events: List[tuple] = []
        self.queries: List[SimpleNamespace] = []
        self.failures: Dict[str, Exception] = {}
        self.updated: Dict[Tuple[str, str], SimpleNamespace] = {}

    def _split(self, table_id: str) -> Tuple[str, str]:
        _, dataset, table = table_id.split(".")
        return dataset, table

    def _maybe_fail(self, operation: str, target: str = "") -> None:
        for key in (f"{operation}:{target}", operation):
            if key in self.failures:
                raise self.failures[key]

    def add_table(self, dataset: str, table: str, table_type: str = "TABLE") -> None:
        self.datasets.add(dataset)
        self.tables[(dataset, table)] = SimpleNamespace(
            table_id=table, dataset_id=dataset, table_type=table_type, expires=None, description=None
        )

    # datasets

    def get_dataset(self, dataset_ref: str):
        dataset = dataset_ref.split(".")[-1]
        if dataset not in self.datasets:
            raise NotFound(f"Dataset {dataset_ref} not found")
        return SimpleNamespace(dataset_id=dataset)

    def create_dataset(self, dataset, exists_ok: bool = False):
        self.events.append(("create_dataset", dataset.dataset_id))
        self.datasets.add(dataset.dataset_id)
        return dataset

    # tables

    def get_table(self, table_id: str):
        key = self._split(table_id)
        if key not in self.tables:
            raise NotFound(f"Table {table_id} not found")
        return self.tables[key]

    def delete_table(self, table_id: str, not_found_ok: bool = False):
        key = self._split(table_id)
        self._maybe_fail("delete_table", key[1])
        self.events.append(("delete_table",) + key)
        if key not in self.tables and not not_found_ok:
            raise NotFound(f"Table {table_id} not found")
        self.tables.pop(key, None)

    def create_table(self, table):
        self.events.append(("create_table", table.dataset_id, table.table_id))
        self.add_table(table.dataset_id, table.table_id)
        self.tables[(table.dataset_id, table.table_id)].schema = table.schema
        self.tables[(table.dataset_id, table.table_id)].clustering_fields = table.clustering_fields
        return table

    def update_table(self, table, fields):
        self.events.append(("update_table", table.dataset_id, table.table_id, tuple(fields)))
        self.updated[(table.dataset_id, table.table_id)] = SimpleNamespace(
            expires=table.expires, description=table.description
        )
        return table

    # jobs

    def query(self, sql: str, job_config=None, location: Optional[str] = None):
        self._maybe_fail("query")
        parameters = list(job_config.query_parameters) if job_config is not None else []
        self.events.append(("query", sql))
        self.queries.append(SimpleNamespace(sql=sql, parameters=parameters))
        created = _CREATE_TABLE.match(sql)
        if created:
            self.add_table(*created.groups())
        return FakeJob()

    def load_table_from_uri(self, source_uri: str, destination: str, job_config=None, location=None):
        self._maybe_fail("load")
        dataset, table = self._split(destination)
        self.events.append(("load", source_uri, dataset, table, job_config.source_format))
        self.add_table(dataset, table)
        return FakeJob()

    def copy_table(self, source: str, destination: str, job_config=None, location=None):
        self._maybe_fail("copy")
        source_key = self._split(source)
        dest_key = self._split(destination)
        operation = job_config.operation_type
        self.events.append(("copy", operation, source_key, dest_key))
        if source_key not in self.tables:
            raise NotFound(f"Table {source} not found")
        if job_config.write_disposition == "WRITE_EMPTY" and dest_key in self.tables:
            raise Conflict(f"Table {destination} already exists")
        self.add_table(*dest_key, table_type="SNAPSHOT" if operation == "SNAPSHOT" else "TABLE")
        return FakeJob()

    def close(self):
        self.events.append(("close",))


@pytest.fixture
def fake_client() -> FakeBigQueryClient:
    return FakeBigQueryClient()


@pytest.fixture
def warehouse(fake_client) -> Warehouse:
    return Warehouse(fake_client, location="EU")
