"""BigQuery sink: staged Avro loads, generalized tables and dataset rotation."""
from __future__ import annotations

import functools
import logging
from typing import Iterable, List, Mapping, Optional

from botocore.client import BaseClient
from google.cloud import bigquery

from ..config import SinkSettings
from ..errors import SinkError
from ..logs import log_step
from ..sink import Match, Sink
from ..spec import GeneralizedTableSpec, TableSpec
from ..table_import import ImportState, TableImport
from ..writers import ObjectStoreConfig, create_object_client
from .client import Warehouse
from .connection import SCHEME, WarehouseConnection
from .generalize import GeneralizationManager, delete_sql
from .loader import WarehouseTableImport
from .rotate import DatasetRotation

logger = logging.getLogger(__name__)


class WarehouseSink(Sink):
    scheme = SCHEME

    def __init__(
        self,
        connection: WarehouseConnection,
        settings: SinkSettings,
        tables: Mapping[str, TableSpec],
        generalized_tables: Optional[Mapping[str, GeneralizedTableSpec]] = None,
        warehouse: Optional[Warehouse] = None,
        object_client: Optional[BaseClient] = None,
    ) -> None:
        super().__init__(tables, generalized_tables)
        self.connection = connection
        self.settings = settings
        self.staging = ObjectStoreConfig.from_uri(connection.staging_uri)
        self.warehouse = warehouse
        self.object_client = object_client

    def open(self) -> None:
        if self.warehouse is None:
            self.warehouse = Warehouse.connect(self.connection.project_id, self.connection.location)
        if self.object_client is None:
            self.object_client = create_object_client(self.staging)

    def close(self) -> None:
        if self.warehouse is not None:
            self.warehouse.close()

    def init(self) -> None:
        """Drop and recreate every base table in the import dataset."""
        with log_step(f"Creating tables in {self.settings.import_schema}", logger):
            self.warehouse.ensure_dataset(self.settings.import_schema)
            for spec in self.tables.values():
                self.warehouse.create_table(spec)

    def new_table_import(self, spec: TableSpec, bulk: bool) -> TableImport:
        deleter = None if bulk else functools.partial(self._delete_row, spec)
        return WarehouseTableImport(
            spec,
            self.warehouse,
            self.staging,
            self.object_client,
            bulk=bulk,
            deleter=deleter,
        )

    @property
    def generalization(self) -> GeneralizationManager:
        return GeneralizationManager(self.warehouse, self.generalized_tables)

    @property
    def rotation(self) -> DatasetRotation:
        return DatasetRotation(
            self.warehouse,
            self.table_names(),
            self.settings.import_schema,
            self.settings.production_schema,
            self.settings.backup_schema,
        )

    def table_names(self) -> List[str]:
        return list(self.tables) + list(self.generalized_tables)

    def delete(self, row_id: int, matches: Iterable[Match]) -> None:
        matches = list(matches)
        super().delete(row_id, matches)
        if self.update_generalized_tables:
            for table in self.generalized_from_matches(matches):
                self.generalization.delete(table, row_id)

    def generalized_from_matches(self, matches: Iterable[Match]) -> List[GeneralizedTableSpec]:
        generalized: List[GeneralizedTableSpec] = []
        for match in matches:
            table = self.tables.get(match.table.name)
            if table is not None:
                generalized.extend(table.generalizations)
        return generalized

    def generalize(self) -> None:
        self.generalization.generalize()

    def generalize_updates(self) -> None:
        """Refresh generalized tables for the ids inserted by the ended transaction."""
        pending = [
            name
            for name, table_import in self.tx.imports.items()
            if table_import.state is ImportState.ACCEPTING
        ]
        if pending:
            raise SinkError(f"generalize_updates requires end() first; still importing: {', '.join(pending)}")
        self.generalization.generalize_updates(self.tx.changes)

    def deploy(self) -> None:
        self.rotation.deploy()

    def revert_deploy(self) -> None:
        self.rotation.revert_deploy()

    def remove_backup(self) -> None:
        self.rotation.remove_backup()

    def _delete_row(self, spec: TableSpec, row_id: int) -> None:
        self.warehouse.run_query(
            delete_sql(spec.dataset, spec.name, spec.id_column()),
            [bigquery.ScalarQueryParameter("id", "INT64", row_id)],
        )


__all__ = ["WarehouseSink"]
