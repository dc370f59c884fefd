"""Blue-green promotion of the import dataset to production."""
from __future__ import annotations

import logging
from typing import Sequence

from ..logs import log_step
from .client import COPY, RESTORE, SNAPSHOT, Warehouse

logger = logging.getLogger(__name__)

SNAPSHOT_TABLE_TYPE = "SNAPSHOT"


class DatasetRotation:
    """Moves tables import -> production -> backup, and back again on revert.

    Rotation is not atomic across tables: a failing copy stops the run and
    leaves the tables handled so far rotated. Re-running is safe because every
    copy truncates its destination.
    """

    def __init__(
        self,
        warehouse: Warehouse,
        table_names: Sequence[str],
        import_schema: str,
        production_schema: str,
        backup_schema: str,
    ) -> None:
        self.warehouse = warehouse
        self.table_names = list(table_names)
        self.import_schema = import_schema
        self.production_schema = production_schema
        self.backup_schema = backup_schema

    def deploy(self) -> None:
        self.rotate(self.import_schema, self.production_schema, self.backup_schema)

    def revert_deploy(self) -> None:
        self.rotate(self.backup_schema, self.production_schema, self.import_schema)

    def rotate(self, source: str, dest: str, backup: str) -> None:
        with log_step("Rotating tables", logger):
            self.warehouse.ensure_dataset(dest)
            self.warehouse.ensure_dataset(backup)

            for name in self.table_names:
                logger.info("Rotating %s from %s -> %s -> %s", name, source, dest, backup)

                source_table = self.warehouse.get_table(source, name)
                if source_table is None:
                    logger.warning("skipping rotate of %s, table does not exist in %s", name, source)
                    continue

                if self.warehouse.table_exists(dest, name):
                    logger.info("backup of %s to %s", name, backup)
                    self.warehouse.copy_table(dest, backup, name, operation=SNAPSHOT)

                operation = RESTORE if source_table.table_type == SNAPSHOT_TABLE_TYPE else COPY
                self.warehouse.copy_table(source, dest, name, operation=operation)

    def remove_backup(self) -> None:
        for name in self.table_names:
            logger.info("removing backup of %s from %s", name, self.backup_schema)
            self.warehouse.delete_table(self.backup_schema, name)


__all__ = ["DatasetRotation"]
