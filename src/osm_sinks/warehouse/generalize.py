"""Building and refreshing generalized tables in the warehouse."""
from __future__ import annotations

import logging
from typing import List, Mapping

from google.cloud import bigquery

from ..errors import ConfigurationError
from ..logs import log_step
from ..router import ChangeSet
from ..spec import GeneralizedTableSpec
from .client import Warehouse, quote_table

logger = logging.getLogger(__name__)


def column_sql(table: GeneralizedTableSpec) -> str:
    return ", ".join(field.type.generalize_sql(field, table) for field in table.fields)


def build_sql(table: GeneralizedTableSpec) -> str:
    where = f" WHERE {table.where}" if table.where else ""
    return (
        f"CREATE OR REPLACE TABLE {quote_table(table.dataset, table.name)} AS "
        f"(SELECT {column_sql(table)} FROM {quote_table(table.dataset, table.direct_source_name)}{where})"
    )


def insert_sql(table: GeneralizedTableSpec) -> str:
    """Insert-select of the ``@ids`` rows from the direct source."""
    where = f" WHERE {table.id_column()} IN UNNEST(@ids)"
    if table.where:
        where += f" AND ({table.where})"
    return (
        f"INSERT INTO {quote_table(table.dataset, table.name)} "
        f"(SELECT {column_sql(table)} FROM {quote_table(table.dataset, table.direct_source_name)}{where})"
    )


def delete_sql(dataset: str, table: str, id_column: str) -> str:
    return f"DELETE FROM {quote_table(dataset, table)} WHERE {id_column} = @id"


def sorted_generalized_tables(generalized_tables: Mapping[str, GeneralizedTableSpec]) -> List[GeneralizedTableSpec]:
    """Tables ordered so each comes after its generalized source."""
    added = set()
    ordered: List[GeneralizedTableSpec] = []
    while len(ordered) < len(generalized_tables):
        progressed = False
        for table in generalized_tables.values():
            if table.name in added:
                continue
            parent = table.source_generalized
            if parent is None or parent.name in added:
                added.add(table.name)
                ordered.append(table)
                progressed = True
        if not progressed:
            names = ", ".join(sorted(set(generalized_tables) - added))
            raise ConfigurationError(f"cyclic generalized table sources: {names}")
    return ordered


class GeneralizationManager:
    def __init__(self, warehouse: Warehouse, generalized_tables: Mapping[str, GeneralizedTableSpec]) -> None:
        self.warehouse = warehouse
        self.generalized_tables = generalized_tables

    def generalize(self) -> None:
        """Create every generalized table once its source exists.

        Tables sourced from base tables are built first, then chains of
        generalized-on-generalized tables, until nothing is left to build.
        The first failing query aborts the pass.
        """
        with log_step("Creating generalized tables", logger):
            for table in self.generalized_tables.values():
                table.created = False
            while True:
                ready = [
                    table
                    for table in self.generalized_tables.values()
                    if not table.created
                    and (table.source_generalized is None or table.source_generalized.created)
                ]
                if not ready:
                    break
                for table in ready:
                    self.generalize_table(table)
                    table.created = True
            missing = sorted(t.name for t in self.generalized_tables.values() if not t.created)
            if missing:
                raise ConfigurationError(
                    f"cyclic generalized table sources: {', '.join(missing)}"
                )

    def generalize_table(self, table: GeneralizedTableSpec) -> None:
        with log_step(f"Generalizing {table.direct_source_name} into {table.name}", logger):
            self.warehouse.run_query(build_sql(table))

    def generalize_updates(self, changes: ChangeSet) -> None:
        """Re-insert changed ids into every dependent generalized table.

        Stale rows must already have been deleted; this only appends.
        """
        if not changes:
            logger.info("No inserted ids, generalized tables are current")
            return
        with log_step("Updating generalized tables", logger):
            for table in sorted_generalized_tables(self.generalized_tables):
                ids = changes.ids(table.source.name)
                if not ids:
                    continue
                logger.info("Refreshing %s ids in %s", len(ids), table.name)
                self.warehouse.run_query(
                    insert_sql(table),
                    [bigquery.ArrayQueryParameter("ids", "INT64", sorted(set(ids)))],
                )

    def delete(self, table: GeneralizedTableSpec, row_id: int) -> None:
        self.warehouse.run_query(
            delete_sql(table.dataset, table.name, table.id_column()),
            [bigquery.ScalarQueryParameter("id", "INT64", row_id)],
        )


__all__ = [
    "GeneralizationManager",
    "build_sql",
    "insert_sql",
    "delete_sql",
    "sorted_generalized_tables",
]
