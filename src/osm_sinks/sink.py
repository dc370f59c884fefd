"""Sink lifecycle shared by the file, object store and warehouse backends."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Sequence

from .errors import SinkError
from .router import ChangeSet, TxRouter
from .spec import GeneralizedTableSpec, TableSpec
from .table_import import TableImport

logger = logging.getLogger(__name__)


class Element(Protocol):
    """OSM element handed over by the matching stage."""

    id: int


class MatchedTable(Protocol):
    name: str


class Match(Protocol):
    """A table the element matched, with its row builders."""

    table: MatchedTable

    def row(self, element: Any, geometry: Any) -> Sequence[Any]:
        """Cells for a point/linestring/polygon table."""

    def member_row(self, relation: Any, member: Any, geometry: Any) -> Sequence[Any]:
        """Cells for a relation member table."""


class Sink:
    """Base class for sinks; subclasses decide how each table is written."""

    scheme = ""

    def __init__(
        self,
        tables: Mapping[str, TableSpec],
        generalized_tables: Optional[Mapping[str, GeneralizedTableSpec]] = None,
    ) -> None:
        self.tables: Dict[str, TableSpec] = dict(tables)
        self.generalized_tables: Dict[str, GeneralizedTableSpec] = dict(generalized_tables or {})
        self.update_generalized_tables = False
        self._tx: Optional[TxRouter] = None

    # lifecycle

    def open(self) -> None:
        """Acquire clients or directories."""

    def init(self) -> None:
        """Prepare destination schemas; destructive where supported."""

    def finish(self) -> None:
        """Post-processing after all transactions; no secondary indexes to build here."""

    def close(self) -> None:
        """Release clients."""

    def begin(self) -> None:
        self._tx = TxRouter.open(self.tables, lambda spec: self.new_table_import(spec, bulk=False))

    def begin_bulk(self) -> None:
        self._tx = TxRouter.open(self.tables, lambda spec: self.new_table_import(spec, bulk=True))

    def end(self) -> None:
        self.tx.end()

    def abort(self) -> None:
        self.tx.abort()

    def new_table_import(self, spec: TableSpec, bulk: bool) -> TableImport:
        raise NotImplementedError

    @property
    def tx(self) -> TxRouter:
        if self._tx is None:
            raise SinkError("no open transaction; call begin() or begin_bulk() first")
        return self._tx

    # generalized tables

    def enable_generalize_updates(self) -> None:
        self.update_generalized_tables = True

    def generalize(self) -> None:
        """Build generalized tables; only the warehouse sink maintains them."""

    def generalize_updates(self) -> None:
        """Refresh generalized tables from tracked changes."""

    # row stream

    def insert_point(self, element: Element, geometry: Any, matches: Iterable[Match]) -> None:
        for match in matches:
            self.tx.insert(match.table.name, match.row(element, geometry))

    def insert_linestring(self, element: Element, geometry: Any, matches: Iterable[Match]) -> None:
        matches = list(matches)
        for match in matches:
            self.tx.insert(match.table.name, match.row(element, geometry))
        self._track_changes(element.id, matches)

    def insert_polygon(self, element: Element, geometry: Any, matches: Iterable[Match]) -> None:
        matches = list(matches)
        for match in matches:
            self.tx.insert(match.table.name, match.row(element, geometry))
        self._track_changes(element.id, matches)

    def insert_relation_member(
        self, relation: Element, member: Any, geometry: Any, matches: Iterable[Match]
    ) -> None:
        for match in matches:
            self.tx.insert(match.table.name, match.member_row(relation, member, geometry))

    def delete(self, row_id: int, matches: Iterable[Match]) -> None:
        for match in matches:
            self.tx.delete(match.table.name, row_id)

    def _track_changes(self, row_id: int, matches: Sequence[Match]) -> None:
        if not self.update_generalized_tables:
            return
        changes: ChangeSet = self.tx.changes
        for match in matches:
            table = self.tables.get(match.table.name)
            if table is not None and table.generalizations:
                changes.record(table.name, row_id)


__all__ = ["Element", "Match", "MatchedTable", "Sink"]
