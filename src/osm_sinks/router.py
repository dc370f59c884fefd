"""Routes inserts and deletes to the per-table imports of one transaction."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .errors import RoutingError
from .spec import TableSpec
from .table_import import TableImport

logger = logging.getLogger(__name__)


class ChangeSet:
    """Ids inserted per base table during one transaction.

    Insert paths may run concurrently, so every append holds the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: Dict[str, List[int]] = {}

    def record(self, table: str, row_id: int) -> None:
        with self._lock:
            self._ids.setdefault(table, []).append(row_id)

    def ids(self, table: str) -> List[int]:
        with self._lock:
            return list(self._ids.get(table, ()))

    def __bool__(self) -> bool:
        with self._lock:
            return any(self._ids.values())


class TxRouter:
    """Fans transaction calls out to one ``TableImport`` per table."""

    def __init__(self, imports: Mapping[str, TableImport], changes: Optional[ChangeSet] = None) -> None:
        self.imports = dict(imports)
        self.changes = changes if changes is not None else ChangeSet()

    @classmethod
    def open(
        cls,
        tables: Mapping[str, TableSpec],
        new_import: Callable[[TableSpec], TableImport],
    ) -> "TxRouter":
        """Create and begin an import for every table.

        If building or beginning any import fails the imports opened so far
        are aborted and the error propagates.
        """
        opened: Dict[str, TableImport] = {}
        for name, spec in tables.items():
            table_import: Optional[TableImport] = None
            try:
                table_import = new_import(spec)
                table_import.begin()
            except Exception:
                for started in opened.values():
                    started.abort()
                if table_import is not None:
                    table_import.abort()
                raise
            opened[name] = table_import
        return cls(opened)

    def insert(self, table: str, row: Sequence[Any]) -> None:
        try:
            table_import = self.imports[table]
        except KeyError:
            raise RoutingError(f"Insert into unknown table {table}") from None
        table_import.insert(row)

    def delete(self, table: str, row_id: int) -> None:
        try:
            table_import = self.imports[table]
        except KeyError:
            raise RoutingError(f"Delete from unknown table {table}") from None
        table_import.delete(row_id)

    def end(self) -> None:
        """End every import; the last failure is raised once all have been tried."""
        last_error: Optional[Exception] = None
        for name, table_import in self.imports.items():
            try:
                table_import.end()
            except Exception as exc:
                logger.error("Ending import of %s failed: %s", name, exc)
                last_error = exc
        if last_error is not None:
            raise last_error

    def abort(self) -> None:
        for name, table_import in self.imports.items():
            try:
                table_import.abort()
            except Exception:
                logger.exception("Aborting import of %s failed", name)


__all__ = ["ChangeSet", "TxRouter"]
