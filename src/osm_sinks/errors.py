"""Exception hierarchy shared by every sink implementation."""
from __future__ import annotations

from typing import Optional


class SinkError(RuntimeError):
    """Base class for errors raised by the export sinks."""


class ConfigurationError(SinkError, ValueError):
    """Invalid mapping, connection string or settings. Fatal at startup."""


class RoutingError(SinkError, KeyError):
    """Insert or delete addressed to a table the transaction does not know."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class WritePathError(SinkError):
    """Appending a record to an open artifact failed; the import must stop."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"write into {table!r} failed: {message}")
        self.table = table


class WarehouseJobError(SinkError):
    """A warehouse load, query or copy job failed."""

    def __init__(self, statement: str, original: Optional[BaseException] = None) -> None:
        detail = str(original) if original is not None else "job failed"
        super().__init__(f"warehouse error: {detail} in statement {statement}")
        self.statement = statement
        self.original = original


class BulkModeDeleteError(SinkError, NotImplementedError):
    """Row deletion was requested from a bulk-mode import."""

    def __init__(self, table: str) -> None:
        super().__init__(f"unable to delete from {table!r} in bulk import mode")
        self.table = table


__all__ = [
    "SinkError",
    "ConfigurationError",
    "RoutingError",
    "WritePathError",
    "WarehouseJobError",
    "BulkModeDeleteError",
]
