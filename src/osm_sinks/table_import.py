"""Per-table import worker: bounded queue, background encoder, Avro container output."""
from __future__ import annotations

import enum
import logging
import queue
import threading
from typing import Any, Callable, Optional, Sequence

from fastavro.write import Writer

from .encoder import encode_row, to_avro_record
from .errors import BulkModeDeleteError, SinkError, WritePathError
from .spec import TableSpec
from .writers import RecordWriter

logger = logging.getLogger(__name__)

ROW_QUEUE_SIZE = 64
AVRO_CODEC = "deflate"

_END_OF_ROWS = object()


class ImportState(enum.Enum):
    CREATED = "created"
    ACCEPTING = "accepting"
    DRAINING = "draining"
    FINALIZED = "finalized"
    ABORTED = "aborted"


class TableImport:
    """Owns one open write session for a table within a transaction.

    ``insert`` only enqueues; a single consumer thread encodes rows and appends
    them to the container file in FIFO order. The queue is bounded, so
    ``insert`` blocks once ``ROW_QUEUE_SIZE`` rows are waiting.
    """

    def __init__(
        self,
        spec: TableSpec,
        open_writer: Callable[[], RecordWriter],
        bulk: bool = True,
        deleter: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.spec = spec
        self.bulk = bulk
        self.state = ImportState.CREATED
        self.appended = 0
        self._open_writer = open_writer
        self._deleter = deleter
        self._writer: Optional[RecordWriter] = None
        self._avro: Optional[Writer] = None
        self._rows: "queue.Queue[Any]" = queue.Queue(maxsize=ROW_QUEUE_SIZE)
        self._consumer: Optional[threading.Thread] = None
        self._error: Optional[WritePathError] = None

    @property
    def location(self) -> str:
        return self._writer.location if self._writer is not None else ""

    def begin(self) -> None:
        if self.state is not ImportState.CREATED:
            raise SinkError(f"import of {self.spec.name!r} already started")
        self._writer = self._open_writer()
        schema = self.spec.avro_schema()
        self._avro = Writer(self._writer.handle, schema, codec=AVRO_CODEC)
        self._consumer = threading.Thread(
            target=self._consume,
            name=f"import-{self.spec.name}",
            daemon=True,
        )
        self._consumer.start()
        self.state = ImportState.ACCEPTING

    def insert(self, row: Sequence[Any]) -> None:
        if self._error is not None:
            raise self._error
        if self.state is not ImportState.ACCEPTING:
            raise SinkError(f"import of {self.spec.name!r} is not accepting rows ({self.state.value})")
        self._rows.put(row)

    def delete(self, row_id: int) -> None:
        if self.bulk:
            raise BulkModeDeleteError(self.spec.name)
        if self._deleter is None:
            logger.debug("ignoring delete of %s from append-only table %s", row_id, self.spec.name)
            return
        self._deleter(row_id)

    def end(self) -> None:
        """Drain the queue, close the artifact and run any post-load steps."""
        if self.state is not ImportState.ACCEPTING:
            raise SinkError(f"import of {self.spec.name!r} cannot end from state {self.state.value}")
        self._drain()
        if self._error is not None:
            self._writer.discard()
            self.state = ImportState.ABORTED
            raise self._error
        try:
            self._avro.flush()
            self._writer.close()
        except Exception as exc:
            self.state = ImportState.ABORTED
            raise WritePathError(self.spec.name, f"closing {self.location}: {exc}") from exc
        logger.info("Wrote %s rows for %s to %s", self.appended, self.spec.name, self.location)
        self.state = ImportState.FINALIZED
        self._finalize()

    def abort(self) -> None:
        """Stop the consumer and drop the artifact; remote staging is not cleaned up."""
        if self.state in (ImportState.FINALIZED, ImportState.ABORTED):
            return
        if self.state is ImportState.ACCEPTING:
            self._drain()
        if self._writer is not None:
            self._writer.discard()
        self.state = ImportState.ABORTED

    def _finalize(self) -> None:
        """Hook for sinks that load the closed artifact somewhere else."""

    def _drain(self) -> None:
        self.state = ImportState.DRAINING
        self._rows.put(_END_OF_ROWS)
        self._consumer.join()

    def _consume(self) -> None:
        fields = self.spec.fields
        while True:
            row = self._rows.get()
            if row is _END_OF_ROWS:
                break
            if self._error is not None:
                # keep draining so producers never block on a dead consumer
                continue
            try:
                self._avro.write(to_avro_record(encode_row(fields, row)))
                self.appended += 1
            except Exception as exc:
                logger.critical("[fatal] write into %s: %s", self.spec.name, exc)
                error = WritePathError(self.spec.name, str(exc))
                error.__cause__ = exc
                self._error = error


__all__ = ["TableImport", "ImportState", "ROW_QUEUE_SIZE"]
