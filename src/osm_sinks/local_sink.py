"""Sink writing one Avro container file per table to a local directory."""
from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Mapping

from .errors import ConfigurationError
from .sink import Sink
from .spec import TableSpec
from .table_import import TableImport
from .writers import LocalFileWriter, artifact_name

logger = logging.getLogger(__name__)

SCHEME = "avro"


def parse_avro_path(connection: str) -> Path:
    """Directory of an ``avro:///path/on/filesystem`` connection string."""
    if not connection:
        raise ConfigurationError("connection string not specified")
    if not connection.startswith(f"{SCHEME}://"):
        raise ConfigurationError(f"{connection!r} is not a file path in the format \"avro://...\"")
    path = connection[len(f"{SCHEME}://"):]
    if not path:
        raise ConfigurationError(f"{connection!r} does not name a directory")
    return Path(posixpath.normpath(path))


class LocalAvroSink(Sink):
    scheme = SCHEME

    def __init__(self, root: Path | str, tables: Mapping[str, TableSpec]) -> None:
        super().__init__(tables)
        self.root = Path(root)

    def open(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def new_table_import(self, spec: TableSpec, bulk: bool) -> TableImport:
        path = self.root / artifact_name("", spec.name)
        return TableImport(spec, lambda: LocalFileWriter(path), bulk=bulk)


__all__ = ["LocalAvroSink", "parse_avro_path"]
