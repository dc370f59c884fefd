"""Sink uploading one Avro container object per table to S3-compatible storage."""
from __future__ import annotations

import logging
from typing import Mapping, Optional

from botocore.client import BaseClient

from .sink import Sink
from .spec import TableSpec
from .table_import import TableImport
from .writers import (
    ObjectStorageWriter,
    ObjectStoreConfig,
    artifact_name,
    create_object_client,
)

logger = logging.getLogger(__name__)


class ObjectStorageSink(Sink):
    """Writes ``<prefix><table>.avro`` objects; ``gs://`` goes through the GCS interoperability API."""

    def __init__(
        self,
        config: ObjectStoreConfig,
        tables: Mapping[str, TableSpec],
        client: Optional[BaseClient] = None,
    ) -> None:
        super().__init__(tables)
        self.config = config
        self.scheme = config.scheme
        self.client = client

    def open(self) -> None:
        if self.client is None:
            self.client = create_object_client(self.config)
        logger.info("Writing tables to %s", self.config.uri(self.config.prefix))

    def new_table_import(self, spec: TableSpec, bulk: bool) -> TableImport:
        key = artifact_name(self.config.prefix, spec.name)
        return TableImport(
            spec,
            lambda: ObjectStorageWriter(self.client, self.config, key),
            bulk=bulk,
        )


__all__ = ["ObjectStorageSink"]
