"""Byte-stream destinations for per-table Avro artifacts."""
from __future__ import annotations

import os
import posixpath
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol
from urllib.parse import urlparse

import boto3
from botocore.client import BaseClient

from .errors import ConfigurationError

GCS_INTEROP_ENDPOINT = "https://storage.googleapis.com"
OBJECT_SCHEMES = ("s3", "gs")
ARTIFACT_EXTENSION = ".avro"


class RecordWriter(Protocol):
    """Open destination for one table's container file."""

    handle: BinaryIO

    @property
    def location(self) -> str:
        """URI or path of the finished artifact."""

    def close(self) -> None:
        """Flush and publish the artifact."""

    def discard(self) -> None:
        """Release resources without publishing."""


def artifact_name(prefix: str, table_name: str) -> str:
    return f"{prefix}{table_name}{ARTIFACT_EXTENSION}"


class LocalFileWriter(RecordWriter):
    """Writes an artifact straight to the local filesystem, truncating it."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.handle = self.path.open("wb")

    @property
    def location(self) -> str:
        return str(self.path)

    def close(self) -> None:
        if not self.handle.closed:
            self.handle.close()

    def discard(self) -> None:
        self.close()


@dataclass
class ObjectStoreConfig:
    scheme: str
    bucket: str
    prefix: str
    endpoint_url: str | None = None
    region: str | None = None
    access_key: str | None = None
    secret_key: str | None = None

    @classmethod
    def from_uri(cls, uri: str) -> "ObjectStoreConfig":
        """Parse ``s3://bucket/prefix`` or ``gs://bucket/prefix``; credentials come from the environment."""
        scheme, bucket, prefix = parse_object_uri(uri)
        endpoint = os.getenv("OBJECT_SINK_ENDPOINT_URL")
        if endpoint is None and scheme == "gs":
            endpoint = GCS_INTEROP_ENDPOINT
        return cls(
            scheme=scheme,
            bucket=bucket,
            prefix=prefix,
            endpoint_url=endpoint,
            region=os.getenv("OBJECT_SINK_REGION"),
            access_key=os.getenv("OBJECT_SINK_ACCESS_KEY_ID"),
            secret_key=os.getenv("OBJECT_SINK_SECRET_ACCESS_KEY"),
        )

    def uri(self, key: str) -> str:
        return f"{self.scheme}://{self.bucket}/{key}"


def parse_object_uri(uri: str) -> tuple[str, str, str]:
    """Split an object URI into scheme, bucket and a ``/``-terminated prefix."""
    if not uri:
        raise ConfigurationError("connection string not specified")
    parsed = urlparse(uri)
    if parsed.scheme not in OBJECT_SCHEMES or not parsed.netloc:
        raise ConfigurationError(
            f"{uri!r} is not an object store URI in the format \"gs://bucket/prefix\" "
            "or \"s3://bucket/prefix\""
        )
    path = parsed.path.strip("/")
    prefix = posixpath.normpath(path) + "/" if path else ""
    return parsed.scheme, parsed.netloc, prefix


def create_object_client(config: ObjectStoreConfig) -> BaseClient:
    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=config.endpoint_url,
        region_name=config.region,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
    )


class ObjectStorageWriter(RecordWriter):
    """Buffers an artifact in a temp file and uploads it on close."""

    def __init__(self, client: BaseClient, config: ObjectStoreConfig, key: str) -> None:
        self.client = client
        self.config = config
        self.key = key
        self.handle = tempfile.NamedTemporaryFile(mode="wb", suffix=ARTIFACT_EXTENSION, delete=False)
        self._published = False

    @property
    def location(self) -> str:
        return self.config.uri(self.key)

    def close(self) -> None:
        if self._published:
            raise RuntimeError(f"Object already published: {self.location}")
        self.handle.flush()
        os.fsync(self.handle.fileno())
        self.handle.close()
        try:
            self.client.upload_file(self.handle.name, self.config.bucket, self.key)
            self._published = True
        finally:
            os.remove(self.handle.name)

    def discard(self) -> None:
        if not self.handle.closed:
            self.handle.close()
        if os.path.exists(self.handle.name):
            os.remove(self.handle.name)


__all__ = [
    "RecordWriter",
    "LocalFileWriter",
    "ObjectStoreConfig",
    "ObjectStorageWriter",
    "artifact_name",
    "create_object_client",
    "parse_object_uri",
]
