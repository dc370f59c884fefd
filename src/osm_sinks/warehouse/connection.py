"""Parsing of ``bigquery://`` connection strings."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import ConfigurationError
from ..writers import parse_object_uri

SCHEME = "bigquery"


@dataclass(frozen=True)
class WarehouseConnection:
    project_id: Optional[str]
    staging_uri: str
    staging_bucket: str
    staging_prefix: str
    location: Optional[str] = None


def parse_connection_string(connection: str) -> WarehouseConnection:
    """Parse ``bigquery://ProjectId=...;TempGCSURI=gs://...[;Location=...]``.

    Keys are case-insensitive. ``TempGCSURI`` is required and names the GCS
    location where Avro files are staged before loading.
    """
    if not connection:
        raise ConfigurationError("connection string not specified")
    body = connection.strip()
    if not body.lower().startswith(f"{SCHEME}:"):
        raise ConfigurationError(f"{connection!r} is not a connection string in the format \"bigquery://...\"")
    body = body[len(SCHEME) + 1:]
    if body.startswith("//"):
        body = body[2:]

    params = {}
    for param in body.split(";"):
        key, sep, value = param.partition("=")
        if not sep:
            continue
        params[key.strip().lower()] = value.strip()

    staging_uri = params.get("tempgcsuri")
    if not staging_uri:
        raise ConfigurationError("TempGCSURI parameter not specified in the connection string")
    scheme, bucket, prefix = parse_object_uri(staging_uri)
    if scheme != "gs":
        raise ConfigurationError(f"TempGCSURI {staging_uri!r} is not a GCS URI in the format \"gs://...\"")

    return WarehouseConnection(
        project_id=params.get("projectid") or None,
        staging_uri=staging_uri,
        staging_bucket=bucket,
        staging_prefix=prefix,
        location=params.get("location") or None,
    )


__all__ = ["WarehouseConnection", "parse_connection_string"]
