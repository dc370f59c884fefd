from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest
from fastavro import reader

from osm_sinks.errors import ConfigurationError, WritePathError
from osm_sinks.object_sink import ObjectStorageSink
from osm_sinks.writers import GCS_INTEROP_ENDPOINT, ObjectStoreConfig, parse_object_uri


@pytest.fixture(autouse=True)
def _clean_object_env(monkeypatch):
    for name in (
        "OBJECT_SINK_ENDPOINT_URL",
        "OBJECT_SINK_REGION",
        "OBJECT_SINK_ACCESS_KEY_ID",
        "OBJECT_SINK_SECRET_ACCESS_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_parse_object_uri_normalizes_prefix():
    assert parse_object_uri("s3://bucket/exports//osm/") == ("s3", "bucket", "exports/osm/")
    assert parse_object_uri("gs://bucket") == ("gs", "bucket", "")


@pytest.mark.parametrize("uri", ["", "ftp://bucket/x", "s3:///no-bucket", "/local/path"])
def test_parse_object_uri_rejects_other_locations(uri):
    with pytest.raises(ConfigurationError):
        parse_object_uri(uri)


def test_gs_uses_interoperability_endpoint():
    config = ObjectStoreConfig.from_uri("gs://bucket/exports/osm")
    assert config.endpoint_url == GCS_INTEROP_ENDPOINT
    assert config.uri("exports/osm/roads.avro") == "gs://bucket/exports/osm/roads.avro"


def test_s3_endpoint_and_credentials_from_environment(monkeypatch):
    monkeypatch.setenv("OBJECT_SINK_ENDPOINT_URL", "http://localhost:9000")
    monkeypatch.setenv("OBJECT_SINK_ACCESS_KEY_ID", "minio")
    monkeypatch.setenv("OBJECT_SINK_SECRET_ACCESS_KEY", "minio123")
    config = ObjectStoreConfig.from_uri("s3://bucket/exports")

    assert config.endpoint_url == "http://localhost:9000"
    assert config.access_key == "minio"
    assert config.secret_key == "minio123"
    assert config.prefix == "exports/"


def _capturing_client(uploads: dict) -> MagicMock:
    def _upload(filename, bucket, key):
        with open(filename, "rb") as fp:
            uploads[(bucket, key)] = list(reader(fp))
        uploads.setdefault("files", []).append(filename)

    client = MagicMock()
    client.upload_file.side_effect = _upload
    return client


def test_end_uploads_artifact_under_prefix(roads_specs, roads_match, main_street_element, main_street):
    tables, _ = roads_specs
    uploads: dict = {}
    sink = ObjectStorageSink(ObjectStoreConfig.from_uri("s3://bucket/exports"), tables, client=_capturing_client(uploads))
    sink.open()
    sink.begin_bulk()
    sink.insert_linestring(main_street_element, main_street, [roads_match])
    sink.end()

    records = uploads[("bucket", "exports/roads.avro")]
    assert [r["name"] for r in records] == ["Main St"]
    assert not any(os.path.exists(name) for name in uploads["files"])


def test_upload_failure_is_a_write_path_error(roads_specs):
    tables, _ = roads_specs
    client = MagicMock()
    client.upload_file.side_effect = OSError("connection reset")
    sink = ObjectStorageSink(ObjectStoreConfig.from_uri("s3://bucket"), tables, client=client)
    sink.begin_bulk()

    with pytest.raises(WritePathError, match="connection reset"):
        sink.end()
    filename = client.upload_file.call_args[0][0]
    assert client.upload_file.call_args[0][1:] == ("bucket", "roads.avro")
    assert not os.path.exists(filename)


def test_abort_discards_local_buffer(roads_specs):
    tables, _ = roads_specs
    client = MagicMock()
    sink = ObjectStorageSink(ObjectStoreConfig.from_uri("gs://bucket/osm"), tables, client=client)
    sink.begin_bulk()
    buffer_name = sink.tx.imports["roads"]._writer.handle.name
    sink.abort()

    client.upload_file.assert_not_called()
    assert not os.path.exists(buffer_name)
