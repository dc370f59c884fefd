from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastavro import reader
from shapely import wkb
from shapely.geometry import Point
from typer.testing import CliRunner

from osm_sinks.cli import app

runner = CliRunner()

CONFIG = """
sink:
  connection: "avro://{target}"
mapping:
  tables:
    pois:
      type: point
      columns:
        - name: id
          type: int64
        - name: name
          type: string
        - name: tags
          type: hstore_string
        - name: geometry
          type: geometry
"""


@pytest.fixture(autouse=True)
def _no_connection_override(monkeypatch):
    monkeypatch.delenv("OSM_SINKS_CONNECTION", raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "export.yaml"
    path.write_text(CONFIG.format(target=tmp_path / "out"))
    return path


def _rows_file(tmp_path: Path, rows) -> Path:
    path = tmp_path / "rows.jsonl"
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n")
    return path


def test_import_writes_artifacts(tmp_path, config_file):
    geometry = wkb.dumps(Point(13.4, 52.5)).hex()
    rows = _rows_file(
        tmp_path,
        [
            {"table": "pois", "row": [1, "Cafe", {"amenity": "cafe"}, geometry]},
            {"table": "pois", "row": [2, None, '"amenity"=>"bench"', geometry]},
        ],
    )

    result = runner.invoke(app, ["import", str(rows), "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    with (tmp_path / "out" / "pois.avro").open("rb") as fp:
        records = list(reader(fp))
    assert [r["id"] for r in records] == [1, 2]
    assert records[1]["tags"] == [{"key": "amenity", "value": "bench"}]


def test_import_into_unknown_table_fails(tmp_path, config_file):
    rows = _rows_file(tmp_path, [{"table": "roads", "row": [1]}])

    result = runner.invoke(app, ["import", str(rows), "--config", str(config_file)])

    assert result.exit_code == 1


def test_preview_command(tmp_path, config_file):
    rows = _rows_file(tmp_path, [{"table": "pois", "row": [1, "Cafe", None, None]}])
    runner.invoke(app, ["import", str(rows), "--config", str(config_file)])

    result = runner.invoke(app, ["preview", str(tmp_path / "out" / "pois.avro"), "--format", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["sample_rows"][0]["name"] == "Cafe"


def test_warehouse_commands_need_a_warehouse_sink(config_file):
    result = runner.invoke(app, ["generalize", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "do not support this command" in result.output


def test_missing_config_is_a_configuration_error(tmp_path):
    result = runner.invoke(app, ["init", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 2
