from __future__ import annotations

import json

from shapely import wkb

from osm_sinks.artifact_preview import collect_preview, render_preview
from osm_sinks.local_sink import LocalAvroSink


def _export(tmp_path, tables, match, element, geometry, count=3):
    sink = LocalAvroSink(tmp_path, tables)
    sink.open()
    sink.begin_bulk()
    for _ in range(count):
        sink.insert_linestring(element, geometry, [match])
    sink.end()
    return tmp_path / "roads.avro"


def test_preview_counts_records_and_samples(roads_specs, tmp_path, roads_match, main_street_element, main_street):
    tables, _ = roads_specs
    path = _export(tmp_path, tables, roads_match, main_street_element, main_street)

    preview = collect_preview(path, sample_rows=2)

    assert preview.table == "roads"
    assert preview.columns == ["id", "name", "tags", "geometry"]
    assert preview.record_count == 3
    assert len(preview.sample_rows) == 2


def test_render_json_shows_tags_and_hex_geometry(roads_specs, tmp_path, roads_match, main_street_element, main_street):
    tables, _ = roads_specs
    path = _export(tmp_path, tables, roads_match, main_street_element, main_street, count=1)

    payload = json.loads(render_preview(collect_preview(path, sample_rows=5), output_format="json"))

    row = payload["sample_rows"][0]
    assert payload["record_count"] == 1
    assert row["tags"] == "highway=residential"
    assert row["geometry"] == wkb.dumps(main_street).hex()


def test_render_table(roads_specs, tmp_path, roads_match, main_street_element, main_street):
    tables, _ = roads_specs
    path = _export(tmp_path, tables, roads_match, main_street_element, main_street, count=1)

    output = render_preview(collect_preview(path, sample_rows=5), output_format="table")

    assert output.startswith("roads (1 records)")
    assert "Main St" in output
