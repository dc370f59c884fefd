from __future__ import annotations

import pytest
from shapely import wkb
from shapely.geometry import Point

from osm_sinks.encoder import (
    encode_field,
    encode_row,
    encode_tags,
    parse_hstore,
    to_avro_record,
)
from osm_sinks.spec import FieldSpec


@pytest.mark.parametrize("logical_type", ["string", "bool", "int32", "int64", "float64", "geometry"])
def test_missing_values_encode_as_null_branch(logical_type):
    field = FieldSpec.from_column("col", logical_type)
    assert encode_field(field, None) == {"null": None}


def test_missing_tags_encode_as_the_array_default_not_null():
    field = FieldSpec.from_column("tags", "hstore_string")
    schema = field.avro_field_schema()

    assert schema["type"]["type"] == "array"
    assert schema["default"] == []
    assert encode_field(field, None) == schema["default"]
    assert encode_field(field, None) != {"null": None}


def test_present_scalars_are_wrapped_in_their_branch():
    assert encode_field(FieldSpec.from_column("id", "int64"), 5) == {"long": 5}
    assert encode_field(FieldSpec.from_column("layer", "int8"), "2") == {"int": 2}
    assert encode_field(FieldSpec.from_column("oneway", "bool"), 1) == {"boolean": True}
    assert encode_field(FieldSpec.from_column("width", "float32"), 1.5) == {"float": 1.5}
    assert encode_field(FieldSpec.from_column("name", "string"), "Main St") == {"string": "Main St"}


def test_parse_hstore_handles_nulls_and_escapes():
    parsed = parse_hstore('"highway"=>"residential", "name"=>NULL, "note"=>"say \\"hi\\""')
    assert parsed == {"highway": "residential", "name": None, "note": 'say "hi"'}


def test_parse_hstore_rejects_garbage():
    with pytest.raises(ValueError):
        parse_hstore('"highway"=>"residential" oops')


def test_encode_tags_accepts_mappings_and_text():
    expected = [{"key": "highway", "value": "residential"}]
    assert encode_tags({"highway": "residential"}) == expected
    assert encode_tags('"highway"=>"residential"') == expected
    assert encode_tags(b'"highway"=>"residential"') == expected
    assert encode_tags({"name": None}) == [{"key": "name", "value": ""}]


def test_unparseable_tags_become_empty_list():
    assert encode_tags("not an hstore") == []
    assert encode_tags(b"\xff\xfe") == []
    assert encode_tags(42) == []


def test_geometry_accepts_shapely_hex_and_bytes():
    field = FieldSpec.from_column("geometry", "geometry")
    raw = wkb.dumps(Point(1, 2))

    assert encode_field(field, Point(1, 2)) == {"bytes": raw}
    assert encode_field(field, raw.hex()) == {"bytes": raw}
    assert encode_field(field, raw) == {"bytes": raw}


def test_encode_row_requires_one_value_per_column(roads_spec):
    with pytest.raises(ValueError, match="row has 2 values, table defines 4 columns"):
        encode_row(roads_spec.fields, [1, "Main St"])


def test_encode_row_uses_external_names_and_writer_notation():
    fields = [FieldSpec.from_column("id", "int64"), FieldSpec.from_column("name:en", "string")]
    encoded = encode_row(fields, [7, None])

    assert encoded == {"id": {"long": 7}, "name_en": {"null": None}}
    assert to_avro_record(encoded) == {"id": ("long", 7), "name_en": ("null", None)}
