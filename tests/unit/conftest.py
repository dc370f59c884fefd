"""Shared table fixtures for unit tests."""
from __future__ import annotations

from types import SimpleNamespace

import pytest
from shapely.geometry import LineString

from osm_sinks.config import MappingConfig
from osm_sinks.spec import build_table_specs


ROADS_MAPPING = {
    "tables": {
        "roads": {
            "type": "linestring",
            "columns": [
                {"name": "id", "type": "int64"},
                {"name": "name", "type": "string"},
                {"name": "tags", "type": "hstore_string"},
                {"name": "geometry", "type": "geometry"},
            ],
        },
    },
    "generalized_tables": {
        # listed before its source on purpose
        "roads_gen0": {"source": "roads_gen1", "tolerance": 50},
        "roads_gen1": {"source": "roads", "tolerance": 10, "sql_filter": "type = 'motorway'"},
    },
}


@pytest.fixture
def roads_mapping() -> MappingConfig:
    return MappingConfig(**ROADS_MAPPING)


@pytest.fixture
def roads_specs(roads_mapping):
    return build_table_specs(roads_mapping.tables, roads_mapping.generalized_tables, "import", 3857)


@pytest.fixture
def roads_spec(roads_specs):
    tables, _ = roads_specs
    return tables["roads"]


@pytest.fixture
def main_street():
    return LineString([(0, 0), (1, 1)])


def make_match(table: str):
    """Match stub whose row builders return id, name, tags and geometry."""
    return SimpleNamespace(
        table=SimpleNamespace(name=table),
        row=lambda element, geometry: [element.id, element.name, element.tags, geometry],
        member_row=lambda relation, member, geometry: [member.id, relation.name, relation.tags, geometry],
    )


@pytest.fixture
def roads_match():
    return make_match("roads")


@pytest.fixture
def main_street_element():
    return SimpleNamespace(id=1, name="Main St", tags={"highway": "residential"})


@pytest.fixture
def match_for():
    return make_match
