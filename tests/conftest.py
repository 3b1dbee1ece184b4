"""Pytest fixtures for entity stores."""

import json
from typing import Dict, List, Optional, Tuple

import pytest

from osm_pbf2json.entities import EntityStore, Member, Node, Relation, Way
from osm_pbf2json.geo import Location


def build_store(
    nodes: Dict[int, Tuple[float, float]],
    ways: Optional[Dict[int, List[int]]] = None,
    relations: Optional[Dict[int, List[Tuple[str, int]]]] = None,
    tags: Optional[Dict[Tuple[str, int], Dict[str, str]]] = None,
) -> EntityStore:
    """Nodes are given as id -> (lon, lat), relation members as (type, ref)."""
    tags = tags or {}
    entities = []
    for node_id, pair in nodes.items():
        entities.append(
            Node(node_id, Location.from_pair(pair), tags.get(("node", node_id), {}))
        )
    for way_id, refs in (ways or {}).items():
        entities.append(Way(way_id, tuple(refs), tags.get(("way", way_id), {})))
    for relation_id, members in (relations or {}).items():
        entities.append(
            Relation(
                relation_id,
                tuple(Member(t, ref, "outer") for t, ref in members),
                tags.get(("relation", relation_id), {}),
            )
        )
    return EntityStore(entities)


@pytest.fixture
def store_builder():
    return build_store


@pytest.fixture
def triangle_store() -> EntityStore:
    """An open triangle way wrapped in a relation."""
    return build_store(
        nodes={1: (9, 50), 2: (9, 51), 3: (10, 51)},
        ways={10: [1, 2, 3]},
        relations={100: [("way", 10)]},
    )


@pytest.fixture
def district_store() -> EntityStore:
    """
    Two administrative districts side by side, with two streets of the same
    name, one in each district, and an address node.
    """
    return build_store(
        nodes={
            # west district 0..1 x 0..1
            1: (0, 0),
            2: (1, 0),
            3: (1, 1),
            4: (0, 1),
            # east district 1..2 x 0..1
            5: (2, 0),
            6: (2, 1),
            # street segments
            20: (0.2, 0.5),
            21: (0.5, 0.5),
            22: (0.8, 0.5),
            23: (1.2, 0.5),
            24: (1.8, 0.5),
            # address
            30: (0.5, 0.6),
        },
        ways={
            40: [1, 2, 3, 4, 1],
            41: [2, 5, 6, 3, 2],
            50: [20, 21],
            51: [21, 22],
            52: [23, 24],
            53: [20, 22],
        },
        relations={
            60: [("way", 40)],
            61: [("way", 41)],
        },
        tags={
            ("relation", 60): {
                "type": "boundary",
                "boundary": "administrative",
                "admin_level": "10",
                "name": "West",
            },
            ("relation", 61): {
                "type": "boundary",
                "boundary": "administrative",
                "admin_level": "10",
                "name": "East",
            },
            ("way", 50): {"highway": "residential", "name": "Main Street"},
            ("way", 51): {"highway": "residential", "name": "Main Street"},
            ("way", 52): {"highway": "residential", "name": "Main Street"},
            ("way", 53): {"highway": "footway"},
            ("node", 30): {
                "addr:street": "Main Street",
                "addr:housenumber": "5",
                "addr:city": "Springfield",
            },
        },
    )


OVERPASS_JSON = {
    "elements": [
        {"type": "node", "id": 1, "lat": 50.0, "lon": 9.0},
        {"type": "node", "id": 2, "lat": 51.0, "lon": 9.0},
        {"type": "node", "id": 3, "lat": 51.0, "lon": 10.0, "tags": {"amenity": "cafe"}},
        {"type": "way", "id": 10, "nodes": [1, 2, 3], "tags": {"highway": "residential"}},
        {
            "type": "relation",
            "id": 100,
            "members": [
                {"type": "way", "ref": 10, "role": "outer"},
                {"type": "area", "ref": 5, "role": ""},
            ],
            "tags": {"type": "multipolygon"},
        },
        {"type": "area", "id": 5},
    ]
}


@pytest.fixture
def overpass_json():
    """An Overpass style response, including an element type we do not read."""
    return OVERPASS_JSON


@pytest.fixture
def json_file(tmp_path, overpass_json):
    path = tmp_path / "extract.json"
    path.write_text(json.dumps(overpass_json), encoding="utf-8")
    return str(path)
