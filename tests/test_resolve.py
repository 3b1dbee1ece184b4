"""Unit tests for way and relation resolution."""

import sys

from osm_pbf2json.entities import EntityStore, Member, Node, Relation, Way
from osm_pbf2json.geo import Location
from osm_pbf2json.resolve import close_ring, remove_collinear, resolve, resolve_way


def as_pairs(locations):
    return [loc.to_pair() for loc in locations]


def locations(*pairs):
    return [Location.from_pair(p) for p in pairs]


class TestResolveWay:
    def test_way_is_returned_unmodified(self, triangle_store):
        way = triangle_store.way(10)
        assert as_pairs(resolve_way(triangle_store, way)) == [(9, 50), (9, 51), (10, 51)]

    def test_missing_nodes_are_skipped(self, store_builder):
        store = store_builder(nodes={1: (9, 50), 3: (10, 51)}, ways={10: [1, 2, 3]})
        assert as_pairs(resolve(store, store.way(10))) == [(9, 50), (10, 51)]

    def test_way_without_any_known_node(self, store_builder):
        store = store_builder(nodes={}, ways={10: [1, 2, 3]})
        assert resolve(store, store.way(10)) == []

    def test_node_resolves_to_its_location(self, triangle_store):
        assert as_pairs(resolve(triangle_store, triangle_store.node(2))) == [(9, 51)]


class TestResolveRelation:
    def test_open_triangle_is_closed(self, triangle_store):
        ring = resolve(triangle_store, triangle_store.relation(100))
        assert as_pairs(ring) == [(9, 50), (9, 51), (10, 51), (9, 50)]

    def test_already_closed_ring_is_not_closed_twice(self, store_builder):
        store = store_builder(
            nodes={1: (9, 50), 2: (9, 51), 3: (10, 51), 4: (9.000001, 50.000001)},
            ways={10: [1, 2, 3, 4]},
            relations={100: [("way", 10)]},
        )
        ring = resolve(store, store.relation(100))
        assert len(ring) == 4
        assert ring[-1] == ring[0]

    def test_rectangle_midpoint_is_dropped(self, store_builder):
        store = store_builder(
            nodes={1: (0, 0), 2: (1, 0), 3: (2, 0), 4: (2, 1), 5: (0, 1)},
            ways={10: [1, 2, 3, 4, 5]},
            relations={100: [("way", 10)]},
        )
        ring = resolve(store, store.relation(100))
        assert as_pairs(ring) == [(0, 0), (2, 0), (2, 1), (0, 1), (0, 0)]

    def test_members_are_concatenated_in_order(self, store_builder):
        store = store_builder(
            nodes={1: (0, 0), 2: (1, 0), 3: (1, 1), 4: (0, 1)},
            ways={10: [1, 2], 11: [3, 4]},
            relations={100: [("way", 10), ("way", 11)]},
        )
        ring = resolve(store, store.relation(100))
        assert as_pairs(ring) == [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)]

    def test_node_members(self, store_builder):
        store = store_builder(
            nodes={1: (0, 0), 2: (1, 0), 3: (1, 1)},
            relations={100: [("node", 1), ("node", 2), ("node", 3)]},
        )
        ring = resolve(store, store.relation(100))
        assert as_pairs(ring) == [(0, 0), (1, 0), (1, 1), (0, 0)]

    def test_nested_relation(self, store_builder):
        store = store_builder(
            nodes={1: (0, 0), 2: (1, 0), 3: (1, 1)},
            ways={10: [1, 2], 11: [2, 3]},
            relations={100: [("way", 10), ("relation", 101)], 101: [("way", 11)]},
        )
        ring = resolve(store, store.relation(100))
        assert as_pairs(ring) == [(0, 0), (1, 0), (1, 1), (0, 0)]

    def test_cyclic_relations_terminate(self, store_builder):
        store = store_builder(
            nodes={1: (0, 0), 2: (1, 0), 3: (1, 1)},
            ways={10: [1, 2], 11: [2, 3]},
            relations={
                1: [("way", 10), ("relation", 2)],
                2: [("way", 11), ("relation", 1)],
            },
        )
        ring = resolve(store, store.relation(2))
        assert as_pairs(ring) == [(1, 0), (1, 1), (0, 0), (1, 0)]

    def test_self_reference(self, store_builder):
        store = store_builder(
            nodes={1: (0, 0), 2: (1, 0), 3: (1, 1)},
            ways={10: [1, 2, 3]},
            relations={1: [("relation", 1), ("way", 10)]},
        )
        ring = resolve(store, store.relation(1))
        assert as_pairs(ring) == [(0, 0), (1, 0), (1, 1), (0, 0)]

    def test_deep_hierarchy_does_not_hit_recursion_limit(self):
        depth = sys.getrecursionlimit() + 100
        entities = [
            Node(1, Location.from_pair((0, 0))),
            Node(2, Location.from_pair((1, 0))),
            Node(3, Location.from_pair((1, 1))),
            Way(10, (1, 2, 3)),
            Relation(depth, (Member("way", 10),)),
        ]
        for relation_id in range(1, depth):
            entities.append(Relation(relation_id, (Member("relation", relation_id + 1),)))

        store = EntityStore(entities)
        ring = resolve(store, store.relation(1))
        assert as_pairs(ring) == [(0, 0), (1, 0), (1, 1), (0, 0)]

    def test_no_resolvable_members(self, store_builder):
        store = store_builder(
            nodes={}, relations={100: [("way", 10), ("node", 1), ("relation", 7)]}
        )
        assert resolve(store, store.relation(100)) == []

    def test_single_point_is_not_closed(self, store_builder):
        store = store_builder(nodes={1: (0, 0)}, relations={100: [("node", 1)]})
        assert as_pairs(resolve(store, store.relation(100))) == [(0, 0)]


class TestCloseRing:
    def test_empty(self):
        assert close_ring([]) == []

    def test_repeated_point_is_not_a_ring(self):
        assert as_pairs(close_ring(locations((0, 0), (0, 0)))) == [(0, 0), (0, 0)]

    def test_appends_first_point(self):
        ring = close_ring(locations((0, 0), (1, 0), (1, 1)))
        assert as_pairs(ring) == [(0, 0), (1, 0), (1, 1), (0, 0)]


class TestRemoveCollinear:
    def test_keeps_corners(self):
        line = locations((0, 0), (1, 0), (1, 1))
        assert as_pairs(remove_collinear(line)) == [(0, 0), (1, 0), (1, 1)]

    def test_collapses_runs(self):
        line = locations((0, 0), (1, 0), (2, 0), (3, 0), (3, 1))
        assert as_pairs(remove_collinear(line)) == [(0, 0), (3, 0), (3, 1)]

    def test_drops_duplicates(self):
        line = locations((0, 0), (1, 0), (1, 0), (1, 1))
        assert as_pairs(remove_collinear(line)) == [(0, 0), (1, 0), (1, 1)]

    def test_keeps_spikes(self):
        # (2, 0) is collinear but not between its neighbours
        line = locations((0, 0), (2, 0), (1, 0))
        assert as_pairs(remove_collinear(line)) == [(0, 0), (2, 0), (1, 0)]

    def test_short_sequences(self):
        line = locations((0, 0), (1, 0))
        assert as_pairs(remove_collinear(line)) == [(0, 0), (1, 0)]
