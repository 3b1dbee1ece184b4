import logging
from typing import Iterator, List, Sequence, Set

import numpy as np

from .entities import NODE, RELATION, WAY, Entity, EntityStore, Member, Node, Relation, Way
from .geo import EQ_PRECISION, Location

# Turns ways and relations into ordered Location sequences.
#
# Relations may reference other relations, and OSM data does not guarantee the
#   reference graph is acyclic (administrative hierarchies nest boundaries and
#   sometimes loop back). Every top-level call keeps its own set of visited
#   relation ids and walks nested relations with an explicit stack, so neither a
#   cycle nor a deep hierarchy can exhaust the interpreter's recursion limit.

logger = logging.getLogger(__name__)


def resolve_way(store: EntityStore, way: Way) -> List[Location]:
    """
    Resolve a way to the Locations of its nodes.
        Node ids missing from the store are skipped. The sequence is returned
        as is, without closing or simplification.

    Args:
        store: entity store to look nodes up in
        way: the way to resolve

    Returns:
        locations: Locations of the way's nodes, in order
    """
    locations = []
    for node_id in way.nodes:
        node = store.node(node_id)
        if node is None:
            logger.debug(f"way/{way.id}: node/{node_id} not found, skipped")
            continue
        locations.append(node.location)
    return locations


def _walk_relation(store: EntityStore, relation: Relation) -> List[Location]:
    """Concatenate the Locations of all members, nested relations included."""
    visited: Set[int] = {relation.id}
    locations: List[Location] = []

    # a stack of member iterators stands in for the call stack
    stack: List[Iterator[Member]] = [iter(relation.members)]
    while stack:
        member = next(stack[-1], None)
        if member is None:
            stack.pop()
            continue

        target = store.get(member.type, member.ref)
        if target is None:
            logger.debug(
                f"relation/{relation.id}: {member.type}/{member.ref} not found, skipped"
            )
            continue

        if member.type == NODE:
            locations.append(target.location)

        elif member.type == WAY:
            locations.extend(resolve_way(store, target))

        elif member.type == RELATION:
            if target.id in visited:
                logger.debug(
                    f"relation/{relation.id}: relation/{target.id} already visited, skipped"
                )
                continue
            visited.add(target.id)
            stack.append(iter(target.members))

    return locations


def close_ring(locations: Sequence[Location]) -> List[Location]:
    """
    Close a sequence into a ring.
        A copy of the first point is appended unless the last point already
        coincides with it. Sequences without at least two distinct points are
        returned unchanged.
    """
    ring = list(locations)
    if not ring:
        return ring

    first = ring[0]
    if not any(loc != first for loc in ring[1:]):
        return ring

    if ring[-1] != first:
        ring.append(Location(lat=first.lat, lon=first.lon))
    return ring


def _distance_to_segment(point: Location, start: Location, end: Location) -> float:
    dx = end.lon - start.lon
    dy = end.lat - start.lat
    segment_sq = dx * dx + dy * dy

    if segment_sq == 0.0:
        t = 0.0
    else:
        t = ((point.lon - start.lon) * dx + (point.lat - start.lat) * dy) / segment_sq
        t = float(np.clip(t, 0.0, 1.0))

    return float(np.hypot(point.lon - (start.lon + t * dx), point.lat - (start.lat + t * dy)))


def remove_collinear(locations: Sequence[Location]) -> List[Location]:
    """
    Drop interior points lying on the segment between their neighbours.
        The first and last points are always kept. A point is compared against
        the last point kept so far, which lets runs of collinear points collapse
        to their two ends. Duplicated consecutive points are dropped as well.

    Args:
        locations: resolved geometry

    Returns:
        simplified: the geometry without redundant vertices
    """
    if len(locations) < 3:
        return list(locations)

    simplified = [locations[0]]
    for current, following in zip(locations[1:-1], locations[2:]):
        if _distance_to_segment(current, simplified[-1], following) >= EQ_PRECISION:
            simplified.append(current)
    simplified.append(locations[-1])
    return simplified


def resolve_relation(store: EntityStore, relation: Relation) -> List[Location]:
    """
    Resolve a relation to a closed, simplified ring.

    Args:
        store: entity store to look members up in
        relation: the relation to resolve

    Returns:
        locations: closed ring without collinear interior points; empty if
            none of the members could be found
    """
    locations = _walk_relation(store, relation)
    if not locations:
        logger.debug(f"relation/{relation.id} has no resolvable members")
        return []
    return remove_collinear(close_ring(locations))


def resolve(store: EntityStore, entity: Entity) -> List[Location]:
    """
    Resolve any entity to its Location sequence.

    Args:
        store: entity store to look references up in
        entity: Node, Way or Relation

    Returns:
        locations: a single Location for a node, the way's node Locations
            for a way, the closed ring for a relation
    """
    if isinstance(entity, Node):
        return [entity.location]
    elif isinstance(entity, Way):
        return resolve_way(store, entity)
    elif isinstance(entity, Relation):
        return resolve_relation(store, entity)
    raise TypeError(f"Cannot resolve {type(entity).__name__}")
