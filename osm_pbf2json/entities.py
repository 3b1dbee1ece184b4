import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from .geo import Location

logger = logging.getLogger(__name__)

NODE = "node"
WAY = "way"
RELATION = "relation"

ENTITY_TYPES = (NODE, WAY, RELATION)

# id numbers are only unique within entity types
EntityKey = Tuple[str, int]


@dataclass(frozen=True)
class Node:
    id: int
    location: Location
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> EntityKey:
        return (NODE, self.id)


@dataclass(frozen=True)
class Way:
    id: int
    nodes: Tuple[int, ...]
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> EntityKey:
        return (WAY, self.id)


@dataclass(frozen=True)
class Member:
    """A typed reference from a relation to another entity."""

    type: str
    ref: int
    role: str = ""

    @property
    def key(self) -> EntityKey:
        return (self.type, self.ref)


@dataclass(frozen=True)
class Relation:
    id: int
    members: Tuple[Member, ...]
    tags: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> EntityKey:
        return (RELATION, self.id)


Entity = Union[Node, Way, Relation]


class EntityStore:
    """
    Read-only lookup of entities by (type, id), in insertion order.
        The store is filled once when it is built and never changes afterwards,
        so it can be shared by any number of concurrent resolutions.
    """

    def __init__(self, entities: Iterable[Entity] = ()):
        items: Dict[EntityKey, Entity] = {}
        for entity in entities:
            items[entity.key] = entity
        self._items = MappingProxyType(items)

    def get(self, entity_type: str, entity_id: int) -> Optional[Entity]:
        return self._items.get((entity_type, entity_id))

    def node(self, node_id: int) -> Optional[Node]:
        return self._items.get((NODE, node_id))

    def way(self, way_id: int) -> Optional[Way]:
        return self._items.get((WAY, way_id))

    def relation(self, relation_id: int) -> Optional[Relation]:
        return self._items.get((RELATION, relation_id))

    def __getitem__(self, key: EntityKey) -> Entity:
        return self._items[key]

    def __contains__(self, key: EntityKey) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._items.values())


def _tags(element: Dict) -> Dict[str, str]:
    # JSONs created from XML assign tags={} to untagged elements
    return dict(element.get("tags") or {})


def element_to_entity(element: Dict) -> Optional[Entity]:
    """
    Convert a single element of an Overpass style JSON response to an Entity.

    Args:
        element: dict with at least "type" and "id", plus "lat"/"lon" for
            nodes, "nodes" for ways and "members" for relations

    Returns:
        entity: Node, Way or Relation, or None for unknown element types and
            nodes without coordinates
    """
    element_type = element.get("type")

    if element_type == NODE:
        # "out ids" and "out tags" responses carry nodes without coordinates
        if "lat" not in element or "lon" not in element:
            logger.debug(f"Skipping node/{element.get('id')} without coordinates")
            return None
        return Node(
            id=element["id"],
            location=Location(lat=float(element["lat"]), lon=float(element["lon"])),
            tags=_tags(element),
        )

    elif element_type == WAY:
        return Way(
            id=element["id"],
            nodes=tuple(element.get("nodes", [])),
            tags=_tags(element),
        )

    elif element_type == RELATION:
        members = tuple(
            Member(type=m["type"], ref=m["ref"], role=m.get("role", ""))
            for m in element.get("members", [])
            if m.get("type") in ENTITY_TYPES and "ref" in m
        )
        return Relation(id=element["id"], members=members, tags=_tags(element))

    logger.debug(f"Skipping element of unknown type {element_type!r}")
    return None


def json_to_store(response_json: Dict) -> EntityStore:
    """
    Build an EntityStore from an Overpass style JSON document.

    Args:
        response_json: dict including a list of "elements"

    Returns:
        store: EntityStore of all recognised elements
    """
    try:
        elements = response_json["elements"]
    except KeyError:
        raise ValueError("OSM json document has no 'elements'")

    entities = (element_to_entity(element) for element in elements)
    store = EntityStore(e for e in entities if e is not None)

    logger.debug(f"{len(store)} of {len(elements)} elements loaded into the store")
    return store
