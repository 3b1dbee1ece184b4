import logging
from collections import defaultdict
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from shapely.geometry import LineString, Point, Polygon
from shapely.ops import linemerge

from . import geo
from .entities import RELATION, WAY, Entity, EntityStore, Node, Relation, Way
from .filter import Group, matches
from .geo import Bounds, Location
from .lookups import (
    ADDRESS_PREFIX,
    ADMINISTRATIVE_BOUNDARY,
    AREA_FEATURES,
    STREET_HIGHWAY_VALUES,
)
from .resolve import resolve, resolve_way

# Composition layer: combines the tag filter with the resolver to produce the
#   objects written out or sent to the search index.

logger = logging.getLogger(__name__)


def is_area(tags: Mapping[str, str], area_features: Optional[Dict] = None) -> bool:
    """
    Determine whether a closed way's tags describe an area, not a line.
        Closed ways may represent lines (e.g. a roundabout or a hedge round a
        field) or areas (e.g. a building footprint) depending on their tags.
        Any area type tagging makes an area, unless explicitly tagged area=no.

    Args:
        tags: the way's tags
        area_features: dict of tag keys with associated values and blocklist/passlist

    Returns:
        True if the tags are for an area
    """
    if area_features is None:
        area_features = AREA_FEATURES

    if not tags or tags.get("area") == "no":
        return False

    for key in tags.keys() & area_features.keys():
        rule = area_features[key]
        value = tags[key]

        if rule["polygon"] == "all":
            return True
        elif rule["polygon"] == "blocklist" and value not in rule["values"]:
            return True
        elif rule["polygon"] == "passlist" and value in rule["values"]:
            return True

    return False


def address_parts(tags: Mapping[str, str], prefix: str = ADDRESS_PREFIX) -> Dict[str, str]:
    """
    Flatten address tags to their last colon-delimited segment.
        e.g. {"addr:city": "Berlin"} -> {"city": "Berlin"}

    Args:
        tags: the entity's tags
        prefix: keys starting with this prefix are address tags

    Returns:
        parts: address attributes keyed by their last key segment
    """
    parts = {}
    for key, value in tags.items():
        if key.startswith(prefix):
            segments = [s for s in key.split(":") if s]
            if segments:
                parts[segments[-1]] = value
    return parts


@dataclass(frozen=True)
class PointObject:
    id: int
    location: Location
    tags: Mapping[str, str] = field(default_factory=dict)

    osm_type = "node"

    @property
    def address(self) -> Dict[str, str]:
        return address_parts(self.tags)

    def to_record(self) -> Dict:
        return {
            "id": self.id,
            "type": self.osm_type,
            "tags": dict(self.tags),
            "lat": self.location.lat,
            "lon": self.location.lon,
        }


@dataclass(frozen=True)
class ShapeObject:
    id: int
    osm_type: str
    centroid: Optional[Location]
    bounds: Optional[Bounds]
    tags: Mapping[str, str] = field(default_factory=dict)
    area: bool = False
    # only kept when asked for, large rings are expensive to hold for every object
    coordinates: Optional[List[Location]] = None

    @property
    def address(self) -> Dict[str, str]:
        return address_parts(self.tags)

    def to_record(self) -> Dict:
        record = {
            "id": self.id,
            "type": self.osm_type,
            "tags": dict(self.tags),
            "centroid": self.centroid.to_dict() if self.centroid else None,
            "bounds": self.bounds.to_dict() if self.bounds else None,
        }
        if self.coordinates is not None:
            record["coordinates"] = [loc.to_array() for loc in self.coordinates]
        return record


GeoObject = Union[PointObject, ShapeObject]


def _shape_object(
    store: EntityStore, entity: Union[Way, Relation], retain_coordinates: bool
) -> ShapeObject:
    locations = resolve(store, entity)

    if isinstance(entity, Way):
        osm_type = WAY
        closed = len(entity.nodes) > 1 and entity.nodes[0] == entity.nodes[-1]
        area = closed and is_area(entity.tags)
    else:
        osm_type = RELATION
        area = len(locations) > 3

    return ShapeObject(
        id=entity.id,
        osm_type=osm_type,
        centroid=geo.centroid(locations),
        bounds=geo.bounds(locations),
        tags=entity.tags,
        area=area,
        coordinates=locations if retain_coordinates else None,
    )


def classify(
    store: EntityStore, entity: Entity, retain_coordinates: bool = False
) -> GeoObject:
    """
    Turn an entity into a point or shape object.

    Args:
        store: entity store used to resolve ways and relations
        entity: Node, Way or Relation
        retain_coordinates: keep the full resolved geometry on shape objects

    Returns:
        obj: PointObject for nodes, ShapeObject for ways and relations
    """
    if isinstance(entity, Node):
        return PointObject(id=entity.id, location=entity.location, tags=entity.tags)
    return _shape_object(store, entity, retain_coordinates)


def extract_objects(
    store: EntityStore,
    groups: Optional[List[Group]] = None,
    entities: Optional[Iterable[Entity]] = None,
    retain_coordinates: bool = False,
) -> Iterator[GeoObject]:
    """
    Filter entities by their tags and classify the selected ones.

    Args:
        store: entity store used for resolution
        groups: parsed filter groups, None selects every tagged entity
        entities: entities to consider, defaults to every entity in the store
        retain_coordinates: keep the full resolved geometry on shape objects

    Yields:
        obj: PointObject or ShapeObject for each selected entity
    """
    if entities is None:
        entities = store

    selected = 0
    for entity in entities:
        if not entity.tags:
            continue
        if groups is not None and not matches(entity.tags, groups):
            continue
        selected += 1
        yield classify(store, entity, retain_coordinates)

    logger.info(f"{selected} objects extracted")


@dataclass(frozen=True)
class Boundary:
    id: int
    name: str
    admin_level: int
    ring: List[Location]

    @property
    def centroid(self) -> Optional[Location]:
        return geo.centroid(self.ring)

    @property
    def bounds(self) -> Optional[Bounds]:
        return geo.bounds(self.ring)

    @cached_property
    def polygon(self) -> Polygon:
        return Polygon([loc.to_pair() for loc in self.ring])

    def contains(self, location: Location) -> bool:
        return self.polygon.contains(Point(location.to_pair()))

    def to_record(self, retain_coordinates: bool = True) -> Dict:
        record = {
            "id": self.id,
            "name": self.name,
            "admin_level": self.admin_level,
            "centroid": self.centroid.to_dict() if self.centroid else None,
            "bounds": self.bounds.to_dict() if self.bounds else None,
        }
        if retain_coordinates:
            record["coordinates"] = [loc.to_array() for loc in self.ring]
        return record


def _admin_level(tags: Mapping[str, str]) -> Optional[int]:
    try:
        return int(tags.get("admin_level", ""))
    except ValueError:
        return None


def extract_boundaries(
    store: EntityStore,
    levels: Optional[Sequence[int]] = None,
    groups: Optional[List[Group]] = None,
) -> List[Boundary]:
    """
    Collect the named administrative boundaries of the store.
        Member roles are not looked at. Nodes such as admin_centre or label
        members, and subarea relations, become part of the ring, which can
        distort the polygon used by Boundary.contains.

    Args:
        store: entity store to search
        levels: admin levels to keep, None keeps all of them
        groups: parsed filter groups the relation tags must also match

    Returns:
        boundaries: Boundary objects whose ring encloses an area
    """
    boundaries = []
    for entity in store:
        if not isinstance(entity, Relation):
            continue

        tags = entity.tags
        if tags.get("boundary") != ADMINISTRATIVE_BOUNDARY or "name" not in tags:
            continue
        if groups is not None and not matches(tags, groups):
            continue

        admin_level = _admin_level(tags)
        if admin_level is None:
            logger.debug(f"relation/{entity.id} has no numeric admin_level, skipped")
            continue
        if levels is not None and admin_level not in levels:
            continue

        ring = resolve(store, entity)
        # a closed ring needs at least three corners plus the closing point
        if len(ring) < 4:
            logger.debug(f"relation/{entity.id} does not resolve to a ring, skipped")
            continue

        boundaries.append(
            Boundary(id=entity.id, name=tags["name"], admin_level=admin_level, ring=ring)
        )

    logger.info(f"{len(boundaries)} administrative boundaries extracted")
    return boundaries


@dataclass(frozen=True)
class Street:
    name: str
    way_ids: List[int]
    segments: List[List[Location]]
    boundary: Optional[str] = None

    @property
    def id(self) -> int:
        return min(self.way_ids)

    @property
    def length(self) -> float:
        return sum(geo.length(segment) for segment in self.segments)

    @property
    def centroid(self) -> Optional[Location]:
        return geo.centroid([loc for segment in self.segments for loc in segment])

    def merged(self) -> List[List[Location]]:
        """Join segments sharing end points into as few lines as possible."""
        lines = [
            LineString([loc.to_pair() for loc in segment])
            for segment in self.segments
            if len(segment) > 1
        ]
        if not lines:
            return []

        merged = linemerge(lines)
        if merged.geom_type == "LineString":
            parts = [merged]
        else:
            parts = list(merged.geoms)
        return [[Location.from_pair(c) for c in part.coords] for part in parts]

    def to_record(self, retain_coordinates: bool = False) -> Dict:
        record = {
            "id": self.id,
            "name": self.name,
            "boundary": self.boundary,
            "length": self.length,
            "centroid": self.centroid.to_dict() if self.centroid else None,
        }
        if retain_coordinates:
            record["coordinates"] = [
                [loc.to_array() for loc in part] for part in self.merged()
            ]
        return record


def _enclosing_boundary(
    location: Optional[Location], boundaries: Sequence[Boundary]
) -> Optional[Boundary]:
    # boundaries are sorted most specific (highest admin level) first
    if location is None:
        return None
    for boundary in boundaries:
        if boundary.contains(location):
            return boundary
    return None


def extract_streets(
    store: EntityStore,
    boundaries: Optional[Sequence[Boundary]] = None,
    groups: Optional[List[Group]] = None,
) -> List[Street]:
    """
    Aggregate named highway ways into streets.
        Ways sharing a name are grouped into one street. When boundaries are
        given, each way is assigned to the most specific boundary containing
        its centroid, and streets are grouped by name within each boundary.
        Ways outside every boundary are dropped in that case.

    Args:
        store: entity store to search
        boundaries: administrative boundaries to scope streets to
        groups: parsed filter groups the way tags must also match

    Returns:
        streets: one Street per (name, boundary) pair
    """
    scoped = boundaries is not None
    if scoped:
        boundaries = sorted(boundaries, key=lambda b: b.admin_level, reverse=True)

    way_ids = defaultdict(list)
    segments = defaultdict(list)
    for entity in store:
        if not isinstance(entity, Way):
            continue

        name = entity.tags.get("name")
        if not name or entity.tags.get("highway") not in STREET_HIGHWAY_VALUES:
            continue
        if groups is not None and not matches(entity.tags, groups):
            continue

        locations = resolve_way(store, entity)
        if len(locations) < 2:
            continue

        boundary_name = None
        if scoped:
            boundary = _enclosing_boundary(geo.centroid(locations), boundaries)
            if boundary is None:
                logger.debug(f"way/{entity.id} lies outside every boundary, skipped")
                continue
            boundary_name = boundary.name

        way_ids[(name, boundary_name)].append(entity.id)
        segments[(name, boundary_name)].append(locations)

    streets = []
    for (name, boundary_name), ids in way_ids.items():
        streets.append(
            Street(
                name=name,
                boundary=boundary_name,
                way_ids=ids,
                segments=segments[(name, boundary_name)],
            )
        )

    logger.info(f"{len(streets)} streets extracted")
    return streets
