import json
import logging
from typing import IO, Dict, Iterable, Optional, Union

import geopandas as gpd
from shapely.geometry import LineString, MultiLineString, Point, Polygon
from shapely.geometry.base import BaseGeometry

from .items import Boundary, PointObject, ShapeObject, Street

# Writers for extracted objects: newline-delimited JSON records, or a GeoJSON
#   FeatureCollection built through a GeoDataFrame.

logger = logging.getLogger(__name__)

CRS = "epsg:4326"

Extracted = Union[PointObject, ShapeObject, Street, Boundary]


def to_record(obj: Extracted, retain_coordinates: bool = False) -> Dict:
    """JSON-serialisable record of an extracted object."""
    if isinstance(obj, (Street, Boundary)):
        return obj.to_record(retain_coordinates=retain_coordinates)
    return obj.to_record()


def write_json_lines(
    objects: Iterable[Extracted], stream: IO[str], retain_coordinates: bool = False
) -> int:
    """
    Write one JSON record per line.

    Args:
        objects: extracted objects
        stream: text stream to write to
        retain_coordinates: include full geometries of streets and boundaries

    Returns:
        count: number of records written
    """
    count = 0
    for obj in objects:
        stream.write(json.dumps(to_record(obj, retain_coordinates), ensure_ascii=False))
        stream.write("\n")
        count += 1
    logger.debug(f"{count} records written")
    return count


def _geometry(obj: Extracted) -> Optional[BaseGeometry]:
    if isinstance(obj, PointObject):
        return Point(obj.location.to_pair())

    if isinstance(obj, Boundary):
        return Polygon([loc.to_pair() for loc in obj.ring])

    if isinstance(obj, Street):
        parts = [[loc.to_pair() for loc in part] for part in obj.merged()]
        if not parts:
            return None
        if len(parts) == 1:
            return LineString(parts[0])
        return MultiLineString(parts)

    # shape objects carry their full geometry only when it was retained,
    # otherwise they are represented by their centroid
    coords = [loc.to_pair() for loc in obj.coordinates or []]
    if obj.area and len(coords) >= 4:
        return Polygon(coords)
    if len(coords) >= 2:
        return LineString(coords)
    if obj.centroid is not None:
        return Point(obj.centroid.to_pair())
    return None


def _properties(obj: Extracted) -> Dict:
    if isinstance(obj, Street):
        return {"name": obj.name, "boundary": obj.boundary, "length": obj.length}

    if isinstance(obj, Boundary):
        return {"osmid": obj.id, "name": obj.name, "admin_level": obj.admin_level}

    properties = {"osmid": obj.id, "element_type": obj.osm_type}
    # un-nest individual tags
    for key, value in obj.tags.items():
        properties.setdefault(key, value)
    return properties


def to_geodataframe(objects: Iterable[Extracted]) -> gpd.GeoDataFrame:
    """
    Collect extracted objects into a GeoDataFrame.
        Objects without any geometry are dropped.

    Args:
        objects: extracted objects

    Returns:
        gdf: GeoDataFrame of geometries and their associated properties
    """
    rows = {}
    for index, obj in enumerate(objects):
        geometry = _geometry(obj)
        if geometry is None or geometry.is_empty:
            logger.debug(f"{type(obj).__name__} {obj.id} has no geometry, skipped")
            continue
        row = _properties(obj)
        row["geometry"] = geometry
        rows[index] = row

    if not rows:
        logger.warning("No geometries to write: check filter tags and source.")
        return gpd.GeoDataFrame(geometry=[], crs=CRS)

    gdf = gpd.GeoDataFrame.from_dict(rows, orient="index", geometry="geometry", crs=CRS)
    logger.debug(f"{len(gdf)} geometries in the final GeoDataFrame")
    return gdf.reset_index(drop=True)


def write_geojson(objects: Iterable[Extracted], stream: IO[str]) -> int:
    """
    Write a GeoJSON FeatureCollection.

    Args:
        objects: extracted objects
        stream: text stream to write to

    Returns:
        count: number of features written
    """
    gdf = to_geodataframe(objects)
    # missing tags become NaN in the frame, keep them out of the properties
    stream.write(gdf.to_json(na="drop"))
    stream.write("\n")
    return len(gdf)
