from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString

# Locations are compared in plain lon/lat degrees. Coordinates are rebuilt from
#   fixed-point storage in the source files, so exact float equality is too strict.

EQ_PRECISION = 1.0e-5


@dataclass(frozen=True, eq=False)
class Location:
    """A latitude/longitude pair in degrees."""

    lat: float
    lon: float

    @classmethod
    def from_pair(cls, pair: Tuple[float, float]) -> "Location":
        """Build a Location from a (lon, lat) pair."""
        return cls(lat=float(pair[1]), lon=float(pair[0]))

    def to_pair(self) -> Tuple[float, float]:
        return (self.lon, self.lat)

    def to_array(self) -> List[float]:
        # GeoJSON order, always [lon, lat]
        return [self.lon, self.lat]

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}

    def __eq__(self, other):
        if not isinstance(other, Location):
            return NotImplemented
        return approx_eq(self, other)

    __hash__ = None


def approx_eq(a: Location, b: Location) -> bool:
    """
    Tolerant equality of two Locations.
        Uses the planar distance between the two points in degrees, which is
        only meaningful as a local tolerance and not as a metric distance.
    """
    return float(np.hypot(a.lon - b.lon, a.lat - b.lat)) < EQ_PRECISION


@dataclass(frozen=True, eq=False)
class Bounds:
    """Axis-aligned box with north, south, east and west edges in degrees."""

    n: float
    s: float
    e: float
    w: float

    @classmethod
    def from_corners(cls, a: Location, b: Location) -> "Bounds":
        return cls(
            n=max(a.lat, b.lat),
            s=min(a.lat, b.lat),
            e=max(a.lon, b.lon),
            w=min(a.lon, b.lon),
        )

    @property
    def north_east(self) -> Location:
        return Location(lat=self.n, lon=self.e)

    @property
    def south_west(self) -> Location:
        return Location(lat=self.s, lon=self.w)

    def to_dict(self) -> Dict[str, float]:
        return {"n": self.n, "s": self.s, "e": self.e, "w": self.w}

    def __eq__(self, other):
        if not isinstance(other, Bounds):
            return NotImplemented
        return (
            self.north_east == other.north_east
            and self.south_west == other.south_west
        )

    __hash__ = None


def _as_array(locations: Sequence[Location]) -> np.ndarray:
    # rows of (lon, lat)
    return np.array([loc.to_pair() for loc in locations], dtype=float)


def centroid(locations: Sequence[Location]) -> Optional[Location]:
    """
    Arithmetic mean of a sequence of Locations.

    Args:
        locations: resolved geometry

    Returns:
        centroid: mean Location, or None for an empty sequence
    """
    if not locations:
        return None
    lon, lat = _as_array(locations).mean(axis=0)
    return Location(lat=float(lat), lon=float(lon))


def bounds(locations: Sequence[Location]) -> Optional[Bounds]:
    """
    Axis-aligned extent of a sequence of Locations.

    Args:
        locations: resolved geometry

    Returns:
        bounds: the enclosing Bounds, or None for an empty sequence
    """
    if not locations:
        return None
    coords = _as_array(locations)
    west, south = coords.min(axis=0)
    east, north = coords.max(axis=0)
    return Bounds(n=float(north), s=float(south), e=float(east), w=float(west))


def length(locations: Sequence[Location]) -> float:
    """Sum of planar distances between consecutive Locations, in degrees."""
    if len(locations) < 2:
        return 0.0
    return float(LineString([loc.to_pair() for loc in locations]).length)
