"""
Geometry predicates for geofence checks

The engine never does spatial work inline; GeofenceDetector asks a
GeometryPredicate whether a point violates a fence.

    PolygonGeometryPredicate  - JSON polygons ([[lat, lng], ...]), GeoJSON
                                polygons and circles, evaluated in Python
    RPCGeometryPredicate      - delegates to a database function such as
                                PostGIS check_geofence_violation
"""

import json
from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Callable, List, Optional, Sequence, Tuple

from fraud_engine.exceptions import GeometryError
from fraud_engine.models import GeofenceType

EARTH_RADIUS_KM = 6371.0

Point = Tuple[float, float]  # (lat, lng)


@dataclass
class GeometryResult:
    is_violation: bool
    distance: Optional[float] = None  # km


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two GPS coordinates in kilometres"""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def coordinates(location: Any) -> Optional[Point]:
    """
    Extract (lat, lng) from a stored location.

    Accepts {"lat", "lng"}, {"latitude", "longitude"}, [lat, lng] and the
    JSON-encoded string of any of those. Returns None when unusable.
    """
    if location is None:
        return None
    if isinstance(location, str):
        try:
            location = json.loads(location)
        except ValueError:
            return None
    if isinstance(location, dict):
        lat = location.get("lat", location.get("latitude"))
        lng = location.get("lng", location.get("lon", location.get("longitude")))
    elif isinstance(location, (list, tuple)) and len(location) >= 2:
        lat, lng = location[0], location[1]
    else:
        return None
    if lat is None or lng is None:
        return None
    return float(lat), float(lng)


def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """Ray casting; polygon vertices as (lat, lng), closing vertex optional"""
    lat, lng = point
    inside = False
    n = len(polygon)
    j = n - 1
    for i in range(n):
        lat_i, lng_i = polygon[i]
        lat_j, lng_j = polygon[j]
        if (lng_i > lng) != (lng_j > lng):
            crossing = (lat_j - lat_i) * (lng - lng_i) / (lng_j - lng_i) + lat_i
            if lat < crossing:
                inside = not inside
        j = i
    return inside


class GeometryPredicate:
    """Point-vs-fence violation check"""

    def check(self, point: Point, geometry: Any, fence_type: GeofenceType) -> GeometryResult:
        raise NotImplementedError

    @staticmethod
    def violation(inside: bool, fence_type: GeofenceType) -> bool:
        # Inclusion fences flag points outside, exclusion fences flag points inside
        return not inside if fence_type == GeofenceType.INCLUSION else inside


class PolygonGeometryPredicate(GeometryPredicate):
    """Evaluates JSON geometries stored on the geofence row"""

    def check(self, point, geometry, fence_type):
        if isinstance(geometry, str):
            try:
                geometry = json.loads(geometry)
            except ValueError as e:
                raise GeometryError(f"Unparseable geofence geometry: {e}") from e

        if isinstance(geometry, dict) and "radius_km" in geometry:
            center = coordinates(geometry.get("center"))
            if center is None:
                raise GeometryError("Circle geofence without a center")
            distance = haversine_km(point[0], point[1], center[0], center[1])
            radius = float(geometry["radius_km"])
            return GeometryResult(
                is_violation=self.violation(distance <= radius, fence_type),
                distance=round(abs(distance - radius), 3),
            )

        polygon = self._polygon(geometry)
        if len(polygon) < 3:
            raise GeometryError("Polygon geofence needs at least 3 vertices")
        inside = point_in_polygon(point, polygon)
        nearest = min(haversine_km(point[0], point[1], lat, lng) for lat, lng in polygon)
        return GeometryResult(
            is_violation=self.violation(inside, fence_type),
            distance=round(nearest, 3),
        )

    @staticmethod
    def _polygon(geometry: Any) -> List[Point]:
        if isinstance(geometry, dict) and geometry.get("type") == "Polygon":
            # GeoJSON rings are [lng, lat]
            ring = geometry.get("coordinates", [[]])[0]
            return [(float(lat), float(lng)) for lng, lat in ring]
        if isinstance(geometry, (list, tuple)):
            points = [coordinates(vertex) for vertex in geometry]
            if any(p is None for p in points):
                raise GeometryError("Polygon geofence has invalid vertices")
            return points
        raise GeometryError(f"Unsupported geofence geometry: {type(geometry).__name__}")


class RPCGeometryPredicate(GeometryPredicate):
    """
    Delegates to a store-side function, e.g.

        rpc("check_geofence_violation",
            {"point_geog": "POINT(lng lat)", "fence_geog": ..., "fence_type": "inclusion"})

    which returns a row (or list of rows) with is_violation and distance.
    """

    def __init__(self, rpc: Callable[[str, dict], Any], function_name: str = "check_geofence_violation"):
        self.rpc = rpc
        self.function_name = function_name

    def check(self, point, geometry, fence_type):
        lat, lng = point
        result = self.rpc(
            self.function_name,
            {
                "point_geog": f"POINT({lng} {lat})",
                "fence_geog": geometry,
                "fence_type": fence_type.value,
            },
        )
        if isinstance(result, list):
            result = result[0] if result else None
        if not result:
            raise GeometryError(f"{self.function_name} returned no result")
        distance = result.get("distance")
        return GeometryResult(
            is_violation=bool(result.get("is_violation")),
            distance=float(distance) if distance is not None else None,
        )
