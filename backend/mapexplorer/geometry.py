# mapexplorer/geometry.py
from __future__ import annotations

from typing import Dict, List, Tuple

from pyproj import Geod
from shapely.geometry import LineString, Point, Polygon, box, mapping

from .models import DrawingMode, MapFeature

_GEOD = Geod(ellps="WGS84")

CIRCLE_SEGMENTS = 64


def _lnglat(feature: MapFeature) -> List[Tuple[float, float]]:
    return [(c.lng, c.lat) for c in feature.coordinates]


def circle_radius_m(feature: MapFeature) -> float:
    (lng1, lat1), (lng2, lat2) = _lnglat(feature)[:2]
    _, _, dist = _GEOD.inv(lng1, lat1, lng2, lat2)
    return abs(dist)


def _circle_polygon(feature: MapFeature) -> Polygon:
    lng, lat = _lnglat(feature)[0]
    radius = circle_radius_m(feature)
    ring = []
    for i in range(CIRCLE_SEGMENTS):
        az = 360.0 * i / CIRCLE_SEGMENTS
        x, y, _ = _GEOD.fwd(lng, lat, az, radius)
        ring.append((x, y))
    return Polygon(ring)


def feature_geometry(feature: MapFeature):
    """Shapely geometry (lng/lat order) for an annotation."""
    coords = _lnglat(feature)
    kind = feature.kind
    if kind == DrawingMode.POINT:
        return Point(coords[0])
    if kind == DrawingMode.LINE:
        return LineString(coords)
    if kind == DrawingMode.POLYGON:
        return Polygon(coords)
    if kind == DrawingMode.RECTANGLE:
        (x1, y1), (x2, y2) = coords[:2]
        return box(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))
    if kind == DrawingMode.CIRCLE:
        return _circle_polygon(feature)
    raise ValueError(f"Unsupported feature kind: {kind}")


def feature_geojson_geometry(feature: MapFeature) -> Dict:
    return mapping(feature_geometry(feature))


def measure_feature(feature: MapFeature) -> Dict[str, float]:
    """Geodesic length/area figures shown alongside an annotation."""
    kind = feature.kind
    if kind == DrawingMode.POINT:
        return {}

    geom = feature_geometry(feature)
    if kind == DrawingMode.LINE:
        return {'length_m': round(_GEOD.geometry_length(geom), 2)}

    area, perimeter = _GEOD.geometry_area_perimeter(geom)
    measures = {
        'area_ha': round(abs(area) / 10000.0, 4),
        'perimeter_m': round(abs(perimeter), 2),
    }
    if kind == DrawingMode.CIRCLE:
        measures['radius_m'] = round(circle_radius_m(feature), 2)
    return measures
