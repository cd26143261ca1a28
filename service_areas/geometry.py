"""
GeoJSON and shapely helpers shared by the resolver, composer and exporter.

All features handed around the pipeline are GeoJSON ``Feature`` dicts whose
geometry is a Polygon or MultiPolygon; ``ensure_feature`` is the single
place that enforces that.
"""
import json
import logging
import math
from typing import Optional

import shapely
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry

from .config import FALLBACK_RADIUS_KM

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.0
POLYGON_TYPES = ('Polygon', 'MultiPolygon')


def km_offsets(lat: float, km: float):
    """Degree offsets (d_lat, d_lon) for a distance in km at a latitude (equirectangular)."""
    d_lat = km / KM_PER_DEGREE
    d_lon = km / (KM_PER_DEGREE * math.cos(math.radians(lat)) or 1)
    return d_lat, d_lon


def meters_to_degrees(meters: float) -> float:
    return meters / (KM_PER_DEGREE * 1000.0)


def create_square_feature(lon: float, lat: float, km_radius: float = FALLBACK_RADIUS_KM) -> Optional[dict]:
    """Square polygon centred on a point, ``km_radius`` from centre to each side."""
    try:
        lon = float(lon)
        lat = float(lat)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None

    d_lat, d_lon = km_offsets(lat, km_radius)
    coords = [
        [lon - d_lon, lat - d_lat],
        [lon + d_lon, lat - d_lat],
        [lon + d_lon, lat + d_lat],
        [lon - d_lon, lat + d_lat],
        [lon - d_lon, lat - d_lat],
    ]
    return {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [coords]}, 'properties': {}}


def create_circle_feature(lon: float, lat: float, km_radius: float = FALLBACK_RADIUS_KM, steps: int = 64) -> Optional[dict]:
    """Circle approximated by ``steps`` vertices around a point."""
    try:
        lon = float(lon)
        lat = float(lat)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None

    d_lat, d_lon = km_offsets(lat, km_radius)
    coords = []
    for i in range(steps):
        angle = 2 * math.pi * i / steps
        coords.append([lon + d_lon * math.cos(angle), lat + d_lat * math.sin(angle)])
    coords.append(coords[0])
    return {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [coords]}, 'properties': {}}


def ensure_feature(geo) -> Optional[dict]:
    """
    Wrap a bare Polygon/MultiPolygon geometry as a Feature.

    Features are passed through when their geometry is polygonal; anything
    else (points, lines, empty payloads) gives None.
    """
    if not isinstance(geo, dict):
        return None
    if geo.get('type') == 'Feature':
        geometry = geo.get('geometry')
        if isinstance(geometry, dict) and geometry.get('type') in POLYGON_TYPES and geometry.get('coordinates'):
            if not isinstance(geo.get('properties'), dict):
                geo = dict(geo, properties={})
            return geo
        return None
    if geo.get('type') in POLYGON_TYPES and geo.get('coordinates'):
        return {'type': 'Feature', 'geometry': geo, 'properties': {}}
    return None


def feature_to_shape(feature: dict) -> Optional[BaseGeometry]:
    """Shapely geometry for a feature, repaired with buffer(0) when invalid."""
    try:
        geom = shape(feature['geometry'])
    except (KeyError, TypeError, ValueError, AttributeError, GEOSException) as e:
        logger.debug(f"Unreadable feature geometry: {e}")
        return None
    if geom.is_empty:
        return None
    if not geom.is_valid:
        geom = geom.buffer(0)
    return geom


def polygonal_part(geom: Optional[BaseGeometry]) -> Optional[BaseGeometry]:
    """Keep only the areal part of a geometry (intersections can yield lines or points)."""
    if geom is None or geom.is_empty:
        return None
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom
    if isinstance(geom, GeometryCollection):
        polys = []
        for part in geom.geoms:
            if isinstance(part, Polygon):
                polys.append(part)
            elif isinstance(part, MultiPolygon):
                polys.extend(part.geoms)
        if polys:
            return polys[0] if len(polys) == 1 else MultiPolygon(polys)
    return None


def shape_to_feature(geom: BaseGeometry, properties: Optional[dict] = None) -> dict:
    # to_geojson gives list coordinates, so features compare equal to their JSON round trip
    return {'type': 'Feature', 'geometry': json.loads(shapely.to_geojson(geom)), 'properties': dict(properties or {})}


def simplify_feature(feature: dict, tolerance_m: float) -> dict:
    """Topology-preserving simplification; the input is returned on failure."""
    geom = feature_to_shape(feature)
    if geom is None:
        return feature
    try:
        simplified = geom.simplify(meters_to_degrees(tolerance_m), preserve_topology=True)
    except GEOSException as e:
        logger.warning(f"Simplification failed, keeping original geometry: {e}")
        return feature
    if simplified.is_empty:
        return feature
    return shape_to_feature(simplified, feature.get('properties'))
