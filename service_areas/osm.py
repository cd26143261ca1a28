"""
Convert Overpass ``out geom`` JSON into GeoJSON features.

Only areal output is produced: closed ways become Polygons and relations are
assembled from their member ways into (Multi)Polygons. Everything else is
dropped because the dashboard only draws areas.
"""
import logging
from typing import Dict, List, Optional, Tuple

from shapely.errors import GEOSException
from shapely.geometry import LineString, MultiPolygon, Polygon
from shapely.ops import polygonize, unary_union

from .geometry import polygonal_part, shape_to_feature

logger = logging.getLogger(__name__)


def _points(geometry) -> List[Tuple[float, float]]:
    points = []
    for pt in geometry or []:
        try:
            points.append((float(pt['lon']), float(pt['lat'])))
        except (KeyError, TypeError, ValueError):
            continue
    return points


def _way_polygon(element: Dict) -> Optional[Polygon]:
    points = _points(element.get('geometry'))
    if len(points) < 4 or points[0] != points[-1]:
        return None
    poly = Polygon(points)
    if not poly.is_valid:
        poly = poly.buffer(0)
    return None if poly.is_empty else poly


def _relation_polygon(element: Dict):
    """Assemble outer rings minus inner rings from the member way geometries."""
    outer_lines, inner_lines = [], []
    for member in element.get('members') or []:
        if member.get('type') != 'way':
            continue
        points = _points(member.get('geometry'))
        if len(points) < 2:
            continue
        target = inner_lines if member.get('role') == 'inner' else outer_lines
        target.append(LineString(points))

    if not outer_lines:
        return None

    try:
        outers = list(polygonize(unary_union(outer_lines)))
        if not outers:
            return None
        area = unary_union(outers)
        if inner_lines:
            inners = list(polygonize(unary_union(inner_lines)))
            if inners:
                area = area.difference(unary_union(inners))
    except GEOSException as e:
        logger.warning(f"Could not assemble relation {element.get('id')}: {e}")
        return None

    return polygonal_part(area)


def element_to_feature(element: Dict) -> Optional[dict]:
    el_type = element.get('type')
    if el_type == 'way':
        geom = _way_polygon(element)
    elif el_type == 'relation':
        geom = _relation_polygon(element)
    else:
        geom = None
    if geom is None or not isinstance(geom, (Polygon, MultiPolygon)):
        return None

    properties = dict(element.get('tags') or {})
    properties['id'] = f"{el_type}/{element.get('id')}"
    return shape_to_feature(geom, properties)


def overpass_to_geojson(data: Dict) -> Dict:
    """
    Convert an Overpass JSON response into a GeoJSON FeatureCollection.

    Args:
        data: Parsed Overpass response with an ``elements`` list

    Returns:
        FeatureCollection holding one feature per areal element, relations first
    """
    elements = (data or {}).get('elements') or []
    # Relations carry the full boundary; member ways are usually fragments of it
    ordered = sorted(elements, key=lambda el: 0 if el.get('type') == 'relation' else 1)

    features = []
    for element in ordered:
        feature = element_to_feature(element)
        if feature is not None:
            features.append(feature)
    return {'type': 'FeatureCollection', 'features': features}
