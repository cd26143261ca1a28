"""
Compose one client's resolved areas into a render bundle.

The bundle holds the merged coverage polygon, one outline per entry, the
pairwise overlap regions between entries and a pin position per entry. Any
geometry operation that fails for a pair is skipped so the client still
gets whatever could be computed.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from shapely.errors import GEOSException

from .config import FALLBACK_RADIUS_KM, SIMPLIFY_TOLERANCE_METERS
from .geometry import create_circle_feature, feature_to_shape, polygonal_part, shape_to_feature, simplify_feature
from .models import ResolvedArea

logger = logging.getLogger(__name__)

FALLBACK_LABEL = 'Location area'


@dataclass
class RenderBundle:
    union_feature: Optional[dict] = None
    per_entry_outlines: List[dict] = field(default_factory=list)
    overlap_features: List[dict] = field(default_factory=list)
    pin_centers: List[Tuple[float, float]] = field(default_factory=list)
    is_fallback: bool = False

    @property
    def is_empty(self) -> bool:
        return self.union_feature is None

    def to_dict(self) -> dict:
        return {
            'unionFeature': self.union_feature,
            'perEntryOutlines': self.per_entry_outlines,
            'overlapFeatures': self.overlap_features,
            'pinCenters': [[lat, lng] for lat, lng in self.pin_centers],
            'isFallback': self.is_fallback,
        }


def union_areas(areas: Sequence[ResolvedArea]) -> Optional[dict]:
    """
    Left-fold union of the areas' polygons in resolution order.

    A polygon that cannot be read or unioned is left out. A single area is
    returned unmodified.
    """
    if not areas:
        return None
    if len(areas) == 1:
        return areas[0].feature

    merged = None
    for area in areas:
        geom = feature_to_shape(area.feature)
        if geom is None:
            logger.warning(f"Skipping unreadable polygon for {area.token}")
            continue
        if merged is None:
            merged = geom
            continue
        try:
            merged = merged.union(geom)
        except GEOSException as e:
            logger.warning(f"Union failed for {area.token}, skipping: {e}")

    merged = polygonal_part(merged)
    if merged is None:
        return areas[0].feature
    return shape_to_feature(merged)


def overlap_features(areas: Sequence[ResolvedArea]) -> List[dict]:
    """Non-empty intersections for every pair i < j."""
    shapes = [feature_to_shape(area.feature) for area in areas]
    overlaps = []
    for i in range(len(areas)):
        for j in range(i + 1, len(areas)):
            a, b = shapes[i], shapes[j]
            if a is None or b is None:
                continue
            try:
                overlap = polygonal_part(a.intersection(b))
            except GEOSException as e:
                logger.debug(f"Intersection failed for {areas[i].token}/{areas[j].token}: {e}")
                continue
            if overlap is None or overlap.area <= 0:
                continue
            overlaps.append(shape_to_feature(overlap, {'entries': [areas[i].token, areas[j].token]}))
    return overlaps


def pin_centers(areas: Sequence[ResolvedArea]) -> List[Tuple[float, float]]:
    centers = []
    for area in areas:
        geom = feature_to_shape(area.feature)
        if geom is None:
            continue
        centroid = geom.centroid
        centers.append((centroid.y, centroid.x))
    return centers


def fallback_bundle(lat: Optional[float], lng: Optional[float],
                    km_radius: float = FALLBACK_RADIUS_KM) -> RenderBundle:
    """Circle around the client's own location, used when no entry resolved."""
    if lat is None or lng is None:
        return RenderBundle(is_fallback=True)
    feature = create_circle_feature(lng, lat, km_radius)
    if feature is None:
        return RenderBundle(is_fallback=True)
    feature['properties'] = {'label': FALLBACK_LABEL}
    return RenderBundle(
        union_feature=feature,
        per_entry_outlines=[feature],
        pin_centers=[(float(lat), float(lng))],
        is_fallback=True,
    )


def compose_service_area(areas: Sequence[ResolvedArea], client_lat: Optional[float] = None,
                         client_lng: Optional[float] = None,
                         simplify_tolerance_m: float = SIMPLIFY_TOLERANCE_METERS) -> RenderBundle:
    """
    Build the render bundle for one client.

    Args:
        areas: Resolved areas in resolution order
        client_lat: Client latitude, used only when no area resolved
        client_lng: Client longitude, used only when no area resolved
        simplify_tolerance_m: Simplification applied to a merged union

    Returns:
        RenderBundle; empty only when nothing resolved and the location is unknown
    """
    areas = list(areas)
    if not areas:
        logger.info("No service areas resolved, using location fallback")
        return fallback_bundle(client_lat, client_lng)

    union = union_areas(areas)
    if len(areas) > 1 and union is not None and simplify_tolerance_m:
        union = simplify_feature(union, simplify_tolerance_m)

    outlines = []
    for area in areas:
        outline = dict(area.feature)
        outline['properties'] = dict(area.feature.get('properties') or {}, label=area.label, entry=area.token)
        outlines.append(outline)

    return RenderBundle(
        union_feature=union,
        per_entry_outlines=outlines,
        overlap_features=overlap_features(areas),
        pin_centers=pin_centers(areas),
    )
