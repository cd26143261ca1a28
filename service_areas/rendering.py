"""
Utility functions for drawing render bundles with folium
"""
import os
import uuid

import folium
from folium.plugins import StripePattern

from .composer import FALLBACK_LABEL, RenderBundle
from .config import DEFAULT_LAT, DEFAULT_LNG
from .exceptions import MapGenerationError

SERVICE_AREA_STYLE = {
    'color': '#e74c3c',
    'weight': 2,
    'fillColor': '#e74c3c',
    'fillOpacity': 0.25,
}
OVERLAP_STYLE = {
    'color': '#e74c3c',
    'weight': 2,
    'dashArray': '4 4',
    'fillOpacity': 1,
}
OVERLAP_STRIPES = {
    'angle': -45,
    'weight': 4,
    'space_weight': 4,
    'color': '#e74c3c',
    'opacity': 0.6,
}
OUTLINE_STYLE = {
    'color': '#e74c3c',
    'weight': 1,
    'opacity': 0.6,
    'dashArray': '6 4',
    'fillOpacity': 0,
}
PIN_COLOR = 'blue'


def add_render_bundle(map_obj, bundle: RenderBundle, client_name: str = ''):
    """
    Add a client's service-area layers to a map as one FeatureGroup.

    Returns the FeatureGroup so callers can toggle it.
    """
    group = folium.FeatureGroup(name=client_name or 'Service area')
    if bundle.is_empty:
        return group.add_to(map_obj)

    folium.GeoJson(
        bundle.union_feature,
        style_function=lambda feat: SERVICE_AREA_STYLE,
    ).add_to(group)

    if bundle.is_fallback:
        folium.GeoJson(
            bundle.union_feature,
            style_function=lambda feat: {'opacity': 0, 'fillOpacity': 0},
            tooltip=FALLBACK_LABEL,
        ).add_to(group)
    else:
        for outline in bundle.per_entry_outlines:
            folium.GeoJson(
                outline,
                style_function=lambda feat: OUTLINE_STYLE,
                tooltip=folium.GeoJsonTooltip(fields=['label'], labels=False),
            ).add_to(group)

        if bundle.overlap_features:
            # folium swaps the pattern object in place, so each call gets a fresh dict
            stripes = StripePattern(**OVERLAP_STRIPES).add_to(map_obj)
            for overlap in bundle.overlap_features:
                folium.GeoJson(
                    overlap,
                    style_function=lambda feat: {**OVERLAP_STYLE, 'fillPattern': stripes},
                ).add_to(group)

        for lat, lng in bundle.pin_centers:
            folium.Marker(
                location=[lat, lng],
                icon=folium.Icon(color=PIN_COLOR, icon='map-marker', prefix='fa'),
            ).add_to(group)

    return group.add_to(map_obj)


def create_service_area_map(bundle: RenderBundle, client_name: str = '', lat=None, lng=None):
    """
    Create a Folium Map showing one client's service area.
    Returns the Folium Map object.
    """
    try:
        center = [lat if lat is not None else DEFAULT_LAT, lng if lng is not None else DEFAULT_LNG]
        m = folium.Map(
            location=center,
            zoom_start=9,
            tiles="https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png",
            attr="©OpenStreetMap contributors ©CartoDB",
        )
        if lat is not None and lng is not None:
            folium.Marker(location=[lat, lng], popup=folium.Popup(client_name, max_width=200)).add_to(m)

        group = add_render_bundle(m, bundle, client_name)
        if not bundle.is_empty:
            bounds = group.get_bounds()
            if bounds and all(v is not None for corner in bounds for v in corner):
                m.fit_bounds(bounds, padding=(20, 20))
        return m
    except (ValueError, TypeError, KeyError) as e:
        raise MapGenerationError(f"Could not render service area for {client_name}: {e}")


def save_map_file(map_obj, output_folder: str):
    """
    Save a rendered map to a uniquely named HTML file and return (map_id, path).
    """
    os.makedirs(output_folder, exist_ok=True)
    map_id = str(uuid.uuid4())
    filepath = os.path.join(output_folder, f"{map_id}.html")
    map_obj.save(filepath)
    return map_id, filepath
