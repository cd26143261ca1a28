"""
Unit tests for GeoJSON helpers and Overpass conversion.

Tests:
1. Fallback square/circle construction (closed, centred, ~5 km)
2. ensure_feature wrapping and rejection
3. Overpass ways and relations become polygons

Run with: python -m pytest _tests/test_geometry.py -v
"""

import json
import math

import pytest
from shapely.geometry import Point, shape

from service_areas.geometry import (create_circle_feature, create_square_feature, ensure_feature,
                                    feature_to_shape, simplify_feature)
from service_areas.osm import overpass_to_geojson


class TestFallbackShapes:
    def test_square_is_closed_and_centred(self):
        feature = create_square_feature(-85.67, 42.96, 5)
        ring = feature['geometry']['coordinates'][0]
        assert feature['type'] == 'Feature'
        assert ring[0] == ring[-1]
        assert len(ring) == 5

        centroid = shape(feature['geometry']).centroid
        assert centroid.x == pytest.approx(-85.67)
        assert centroid.y == pytest.approx(42.96)

    def test_square_half_width_is_five_km(self):
        feature = create_square_feature(-85.67, 42.96, 5)
        ring = feature['geometry']['coordinates'][0]
        assert ring[2][1] - 42.96 == pytest.approx(5 / 111)
        assert ring[2][0] + 85.67 == pytest.approx(5 / (111 * math.cos(math.radians(42.96))))

    def test_square_accepts_string_coordinates(self):
        assert create_square_feature("-85.67", "42.96") is not None

    def test_square_rejects_bad_coordinates(self):
        assert create_square_feature(None, 42.0) is None
        assert create_square_feature("abc", 42.0) is None
        assert create_square_feature(float('nan'), 42.0) is None

    def test_circle_contains_centre(self):
        feature = create_circle_feature(-85.67, 42.96, 5)
        ring = feature['geometry']['coordinates'][0]
        assert ring[0] == ring[-1]
        assert len(ring) == 65
        assert shape(feature['geometry']).contains(Point(-85.67, 42.96))


class TestEnsureFeature:
    def test_bare_polygon_wrapped(self, square_feature):
        geometry = square_feature(-85.0, 42.0)['geometry']
        feature = ensure_feature(geometry)
        assert feature == {'type': 'Feature', 'geometry': geometry, 'properties': {}}

    def test_feature_passes_through(self, square_feature):
        feature = square_feature(-85.0, 42.0, properties={'ZCTA5': '49503'})
        assert ensure_feature(feature) is feature

    def test_feature_without_properties_gets_empty_dict(self, square_feature):
        feature = dict(square_feature(-85.0, 42.0))
        feature['properties'] = None
        assert ensure_feature(feature)['properties'] == {}

    @pytest.mark.parametrize("geo", [
        None,
        [],
        {'type': 'Point', 'coordinates': [-85.0, 42.0]},
        {'type': 'Feature', 'geometry': {'type': 'LineString', 'coordinates': [[0, 0], [1, 1]]}},
        {'type': 'Polygon', 'coordinates': []},
        {'type': 'Feature', 'geometry': [1, 2]},
        {'type': 'Feature', 'geometry': None},
    ])
    def test_non_polygons_rejected(self, geo):
        assert ensure_feature(geo) is None


class TestShapes:
    def test_bowtie_is_repaired(self):
        bowtie = {'type': 'Feature', 'properties': {}, 'geometry': {
            'type': 'Polygon', 'coordinates': [[[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]]}}
        geom = feature_to_shape(bowtie)
        assert geom.is_valid

    def test_unreadable_geometry(self):
        assert feature_to_shape({'type': 'Feature', 'geometry': None}) is None

    def test_simplify_keeps_label(self, square_feature):
        feature = square_feature(-85.0, 42.0, properties={'label': 'x'})
        simplified = simplify_feature(feature, 50)
        assert simplified['properties'] == {'label': 'x'}
        assert shape(simplified['geometry']).equals(shape(feature['geometry']))

    def test_simplified_feature_is_plain_json(self, square_feature):
        simplified = simplify_feature(square_feature(-85.0, 42.0, half=0.2), 50)
        assert isinstance(simplified['geometry']['coordinates'], list)
        assert isinstance(simplified['geometry']['coordinates'][0][0], list)
        assert json.loads(json.dumps(simplified)) == simplified


def _ring(coords):
    return [{'lon': lon, 'lat': lat} for lon, lat in coords]


class TestOverpassConversion:
    def test_closed_way_becomes_polygon(self):
        data = {'elements': [{
            'type': 'way', 'id': 7, 'tags': {'postal_code': '49503', 'boundary': 'postal_code'},
            'geometry': _ring([(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)]),
        }]}
        features = overpass_to_geojson(data)['features']
        assert len(features) == 1
        assert features[0]['geometry']['type'] == 'Polygon'
        assert features[0]['properties']['postal_code'] == '49503'
        assert features[0]['properties']['id'] == 'way/7'

    def test_open_way_dropped(self):
        data = {'elements': [{'type': 'way', 'id': 1, 'geometry': _ring([(0, 0), (1, 0), (1, 1)])}]}
        assert overpass_to_geojson(data)['features'] == []

    def test_relation_assembled_from_member_ways(self):
        relation = {
            'type': 'relation', 'id': 99, 'tags': {'name': 'Grand Rapids'},
            'members': [
                {'type': 'way', 'role': 'outer', 'geometry': _ring([(0, 0), (2, 0), (2, 2)])},
                {'type': 'way', 'role': 'outer', 'geometry': _ring([(2, 2), (0, 2), (0, 0)])},
                {'type': 'way', 'role': 'inner', 'geometry': _ring([(0.5, 0.5), (1, 0.5), (1, 1), (0.5, 1), (0.5, 0.5)])},
                {'type': 'node', 'role': 'label'},
            ],
        }
        features = overpass_to_geojson({'elements': [relation]})['features']
        assert len(features) == 1
        geom = shape(features[0]['geometry'])
        assert geom.area == pytest.approx(4 - 0.25)
        assert features[0]['properties']['name'] == 'Grand Rapids'

    def test_relations_listed_before_ways(self):
        way = {'type': 'way', 'id': 1, 'geometry': _ring([(5, 5), (6, 5), (6, 6), (5, 6), (5, 5)])}
        relation = {'type': 'relation', 'id': 2, 'members': [
            {'type': 'way', 'role': 'outer', 'geometry': _ring([(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)])},
        ]}
        features = overpass_to_geojson({'elements': [way, relation]})['features']
        assert [f['properties']['id'] for f in features] == ['relation/2', 'way/1']

    def test_empty_response(self):
        assert overpass_to_geojson({}) == {'type': 'FeatureCollection', 'features': []}
        assert overpass_to_geojson(None)['features'] == []
