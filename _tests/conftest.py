"""
Shared fixtures: fake providers and polygons so no test touches the network.
"""

import pytest

from service_areas.config import ResolverSettings
from service_areas.providers import ProviderResult
from service_areas.resolver import PolygonResolver

NO_WAIT = ResolverSettings(request_delay=0.0, max_retries=0, retry_wait=0.0, timeout=1.0)


def square(lon, lat, half=0.05, properties=None):
    """Axis-aligned square Feature centred on (lon, lat)."""
    ring = [
        [lon - half, lat - half],
        [lon + half, lat - half],
        [lon + half, lat + half],
        [lon - half, lat + half],
        [lon - half, lat - half],
    ]
    return {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [ring]}, 'properties': properties or {}}


class FakeProvider:
    """Provider returning canned results (or raising canned errors) per token."""

    def __init__(self, name, results=None, zip_only=False):
        self.name = name
        self.zip_only = zip_only
        self.results = results or {}
        self.calls = []

    def fetch(self, token):
        self.calls.append(token)
        result = self.results.get(token)
        if isinstance(result, Exception):
            raise result
        return result

    def geocode_point(self, text):
        self.calls.append(text)
        result = self.results.get(text)
        if isinstance(result, Exception):
            raise result
        return result if result is not None else (None, None)


@pytest.fixture
def square_feature():
    return square


@pytest.fixture
def provider_result():
    def _make(label, feature=None, lat=None, lon=None, source='fake'):
        return ProviderResult(label=label, feature=feature, lat=lat, lon=lon, source=source)
    return _make


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def make_resolver():
    def _make(primary, boundary=(), cache=None):
        return PolygonResolver(cache=cache, settings=NO_WAIT, primary=primary, boundary_providers=list(boundary))
    return _make
