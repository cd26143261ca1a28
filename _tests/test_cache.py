"""
Unit tests for the resolution caches.

Tests:
1. MemoryCache successes and remembered failures
2. JsonFileCache persistence across instances
3. Corrupt or missing blobs behave as empty
4. clear() and seed()

Run with: python -m pytest _tests/test_cache.py -v
"""

import json

from service_areas.cache import JsonFileCache, MemoryCache
from service_areas.models import ResolvedArea

from conftest import square


def _area(token, label=None, lon=-85.67, lat=42.96):
    return ResolvedArea(token, label or token, square(lon, lat))


class TestMemoryCache:
    def test_set_and_get(self):
        cache = MemoryCache()
        area = _area('49503')
        cache.set('49503', area)
        assert cache.get('49503') is area
        assert cache.get('49504') is None
        assert len(cache) == 1

    def test_failures_ignored_unless_enabled(self):
        cache = MemoryCache()
        cache.mark_failed('00000')
        assert not cache.is_known_failure('00000')

    def test_failures_remembered_but_not_counted(self):
        cache = MemoryCache(remember_failures=True)
        cache.mark_failed('00000')
        assert cache.is_known_failure('00000')
        assert cache.get('00000') is None
        assert len(cache) == 0

    def test_clear(self):
        cache = MemoryCache(remember_failures=True)
        cache.seed([_area('49503'), _area('49504')])
        cache.mark_failed('00000')
        cache.clear()
        assert len(cache) == 0
        assert not cache.is_known_failure('00000')


class TestJsonFileCache:
    def test_round_trip_across_instances(self, tmp_path):
        path = str(tmp_path / 'cache' / 'service-area-cache.json')
        JsonFileCache(path).set('49503', _area('49503', 'Grand Rapids MI 49503'))

        area = JsonFileCache(path).get('49503')
        assert area == _area('49503', 'Grand Rapids MI 49503')

    def test_blob_layout(self, tmp_path):
        path = tmp_path / 'cache.json'
        JsonFileCache(str(path)).set('Holland, MI', _area('Holland, MI'))

        blob = json.loads(path.read_text(encoding='utf-8'))
        assert set(blob) == {'Holland, MI'}
        assert set(blob['Holland, MI']) == {'label', 'feature'}

    def test_missing_file_is_empty(self, tmp_path):
        cache = JsonFileCache(str(tmp_path / 'nope.json'))
        assert cache.get('49503') is None
        assert len(cache) == 0

    def test_corrupt_file_is_empty_and_recoverable(self, tmp_path):
        path = tmp_path / 'cache.json'
        path.write_text('{not json', encoding='utf-8')
        cache = JsonFileCache(str(path))

        assert cache.get('49503') is None
        cache.set('49503', _area('49503'))
        assert cache.get('49503') is not None

    def test_non_object_blob_is_empty(self, tmp_path):
        path = tmp_path / 'cache.json'
        path.write_text('[1, 2, 3]', encoding='utf-8')
        assert len(JsonFileCache(str(path))) == 0

    def test_unusable_entry_is_a_miss(self, tmp_path):
        path = tmp_path / 'cache.json'
        path.write_text(json.dumps({'49503': {'label': 'x', 'feature': {'type': 'Point', 'coordinates': [0, 0]}}}),
                        encoding='utf-8')
        assert JsonFileCache(str(path)).get('49503') is None

    def test_non_object_geometry_is_a_miss(self, tmp_path):
        path = tmp_path / 'cache.json'
        path.write_text(json.dumps({'49503': {'label': 'x', 'feature': {'type': 'Feature', 'geometry': [1, 2]}},
                                    '49504': 'not an entry'}),
                        encoding='utf-8')
        cache = JsonFileCache(str(path))
        assert cache.get('49503') is None
        assert cache.get('49504') is None

    def test_failures_never_persisted(self, tmp_path):
        path = tmp_path / 'cache.json'
        cache = JsonFileCache(str(path))
        cache.mark_failed('00000')
        assert not cache.is_known_failure('00000')
        assert not path.exists()

    def test_seed_and_clear(self, tmp_path):
        path = tmp_path / 'cache.json'
        cache = JsonFileCache(str(path))
        assert cache.seed([_area('49503'), _area('49504')]) == 2
        assert len(cache) == 2

        cache.clear()
        assert not path.exists()
        assert len(cache) == 0

    def test_clear_without_file(self, tmp_path):
        JsonFileCache(str(tmp_path / 'missing' / 'cache.json')).clear()
