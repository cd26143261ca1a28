"""
Tests for the export_service_areas command-line interface.

Run with: python -m pytest _tests/test_cli.py -v
"""

import json

import export_service_areas as cli
from service_areas.cache import JsonFileCache
from service_areas.models import ResolvedArea

from conftest import square

CSV = (
    'Client,Industry,Location,Service Area\n'
    'Acme Plumbing,Plumbing,"Grand Rapids, MI","49503, 00000"\n'
)


class TestCli:
    def test_no_command(self):
        assert cli.main([]) == 1

    def test_normalize(self, capsys):
        assert cli.main(['normalize', '49501, 49503, Grand Rapids, MI']) == 0
        assert capsys.readouterr().out.splitlines() == ['49501', '49503', 'Grand Rapids, MI']

    def test_clear_cache(self, tmp_path, capsys):
        path = str(tmp_path / 'cache.json')
        JsonFileCache(path).set('49503', ResolvedArea('49503', '49503', square(-85.67, 42.96)))

        assert cli.main(['clear-cache', '--cache', path]) == 0
        assert 'Cleared 1 cached entries' in capsys.readouterr().out
        assert len(JsonFileCache(path)) == 0

    def test_export_missing_source(self, tmp_path):
        assert cli.main(['export', '--source', str(tmp_path / 'missing.csv'), '--apps-script', '']) == 1

    def test_export(self, tmp_path, capsys, monkeypatch, make_resolver, fake_provider, provider_result):
        source = tmp_path / 'clients.csv'
        source.write_text(CSV, encoding='utf-8')
        output = tmp_path / 'data' / 'service-areas.json'
        copy = tmp_path / 'service-areas.json'
        primary = fake_provider('nominatim', {'49503': provider_result('Grand Rapids MI 49503', square(-85.67, 42.96))})
        monkeypatch.setattr(cli, 'build_batch_resolver', lambda: make_resolver(primary))

        code = cli.main(['export', '--source', str(source), '--output', str(output), '--also', str(copy)])

        assert code == 0
        bundle = json.loads(output.read_text(encoding='utf-8'))
        assert bundle['clientCount'] == 1
        assert [p['entry'] for p in bundle['clients'][0]['polygons']] == ['49503']
        assert json.loads(copy.read_text(encoding='utf-8')) == bundle
        assert 'Service-area polygons: 1' in capsys.readouterr().out
