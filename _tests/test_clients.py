"""
Unit tests for client records and stores.

Run with: python -m pytest _tests/test_clients.py -v
"""

import pytest

from service_areas.clients import (AppsScriptClientStore, CsvClientStore, build_client_record, detect_columns,
                                   parse_coordinate)
from service_areas.exceptions import ValidationError

CSV = (
    'Client Name,Industry,Location,Service Area,Latitude,Longitude\n'
    'Acme Plumbing,Plumbing,"Grand Rapids, MI","49503, 49504",42.96,-85.67\n'
    ',Roofing,Holland,49424,,\n'
    'Lakeshore Roofing,,Holland MI,"Holland, MI",abc,200\n'
)


class TestParsing:
    def test_coordinates_validated(self):
        assert parse_coordinate('42.96', -90, 90) == 42.96
        assert parse_coordinate(' "42.96" ', -90, 90) == 42.96
        assert parse_coordinate('91', -90, 90) is None
        assert parse_coordinate('nan', -90, 90) is None
        assert parse_coordinate('', -90, 90) is None
        assert parse_coordinate(float('nan'), -90, 90) is None

    def test_defaults_for_blank_fields(self):
        record = build_client_record('Acme', None, '', None)
        assert record.industry == 'Unknown'
        assert record.location == 'Unknown'
        assert record.service_area == ''
        assert not record.has_coordinates

    def test_missing_name_rejected(self):
        with pytest.raises(ValidationError):
            build_client_record('  ')

    def test_detect_columns(self):
        columns = detect_columns(['Client Name', 'Industry', 'Location', 'Service Area', 'Lat', 'Lng'])
        assert columns == {
            'name': 'Client Name', 'industry': 'Industry', 'location': 'Location',
            'service_area': 'Service Area', 'lat': 'Lat', 'lng': 'Lng',
        }

    def test_detect_columns_missing(self):
        columns = detect_columns(['Client', 'Zips'])
        assert columns['name'] == 'Client'
        assert columns['service_area'] is None


class TestCsvClientStore:
    def test_reads_rows_and_skips_nameless(self, tmp_path):
        path = tmp_path / 'clients.csv'
        path.write_text(CSV, encoding='utf-8')

        records = CsvClientStore(str(path)).fetch_all()
        assert [r.name for r in records] == ['Acme Plumbing', 'Lakeshore Roofing']

        acme = records[0]
        assert acme.location == 'Grand Rapids, MI'
        assert acme.service_area == '49503, 49504'
        assert (acme.lat, acme.lng) == (42.96, -85.67)

        lakeshore = records[1]
        assert lakeshore.industry == 'Unknown'
        assert lakeshore.lat is None
        assert lakeshore.lng is None

    def test_fetch_one(self, tmp_path):
        path = tmp_path / 'clients.csv'
        path.write_text(CSV, encoding='utf-8')
        store = CsvClientStore(str(path))

        assert store.fetch_one('Lakeshore Roofing').service_area == 'Holland, MI'
        assert store.fetch_one('Nobody') is None

    def test_no_name_column(self, tmp_path):
        path = tmp_path / 'clients.csv'
        path.write_text('Zip,Other\n49503,x\n', encoding='utf-8')
        with pytest.raises(ValidationError):
            CsvClientStore(str(path)).fetch_all()


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.params = None

    def get(self, url, params=None, timeout=None):
        self.params = params
        return FakeResponse(self.payload)


class TestAppsScriptClientStore:
    def test_rows_become_records(self):
        session = FakeSession({'success': True, 'data': [
            ['Acme Plumbing', 'Plumbing', 'Grand Rapids, MI', '49503', 42.96, -85.67],
            ['', 'Roofing'],
            ['Short Row', 'HVAC'],
        ]})
        records = AppsScriptClientStore('https://script.test/exec', session=session).fetch_all()

        assert session.params == {'action': 'getDatabase'}
        assert [r.name for r in records] == ['Acme Plumbing', 'Short Row']
        assert records[0].lat == 42.96
        assert records[1].service_area == ''

    def test_unsuccessful_payload(self):
        session = FakeSession({'success': False, 'error': 'nope'})
        with pytest.raises(ValidationError):
            AppsScriptClientStore('https://script.test/exec', session=session).fetch_all()
