"""
Client records and the stores they are read from.

The dashboard's database is a spreadsheet. It is read either as a CSV/Excel
export (local file or published-sheet URL) or through the Apps Script web
app's ``getDatabase`` action. Only reads are supported here.
"""
import logging
import math
import os
import re
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional

import pandas as pd
import requests

from .config import HTTP_TIMEOUT
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

# Header patterns, checked in order against the spreadsheet's first row
COLUMN_PATTERNS = {
    'name': re.compile(r'name|client', re.I),
    'industry': re.compile(r'industry', re.I),
    'location': re.compile(r'location', re.I),
    'service_area': re.compile(r'service.area|area', re.I),
    'lat': re.compile(r'lat', re.I),
    'lng': re.compile(r'lng|lon', re.I),
}


@dataclass
class ClientRecord:
    name: str
    industry: str = 'Unknown'
    location: str = 'Unknown'
    service_area: str = ''
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def to_dict(self) -> dict:
        return asdict(self)


def _clean(value) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and math.isnan(value):
        return ''
    return str(value).strip().strip('"').strip()


def parse_coordinate(value, low: float, high: float) -> Optional[float]:
    """Float within [low, high], or None for blanks and junk."""
    text = _clean(value)
    if not text:
        return None
    try:
        number = float(text)
    except (ValueError, TypeError):
        return None
    if not math.isfinite(number) or not low <= number <= high:
        return None
    return number


def build_client_record(name, industry=None, location=None, service_area=None, lat=None, lng=None) -> ClientRecord:
    """
    Build a ClientRecord from raw cell values.

    Raises:
        ValidationError: when the row has no client name
    """
    name = _clean(name)
    if not name:
        raise ValidationError("Client row has no name")
    return ClientRecord(
        name=name,
        industry=_clean(industry) or 'Unknown',
        location=_clean(location) or 'Unknown',
        service_area=_clean(service_area),
        lat=parse_coordinate(lat, -90, 90),
        lng=parse_coordinate(lng, -180, 180),
    )


def detect_columns(headers: Iterable[str]) -> dict:
    """Map each field to the first header matching its pattern (None when absent)."""
    headers = [str(h) for h in headers]
    columns = {}
    taken = set()
    for field_name, pattern in COLUMN_PATTERNS.items():
        columns[field_name] = None
        for header in headers:
            if header not in taken and pattern.search(header):
                columns[field_name] = header
                taken.add(header)
                break
    return columns


def records_from_dataframe(df: pd.DataFrame) -> List[ClientRecord]:
    """Client records for every row with a name; other rows are skipped."""
    columns = detect_columns(df.columns)
    if columns['name'] is None:
        raise ValidationError(f"No client name column in: {', '.join(map(str, df.columns))}")
    logger.info(f"Client columns: {columns}")

    records = []
    for idx, row in df.iterrows():
        values = {field_name: (row[col] if col is not None else None) for field_name, col in columns.items()}
        try:
            records.append(build_client_record(**values))
        except ValidationError as e:
            logger.warning(f"Skipping row {idx}: {e}")
    return records


def read_client_dataframe(source: str) -> pd.DataFrame:
    """
    Read CSV or Excel into a DataFrame; ``source`` may be a path or URL.
    """
    ext = os.path.splitext(source.split('?')[0])[1].lower()
    if ext in ('.xls', '.xlsx'):
        return pd.read_excel(source, dtype=str)
    return pd.read_csv(source, dtype=str)


class ClientStore:
    def fetch_all(self) -> List[ClientRecord]:
        raise NotImplementedError

    def fetch_one(self, name: str) -> Optional[ClientRecord]:
        for record in self.fetch_all():
            if record.name == name:
                return record
        return None


class CsvClientStore(ClientStore):
    """Clients from a CSV/Excel export or a published Google Sheet CSV URL."""

    def __init__(self, source: str):
        self.source = source

    def fetch_all(self) -> List[ClientRecord]:
        df = read_client_dataframe(self.source)
        logger.info(f"Read {len(df)} client rows from {self.source}")
        return records_from_dataframe(df)


class AppsScriptClientStore(ClientStore):
    """Clients from the Apps Script web app (``?action=getDatabase``)."""

    def __init__(self, url: str, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_all(self) -> List[ClientRecord]:
        resp = self.session.get(self.url, params={'action': 'getDatabase'}, timeout=self.timeout)
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict) or not payload.get('success') or not isinstance(payload.get('data'), list):
            raise ValidationError("Apps Script did not return client data")

        records = []
        for idx, cells in enumerate(payload['data']):
            cells = list(cells or []) + [None] * 6
            try:
                records.append(build_client_record(*cells[:6]))
            except ValidationError as e:
                logger.warning(f"Skipping row {idx}: {e}")
        logger.info(f"Fetched {len(records)} clients from Apps Script")
        return records
