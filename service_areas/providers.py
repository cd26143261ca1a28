"""
Geocoding and boundary providers used by the polygon resolver.

Every provider talks HTTP through ``call``, the resolver's paced invoker
(a geopy ``RateLimiter``), so pacing and retries are applied uniformly.
Transport problems surface as ``geopy.exc.GeocoderServiceError``
subclasses; a provider that simply has no answer returns None.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from geopy.exc import GeocoderParseError, GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.geocoders import Nominatim

from .config import HTTP_TIMEOUT, NOMINATIM_DOMAIN, NOMINATIM_USER_AGENT, OVERPASS_URL, TIGERWEB_ZCTA_URL
from .geometry import POLYGON_TYPES, ensure_feature
from .labels import build_label
from .normalizer import is_zip
from .osm import overpass_to_geojson

logger = logging.getLogger(__name__)


@dataclass
class ProviderResult:
    label: str
    feature: Optional[dict] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    source: str = ''

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


def build_session(user_agent: str = NOMINATIM_USER_AGENT) -> requests.Session:
    session = requests.Session()
    session.headers.update({'User-Agent': user_agent})
    return session


def get_json(session: requests.Session, url: str, params: Optional[dict] = None, timeout: float = HTTP_TIMEOUT):
    """GET a JSON document, translating failures into geopy service errors."""
    try:
        resp = session.get(url, params=params, timeout=timeout)
    except requests.Timeout as e:
        raise GeocoderTimedOut(f"Timed out calling {url}: {e}")
    except requests.RequestException as e:
        raise GeocoderUnavailable(f"Could not reach {url}: {e}")

    if resp.status_code != 200:
        raise GeocoderServiceError(f"HTTP {resp.status_code} from {url}")
    try:
        return resp.json()
    except ValueError as e:
        raise GeocoderParseError(f"Malformed JSON from {url}: {e}")


class NominatimProvider:
    """Place search followed by a polygon lookup for the matched OSM object."""

    name = 'nominatim'
    zip_only = False

    def __init__(self, call: Callable, geolocator=None, session: Optional[requests.Session] = None,
                 domain: str = NOMINATIM_DOMAIN, timeout: float = HTTP_TIMEOUT):
        self.call = call
        self.domain = domain
        self.timeout = timeout
        self.geolocator = geolocator or Nominatim(user_agent=NOMINATIM_USER_AGENT, domain=domain, timeout=timeout)
        self.session = session or build_session()

    def search(self, token: str):
        if is_zip(token):
            return self.call(self.geolocator.geocode, {'postalcode': token}, exactly_one=True, country_codes='us')
        return self.call(self.geolocator.geocode, f"{token}, United States", exactly_one=True)

    def lookup_polygon(self, osm_type: str, osm_id) -> Optional[dict]:
        prefix = {'relation': 'R', 'way': 'W'}.get(osm_type, 'N')
        params = {'osm_ids': f"{prefix}{osm_id}", 'format': 'json', 'polygon_geojson': 1}
        data = self.call(get_json, self.session, f"https://{self.domain}/lookup", params, self.timeout)
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return ensure_feature(data[0].get('geojson'))
        return None

    def fetch(self, token: str) -> Optional[ProviderResult]:
        location = self.search(token)
        if location is None:
            logger.info(f"No search results for: {token}")
            return None

        raw = location.raw or {}
        result = ProviderResult(
            label=build_label(token, raw.get('display_name')),
            lat=location.latitude,
            lon=location.longitude,
            source=self.name,
        )

        if raw.get('osm_type') and raw.get('osm_id'):
            try:
                result.feature = self.lookup_polygon(raw['osm_type'], raw['osm_id'])
            except GeocoderServiceError as e:
                logger.warning(f"Polygon lookup failed for {token}: {e}")
        if result.feature is None:
            logger.info(f"No polygon in lookup for: {token}")
        return result

    def geocode_point(self, text: str):
        location = self.call(self.geolocator.geocode, text, exactly_one=True)
        if location is None:
            return None, None
        return location.latitude, location.longitude


class OverpassProvider:
    """Postal-code boundary relations/ways from the Overpass API."""

    name = 'overpass'
    zip_only = True

    def __init__(self, call: Callable, session: Optional[requests.Session] = None,
                 url: str = OVERPASS_URL, timeout: float = HTTP_TIMEOUT):
        self.call = call
        self.url = url
        self.timeout = timeout
        self.session = session or build_session()

    @staticmethod
    def build_query(zip_code: str) -> str:
        return (
            '[out:json][timeout:10];('
            f'relation["postal_code"="{zip_code}"]["boundary"="postal_code"];'
            f'way["postal_code"="{zip_code}"]["boundary"="postal_code"];'
            ');out geom;'
        )

    def fetch(self, token: str) -> Optional[ProviderResult]:
        if not is_zip(token):
            return None
        data = self.call(get_json, self.session, self.url, {'data': self.build_query(token)}, self.timeout)
        elements = (data or {}).get('elements') or []
        if not elements:
            return None

        features = overpass_to_geojson(data)['features']
        if not features:
            return None

        tags = elements[0].get('tags') or {}
        city = tags.get('name') or tags.get('addr:city') or ''
        label = f"{city} {token}" if city and city != token else token
        return ProviderResult(label=label, feature=features[0], source=self.name)


class CensusZctaProvider:
    """ZIP Code Tabulation Area polygons from the Census TIGERweb service."""

    name = 'census'
    zip_only = True

    def __init__(self, call: Callable, session: Optional[requests.Session] = None,
                 url: str = TIGERWEB_ZCTA_URL, timeout: float = HTTP_TIMEOUT):
        self.call = call
        self.url = url
        self.timeout = timeout
        self.session = session or build_session()

    def fetch(self, token: str) -> Optional[ProviderResult]:
        if not is_zip(token):
            return None
        params = {'where': f"ZCTA5='{token}'", 'outFields': '*', 'outSR': 4326, 'f': 'geojson'}
        data = self.call(get_json, self.session, self.url, params, self.timeout)
        for feature in (data or {}).get('features') or []:
            if ((feature or {}).get('geometry') or {}).get('type') in POLYGON_TYPES:
                return ProviderResult(label=token, feature=ensure_feature(feature), source=self.name)
        return None
