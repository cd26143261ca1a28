"""
Runtime configuration for the service-area pipeline.

Values come from the environment (optionally a ``.env`` file at the project
root) with defaults that work for local development.
"""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))

# Load environment variables from .env file
load_dotenv(os.path.join(basedir, '.env'))

DEBUG = os.environ.get('DEBUG', 'False').lower() == 'true'

# Providers
NOMINATIM_USER_AGENT = os.environ.get('NOMINATIM_USER_AGENT', 'ClientDashboard-ServiceAreas/1.0')
NOMINATIM_DOMAIN = os.environ.get('NOMINATIM_DOMAIN', 'nominatim.openstreetmap.org')
OVERPASS_URL = os.environ.get('OVERPASS_URL', 'https://overpass-api.de/api/interpreter')
TIGERWEB_ZCTA_URL = os.environ.get(
    'TIGERWEB_ZCTA_URL',
    'https://tigerweb.geo.census.gov/arcgis/rest/services/TIGERweb/tigerWMS_Current/MapServer/2/query'
)
HTTP_TIMEOUT = float(os.environ.get('HTTP_TIMEOUT', '10'))

# Lookup-cost limits
MAX_ENTRIES_PER_CLIENT = int(os.environ.get('MAX_ENTRIES_PER_CLIENT', '12'))
PREVIEW_MAX_ATTEMPTS = int(os.environ.get('PREVIEW_MAX_ATTEMPTS', '10'))
PREFETCH_TIMEOUT_SECONDS = float(os.environ.get('PREFETCH_TIMEOUT_SECONDS', '60'))
PREFETCH_WORKERS = int(os.environ.get('PREFETCH_WORKERS', '8'))

# Geometry
FALLBACK_RADIUS_KM = float(os.environ.get('FALLBACK_RADIUS_KM', '5'))
SIMPLIFY_TOLERANCE_METERS = float(os.environ.get('SIMPLIFY_TOLERANCE_METERS', '50'))

# Storage
CACHE_PATH = os.environ.get('SERVICE_AREA_CACHE', os.path.join(basedir, 'cache', 'service-area-cache.json'))
BUNDLE_PATH = os.environ.get('SERVICE_AREA_BUNDLE', os.path.join(basedir, 'data', 'service-areas.json'))
MAPS_FOLDER = os.environ.get('MAPS_FOLDER', os.path.join(basedir, 'static', 'maps'))

# Client store: a CSV/Excel path or a published-sheet CSV URL, or an Apps Script endpoint
CLIENTS_SOURCE = os.environ.get('CLIENTS_SOURCE', os.path.join(basedir, 'data', 'clients.csv'))
APPS_SCRIPT_URL = os.environ.get('APPS_SCRIPT_URL', '')

# Centre of the contiguous US; used when a client row has no coordinates
DEFAULT_LAT = 39.5
DEFAULT_LNG = -98.35


@dataclass(frozen=True)
class ResolverSettings:
    """Pacing and retry policy for the provider chain."""
    request_delay: float
    max_retries: int
    retry_wait: float
    timeout: float = HTTP_TIMEOUT


# Offline export: sequential, polite, retried
BATCH_SETTINGS = ResolverSettings(
    request_delay=float(os.environ.get('BATCH_REQUEST_DELAY', '0.5')),
    max_retries=int(os.environ.get('BATCH_MAX_RETRIES', '2')),
    retry_wait=float(os.environ.get('BATCH_RETRY_WAIT', '1.0')),
)

# On-click resolution: any failure falls through to the next provider
INTERACTIVE_SETTINGS = ResolverSettings(
    request_delay=float(os.environ.get('INTERACTIVE_REQUEST_DELAY', '0.1')),
    max_retries=0,
    retry_wait=0.0,
)
