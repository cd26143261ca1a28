"""
The precomputed service-area bundle.

The export job writes one JSON document holding every client's resolved
areas; the web service loads it at startup so most clicks need no lookups.
The file is optional: a missing or unreadable bundle simply means every
client is resolved on demand.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .exceptions import BundleError
from .models import ResolvedArea

logger = logging.getLogger(__name__)

BUNDLE_VERSION = '1.0'
BUNDLE_METADATA = {
    'note': 'Precomputed service areas. Generate with: python export_service_areas.py export',
    'updateInstructions': 'Run the export when clients are added or updated, then redeploy the bundle',
}


def client_entry(record, areas: Iterable[ResolvedArea], default_lat: float, default_lng: float) -> dict:
    return {
        'name': record.name,
        'industry': record.industry,
        'location': record.location,
        'lat': record.lat if record.lat is not None else default_lat,
        'lng': record.lng if record.lng is not None else default_lng,
        'serviceArea': record.service_area,
        'polygons': [area.to_dict() for area in areas],
    }


def build_bundle(clients: List[dict], generated_at: Optional[datetime] = None) -> dict:
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        'version': BUNDLE_VERSION,
        'generatedAt': generated_at.isoformat().replace('+00:00', 'Z'),
        'clientCount': len(clients),
        'clients': clients,
        'metadata': dict(BUNDLE_METADATA),
    }


def write_bundle(bundle: dict, path: str, extra_paths: Iterable[str] = ()) -> List[str]:
    """
    Write the bundle as pretty JSON to ``path`` and any extra copies.

    Raises:
        BundleError: when a file cannot be written
    """
    written = []
    for target in [path, *extra_paths]:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(target)), exist_ok=True)
            with open(target, 'w', encoding='utf-8') as f:
                json.dump(bundle, f, indent=2)
        except OSError as e:
            raise BundleError(f"Could not write bundle to {target}: {e}")
        written.append(target)
    return written


def load_bundle(path: str) -> Optional[dict]:
    """Parsed bundle, or None when the file is absent or unusable."""
    if not path or not os.path.exists(path):
        logger.info(f"No precomputed bundle at {path}")
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            bundle = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable bundle {path}: {e}")
        return None
    if not isinstance(bundle, dict) or not isinstance(bundle.get('clients'), list):
        logger.warning(f"Ignoring malformed bundle {path}")
        return None
    logger.info(f"Loaded bundle with {len(bundle['clients'])} clients generated {bundle.get('generatedAt')}")
    return bundle


def bundle_areas(bundle: Optional[dict]) -> Dict[str, List[ResolvedArea]]:
    """Client name -> resolved areas, skipping entries without a usable polygon."""
    index = {}
    for client in (bundle or {}).get('clients') or []:
        if not isinstance(client, dict) or not client.get('name'):
            continue
        areas = []
        for polygon in client.get('polygons') or []:
            area = ResolvedArea.from_dict(polygon)
            if area is not None:
                areas.append(area)
        index[client['name']] = areas
    return index
