"""
Offline export of every client's service areas.

Clients and their entries are resolved strictly one after another so the
resolver's pacing keeps us within the providers' usage policies. The result
is written as the static bundle the web service loads at startup.
"""
import logging
from typing import Iterable

from .bundle import build_bundle, client_entry, write_bundle
from .clients import ClientStore
from .config import DEFAULT_LAT, DEFAULT_LNG, MAX_ENTRIES_PER_CLIENT, SIMPLIFY_TOLERANCE_METERS
from .geometry import simplify_feature
from .models import ResolvedArea
from .normalizer import service_area_entries
from .resolver import PolygonResolver

logger = logging.getLogger(__name__)


def simplify_areas(areas: Iterable[ResolvedArea], tolerance_m: float = SIMPLIFY_TOLERANCE_METERS):
    return [ResolvedArea(a.token, a.label, simplify_feature(a.feature, tolerance_m)) for a in areas]


def precompute_clients(records, resolver: PolygonResolver, simplify: bool = True,
                       max_entries: int = MAX_ENTRIES_PER_CLIENT):
    clients = []
    for record in records:
        entries = service_area_entries(record.service_area, max_entries)
        logger.info(f"[{record.name}] Service area entries: {', '.join(entries) or 'none'}")

        areas = resolver.resolve_many(entries)
        if simplify:
            areas = simplify_areas(areas)
        logger.info(f"[{record.name}] Polygons: {len(areas)}/{len(entries)}")

        clients.append(client_entry(record, areas, DEFAULT_LAT, DEFAULT_LNG))
    return clients


def export_service_areas(store: ClientStore, resolver: PolygonResolver, output_path: str,
                         extra_paths: Iterable[str] = (), simplify: bool = True) -> dict:
    """
    Resolve every client and write the bundle.

    Args:
        store: Where client rows come from
        resolver: Typically ``build_batch_resolver()``
        output_path: Bundle path
        extra_paths: Further copies of the bundle to write
        simplify: Simplify each polygon to ~50 m before writing

    Returns:
        The bundle that was written
    """
    records = store.fetch_all()
    logger.info(f"Exporting service areas for {len(records)} clients")

    bundle = build_bundle(precompute_clients(records, resolver, simplify=simplify))
    written = write_bundle(bundle, output_path, extra_paths)
    logger.info(f"Exported {bundle['clientCount']} clients to {', '.join(written)}")
    return bundle
