"""
Interactive service-area lookups for the dashboard.

``ServiceAreaService`` keeps the dashboard state explicitly: the client list,
the precomputed bundle index and the registry of client layers currently
shown. Selecting a client uses the bundle when it covers the client and
otherwise resolves the client's entries in parallel through the shared
resolver and its persisted cache.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional

import requests

from .bundle import bundle_areas, load_bundle
from .clients import ClientRecord, ClientStore, build_client_record
from .composer import RenderBundle, compose_service_area
from .config import BUNDLE_PATH, MAX_ENTRIES_PER_CLIENT, PREFETCH_TIMEOUT_SECONDS, PREFETCH_WORKERS
from .exceptions import ClientNotFoundError, ValidationError
from .models import ResolvedArea
from .normalizer import service_area_entries
from .precompute import export_service_areas
from .resolver import PolygonResolver, build_batch_resolver

logger = logging.getLogger(__name__)


class ServiceAreaService:
    def __init__(self, store: ClientStore, resolver: PolygonResolver, bundle_path: str = BUNDLE_PATH,
                 max_workers: int = PREFETCH_WORKERS, max_entries: int = MAX_ENTRIES_PER_CLIENT,
                 prefetch_on_load: bool = False):
        self.store = store
        self.resolver = resolver
        self.bundle_path = bundle_path
        self.max_entries = max_entries
        self.prefetch_on_load = prefetch_on_load
        # prefetch work runs in its own pool, apart from clicks
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='service-area')
        self.prefetch_executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='service-area-prefetch')
        self.prefetch_thread: Optional[threading.Thread] = None

        self.clients: Dict[str, ClientRecord] = {}
        self.bundle: Optional[dict] = None
        self.bundle_index: Dict[str, List[ResolvedArea]] = {}
        self.displayed: Dict[str, RenderBundle] = {}
        self._locations: Dict[str, tuple] = {}
        self._loaded = False
        self._lock = threading.Lock()

    # ------------------------------------------
    # Loading
    # ------------------------------------------
    def _clients_from_bundle(self) -> List[ClientRecord]:
        records = []
        for client in (self.bundle or {}).get('clients') or []:
            try:
                records.append(build_client_record(
                    client.get('name'), client.get('industry'), client.get('location'),
                    client.get('serviceArea'), client.get('lat'), client.get('lng'),
                ))
            except (ValidationError, AttributeError) as e:
                logger.warning(f"Skipping bundle client: {e}")
        return records

    def load(self, force: bool = False) -> None:
        """Read the client list and the optional bundle (once, unless forced)."""
        with self._lock:
            if self._loaded and not force:
                return

            self.bundle = load_bundle(self.bundle_path)
            self.bundle_index = bundle_areas(self.bundle)
            if self.bundle_index:
                seeded = self.resolver.cache.seed(area for areas in self.bundle_index.values() for area in areas)
                logger.info(f"Seeded resolution cache with {seeded} precomputed entries")

            try:
                records = self.store.fetch_all()
            except (ValidationError, OSError, ValueError, requests.RequestException) as e:
                logger.error(f"Could not read clients, falling back to bundle: {e}")
                records = self._clients_from_bundle()

            self.clients = {record.name: record for record in records}
            self.displayed.clear()
            self._loaded = True
            logger.info(f"Loaded {len(self.clients)} clients, {len(self.bundle_index)} precomputed")

            # The thread blocks on this lock until the load has finished
            if self.prefetch_on_load and self.prefetch_thread is None:
                self.prefetch_thread = self.start_background_prefetch()

    def list_clients(self) -> List[ClientRecord]:
        self.load()
        return list(self.clients.values())

    def get_client(self, name: str) -> ClientRecord:
        self.load()
        try:
            return self.clients[name]
        except KeyError:
            raise ClientNotFoundError(f"Unknown client: {name}")

    # ------------------------------------------
    # Per-client lookups
    # ------------------------------------------
    def client_entries(self, record: ClientRecord) -> List[str]:
        return service_area_entries(record.service_area, self.max_entries)

    def client_location(self, record: ClientRecord):
        """Client coordinates, geocoding the location text once when the row has none."""
        if record.has_coordinates:
            return record.lat, record.lng
        if record.name not in self._locations:
            self._locations[record.name] = self.resolver.geocode_location(record.location)
        return self._locations[record.name]

    def areas_for_client(self, name: str) -> List[ResolvedArea]:
        record = self.get_client(name)
        precomputed = self.bundle_index.get(name)
        if precomputed:
            logger.debug(f"Using precomputed areas for {name}")
            return list(precomputed)

        entries = self.client_entries(record)
        if not entries:
            return []
        logger.info(f"Resolving {len(entries)} entries for {name}")
        return self.resolver.resolve_concurrent(entries, self.executor)

    def render_bundle(self, name: str) -> RenderBundle:
        record = self.get_client(name)
        areas = self.areas_for_client(name)
        lat, lng = (None, None) if areas else self.client_location(record)
        return compose_service_area(areas, lat, lng)

    def toggle_client(self, name: str) -> Optional[RenderBundle]:
        """
        Show a client's service area, or hide it if it is already shown.

        Returns the bundle now shown, or None when the layer was hidden.
        """
        if name in self.displayed:
            del self.displayed[name]
            return None
        bundle = self.render_bundle(name)
        self.displayed[name] = bundle
        return bundle

    def preview_entry(self, text: str) -> Optional[ResolvedArea]:
        return self.resolver.preview_entry(text)

    # ------------------------------------------
    # Whole-dashboard passes
    # ------------------------------------------
    def pending_entries(self) -> List[str]:
        """Entries of clients the bundle does not cover that are not cached yet."""
        self.load()
        pending = []
        for record in self.clients.values():
            if self.bundle_index.get(record.name):
                continue
            pending.extend(self.client_entries(record))
        pending = list(dict.fromkeys(pending))
        return [token for token in pending if self.resolver.cache.get(token) is None]

    def prefetch_all(self, timeout: float = PREFETCH_TIMEOUT_SECONDS) -> dict:
        """
        Best-effort resolution of every uncovered entry.

        Work still outstanding at ``timeout`` is abandoned: queued lookups are
        cancelled and running ones are no longer waited for.
        """
        tokens = self.pending_entries()
        futures = [self.prefetch_executor.submit(self.resolver.resolve, token) for token in tokens]
        done, not_done = wait(futures, timeout=timeout)
        for future in not_done:
            future.cancel()

        resolved = sum(1 for f in done if f.exception() is None and f.result() is not None)
        stats = {
            'requested': len(futures),
            'resolved': resolved,
            'failed': len(done) - resolved,
            'abandoned': len(not_done),
        }
        logger.info(f"Prefetch finished: {stats}")
        return stats

    def start_background_prefetch(self, timeout: float = PREFETCH_TIMEOUT_SECONDS) -> threading.Thread:
        thread = threading.Thread(target=self.prefetch_all, kwargs={'timeout': timeout},
                                  name='service-area-prefetch', daemon=True)
        thread.start()
        return thread

    def refresh_bundle(self, resolver: Optional[PolygonResolver] = None) -> dict:
        """Re-run the export in process and reload the bundle index."""
        bundle = export_service_areas(self.store, resolver or build_batch_resolver(), self.bundle_path)
        self.load(force=True)
        return bundle

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.prefetch_executor.shutdown(wait=False, cancel_futures=True)
