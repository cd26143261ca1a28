"""
Polygon resolution for service-area entries.

``PolygonResolver`` turns one entry (a ZIP code or a place name) into a
``ResolvedArea`` by walking a provider chain, first success wins:

1. the resolver's cache
2. Nominatim place search plus polygon lookup
3. Overpass postal-code boundaries (ZIP entries only)
4. Census TIGERweb ZCTA polygons (ZIP entries only)
5. a square around the coordinates found in step 2

The same resolver serves the offline export and the web service; they only
differ in the cache backend and the pacing/retry settings they pass in.
"""
import logging
from concurrent.futures import Executor
from typing import Iterable, List, Optional

from geopy.exc import GeocoderServiceError
from geopy.extra.rate_limiter import RateLimiter

from .cache import JsonFileCache, MemoryCache, ResolutionCache
from .config import (BATCH_SETTINGS, CACHE_PATH, FALLBACK_RADIUS_KM, INTERACTIVE_SETTINGS,
                     PREVIEW_MAX_ATTEMPTS, ResolverSettings)
from .geometry import create_square_feature
from .models import ResolvedArea
from .normalizer import is_zip, normalize_service_area_input
from .providers import CensusZctaProvider, NominatimProvider, OverpassProvider, build_session

logger = logging.getLogger(__name__)


def _invoke(func, *args, **kwargs):
    return func(*args, **kwargs)


def build_rate_limited_call(settings: ResolverSettings) -> RateLimiter:
    """One paced invoker for every external call the resolver makes."""
    # RateLimiter requires the error wait to be at least the call spacing
    return RateLimiter(
        _invoke,
        min_delay_seconds=settings.request_delay,
        max_retries=settings.max_retries,
        error_wait_seconds=max(settings.retry_wait, settings.request_delay),
        swallow_exceptions=False,
    )


class PolygonResolver:
    def __init__(self, cache: Optional[ResolutionCache] = None, settings: ResolverSettings = INTERACTIVE_SETTINGS,
                 primary=None, boundary_providers=None, fallback_radius_km: float = FALLBACK_RADIUS_KM):
        self.cache = cache if cache is not None else MemoryCache()
        self.settings = settings
        self.fallback_radius_km = fallback_radius_km
        self.call = build_rate_limited_call(settings)

        session = build_session()
        self.primary = primary or NominatimProvider(self.call, session=session, timeout=settings.timeout)
        if boundary_providers is None:
            boundary_providers = [
                OverpassProvider(self.call, session=session, timeout=settings.timeout),
                CensusZctaProvider(self.call, session=session, timeout=settings.timeout),
            ]
        self.boundary_providers = list(boundary_providers)

    def _attempt(self, provider, token: str):
        """
        Run one provider step.

        Returns ``(result, ok)`` where ``ok`` is False when the step failed
        rather than simply finding nothing.
        """
        try:
            return provider.fetch(token), True
        except GeocoderServiceError as e:
            logger.warning(f"{provider.name} failed for {token}: {e}")
        except Exception:
            logger.exception(f"Unexpected {provider.name} error for {token}")
        return None, False

    def _resolve_uncached(self, token: str) -> Optional[ResolvedArea]:
        primary, definitive = self._attempt(self.primary, token)
        if primary is not None and primary.feature is not None:
            logger.info(f"Got {primary.source} polygon for: {token}")
            return ResolvedArea(token, primary.label, primary.feature)

        for provider in self.boundary_providers:
            if getattr(provider, 'zip_only', False) and not is_zip(token):
                continue
            result, ok = self._attempt(provider, token)
            definitive = definitive and ok
            if result is not None and result.feature is not None:
                logger.info(f"Got {result.source} polygon for: {token}")
                return ResolvedArea(token, result.label, result.feature)

        if primary is not None and primary.has_coordinates:
            square = create_square_feature(primary.lon, primary.lat, self.fallback_radius_km)
            if square is not None:
                logger.info(f"Using fallback geometry for: {token}")
                return ResolvedArea(token, primary.label, square)

        logger.warning(f"No polygon found for: {token}")
        if definitive and primary is None:
            self.cache.mark_failed(token)
        return None

    def resolve(self, token: str) -> Optional[ResolvedArea]:
        """
        Resolve one entry, consulting the cache first.

        Args:
            token: A ZIP code or place name from the entry normalizer

        Returns:
            ResolvedArea, or None when no provider produced a polygon or coordinates
        """
        token = (token or '').strip()
        if not token:
            return None

        cached = self.cache.get(token)
        if cached is not None:
            logger.debug(f"Using cached entry: {token}")
            return cached
        if self.cache.is_known_failure(token):
            logger.debug(f"Skipping known failure: {token}")
            return None

        area = self._resolve_uncached(token)
        if area is not None:
            self.cache.set(token, area)
        return area

    def resolve_many(self, tokens: Iterable[str]) -> List[ResolvedArea]:
        """Resolve entries one after another, dropping failures."""
        areas = []
        for token in tokens:
            area = self.resolve(token)
            if area is not None:
                areas.append(area)
        return areas

    def resolve_concurrent(self, tokens: Iterable[str], executor: Executor) -> List[ResolvedArea]:
        """Resolve entries in parallel; results keep the input order."""
        futures = [executor.submit(self.resolve, token) for token in tokens]
        areas = []
        for future in futures:
            try:
                area = future.result()
            except Exception:
                logger.exception("Resolution task failed")
                continue
            if area is not None:
                areas.append(area)
        return areas

    def preview_entry(self, text: str, max_attempts: int = PREVIEW_MAX_ATTEMPTS) -> Optional[ResolvedArea]:
        """First entry in ``text`` that resolves, for previewing before a client is saved."""
        for token in normalize_service_area_input(text)[:max_attempts]:
            area = self.resolve(token)
            if area is not None:
                return area
        return None

    def geocode_location(self, text: str):
        """(lat, lon) for a client's own location text, or (None, None)."""
        if not text or not text.strip():
            return None, None
        try:
            return self.primary.geocode_point(text)
        except GeocoderServiceError as e:
            logger.warning(f"Could not geocode location {text!r}: {e}")
        except Exception:
            logger.exception(f"Unexpected error geocoding location {text!r}")
        return None, None


def build_batch_resolver(cache: Optional[ResolutionCache] = None) -> PolygonResolver:
    """Resolver for the offline export: run-scoped cache, retries, 0.5 s pacing."""
    return PolygonResolver(cache=cache if cache is not None else MemoryCache(remember_failures=True),
                           settings=BATCH_SETTINGS)


def build_interactive_resolver(cache_path: str = CACHE_PATH) -> PolygonResolver:
    """Resolver for the web service: persisted cache, no retries."""
    return PolygonResolver(cache=JsonFileCache(cache_path), settings=INTERACTIVE_SETTINGS)
