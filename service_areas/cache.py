"""
Resolution caches keyed by the raw entry text.

Two backends share one interface:

- ``MemoryCache``: lives for one export run; can also remember entries that
  definitively resolved to nothing so the run does not ask again.
- ``JsonFileCache``: one JSON blob on disk that survives restarts. Every
  ``get``/``set`` reads the whole blob; the blob stays small because entries
  are capped per client. Only successes are stored and entries never expire,
  so stale boundaries are cleared with ``clear()``.

A cache that cannot be read behaves as empty, and a cache that cannot be
written only logs a warning.
"""
import json
import logging
import os
import tempfile
from typing import Dict, Iterable, Optional

import filelock

from .models import ResolvedArea

logger = logging.getLogger(__name__)


class ResolutionCache:
    def get(self, token: str) -> Optional[ResolvedArea]:
        raise NotImplementedError

    def set(self, token: str, area: ResolvedArea) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def is_known_failure(self, token: str) -> bool:
        return False

    def mark_failed(self, token: str) -> None:
        pass

    def seed(self, areas: Iterable[ResolvedArea]) -> int:
        count = 0
        for area in areas:
            self.set(area.token, area)
            count += 1
        return count


class MemoryCache(ResolutionCache):
    """Process-local cache; a None value records a known failure."""

    def __init__(self, remember_failures: bool = False):
        self.remember_failures = remember_failures
        self._entries: Dict[str, Optional[ResolvedArea]] = {}

    def get(self, token: str) -> Optional[ResolvedArea]:
        return self._entries.get(token)

    def set(self, token: str, area: ResolvedArea) -> None:
        self._entries[token] = area

    def clear(self) -> None:
        self._entries.clear()

    def is_known_failure(self, token: str) -> bool:
        return token in self._entries and self._entries[token] is None

    def mark_failed(self, token: str) -> None:
        if self.remember_failures:
            self._entries[token] = None

    def __len__(self):
        return sum(1 for area in self._entries.values() if area is not None)


class JsonFileCache(ResolutionCache):
    """Durable cache stored as a single ``{token: {label, feature}}`` JSON file."""

    def __init__(self, path: str, lock_timeout: float = 10.0):
        self.path = path
        self._lock = filelock.FileLock(f"{path}.lock", timeout=lock_timeout)

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                blob = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable service-area cache {self.path}: {e}")
            return {}
        if not isinstance(blob, dict):
            logger.warning(f"Ignoring malformed service-area cache {self.path}")
            return {}
        return blob

    def _write(self, blob: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(blob, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _update(self, entries: Dict[str, dict]) -> None:
        try:
            # the lock file sits next to the blob
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            with self._lock:
                blob = self._read()
                blob.update(entries)
                self._write(blob)
        except (OSError, filelock.Timeout) as e:
            logger.warning(f"Could not write service-area cache {self.path}: {e}")

    def get(self, token: str) -> Optional[ResolvedArea]:
        try:
            return ResolvedArea.from_dict(self._read().get(token), token=token)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable cache entry {token!r}: {e}")
            return None

    def set(self, token: str, area: ResolvedArea) -> None:
        self._update({token: area.to_cache_entry()})

    def seed(self, areas: Iterable[ResolvedArea]) -> int:
        entries = {area.token: area.to_cache_entry() for area in areas}
        if entries:
            self._update(entries)
        return len(entries)

    def clear(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with self._lock:
                if os.path.exists(self.path):
                    os.remove(self.path)
        except (OSError, filelock.Timeout) as e:
            logger.warning(f"Could not clear service-area cache {self.path}: {e}")

    def __len__(self):
        return len(self._read())
