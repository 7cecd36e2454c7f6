"""Per-run, request-coalescing cache of établissement lookups."""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future
from typing import Callable

from models import Etablissement

Resolver = Callable[[str, str], "Etablissement | None"]

LOGGER = logging.getLogger(__name__)


class CacheState(enum.Enum):
    UNREQUESTED = "unrequested"
    PENDING = "pending"
    RESOLVED = "resolved"


class EtablissementCache:
    """Run the resolver at most once per uai, however many callers ask.

    The first caller for a uai stores a pending Future and resolves it; callers
    arriving meanwhile wait on that Future. Results, including None, are kept
    for the rest of the run. If the resolver raises, the entry is dropped so a
    later caller can try again, and only the callers already waiting see the
    exception.
    """

    def __init__(self, resolver: Resolver) -> None:
        self._resolver = resolver
        self._lock = threading.Lock()
        self._entries: dict[str, Future] = {}

    def get(self, uai: str, inm: str) -> Etablissement | None:
        # inm is forwarded to the resolver but is not part of the key.
        with self._lock:
            future = self._entries.get(uai)
            owner = future is None
            if owner:
                future = Future()
                future.set_running_or_notify_cancel()
                self._entries[uai] = future

        if not owner:
            return future.result()

        try:
            value = self._resolver(uai, inm)
        except BaseException as exc:
            with self._lock:
                self._entries.pop(uai, None)
            future.set_exception(exc)
            LOGGER.warning("Etablissement lookup raised for uai=%s; entry cleared: %s", uai, exc)
            raise

        future.set_result(value)
        return value

    def state(self, uai: str) -> CacheState:
        with self._lock:
            future = self._entries.get(uai)
        if future is None:
            return CacheState.UNREQUESTED
        return CacheState.RESOLVED if future.done() else CacheState.PENDING

    @property
    def resolved_count(self) -> int:
        with self._lock:
            return sum(1 for future in self._entries.values() if future.done())

    def __contains__(self, uai: object) -> bool:
        with self._lock:
            return uai in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
