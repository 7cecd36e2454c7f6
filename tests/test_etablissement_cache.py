"""Tests for etablissement_cache.EtablissementCache."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from etablissement_cache import CacheState, EtablissementCache
from models import Etablissement


class _CountingResolver:
    """Fake resolver that blocks until released and counts its calls."""

    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str]] = []
        self.release = threading.Event()
        self.started = threading.Event()
        self._result = result
        self._error = error
        self._lock = threading.Lock()

    def __call__(self, uai: str, inm: str):
        with self._lock:
            self.calls.append((uai, inm))
        self.started.set()
        self.release.wait(timeout=5)
        if self._error is not None:
            raise self._error
        return self._result if self._result is not None else Etablissement(uai=uai)


def test_concurrent_callers_share_one_resolution() -> None:
    resolver = _CountingResolver()
    cache = EtablissementCache(resolver)

    with ThreadPoolExecutor(max_workers=10) as pool:
        futures = [pool.submit(cache.get, "0751717J", f"inm-{i}") for i in range(10)]
        assert resolver.started.wait(timeout=5)
        resolver.release.set()
        results = [f.result(timeout=5) for f in futures]

    assert len(resolver.calls) == 1
    assert all(r is results[0] for r in results)
    assert cache.state("0751717J") is CacheState.RESOLVED


def test_state_transitions_unrequested_pending_resolved() -> None:
    resolver = _CountingResolver()
    cache = EtablissementCache(resolver)
    assert cache.state("0751717J") is CacheState.UNREQUESTED

    worker = threading.Thread(target=cache.get, args=("0751717J", "4000123"))
    worker.start()
    assert resolver.started.wait(timeout=5)
    assert cache.state("0751717J") is CacheState.PENDING
    assert "0751717J" in cache

    resolver.release.set()
    worker.join(timeout=5)
    assert cache.state("0751717J") is CacheState.RESOLVED
    assert cache.resolved_count == 1


def test_absent_result_is_cached_for_later_callers() -> None:
    calls = []

    def resolver(uai: str, inm: str):
        calls.append(uai)
        return None

    cache = EtablissementCache(resolver)

    assert cache.get("0751717J", "4000123") is None
    assert cache.get("0751717J", "4000999") is None
    assert calls == ["0751717J"]
    assert cache.state("0751717J") is CacheState.RESOLVED


def test_distinct_uai_values_resolve_separately() -> None:
    calls = []

    def resolver(uai: str, inm: str):
        calls.append((uai, inm))
        return Etablissement(uai=uai)

    cache = EtablissementCache(resolver)
    cache.get("A", "1")
    cache.get("B", "2")
    cache.get("A", "3")

    assert calls == [("A", "1"), ("B", "2")]
    assert len(cache) == 2


def test_resolver_exception_clears_entry_and_reaches_waiters() -> None:
    resolver = _CountingResolver(error=RuntimeError("boom"))
    cache = EtablissementCache(resolver)

    with ThreadPoolExecutor(max_workers=3) as pool:
        first = pool.submit(cache.get, "0751717J", "4000123")
        assert resolver.started.wait(timeout=5)
        waiter = pool.submit(cache.get, "0751717J", "4000123")
        resolver.release.set()

        with pytest.raises(RuntimeError, match="boom"):
            first.result(timeout=5)
        with pytest.raises(RuntimeError, match="boom"):
            waiter.result(timeout=5)

    assert cache.state("0751717J") is CacheState.UNREQUESTED


def test_later_caller_retries_after_exception() -> None:
    outcomes = [RuntimeError("boom"), Etablissement(uai="0751717J")]

    def resolver(uai: str, inm: str):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    cache = EtablissementCache(resolver)

    with pytest.raises(RuntimeError):
        cache.get("0751717J", "4000123")
    assert cache.get("0751717J", "4000123") == Etablissement(uai="0751717J")
