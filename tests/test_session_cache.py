import threading

import numpy as np
import pytest

from physiodyn.core.cache import FIFOPolicy, KernelCache, LRUPolicy
from physiodyn.core.engine import compute
from physiodyn.core.request import ComputeRequest, InterventionSpec, time_grid
from physiodyn.core.session import SimulationSession
from physiodyn.interventions.library import Caffeine, activate
from physiodyn.patient.subject import Subject, derive_physiology


def _request(duration=60.0, mg=100.0, subject=None):
    spec = InterventionSpec(key="caffeine", start=0.0, duration=5.0, params=Caffeine(mg=mg))
    return ComputeRequest(times=time_grid(duration), interventions=(spec,), subject=subject or Subject())


class TestKernelCache:

    def test_lru_evicts_least_recently_used(self):
        cache = KernelCache(max_size=2, policy=LRUPolicy())
        cache.put("a", 1)
        cache.put("b", 2)
        assert cache.get("a") == 1
        cache.put("c", 3)
        assert "a" in cache
        assert "b" not in cache, "b was least recently used"

    def test_fifo_ignores_reads(self):
        cache = KernelCache(max_size=2, policy=FIFOPolicy())
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)
        assert "a" not in cache, "FIFO evicts the oldest insertion"
        assert "b" in cache and "c" in cache

    def test_stats(self):
        cache = KernelCache(max_size=1)
        cache.get("missing")
        cache.put("a", 1)
        cache.get("a")
        cache.put("b", 2)
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["evictions"] == 1
        assert stats["size"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)
        cache.clear()
        assert cache.get_stats()["hits"] == 0
        assert len(cache) == 0

    def test_get_or_create_builds_once(self):
        cache = KernelCache(max_size=4)
        calls = []

        def factory():
            calls.append(1)
            return "kernel"

        assert cache.get_or_create("k", factory) == "kernel"
        assert cache.get_or_create("k", factory) == "kernel"
        assert len(calls) == 1
        cache.invalidate("k")
        cache.get_or_create("k", factory)
        assert len(calls) == 2

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            KernelCache(max_size=0)

    def test_pharmacology_kernels_are_shared(self, subject, physiology):
        """Same drug, dose and physiology reuse one kernel set; a new physiology misses."""
        cache = KernelCache(max_size=8)
        first = activate("caffeine", 0.0, 5.0, Caffeine(mg=100.0), subject, physiology, cache)
        second = activate("caffeine", 60.0, 5.0, Caffeine(mg=100.0), subject, physiology, cache)
        assert first.signal_kernels[0][1] is second.signal_kernels[0][1]
        other = Subject(weight=95.0)
        third = activate("caffeine", 0.0, 5.0, Caffeine(mg=100.0), other, derive_physiology(other), cache)
        assert third.signal_kernels[0][1] is not first.signal_kernels[0][1]
        assert cache.get_stats()["misses"] == 2

    def test_cached_run_matches_uncached(self):
        request = _request()
        plain = compute(request)
        cached = compute(request, kernel_cache=KernelCache(4))
        for key in plain.series:
            np.testing.assert_array_equal(plain.series[key], cached.series[key])


class TestSimulationSession:

    def test_compute_returns_response(self, session):
        response = session.compute(_request(), timeout=60)
        assert response is not None
        assert session.latest is response
        assert session.kernel_cache.get_stats()["size"] == 1

    def test_kernel_cache_reused_across_runs(self, session):
        session.compute(_request(), timeout=60)
        session.compute(_request(duration=30.0), timeout=60)
        stats = session.kernel_cache.get_stats()
        assert stats["hits"] >= 1

    def test_superseded_run_is_never_published(self):
        """Only the newest submission may become the latest result."""
        with SimulationSession(cache_size=4) as session:
            long_request = _request(duration=3 * 1440.0)
            short_request = _request(duration=30.0, mg=50.0)
            first = session.submit(long_request)
            second = session.submit(short_request)
            latest = second.result(timeout=120)
            superseded = first.result(timeout=120)
            assert latest is not None
            assert superseded is None
            assert session.latest is latest
            assert latest.times[-1] == pytest.approx(30.0)

    def test_injected_cache_is_kept(self):
        cache = KernelCache(4)
        with SimulationSession(kernel_cache=cache) as session:
            assert session.kernel_cache is cache

    def test_cancel_in_flight(self):
        with SimulationSession(cache_size=4) as session:
            started = threading.Event()
            original = session._run

            def run(request, cancel_event, generation):
                started.set()
                return original(request, cancel_event, generation)

            session._run = run
            future = session.submit(_request(duration=5 * 1440.0))
            started.wait(timeout=10)
            session.cancel()
            assert future.result(timeout=120) is None
            assert session.latest is None
