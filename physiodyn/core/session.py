"""
Single-flight simulation session.

Runs are executed on a one-worker thread pool. Submitting a new request
sets the cancel event of the live run; that run raises SimulationCancelled
at its next step and its (partial) result is never published. The session
owns the kernel cache shared by its runs.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .cache import EvictionPolicy, KernelCache
from .constants import KERNEL_CACHE_SIZE
from .engine import SimulationCancelled, compute
from .request import ComputeRequest, ComputeResponse

LOGGER = logging.getLogger(__name__)


class SimulationSession:
    """Owns a worker thread, the kernel cache and the latest accepted result."""

    def __init__(self, cache_size: int = KERNEL_CACHE_SIZE, policy: Optional[EvictionPolicy] = None,
                 kernel_cache: Optional[KernelCache] = None):
        self.kernel_cache = kernel_cache if kernel_cache is not None else KernelCache(cache_size, policy)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="physiodyn")
        self._lock = threading.Lock()
        self._generation = 0
        self._cancel_event: Optional[threading.Event] = None
        self._future: Optional[Future] = None
        self.latest: Optional[ComputeResponse] = None

    def submit(self, request: ComputeRequest) -> Future:
        """
        Start computing `request`, cancelling any run still in flight.

        The returned future resolves to the response, or to None when the
        run was superseded before it finished.
        """
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()
            self._generation += 1
            generation = self._generation
            cancel_event = threading.Event()
            self._cancel_event = cancel_event
            self._future = self._executor.submit(self._run, request, cancel_event, generation)
            return self._future

    def _run(self, request: ComputeRequest, cancel_event: threading.Event,
             generation: int) -> Optional[ComputeResponse]:
        if cancel_event.is_set():
            LOGGER.warning("Run %d superseded before it started", generation)
            return None
        try:
            response = compute(request, self.kernel_cache, cancel_event)
        except SimulationCancelled as exc:
            LOGGER.warning("Run %d cancelled: %s", generation, exc)
            return None
        with self._lock:
            if generation != self._generation:
                LOGGER.warning("Discarding stale result of run %d", generation)
                return None
            self.latest = response
        return response

    def compute(self, request: ComputeRequest, timeout: Optional[float] = None) -> Optional[ComputeResponse]:
        """Submit and wait."""
        return self.submit(request).result(timeout=timeout)

    def cancel(self):
        """Cancel the run in flight, if any."""
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()

    def close(self):
        self.cancel()
        self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
