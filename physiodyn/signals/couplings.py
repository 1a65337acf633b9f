"""
Coupling evaluation.

All couplings read the previous committed step, never the step being
computed, so the order in which targets are evaluated does not matter.
Edges with a delay read the source deviation recorded at (or just before)
`previous time - delay`; before any such record exists they read zero, i.e.
the source is assumed to have been at its setpoint.
"""

import bisect
from collections import deque
from typing import Dict, Mapping

from .definitions import Coupling, Signal, SignalDefinition


class DeviationHistory:
    """Bounded (time, deviation) history for one source signal."""

    def __init__(self, horizon: float):
        self.horizon = horizon
        self._times = deque()
        self._values = deque()

    def push(self, t: float, deviation: float):
        self._times.append(t)
        self._values.append(deviation)
        # Keep one record at or before t - horizon so the oldest delay still resolves.
        while len(self._times) > 1 and self._times[1] <= t - self.horizon:
            self._times.popleft()
            self._values.popleft()

    def latest(self) -> float:
        return self._values[-1] if self._values else 0.0

    def at_or_before(self, t: float) -> float:
        if not self._times:
            return 0.0
        idx = bisect.bisect_right(self._times, t) - 1
        if idx < 0:
            return 0.0
        return self._values[idx]

    def last_time(self):
        return self._times[-1] if self._times else None


class CouplingEvaluator:
    """
    Owns the deviation history needed by the coupling graph of one run.

    Call `commit(t, deviations)` after each step; `contributions()` then
    returns the coupling term for every target for the next step.
    """

    def __init__(self, catalog: Mapping[Signal, SignalDefinition]):
        self._catalog = catalog
        horizons: Dict[Signal, float] = {}
        for definition in catalog.values():
            for coupling in definition.couplings:
                horizons[coupling.source] = max(horizons.get(coupling.source, 0.0), coupling.delay)
        self._history = {source: DeviationHistory(h) for source, h in horizons.items()}

    @property
    def sources(self):
        return tuple(self._history)

    def commit(self, t: float, deviations: Mapping[Signal, float]):
        for source, history in self._history.items():
            history.push(t, float(deviations.get(source, 0.0)))

    def _source_deviation(self, coupling: Coupling) -> float:
        history = self._history[coupling.source]
        if coupling.delay <= 0.0:
            return history.latest()
        last = history.last_time()
        if last is None:
            return 0.0
        return history.at_or_before(last - coupling.delay)

    def contribution(self, definition: SignalDefinition) -> float:
        total = 0.0
        for coupling in definition.couplings:
            total += coupling.effect.value * coupling.strength * self._source_deviation(coupling)
        return total

    def contributions(self) -> Dict[Signal, float]:
        return {key: self.contribution(definition) for key, definition in self._catalog.items()}
