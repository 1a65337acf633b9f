import logging
import threading
import time
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from .cache import KernelCache
from .recorder import SeriesRecorder
from .request import ComputeRequest, ComputeResponse, RequestValidationError
from .state import SimulationConfig, SimulationState
from .step_helpers import StepHelpersMixin
from physiodyn.core.utils import clamp
from physiodyn.interventions.library import ActiveIntervention, InterventionParams, activate
from physiodyn.patient.subject import Physiology, Subject, derive_physiology
from physiodyn.physiology.homeostasis import (
    POOL_FIELDS,
    HomeostasisParams,
    HomeostasisState,
    deserialize_homeostasis,
    serialize_homeostasis,
)
from physiodyn.signals.catalog import CATALOG
from physiodyn.signals.couplings import CouplingEvaluator
from physiodyn.signals.definitions import Signal, SignalDefinition

LOGGER = logging.getLogger(__name__)


class SimulationCancelled(Exception):
    """Raised inside a run when its cancel event is set."""


def homeostasis_params_for(physiology: Physiology) -> HomeostasisParams:
    return HomeostasisParams(metabolic_rate=physiology.metabolic_capacity)


class SimulationEngine(StepHelpersMixin):
    """
    Main simulation orchestrator.
    Manages time, advances the signal and homeostasis layers, and records series.

    State management:
    - `self.state` is the one mutable SimulationState of the run.
    - Interventions are bound to the subject when scheduled; their kernels
      are pure and evaluated at each step's elapsed time.
    """
    def __init__(self, subject: Optional[Subject] = None, config: Optional[SimulationConfig] = None,
                 physiology: Optional[Physiology] = None,
                 catalog: Optional[Mapping[Signal, SignalDefinition]] = None,
                 kernel_cache: Optional[KernelCache] = None,
                 homeostasis=None,
                 homeostasis_params: Optional[HomeostasisParams] = None):
        self.subject = subject or Subject()
        self.physiology = physiology or derive_physiology(self.subject)
        self.config = config or SimulationConfig()
        self.catalog: Dict[Signal, SignalDefinition] = dict(CATALOG if catalog is None else catalog)
        self.kernel_cache = kernel_cache
        self.homeostasis_params = homeostasis_params or homeostasis_params_for(self.physiology)

        # Snapshot (dict) or state used at the start of every run.
        if isinstance(homeostasis, HomeostasisState):
            self._initial_homeostasis = homeostasis.copy()
        else:
            self._initial_homeostasis = deserialize_homeostasis(homeostasis)

        self.interventions: List[ActiveIntervention] = []
        self.recorder: Optional[SeriesRecorder] = None
        self.state = SimulationState()
        self.couplings = CouplingEvaluator(self.catalog)
        self._receptor_drive = {}

        self.initialize_state(0.0)

    def initialize_state(self, t0: float):
        """Signals at their setpoints (zero deviation), homeostasis from the initial snapshot."""
        self.state = SimulationState(time=float(t0), homeostasis=self._initial_homeostasis.copy())
        self.couplings = CouplingEvaluator(self.catalog)
        self._step_interventions(self.state.time)
        self._step_setpoints(self.state.time)
        for key, definition in self.catalog.items():
            base = self.state.setpoints[key]
            value = clamp(base, definition.min_value, definition.max_value)
            self.state.values[key] = value
            self.state.deviations[key] = value - base
        self.couplings.commit(self.state.time, self.state.deviations)

    def schedule(self, key: str, start: float, duration: float, params: InterventionParams,
                 intervention_id: str = "") -> ActiveIntervention:
        """Bind an intervention to this engine's subject and add it to the schedule."""
        active = activate(key, start, duration, params, self.subject, self.physiology,
                          cache=self.kernel_cache, intervention_id=intervention_id)
        self.interventions.append(active)
        return active

    def clear_interventions(self):
        self.interventions.clear()

    def start_recording(self, output_dir: str = "recordings", sample_interval_min: float = 1.0):
        self.recorder = SeriesRecorder(output_dir=output_dir, sample_interval_min=sample_interval_min)
        self.recorder.start(list(self.catalog))

    def stop_recording(self):
        if self.recorder:
            self.recorder.stop()

    def step(self, dt: float):
        """Advance the run by dt minutes."""
        if not (dt > 0.0):
            raise ValueError(f"dt must be positive, got {dt}")
        t_start = self.state.time
        t = t_start + dt

        self._step_interventions(t)
        raw_setpoints = self._step_setpoints(t)
        self._step_homeostasis(t_start, dt, raw_setpoints)
        self._step_signals(dt)

        self.state.time = t
        self.state.step_index += 1
        self.couplings.commit(t, self.state.deviations)

        if self.recorder:
            self.recorder.log(self.state)

    def get_latest_state(self) -> SimulationState:
        return self.state

    def run(self, times: Sequence[float], cancel_event: Optional[threading.Event] = None) -> ComputeResponse:
        """
        Simulate over the grid `times` and return series aligned with it.

        Checks `cancel_event` before every step and raises SimulationCancelled
        once it is set.
        """
        started = time.perf_counter()
        times = np.asarray(times, dtype=float)
        if times.ndim != 1 or times.size == 0:
            raise RequestValidationError("time grid must be a non-empty 1-D sequence")
        self.initialize_state(times[0])

        signals = list(self.catalog)
        series = {key: np.empty(times.size) for key in signals}
        pools = None
        if self.config.record_homeostasis:
            pools = {name: np.empty(times.size) for name in POOL_FIELDS}

        def record(i: int):
            for key in signals:
                series[key][i] = self.state.values[key]
            if pools is not None:
                for name in POOL_FIELDS:
                    pools[name][i] = getattr(self.state.homeostasis, name)

        if self.recorder:
            self.recorder.log(self.state)
        record(0)
        for i in range(1, times.size):
            if cancel_event is not None and cancel_event.is_set():
                raise SimulationCancelled(f"Run cancelled at t={self.state.time:.1f} min")
            self.step(times[i] - times[i - 1])
            record(i)

        duration_ms = (time.perf_counter() - started) * 1000.0
        LOGGER.debug("Simulated %d steps (%.0f min) in %.1f ms",
                     times.size - 1, times[-1] - times[0], duration_ms)
        return ComputeResponse(
            times=times,
            series={key.value: values for key, values in series.items()},
            homeostasis=serialize_homeostasis(self.state.homeostasis),
            duration_ms=duration_ms,
            homeostasis_series=pools,
        )


def compute(request: ComputeRequest, kernel_cache: Optional[KernelCache] = None,
            cancel_event: Optional[threading.Event] = None) -> ComputeResponse:
    """Run one validated request from a fresh engine."""
    engine = SimulationEngine(
        subject=request.subject,
        config=request.config,
        physiology=request.physiology,
        kernel_cache=kernel_cache,
        homeostasis=request.homeostasis,
    )
    for spec in request.interventions:
        engine.schedule(spec.key, spec.start, spec.duration, spec.params, intervention_id=spec.id)
    return engine.run(request.times, cancel_event=cancel_event)
