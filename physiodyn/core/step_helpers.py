"""
Step Helper Methods Mixin for SimulationEngine.

This module contains the private _step_* methods that implement one outer
step: intervention kernels, setpoints, homeostasis and the signal
relaxation. They are extracted here for maintainability while preserving
the SimulationEngine API.
"""

from typing import TYPE_CHECKING, Dict
import math

from physiodyn.core.constants import MINUTES_PER_DAY
from physiodyn.core.enums import Driver, Enzyme, PDMechanism
from physiodyn.core.utils import clamp, finite_or_zero
from physiodyn.interventions.kernels import (
    PharmacologyKernel,
    enzyme_activities,
    evaluate_kernel,
    receptor_occupancies,
)
from physiodyn.interventions.pharmacology import ADAPTATION_FOR_MECHANISM
from physiodyn.physiology.homeostasis import HomeostasisInputs, step_homeostasis
from physiodyn.signals.definitions import SetpointContext, Signal, SignalDefinition

if TYPE_CHECKING:
    from .engine import SimulationEngine

# Signals whose setpoint feeds a homeostasis baseline.
HOMEOSTASIS_BASELINES = (
    ("baseline_glucose", Signal.GLUCOSE),
    ("baseline_dopamine", Signal.DOPAMINE),
    ("baseline_serotonin", Signal.SEROTONIN),
    ("baseline_norepi", Signal.NOREPI),
    ("baseline_gaba", Signal.GABA),
    ("baseline_glutamate", Signal.GLUTAMATE),
    ("baseline_acetylcholine", Signal.ACETYLCHOLINE),
    ("baseline_bdnf", Signal.BDNF),
    ("baseline_adrenaline", Signal.ADRENALINE),
)

# Drivers with a non-zero resting value; interventions add to it.
DRIVER_REST = {
    Driver.TRYPTOPHAN: 0.8,
    Driver.PRECURSOR: 0.8,
}

SLEEP_THRESHOLD = 0.5


class StepHelpersMixin:
    """
    Mixin providing step helper methods for SimulationEngine.

    - Intervention kernels (signal contributions, drivers, receptor drive,
      enzyme activity)
    - Setpoints
    - Homeostasis
    - Signal relaxation and clamping
    """

    def _finite(self: "SimulationEngine", value: float, label: str) -> float:
        if self.config.nan_policy == "raise":
            v = float(value)
            if not math.isfinite(v):
                raise FloatingPointError(f"Non-finite value {v} from {label}")
            return v
        return finite_or_zero(value, label)

    def _step_interventions(self: "SimulationEngine", t: float):
        """Evaluate every live kernel at t and store the totals on the state."""
        kernel_totals: Dict[Signal, float] = {}
        drivers: Dict[Driver, float] = {}
        receptor_drive = {}
        enzyme_activity: Dict[Enzyme, float] = {}
        concentrations: Dict[str, float] = {}

        if self.config.enable_interventions:
            for active in self.interventions:
                elapsed = active.elapsed(t)
                if elapsed < 0.0:
                    continue
                for signal, kernel in active.signal_kernels:
                    if not active.is_live(kernel, t):
                        continue
                    label = f"{active.key}->{signal.value}"
                    value = self._finite(evaluate_kernel(kernel, elapsed), label)
                    kernel_totals[signal] = kernel_totals.get(signal, 0.0) + value
                    if isinstance(kernel, PharmacologyKernel):
                        concentrations[kernel.drug] = max(concentrations.get(kernel.drug, 0.0),
                                                          kernel.concentration(elapsed))
                for driver, kernel in active.driver_kernels:
                    if not active.is_live(kernel, t):
                        continue
                    value = self._finite(evaluate_kernel(kernel, elapsed), f"{active.key}->{driver.value}")
                    drivers[driver] = drivers.get(driver, 0.0) + value

                for receptor, occ, mechanism, tau in receptor_occupancies(active.signal_kernels, elapsed):
                    adaptation = ADAPTATION_FOR_MECHANISM[mechanism]
                    if adaptation is None or occ <= receptor_drive.get(receptor, (0.0,))[0]:
                        continue
                    efficacy = tau if mechanism in (PDMechanism.AGONIST, PDMechanism.PARTIAL_AGONIST) else None
                    receptor_drive[receptor] = (occ, adaptation, efficacy)
                for enzyme, activity in enzyme_activities(active.signal_kernels, elapsed):
                    enzyme_activity[enzyme] = enzyme_activity.get(enzyme, 1.0) * activity

        state = self.state
        state.kernel_totals = kernel_totals
        state.drivers = drivers
        state.enzyme_activity = enzyme_activity
        state.concentrations = concentrations
        state.is_asleep = drivers.get(Driver.SLEEP, 0.0) >= SLEEP_THRESHOLD
        self._receptor_drive = receptor_drive

    def _step_setpoints(self: "SimulationEngine", t: float) -> Dict[Signal, float]:
        """Raw setpoints at t. Stored on the state as the baseline the values are built on."""
        ctx = SetpointContext(minute=t, subject=self.subject, physiology=self.physiology,
                              is_asleep=self.state.is_asleep)
        raw = {}
        for key, definition in self.catalog.items():
            raw[key] = self._finite(definition.setpoint(ctx), f"setpoint:{key.value}")
        self.state.setpoints = (raw if self.config.enable_baselines
                                else {key: 0.0 for key in raw})
        return raw

    def _homeostasis_inputs(self: "SimulationEngine", t_start: float,
                            raw_setpoints: Dict[Signal, float]) -> HomeostasisInputs:
        drivers = self.state.drivers
        kwargs = {name: raw_setpoints.get(signal, 0.0) for name, signal in HOMEOSTASIS_BASELINES}
        for driver, total in drivers.items():
            if driver is Driver.SLEEP:
                continue
            kwargs[driver.value] = DRIVER_REST.get(driver, 0.0) + total
        return HomeostasisInputs(
            receptor_drive=dict(self._receptor_drive),
            is_asleep=self.state.is_asleep,
            minute_of_day=t_start % MINUTES_PER_DAY,
            **kwargs,
        )

    def _step_homeostasis(self: "SimulationEngine", t_start: float, dt: float,
                          raw_setpoints: Dict[Signal, float]):
        """Advance the homeostatic loops over [t_start, t_start + dt] and store the corrections."""
        if not self.config.enable_homeostasis:
            self.state.corrections = {}
            return
        inputs = self._homeostasis_inputs(t_start, raw_setpoints)
        new_state, corrections = step_homeostasis(self.state.homeostasis, inputs, self.homeostasis_params, dt)
        self.state.homeostasis = new_state
        folded: Dict[Signal, float] = {}
        for key, value in corrections.items():
            signal = Signal.parse(key)
            if signal in self.catalog:
                folded[signal] = self._finite(value, f"homeostasis:{key}")
        self.state.corrections = folded

    def _production(self: "SimulationEngine", definition: SignalDefinition) -> float:
        pools = self.state.homeostasis
        return sum(term.coefficient * (getattr(pools, term.pool) - term.rest) for term in definition.production)

    def _clearance_rate(self: "SimulationEngine", definition: SignalDefinition) -> float:
        activity = self.state.enzyme_activity
        return sum(term.rate * (activity.get(term.enzyme, 1.0) if term.enzyme is not None else 1.0)
                   for term in definition.clearance)

    def _step_signals(self: "SimulationEngine", dt: float):
        """
        Relax every deviation toward its target over dt, then clamp.

        target = couplings + kernels + production + homeostasis correction;
        dev <- target + (dev - target) * exp(-k dt), k = 1/tau + clearance.
        """
        state = self.state
        couplings = self.couplings.contributions() if self.config.enable_couplings else {}
        for key, definition in self.catalog.items():
            target = (couplings.get(key, 0.0)
                      + state.kernel_totals.get(key, 0.0)
                      + self._production(definition)
                      + state.corrections.get(key, 0.0))
            target = self._finite(target, f"target:{key.value}")
            k = 1.0 / definition.tau + self._clearance_rate(definition)
            deviation = state.deviations.get(key, 0.0)
            deviation = target + (deviation - target) * math.exp(-k * dt)

            base = state.setpoints[key]
            value = clamp(base + deviation, definition.min_value, definition.max_value)
            state.values[key] = value
            state.deviations[key] = value - base
