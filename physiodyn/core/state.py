from dataclasses import dataclass, field
from typing import Dict

from physiodyn.core.enums import Driver, Enzyme
from physiodyn.physiology.homeostasis import HomeostasisState
from physiodyn.signals.definitions import Signal

NAN_POLICIES = ("zero", "raise")


@dataclass
class SimulationConfig:
    """Configuration for the simulation engine."""
    dt: float = 1.0  # Outer step in minutes (used when no grid is given)

    # Debug/validation switches.
    enable_baselines: bool = True       # False: setpoints read as 0
    enable_interventions: bool = True
    enable_couplings: bool = True
    enable_homeostasis: bool = True

    # "zero": non-finite kernel/setpoint output is logged and counted as 0.
    # "raise": it raises FloatingPointError.
    nan_policy: str = "zero"

    # Emit homeostasis pool series alongside the signals.
    record_homeostasis: bool = False

    def __post_init__(self):
        if not (self.dt > 0.0):
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.nan_policy not in NAN_POLICIES:
            raise ValueError(f"nan_policy must be one of {NAN_POLICIES}, got {self.nan_policy!r}")


@dataclass
class SimulationState:
    """Mutable state of one run. Created at t0, discarded at the end of the run."""
    time: float = 0.0
    step_index: int = 0

    # Signals.
    values: Dict[Signal, float] = field(default_factory=dict)
    deviations: Dict[Signal, float] = field(default_factory=dict)
    setpoints: Dict[Signal, float] = field(default_factory=dict)
    corrections: Dict[Signal, float] = field(default_factory=dict)

    # Intervention-derived quantities at the current time.
    kernel_totals: Dict[Signal, float] = field(default_factory=dict)
    drivers: Dict[Driver, float] = field(default_factory=dict)
    enzyme_activity: Dict[Enzyme, float] = field(default_factory=dict)
    concentrations: Dict[str, float] = field(default_factory=dict)  # drug -> plasma nM
    is_asleep: bool = False

    homeostasis: HomeostasisState = field(default_factory=HomeostasisState)

    def value(self, signal) -> float:
        return self.values[Signal.parse(signal)]
