"""
Static signal definitions.

A signal's value is setpoint(t) + deviation. Each step the deviation relaxes
toward a target built from couplings, kernel contributions, production terms
and the homeostasis correction (see physiodyn.core.step_helpers).
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple

from physiodyn.core.constants import MINUTES_PER_DAY
from physiodyn.core.enums import Effect, Enzyme
from physiodyn.patient.subject import Physiology, Subject, cycle_day, derive_physiology
from physiodyn.physiology.homeostasis import DEFAULT_HOMEOSTASIS_STATE, POOL_FIELDS
from .shapes import minute_to_phase


class Signal(Enum):
    """Closed set of simulated signals."""
    GLUCOSE = "glucose"
    INSULIN = "insulin"
    GLUCAGON = "glucagon"
    CORTISOL = "cortisol"
    ADRENALINE = "adrenaline"
    MELATONIN = "melatonin"
    OREXIN = "orexin"
    HISTAMINE = "histamine"
    DOPAMINE = "dopamine"
    SEROTONIN = "serotonin"
    NOREPI = "norepi"
    GABA = "gaba"
    GLUTAMATE = "glutamate"
    ACETYLCHOLINE = "acetylcholine"
    ENDOCANNABINOID = "endocannabinoid"
    LEPTIN = "leptin"
    GHRELIN = "ghrelin"
    THYROID = "thyroid"
    GROWTH_HORMONE = "growthHormone"
    OXYTOCIN = "oxytocin"
    PROLACTIN = "prolactin"
    TESTOSTERONE = "testosterone"
    ESTROGEN = "estrogen"
    PROGESTERONE = "progesterone"
    LH = "lh"
    FSH = "fsh"
    ENERGY = "energy"
    HRV = "hrv"
    BLOOD_PRESSURE = "bloodPressure"
    INFLAMMATION = "inflammation"
    BDNF = "bdnf"
    VAGAL = "vagal"
    KETONE = "ketone"
    ETHANOL = "ethanol"

    @classmethod
    def parse(cls, value) -> "Signal":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise KeyError(f"Unknown signal: {value!r}")


@dataclass(frozen=True)
class SetpointContext:
    """Everything a setpoint function may read."""
    minute: float
    subject: Subject = field(default_factory=Subject)
    physiology: Optional[Physiology] = None
    is_asleep: bool = False

    @property
    def minute_of_day(self) -> float:
        return self.minute % MINUTES_PER_DAY

    @property
    def phase(self) -> float:
        return minute_to_phase(self.minute_of_day)

    @property
    def cycle_day(self) -> float:
        return cycle_day(self.subject, self.minute)

    @property
    def metabolic_capacity(self) -> float:
        physiology = self.physiology or derive_physiology(self.subject)
        return physiology.metabolic_capacity


@dataclass(frozen=True)
class Coupling:
    """
    Directed edge source -> target.

    Contribution to the target's deviation is
    effect.value * strength * (source value - source setpoint), read from the
    previous step, or from `delay` minutes earlier.
    """
    source: Signal
    effect: Effect
    strength: float
    delay: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "source", Signal.parse(self.source))
        if self.strength < 0 or not math.isfinite(self.strength):
            raise ValueError(f"Coupling strength must be finite and >= 0, got {self.strength}")
        if self.delay < 0:
            raise ValueError(f"Coupling delay must be >= 0, got {self.delay}")


@dataclass(frozen=True)
class ProductionTerm:
    """Drive from a homeostasis pool: coefficient * (pool - resting level)."""
    pool: str
    coefficient: float

    def __post_init__(self):
        if self.pool not in POOL_FIELDS:
            raise KeyError(f"Unknown homeostasis pool: {self.pool!r}")

    @property
    def rest(self) -> float:
        return getattr(DEFAULT_HOMEOSTASIS_STATE, self.pool)


@dataclass(frozen=True)
class ClearanceTerm:
    """
    Extra first-order return toward setpoint (1/min).

    With an enzyme, the rate is scaled by that enzyme's current activity
    (1.0 unless inhibited by an active intervention).
    """
    rate: float
    enzyme: Optional[Enzyme] = None

    def __post_init__(self):
        if self.enzyme is not None:
            object.__setattr__(self, "enzyme", Enzyme.parse(self.enzyme))


@dataclass(frozen=True)
class SignalDefinition:
    key: Signal
    unit: str
    setpoint: Callable[[SetpointContext], float]
    tau: float
    couplings: Tuple[Coupling, ...] = ()
    production: Tuple[ProductionTerm, ...] = ()
    clearance: Tuple[ClearanceTerm, ...] = ()
    min_value: float = 0.0
    max_value: float = math.inf

    def __post_init__(self):
        if self.tau <= 0:
            raise ValueError(f"{self.key.value}: tau must be positive")
        if self.min_value > self.max_value:
            raise ValueError(f"{self.key.value}: min_value > max_value")


def stim(source, strength: float, delay: float = 0.0) -> Coupling:
    return Coupling(Signal.parse(source), Effect.STIMULATE, strength, delay)


def inhib(source, strength: float, delay: float = 0.0) -> Coupling:
    return Coupling(Signal.parse(source), Effect.INHIBIT, strength, delay)
