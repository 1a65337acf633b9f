"""
Intervention library.

Each intervention type is a frozen parameter dataclass validated at
construction. `build_kernels` turns parameters plus a duration into kernel
bindings: (Signal, kernel) pairs added to signal targets, and
(Driver, kernel) pairs summed into the homeostasis inputs.

Pharmacology kernels depend on the subject, so they go through the
session's kernel cache when one is supplied.
"""

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from physiodyn.core.enums import Driver, NutrientKind
from physiodyn.patient.subject import Physiology, Subject, derive_physiology
from physiodyn.signals.definitions import Signal
from .kernels import AlcoholKernel, EnvelopeKernel, NutrientKernel, pharmacology_kernels
from .pharmacology import REGISTRY, SUPPLEMENTS, get_pharmacology, normalize_drug_name

LOGGER = logging.getLogger(__name__)

ALCOHOL_GRAMS_PER_UNIT = 10.0   # one standard drink
LIGHT_SATURATION_LUX = 2000.0

Bindings = Tuple[Tuple[Any, Any], ...]


def _require(condition: bool, message: str):
    if not condition:
        raise ValueError(message)


def _non_negative(obj, *names):
    for name in names:
        value = getattr(obj, name)
        _require(isinstance(value, (int, float)) and math.isfinite(value) and value >= 0.0,
                 f"{type(obj).__name__}.{name} must be a finite number >= 0, got {value!r}")


def _fraction(obj, *names):
    _non_negative(obj, *names)
    for name in names:
        _require(getattr(obj, name) <= 1.0, f"{type(obj).__name__}.{name} must be <= 1")


def _envelope(amplitude: float, duration: float, ramp: float = 5.0, offset_tau: float = 0.0) -> EnvelopeKernel:
    return EnvelopeKernel(amplitude=amplitude, duration=duration, ramp=ramp, offset_tau=offset_tau)


@dataclass(frozen=True)
class InterventionParams:
    """Base class; subclasses set `key` and implement `kernels`."""
    key: ClassVar[str] = ""

    def kernels(self, duration: float, subject: Subject, physiology: Physiology,
                cache=None) -> Tuple[Bindings, Bindings]:
        raise NotImplementedError


@dataclass(frozen=True)
class Food(InterventionParams):
    key: ClassVar[str] = "food"
    sugar: float = 0.0             # g
    starch: float = 0.0            # g
    protein: float = 0.0           # g
    fat: float = 0.0               # g
    fiber_soluble: float = 0.0     # g
    fiber_insoluble: float = 0.0   # g
    water_ml: float = 0.0
    glycemic_index: float = 60.0
    protein_type: str = "mixed"
    fat_type: str = "mixed"

    def __post_init__(self):
        _non_negative(self, "sugar", "starch", "protein", "fat", "fiber_soluble",
                      "fiber_insoluble", "water_ml", "glycemic_index")
        _require(self.glycemic_index <= 150.0, "Food.glycemic_index must be <= 150")

    def _nutrient(self, kind: NutrientKind, gain: float, weight: float) -> NutrientKernel:
        return NutrientKernel(
            kind=kind, gain=gain, sugar=self.sugar, starch=self.starch,
            glycemic_index=self.glycemic_index, protein=self.protein, protein_type=self.protein_type,
            fat=self.fat, fat_type=self.fat_type, fiber_soluble=self.fiber_soluble,
            fiber_insoluble=self.fiber_insoluble, water_ml=self.water_ml, weight=weight,
        )

    def kernels(self, duration, subject, physiology, cache=None):
        carbs = self.sugar + self.starch
        drivers = []
        signals = []
        if carbs > 0.0:
            drivers.append((Driver.GLUCOSE_APPEARANCE, self._nutrient(NutrientKind.CARBOHYDRATE, 1.0, subject.weight)))
        if self.protein > 0.0:
            drivers.append((Driver.TRYPTOPHAN, self._nutrient(NutrientKind.PROTEIN, 0.001, subject.weight)))
        if self.fat > 0.0:
            signals.append((Signal.GHRELIN, self._nutrient(NutrientKind.FAT, -0.5, subject.weight)))
        satiety = min(300.0, 3.0 * (carbs + self.protein))
        if satiety > 0.0:
            signals.append((Signal.GHRELIN, _envelope(-satiety, duration, ramp=15.0, offset_tau=120.0)))
        reward = min(6.0, 0.08 * self.sugar + 0.03 * self.fat)
        if reward > 0.0:
            signals.append((Signal.DOPAMINE, _envelope(reward, duration, ramp=5.0, offset_tau=30.0)))
        return tuple(signals), tuple(drivers)


def _cached_pharmacology(drug: str, dose: float, subject: Subject, physiology: Physiology, cache):
    pharm = get_pharmacology(drug)
    if cache is None:
        return pharmacology_kernels(pharm, dose, subject, physiology)
    key = (pharm.name, float(dose), subject, physiology.cache_key())
    return cache.get_or_create(key, lambda: pharmacology_kernels(pharm, dose, subject, physiology))


@dataclass(frozen=True)
class Caffeine(InterventionParams):
    key: ClassVar[str] = "caffeine"
    mg: float = 100.0

    def __post_init__(self):
        _non_negative(self, "mg")

    def kernels(self, duration, subject, physiology, cache=None):
        return _cached_pharmacology("caffeine", self.mg, subject, physiology, cache)


@dataclass(frozen=True)
class Medication(InterventionParams):
    """Any agent in the pharmacology registry, dosed in mg."""
    key: ClassVar[str] = "medication"
    drug: str = "methylphenidate"
    mg: float = 10.0

    def __post_init__(self):
        _non_negative(self, "mg")
        try:
            get_pharmacology(self.drug)
        except KeyError:
            raise ValueError(f"Medication.drug must be one of {sorted(REGISTRY)}, got {self.drug!r}") from None

    def kernels(self, duration, subject, physiology, cache=None):
        return _cached_pharmacology(self.drug, self.mg, subject, physiology, cache)


@dataclass(frozen=True)
class Alcohol(InterventionParams):
    key: ClassVar[str] = "alcohol"
    units: float = 1.0

    def __post_init__(self):
        _non_negative(self, "units")

    @property
    def grams(self) -> float:
        return self.units * ALCOHOL_GRAMS_PER_UNIT

    def kernels(self, duration, subject, physiology, cache=None):
        def bac(gain):
            return AlcoholKernel(grams=self.grams, gain=gain, weight=subject.weight,
                                 sex=subject.sex.value, metabolic_rate=physiology.metabolic_capacity)
        signals = (
            (Signal.ETHANOL, bac(1.0)),
            (Signal.DOPAMINE, bac(0.1)),
            (Signal.CORTISOL, bac(0.03)),
            (Signal.INFLAMMATION, bac(0.004)),
        )
        drivers = (
            (Driver.ALCOHOL_LEVEL, bac(1.0)),
            (Driver.GLUTAMATE_BLOCK, bac(0.005)),
        )
        return signals, drivers


@dataclass(frozen=True)
class Supplement(InterventionParams):
    """Over-the-counter supplement from the pharmacology registry, dosed in mg."""
    key: ClassVar[str] = "supplement"
    name: str = "l_tyrosine"
    mg: float = 500.0

    def __post_init__(self):
        _non_negative(self, "mg")
        _require(normalize_drug_name(self.name) in SUPPLEMENTS,
                 f"Supplement.name must be one of {list(SUPPLEMENTS)}, got {self.name!r}")

    def kernels(self, duration, subject, physiology, cache=None):
        return _cached_pharmacology(self.name, self.mg, subject, physiology, cache)


def _sympathetic_load(level: float, duration: float) -> Bindings:
    return (
        (Signal.ADRENALINE, _envelope(150.0 * level, duration, ramp=3.0, offset_tau=15.0)),
        (Signal.NOREPI, _envelope(300.0 * level, duration, ramp=3.0, offset_tau=20.0)),
        (Signal.HRV, _envelope(-20.0 * level, duration, ramp=3.0, offset_tau=30.0)),
        (Signal.BLOOD_PRESSURE, _envelope(25.0 * level, duration, ramp=3.0, offset_tau=15.0)),
    )


def _mechanical_load(level: float, duration: float) -> Bindings:
    """Anabolic hormones during the set, plus delayed-onset muscle soreness afterwards."""
    return (
        (Signal.TESTOSTERONE, _envelope(40.0 * level, duration, ramp=20.0, offset_tau=60.0)),
        (Signal.GROWTH_HORMONE, _envelope(5.0 * level, duration, ramp=15.0, offset_tau=45.0)),
        (Signal.INFLAMMATION, _envelope(0.5 * level, duration, ramp=30.0, offset_tau=240.0)),
    )


@dataclass(frozen=True)
class Exercise(InterventionParams):
    """Steady cardio."""
    key: ClassVar[str] = "exercise"
    intensity: float = 0.6   # fraction of max effort

    def __post_init__(self):
        _fraction(self, "intensity")

    def kernels(self, duration, subject, physiology, cache=None):
        i = self.intensity
        signals = _sympathetic_load(i, duration) + (
            (Signal.DOPAMINE, _envelope(3.0 * i, duration, ramp=10.0, offset_tau=30.0)),
            (Signal.ENDOCANNABINOID, _envelope(4.0 * i, duration, ramp=20.0, offset_tau=60.0)),
            (Signal.GROWTH_HORMONE, _envelope(3.0 * i, duration, ramp=15.0, offset_tau=45.0)),
            (Signal.SEROTONIN, _envelope(0.5 * i, duration, ramp=20.0, offset_tau=60.0)),
        )
        drivers = ((Driver.EXERCISE_INTENSITY, _envelope(i, duration, ramp=3.0, offset_tau=10.0)),)
        return signals, drivers


@dataclass(frozen=True)
class ResistanceTraining(InterventionParams):
    """Weights: less sympathetic and metabolic load than cardio, more mechanical load."""
    key: ClassVar[str] = "exercise_resistance"
    intensity: float = 0.7

    def __post_init__(self):
        _fraction(self, "intensity")

    def kernels(self, duration, subject, physiology, cache=None):
        i = self.intensity
        signals = _sympathetic_load(0.7 * i, duration) + _mechanical_load(i, duration) + (
            (Signal.DOPAMINE, _envelope(2.0 * i, duration, ramp=10.0, offset_tau=30.0)),
        )
        drivers = ((Driver.EXERCISE_INTENSITY, _envelope(0.5 * i, duration, ramp=3.0, offset_tau=10.0)),)
        return signals, drivers


@dataclass(frozen=True)
class HIIT(InterventionParams):
    """High-intensity intervals: 1.5x the sympathetic and metabolic load of cardio."""
    key: ClassVar[str] = "exercise_hiit"
    intensity: float = 0.8

    def __post_init__(self):
        _fraction(self, "intensity")

    def kernels(self, duration, subject, physiology, cache=None):
        i = self.intensity
        signals = _sympathetic_load(1.5 * i, duration) + _mechanical_load(0.5 * i, duration) + (
            (Signal.DOPAMINE, _envelope(4.0 * i, duration, ramp=5.0, offset_tau=30.0)),
        )
        drivers = (
            (Driver.EXERCISE_INTENSITY, _envelope(1.5 * i, duration, ramp=2.0, offset_tau=15.0)),
            (Driver.STRESS_LEVEL, _envelope(0.5 * i, duration, ramp=2.0, offset_tau=20.0)),
        )
        return signals, drivers


@dataclass(frozen=True)
class Sleep(InterventionParams):
    key: ClassVar[str] = "sleep"
    quality: float = 1.0

    def __post_init__(self):
        _fraction(self, "quality")

    def kernels(self, duration, subject, physiology, cache=None):
        q = self.quality
        signals = (
            (Signal.ADRENALINE, _envelope(-10.0 * q, duration, ramp=15.0)),
            (Signal.CORTISOL, _envelope(-1.0 * q, duration, ramp=30.0)),
            (Signal.OREXIN, _envelope(-60.0 * q, duration, ramp=15.0)),
            (Signal.HISTAMINE, _envelope(-10.0 * q, duration, ramp=15.0)),
            (Signal.HRV, _envelope(15.0 * q, duration, ramp=15.0)),
            (Signal.GABA, _envelope(40.0 * q, duration, ramp=15.0)),
            (Signal.VAGAL, _envelope(0.2 * q, duration, ramp=15.0)),
            (Signal.GROWTH_HORMONE, _envelope(2.0 * q, duration, ramp=30.0)),
        )
        drivers = ((Driver.SLEEP, _envelope(1.0, duration, ramp=0.0)),)
        return signals, drivers


@dataclass(frozen=True)
class Nap(InterventionParams):
    """Short daytime sleep: clears adenosine pressure without the nocturnal hormone profile."""
    key: ClassVar[str] = "nap"
    quality: float = 1.0

    def __post_init__(self):
        _fraction(self, "quality")

    def kernels(self, duration, subject, physiology, cache=None):
        q = self.quality
        signals = (
            (Signal.GABA, _envelope(30.0 * q, duration, ramp=5.0, offset_tau=5.0)),
            (Signal.MELATONIN, _envelope(10.0 * q, duration, ramp=8.0, offset_tau=8.0)),
            (Signal.HISTAMINE, _envelope(-7.5 * q, duration, ramp=10.0, offset_tau=10.0)),
            (Signal.OREXIN, _envelope(-15.0 * q, duration, ramp=10.0, offset_tau=10.0)),
            (Signal.NOREPI, _envelope(-60.0 * q, duration, ramp=10.0, offset_tau=10.0)),
        )
        drivers = ((Driver.SLEEP, _envelope(1.0, duration, ramp=0.0)),)
        return signals, drivers


@dataclass(frozen=True)
class Wake(InterventionParams):
    """Waking up: cortisol awakening response, melatonin offset, arousal systems come online."""
    key: ClassVar[str] = "wake"

    def kernels(self, duration, subject, physiology, cache=None):
        signals = (
            (Signal.CORTISOL, _envelope(6.0, duration, ramp=15.0, offset_tau=30.0)),
            (Signal.DOPAMINE, _envelope(4.0, duration, ramp=5.0, offset_tau=10.0)),
            (Signal.MELATONIN, _envelope(-40.0, duration, ramp=5.0, offset_tau=20.0)),
            (Signal.GABA, _envelope(-40.0, duration, ramp=10.0, offset_tau=45.0)),
            (Signal.OREXIN, _envelope(20.0, duration, ramp=5.0, offset_tau=15.0)),
            (Signal.ACETYLCHOLINE, _envelope(3.75, duration, ramp=5.0, offset_tau=15.0)),
        )
        return signals, ()


@dataclass(frozen=True)
class LightExposure(InterventionParams):
    key: ClassVar[str] = "light"
    lux: float = 1000.0

    def __post_init__(self):
        _non_negative(self, "lux")

    def kernels(self, duration, subject, physiology, cache=None):
        m = min(1.0, self.lux / LIGHT_SATURATION_LUX)
        signals = (
            (Signal.MELATONIN, _envelope(-60.0 * m, duration, ramp=10.0, offset_tau=20.0)),
            (Signal.OREXIN, _envelope(20.0 * m, duration, ramp=10.0, offset_tau=30.0)),
            (Signal.CORTISOL, _envelope(1.0 * m, duration, ramp=20.0, offset_tau=30.0)),
            (Signal.SEROTONIN, _envelope(0.5 * m, duration, ramp=20.0, offset_tau=60.0)),
        )
        return signals, ()


@dataclass(frozen=True)
class Stress(InterventionParams):
    key: ClassVar[str] = "stress"
    level: float = 0.5

    def __post_init__(self):
        _fraction(self, "level")

    def kernels(self, duration, subject, physiology, cache=None):
        s = self.level
        signals = (
            (Signal.ADRENALINE, _envelope(100.0 * s, duration, ramp=2.0, offset_tau=15.0)),
            (Signal.NOREPI, _envelope(200.0 * s, duration, ramp=2.0, offset_tau=20.0)),
            (Signal.HRV, _envelope(-15.0 * s, duration, ramp=5.0, offset_tau=30.0)),
            (Signal.BLOOD_PRESSURE, _envelope(15.0 * s, duration, ramp=2.0, offset_tau=15.0)),
            (Signal.SEROTONIN, _envelope(-0.5 * s, duration, ramp=20.0, offset_tau=60.0)),
        )
        drivers = ((Driver.STRESS_LEVEL, _envelope(s, duration, ramp=2.0, offset_tau=20.0)),)
        return signals, drivers


@dataclass(frozen=True)
class Meditation(InterventionParams):
    key: ClassVar[str] = "meditation"
    depth: float = 0.7

    def __post_init__(self):
        _fraction(self, "depth")

    def kernels(self, duration, subject, physiology, cache=None):
        d = self.depth
        signals = (
            (Signal.HRV, _envelope(15.0 * d, duration, ramp=10.0, offset_tau=30.0)),
            (Signal.VAGAL, _envelope(0.25 * d, duration, ramp=10.0, offset_tau=30.0)),
            (Signal.GABA, _envelope(30.0 * d, duration, ramp=10.0, offset_tau=30.0)),
            (Signal.ADRENALINE, _envelope(-10.0 * d, duration, ramp=10.0, offset_tau=20.0)),
            (Signal.BLOOD_PRESSURE, _envelope(-6.0 * d, duration, ramp=10.0, offset_tau=20.0)),
            (Signal.CORTISOL, _envelope(-1.0 * d, duration, ramp=20.0, offset_tau=30.0)),
        )
        drivers = ((Driver.MEDITATION_EFFECT, _envelope(d, duration, ramp=10.0, offset_tau=30.0)),)
        return signals, drivers


@dataclass(frozen=True)
class Social(InterventionParams):
    key: ClassVar[str] = "social"
    closeness: float = 0.7

    def __post_init__(self):
        _fraction(self, "closeness")

    def kernels(self, duration, subject, physiology, cache=None):
        c = self.closeness
        signals = (
            (Signal.OXYTOCIN, _envelope(5.0 * c, duration, ramp=10.0, offset_tau=10.0)),
            (Signal.DOPAMINE, _envelope(4.0 * c, duration, ramp=15.0, offset_tau=15.0)),
            (Signal.SEROTONIN, _envelope(1.0 * c, duration, ramp=15.0, offset_tau=15.0)),
            (Signal.CORTISOL, _envelope(-1.5 * c, duration, ramp=20.0, offset_tau=30.0)),
            (Signal.VAGAL, _envelope(0.2 * c, duration, ramp=10.0, offset_tau=20.0)),
            (Signal.ENDOCANNABINOID, _envelope(3.0 * c, duration, ramp=15.0, offset_tau=30.0)),
        )
        drivers = ((Driver.STRESS_LEVEL, _envelope(-0.2 * c, duration, ramp=10.0, offset_tau=30.0)),)
        return signals, drivers


INTERVENTIONS: Dict[str, Type[InterventionParams]] = {
    cls.key: cls
    for cls in (Food, Caffeine, Medication, Supplement, Alcohol, Exercise, ResistanceTraining, HIIT,
                Sleep, Nap, Wake, LightExposure, Stress, Meditation, Social)
}


def parse_params(key: str, raw: Optional[Mapping[str, Any]] = None) -> InterventionParams:
    """
    Build the typed parameters for intervention `key` from a plain mapping.

    Raises KeyError for an unknown key and ValueError for unknown fields or
    invalid values.
    """
    try:
        cls = INTERVENTIONS[key]
    except KeyError:
        raise KeyError(f"Unknown intervention {key!r}; known: {sorted(INTERVENTIONS)}") from None
    raw = dict(raw or {})
    allowed = {f.name for f in fields(cls)}
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(f"{cls.__name__} has no parameter(s) {sorted(unknown)}")
    return cls(**raw)


@dataclass(frozen=True)
class ActiveIntervention:
    """One scheduled intervention with its kernels bound for a subject."""
    key: str
    start: float
    duration: float
    params: InterventionParams
    signal_kernels: Bindings = ()
    driver_kernels: Bindings = ()
    id: str = field(default="", compare=False)

    def elapsed(self, t: float) -> float:
        return t - self.start

    def is_live(self, kernel, t: float) -> bool:
        """start <= t < start + duration, or any t >= start for kernels with a tail."""
        elapsed = t - self.start
        if elapsed < 0.0:
            return False
        return elapsed < self.duration or kernel.has_tail


def activate(key: str, start: float, duration: float, params: InterventionParams,
             subject: Optional[Subject] = None, physiology: Optional[Physiology] = None,
             cache=None, intervention_id: str = "") -> ActiveIntervention:
    """Bind `params` to a subject and return the schedulable intervention."""
    subject = subject or Subject()
    physiology = physiology or derive_physiology(subject)
    signals, drivers = params.kernels(duration, subject, physiology, cache)
    return ActiveIntervention(
        key=key, start=float(start), duration=float(duration), params=params,
        signal_kernels=tuple(signals), driver_kernels=tuple(drivers), id=intervention_id,
    )
