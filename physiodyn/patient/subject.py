import logging
import math
from dataclasses import dataclass

from physiodyn.core.constants import (
    AGE_RANGE,
    WEIGHT_RANGE,
    HEIGHT_RANGE,
    CYCLE_LENGTH_RANGE,
    MINUTES_PER_DAY,
    REF_BSA_M2,
    REF_LIVER_BLOOD_FLOW,
    REF_BMR_KCAL,
    REF_TBW_L,
)
from physiodyn.core.enums import Sex
from physiodyn.core.utils import clamp, clamp01

LOGGER = logging.getLogger(__name__)

# =============================================================================
# PHYSIOLOGY DERIVATION - LITERATURE REFERENCES
# =============================================================================
#
#   - BMR: Mifflin et al. Am J Clin Nutr. 1990 (Mifflin-St Jeor)
#   - TBW: Watson et al. Am J Clin Nutr. 1980
#   - LBM: Boer. Am J Physiol. 1984
#   - BSA: Mosteller. N Engl J Med. 1987
#   - eGFR: Cockcroft & Gault. Nephron. 1976 (x0.85 for female)
#   - Liver blood flow: 1.5 L/min reference adult, scaled by BSA / 1.85 m2
#
# Units:
#   - weight kg, height cm, age years
#   - tbw, lbm kg (tbw in L), bsa m2, liver blood flow L/min, eGFR mL/min
# =============================================================================


@dataclass(frozen=True)
class Subject:
    """
    Subject demographics. Immutable for the lifetime of a session.

    Out-of-range values are clamped on construction rather than rejected.
    """
    age: float = 30.0        # years
    weight: float = 70.0     # kg
    height: float = 175.0    # cm
    sex: Sex = Sex.MALE
    cycle_length: float = 28.0  # days
    cycle_day: float = 1.0      # cycle day at minute 0 (1-based)

    def __post_init__(self):
        object.__setattr__(self, "sex", Sex.parse(self.sex))
        self._sanitize()

    def _sanitize(self):
        """Clamp demographics to plausible ranges."""
        for name, (low, high) in (
            ("age", AGE_RANGE),
            ("weight", WEIGHT_RANGE),
            ("height", HEIGHT_RANGE),
            ("cycle_length", CYCLE_LENGTH_RANGE),
        ):
            raw = getattr(self, name)
            try:
                value = float(raw)
            except (TypeError, ValueError):
                raise ValueError(f"Subject.{name} must be numeric, got {raw!r}")
            if not math.isfinite(value):
                raise ValueError(f"Subject.{name} must be finite, got {raw!r}")
            bounded = clamp(value, low, high)
            if bounded != value:
                LOGGER.warning("Subject.%s=%s clamped to %s", name, value, bounded)
            object.__setattr__(self, name, bounded)
        day = float(self.cycle_day)
        object.__setattr__(self, "cycle_day", clamp(day, 1.0, self.cycle_length))

    @property
    def is_female(self) -> bool:
        return self.sex is Sex.FEMALE


@dataclass(frozen=True)
class Physiology:
    """Subject-specific scalars derived from Subject."""
    bmr: float                 # kcal/day
    tbw: float                 # L
    lbm: float                 # kg
    bsa: float                 # m2
    liver_blood_flow: float    # L/min
    egfr: float                # mL/min
    metabolic_capacity: float  # relative to reference adult
    drug_clearance: float      # relative to reference adult

    def cache_key(self) -> tuple:
        """Typed key used by the kernel cache (rounded to absorb float noise)."""
        return (
            round(self.tbw, 4),
            round(self.lbm, 4),
            round(self.liver_blood_flow, 5),
            round(self.egfr, 4),
            round(self.metabolic_capacity, 5),
        )


def mifflin_st_jeor_bmr(subject: Subject) -> float:
    base = 10.0 * subject.weight + 6.25 * subject.height - 5.0 * subject.age
    return base - 161.0 if subject.is_female else base + 5.0


def watson_tbw(subject: Subject) -> float:
    if subject.is_female:
        tbw = -2.097 + 0.1069 * subject.height + 0.2466 * subject.weight
    else:
        tbw = 2.447 - 0.09156 * subject.age + 0.1074 * subject.height + 0.3362 * subject.weight
    return max(1.0, tbw)


def boer_lbm(subject: Subject) -> float:
    if subject.is_female:
        lbm = 0.252 * subject.weight + 0.473 * subject.height - 48.3
    else:
        lbm = 0.407 * subject.weight + 0.267 * subject.height - 19.2
    return clamp(lbm, 0.2 * subject.weight, subject.weight)


def mosteller_bsa(subject: Subject) -> float:
    return math.sqrt(subject.height * subject.weight / 3600.0)


def cockcroft_gault_egfr(subject: Subject) -> float:
    # Serum creatinine assumed 1.0 mg/dL.
    gfr = (140.0 - subject.age) * subject.weight / 72.0
    if subject.is_female:
        gfr *= 0.85
    return max(1.0, gfr)


def derive_physiology(subject: Subject) -> Physiology:
    """Compute the Physiology scalars for a subject."""
    bmr = mifflin_st_jeor_bmr(subject)
    tbw = watson_tbw(subject)
    bsa = mosteller_bsa(subject)
    return Physiology(
        bmr=bmr,
        tbw=tbw,
        lbm=boer_lbm(subject),
        bsa=bsa,
        liver_blood_flow=REF_LIVER_BLOOD_FLOW * bsa / REF_BSA_M2,
        egfr=cockcroft_gault_egfr(subject),
        metabolic_capacity=max(0.1, bmr / REF_BMR_KCAL),
        drug_clearance=tbw / REF_TBW_L,
    )


# -----------------------------------------------------------------------------
# Menstrual cycle
# -----------------------------------------------------------------------------
#
# Relative hormone levels (0..1) as Gaussian bumps over the cycle day,
# normalised to a 28-day cycle so that ovulation stays near mid-cycle for
# shorter or longer cycles.
# -----------------------------------------------------------------------------

def _cycle_gaussian(day: float, center: float, width: float) -> float:
    return math.exp(-((day - center) ** 2) / (2.0 * width * width))


def cycle_day(subject: Subject, minute: float) -> float:
    """Cycle day (0-based, in [0, cycle_length)) at a simulation minute."""
    elapsed_days = minute / MINUTES_PER_DAY
    return (subject.cycle_day - 1.0 + elapsed_days) % subject.cycle_length


def menstrual_hormones(day: float, cycle_length: float = 28.0) -> dict:
    """
    Relative estrogen, progesterone, LH and FSH for a cycle day.

    Returns a dict with keys estrogen, progesterone, lh, fsh, each in [0, 1].
    """
    d = (day % cycle_length) * 28.0 / cycle_length
    g = _cycle_gaussian
    return {
        "estrogen": clamp01(0.1 + 0.8 * g(d, 12.5, 3.0) + 0.4 * 0.5 * g(d, 21.0, 5.0)),
        "progesterone": clamp01(0.05 + 0.9 * g(d, 22.0, 6.0)),
        "lh": clamp01(0.1 + 0.9 * g(d, 13.5, 1.2)),
        "fsh": clamp01(0.1 + 0.3 * g(d, 2.0, 4.0) + 0.5 * g(d, 13.5, 1.5)),
    }
