"""
Kernel descriptors and their evaluator.

A kernel is a frozen, hashable description of a time-response: which PK
model with which rate constants, which PD mechanism with which binding
constants, or which nutrient/envelope shape. `evaluate_kernel` is the one
place that turns a descriptor and an elapsed time into a number. Kernels
hold no state, so the same descriptor can be shared between runs and cached.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from physiodyn.core.constants import DENOM_FLOOR
from physiodyn.core.enums import (
    ClearanceKind,
    Enzyme,
    NutrientKind,
    PDMechanism,
    PKModelKind,
    Receptor,
)
from physiodyn.patient.pd_models import dose_to_concentration, occupancy, operational_agonism
from physiodyn.patient.pk_models import (
    alcohol_bac,
    calculate_clearance,
    calculate_vd,
    carb_appearance,
    fat_appearance,
    michaelis_menten,
    pk1,
    pk2,
    protein_appearance,
)
from physiodyn.patient.subject import Physiology, Subject, derive_physiology
from .pharmacology import PharmacologyDef, Target, target_signal

LOGGER = logging.getLogger(__name__)

# Default cooperativity for allosteric modulators without their own alpha.
PAM_ALPHA = 3.0
NAM_ALPHA = 0.3

# Inverse agonists also remove constitutive activity, on top of blocking the agonist.
INVERSE_AGONIST_EXCESS = 0.5

INHIBITORY_MECHANISMS = (PDMechanism.ANTAGONIST, PDMechanism.INVERSE_AGONIST, PDMechanism.NAM)


@dataclass(frozen=True)
class PKCurve:
    """Normalised PK time course (peak ~1 for Bateman / biexponential models)."""
    model: PKModelKind
    ka: float
    ke: float
    tlag: float = 0.0
    k12: float = 0.0
    k21: float = 0.0
    vmax: float = 0.0
    km: float = 0.0

    def value(self, elapsed: float) -> float:
        if self.model is PKModelKind.ONE_COMPARTMENT:
            return pk1(elapsed, self.ka, self.ke, self.tlag)
        if self.model is PKModelKind.TWO_COMPARTMENT:
            return pk2(elapsed, self.ka, self.ke, self.k12, self.k21, self.tlag)
        if self.model is PKModelKind.MICHAELIS_MENTEN:
            # vmax and km are in fractions of the absorbed dose
            half_life = np.log(2.0) / max(DENOM_FLOOR, self.ka)
            return michaelis_menten(elapsed, self.vmax, self.km, 1.0, half_life, self.tlag)
        # ACTIVITY: on for as long as the intervention is active
        return 1.0 if elapsed >= self.tlag else 0.0


@dataclass(frozen=True)
class PharmacologyKernel:
    """
    PK curve feeding a PD mechanism at one target.

    `sign` maps a positive response at the target onto the written signal
    (e.g. -1 for A2A, whose activation lowers dopamine, or for a clearance
    enzyme whose activity lowers its substrate).
    """
    drug: str
    pk: PKCurve
    dose: float                 # mg
    reference_dose: float       # mg
    molar_mass: float
    vd: float                   # L
    bioavailability: float
    mechanism: PDMechanism
    gain: float
    sign: float = 1.0
    target: Optional[Target] = None
    affinity: Optional[float] = None
    efficacy_tau: float = 10.0
    alpha: Optional[float] = None

    @property
    def has_tail(self) -> bool:
        return True

    def concentration(self, elapsed: float) -> float:
        """Plasma concentration (nM)."""
        curve = self.pk.value(elapsed)
        return dose_to_concentration(self.dose, self.molar_mass, self.vd, self.bioavailability, curve)

    def occupancy(self, elapsed: float) -> float:
        if self.affinity is None:
            return 0.0
        return occupancy(self.concentration(elapsed), self.affinity)

    def enzyme_activity(self, elapsed: float) -> float:
        """Remaining activity of an enzyme target (1.0 when not inhibited)."""
        if not isinstance(self.target, Enzyme) or self.mechanism not in INHIBITORY_MECHANISMS:
            return 1.0
        return 1.0 - self.occupancy(elapsed)


@dataclass(frozen=True)
class NutrientKernel:
    """Gut appearance of one macronutrient class after a meal."""
    kind: NutrientKind
    gain: float = 1.0
    sugar: float = 0.0             # g
    starch: float = 0.0            # g
    glycemic_index: float = 60.0
    protein: float = 0.0           # g
    protein_type: str = "mixed"
    fat: float = 0.0               # g
    fat_type: str = "mixed"
    fiber_soluble: float = 0.0     # g
    fiber_insoluble: float = 0.0   # g
    water_ml: float = 0.0
    weight: float = 70.0           # kg

    @property
    def has_tail(self) -> bool:
        return True


@dataclass(frozen=True)
class AlcoholKernel:
    """Blood alcohol (mg/dL) from a drink, times gain."""
    grams: float
    gain: float = 1.0
    weight: float = 70.0
    sex: str = "male"
    metabolic_rate: float = 1.0

    @property
    def has_tail(self) -> bool:
        return True


@dataclass(frozen=True)
class EnvelopeKernel:
    """
    Plateau with exponential onset for the duration of an activity, then an
    optional exponential offset.
    """
    amplitude: float
    duration: float          # min
    ramp: float = 5.0        # min
    offset_tau: float = 0.0  # min, 0 = stops at the end of the activity

    @property
    def has_tail(self) -> bool:
        return self.offset_tau > 0.0


def _rise(elapsed: float, ramp: float) -> float:
    if ramp <= 0.0:
        return 1.0
    return 1.0 - float(np.exp(-elapsed / ramp))


def pd_response(mechanism: PDMechanism, concentration: float, affinity: float,
                efficacy_tau: float = 10.0, alpha: Optional[float] = None) -> float:
    """
    Signed fractional response at a target.

    Agonists follow the operational model; antagonists remove up to their
    occupancy; allosteric modulators scale with (alpha - 1) * occupancy.
    """
    if mechanism in (PDMechanism.AGONIST, PDMechanism.PARTIAL_AGONIST):
        return operational_agonism(concentration, affinity, efficacy_tau)
    occ = occupancy(concentration, affinity)
    if mechanism is PDMechanism.ANTAGONIST:
        return -occ
    if mechanism is PDMechanism.INVERSE_AGONIST:
        return -occ * (1.0 + INVERSE_AGONIST_EXCESS)
    if mechanism is PDMechanism.PAM:
        a = PAM_ALPHA if alpha is None else alpha
        return (a - 1.0) * occ
    if mechanism is PDMechanism.NAM:
        a = NAM_ALPHA if alpha is None else alpha
        return -(1.0 - a) * occ
    raise ValueError(f"No concentration response for mechanism {mechanism}")


def _evaluate_pharmacology(kernel: PharmacologyKernel, elapsed: float) -> float:
    if kernel.mechanism is PDMechanism.LINEAR or kernel.affinity is None:
        scale = kernel.dose / max(DENOM_FLOOR, kernel.reference_dose)
        return kernel.sign * kernel.gain * scale * kernel.pk.value(elapsed)
    response = pd_response(kernel.mechanism, kernel.concentration(elapsed), kernel.affinity,
                           kernel.efficacy_tau, kernel.alpha)
    return kernel.sign * kernel.gain * response


def _evaluate_nutrient(kernel: NutrientKernel, elapsed: float) -> float:
    if kernel.kind is NutrientKind.CARBOHYDRATE:
        rate = carb_appearance(elapsed, kernel.sugar, kernel.starch, kernel.glycemic_index, kernel.fat,
                               kernel.fiber_soluble, kernel.fiber_insoluble, kernel.water_ml, kernel.weight)
    elif kernel.kind is NutrientKind.PROTEIN:
        rate = protein_appearance(elapsed, kernel.protein, kernel.protein_type, kernel.fat,
                                  kernel.fiber_soluble, kernel.fiber_insoluble, kernel.water_ml, kernel.weight)
    else:
        rate = fat_appearance(elapsed, kernel.fat, kernel.fat_type, kernel.fiber_soluble,
                              kernel.fiber_insoluble, kernel.water_ml, kernel.weight)
    return kernel.gain * rate


def _evaluate_alcohol(kernel: AlcoholKernel, elapsed: float) -> float:
    return kernel.gain * alcohol_bac(elapsed, kernel.grams, kernel.weight, kernel.sex, kernel.metabolic_rate)


def _evaluate_envelope(kernel: EnvelopeKernel, elapsed: float) -> float:
    if elapsed < kernel.duration:
        return kernel.amplitude * _rise(elapsed, kernel.ramp)
    if kernel.offset_tau <= 0.0:
        return 0.0
    at_end = kernel.amplitude * _rise(kernel.duration, kernel.ramp)
    return at_end * float(np.exp(-(elapsed - kernel.duration) / kernel.offset_tau))


_EVALUATORS = {
    PharmacologyKernel: _evaluate_pharmacology,
    NutrientKernel: _evaluate_nutrient,
    AlcoholKernel: _evaluate_alcohol,
    EnvelopeKernel: _evaluate_envelope,
}


def evaluate_kernel(kernel, elapsed: float) -> float:
    """Value of `kernel` at `elapsed` minutes after the intervention started (0 before)."""
    evaluator = _EVALUATORS.get(type(kernel))
    if evaluator is None:
        raise TypeError(f"Unknown kernel type: {type(kernel).__name__}")
    if elapsed < 0.0:
        return 0.0
    return float(evaluator(kernel, elapsed))


# -----------------------------------------------------------------------------
# Kernel generation
# -----------------------------------------------------------------------------

def pk_curve_for(pharm: PharmacologyDef, subject: Optional[Subject] = None,
                 physiology: Optional[Physiology] = None) -> Tuple[PKCurve, float]:
    """
    Subject-scaled PK curve and volume of distribution (L).

    ke = CL / Vd when the definition carries a clearance (hepatic scaled by
    liver blood flow, renal by eGFR), else ln 2 / half-life.
    """
    spec = pharm.pk
    subject = subject or Subject()
    physiology = physiology or derive_physiology(subject)
    vd = calculate_vd(spec.volume, subject, physiology, spec.volume_base)
    if spec.has_clearance:
        clearance = (calculate_clearance(spec.hepatic_clearance / 1000.0, ClearanceKind.HEPATIC, physiology)
                     + calculate_clearance(spec.renal_clearance / 1000.0, ClearanceKind.RENAL, physiology))
        ke = clearance / max(DENOM_FLOOR, vd)
    else:
        ke = spec.ke_from_half_life
    ka = spec.ka if spec.ka is not None else 4.0 * ke
    curve = PKCurve(
        model=spec.model, ka=ka, ke=ke, tlag=spec.tlag,
        k12=spec.k12, k21=spec.k21, vmax=spec.vmax, km=spec.km,
    )
    return curve, vd


def generate_pk_kernel(pharm: PharmacologyDef, target=None, subject: Optional[Subject] = None,
                       physiology: Optional[Physiology] = None,
                       dose: Optional[float] = None) -> PharmacologyKernel:
    """
    Kernel for one PD target of `pharm` (the first target when none is given).

    Regenerate when the subject or physiology changes; the result depends on
    nothing else.
    """
    if not pharm.targets:
        raise ValueError(f"{pharm.name} has no PD targets")
    pd = pharm.targets[0] if target is None else pharm.target_for(target)
    curve, vd = pk_curve_for(pharm, subject, physiology)
    return PharmacologyKernel(
        drug=pharm.name,
        pk=curve,
        dose=pharm.reference_dose if dose is None else float(dose),
        reference_dose=pharm.reference_dose,
        molar_mass=pharm.molecule.molar_mass,
        vd=vd,
        bioavailability=pharm.pk.bioavailability,
        mechanism=pd.mechanism,
        gain=pd.gain,
        sign=pd.sign,
        target=pd.target,
        affinity=pd.affinity,
        efficacy_tau=pd.efficacy_tau,
        alpha=pd.alpha,
    )


def pharmacology_kernels(pharm: PharmacologyDef, dose: float, subject: Optional[Subject] = None,
                         physiology: Optional[Physiology] = None):
    """
    Every kernel a dose of `pharm` contributes.

    Returns (signal_bindings, driver_bindings): tuples of (Signal, kernel)
    and (Driver, kernel).
    """
    curve, vd = pk_curve_for(pharm, subject, physiology)
    signal_bindings = []
    for pd in pharm.targets:
        kernel = generate_pk_kernel(pharm, pd.target, subject, physiology, dose)
        signal_bindings.append((target_signal(pd.target)[0], kernel))
    driver_bindings = []
    for term in pharm.drivers:
        kernel = PharmacologyKernel(
            drug=pharm.name, pk=curve, dose=float(dose), reference_dose=pharm.reference_dose,
            molar_mass=pharm.molecule.molar_mass, vd=vd, bioavailability=pharm.pk.bioavailability,
            mechanism=PDMechanism.LINEAR, gain=term.gain,
        )
        driver_bindings.append((term.driver, kernel))
    LOGGER.debug("Generated %d signal and %d driver kernels for %s %.1f mg",
                 len(signal_bindings), len(driver_bindings), pharm.name, dose)
    return tuple(signal_bindings), tuple(driver_bindings)


def receptor_occupancies(bindings, elapsed: float):
    """Yield (Receptor, occupancy, mechanism, efficacy_tau) for receptor-targeted kernels."""
    for _signal, kernel in bindings:
        if isinstance(kernel, PharmacologyKernel) and isinstance(kernel.target, Receptor):
            yield kernel.target, kernel.occupancy(elapsed), kernel.mechanism, kernel.efficacy_tau


def enzyme_activities(bindings, elapsed: float):
    """Yield (Enzyme, remaining activity) for enzyme-targeted kernels."""
    for _signal, kernel in bindings:
        if isinstance(kernel, PharmacologyKernel) and isinstance(kernel.target, Enzyme):
            yield kernel.target, kernel.enzyme_activity(elapsed)


