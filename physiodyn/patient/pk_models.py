import math
from functools import lru_cache
from typing import Optional

import numpy as np
from scipy.optimize import minimize_scalar

from .subject import Subject, Physiology, derive_physiology
from physiodyn.core.constants import (
    DENOM_FLOOR,
    RATE_DEGENERACY_EPS,
    REF_LIVER_BLOOD_FLOW,
    REF_GFR,
    GLUCOSE_VD_DL_PER_KG,
)
from physiodyn.core.enums import ClearanceKind, VolumeKind
from physiodyn.core.utils import clamp

# =============================================================================
# PHARMACOKINETIC MODELS - LITERATURE REFERENCES
# =============================================================================
#
# One-compartment oral absorption:
#   - Bateman function. C(t) = F*D*ka / (Vd*(ka-ke)) * (e^-ke*t - e^-ka*t)
#   - t_max = ln(ka/ke) / (ka - ke); limit ka -> ke gives k*t*e^-kt
#
# Two-compartment oral absorption:
#   - Gibaldi & Perrier, Pharmacokinetics 2nd ed. 1982, ch. 2
#   - alpha, beta are the roots of L^2 - (k10+k12+k21)L + k10*k21 = 0
#
# Saturable elimination:
#   - Michaelis-Menten dC/dt = -Vmax*C/(Km + C), Euler at 1 min
#   - Ethanol: Widmark r 0.68 (male) / 0.55 (female); Vmax ~0.2 mg/dL/min,
#     Km ~10 mg/dL (Holford. Clin Pharmacokinet. 1987)
#
# Nutrient appearance (gamma pulses behind a gastric-emptying lag):
#   - Fat and soluble fiber slow emptying and blunt the carbohydrate peak
#     (Collins et al. Am J Clin Nutr. 1991; Jenkins et al. BMJ 1978)
#
# Units:
#   - Time: minutes
#   - Rate constants: min^-1
#   - Dose: mg, volume: L, concentration: mg/L (or mg/dL where noted)
# =============================================================================


def _elapsed(t: float, tlag: float) -> Optional[float]:
    if t <= tlag:
        return None
    return t - tlag


def pk_tmax(ka: float, ke: float) -> float:
    """Time of peak (after lag) for the one-compartment Bateman curve."""
    ka = max(DENOM_FLOOR, ka)
    ke = max(DENOM_FLOOR, ke)
    if abs(ka - ke) < RATE_DEGENERACY_EPS:
        return 1.0 / ka
    return math.log(ka / ke) / (ka - ke)


def pk1(t: float, ka: float, ke: float, tlag: float = 0.0) -> float:
    """
    Normalized one-compartment curve with peak value 1.0 at t_max + tlag.

    Returns 0 for t <= tlag; tends to 0 as t -> infinity.
    """
    tau = _elapsed(t, tlag)
    if tau is None:
        return 0.0
    ka = max(DENOM_FLOOR, ka)
    ke = max(DENOM_FLOOR, ke)

    if abs(ka - ke) < RATE_DEGENERACY_EPS:
        # k*tau*e^(-k*tau) peaks at 1/e; scale by e.
        k = 0.5 * (ka + ke)
        return k * tau * math.exp(1.0 - k * tau)

    t_max = pk_tmax(ka, ke)
    peak = math.exp(-ke * t_max) - math.exp(-ka * t_max)
    curve = math.exp(-ke * tau) - math.exp(-ka * tau)
    return clamp(curve / max(DENOM_FLOOR, abs(peak)), 0.0, 1.0)


def pk1_concentration(t: float, dose: float, ka: float, ke: float, vd: float,
                      bioavailability: float = 1.0, tlag: float = 0.0) -> float:
    """Absolute one-compartment concentration (dose units per volume unit)."""
    tau = _elapsed(t, tlag)
    if tau is None or dose <= 0.0:
        return 0.0
    ka = max(DENOM_FLOOR, ka)
    ke = max(DENOM_FLOOR, ke)
    vd = max(DENOM_FLOOR, vd)
    amount = bioavailability * dose

    if abs(ka - ke) < RATE_DEGENERACY_EPS:
        k = 0.5 * (ka + ke)
        return max(0.0, amount * k * tau * math.exp(-k * tau) / vd)

    conc = amount * ka / (vd * (ka - ke)) * (math.exp(-ke * tau) - math.exp(-ka * tau))
    return max(0.0, conc)


def _two_compartment_coefficients(ka: float, k10: float, k12: float, k21: float):
    """Return (alpha, beta, A, B, ka) or None when the eigenvalues are complex."""
    total = k10 + k12 + k21
    product = k10 * k21
    disc = total * total - 4.0 * product
    if disc < 0.0:
        return None
    root = math.sqrt(disc)
    alpha = 0.5 * (total + root)
    beta = 0.5 * (total - root)
    if beta <= 0.0 or abs(alpha - beta) < RATE_DEGENERACY_EPS:
        return None

    # Nudge ka off an eigenvalue rather than dividing by ~0.
    for lam in (alpha, beta):
        if abs(ka - lam) < 1e-6:
            ka = lam * (1.0 + 1e-4)
    a_coef = ka * (k21 - alpha) / ((ka - alpha) * (beta - alpha))
    b_coef = ka * (k21 - beta) / ((ka - beta) * (alpha - beta))
    return alpha, beta, a_coef, b_coef, ka


def _biexp(tau: float, alpha: float, beta: float, a_coef: float, b_coef: float, ka: float) -> float:
    return (a_coef * math.exp(-alpha * tau)
            + b_coef * math.exp(-beta * tau)
            - (a_coef + b_coef) * math.exp(-ka * tau))


@lru_cache(maxsize=256)
def _pk2_peak(ka: float, k10: float, k12: float, k21: float) -> float:
    """Peak of the unscaled biexponential curve, located numerically."""
    coeffs = _two_compartment_coefficients(ka, k10, k12, k21)
    alpha, beta, a_coef, b_coef, ka_eff = coeffs
    horizon = min(1e5, 10.0 / max(DENOM_FLOOR, min(ka_eff, beta)))

    grid = np.linspace(0.0, horizon, 401)
    values = np.array([_biexp(x, alpha, beta, a_coef, b_coef, ka_eff) for x in grid])
    idx = int(np.argmax(values))
    lo = grid[max(0, idx - 1)]
    hi = grid[min(len(grid) - 1, idx + 1)]
    if hi <= lo:
        return max(DENOM_FLOOR, float(values[idx]))

    result = minimize_scalar(
        lambda x: -_biexp(x, alpha, beta, a_coef, b_coef, ka_eff),
        bounds=(lo, hi),
        method="bounded",
    )
    peak = max(float(values[idx]), -float(result.fun))
    return max(DENOM_FLOOR, peak)


def pk2(t: float, ka: float, k10: float, k12: float, k21: float, tlag: float = 0.0) -> float:
    """
    Normalized two-compartment curve (peak 1.0).

    Falls back to pk1(t, ka, k10, tlag) when the characteristic equation has
    no real pair of positive roots.
    """
    tau = _elapsed(t, tlag)
    if tau is None:
        return 0.0
    ka = max(DENOM_FLOOR, ka)
    coeffs = _two_compartment_coefficients(ka, k10, k12, k21)
    if coeffs is None:
        return pk1(t, ka, k10, tlag)
    curve = _biexp(tau, *coeffs)
    return clamp(curve / _pk2_peak(ka, k10, k12, k21), 0.0, 1.0)


def pk2_concentration(t: float, dose: float, ka: float, k10: float, k12: float, k21: float,
                      v_central: float, bioavailability: float = 1.0, tlag: float = 0.0) -> float:
    """Absolute central-compartment concentration for the two-compartment model."""
    tau = _elapsed(t, tlag)
    if tau is None or dose <= 0.0:
        return 0.0
    ka = max(DENOM_FLOOR, ka)
    coeffs = _two_compartment_coefficients(ka, k10, k12, k21)
    if coeffs is None:
        return pk1_concentration(t, dose, ka, k10, v_central, bioavailability, tlag)
    scale = bioavailability * dose / max(DENOM_FLOOR, v_central)
    return max(0.0, scale * _biexp(tau, *coeffs))


# -----------------------------------------------------------------------------
# Michaelis-Menten (saturable) kinetics
# -----------------------------------------------------------------------------

MM_DT = 1.0           # min, Euler step
_MM_CHUNK = 1440      # trajectories are extended a day at a time


@lru_cache(maxsize=128)
def _mm_trajectory(vmax: float, km: float, c0: float, ka: float, bolus: bool, n_steps: int) -> np.ndarray:
    """
    Euler trajectory of C at integer minutes 0..n_steps.

    bolus=True starts at C0 with no absorption; otherwise C0 is absorbed
    first-order (rate ka) while elimination runs.
    """
    out = np.zeros(n_steps + 1)
    c = c0 if bolus else 0.0
    out[0] = c
    absorbed_prev = 0.0
    for i in range(n_steps):
        if bolus:
            d_absorbed = 0.0
        else:
            absorbed_now = c0 * (1.0 - math.exp(-ka * (i + 1) * MM_DT))
            d_absorbed = absorbed_now - absorbed_prev
            absorbed_prev = absorbed_now
        elimination = vmax * c / (km + c + DENOM_FLOOR)
        c = max(0.0, c + d_absorbed - elimination * MM_DT)
        out[i + 1] = c
    return out


def _mm_at(tau: float, vmax: float, km: float, c0: float, ka: float, bolus: bool) -> float:
    needed = int(math.ceil(tau / MM_DT)) + 1
    n_steps = _MM_CHUNK * (needed // _MM_CHUNK + 1)
    traj = _mm_trajectory(float(vmax), float(km), float(c0), float(ka), bolus, n_steps)
    return float(np.interp(tau / MM_DT, np.arange(len(traj)), traj))


def michaelis_menten_elimination(t: float, vmax: float, km: float, c0: float) -> float:
    """Concentration after a bolus C0 at t=0 under pure saturable elimination."""
    if t <= 0.0:
        return max(0.0, c0)
    return _mm_at(t, vmax, km, c0, 0.0, True)


def michaelis_menten(t: float, vmax: float, km: float, c0: float,
                     absorption_half_life: float = 15.0, tlag: float = 10.0) -> float:
    """
    First-order absorption of C0 feeding Michaelis-Menten elimination.

    Near zero-order when C >> Km, near first-order when C << Km.
    """
    tau = _elapsed(t, tlag)
    if tau is None or c0 <= 0.0:
        return 0.0
    ka = math.log(2.0) / max(1.0, absorption_half_life)
    return _mm_at(tau, vmax, km, c0, ka, False)


WIDMARK_R = {"male": 0.68, "female": 0.55}
ETHANOL_VMAX = 0.2   # mg/dL/min at normal liver function
ETHANOL_KM = 10.0    # mg/dL


def alcohol_bac(t: float, grams: float, weight: float = 70.0, sex: str = "male",
                metabolic_rate: float = 1.0) -> float:
    """Blood alcohol concentration (mg/dL) after drinking `grams` of ethanol at t=0."""
    sex_key = getattr(sex, "value", sex)
    r = WIDMARK_R.get(str(sex_key).lower(), WIDMARK_R["male"])
    vd = max(1.0, weight * r)
    c0 = grams / vd * 100.0
    vmax = ETHANOL_VMAX * max(0.1, metabolic_rate)
    return michaelis_menten(t, vmax, ETHANOL_KM, c0, 15.0, 10.0)


# -----------------------------------------------------------------------------
# Nutrient appearance
# -----------------------------------------------------------------------------

# Fraction of ingested glucose reaching the systemic circulation.
GLUCOSE_SYSTEMIC_FRACTION = 0.75

# Duodenal transit before carbohydrate reaches the portal circulation (min).
CARB_TRANSIT_LAG = 10.0

# Absorption pulse time constants (min): sugar, and starch at glycemic index 100.
SUGAR_RISE, SUGAR_FALL = 20.0, 60.0
STARCH_RISE, STARCH_FALL = 30.0, 100.0


def gamma_pulse(t: float, k_rise: float, k_fall: float, tlag: float = 0.0) -> float:
    """(1 - e^{-tau/k_rise}) * e^{-tau/k_fall} shifted by tlag."""
    tau = _elapsed(t, tlag)
    if tau is None:
        return 0.0
    return (1.0 - math.exp(-tau / k_rise)) * math.exp(-tau / k_fall)


def gamma_pulse_area(k_rise: float, k_fall: float) -> float:
    """Integral of gamma_pulse over [tlag, inf)."""
    return k_fall - k_rise * k_fall / (k_rise + k_fall)


def gastric_delay(fat: float = 0.0, fiber_soluble: float = 0.0,
                  fiber_insoluble: float = 0.0, water_ml: float = 0.0) -> float:
    """Gastric emptying lag (min) from fat, fiber and water."""
    lag = 15.0 + 0.9 * fat + 2.0 * fiber_soluble + 0.5 * fiber_insoluble - 0.01 * water_ml
    return clamp(lag, 5.0, 150.0)


def carb_appearance(t: float, sugar: float, starch: float, glycemic_index: float = 60.0,
                    fat: float = 0.0, fiber_soluble: float = 0.0, fiber_insoluble: float = 0.0,
                    water_ml: float = 0.0, weight: float = 70.0) -> float:
    """
    Rate of glucose appearance in plasma (mg/dL/min).

    Sugar appears fast; starch speed scales with glycemic index. Both pulses
    are normalised to unit area so the integral equals the absorbed load.
    """
    tlag = gastric_delay(fat, fiber_soluble, fiber_insoluble, water_ml) + CARB_TRANSIT_LAG
    gi_fac = clamp(glycemic_index / 100.0, 0.25, 1.0)
    blunt = clamp(1.0 - 0.02 * fiber_soluble - 0.004 * fat, 0.6, 1.0)
    vol_dl = GLUCOSE_VD_DL_PER_KG * max(1.0, weight)
    mg_per_dl_per_gram = 1000.0 / vol_dl * GLUCOSE_SYSTEMIC_FRACTION

    sugar_rate = gamma_pulse(t, SUGAR_RISE, SUGAR_FALL, tlag) / gamma_pulse_area(SUGAR_RISE, SUGAR_FALL)
    k_rise, k_fall = STARCH_RISE / gi_fac, STARCH_FALL / gi_fac
    starch_rate = gamma_pulse(t, k_rise, k_fall, tlag) / gamma_pulse_area(k_rise, k_fall)

    return blunt * mg_per_dl_per_gram * (max(0.0, sugar) * sugar_rate + max(0.0, starch) * starch_rate)


PROTEIN_KINETICS = {
    # (fast rate, slow rate, fast fraction)
    "whey": (0.03, 0.01, 0.8),
    "casein": (0.015, 0.004, 0.3),
    "mixed": (0.02, 0.008, 0.5),
}

FAT_KINETICS = {
    # peak time (min)
    "mct": 90.0,
    "lct": 240.0,
    "mixed": 180.0,
}


def protein_appearance(t: float, protein: float, protein_type: str = "mixed", fat: float = 0.0,
                       fiber_soluble: float = 0.0, fiber_insoluble: float = 0.0,
                       water_ml: float = 0.0, weight: float = 70.0) -> float:
    """Relative amino-acid appearance (mg/dL-equivalent)."""
    if protein <= 0.0:
        return 0.0
    tlag = gastric_delay(fat, fiber_soluble, fiber_insoluble, water_ml)
    if t <= tlag:
        return 0.0
    fast_rate, slow_rate, fast_fraction = PROTEIN_KINETICS.get(protein_type, PROTEIN_KINETICS["mixed"])
    slowing = clamp(1.0 - 0.01 * fiber_soluble - 0.003 * fat, 0.6, 1.0)
    scaler = 1000.0 / (0.25 * max(1.0, weight) * 10.0) * 0.92
    fast = gamma_pulse(t, 20.0 / (fast_rate * 100.0), 90.0, tlag)
    slow = gamma_pulse(t, 40.0 / (slow_rate * 100.0), 240.0, tlag)
    return protein * scaler * slowing * (fast_fraction * fast + (1.0 - fast_fraction) * slow)


def fat_appearance(t: float, fat: float, fat_type: str = "mixed", fiber_soluble: float = 0.0,
                   fiber_insoluble: float = 0.0, water_ml: float = 0.0, weight: float = 70.0) -> float:
    """Relative circulating lipid appearance (mg/dL-equivalent)."""
    if fat <= 0.0:
        return 0.0
    tlag = gastric_delay(fat, fiber_soluble, fiber_insoluble, water_ml)
    tau = _elapsed(t, tlag)
    if tau is None:
        return 0.0
    peak_time = FAT_KINETICS.get(fat_type, FAT_KINETICS["mixed"])
    fiber_slowing = clamp(1.0 - 0.02 * fiber_soluble - 0.01 * fiber_insoluble, 0.5, 1.0)
    scaler = 1000.0 / (0.045 * max(1.0, weight) * 10.0) * 0.95 * 0.3
    envelope = (1.0 - math.exp(-tau / (peak_time * 0.5))) * math.exp(-tau / (peak_time * 3.0))
    pulsatile = 1.0 + 0.15 * math.sin(tau * math.pi / 120.0)
    return fat * scaler * fiber_slowing * envelope * pulsatile


# -----------------------------------------------------------------------------
# Physiology-based scaling
# -----------------------------------------------------------------------------

# Default volume of distribution by molecule (L/kg).
DEFAULT_VD = {
    "Caffeine": 0.6,
    "Methylphenidate": 2.0,
    "Amphetamine": 3.5,
    "Ethanol": 0.6,
    "Melatonin": 1.0,
    "L-Theanine": 0.7,
    "Magnesium": 0.5,
    "default": 1.0,
}


def calculate_clearance(base_clearance: float, kind: ClearanceKind, physiology: Physiology) -> float:
    """
    Scale a reference clearance (L/min) to the subject.

    Hepatic clearance scales with liver blood flow, renal with eGFR.
    """
    if kind is ClearanceKind.HEPATIC:
        return base_clearance * physiology.liver_blood_flow / REF_LIVER_BLOOD_FLOW
    if kind is ClearanceKind.RENAL:
        return base_clearance * physiology.egfr / REF_GFR
    return base_clearance


def calculate_vd(kind: VolumeKind, subject: Subject, physiology: Optional[Physiology] = None,
                 base: float = 1.0, female_factor: float = 0.85) -> float:
    """
    Volume of distribution (L).

    `base` is L/kg for WEIGHT/SEX_ADJUSTED and a fraction of the compartment
    for TBW/LBM.
    """
    physiology = physiology or derive_physiology(subject)
    if kind is VolumeKind.TBW:
        vd = base * physiology.tbw
    elif kind is VolumeKind.LBM:
        vd = base * physiology.lbm
    elif kind is VolumeKind.SEX_ADJUSTED:
        vd = base * subject.weight * (female_factor if subject.is_female else 1.0)
    else:
        vd = base * subject.weight
    return max(DENOM_FLOOR, vd)
