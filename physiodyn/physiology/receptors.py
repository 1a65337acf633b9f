"""
Receptor up/down-regulation.

Two forms are provided:

* `receptor_adaptation_rate`: dR/dt for a density R, as a mechanism-specific
  drive plus a recovery term k_rec * (R0 - R). The recovery rate depends on
  the receptor only, never on the mechanism, so density always relaxes to
  baseline once occupancy is removed.
* `step_biphasic`: explicit fast (trafficking) and slow (transcriptional)
  phase offsets whose sum sets the density.

Occupancy below the threshold counts at 10%; above it, occupancy is
rescaled to 0..1 over [threshold, 1].

Reference: Gainetdinov et al. Annu Rev Pharmacol Toxicol. 2004 (desensitization);
Creese & Sibley. Annu Rev Pharmacol Toxicol. 1981 (supersensitivity).
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Dict, Optional, Tuple

import numpy as np

from physiodyn.core.enums import AdaptationMechanism, Receptor
from physiodyn.core.integrators import rk4_step
from physiodyn.core.utils import clamp, clamp01
from .homeo_config import ReceptorAdaptationConfig

LOGGER = logging.getLogger(__name__)

ADAPTATION_CONFIG = ReceptorAdaptationConfig()

# (k_up, k_down) per receptor, 1/min.
RECEPTOR_RATES: Dict[Receptor, Tuple[float, float]] = {
    Receptor.D2: (0.001, 0.002),
    Receptor.D1: (0.0008, 0.0015),
    Receptor.HT2A: (0.0012, 0.003),
    Receptor.GABAA: (0.0005, 0.001),
    Receptor.A2A: (0.001, 0.002),
    Receptor.MU_OPIOID: (0.0015, 0.004),
    Receptor.BETA_ADRENERGIC: (0.002, 0.003),
    Receptor.NMDA: (0.0003, 0.0008),
}

_missing = set(Receptor) - set(RECEPTOR_RATES)
if _missing:
    raise RuntimeError(f"RECEPTOR_RATES missing entries for {sorted(r.name for r in _missing)}")


def mechanism_from_legacy(value) -> AdaptationMechanism:
    """
    Convert stored mechanism data to AdaptationMechanism.

    Older snapshots encoded the mechanism as a boolean "is agonist" flag:
    True -> FULL_AGONIST, False -> ANTAGONIST.
    """
    if isinstance(value, AdaptationMechanism):
        return value
    if isinstance(value, bool):
        LOGGER.warning("Legacy boolean receptor mechanism %s converted", value)
        return AdaptationMechanism.FULL_AGONIST if value else AdaptationMechanism.ANTAGONIST
    try:
        return AdaptationMechanism(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown adaptation mechanism: {value!r}")


def effective_occupancy(occupancy: float, config: ReceptorAdaptationConfig = ADAPTATION_CONFIG) -> float:
    occ = clamp01(occupancy)
    threshold = config.occupancy_threshold
    if occ > threshold:
        return (occ - threshold) / (1.0 - threshold)
    return occ * config.subthreshold_weight


def efficacy_factor(tau: Optional[float]) -> float:
    """Higher intrinsic efficacy (operational tau) drives more adaptation; capped at 2."""
    if tau is None:
        return 1.0
    return min(max(0.0, tau) / 10.0, 2.0)


def receptor_adaptation_rate(density: float, occupancy: float, mechanism: AdaptationMechanism,
                             receptor: Receptor, tau: Optional[float] = None,
                             config: ReceptorAdaptationConfig = ADAPTATION_CONFIG) -> float:
    """dR/dt for receptor density R (baseline 1.0)."""
    k_up, k_down = RECEPTOR_RATES[receptor]
    r = density
    r0 = config.baseline_density
    headroom = max(0.0, config.max_density - r)
    occ = effective_occupancy(occupancy, config)
    eff = efficacy_factor(tau)

    if mechanism is AdaptationMechanism.FULL_AGONIST:
        drive = -(config.fast_fraction * config.k_fast + config.slow_fraction * config.k_slow) * occ * r * eff
    elif mechanism is AdaptationMechanism.PARTIAL_AGONIST:
        drive = -k_down * occ * r * eff * 0.5
    elif mechanism is AdaptationMechanism.ANTAGONIST:
        drive = (config.fast_fraction * config.k_fast * 0.5
                 + config.slow_fraction * config.k_slow * 0.3) * occ * headroom
    elif mechanism is AdaptationMechanism.INVERSE_AGONIST:
        drive = 1.5 * k_up * occ * headroom
    elif mechanism is AdaptationMechanism.PAM:
        drive = -k_down * occ * eff * 0.3 * r
    elif mechanism is AdaptationMechanism.NAM:
        drive = k_up * occ * 0.4 * headroom
    else:
        raise ValueError(f"Unhandled mechanism {mechanism!r}")

    recovery = k_up * (r0 - r)
    return drive + recovery


def _density_derivative(state, t, inputs, receptor, config):
    occupancy, mechanism, tau = inputs
    return np.array([receptor_adaptation_rate(state[0], occupancy, mechanism, receptor, tau, config)])


def step_receptor_density(density: float, occupancy: float, mechanism: AdaptationMechanism,
                          receptor: Receptor, dt: float, tau: Optional[float] = None,
                          config: ReceptorAdaptationConfig = ADAPTATION_CONFIG) -> float:
    """Advance a density by dt and clamp to [min_density, max_density]."""
    fn = partial(_density_derivative, receptor=receptor, config=config)
    new = float(rk4_step([density], 0.0, dt, fn, (occupancy, mechanism, tau))[0])
    return clamp(new, config.min_density, config.max_density)


@dataclass(frozen=True)
class ReceptorAdaptationState:
    fast_phase: float = 0.0
    slow_phase: float = 0.0
    total_density: float = 1.0


def step_biphasic(state: ReceptorAdaptationState, occupancy: float, mechanism: AdaptationMechanism,
                  tau: Optional[float] = None, dt: float = 1.0,
                  config: ReceptorAdaptationConfig = ADAPTATION_CONFIG) -> ReceptorAdaptationState:
    """
    Advance the fast/slow phase offsets.

    Each phase relaxes toward direction * occupancy * efficacy * share, where
    the share is 0.3 (fast) or 0.2 (slow). With zero occupancy both targets
    are zero, so density returns to baseline at k_fast / k_slow.
    """
    occ = effective_occupancy(occupancy, config)
    eff = efficacy_factor(tau)
    direction = -1.0 if mechanism.downregulates else 1.0

    fast_target = direction * occ * eff * 0.3
    slow_target = direction * occ * eff * 0.2
    fast = state.fast_phase + config.k_fast * (fast_target - state.fast_phase) * dt
    slow = state.slow_phase + config.k_slow * (slow_target - state.slow_phase) * dt

    total = clamp(config.baseline_density + fast + slow, config.min_density, config.max_density)
    return ReceptorAdaptationState(fast_phase=fast, slow_phase=slow, total_density=total)
