"""
HPA axis with cortisol negative feedback and allostatic load.

State vector: [CRH, cortisol, load]

    feedback  = k_fb * gain * max(0, cortisol - setpoint)
    drive     = stress + circadian + 0.3 * inflammation
    dCRH/dt   = drive - feedback - 0.1 * CRH
    dCort/dt  = 0.5 * CRH - 0.05 * cortisol
    dLoad/dt  = 1e-4 * (cortisol - setpoint)   if cortisol > 1.5 * setpoint
              = -5e-5 * load                   otherwise

Reference: Gupta et al. Theor Biol Med Model. 2007 (minimal HPA model);
McEwen. N Engl J Med. 1998 (allostatic load).
"""

import math
from dataclasses import dataclass
from functools import partial

import numpy as np

from physiodyn.core.integrators import rk4_step
from physiodyn.core.utils import clamp
from .homeo_config import HPAConfig

HPA_CONFIG = HPAConfig()


@dataclass(frozen=True)
class HPAInputs:
    stress_input: float = 0.0
    circadian_drive: float = 0.5
    inflammatory_signal: float = 0.0


def circadian_drive(minute_of_day: float, config: HPAConfig = HPA_CONFIG) -> float:
    """Diurnal CRH drive in [0, 1], peaking at `circadian_peak_hour`."""
    hour = minute_of_day / 60.0
    return 0.5 + 0.5 * math.cos((hour - config.circadian_peak_hour) * math.pi / 12.0)


def hpa_derivatives(state, t: float, inputs: HPAInputs, params, config: HPAConfig = HPA_CONFIG) -> np.ndarray:
    crh, cortisol, load = state
    setpoint = params.cortisol_setpoint

    feedback = config.k_feedback * params.hpa_gain * max(0.0, cortisol - setpoint)
    drive = inputs.stress_input + inputs.circadian_drive + config.inflammation_gain * inputs.inflammatory_signal

    d_crh = drive - feedback - config.k_crh_clear * crh
    d_cort = config.k_crh_cort * crh - config.k_cort_clear * cortisol
    if cortisol > setpoint * config.load_threshold:
        d_load = config.load_gain * (cortisol - setpoint)
    else:
        d_load = -config.load_decay * load
    return np.array([d_crh, d_cort, d_load])


def step_hpa(state, dt: float, inputs: HPAInputs, params, config: HPAConfig = HPA_CONFIG) -> np.ndarray:
    fn = partial(hpa_derivatives, params=params, config=config)
    crh, cortisol, load = rk4_step(state, 0.0, dt, fn, inputs)
    return np.array([
        clamp(crh, config.crh_min, config.crh_max),
        clamp(cortisol, config.cortisol_min, config.cortisol_max),
        max(0.0, load),
    ])
