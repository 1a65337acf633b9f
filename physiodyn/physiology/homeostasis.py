"""
Homeostasis subsystem: stateful feedback loops advanced alongside the signals.

`step_homeostasis` advances every sub-model by one outer step and returns the
new state plus additive corrections keyed by signal name. The glucose-insulin,
HPA and sleep-pressure ODEs are sub-stepped at HOMEOSTASIS_INTERNAL_DT
(n = max(1, round(dt / 1)), h = dt / n); the slower pools and receptor
densities advance with the same sub-steps.

Corrections are measured against each loop's unperturbed operating point:
glucose against the basal setpoint, insulin against basal insulin, cortisol
against a stress-free reference HPA trajectory integrated in lockstep, so an
undisturbed run produces no glucose/insulin/cortisol correction.
"""

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Dict, Optional, Tuple

from physiodyn.core.constants import HOMEOSTASIS_INTERNAL_DT, MINUTES_PER_DAY
from physiodyn.core.enums import AdaptationMechanism, Receptor
from physiodyn.core.integrators import substep_plan
from physiodyn.core.utils import clamp
from .glucose_insulin import GI_CONFIG, GlucoseInsulinInputs, step_glucose_insulin
from .hpa import HPAInputs, circadian_drive, step_hpa
from .receptors import mechanism_from_legacy, step_receptor_density
from .sleep import SleepInputs, step_sleep_pressure
from .vesicles import (
    VESICLE_CONFIG,
    VesicleInputs,
    depletion_correction,
    gh_release_trigger,
    step_acetylcholine_tone,
    step_adrenaline_reserve,
    step_bdnf_expression,
    step_gaba_pool,
    step_gh_reserve,
    step_glutamate_pool,
    step_vesicle_pool,
)

LOGGER = logging.getLogger(__name__)

ReceptorDrive = Tuple[float, AdaptationMechanism, Optional[float]]


@dataclass
class HomeostasisState:
    """Continuous homeostatic pools. Owned by one run; persisted between runs."""
    glucose: float = 90.0
    insulin: float = 8.0
    insulin_action: float = 0.0
    hepatic_glycogen: float = 0.7
    adenosine_pressure: float = 0.2
    crh: float = 1.0
    cortisol: float = 12.0
    cortisol_integral: float = 0.0
    adrenaline_reserve: float = 0.9
    dopamine_vesicles: float = 0.8
    norepinephrine_vesicles: float = 0.8
    serotonin_precursor: float = 0.8
    acetylcholine_tone: float = 0.6
    gaba_pool: float = 0.7
    glutamate_pool: float = 0.7
    bdnf_expression: float = 0.6
    gh_reserve: float = 0.8
    crh_reference: float = 1.0
    cortisol_reference: float = 12.0
    receptor_states: Dict[Receptor, float] = field(default_factory=dict)

    def copy(self) -> "HomeostasisState":
        return replace(self, receptor_states=dict(self.receptor_states))


DEFAULT_HOMEOSTASIS_STATE = HomeostasisState()

POOL_FIELDS = tuple(f.name for f in fields(HomeostasisState) if f.name != "receptor_states")

# camelCase names used by older snapshots.
_LEGACY_KEYS = {
    "glucosePool": "glucose",
    "insulinPool": "insulin",
    "insulinAction": "insulin_action",
    "hepaticGlycogen": "hepatic_glycogen",
    "adenosinePressure": "adenosine_pressure",
    "crhPool": "crh",
    "cortisolPool": "cortisol",
    "cortisolIntegral": "cortisol_integral",
    "adrenalineReserve": "adrenaline_reserve",
    "dopamineVesicles": "dopamine_vesicles",
    "norepinephrineVesicles": "norepinephrine_vesicles",
    "serotoninPrecursor": "serotonin_precursor",
    "acetylcholineTone": "acetylcholine_tone",
    "gabaPool": "gaba_pool",
    "glutamatePool": "glutamate_pool",
    "bdnfExpression": "bdnf_expression",
    "ghReserve": "gh_reserve",
    "receptorStates": "receptor_states",
}


@dataclass(frozen=True)
class HomeostasisParams:
    glucose_setpoint: float = 90.0
    insulin_sensitivity: float = 1.0
    hepatic_glucose_output: float = 2.0
    sleep_pressure_decay: float = 0.008
    sleep_pressure_build: float = 0.003
    cortisol_setpoint: float = 12.0
    hpa_gain: float = 1.0
    metabolic_rate: float = 1.0


@dataclass(frozen=True)
class HomeostasisInputs:
    """Instantaneous input bundle for one outer step. Built once, never mutated."""
    # Baselines from the signal catalog
    baseline_glucose: float = 90.0
    baseline_dopamine: float = 50.0
    baseline_serotonin: float = 50.0
    baseline_norepi: float = 50.0
    baseline_gaba: float = 50.0
    baseline_glutamate: float = 50.0
    baseline_acetylcholine: float = 50.0
    baseline_bdnf: float = 50.0
    baseline_adrenaline: float = 50.0

    # Intervention drivers
    glucose_appearance: float = 0.0
    caffeine_level: float = 0.0
    exercise_intensity: float = 0.0
    stress_level: float = 0.0
    alcohol_level: float = 0.0
    meditation_effect: float = 0.0
    inflammation: float = 0.0

    # Neurotransmitter drivers (firing is relative, 1.0 = resting)
    dopamine_firing: float = 1.0
    serotonin_firing: float = 1.0
    norepi_firing: float = 1.0
    stimulant_effect: float = 0.0
    tryptophan_availability: float = 0.8
    precursor_availability: float = 0.8   # tyrosine / L-DOPA supply for catecholamine synthesis
    gaba_boost: float = 0.0
    glutamate_block: float = 0.0

    # Explicit receptor occupancy from pharmacology kernels
    receptor_drive: Dict[Receptor, ReceptorDrive] = field(default_factory=dict)

    is_asleep: bool = False
    minute_of_day: float = 0.0


def _derived_receptor_drive(inputs: HomeostasisInputs, stress: float) -> Dict[Receptor, ReceptorDrive]:
    drive: Dict[Receptor, ReceptorDrive] = {}
    if inputs.stimulant_effect > 0.0:
        drive[Receptor.D2] = (inputs.stimulant_effect, AdaptationMechanism.FULL_AGONIST, None)
    if inputs.gaba_boost > 0.0:
        drive[Receptor.GABAA] = (inputs.gaba_boost, AdaptationMechanism.PAM, None)
    if inputs.caffeine_level > 0.0:
        drive[Receptor.A2A] = (inputs.caffeine_level / 200.0, AdaptationMechanism.ANTAGONIST, None)
    serotonin_shift = inputs.serotonin_firing - 1.0
    if abs(serotonin_shift) > 0.2:
        mechanism = AdaptationMechanism.FULL_AGONIST if serotonin_shift > 0 else AdaptationMechanism.ANTAGONIST
        drive[Receptor.HT2A] = (min(1.0, abs(serotonin_shift)), mechanism, None)
    beta = stress + 0.5 * inputs.exercise_intensity
    if beta > 0.0:
        drive[Receptor.BETA_ADRENERGIC] = (beta, AdaptationMechanism.FULL_AGONIST, None)
    if inputs.glutamate_block > 0.0:
        drive[Receptor.NMDA] = (inputs.glutamate_block, AdaptationMechanism.ANTAGONIST, None)
    drive.update(inputs.receptor_drive)
    return drive


def step_homeostasis(state: HomeostasisState, inputs: HomeostasisInputs, params: HomeostasisParams,
                     dt: float) -> Tuple[HomeostasisState, Dict[str, float]]:
    """
    Advance the homeostatic state by dt minutes.

    Returns (new_state, corrections). `state` is not modified.
    """
    new = state.copy()
    n_steps, h = substep_plan(dt, HOMEOSTASIS_INTERNAL_DT)

    # Meditation damps perceived stress.
    stress = max(0.0, inputs.stress_level - 0.5 * inputs.meditation_effect)
    exercise = max(0.0, inputs.exercise_intensity)

    gi_inputs = GlucoseInsulinInputs(
        glucose_appearance=inputs.glucose_appearance,
        exercise_uptake=exercise * 0.5,
        stress_hormones=stress,
    )
    sleep_inputs = SleepInputs(is_asleep=inputs.is_asleep, caffeine_level=inputs.caffeine_level)

    stimulant = max(0.0, inputs.stimulant_effect)
    vmax = VESICLE_CONFIG.firing_max
    precursor = clamp(inputs.precursor_availability, 0.0, VESICLE_CONFIG.precursor_max)
    da_inputs = VesicleInputs(
        firing_rate=min(vmax, max(0.0, inputs.dopamine_firing + stimulant * VESICLE_CONFIG.stimulant_da_gain)),
        precursor_availability=precursor,
    )
    ne_inputs = VesicleInputs(
        firing_rate=min(vmax, max(0.0, inputs.norepi_firing + stimulant * VESICLE_CONFIG.stimulant_ne_gain)),
        precursor_availability=precursor,
    )
    ht_inputs = VesicleInputs(
        firing_rate=min(vmax, max(0.0, inputs.serotonin_firing)),
        precursor_availability=inputs.tryptophan_availability,
    )
    gaba_boost_base = inputs.gaba_boost + inputs.alcohol_level * 0.02
    gh_trigger = gh_release_trigger(inputs.is_asleep, exercise)
    receptor_drive = _derived_receptor_drive(inputs, stress)

    for i in range(n_steps):
        minute = (inputs.minute_of_day + i * h) % MINUTES_PER_DAY
        drive = circadian_drive(minute)

        g, x, ins, gly = step_glucose_insulin(
            [new.glucose, new.insulin_action, new.insulin, new.hepatic_glycogen], h, gi_inputs, params)
        new.glucose, new.insulin_action, new.insulin, new.hepatic_glycogen = float(g), float(x), float(ins), float(gly)

        new.adenosine_pressure = step_sleep_pressure(new.adenosine_pressure, h, sleep_inputs, params)

        hpa_inputs = HPAInputs(stress_input=stress, circadian_drive=drive,
                               inflammatory_signal=inputs.inflammation)
        crh, cort, load = step_hpa([new.crh, new.cortisol, new.cortisol_integral], h, hpa_inputs, params)
        new.crh, new.cortisol, new.cortisol_integral = float(crh), float(cort), float(load)

        ref_inputs = HPAInputs(stress_input=0.0, circadian_drive=drive, inflammatory_signal=0.0)
        ref_crh, ref_cort, _ = step_hpa([new.crh_reference, new.cortisol_reference, 0.0], h, ref_inputs, params)
        new.crh_reference, new.cortisol_reference = float(ref_crh), float(ref_cort)

        new.adrenaline_reserve = step_adrenaline_reserve(new.adrenaline_reserve, h, stress, exercise)

        new.dopamine_vesicles = step_vesicle_pool(new.dopamine_vesicles, h, da_inputs)
        new.norepinephrine_vesicles = step_vesicle_pool(new.norepinephrine_vesicles, h, ne_inputs)
        new.serotonin_precursor = step_vesicle_pool(new.serotonin_precursor, h, ht_inputs)

        gaba_boost = gaba_boost_base + new.adenosine_pressure * 0.3
        new.gaba_pool = step_gaba_pool(new.gaba_pool, h, gaba_boost)
        new.glutamate_pool = step_glutamate_pool(new.glutamate_pool, h, stress, inputs.glutamate_block)
        new.acetylcholine_tone = step_acetylcholine_tone(new.acetylcholine_tone, h, inputs.is_asleep)
        new.bdnf_expression = step_bdnf_expression(new.bdnf_expression, h, exercise, new.cortisol_integral)
        new.gh_reserve = step_gh_reserve(new.gh_reserve, h, gh_trigger)

        for receptor in set(new.receptor_states) | set(receptor_drive):
            occupancy, mechanism, tau = receptor_drive.get(
                receptor, (0.0, AdaptationMechanism.FULL_AGONIST, None))
            current = new.receptor_states.get(receptor, 1.0)
            new.receptor_states[receptor] = step_receptor_density(current, occupancy, mechanism, receptor, h, tau)

    return new, compute_corrections(new, inputs, gh_trigger)


def compute_corrections(state: HomeostasisState, inputs: HomeostasisInputs,
                        gh_trigger: float = 0.0) -> Dict[str, float]:
    """Additive signal corrections for a homeostatic state."""
    density = state.receptor_states.get
    s = state.adenosine_pressure
    beta_effect = (density(Receptor.BETA_ADRENERGIC, 1.0) - 1.0) * 0.15
    a2a_effect = s * 20.0 * (density(Receptor.A2A, 1.0) - 1.0) * 0.3

    return {
        "glucose": state.glucose - inputs.baseline_glucose,
        "insulin": state.insulin - GI_CONFIG.basal_insulin,
        "cortisol": state.cortisol - state.cortisol_reference,
        "histamine": -s * 10.0,
        "orexin": -s * 15.0,
        "energy": -s * 25.0 + inputs.exercise_intensity * 10.0 - a2a_effect,
        "melatonin": s * 5.0 if inputs.is_asleep else -s * 3.0,
        "dopamine": (depletion_correction(state.dopamine_vesicles, inputs.baseline_dopamine)
                     + inputs.baseline_dopamine * (density(Receptor.D2, 1.0) - 1.0) * 0.25),
        "norepi": (depletion_correction(state.norepinephrine_vesicles, inputs.baseline_norepi)
                   + beta_effect * inputs.baseline_norepi),
        "serotonin": (depletion_correction(state.serotonin_precursor, inputs.baseline_serotonin)
                      + inputs.baseline_serotonin * (density(Receptor.HT2A, 1.0) - 1.0) * 0.2),
        "gaba": ((state.gaba_pool - VESICLE_CONFIG.gaba_rest) * inputs.baseline_gaba * 0.3
                 + inputs.baseline_gaba * (density(Receptor.GABAA, 1.0) - 1.0) * 0.2),
        "glutamate": ((state.glutamate_pool - VESICLE_CONFIG.glutamate_rest) * inputs.baseline_glutamate * 0.3
                      + inputs.baseline_glutamate * (density(Receptor.NMDA, 1.0) - 1.0) * 0.25),
        "acetylcholine": (state.acetylcholine_tone - VESICLE_CONFIG.ach_rest) * inputs.baseline_acetylcholine * 0.2,
        "adrenaline": ((state.adrenaline_reserve - DEFAULT_HOMEOSTASIS_STATE.adrenaline_reserve)
                       * inputs.baseline_adrenaline * 0.4 + beta_effect * inputs.baseline_adrenaline),
        "bdnf": (state.bdnf_expression - VESICLE_CONFIG.bdnf_rest) * inputs.baseline_bdnf * 0.3,
        "growthHormone": state.gh_reserve * 5.0 if gh_trigger > 0.0 else 0.0,
    }


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

def serialize_homeostasis(state: HomeostasisState) -> dict:
    """Flat, JSON-safe snapshot: named floats plus a receptor-density table."""
    snapshot = {name: float(getattr(state, name)) for name in POOL_FIELDS}
    snapshot["receptor_states"] = {r.value: float(v) for r, v in state.receptor_states.items()}
    return snapshot


def deserialize_homeostasis(snapshot: Optional[dict]) -> HomeostasisState:
    """
    Rebuild a HomeostasisState, filling missing fields from the defaults.

    Accepts snake_case and legacy camelCase keys. When the cortisol reference
    is missing it starts at the stored CRH/cortisol values, so the first
    correction after a restore is zero. Unknown receptor keys are dropped
    with a warning.
    """
    if not snapshot:
        return DEFAULT_HOMEOSTASIS_STATE.copy()

    data = {}
    for key, value in snapshot.items():
        data[_LEGACY_KEYS.get(key, key)] = value

    values = {}
    for name in POOL_FIELDS:
        if name in data and data[name] is not None:
            values[name] = float(data[name])
        else:
            values[name] = getattr(DEFAULT_HOMEOSTASIS_STATE, name)
    if "crh_reference" not in data and "crh" in data:
        values["crh_reference"] = values["crh"]
    if "cortisol_reference" not in data and "cortisol" in data:
        values["cortisol_reference"] = values["cortisol"]

    receptors: Dict[Receptor, float] = {}
    for key, density in (data.get("receptor_states") or {}).items():
        try:
            receptors[Receptor.parse(key)] = float(density)
        except KeyError:
            LOGGER.warning("Dropping unknown receptor %r from homeostasis snapshot", key)

    return HomeostasisState(receptor_states=receptors, **values)


def coerce_receptor_drive(raw: dict) -> Dict[Receptor, ReceptorDrive]:
    """Build a receptor drive table from loosely typed data (occupancy, mechanism[, tau])."""
    drive: Dict[Receptor, ReceptorDrive] = {}
    for key, spec in raw.items():
        occupancy, mechanism, *rest = spec
        drive[Receptor.parse(key)] = (float(occupancy), mechanism_from_legacy(mechanism),
                                      rest[0] if rest else None)
    return drive
