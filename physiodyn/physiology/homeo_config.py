from dataclasses import dataclass


@dataclass(frozen=True)
class GlucoseInsulinConfig:
    """Centralized parameters for the glucose-insulin minimal model."""
    p1: float = 0.028        # glucose effectiveness (1/min)
    p2: float = 0.025        # insulin action decay (1/min)
    p3: float = 0.000013     # insulin action gain
    n: float = 0.1           # insulin clearance (1/min)
    gamma: float = 0.2       # pancreatic responsivity (uU/mL per mg/dL per min)
    secretion_floor: float = 50.0  # glucose at which basal secretion is fully suppressed (mg/dL)
    basal_insulin: float = 8.0  # uU/mL

    # Counter-regulation and hepatic glycogen
    stress_gain: float = 0.5
    glycogen_release_threshold: float = 70.0
    glycogen_release_gain: float = 0.5
    glycogen_storage_threshold: float = 100.0
    glycogen_storage_gain: float = 0.001
    glycogen_release_cost: float = 0.01

    # Pool bounds
    glucose_min: float = 40.0
    glucose_max: float = 400.0
    insulin_min: float = 0.0
    insulin_max: float = 200.0


@dataclass(frozen=True)
class SleepConfig:
    """Process S parameters (decay/build live in HomeostasisParams)."""
    caffeine_block_max: float = 0.7
    caffeine_saturation: float = 100.0


@dataclass(frozen=True)
class HPAConfig:
    """HPA axis rate constants."""
    k_feedback: float = 0.1   # cortisol -> CRH feedback gain
    k_crh_cort: float = 0.5   # CRH -> cortisol
    k_cort_clear: float = 0.05
    k_crh_clear: float = 0.1
    inflammation_gain: float = 0.3
    circadian_peak_hour: float = 8.0
    load_threshold: float = 1.5   # x setpoint
    load_gain: float = 0.0001
    load_decay: float = 0.00005
    crh_min: float = 0.0
    crh_max: float = 5.0
    cortisol_min: float = 0.0
    cortisol_max: float = 60.0


@dataclass(frozen=True)
class VesicleConfig:
    """Vesicle pool and slow neuromodulator pool parameters."""
    k_synthesis: float = 0.01
    k_release: float = 0.002
    pool_min: float = 0.1
    pool_max: float = 1.0
    default_precursor: float = 0.8
    precursor_max: float = 1.5
    stimulant_da_gain: float = 0.3
    stimulant_ne_gain: float = 0.2
    firing_max: float = 3.0

    # Depletion -> signal correction
    depletion_full: float = 0.8
    depletion_floor: float = 0.5
    depletion_max_loss: float = 0.3

    # Adrenaline reserve
    adrenaline_recovery: float = 0.002
    adrenaline_depletion: float = 0.005
    adrenaline_min: float = 0.2

    # GABA / glutamate / ACh / BDNF / GH pools
    gaba_rest: float = 0.7
    glutamate_rest: float = 0.7
    ach_rest: float = 0.6
    bdnf_rest: float = 0.6
    gh_rest: float = 0.8


@dataclass(frozen=True)
class ReceptorAdaptationConfig:
    """Biphasic receptor adaptation constants."""
    k_up: float = 0.001
    k_down: float = 0.002
    k_fast: float = 0.005
    k_slow: float = 0.0005
    fast_fraction: float = 0.6
    slow_fraction: float = 0.4
    occupancy_threshold: float = 0.3
    subthreshold_weight: float = 0.1
    baseline_density: float = 1.0
    min_density: float = 0.3
    max_density: float = 2.0
