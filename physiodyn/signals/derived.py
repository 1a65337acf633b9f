"""
Composite and autonomic indices: energy, HRV, blood pressure, inflammation,
BDNF, vagal tone.
"""

from .definitions import ProductionTerm, SetpointContext, Signal, SignalDefinition, inhib, stim
from .shapes import (
    gaussian_phase,
    hour_to_phase,
    minutes_to_phase_width,
    sigmoid_phase,
    width_to_concentration,
    window_phase,
)


def energy_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    wake = sigmoid_phase(p, hour_to_phase(2), 1.0)
    dip = gaussian_phase(p, hour_to_phase(9), 1.5)
    tone = 50.0 + 40.0 * wake - 15.0 * dip
    return tone * (0.8 + 0.2 * ctx.metabolic_capacity)


def hrv_setpoint(ctx: SetpointContext) -> float:
    return 45.0 + 35.0 * gaussian_phase(ctx.phase, hour_to_phase(23), 2.0)


def blood_pressure_setpoint(ctx: SetpointContext) -> float:
    return 100.0 + 20.0 * sigmoid_phase(ctx.phase, hour_to_phase(2), 1.0)


def inflammation_setpoint(ctx: SetpointContext) -> float:
    return 1.0


def bdnf_setpoint(ctx: SetpointContext) -> float:
    return 25.0


def vagal_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    parasympathetic = window_phase(p, hour_to_phase(13), hour_to_phase(7), minutes_to_phase_width(60))
    drop = gaussian_phase(p, hour_to_phase(1), width_to_concentration(60))
    return 0.4 + 0.35 * parasympathetic - 0.15 * drop


ENERGY = SignalDefinition(
    key=Signal.ENERGY,
    unit="index",
    setpoint=energy_setpoint,
    tau=120.0,
    couplings=(
        inhib("inflammation", 10.0),
        inhib("melatonin", 0.05),
        stim("dopamine", 0.5),
        stim("thyroid", 5.0),
        stim("glucose", 0.1),
        stim("cortisol", 0.5),
    ),
    min_value=0.0,
    max_value=150.0,
)

HRV = SignalDefinition(
    key=Signal.HRV,
    unit="ms",
    setpoint=hrv_setpoint,
    tau=30.0,
    couplings=(
        inhib("adrenaline", 0.1),
        inhib("norepi", 0.02),
        stim("vagal", 40.0),
    ),
    min_value=10.0,
    max_value=150.0,
)

BLOOD_PRESSURE = SignalDefinition(
    key=Signal.BLOOD_PRESSURE,
    unit="mmHg",
    setpoint=blood_pressure_setpoint,
    tau=15.0,
    couplings=(
        stim("adrenaline", 0.05),
        stim("norepi", 0.02),
        stim("cortisol", 0.5),
        inhib("vagal", 10.0),
    ),
    min_value=70.0,
    max_value=200.0,
)

INFLAMMATION = SignalDefinition(
    key=Signal.INFLAMMATION,
    unit="index",
    setpoint=inflammation_setpoint,
    tau=1440.0,
    couplings=(inhib("cortisol", 0.02),),
    production=(ProductionTerm("cortisol_integral", 2.0),),
    min_value=0.0,
    max_value=10.0,
)

BDNF = SignalDefinition(
    key=Signal.BDNF,
    unit="ng/mL",
    setpoint=bdnf_setpoint,
    tau=480.0,
    couplings=(
        stim("growthHormone", 0.5, delay=60.0),
        inhib("cortisol", 0.3),
    ),
    min_value=0.0,
    max_value=100.0,
)

VAGAL = SignalDefinition(
    key=Signal.VAGAL,
    unit="index",
    setpoint=vagal_setpoint,
    tau=30.0,
    couplings=(
        stim("oxytocin", 0.04),
        stim("gaba", 0.0005),
        inhib("adrenaline", 0.002),
        inhib("cortisol", 0.01),
    ),
    min_value=0.0,
    max_value=1.5,
)

DERIVED_SIGNALS = (ENERGY, HRV, BLOOD_PRESSURE, INFLAMMATION, BDNF, VAGAL)
