"""
Sleep/wake signals: melatonin, orexin, histamine.
"""

from physiodyn.core.enums import Enzyme
from .definitions import ClearanceTerm, SetpointContext, Signal, SignalDefinition, inhib, stim
from .shapes import gaussian_phase, hour_to_phase, sigmoid_phase, window_phase


def melatonin_setpoint(ctx: SetpointContext) -> float:
    return 80.0 * window_phase(ctx.phase, hour_to_phase(21), hour_to_phase(7.5), 0.5)


def orexin_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    wake = sigmoid_phase(p, hour_to_phase(7.8), 1.0)
    feeding = gaussian_phase(p, hour_to_phase(12.5), 0.5) + 0.6 * gaussian_phase(p, hour_to_phase(18.5), 0.8)
    night = sigmoid_phase(p, hour_to_phase(22.5), 1.0)
    return 250.0 + 150.0 * wake + 80.0 * feeding - 100.0 * night


def histamine_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    wake = sigmoid_phase(p, hour_to_phase(7.5), 1.0)
    day = gaussian_phase(p, hour_to_phase(13), 0.8)
    night = sigmoid_phase(p, hour_to_phase(22), 1.0)
    return 7.5 + 22.5 * wake + 17.5 * day - 10.0 * night


MELATONIN = SignalDefinition(
    key=Signal.MELATONIN,
    unit="pg/mL",
    setpoint=melatonin_setpoint,
    tau=30.0,
    couplings=(inhib("dopamine", 1.0),),
    min_value=0.0,
    max_value=150.0,
)

OREXIN = SignalDefinition(
    key=Signal.OREXIN,
    unit="pg/mL",
    setpoint=orexin_setpoint,
    tau=90.0,
    couplings=(
        inhib("melatonin", 1.0),
        stim("ghrelin", 0.02),
        stim("dopamine", 3.0),
    ),
    min_value=100.0,
    max_value=600.0,
)

HISTAMINE = SignalDefinition(
    key=Signal.HISTAMINE,
    unit="nM",
    setpoint=histamine_setpoint,
    tau=60.0,
    couplings=(inhib("melatonin", 0.2),),
    clearance=(ClearanceTerm(0.02, Enzyme.DAO),),
    min_value=0.0,
    max_value=500.0,
)

CIRCADIAN_SIGNALS = (MELATONIN, OREXIN, HISTAMINE)
