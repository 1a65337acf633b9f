"""
Neurotransmitter signals.

Transporter and enzyme clearance terms speed the return toward setpoint;
an inhibitor of the named enzyme (e.g. a DAT blocker) slows it and so
prolongs any deviation.
"""

from physiodyn.core.enums import Enzyme
from .definitions import ClearanceTerm, SetpointContext, Signal, SignalDefinition, inhib, stim
from .shapes import gaussian_phase, hour_to_phase, sigmoid_phase, window_phase


def dopamine_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    morning = gaussian_phase(p, hour_to_phase(10.5), 1.0)
    afternoon = gaussian_phase(p, hour_to_phase(13.5), 0.8)
    evening_drop = gaussian_phase(p, hour_to_phase(22), 0.5)
    return 4.0 + 9.0 * morning + 4.0 * afternoon - 3.0 * evening_drop


def serotonin_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    late_morning = gaussian_phase(p, hour_to_phase(11), 1.0)
    afternoon = gaussian_phase(p, hour_to_phase(15), 0.8)
    return 2.0 + 2.5 * (late_morning + afternoon)


def norepi_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    wake = sigmoid_phase(p, hour_to_phase(8.5), 1.0)
    morning = gaussian_phase(p, hour_to_phase(9), 0.5)
    return 156.0 + 250.0 * wake + 94.0 * morning


def gaba_setpoint(ctx: SetpointContext) -> float:
    return 240.0 + 180.0 * sigmoid_phase(ctx.phase, hour_to_phase(21), 1.0)


def glutamate_setpoint(ctx: SetpointContext) -> float:
    return 2.5 + 4.16 * sigmoid_phase(ctx.phase, hour_to_phase(9), 1.0)


def acetylcholine_setpoint(ctx: SetpointContext) -> float:
    rem_drive = 0.8 if ctx.is_asleep else 0.4
    focus = window_phase(ctx.phase, hour_to_phase(10), hour_to_phase(12), 0.5)
    return 7.5 + 10.0 * focus + 7.5 * rem_drive


def endocannabinoid_setpoint(ctx: SetpointContext) -> float:
    return 4.0 + 6.0 * gaussian_phase(ctx.phase, hour_to_phase(9), 2.0)


DOPAMINE = SignalDefinition(
    key=Signal.DOPAMINE,
    unit="nM",
    setpoint=dopamine_setpoint,
    tau=120.0,
    couplings=(stim("cortisol", 0.12),),
    clearance=(
        ClearanceTerm(0.002, Enzyme.DAT),
        ClearanceTerm(0.001, Enzyme.MAO_B),
    ),
    min_value=0.0,
    max_value=100.0,
)

SEROTONIN = SignalDefinition(
    key=Signal.SEROTONIN,
    unit="nM",
    setpoint=serotonin_setpoint,
    tau=180.0,
    couplings=(inhib("cortisol", 0.16),),
    clearance=(
        ClearanceTerm(0.002, Enzyme.SERT),
        ClearanceTerm(0.001, Enzyme.MAO_A),
    ),
    min_value=0.0,
    max_value=50.0,
)

NOREPI = SignalDefinition(
    key=Signal.NOREPI,
    unit="pg/mL",
    setpoint=norepi_setpoint,
    tau=90.0,
    couplings=(
        stim("cortisol", 5.0),
        stim("orexin", 0.5),
    ),
    clearance=(
        ClearanceTerm(0.002, Enzyme.NET),
        ClearanceTerm(0.001, Enzyme.MAO_A),
    ),
    min_value=0.0,
    max_value=2000.0,
)

GABA = SignalDefinition(
    key=Signal.GABA,
    unit="nM",
    setpoint=gaba_setpoint,
    tau=120.0,
    couplings=(
        stim("melatonin", 0.6),
        inhib("glutamate", 10.0),
    ),
    clearance=(ClearanceTerm(0.002, Enzyme.GAT1),),
    min_value=0.0,
    max_value=2000.0,
)

GLUTAMATE = SignalDefinition(
    key=Signal.GLUTAMATE,
    unit="uM",
    setpoint=glutamate_setpoint,
    tau=60.0,
    couplings=(
        stim("norepi", 0.005),
        inhib("gaba", 0.002),
    ),
    clearance=(ClearanceTerm(0.004, Enzyme.GLT1),),
    min_value=0.0,
    max_value=100.0,
)

ACETYLCHOLINE = SignalDefinition(
    key=Signal.ACETYLCHOLINE,
    unit="nM",
    setpoint=acetylcholine_setpoint,
    tau=45.0,
    couplings=(stim("orexin", 0.03),),
    clearance=(ClearanceTerm(0.02, Enzyme.ACHE),),
    min_value=0.0,
    max_value=100.0,
)

ENDOCANNABINOID = SignalDefinition(
    key=Signal.ENDOCANNABINOID,
    unit="nM",
    setpoint=endocannabinoid_setpoint,
    tau=60.0,
    couplings=(
        stim("dopamine", 0.05),
        inhib("cortisol", 0.1),
    ),
    min_value=0.0,
    max_value=100.0,
)

NEUROTRANSMITTER_SIGNALS = (
    DOPAMINE, SEROTONIN, NOREPI, GABA, GLUTAMATE, ACETYLCHOLINE, ENDOCANNABINOID,
)
