"""
Metabolic signals: glucose, insulin, glucagon, ketones, ethanol.

Glucose and insulin follow the homeostasis glucose-insulin pools through
their corrections, so their own taus are short and their setpoints are the
basal values of the minimal model.
"""

from .definitions import ProductionTerm, SetpointContext, Signal, SignalDefinition, inhib, stim
from .shapes import gaussian_phase, hour_to_phase, width_to_concentration

GLUCOSE_BASAL = 90.0   # mg/dL
INSULIN_BASAL = 8.0    # uU/mL


def glucose_setpoint(ctx: SetpointContext) -> float:
    return GLUCOSE_BASAL


def insulin_setpoint(ctx: SetpointContext) -> float:
    return INSULIN_BASAL


def glucagon_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    nocturnal = gaussian_phase(p, hour_to_phase(23), 1.0) + 0.8 * gaussian_phase(p, hour_to_phase(1.5), 0.8)
    daytime_suppression = gaussian_phase(p, hour_to_phase(7.5), 0.5)
    return 40.0 + 35.0 * nocturnal - 15.0 * daytime_suppression


def ketone_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    overnight = (gaussian_phase(p, hour_to_phase(19.5), width_to_concentration(400))
                 + gaussian_phase(p, hour_to_phase(22.5), width_to_concentration(260)))
    day_suppression = gaussian_phase(p, hour_to_phase(7.5), width_to_concentration(300))
    return max(0.1, 0.3 + 1.2 * overnight - 0.5 * day_suppression)


def ethanol_setpoint(ctx: SetpointContext) -> float:
    return 0.0


GLUCOSE = SignalDefinition(
    key=Signal.GLUCOSE,
    unit="mg/dL",
    setpoint=glucose_setpoint,
    tau=5.0,
    couplings=(
        stim("cortisol", 0.5),
        stim("adrenaline", 0.05),
    ),
    min_value=40.0,
    max_value=400.0,
)

INSULIN = SignalDefinition(
    key=Signal.INSULIN,
    unit="uU/mL",
    setpoint=insulin_setpoint,
    tau=3.0,
    couplings=(inhib("glucagon", 0.05),),
    min_value=0.0,
    max_value=200.0,
)

GLUCAGON = SignalDefinition(
    key=Signal.GLUCAGON,
    unit="pg/mL",
    setpoint=glucagon_setpoint,
    tau=60.0,
    couplings=(
        inhib("insulin", 0.5),
        stim("cortisol", 1.0),
    ),
    min_value=20.0,
    max_value=150.0,
)

KETONE = SignalDefinition(
    key=Signal.KETONE,
    unit="mmol/L",
    setpoint=ketone_setpoint,
    tau=480.0,
    couplings=(
        stim("glucagon", 0.02),
        inhib("insulin", 0.05),
    ),
    # Ketogenesis rises as hepatic glycogen runs down.
    production=(ProductionTerm("hepatic_glycogen", -2.0),),
    min_value=0.0,
    max_value=8.0,
)

ETHANOL = SignalDefinition(
    key=Signal.ETHANOL,
    unit="mg/dL",
    setpoint=ethanol_setpoint,
    tau=5.0,
    min_value=0.0,
    max_value=400.0,
)

METABOLIC_SIGNALS = (GLUCOSE, INSULIN, GLUCAGON, KETONE, ETHANOL)
