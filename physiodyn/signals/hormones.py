"""
Endocrine signals.

Reproductive hormones read the multi-day cycle phase for female subjects and
are flat for male subjects; everything else is a daily shape.
"""

import math

from physiodyn.patient.subject import menstrual_hormones
from .definitions import SetpointContext, Signal, SignalDefinition, inhib, stim
from .shapes import (
    gaussian_phase,
    hour_to_phase,
    minutes_to_phase_width,
    sigmoid_phase,
    width_to_concentration,
    window_phase,
)


def cortisol_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    awakening = gaussian_phase(p, hour_to_phase(8.75), 1.5)
    day = window_phase(p, hour_to_phase(8), hour_to_phase(20), 0.5)
    return 2.0 + 18.0 * awakening + 4.0 * day


def adrenaline_setpoint(ctx: SetpointContext) -> float:
    return 30.0 + 80.0 * gaussian_phase(ctx.phase, hour_to_phase(10), 2.0)


def leptin_setpoint(ctx: SetpointContext) -> float:
    hour = ctx.minute_of_day / 60.0
    return 15.0 + 5.0 * math.cos((hour - 24.0) * math.pi / 12.0)


def ghrelin_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    pre_meal = (gaussian_phase(p, hour_to_phase(8.5), 1.0)
                + gaussian_phase(p, hour_to_phase(13.0), 1.0)
                + gaussian_phase(p, hour_to_phase(19.0), 1.0))
    return 400.0 + 600.0 * pre_meal


def thyroid_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    active = window_phase(p, hour_to_phase(8), hour_to_phase(23), minutes_to_phase_width(80))
    midday = gaussian_phase(p, hour_to_phase(12), width_to_concentration(360))
    night_dip = gaussian_phase(p, hour_to_phase(2.0), width_to_concentration(300))
    return 1.0 + 2.0 * active + 1.5 * midday - 0.6 * night_dip


def growth_hormone_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    sleep_onset = gaussian_phase(p, hour_to_phase(23.5), width_to_concentration(120))
    rebound = gaussian_phase(p, hour_to_phase(3.0), width_to_concentration(90))
    return 0.5 + 8.0 * (sleep_onset + 0.6 * rebound)


def oxytocin_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    social = gaussian_phase(p, hour_to_phase(11), width_to_concentration(260))
    evening = sigmoid_phase(p, hour_to_phase(19), minutes_to_phase_width(160))
    return 1.5 + 4.0 * social + 5.0 * evening


def prolactin_setpoint(ctx: SetpointContext) -> float:
    p = ctx.phase
    prep = sigmoid_phase(p, hour_to_phase(19), minutes_to_phase_width(200))
    sleep_pulse = (gaussian_phase(p, hour_to_phase(2.0), width_to_concentration(120))
                   + 0.8 * gaussian_phase(p, hour_to_phase(4.0), width_to_concentration(200)))
    return 4.0 + 8.0 * prep + 12.0 * sleep_pulse


def testosterone_setpoint(ctx: SetpointContext) -> float:
    age_factor = max(0.5, 1.0 - max(0.0, ctx.subject.age - 30.0) * 0.01)
    if ctx.subject.is_female:
        return 40.0 * age_factor
    circadian = 400.0 + 300.0 * gaussian_phase(ctx.phase, hour_to_phase(8), width_to_concentration(240))
    return circadian * age_factor


def _cycle_level(ctx: SetpointContext, hormone: str) -> float:
    return menstrual_hormones(ctx.cycle_day, ctx.subject.cycle_length)[hormone]


def estrogen_setpoint(ctx: SetpointContext) -> float:
    if not ctx.subject.is_female:
        return 30.0
    return 20.0 + 250.0 * _cycle_level(ctx, "estrogen")


def progesterone_setpoint(ctx: SetpointContext) -> float:
    if not ctx.subject.is_female:
        return 0.2
    return 0.2 + 18.0 * _cycle_level(ctx, "progesterone")


def lh_setpoint(ctx: SetpointContext) -> float:
    if not ctx.subject.is_female:
        return 5.0
    return 2.0 + 30.0 * _cycle_level(ctx, "lh")


def fsh_setpoint(ctx: SetpointContext) -> float:
    if not ctx.subject.is_female:
        return 5.0
    return 3.0 + 12.0 * _cycle_level(ctx, "fsh")


CORTISOL = SignalDefinition(
    key=Signal.CORTISOL,
    unit="ug/dL",
    setpoint=cortisol_setpoint,
    tau=20.0,
    couplings=(
        stim("orexin", 0.02),
        inhib("melatonin", 0.05),
        inhib("gaba", 0.005),
    ),
    min_value=0.0,
    max_value=50.0,
)

ADRENALINE = SignalDefinition(
    key=Signal.ADRENALINE,
    unit="pg/mL",
    setpoint=adrenaline_setpoint,
    tau=5.0,
    couplings=(
        stim("orexin", 0.1),
        stim("dopamine", 1.0),
        inhib("gaba", 0.05),
    ),
    min_value=0.0,
    max_value=1000.0,
)

LEPTIN = SignalDefinition(
    key=Signal.LEPTIN,
    unit="ng/mL",
    setpoint=leptin_setpoint,
    tau=1440.0,
    # Adipose leptin secretion follows meal insulin by several hours.
    couplings=(stim("insulin", 0.1, delay=240.0),),
    max_value=100.0,
)

GHRELIN = SignalDefinition(
    key=Signal.GHRELIN,
    unit="pg/mL",
    setpoint=ghrelin_setpoint,
    tau=60.0,
    couplings=(
        inhib("leptin", 15.0),
        inhib("insulin", 2.0),
        stim("progesterone", 20.0),
    ),
    max_value=3000.0,
)

THYROID = SignalDefinition(
    key=Signal.THYROID,
    unit="pmol/L",
    setpoint=thyroid_setpoint,
    tau=43200.0,
    couplings=(
        inhib("cortisol", 0.08),
        stim("leptin", 0.1),
    ),
    max_value=20.0,
)

GROWTH_HORMONE = SignalDefinition(
    key=Signal.GROWTH_HORMONE,
    unit="ng/mL",
    setpoint=growth_hormone_setpoint,
    tau=20.0,
    couplings=(
        stim("gaba", 0.04),
        stim("ghrelin", 0.01),
        inhib("cortisol", 0.15),
    ),
    max_value=50.0,
)

OXYTOCIN = SignalDefinition(
    key=Signal.OXYTOCIN,
    unit="pg/mL",
    setpoint=oxytocin_setpoint,
    tau=20.0,
    couplings=(
        stim("endocannabinoid", 0.04),
        stim("serotonin", 0.6),
    ),
    max_value=100.0,
)

PROLACTIN = SignalDefinition(
    key=Signal.PROLACTIN,
    unit="ng/mL",
    setpoint=prolactin_setpoint,
    tau=45.0,
    couplings=(
        stim("gaba", 0.05),
        inhib("dopamine", 0.5),
    ),
    max_value=200.0,
)

TESTOSTERONE = SignalDefinition(
    key=Signal.TESTOSTERONE,
    unit="ng/dL",
    setpoint=testosterone_setpoint,
    tau=60.0,
    max_value=1500.0,
)

ESTROGEN = SignalDefinition(
    key=Signal.ESTROGEN,
    unit="pg/mL",
    setpoint=estrogen_setpoint,
    tau=120.0,
    max_value=600.0,
)

PROGESTERONE = SignalDefinition(
    key=Signal.PROGESTERONE,
    unit="ng/mL",
    setpoint=progesterone_setpoint,
    tau=120.0,
    max_value=50.0,
)

LH = SignalDefinition(
    key=Signal.LH,
    unit="IU/L",
    setpoint=lh_setpoint,
    tau=60.0,
    max_value=100.0,
)

FSH = SignalDefinition(
    key=Signal.FSH,
    unit="IU/L",
    setpoint=fsh_setpoint,
    tau=60.0,
    max_value=100.0,
)

HORMONE_SIGNALS = (
    CORTISOL, ADRENALINE, LEPTIN, GHRELIN, THYROID, GROWTH_HORMONE, OXYTOCIN,
    PROLACTIN, TESTOSTERONE, ESTROGEN, PROGESTERONE, LH, FSH,
)
