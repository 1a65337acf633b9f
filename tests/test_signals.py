import logging
import math

import pytest

from physiodyn.core.enums import Effect
from physiodyn.patient.subject import Subject, derive_physiology
from physiodyn.signals.catalog import CATALOG, coupling_sources, lookup, setpoints, without_couplings
from physiodyn.signals.couplings import CouplingEvaluator, DeviationHistory
from physiodyn.signals.definitions import (
    Coupling,
    ProductionTerm,
    SetpointContext,
    Signal,
    SignalDefinition,
    stim,
)


class TestCatalog:

    def test_every_signal_has_a_definition(self):
        assert set(CATALOG) == set(Signal)
        for key, definition in CATALOG.items():
            assert definition.key is key
            assert definition.tau > 0.0
            assert definition.min_value <= definition.max_value

    def test_coupling_sources_are_catalog_signals(self):
        for target, sources in coupling_sources().items():
            assert sources <= set(Signal), f"{target.value} couples to an unknown signal"

    def test_setpoints_finite_and_within_bounds_over_a_day(self):
        """Raw setpoints never leave the clamp range, so a quiet run reproduces them."""
        subject = Subject(sex="female")
        physiology = derive_physiology(subject)
        for minute in range(0, 1440, 15):
            ctx = SetpointContext(minute=float(minute), subject=subject, physiology=physiology)
            for key, value in setpoints(ctx).items():
                definition = CATALOG[key]
                assert math.isfinite(value), f"{key.value} setpoint is not finite at {minute}"
                assert definition.min_value <= value <= definition.max_value, (
                    f"{key.value} setpoint {value:.2f} outside bounds at minute {minute}")

    def test_circadian_shapes(self):
        """Cortisol peaks in the morning, melatonin at night."""
        morning = setpoints(SetpointContext(minute=8 * 60.0))
        evening = setpoints(SetpointContext(minute=22 * 60.0))
        night = setpoints(SetpointContext(minute=2 * 60.0))
        assert morning[Signal.CORTISOL] > evening[Signal.CORTISOL]
        assert night[Signal.MELATONIN] > morning[Signal.MELATONIN]

    def test_lookup_unknown_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert lookup("unobtainium") is None
        assert "unobtainium" in caplog.text
        assert lookup("glucose") is CATALOG[Signal.GLUCOSE]
        assert lookup("GROWTH_HORMONE") is CATALOG[Signal.GROWTH_HORMONE]

    def test_without_couplings(self):
        stripped = without_couplings()
        assert all(not d.couplings for d in stripped.values())
        assert any(d.couplings for d in CATALOG.values()), "original catalog is left untouched"


class TestDefinitionValidation:

    def test_negative_strength_rejected(self):
        with pytest.raises(ValueError):
            Coupling(Signal.CORTISOL, Effect.STIMULATE, -1.0)

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            stim("cortisol", 0.5, delay=-5.0)

    def test_unknown_source_rejected(self):
        with pytest.raises(KeyError):
            stim("phlogiston", 0.5)

    def test_unknown_pool_rejected(self):
        with pytest.raises(KeyError):
            ProductionTerm("nonexistent_pool", 1.0)

    def test_tau_must_be_positive(self):
        with pytest.raises(ValueError):
            SignalDefinition(key=Signal.GLUCOSE, unit="mg/dL", setpoint=lambda ctx: 90.0, tau=0.0)


class TestCouplings:

    def _catalog(self, *couplings):
        source = SignalDefinition(key=Signal.CORTISOL, unit="ug/dL", setpoint=lambda ctx: 10.0, tau=10.0)
        target = SignalDefinition(key=Signal.GLUCOSE, unit="mg/dL", setpoint=lambda ctx: 90.0,
                                  tau=5.0, couplings=tuple(couplings))
        return {Signal.CORTISOL: source, Signal.GLUCOSE: target}

    def test_contribution_reads_previous_step(self):
        evaluator = CouplingEvaluator(self._catalog(stim("cortisol", 0.5)))
        evaluator.commit(0.0, {Signal.CORTISOL: 4.0})
        assert evaluator.contributions()[Signal.GLUCOSE] == pytest.approx(2.0)

    def test_inhibition_sign(self):
        evaluator = CouplingEvaluator(self._catalog(Coupling(Signal.CORTISOL, Effect.INHIBIT, 0.5)))
        evaluator.commit(0.0, {Signal.CORTISOL: 4.0})
        assert evaluator.contributions()[Signal.GLUCOSE] == pytest.approx(-2.0)

    def test_delay_reads_history(self):
        """A 30 min delay sees zero until 30 min of history exist, then the old deviation."""
        evaluator = CouplingEvaluator(self._catalog(stim("cortisol", 1.0, delay=30.0)))
        for t in range(0, 61):
            evaluator.commit(float(t), {Signal.CORTISOL: float(t)})
            if t == 10:
                assert evaluator.contributions()[Signal.GLUCOSE] == 0.0
        assert evaluator.contributions()[Signal.GLUCOSE] == pytest.approx(30.0)

    def test_history_is_bounded(self):
        history = DeviationHistory(horizon=10.0)
        for t in range(1000):
            history.push(float(t), float(t))
        assert history.at_or_before(999.0 - 10.0) == pytest.approx(989.0)
        assert len(history._times) <= 12
