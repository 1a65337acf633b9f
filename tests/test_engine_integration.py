"""
End-to-end runs of the simulation engine.
"""

import math
import threading

import numpy as np
import pytest

from physiodyn.core.engine import SimulationCancelled, SimulationEngine
from physiodyn.core.enums import Driver, Enzyme
from physiodyn.core.request import RequestValidationError
from physiodyn.core.state import SimulationConfig
from physiodyn.interventions.library import Medication, Sleep
from physiodyn.signals.catalog import CATALOG, setpoints
from physiodyn.signals.definitions import SetpointContext, Signal, SignalDefinition

FOOD = ("food", 0.0, 15.0, {"sugar": 35.0, "starch": 40.0})


def _index(times, minute):
    return int(np.argmin(np.abs(times - minute)))


class TestMealResponse:
    """Mixed carbohydrate meal: 35 g sugar + 40 g starch at t=0."""

    @pytest.fixture
    def meal(self, run_scenario):
        return run_scenario([FOOD], duration=300.0)

    def test_glucose_peaks_early(self, meal):
        glucose = meal.signal(Signal.GLUCOSE)
        window = meal.times <= 120.0
        peak_idx = int(np.argmax(glucose[window]))
        assert glucose[window][peak_idx] > glucose[0] + 10.0, (
            f"Glucose peak {glucose[window][peak_idx]:.1f} barely above basal {glucose[0]:.1f}")
        assert 60.0 <= meal.times[peak_idx] <= 120.0, f"Glucose peaked at {meal.times[peak_idx]:.0f} min"

    def test_glucose_returns_to_baseline_within_four_hours(self, meal):
        glucose = meal.signal(Signal.GLUCOSE)
        baseline = glucose[0]
        at_240 = glucose[_index(meal.times, 240.0)]
        assert abs(at_240 - baseline) <= 5.0, (
            f"Glucose at 4 h is {at_240:.1f}, baseline {baseline:.1f}")

    def test_insulin_peaks_before_glucose_settles(self, meal):
        glucose = meal.signal(Signal.GLUCOSE)
        insulin = meal.signal(Signal.INSULIN)
        baseline = glucose[0]
        peak_idx = int(np.argmax(glucose))
        settled = [i for i in range(peak_idx, glucose.size) if abs(glucose[i] - baseline) <= 0.1 * baseline]
        assert settled, "Glucose never settled"
        assert insulin.max() > insulin[0]
        assert meal.times[int(np.argmax(insulin))] < meal.times[settled[0]]

    def test_homeostatic_glucose_pool_tracks_meal(self, run_scenario):
        response = run_scenario([FOOD], duration=120.0, record_homeostasis=True)
        pool = response.homeostasis_series["glucose"]
        assert pool.max() > 100.0


class TestBaselineReproduction:

    def test_quiet_day_reproduces_setpoints(self, run_scenario, subject, physiology):
        """24 h, no interventions, couplings or homeostasis: each signal is its setpoint curve."""
        response = run_scenario([], duration=1440.0, enable_couplings=False, enable_homeostasis=False)
        assert response.times.size == 1441
        expected = {key: np.empty(response.times.size) for key in CATALOG}
        for i, t in enumerate(response.times):
            ctx = SetpointContext(minute=float(t), subject=subject, physiology=physiology)
            for key, value in setpoints(ctx).items():
                expected[key][i] = value
        for key, values in expected.items():
            np.testing.assert_allclose(response.signal(key), values, rtol=1e-12, atol=1e-12,
                                       err_msg=f"{key.value} deviates from its setpoint")

    def test_baselines_disabled_reads_zero_setpoints(self, run_scenario):
        response = run_scenario([], duration=60.0, enable_baselines=False, enable_couplings=False,
                                enable_homeostasis=False)
        for key, definition in CATALOG.items():
            expected = min(max(0.0, definition.min_value), definition.max_value)
            assert np.all(response.signal(key) == expected), f"{key.value} should sit at clamp(0)"

    def test_homeostasis_only_day_stays_finite_and_bounded(self, run_scenario):
        response = run_scenario([], duration=1440.0, dt=5.0)
        for key, definition in CATALOG.items():
            values = response.signal(key)
            assert np.all(np.isfinite(values))
            assert np.all(values >= definition.min_value) and np.all(values <= definition.max_value)


class TestInterventions:

    def test_caffeine_raises_dopamine(self, run_scenario):
        control = run_scenario([], duration=180.0)
        dosed = run_scenario([("caffeine", 0.0, 5.0, {"mg": 200.0})], duration=180.0)
        i = _index(dosed.times, 90.0)
        assert dosed.signal("dopamine")[i] > control.signal("dopamine")[i]
        assert dosed.signal("adrenaline")[i] > control.signal("adrenaline")[i]

    def test_interventions_flag_disables_kernels(self, run_scenario):
        control = run_scenario([], duration=120.0)
        muted = run_scenario([("caffeine", 0.0, 5.0, {"mg": 200.0})], duration=120.0, enable_interventions=False)
        for key in CATALOG:
            np.testing.assert_array_equal(muted.signal(key), control.signal(key))

    def test_melatonin_dose_raises_melatonin(self, run_scenario):
        control = run_scenario([], start=14 * 60.0, duration=120.0)
        dosed = run_scenario([("medication", 14 * 60.0, 5.0, {"drug": "melatonin", "mg": 3.0})],
                             start=14 * 60.0, duration=120.0)
        assert dosed.signal("melatonin")[-1] > control.signal("melatonin")[-1]

    def test_alcohol_ethanol_rises_and_falls(self, run_scenario):
        response = run_scenario([("alcohol", 0.0, 30.0, {"units": 2.0})], duration=720.0, dt=2.0)
        ethanol = response.signal("ethanol")
        assert ethanol[0] == 0.0
        assert ethanol.max() > 10.0
        assert ethanol[-1] < 0.2 * ethanol.max()

    def test_exercise_envelope_ends_with_activity(self, run_scenario):
        response = run_scenario([("exercise", 30.0, 30.0, {"intensity": 0.8})], duration=240.0)
        adrenaline = response.signal("adrenaline")
        i_during = _index(response.times, 55.0)
        assert adrenaline[i_during] > adrenaline[0] + 20.0
        assert adrenaline[-1] < adrenaline[i_during]

    def test_sleep_sets_asleep_flag(self, subject):
        engine = SimulationEngine(subject)
        engine.schedule("sleep", 10.0, 60.0, Sleep())
        for _ in range(5):
            engine.step(1.0)
        assert engine.get_latest_state().is_asleep is False
        for _ in range(10):
            engine.step(1.0)
        state = engine.get_latest_state()
        assert state.is_asleep is True
        assert state.drivers[Driver.SLEEP] == pytest.approx(1.0)
        for _ in range(60):
            engine.step(1.0)
        assert engine.get_latest_state().is_asleep is False

    def test_tyrosine_refills_dopamine_vesicles(self, run_scenario):
        control = run_scenario([], duration=240.0, record_homeostasis=True)
        dosed = run_scenario([("supplement", 0.0, 5.0, {"name": "l_tyrosine", "mg": 1000.0})],
                             duration=240.0, record_homeostasis=True)
        i = _index(dosed.times, 180.0)
        assert dosed.homeostasis_series["dopamine_vesicles"][i] > control.homeostasis_series["dopamine_vesicles"][i]
        assert dosed.homeostasis_series["norepinephrine_vesicles"][i] > (
            control.homeostasis_series["norepinephrine_vesicles"][i])

    def test_nap_clears_sleep_pressure(self, run_scenario):
        start = 14 * 60.0
        awake = run_scenario([], start=start, duration=60.0, record_homeostasis=True)
        napped = run_scenario([("nap", start, 25.0, {})], start=start, duration=60.0, record_homeostasis=True)
        assert napped.homeostasis["adenosine_pressure"] < awake.homeostasis["adenosine_pressure"]

    def test_hiit_outstrips_cardio(self, run_scenario):
        cardio = run_scenario([("exercise", 0.0, 20.0, {"intensity": 0.6})], duration=60.0)
        hiit = run_scenario([("exercise_hiit", 0.0, 20.0, {"intensity": 0.6})], duration=60.0)
        i = _index(hiit.times, 15.0)
        assert hiit.signal("adrenaline")[i] > cardio.signal("adrenaline")[i]

    @pytest.mark.parametrize("key, signal", [
        ("exercise_resistance", "testosterone"),
        ("social", "oxytocin"),
        ("wake", "cortisol"),
    ])
    def test_lifestyle_interventions_move_their_signal(self, run_scenario, key, signal):
        control = run_scenario([], start=7 * 60.0, duration=90.0)
        treated = run_scenario([(key, 7 * 60.0, 45.0, {})], start=7 * 60.0, duration=90.0)
        i = _index(treated.times, 7 * 60.0 + 40.0)
        assert treated.signal(signal)[i] > control.signal(signal)[i]
        assert all(np.all(np.isfinite(v)) for v in treated.series.values())

    def test_dat_blocker_slows_dopamine_clearance(self, subject):
        engine = SimulationEngine(subject)
        engine.schedule("medication", 0.0, 5.0, Medication(drug="methylphenidate", mg=20.0))
        for _ in range(90):
            engine.step(1.0)
        assert engine.state.enzyme_activity[Enzyme.DAT] < 0.5
        assert engine.state.concentrations["Methylphenidate"] > 0.0


class TestEngineBehaviour:

    def test_runs_are_deterministic(self, run_scenario):
        scenario = [FOOD, ("caffeine", 30.0, 5.0, {"mg": 100.0}), ("stress", 60.0, 20.0, {"level": 0.7})]
        a = run_scenario(scenario, duration=240.0)
        b = run_scenario(scenario, duration=240.0)
        for key in a.series:
            np.testing.assert_array_equal(a.series[key], b.series[key])
        assert a.homeostasis == b.homeostasis

    def test_non_integer_step(self, run_scenario):
        response = run_scenario([FOOD], duration=100.0, dt=2.5)
        assert response.times.size == 41
        assert all(np.all(np.isfinite(v)) for v in response.series.values())

    def test_invalid_step_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.step(0.0)
        with pytest.raises(ValueError):
            engine.step(-1.0)

    def test_terminal_snapshot_resumes_run(self, run_scenario):
        """The terminal homeostasis snapshot seeds the next run."""
        first = run_scenario([("stress", 0.0, 60.0, {"level": 1.0})], duration=120.0)
        resumed = run_scenario([], duration=10.0, homeostasis=first.homeostasis)
        fresh = run_scenario([], duration=10.0)
        assert resumed.homeostasis["cortisol_integral"] > fresh.homeostasis["cortisol_integral"]

    def test_record_homeostasis_and_frame(self, run_scenario):
        response = run_scenario([FOOD], duration=30.0, record_homeostasis=True)
        frame = response.to_frame()
        assert frame.index.name == "minute"
        assert len(frame) == 31
        assert "glucose" in frame.columns
        assert "homeostasis.adenosine_pressure" in frame.columns
        plain = response.to_frame(include_homeostasis=False)
        assert not any(c.startswith("homeostasis.") for c in plain.columns)

    def test_cleared_schedule_matches_control(self, subject):
        control = SimulationEngine(subject).run(np.arange(0.0, 61.0))
        engine = SimulationEngine(subject)
        engine.schedule("medication", 0.0, 5.0, Medication(drug="methylphenidate", mg=20.0))
        engine.clear_interventions()
        cleared = engine.run(np.arange(0.0, 61.0))
        for key in control.series:
            np.testing.assert_array_equal(cleared.series[key], control.series[key])

    def test_empty_grid_rejected(self, subject):
        engine = SimulationEngine(subject)
        with pytest.raises(RequestValidationError, match="non-empty"):
            engine.run([])
        with pytest.raises(RequestValidationError):
            engine.run(np.empty(0))

    def test_cancel_event_stops_run(self, subject):
        engine = SimulationEngine(subject)
        event = threading.Event()
        event.set()
        with pytest.raises(SimulationCancelled):
            engine.run(np.arange(0.0, 10.0), cancel_event=event)

    def test_recorder_writes_csv(self, subject, tmp_path):
        engine = SimulationEngine(subject)
        engine.start_recording(output_dir=str(tmp_path), sample_interval_min=5.0)
        engine.run(np.arange(0.0, 31.0))
        engine.stop_recording()
        lines = (tmp_path / engine.recorder.filename).read_text().strip().splitlines()
        assert lines[0].startswith("minute,glucose")
        assert len(lines) == 1 + 7


class TestNaNPolicy:

    @staticmethod
    def _catalog():
        return {
            Signal.GLUCOSE: SignalDefinition(key=Signal.GLUCOSE, unit="mg/dL",
                                             setpoint=lambda ctx: float("nan"), tau=5.0,
                                             min_value=40.0, max_value=400.0),
        }

    def test_zero_policy_keeps_run_finite(self, subject):
        engine = SimulationEngine(subject, SimulationConfig(enable_homeostasis=False), catalog=self._catalog())
        response = engine.run(np.arange(0.0, 5.0))
        assert np.all(np.isfinite(response.series["glucose"]))
        assert math.isclose(response.series["glucose"][-1], 40.0)

    def test_raise_policy(self, subject):
        with pytest.raises(FloatingPointError):
            SimulationEngine(subject, SimulationConfig(nan_policy="raise"), catalog=self._catalog())
