import logging
from dataclasses import replace

import pytest

from physiodyn.core.enums import AdaptationMechanism, Receptor
from physiodyn.physiology.glucose_insulin import insulin_secretion
from physiodyn.physiology.homeostasis import (
    DEFAULT_HOMEOSTASIS_STATE,
    POOL_FIELDS,
    HomeostasisInputs,
    HomeostasisParams,
    HomeostasisState,
    coerce_receptor_drive,
    deserialize_homeostasis,
    serialize_homeostasis,
    step_homeostasis,
)
from physiodyn.physiology.receptors import (
    mechanism_from_legacy,
    step_biphasic,
    ReceptorAdaptationState,
    step_receptor_density,
)
from physiodyn.physiology.sleep import SleepInputs, step_sleep_pressure
from physiodyn.physiology.vesicles import VesicleInputs, vesicle_pool_derivative

PARAMS = HomeostasisParams()


def _run(state, inputs, minutes, dt=1.0):
    corrections = {}
    for _ in range(int(minutes / dt)):
        state, corrections = step_homeostasis(state, inputs, PARAMS, dt)
    return state, corrections


class TestSleepPressure:
    """Process S builds while awake, clears while asleep, and stays in [0, 1]."""

    def test_builds_monotonically_while_awake(self):
        s = 0.1
        trace = []
        for _ in range(16 * 60):
            s = step_sleep_pressure(s, 1.0, SleepInputs(is_asleep=False), PARAMS)
            trace.append(s)
        assert all(b >= a for a, b in zip(trace, trace[1:])), "Sleep pressure must not fall while awake"
        assert 0.1 < trace[-1] <= 1.0

    def test_clears_while_asleep(self):
        s = 0.9
        for _ in range(8 * 60):
            s = step_sleep_pressure(s, 1.0, SleepInputs(is_asleep=True), PARAMS)
        assert 0.0 <= s < 0.1, f"Pressure after 8 h of sleep should be low, got {s:.3f}"

    def test_caffeine_slows_accumulation(self):
        plain = caffeinated = 0.2
        for _ in range(240):
            plain = step_sleep_pressure(plain, 1.0, SleepInputs(), PARAMS)
            caffeinated = step_sleep_pressure(caffeinated, 1.0, SleepInputs(caffeine_level=100.0), PARAMS)
        assert caffeinated < plain


class TestReceptorAdaptation:

    @pytest.mark.parametrize("mechanism", list(AdaptationMechanism))
    @pytest.mark.parametrize("start", [0.5, 1.6])
    def test_density_recovers_without_occupancy(self, mechanism, start):
        """Once occupancy is gone, density returns toward 1.0 whatever the mechanism."""
        density = start
        for _ in range(300):
            density = step_receptor_density(density, 0.0, mechanism, Receptor.D2, 10.0)
        assert abs(density - 1.0) < abs(start - 1.0) * 0.2, (
            f"{mechanism.value}: density {density:.3f} did not recover from {start}")

    def test_agonist_downregulates_antagonist_upregulates(self):
        down = up = 1.0
        for _ in range(600):
            down = step_receptor_density(down, 0.9, AdaptationMechanism.FULL_AGONIST, Receptor.D2, 1.0)
            up = step_receptor_density(up, 0.9, AdaptationMechanism.ANTAGONIST, Receptor.D2, 1.0)
        assert down < 1.0
        assert up > 1.0

    def test_density_is_bounded(self):
        density = 1.0
        for _ in range(5000):
            density = step_receptor_density(density, 1.0, AdaptationMechanism.INVERSE_AGONIST,
                                            Receptor.MU_OPIOID, 10.0)
        assert 0.3 <= density <= 2.0

    def test_biphasic_relaxes_to_baseline(self):
        state = ReceptorAdaptationState(fast_phase=-0.2, slow_phase=-0.1, total_density=0.7)
        for _ in range(20000):
            state = step_biphasic(state, 0.0, AdaptationMechanism.FULL_AGONIST)
        assert abs(state.total_density - 1.0) < 0.01

    def test_legacy_boolean_mechanism(self):
        assert mechanism_from_legacy(True) is AdaptationMechanism.FULL_AGONIST
        assert mechanism_from_legacy(False) is AdaptationMechanism.ANTAGONIST
        assert mechanism_from_legacy("pam") is AdaptationMechanism.PAM
        with pytest.raises(ValueError):
            mechanism_from_legacy("agonistic")


class TestStepHomeostasis:

    def test_rest_is_equilibrium_for_glucose(self):
        state, corrections = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(), 120)
        assert abs(state.glucose - 90.0) < 0.5
        assert abs(corrections["glucose"]) < 0.5

    def test_glucose_impulse_raises_then_returns(self):
        """A 30 min carbohydrate infusion raises glucose and insulin, both settle afterwards."""
        state, corrections = _run(DEFAULT_HOMEOSTASIS_STATE.copy(),
                                  HomeostasisInputs(glucose_appearance=3.0), 30)
        assert state.glucose > 100.0
        assert state.insulin > 8.0
        assert corrections["glucose"] > 0.0
        assert corrections["insulin"] > 0.0

        state, corrections = _run(state, HomeostasisInputs(), 300)
        assert abs(state.glucose - 90.0) < 9.0, f"Glucose {state.glucose:.1f} did not return to baseline"

    def test_input_state_is_not_modified(self):
        before = DEFAULT_HOMEOSTASIS_STATE.copy()
        before.receptor_states[Receptor.D2] = 0.8
        snapshot = serialize_homeostasis(before)
        step_homeostasis(before, HomeostasisInputs(stimulant_effect=1.0, stress_level=1.0), PARAMS, 5.0)
        assert serialize_homeostasis(before) == snapshot

    def test_stimulant_depletes_dopamine_vesicles(self):
        state, corrections = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(stimulant_effect=1.0), 240)
        assert state.dopamine_vesicles < DEFAULT_HOMEOSTASIS_STATE.dopamine_vesicles
        assert state.receptor_states[Receptor.D2] < 1.0

    def test_precursor_speeds_vesicle_refill(self):
        depleted = 0.5
        rest = vesicle_pool_derivative(depleted, VesicleInputs(precursor_availability=0.8))
        loaded = vesicle_pool_derivative(depleted, VesicleInputs(precursor_availability=1.2))
        assert loaded > rest > 0.0

    def test_precursor_availability_raises_catecholamine_pools(self):
        """Tyrosine-level precursor lifts DA and NE vesicle fill and offsets stimulant depletion."""
        plain, _ = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(), 240)
        loaded, _ = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(precursor_availability=1.2), 240)
        assert loaded.dopamine_vesicles > plain.dopamine_vesicles + 0.03
        assert loaded.norepinephrine_vesicles > plain.norepinephrine_vesicles
        assert loaded.serotonin_precursor == pytest.approx(plain.serotonin_precursor)

        _, stimulated = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(stimulant_effect=1.0), 240)
        _, supported = _run(DEFAULT_HOMEOSTASIS_STATE.copy(),
                            HomeostasisInputs(stimulant_effect=1.0, precursor_availability=1.2), 240)
        assert supported["dopamine"] > stimulated["dopamine"]

    def test_precursor_availability_is_capped(self):
        capped, _ = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(precursor_availability=1.5), 60)
        flooded, _ = _run(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(precursor_availability=9.0), 60)
        assert flooded.dopamine_vesicles == capped.dopamine_vesicles

    def test_non_integer_dt(self):
        state, corrections = step_homeostasis(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(), PARAMS, 2.5)
        assert all(abs(v) < 1e6 for v in corrections.values())
        assert state.glucose == pytest.approx(90.0, abs=0.5)

    def test_corrections_name_catalog_signals(self):
        from physiodyn.signals.definitions import Signal
        _, corrections = step_homeostasis(DEFAULT_HOMEOSTASIS_STATE.copy(), HomeostasisInputs(), PARAMS, 1.0)
        for key in corrections:
            Signal.parse(key)


class TestInsulinSecretion:
    """Pancreatic secretion below and above basal glucose."""

    def test_secretion_is_never_negative(self):
        for g in range(40, 401, 5):
            assert insulin_secretion(float(g), PARAMS) >= 0.0, f"Negative secretion at G={g}"

    def test_secretion_landmarks(self):
        assert insulin_secretion(90.0, PARAMS) == pytest.approx(0.8), "Basal secretion balances clearance n*Ib"
        assert insulin_secretion(78.0, PARAMS) == pytest.approx(0.56)
        assert insulin_secretion(100.0, PARAMS) == pytest.approx(2.8)
        assert insulin_secretion(40.0, PARAMS) == 0.0

    def test_mild_hypoglycaemia_keeps_insulin_positive_and_recovers(self):
        """Starting at 78 mg/dL, insulin dips but stays positive, then both pools return to basal."""
        start = replace(DEFAULT_HOMEOSTASIS_STATE.copy(), glucose=78.0)
        state, _ = _run(start, HomeostasisInputs(), 10)
        assert state.insulin > 0.0, f"Insulin collapsed to {state.insulin:.2f}"
        assert state.insulin < DEFAULT_HOMEOSTASIS_STATE.insulin

        state, _ = _run(state, HomeostasisInputs(), 290)
        assert abs(state.glucose - 90.0) < 1.0, f"Glucose {state.glucose:.1f} did not recover"
        assert abs(state.insulin - 8.0) < 1.0, f"Insulin {state.insulin:.2f} did not relax back to basal"


class TestPersistence:

    def test_round_trip(self):
        state = HomeostasisState(glucose=123.0, adenosine_pressure=0.55,
                                 receptor_states={Receptor.D2: 0.8, Receptor.GABAA: 1.2})
        restored = deserialize_homeostasis(serialize_homeostasis(state))
        assert restored == state

    def test_snapshot_is_json_safe(self):
        import json
        snapshot = serialize_homeostasis(HomeostasisState(receptor_states={Receptor.HT2A: 0.9}))
        assert json.loads(json.dumps(snapshot)) == snapshot
        assert set(POOL_FIELDS) <= set(snapshot)

    def test_missing_fields_take_defaults(self):
        restored = deserialize_homeostasis({"glucose": 101.0})
        assert restored.glucose == 101.0
        assert restored.insulin == DEFAULT_HOMEOSTASIS_STATE.insulin
        assert restored.receptor_states == {}

    def test_empty_snapshot(self):
        assert deserialize_homeostasis(None) == DEFAULT_HOMEOSTASIS_STATE
        assert deserialize_homeostasis({}) == DEFAULT_HOMEOSTASIS_STATE

    def test_cortisol_reference_defaults_to_stored_pool(self):
        """No correction jump right after a restore."""
        restored = deserialize_homeostasis({"cortisol": 18.0, "crh": 1.4})
        assert restored.cortisol_reference == 18.0
        assert restored.crh_reference == 1.4

    def test_legacy_keys_and_unknown_receptors(self, caplog):
        snapshot = {
            "glucosePool": 110.0,
            "adenosinePressure": 0.4,
            "receptorStates": {"D2": 0.9, "5-HT2A": 1.1, "bogus": 1.0},
        }
        with caplog.at_level(logging.WARNING):
            restored = deserialize_homeostasis(snapshot)
        assert restored.glucose == 110.0
        assert restored.adenosine_pressure == 0.4
        assert restored.receptor_states == {Receptor.D2: 0.9, Receptor.HT2A: 1.1}
        assert "bogus" in caplog.text

    def test_coerce_receptor_drive(self):
        drive = coerce_receptor_drive({"D2": (0.5, True), "NMDA": (0.2, "antagonist", 5.0)})
        assert drive[Receptor.D2] == (0.5, AdaptationMechanism.FULL_AGONIST, None)
        assert drive[Receptor.NMDA] == (0.2, AdaptationMechanism.ANTAGONIST, 5.0)
