import math

import pytest

from physiodyn.core.enums import Driver, Enzyme, PDMechanism, PKModelKind, Receptor
from physiodyn.interventions.kernels import (
    EnvelopeKernel,
    PKCurve,
    PharmacologyKernel,
    enzyme_activities,
    evaluate_kernel,
    generate_pk_kernel,
    pd_response,
    pharmacology_kernels,
    pk_curve_for,
    receptor_occupancies,
)
from physiodyn.interventions.pharmacology import (
    CAFFEINE,
    L_TYROSINE,
    METHYLPHENIDATE,
    P5P,
    REGISTRY,
    PDTarget,
    get_pharmacology,
    resolve_target,
    target_signal,
)
from physiodyn.patient.subject import Subject, derive_physiology
from physiodyn.signals.definitions import Signal

CURVE = PKCurve(model=PKModelKind.ONE_COMPARTMENT, ka=0.05, ke=0.005)


def _kernel(mechanism, sign=1.0, affinity=1000.0, gain=2.0, target=None, alpha=None):
    return PharmacologyKernel(
        drug="test", pk=CURVE, dose=100.0, reference_dose=100.0, molar_mass=200.0, vd=50.0,
        bioavailability=1.0, mechanism=mechanism, gain=gain, sign=sign, target=target,
        affinity=affinity, alpha=alpha,
    )


class TestPDResponse:
    """Signed response per mechanism; agonism never negative, antagonism never positive."""

    def test_mechanism_signs(self):
        conc = 5000.0
        assert pd_response(PDMechanism.AGONIST, conc, 1000.0) > 0.0
        assert pd_response(PDMechanism.PARTIAL_AGONIST, conc, 1000.0, efficacy_tau=0.5) > 0.0
        assert pd_response(PDMechanism.ANTAGONIST, conc, 1000.0) < 0.0
        assert pd_response(PDMechanism.PAM, conc, 1000.0) > 0.0
        assert pd_response(PDMechanism.NAM, conc, 1000.0) < 0.0

    def test_inverse_agonist_exceeds_antagonist(self):
        antagonist = pd_response(PDMechanism.ANTAGONIST, 1000.0, 1000.0)
        inverse = pd_response(PDMechanism.INVERSE_AGONIST, 1000.0, 1000.0)
        assert inverse == pytest.approx(1.5 * antagonist)

    def test_partial_agonist_below_full(self):
        full = pd_response(PDMechanism.AGONIST, 1e5, 100.0, efficacy_tau=10.0)
        partial = pd_response(PDMechanism.PARTIAL_AGONIST, 1e5, 100.0, efficacy_tau=0.5)
        assert partial < full

    def test_allosteric_alpha(self):
        """PAM scales with (alpha - 1), NAM with (1 - alpha)."""
        assert pd_response(PDMechanism.PAM, 1000.0, 1000.0, alpha=2.0) == pytest.approx(0.5)
        assert pd_response(PDMechanism.NAM, 1000.0, 1000.0, alpha=0.5) == pytest.approx(-0.25)

    def test_linear_has_no_concentration_response(self):
        with pytest.raises(ValueError):
            pd_response(PDMechanism.LINEAR, 1.0, 1.0)


class TestEvaluateKernel:

    def test_zero_before_start(self):
        assert evaluate_kernel(_kernel(PDMechanism.AGONIST), -1.0) == 0.0
        assert evaluate_kernel(EnvelopeKernel(amplitude=5.0, duration=30.0), -0.5) == 0.0

    def test_sign_flips_contribution(self):
        up = evaluate_kernel(_kernel(PDMechanism.ANTAGONIST, sign=-1.0), 60.0)
        down = evaluate_kernel(_kernel(PDMechanism.ANTAGONIST, sign=1.0), 60.0)
        assert up > 0.0 > down
        assert up == pytest.approx(-down)

    def test_gain_bounds_response(self):
        """Gain is the contribution at full response."""
        value = evaluate_kernel(_kernel(PDMechanism.ANTAGONIST, affinity=1e-3, gain=3.0), 100.0)
        assert -3.0 <= value < -2.99

    def test_linear_scales_with_dose_over_reference(self):
        kernel = _kernel(PDMechanism.LINEAR, affinity=None, gain=1.0)
        t_max = math.log(CURVE.ka / CURVE.ke) / (CURVE.ka - CURVE.ke)
        assert evaluate_kernel(kernel, t_max) == pytest.approx(1.0)

    def test_unknown_kernel_type(self):
        with pytest.raises(TypeError):
            evaluate_kernel(object(), 1.0)

    def test_envelope_plateau_and_tail(self):
        plain = EnvelopeKernel(amplitude=10.0, duration=60.0, ramp=5.0)
        tailed = EnvelopeKernel(amplitude=10.0, duration=60.0, ramp=5.0, offset_tau=20.0)
        assert evaluate_kernel(plain, 59.0) == pytest.approx(10.0, rel=1e-4)
        assert evaluate_kernel(plain, 61.0) == 0.0
        assert plain.has_tail is False
        assert tailed.has_tail is True
        at_end = evaluate_kernel(tailed, 60.0)
        assert evaluate_kernel(tailed, 80.0) == pytest.approx(at_end * math.exp(-1.0), rel=1e-6)

    def test_activity_curve(self):
        curve = PKCurve(model=PKModelKind.ACTIVITY, ka=0.0, ke=0.0, tlag=5.0)
        assert curve.value(4.0) == 0.0
        assert curve.value(5.0) == 1.0


class TestTargets:

    def test_resolve_target_order(self):
        assert resolve_target("D2") is Receptor.D2
        assert resolve_target("DAT") is Enzyme.DAT
        assert resolve_target("cortisol") is Signal.CORTISOL

    def test_unknown_target_raises(self):
        with pytest.raises(KeyError):
            resolve_target("flux_capacitor")
        with pytest.raises(KeyError):
            PDTarget("flux_capacitor", PDMechanism.AGONIST, 1.0)

    def test_target_signal_tables(self):
        assert target_signal(Receptor.A2A) == (Signal.DOPAMINE, -1.0)
        assert target_signal(Enzyme.SERT) == (Signal.SEROTONIN, -1.0)
        assert target_signal(Signal.MELATONIN) == (Signal.MELATONIN, 1.0)

    def test_registry_lookup(self):
        assert get_pharmacology("L-Theanine") is REGISTRY["l_theanine"]
        with pytest.raises(KeyError):
            get_pharmacology("unobtainium")


class TestKernelGeneration:

    def test_ke_follows_clearance_and_volume(self, subject, physiology):
        curve, vd = pk_curve_for(CAFFEINE, subject, physiology)
        half_life = math.log(2.0) / curve.ke
        assert 200.0 < half_life < 420.0, f"Caffeine half-life {half_life:.0f} min out of range"
        assert vd == pytest.approx(0.6 * physiology.tbw)
        assert curve.ka == CAFFEINE.pk.ka

    def test_kernel_regenerates_with_physiology(self):
        """Kernels depend on the subject: a heavier subject has a larger Vd and lower peak."""
        light, heavy = Subject(weight=55.0), Subject(weight=110.0)
        k_light = generate_pk_kernel(CAFFEINE, "A2A", light, derive_physiology(light))
        k_heavy = generate_pk_kernel(CAFFEINE, "A2A", heavy, derive_physiology(heavy))
        assert k_heavy.vd > k_light.vd
        assert k_heavy.concentration(60.0) < k_light.concentration(60.0)

    def test_generate_defaults_to_first_target_and_reference_dose(self, subject):
        kernel = generate_pk_kernel(METHYLPHENIDATE, subject=subject)
        assert kernel.target is Enzyme.DAT
        assert kernel.dose == METHYLPHENIDATE.reference_dose
        with pytest.raises(KeyError):
            generate_pk_kernel(METHYLPHENIDATE, "GABA_A", subject)

    def test_pharmacology_bindings(self, subject, physiology):
        signals, drivers = pharmacology_kernels(CAFFEINE, 200.0, subject, physiology)
        assert [s for s, _ in signals] == [pd.signal for pd in CAFFEINE.targets]
        assert [d for d, _ in drivers] == [Driver.CAFFEINE_LEVEL]
        driver_kernel = drivers[0][1]
        assert driver_kernel.mechanism is PDMechanism.LINEAR
        assert all(k.dose == 200.0 for _, k in signals)

    def test_precursor_supplements_feed_the_precursor_driver(self, subject, physiology):
        _, drivers = pharmacology_kernels(L_TYROSINE, 500.0, subject, physiology)
        assert [d for d, _ in drivers] == [Driver.PRECURSOR]
        lift = evaluate_kernel(drivers[0][1], 120.0)
        assert 0.0 < lift <= 0.4 + 1e-9, "Reference dose adds at most 0.4 to precursor availability"
        double = evaluate_kernel(pharmacology_kernels(L_TYROSINE, 1000.0, subject, physiology)[1][0][1], 120.0)
        assert double == pytest.approx(2.0 * lift)

        _, cofactor = pharmacology_kernels(P5P, 25.0, subject, physiology)
        assert {d for d, _ in cofactor} == {Driver.PRECURSOR, Driver.TRYPTOPHAN}
        assert get_pharmacology("Mucuna").drivers[0].driver is Driver.PRECURSOR

    def test_caffeine_raises_dopamine_through_a2a(self, subject, physiology):
        signals, _ = pharmacology_kernels(CAFFEINE, 100.0, subject, physiology)
        a2a = dict((k.target, k) for _, k in signals)[Receptor.A2A]
        assert evaluate_kernel(a2a, 60.0) > 0.0

    def test_occupancy_and_enzyme_activity(self, subject, physiology):
        signals, _ = pharmacology_kernels(METHYLPHENIDATE, 20.0, subject, physiology)
        receptors = list(receptor_occupancies(signals, 90.0))
        enzymes = dict(enzyme_activities(signals, 90.0))
        assert receptors == []
        assert set(enzymes) == {Enzyme.DAT, Enzyme.NET, Enzyme.SERT}
        assert 0.0 < enzymes[Enzyme.DAT] < 1.0
        assert enzymes[Enzyme.DAT] < enzymes[Enzyme.SERT], "DAT binds far tighter than SERT"

    def test_receptor_occupancy_for_receptor_targets(self, subject, physiology):
        signals, _ = pharmacology_kernels(CAFFEINE, 100.0, subject, physiology)
        occupancies = {r: occ for r, occ, _, _ in receptor_occupancies(signals, 60.0)}
        assert set(occupancies) == {Receptor.A2A}
        assert 0.5 < occupancies[Receptor.A2A] < 1.0
