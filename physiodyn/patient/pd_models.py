from physiodyn.core.constants import DENOM_FLOOR, VD_MIN_L
from physiodyn.core.utils import hill_function

# =============================================================================
# RECEPTOR PHARMACOLOGY - LITERATURE REFERENCES
# =============================================================================
#
#   - Occupancy: Clark (law of mass action), rho = L / (L + Kd)
#   - Operational model: Black & Leff. Proc R Soc Lond B. 1983
#       E = Emax * tau * L / ((tau + 1) * L + Kd)
#       high tau -> full agonist, low tau -> partial agonist / spare reserve
#   - Competitive antagonism: Gaddum/Schild, Kd' = Kd * (1 + A / Ki)
#   - Non-competitive antagonism: Emax' = Emax / (1 + A / Ki)
#   - Allosteric modulation: Ehlert. Mol Pharmacol. 1988 (cooperativity alpha)
#
# Units:
#   - Concentrations and binding constants: nM
#   - Effects: arbitrary units scaled by Emax
# =============================================================================


def occupancy(concentration: float, kd: float) -> float:
    """Fractional receptor occupancy (0..1). Negative concentrations count as 0."""
    ligand = max(0.0, concentration)
    return ligand / (ligand + max(DENOM_FLOOR, kd))


def operational_agonism(concentration: float, kd: float, tau: float, emax: float = 1.0) -> float:
    """Operational model response for an agonist of efficacy tau."""
    ligand = max(0.0, concentration)
    kd = max(DENOM_FLOOR, kd)
    tau = max(0.0, tau)
    return emax * tau * ligand / max(DENOM_FLOOR, (tau + 1.0) * ligand + kd)


def competitive_antagonism(agonist_conc: float, agonist_kd: float,
                           antagonist_conc: float, antagonist_ki: float) -> float:
    """Agonist occupancy with its Kd shifted right by a competitive antagonist."""
    apparent_kd = agonist_kd * (1.0 + max(0.0, antagonist_conc) / max(DENOM_FLOOR, antagonist_ki))
    return occupancy(agonist_conc, apparent_kd)


def noncompetitive_antagonism(antagonist_conc: float, ki: float, emax: float = 1.0) -> float:
    """Reduced Emax in the presence of a non-competitive antagonist."""
    return emax / (1.0 + max(0.0, antagonist_conc) / max(DENOM_FLOOR, ki))


def allosteric_modulation(agonist_conc: float, agonist_kd: float, modulator_conc: float,
                          modulator_kd: float, alpha: float = 3.0, beta: float = 1.0) -> dict:
    """
    Effect of an allosteric modulator on agonist binding and efficacy.

    alpha > 1 raises affinity (PAM), alpha < 1 lowers it (NAM). beta scales
    efficacy the same way. Both act in proportion to modulator occupancy.

    Returns dict with modulator_occupancy, apparent_kd, occupancy,
    efficacy_scale.
    """
    mod_occ = occupancy(modulator_conc, modulator_kd)
    affinity_scale = max(DENOM_FLOOR, 1.0 + (alpha - 1.0) * mod_occ)
    apparent_kd = agonist_kd / affinity_scale
    return {
        "modulator_occupancy": mod_occ,
        "apparent_kd": apparent_kd,
        "occupancy": occupancy(agonist_conc, apparent_kd),
        "efficacy_scale": max(0.0, 1.0 + (beta - 1.0) * mod_occ),
    }


def positive_allosteric_modulation(agonist_conc: float, agonist_kd: float, pam_conc: float,
                                   pam_kd: float, alpha: float = 3.0) -> float:
    """Agonist occupancy with affinity raised by a PAM."""
    return allosteric_modulation(agonist_conc, agonist_kd, pam_conc, pam_kd, alpha)["occupancy"]


def negative_allosteric_modulation(agonist_conc: float, agonist_kd: float, nam_conc: float,
                                   nam_kd: float, alpha: float = 0.3) -> float:
    """Agonist occupancy with affinity lowered by a NAM."""
    return allosteric_modulation(agonist_conc, agonist_kd, nam_conc, nam_kd, alpha)["occupancy"]


def hill(x: float, x50: float, n: float = 1.4) -> float:
    """Saturating dose-response, 0..1."""
    return hill_function(x, x50, n)


def dose_to_concentration(dose_mg: float, molar_mass: float, vd_l: float,
                          bioavailability: float = 1.0, pk_curve: float = 1.0) -> float:
    """
    Plasma concentration (nM) for a dose spread over Vd, scaled by a PK curve value.

    nmol = mg * 1e6 / MW; C = nmol / Vd * F * curve.
    """
    nmol = dose_mg * 1e6 / max(DENOM_FLOOR, molar_mass)
    conc = nmol / max(VD_MIN_L, vd_l) * bioavailability * pk_curve
    return max(0.0, conc)
