"""
Pharmacology definitions: molecule, PK spec and PD targets per agent.

Targets are resolved against enum-indexed tables built at import, so an
unknown receptor or enzyme name fails when the definition is constructed,
not halfway through a run.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from physiodyn.core.enums import (
    AdaptationMechanism,
    Driver,
    Enzyme,
    PDMechanism,
    PKModelKind,
    Receptor,
    VolumeKind,
)
from physiodyn.signals.definitions import Signal

# =============================================================================
# AGENT PARAMETERS - LITERATURE REFERENCES
# =============================================================================
#
# CAFFEINE:
#   - Fredholm et al. Pharmacol Rev. 1999 (adenosine antagonism, A2A Ki ~2.4 uM)
#   - Blanchard & Sawers. Eur J Clin Pharmacol. 1983 (t1/2 ~5 h, F ~0.99)
#
# METHYLPHENIDATE:
#   - Volkow et al. Am J Psychiatry. 1998 (DAT occupancy, Ki ~34 nM)
#   - Kimko et al. Clin Pharmacokinet. 1999 (F ~0.3, t1/2 ~3 h)
#
# MELATONIN:
#   - DeMuro et al. Am J Ther. 2000 (F ~0.15, t1/2 ~45 min)
#
# L-THEANINE:
#   - Scheid et al. Eur J Clin Nutr. 2012 (t1/2 ~65-75 min)
#   - Nathan et al. J Herb Pharmacother. 2006 (GABA/glutamate effects)
#
# MAGNESIUM:
#   - Mayer et al. Nature. 1984 (voltage-dependent NMDA block)
#
# L-TYROSINE:
#   - Glaeser et al. J Neural Transm. 1979 (plasma rise after oral load, t1/2 ~2.5 h)
#   - Jongkees et al. J Psychiatr Res. 2015 (catecholamine precursor effects)
#
# MUCUNA PRURIENS (L-DOPA):
#   - Katzenschlager et al. J Neurol Neurosurg Psychiatry. 2004 (L-DOPA content, PK)
#   - Nutt & Fellman. Clin Neuropharmacol. 1984 (F ~0.3-0.5 without decarboxylase inhibitor)
#
# PYRIDOXAL-5-PHOSPHATE:
#   - Cofactor of aromatic L-amino acid decarboxylase (DOPA and 5-HTP decarboxylation)
#
# Units:
#   - molar mass g/mol, half-life min, clearance mL/min (reference adult)
#   - affinity (Ki / EC50 / Kd) nM
#   - PD gain: target-signal units at full response
# =============================================================================


# Receptor -> (signal whose level the receptor's activation raises or lowers, sign).
RECEPTOR_SIGNALS: Dict[Receptor, Tuple[Signal, float]] = {
    Receptor.D1: (Signal.DOPAMINE, 1.0),
    Receptor.D2: (Signal.DOPAMINE, 1.0),
    Receptor.HT2A: (Signal.SEROTONIN, 1.0),
    Receptor.GABAA: (Signal.GABA, 1.0),
    Receptor.A2A: (Signal.DOPAMINE, -1.0),
    Receptor.MU_OPIOID: (Signal.DOPAMINE, 1.0),
    Receptor.BETA_ADRENERGIC: (Signal.NOREPI, 1.0),
    Receptor.NMDA: (Signal.GLUTAMATE, 1.0),
}

# Enzyme/transporter -> substrate signal. Activity clears the substrate, so sign is -1.
ENZYME_SIGNALS: Dict[Enzyme, Tuple[Signal, float]] = {
    Enzyme.DAT: (Signal.DOPAMINE, -1.0),
    Enzyme.NET: (Signal.NOREPI, -1.0),
    Enzyme.SERT: (Signal.SEROTONIN, -1.0),
    Enzyme.MAO_A: (Signal.SEROTONIN, -1.0),
    Enzyme.MAO_B: (Signal.DOPAMINE, -1.0),
    Enzyme.GAT1: (Signal.GABA, -1.0),
    Enzyme.GLT1: (Signal.GLUTAMATE, -1.0),
    Enzyme.ACHE: (Signal.ACETYLCHOLINE, -1.0),
    Enzyme.DAO: (Signal.HISTAMINE, -1.0),
    Enzyme.ADH: (Signal.ETHANOL, -1.0),
}

for _table, _enum in ((RECEPTOR_SIGNALS, Receptor), (ENZYME_SIGNALS, Enzyme)):
    _missing = set(_enum) - set(_table)
    if _missing:
        raise RuntimeError(f"{_enum.__name__} members without a signal mapping: {sorted(m.name for m in _missing)}")

ADAPTATION_FOR_MECHANISM: Dict[PDMechanism, Optional[AdaptationMechanism]] = {
    PDMechanism.AGONIST: AdaptationMechanism.FULL_AGONIST,
    PDMechanism.PARTIAL_AGONIST: AdaptationMechanism.PARTIAL_AGONIST,
    PDMechanism.ANTAGONIST: AdaptationMechanism.ANTAGONIST,
    PDMechanism.INVERSE_AGONIST: AdaptationMechanism.INVERSE_AGONIST,
    PDMechanism.PAM: AdaptationMechanism.PAM,
    PDMechanism.NAM: AdaptationMechanism.NAM,
    PDMechanism.LINEAR: None,
}

Target = Union[Receptor, Enzyme, Signal]


def resolve_target(name) -> Target:
    """Receptor, then enzyme, then signal. Raises KeyError if none match."""
    if isinstance(name, (Receptor, Enzyme, Signal)):
        return name
    for parser in (Receptor.parse, Enzyme.parse, Signal.parse):
        try:
            return parser(name)
        except KeyError:
            continue
    raise KeyError(f"Unknown pharmacology target: {name!r}")


def target_signal(target: Target) -> Tuple[Signal, float]:
    """(signal, sign) a response at `target` is written to."""
    if isinstance(target, Receptor):
        return RECEPTOR_SIGNALS[target]
    if isinstance(target, Enzyme):
        return ENZYME_SIGNALS[target]
    return target, 1.0


@dataclass(frozen=True)
class Molecule:
    name: str
    molar_mass: float  # g/mol

    def __post_init__(self):
        if not (self.molar_mass > 0.0):
            raise ValueError(f"{self.name}: molar mass must be positive")


@dataclass(frozen=True)
class PKSpec:
    """
    Pharmacokinetic parameters at the reference adult.

    Elimination comes from clearance / Vd when a clearance is given,
    otherwise from ln 2 / half_life. ka defaults to 4x ke.
    """
    model: PKModelKind = PKModelKind.ONE_COMPARTMENT
    bioavailability: float = 1.0
    half_life: float = 120.0           # min
    ka: Optional[float] = None         # 1/min
    tlag: float = 0.0                  # min
    hepatic_clearance: float = 0.0     # mL/min
    renal_clearance: float = 0.0       # mL/min
    volume: VolumeKind = VolumeKind.WEIGHT
    volume_base: float = 1.0           # L/kg or compartment fraction
    k12: float = 0.0
    k21: float = 0.0
    vmax: float = 0.0
    km: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "model", PKModelKind(self.model))
        object.__setattr__(self, "volume", VolumeKind(self.volume))
        if not 0.0 < self.bioavailability <= 1.0:
            raise ValueError(f"bioavailability must be in (0, 1], got {self.bioavailability}")
        if not (self.half_life > 0.0):
            raise ValueError(f"half_life must be positive, got {self.half_life}")
        if self.hepatic_clearance < 0.0 or self.renal_clearance < 0.0:
            raise ValueError("clearances must be non-negative")

    @property
    def has_clearance(self) -> bool:
        return self.hepatic_clearance + self.renal_clearance > 0.0

    @property
    def ke_from_half_life(self) -> float:
        return math.log(2.0) / self.half_life


@dataclass(frozen=True)
class PDTarget:
    """
    One pharmacodynamic action.

    `affinity` is Ki (antagonists), EC50 (agonists/modulators) or Kd, in nM.
    Without an affinity the response is linear in the normalised PK curve.
    """
    target: Target
    mechanism: PDMechanism
    gain: float
    affinity: Optional[float] = None
    efficacy_tau: float = 10.0
    alpha: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "target", resolve_target(self.target))
        object.__setattr__(self, "mechanism", PDMechanism(self.mechanism))
        if self.affinity is not None and not (self.affinity > 0.0):
            raise ValueError(f"affinity must be positive, got {self.affinity}")

    @property
    def signal(self) -> Signal:
        return target_signal(self.target)[0]

    @property
    def sign(self) -> float:
        return target_signal(self.target)[1]


@dataclass(frozen=True)
class DriverTerm:
    """Homeostasis driver fed by the normalised PK curve, `gain` at the reference dose."""
    driver: Driver
    gain: float


@dataclass(frozen=True)
class PharmacologyDef:
    molecule: Molecule
    pk: PKSpec
    targets: Tuple[PDTarget, ...] = ()
    drivers: Tuple[DriverTerm, ...] = ()
    reference_dose: float = 100.0      # mg

    @property
    def name(self) -> str:
        return self.molecule.name

    def target_for(self, target) -> PDTarget:
        wanted = resolve_target(target)
        for pd in self.targets:
            if pd.target is wanted:
                return pd
        raise KeyError(f"{self.name} has no PD target {wanted}")


CAFFEINE = PharmacologyDef(
    molecule=Molecule("Caffeine", 194.19),
    pk=PKSpec(
        bioavailability=0.99, half_life=300.0, ka=0.05,
        hepatic_clearance=60.0, volume=VolumeKind.TBW, volume_base=0.6,
    ),
    targets=(
        PDTarget(Receptor.A2A, PDMechanism.ANTAGONIST, gain=1.5, affinity=2400.0),
        PDTarget(Signal.CORTISOL, PDMechanism.AGONIST, gain=1.0, affinity=25000.0),
        PDTarget(Signal.ADRENALINE, PDMechanism.AGONIST, gain=15.0, affinity=30000.0),
        PDTarget(Signal.NOREPI, PDMechanism.AGONIST, gain=60.0, affinity=30000.0),
    ),
    drivers=(DriverTerm(Driver.CAFFEINE_LEVEL, 100.0),),
    reference_dose=100.0,
)

METHYLPHENIDATE = PharmacologyDef(
    molecule=Molecule("Methylphenidate", 233.31),
    pk=PKSpec(
        bioavailability=0.3, half_life=180.0, ka=0.025,
        hepatic_clearance=430.0, volume=VolumeKind.LBM, volume_base=2.0,
    ),
    targets=(
        PDTarget(Enzyme.DAT, PDMechanism.ANTAGONIST, gain=6.0, affinity=34.0),
        PDTarget(Enzyme.NET, PDMechanism.ANTAGONIST, gain=125.0, affinity=300.0),
        PDTarget(Enzyme.SERT, PDMechanism.ANTAGONIST, gain=0.5, affinity=2000.0),
    ),
    drivers=(DriverTerm(Driver.STIMULANT_EFFECT, 0.6),),
    reference_dose=10.0,
)

MELATONIN = PharmacologyDef(
    molecule=Molecule("Melatonin", 232.28),
    pk=PKSpec(
        bioavailability=0.15, half_life=45.0, ka=0.05,
        hepatic_clearance=1080.0, volume=VolumeKind.WEIGHT, volume_base=1.0,
    ),
    targets=(
        PDTarget(Signal.MELATONIN, PDMechanism.AGONIST, gain=25.0, affinity=0.1),
        PDTarget(Signal.OREXIN, PDMechanism.ANTAGONIST, gain=10.0, affinity=50.0),
        PDTarget(Receptor.GABAA, PDMechanism.PAM, gain=8.0, affinity=200.0),
    ),
    reference_dose=3.0,
)

L_THEANINE = PharmacologyDef(
    molecule=Molecule("L-Theanine", 174.2),
    pk=PKSpec(
        bioavailability=0.95, half_life=75.0, ka=0.04,
        hepatic_clearance=74.0, renal_clearance=120.0,
        volume=VolumeKind.TBW, volume_base=0.5,
    ),
    targets=(
        PDTarget(Receptor.GABAA, PDMechanism.PAM, gain=72.0, affinity=20000.0, alpha=1.5),
        PDTarget(Receptor.NMDA, PDMechanism.ANTAGONIST, gain=0.4, affinity=50000.0),
        PDTarget(Signal.SEROTONIN, PDMechanism.AGONIST, gain=0.8, affinity=30000.0),
        PDTarget(Signal.DOPAMINE, PDMechanism.AGONIST, gain=1.0, affinity=35000.0),
        PDTarget(Signal.CORTISOL, PDMechanism.ANTAGONIST, gain=1.0, affinity=25000.0),
    ),
    drivers=(DriverTerm(Driver.GABA_BOOST, 0.3),),
    reference_dose=200.0,
)

MAGNESIUM = PharmacologyDef(
    molecule=Molecule("Magnesium", 24.305),
    pk=PKSpec(bioavailability=0.3, half_life=720.0, volume=VolumeKind.WEIGHT, volume_base=0.5),
    targets=(
        PDTarget(Receptor.NMDA, PDMechanism.ANTAGONIST, gain=0.5, affinity=1.0e6),
        PDTarget(Receptor.GABAA, PDMechanism.PAM, gain=20.0, affinity=5.0e5, alpha=1.5),
    ),
    drivers=(DriverTerm(Driver.GLUTAMATE_BLOCK, 0.2),),
    reference_dose=400.0,
)

L_TYROSINE = PharmacologyDef(
    molecule=Molecule("L-Tyrosine", 181.19),
    pk=PKSpec(bioavailability=0.8, half_life=150.0, volume=VolumeKind.TBW, volume_base=0.6),
    targets=(
        PDTarget(Signal.DOPAMINE, PDMechanism.AGONIST, gain=1.6, affinity=50000.0),
        PDTarget(Signal.NOREPI, PDMechanism.AGONIST, gain=37.5, affinity=50000.0),
    ),
    drivers=(DriverTerm(Driver.PRECURSOR, 0.4),),
    reference_dose=500.0,
)

# Decarboxylated to dopamine directly, bypassing tyrosine hydroxylase.
MUCUNA = PharmacologyDef(
    molecule=Molecule("L-Dopa", 197.19),
    pk=PKSpec(bioavailability=0.4, half_life=120.0, volume=VolumeKind.TBW, volume_base=0.6),
    targets=(
        PDTarget(Signal.DOPAMINE, PDMechanism.AGONIST, gain=3.6, affinity=5000.0),
    ),
    drivers=(DriverTerm(Driver.PRECURSOR, 0.5),),
    reference_dose=200.0,
)

P5P = PharmacologyDef(
    molecule=Molecule("Pyridoxal-5-Phosphate", 247.14),
    pk=PKSpec(bioavailability=0.7, half_life=300.0, volume=VolumeKind.TBW, volume_base=0.6),
    targets=(
        PDTarget(Signal.DOPAMINE, PDMechanism.LINEAR, gain=1.2),
        PDTarget(Signal.SEROTONIN, PDMechanism.LINEAR, gain=0.6),
    ),
    drivers=(DriverTerm(Driver.PRECURSOR, 0.1), DriverTerm(Driver.TRYPTOPHAN, 0.1)),
    reference_dose=25.0,
)

REGISTRY: Dict[str, PharmacologyDef] = {
    "caffeine": CAFFEINE,
    "methylphenidate": METHYLPHENIDATE,
    "melatonin": MELATONIN,
    "l_theanine": L_THEANINE,
    "magnesium": MAGNESIUM,
    "l_tyrosine": L_TYROSINE,
    "mucuna": MUCUNA,
    "p5p": P5P,
}

# Registry entries sold over the counter, dosed through the supplement intervention.
SUPPLEMENTS = ("l_theanine", "magnesium", "l_tyrosine", "mucuna", "p5p")


def normalize_drug_name(name) -> str:
    return str(name).strip().lower().replace("-", "_").replace(" ", "_")


def get_pharmacology(name: str) -> PharmacologyDef:
    try:
        return REGISTRY[normalize_drug_name(name)]
    except KeyError:
        raise KeyError(f"Unknown drug {name!r}; known: {sorted(REGISTRY)}") from None
