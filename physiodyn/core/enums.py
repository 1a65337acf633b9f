from enum import Enum


class Sex(Enum):
    """Biological sex used by the physiology formulas."""
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, value) -> "Sex":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in ("m", "male", "man"):
            return cls.MALE
        if text in ("f", "female", "woman"):
            return cls.FEMALE
        raise ValueError(f"Unknown sex: {value!r}")


class PKModelKind(Enum):
    """Pharmacokinetic model families understood by the kernel evaluator."""
    ONE_COMPARTMENT = "1-compartment"
    TWO_COMPARTMENT = "2-compartment"
    MICHAELIS_MENTEN = "michaelis-menten"
    ACTIVITY = "activity-dependent"


class VolumeKind(Enum):
    """How the volume of distribution scales with the subject."""
    WEIGHT = "weight"
    TBW = "tbw"
    LBM = "lbm"
    SEX_ADJUSTED = "sex-adjusted"


class ClearanceKind(Enum):
    HEPATIC = "hepatic"
    RENAL = "renal"
    FIXED = "fixed"


class PDMechanism(Enum):
    """Pharmacodynamic mechanism at a receptor target."""
    AGONIST = "agonist"
    PARTIAL_AGONIST = "partial-agonist"
    ANTAGONIST = "antagonist"
    INVERSE_AGONIST = "inverse-agonist"
    PAM = "PAM"
    NAM = "NAM"
    LINEAR = "linear"


class AdaptationMechanism(Enum):
    """Ligand class driving receptor up/down-regulation."""
    FULL_AGONIST = "full_agonist"
    PARTIAL_AGONIST = "partial_agonist"
    ANTAGONIST = "antagonist"
    INVERSE_AGONIST = "inverse_agonist"
    PAM = "pam"
    NAM = "nam"

    @property
    def downregulates(self) -> bool:
        return self in (
            AdaptationMechanism.FULL_AGONIST,
            AdaptationMechanism.PARTIAL_AGONIST,
            AdaptationMechanism.PAM,
        )


class Receptor(Enum):
    """Receptor subtypes with adaptation kinetics."""
    D1 = "D1"
    D2 = "D2"
    HT2A = "5HT2A"
    GABAA = "GABA_A"
    A2A = "A2A"
    MU_OPIOID = "MU_OPIOID"
    BETA_ADRENERGIC = "BETA"
    NMDA = "NMDA"

    @classmethod
    def parse(cls, value) -> "Receptor":
        """Accept enum values, names or the common aliases (GABAA, 5-HT2A)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper().replace("-", "")
        for member in cls:
            if text in (member.name, member.value.upper().replace("-", "")):
                return member
        aliases = {"GABAA": cls.GABAA, "BETA_ADRENERGIC": cls.BETA_ADRENERGIC, "MOR": cls.MU_OPIOID}
        if text in aliases:
            return aliases[text]
        raise KeyError(f"Unknown receptor: {value!r}")


class Enzyme(Enum):
    """Transporters and enzymes whose activity sets a signal's clearance."""
    DAT = "DAT"
    NET = "NET"
    SERT = "SERT"
    MAO_A = "MAO_A"
    MAO_B = "MAO_B"
    GAT1 = "GAT1"
    GLT1 = "GLT1"
    ACHE = "AChE"
    DAO = "DAO"
    ADH = "ADH"

    @classmethod
    def parse(cls, value) -> "Enzyme":
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper().replace("-", "_")
        for member in cls:
            if text in (member.name, member.value.upper()):
                return member
        raise KeyError(f"Unknown enzyme: {value!r}")


class Effect(Enum):
    """Direction of a coupling edge."""
    STIMULATE = 1.0
    INHIBIT = -1.0


class Driver(Enum):
    """Homeostasis inputs that interventions can drive (summed across interventions)."""
    GLUCOSE_APPEARANCE = "glucose_appearance"
    CAFFEINE_LEVEL = "caffeine_level"
    EXERCISE_INTENSITY = "exercise_intensity"
    STRESS_LEVEL = "stress_level"
    ALCOHOL_LEVEL = "alcohol_level"
    MEDITATION_EFFECT = "meditation_effect"
    INFLAMMATION = "inflammation"
    STIMULANT_EFFECT = "stimulant_effect"
    GABA_BOOST = "gaba_boost"
    GLUTAMATE_BLOCK = "glutamate_block"
    TRYPTOPHAN = "tryptophan_availability"
    PRECURSOR = "precursor_availability"
    SLEEP = "is_asleep"


class NutrientKind(Enum):
    CARBOHYDRATE = "carbohydrate"
    PROTEIN = "protein"
    FAT = "fat"
