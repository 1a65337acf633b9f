"""
Physiological and Numerical Constants for physiodyn.

This module centralizes magic numbers used throughout the simulation.

NOTE: Only add constants here that are ACTIVELY IMPORTED elsewhere.
"""

# Time base. All simulation times are minutes from the start of the run.
MINUTES_PER_DAY = 1440.0
MINUTES_PER_HOUR = 60.0

# Numerical floors (used in pk_models.py, pd_models.py, kernels.py).

# Generic denominator floor for Kd, Vd and rate constants
DENOM_FLOOR = 1e-9

# |ka - ke| below this uses the closed-form t*exp(-kt) limit
RATE_DEGENERACY_EPS = 1e-9

# Epsilon for preventing division by zero in Hill functions
HILL_EPSILON = 1e-12

# Maximum Hill coefficient (gamma) to prevent numerical overflow
GAMMA_MAX = 20.0

# Concentration ratio above which Hill function returns near-saturation
CONCENTRATION_RATIO_SATURATION = 100.0

# Minimum volume of distribution (L) in dose -> concentration conversion
VD_MIN_L = 0.1

# Subject input clamps (used in subject.py).
AGE_RANGE = (1.0, 110.0)          # years
WEIGHT_RANGE = (20.0, 300.0)      # kg
HEIGHT_RANGE = (100.0, 230.0)     # cm
CYCLE_LENGTH_RANGE = (21.0, 40.0)  # days

# Reference adult used for physiology-based scaling (used in pk_models.py).
REF_BSA_M2 = 1.85
REF_LIVER_BLOOD_FLOW = 1.5   # L/min for a 70 kg adult
REF_GFR = 90.0               # mL/min
REF_BMR_KCAL = 1660.0        # kcal/day
REF_TBW_L = 42.0             # L

# Glucose distribution volume used by nutrient appearance (dL/kg)
GLUCOSE_VD_DL_PER_KG = 2.0

# Homeostasis sub-step resolution (minutes)
HOMEOSTASIS_INTERNAL_DT = 1.0

# Kernel cache default capacity (entries)
KERNEL_CACHE_SIZE = 64
