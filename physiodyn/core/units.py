"""
Unit conversion helpers for dose handling.

Internal convention:
- Drug doses: mg
- Alcohol: standard units
- Time: minutes
"""

from typing import Dict, Tuple


_DOSE_UNIT_ALIASES: Dict[str, str] = {
    "milligram": "mg",
    "milligrams": "mg",
    "gram": "g",
    "grams": "g",
    "microgram": "ug",
    "micrograms": "ug",
    "kilogram": "kg",
}

# Conversion factors between mass units (multiplicative).
_DOSE_CONVERSIONS: Dict[Tuple[str, str], float] = {
    ("g", "mg"): 1000.0,
    ("mg", "mg"): 1.0,
    ("ug", "mg"): 1.0e-3,
    ("ng", "mg"): 1.0e-6,
    ("kg", "mg"): 1.0e6,
    ("mg", "g"): 1.0e-3,
    ("g", "g"): 1.0,
}

_TIME_CONVERSIONS: Dict[str, float] = {
    "s": 1.0 / 60.0,
    "sec": 1.0 / 60.0,
    "min": 1.0,
    "h": 60.0,
    "hr": 60.0,
    "day": 1440.0,
}


def normalize_dose_unit(unit: str) -> str:
    """Normalize dose unit strings to canonical lowercase form."""
    if not unit:
        return ""
    u = unit.strip()
    u = u.replace("µ", "u").replace("μ", "u")
    u = u.replace("mcg", "ug")
    u = u.replace(" ", "")
    u = u.lower()
    return _DOSE_UNIT_ALIASES.get(u, u)


def convert_dose(value: float, from_unit: str, to_unit: str = "mg") -> float:
    """
    Convert a dose between mass units.

    Raises:
        ValueError: if the conversion is not supported.
    """
    src = normalize_dose_unit(from_unit)
    dst = normalize_dose_unit(to_unit)
    factor = _DOSE_CONVERSIONS.get((src, dst))
    if factor is None:
        raise ValueError(f"Unsupported dose conversion: {from_unit!r} -> {to_unit!r}")
    return float(value) * factor


def to_minutes(value: float, unit: str = "min") -> float:
    """Convert a duration to minutes."""
    u = (unit or "min").strip().lower().rstrip("s") or "s"
    if u == "minute":
        u = "min"
    elif u == "hour":
        u = "h"
    elif u == "second":
        u = "s"
    factor = _TIME_CONVERSIONS.get(u)
    if factor is None:
        raise ValueError(f"Unsupported time unit: {unit!r}")
    return float(value) * factor
