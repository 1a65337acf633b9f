"""
Compute request / response types.

A ComputeRequest is validated on construction: a bad time grid, a negative
duration, an unknown intervention key or invalid intervention parameters
raise RequestValidationError before any simulation work starts.
"""

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from physiodyn.core.state import SimulationConfig
from physiodyn.core.units import convert_dose, to_minutes
from physiodyn.interventions.library import INTERVENTIONS, InterventionParams, parse_params
from physiodyn.patient.subject import Physiology, Subject


class RequestValidationError(ValueError):
    """Malformed compute request."""


def time_grid(duration: float, dt: float = 1.0, start: float = 0.0) -> np.ndarray:
    """Inclusive grid start, start + dt, ..., start + duration (minutes)."""
    if not (duration >= 0.0) or not math.isfinite(duration):
        raise RequestValidationError(f"duration must be finite and >= 0, got {duration}")
    if not (dt > 0.0) or not math.isfinite(dt):
        raise RequestValidationError(f"dt must be finite and positive, got {dt}")
    if duration == 0.0:
        return np.array([float(start)])
    steps = duration / dt
    n = int(round(steps))
    if n < 1 or abs(steps - n) > 1e-9 * steps:
        raise RequestValidationError(f"duration {duration} is not a whole number of dt={dt} steps")
    return np.linspace(start, start + duration, n + 1)


def _normalize_params(key: str, raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    params = dict(raw or {})
    unit = params.pop("unit", None)
    if unit is not None and "mg" in params:
        params["mg"] = convert_dose(params["mg"], unit, "mg")
    return params


@dataclass(frozen=True)
class InterventionSpec:
    """A scheduled intervention as received from a caller."""
    key: str
    start: float
    duration: float
    params: InterventionParams
    id: str = ""

    def __post_init__(self):
        if self.key not in INTERVENTIONS:
            raise RequestValidationError(
                f"Unknown intervention key {self.key!r}; known: {sorted(INTERVENTIONS)}")
        for name in ("start", "duration"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise RequestValidationError(f"Intervention {self.key!r}: {name} must be finite, got {value!r}")
        if self.duration < 0.0:
            raise RequestValidationError(f"Intervention {self.key!r}: negative duration {self.duration}")
        if not isinstance(self.params, INTERVENTIONS[self.key]):
            raise RequestValidationError(
                f"Intervention {self.key!r} expects {INTERVENTIONS[self.key].__name__} params, "
                f"got {type(self.params).__name__}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InterventionSpec":
        try:
            key = data["key"]
        except KeyError:
            raise RequestValidationError(f"Intervention without a key: {dict(data)!r}") from None
        try:
            params = parse_params(key, _normalize_params(key, data.get("params")))
        except KeyError as exc:
            raise RequestValidationError(str(exc.args[0]) if exc.args else str(exc)) from exc
        except (TypeError, ValueError) as exc:
            raise RequestValidationError(f"Intervention {key!r}: {exc}") from exc
        unit = data.get("time_unit", "min")
        try:
            start = to_minutes(data.get("start", 0.0), unit)
            duration = to_minutes(data.get("duration", 0.0), unit)
        except (TypeError, ValueError) as exc:
            raise RequestValidationError(f"Intervention {key!r}: {exc}") from exc
        return cls(key=key, start=start, duration=duration, params=params, id=str(data.get("id", "")))


@dataclass(frozen=True)
class ComputeRequest:
    """
    One simulation request.

    `times` is the output grid (minutes, strictly increasing); the engine
    steps from each grid point to the next.
    """
    times: np.ndarray
    interventions: Tuple[InterventionSpec, ...] = ()
    subject: Subject = field(default_factory=Subject)
    physiology: Optional[Physiology] = None
    homeostasis: Optional[Dict[str, Any]] = None
    config: SimulationConfig = field(default_factory=SimulationConfig)

    def __post_init__(self):
        try:
            times = np.asarray(self.times, dtype=float)
        except (TypeError, ValueError) as exc:
            raise RequestValidationError(f"time grid is not numeric: {exc}") from exc
        if times.ndim != 1 or times.size == 0:
            raise RequestValidationError("time grid must be a non-empty 1-D sequence")
        if not np.all(np.isfinite(times)):
            raise RequestValidationError("time grid contains non-finite values")
        if times.size > 1 and not np.all(np.diff(times) > 0.0):
            raise RequestValidationError("time grid must be strictly increasing")
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "interventions", tuple(self.interventions))
        for spec in self.interventions:
            if not isinstance(spec, InterventionSpec):
                raise RequestValidationError(f"Expected InterventionSpec, got {type(spec).__name__}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComputeRequest":
        """
        Build a request from plain data (e.g. a JSON scenario).

        Keys: subject, duration, dt, start, times, interventions, config,
        homeostasis.
        """
        try:
            subject = Subject(**(data.get("subject") or {}))
        except (TypeError, ValueError) as exc:
            raise RequestValidationError(f"Invalid subject: {exc}") from exc

        config_data = dict(data.get("config") or {})
        known = {f.name for f in fields(SimulationConfig)}
        unknown = set(config_data) - known
        if unknown:
            raise RequestValidationError(f"Unknown config option(s) {sorted(unknown)}")
        try:
            config = SimulationConfig(**config_data)
        except (TypeError, ValueError) as exc:
            raise RequestValidationError(f"Invalid config: {exc}") from exc

        if "times" in data:
            times = data["times"]
        else:
            times = time_grid(float(data.get("duration", 1440.0)), float(data.get("dt", config.dt)),
                              float(data.get("start", 0.0)))

        interventions = tuple(InterventionSpec.from_dict(item) for item in data.get("interventions") or ())
        return cls(times=times, interventions=interventions, subject=subject,
                   homeostasis=data.get("homeostasis"), config=config)


@dataclass
class ComputeResponse:
    """Per-signal series aligned with the request grid plus the terminal homeostasis snapshot."""
    times: np.ndarray
    series: Dict[str, np.ndarray]
    homeostasis: Dict[str, Any]
    duration_ms: float
    homeostasis_series: Optional[Dict[str, np.ndarray]] = None

    def to_frame(self, include_homeostasis: bool = True) -> pd.DataFrame:
        """Signals (and homeostasis pools, prefixed "homeostasis.") indexed by minute."""
        columns = dict(self.series)
        if include_homeostasis and self.homeostasis_series:
            for name, values in self.homeostasis_series.items():
                columns[f"homeostasis.{name}"] = values
        return pd.DataFrame(columns, index=pd.Index(self.times, name="minute"))

    def signal(self, key) -> np.ndarray:
        return self.series[getattr(key, "value", key)]
