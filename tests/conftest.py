from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from physiodyn.core.engine import SimulationEngine, compute
from physiodyn.core.request import ComputeRequest, InterventionSpec, time_grid
from physiodyn.core.session import SimulationSession
from physiodyn.core.state import SimulationConfig
from physiodyn.interventions.library import parse_params
from physiodyn.patient.subject import Subject, derive_physiology


DEFAULT_SUBJECT = dict(age=30, weight=70, height=175, sex="male")


@pytest.fixture
def subject():
    """Standard adult subject used across most tests."""
    return Subject(**DEFAULT_SUBJECT)


@pytest.fixture
def physiology(subject):
    return derive_physiology(subject)


@pytest.fixture
def engine(subject):
    """Engine with every layer enabled and no interventions."""
    return SimulationEngine(subject, SimulationConfig())


@pytest.fixture
def session():
    sess = SimulationSession(cache_size=8)
    yield sess
    sess.close()


@pytest.fixture
def run_scenario(subject):
    """
    Helper: run a list of (key, start, duration, params) interventions over
    a grid and return the ComputeResponse.
    """
    def _run(interventions=(), duration=240.0, dt=1.0, start=0.0, homeostasis=None, **config):
        specs = tuple(
            InterventionSpec(key=key, start=float(t0), duration=float(length), params=parse_params(key, params))
            for key, t0, length, params in interventions
        )
        request = ComputeRequest(
            times=time_grid(duration, dt, start),
            interventions=specs,
            subject=subject,
            homeostasis=homeostasis,
            config=SimulationConfig(dt=dt, **config),
        )
        return compute(request)

    return _run
