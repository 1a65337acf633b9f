"""
The signal catalog: one SignalDefinition per Signal, assembled at import.
"""

import logging
from dataclasses import replace
from typing import Dict, Mapping, Optional

from .circadian import CIRCADIAN_SIGNALS
from .definitions import SetpointContext, Signal, SignalDefinition
from .derived import DERIVED_SIGNALS
from .hormones import HORMONE_SIGNALS
from .metabolic import METABOLIC_SIGNALS
from .neurotransmitters import NEUROTRANSMITTER_SIGNALS

LOGGER = logging.getLogger(__name__)

Catalog = Mapping[Signal, SignalDefinition]


def _build_catalog() -> Dict[Signal, SignalDefinition]:
    catalog: Dict[Signal, SignalDefinition] = {}
    for group in (METABOLIC_SIGNALS, HORMONE_SIGNALS, NEUROTRANSMITTER_SIGNALS,
                  CIRCADIAN_SIGNALS, DERIVED_SIGNALS):
        for definition in group:
            if definition.key in catalog:
                raise RuntimeError(f"Duplicate signal definition: {definition.key.value}")
            catalog[definition.key] = definition

    missing = set(Signal) - set(catalog)
    if missing:
        raise RuntimeError(f"Signals without a definition: {sorted(s.value for s in missing)}")
    return catalog


CATALOG: Dict[Signal, SignalDefinition] = _build_catalog()


def lookup(key, catalog: Optional[Catalog] = None) -> Optional[SignalDefinition]:
    """Definition for `key`, or None (with a warning) if it is unknown."""
    catalog = CATALOG if catalog is None else catalog
    try:
        signal = Signal.parse(key)
    except KeyError:
        LOGGER.warning("Unknown signal %r skipped", key)
        return None
    definition = catalog.get(signal)
    if definition is None:
        LOGGER.warning("Signal %s has no definition in this catalog; skipped", signal.value)
    return definition


def without_couplings(catalog: Optional[Catalog] = None) -> Dict[Signal, SignalDefinition]:
    """Copy of the catalog with every coupling edge removed."""
    catalog = CATALOG if catalog is None else catalog
    return {key: replace(definition, couplings=()) for key, definition in catalog.items()}


def setpoints(ctx: SetpointContext, catalog: Optional[Catalog] = None) -> Dict[Signal, float]:
    """Raw baseline setpoint of every signal at ctx.minute."""
    catalog = CATALOG if catalog is None else catalog
    return {key: float(definition.setpoint(ctx)) for key, definition in catalog.items()}


def coupling_sources(catalog: Optional[Catalog] = None) -> Dict[Signal, set]:
    """Map target -> set of source signals (the coupling graph)."""
    catalog = CATALOG if catalog is None else catalog
    return {key: {c.source for c in definition.couplings} for key, definition in catalog.items()}
