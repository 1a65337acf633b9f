import csv
import logging
import os
import time
from typing import Optional, Sequence

from physiodyn.signals.definitions import Signal
from .state import SimulationState

LOGGER = logging.getLogger(__name__)


class SeriesRecorder:
    """
    Streams signal values to CSV while a run is in progress.
    """
    def __init__(self, output_dir: str = ".", sample_interval_min: float = 1.0,
                 filename: Optional[str] = None):
        self.output_dir = output_dir
        self.filename = filename or f"physiodyn_run_{int(time.time())}.csv"
        self.file_path = os.path.join(output_dir, self.filename)
        self.file = None
        self.writer = None
        self.is_recording = False
        self.sample_interval_min = max(0.0, sample_interval_min)
        self.signals: Sequence[Signal] = ()
        self._last_sample_time = None

    def start(self, signals: Sequence[Signal]):
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            self.file = open(self.file_path, "w", newline="")
        except OSError as exc:
            LOGGER.error("Failed to start recording to %s: %s", self.file_path, exc)
            self.is_recording = False
            return
        self.writer = csv.writer(self.file)
        self.signals = tuple(signals)
        self.writer.writerow(["minute"] + [s.value for s in self.signals])
        self.is_recording = True
        self._last_sample_time = None

    def log(self, state: SimulationState):
        if not self.is_recording or not self.writer:
            return

        if self.sample_interval_min > 0.0:
            now = state.time
            if self._last_sample_time is not None and (now - self._last_sample_time) < self.sample_interval_min:
                return
            self._last_sample_time = now

        self.writer.writerow([state.time] + [state.values.get(s, float("nan")) for s in self.signals])

    def stop(self):
        if self.file:
            self.file.close()
            self.file = None
        self.writer = None
        self.is_recording = False
