"""
tempobeat - Detector State
All mutable per-session estimator state in one object, so a reset is a
single reference swap.
"""
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from config import Config
from ioi_histogram import IOIHistogram


@dataclass
class SessionStats:
    """Running per-session counters for the shutdown summary and reports"""
    started_at: float = field(default_factory=time.time)
    ticks: int = 0
    onsets: int = 0
    override_ticks: int = 0
    bpm_min: Optional[float] = None
    bpm_max: Optional[float] = None
    bpm_sum: float = 0.0
    peak_intensity: float = 0.0

    def record(self, bpm: float, intensity: float, onset: bool, override: bool) -> None:
        self.ticks += 1
        if onset:
            self.onsets += 1
        if override:
            self.override_ticks += 1
        self.bpm_sum += bpm
        if self.bpm_min is None or bpm < self.bpm_min:
            self.bpm_min = bpm
        if self.bpm_max is None or bpm > self.bpm_max:
            self.bpm_max = bpm
        if intensity > self.peak_intensity:
            self.peak_intensity = intensity

    def summary(self, ended_at: Optional[float] = None) -> dict:
        ended_at = time.time() if ended_at is None else ended_at
        ticks = max(1, self.ticks)
        return {
            "session_started_at": self.started_at,
            "session_ended_at": ended_at,
            "seconds": max(0.0, ended_at - self.started_at),
            "ticks": self.ticks,
            "onsets": self.onsets,
            "override_ticks": self.override_ticks,
            "bpm_min": float(self.bpm_min or 0.0),
            "bpm_max": float(self.bpm_max or 0.0),
            "bpm_mean": self.bpm_sum / ticks if self.ticks else 0.0,
            "peak_intensity": self.peak_intensity,
        }


@dataclass
class DetectorState:
    flux_history: deque
    onset_history: deque
    bpm_history: deque
    ioi_histogram: IOIHistogram
    previous_spectrum: Optional[np.ndarray] = None
    n_bins: Optional[int] = None            # Fixed by the first frame of the session
    last_onset_time: Optional[float] = None  # None = no onset yet
    last_beat_time: Optional[float] = None
    current_bpm: Optional[int] = None       # Last smoothed output, None until the first estimate
    stats: SessionStats = field(default_factory=SessionStats)

    @classmethod
    def fresh(cls, config: Config) -> "DetectorState":
        return cls(
            flux_history=deque(maxlen=config.onset.flux_history_size),
            onset_history=deque(),
            bpm_history=deque(maxlen=config.smoother.history_size),
            ioi_histogram=IOIHistogram(config.histogram),
        )

    @property
    def last_bpm(self) -> Optional[float]:
        return self.bpm_history[-1] if self.bpm_history else None
