"""
tempobeat - Beat Intensity Envelope
Attack/decay intensity driven by onsets, and the low-band intensity used
when the tempo is supplied externally.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from config import IntensityConfig, OverrideConfig
from detector_state import DetectorState
from frame_utils import band_average
from onset_detector import OnsetEvent


class BeatIntensityEnvelope:
    """
    Jumps to min(strength * onset_scale, 1) on a beat and fades linearly
    back to 0 over min(fade_fraction * beat interval, max_fade_ms).
    """

    def __init__(self, config: IntensityConfig | None = None):
        self.config = config or IntensityConfig()

    def fade_time_ms(self, bpm: float) -> float:
        cfg = self.config
        beat_interval = 60000.0 / bpm if bpm > 0 else float("inf")
        return min(beat_interval * cfg.fade_fraction, cfg.max_fade_ms)

    def update(self, state: DetectorState, onset: Optional[OnsetEvent], now: float, bpm: float) -> float:
        cfg = self.config
        if onset is not None and onset.strength > cfg.min_strength:
            state.last_beat_time = now
            return min(onset.strength * cfg.onset_scale, 1.0)

        if state.last_beat_time is None:
            return 0.0

        elapsed = now - state.last_beat_time
        fade_time = self.fade_time_ms(bpm)
        if fade_time <= 0 or elapsed >= fade_time:
            return 0.0
        return float(min(1.0, max(0.0, 1.0 - elapsed / fade_time)))


def override_intensity(spectrum: np.ndarray, low_frequency_average: float,
                       config: OverrideConfig | None = None) -> float:
    """Intensity from low-band energy alone, boosted on strong kick-drum energy."""
    cfg = config or OverrideConfig()
    base = min(max(0.0, low_frequency_average) * cfg.low_scale, 1.0)
    kick = band_average(spectrum, cfg.kick_band_start, cfg.kick_band_end)
    if kick > cfg.kick_threshold:
        base = min(base * cfg.kick_boost, 1.0)
    return float(base)
