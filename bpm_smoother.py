"""
tempobeat - BPM Smoother
Recency-weighted average over the bounded BPM history.
"""
from __future__ import annotations

from collections import deque

from config import SmootherConfig
from frame_utils import round_half_up


class BPMSmoother:
    def __init__(self, config: SmootherConfig | None = None):
        self.config = config or SmootherConfig()

    def push(self, history: deque, bpm: float) -> int:
        """Append *bpm* (history drops its oldest entry when full) and return the smoothed value."""
        history.append(bpm)
        return self.smoothed(history)

    def smoothed(self, history) -> int:
        """Linear recency weighting: entry i (oldest first) weighs (i + 1) / len."""
        cfg = self.config
        n = len(history)
        if n == 0:
            return round_half_up(cfg.default_bpm)

        weighted = 0.0
        total = 0.0
        for i, bpm in enumerate(history):
            weight = (i + 1) / n
            weighted += bpm * weight
            total += weight
        value = round_half_up(weighted / total)
        return int(min(cfg.max_bpm, max(cfg.min_bpm, value)))
