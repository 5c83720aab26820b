"""
tempobeat - Onset Detector
Frequency-weighted spectral flux with a median-based adaptive threshold.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from config import OnsetConfig
from detector_state import DetectorState


@dataclass
class OnsetEvent:
    """A detected onset"""
    timestamp_ms: float   # Tick time the onset was detected on
    strength: float       # 0.0-1.0, how far flux cleared the threshold
    flux: float = 0.0     # Weighted spectral flux of the tick
    threshold: float = 0.0


class OnsetDetector:
    """
    Turns consecutive spectra into onset events.

    Flux is the weighted mean of positive per-bin increases. Low-mid bins
    (10-50% of the range) count most, the top 20% least. The threshold is
    the median of the recent flux history times a factor between 1.2 and
    1.8: the more the flux varies, the lower the factor.
    """

    def __init__(self, config: OnsetConfig | None = None):
        self.config = config or OnsetConfig()
        self._weights: Optional[np.ndarray] = None

    def bin_weights(self, n_bins: int) -> np.ndarray:
        """Per-bin flux weights by relative position, cached per bin count."""
        if self._weights is not None and len(self._weights) == n_bins:
            return self._weights

        cfg = self.config
        position = np.arange(n_bins, dtype=np.float64) / n_bins
        weights = np.full(n_bins, cfg.band_weights[-1], dtype=np.float64)
        # Assign from the top band down so lower bands overwrite
        for edge, weight in reversed(list(zip(cfg.band_edges, cfg.band_weights))):
            weights[position < edge] = weight
        self._weights = weights
        return weights

    def compute_flux(self, spectrum: np.ndarray, previous: np.ndarray) -> float:
        weights = self.bin_weights(len(spectrum))
        rise = np.maximum(0.0, spectrum - previous)
        total_weight = float(np.sum(weights))
        if total_weight <= 0:
            return 0.0
        return float(np.dot(rise, weights) / total_weight)

    def adaptive_threshold(self, flux_history) -> float:
        cfg = self.config
        values = np.fromiter(flux_history, dtype=np.float64)
        median = float(np.median(values))
        variance = float(np.mean((values - median) ** 2))
        # Variance relative to the squared median, capped at 1
        if median > 0:
            normalized_variance = min(variance / (median * median), 1.0)
        else:
            normalized_variance = 1.0 if variance > 0 else 0.0
        factor = cfg.threshold_factor_max - cfg.threshold_factor_span * normalized_variance
        return max(median * factor, cfg.threshold_floor)

    def min_spacing_ms(self, last_bpm: Optional[float]) -> float:
        cfg = self.config
        if not last_bpm or last_bpm <= 0:
            return cfg.min_spacing_ms
        spacing = 60000.0 / (last_bpm * cfg.spacing_tempo_divisor)
        return float(np.clip(spacing, cfg.spacing_min_ms, cfg.spacing_max_ms))

    def prune(self, state: DetectorState, now: float) -> None:
        window = self.config.onset_window_ms
        onsets = state.onset_history
        while onsets and now - onsets[0] >= window:
            onsets.popleft()

    def detect(self, state: DetectorState, spectrum: np.ndarray, now: float) -> Optional[OnsetEvent]:
        """Process one tick. Mutates flux/onset history and the stored spectrum."""
        previous = state.previous_spectrum
        state.previous_spectrum = spectrum.copy()
        self.prune(state, now)

        if previous is None:
            return None

        flux = self.compute_flux(spectrum, previous)
        state.flux_history.append(flux)
        threshold = self.adaptive_threshold(state.flux_history)

        if flux <= threshold:
            return None

        spacing = self.min_spacing_ms(state.last_bpm)
        if state.last_onset_time is not None and now - state.last_onset_time <= spacing:
            return None

        strength = min((flux - threshold) / (threshold * self.config.strength_scale), 1.0)
        state.last_onset_time = now
        state.onset_history.append(now)
        return OnsetEvent(timestamp_ms=now, strength=strength, flux=flux, threshold=threshold)
