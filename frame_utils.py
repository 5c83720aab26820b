"""
tempobeat - Frame Normalizer
Validation and normalization of per-tick magnitude frames, plus the band
averages used by the override intensity path.

Malformed frames are handled the same way everywhere:
  - empty, multi-dimensional or wrong-length arrays raise InvalidFrame
  - NaN / inf samples raise InvalidFrame
  - finite samples outside [0, 1] are clipped into range
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from config import NormalizerConfig


class InvalidFrame(ValueError):
    """Raised when a spectrum frame violates the caller precondition."""


@dataclass
class SpectrumFrame:
    """N magnitudes in [0,1] plus the capture time in milliseconds"""
    magnitudes: np.ndarray
    timestamp_ms: float

    def __len__(self) -> int:
        return len(self.magnitudes)


@dataclass
class FrameFeatures:
    """Per-frame summary values computed next to the spectrum"""
    volume: float                  # RMS of the time-domain block (0-1)
    low_frequency_average: float   # Mean of the lowest third of bins (0-1)
    high_frequency_average: float  # Mean of the highest third of bins (0-1)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive input."""
    return int(math.floor(value + 0.5))


def validate_magnitudes(values, expected_len: int | None = None) -> np.ndarray:
    """Return a float64 copy of *values* clipped to [0,1] or raise InvalidFrame."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise InvalidFrame(f"expected a non-empty 1-D magnitude array, got shape {arr.shape}")
    if expected_len is not None and arr.size != expected_len:
        raise InvalidFrame(f"frame has {arr.size} bins, session uses {expected_len}")
    if not np.all(np.isfinite(arr)):
        raise InvalidFrame("frame contains non-finite magnitudes")
    return np.clip(arr, 0.0, 1.0)


def normalize_magnitudes(raw, config: NormalizerConfig | None = None) -> np.ndarray:
    """Scale raw per-bin magnitudes to [0,1], optionally boosting the low bins."""
    cfg = config or NormalizerConfig()
    arr = np.asarray(raw, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise InvalidFrame(f"expected a non-empty 1-D magnitude array, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidFrame("frame contains non-finite magnitudes")

    full_scale = cfg.full_scale if cfg.full_scale > 0 else 1.0
    normalized = arr / full_scale

    if cfg.low_emphasis > 0:
        low_end = max(1, int(len(normalized) * cfg.low_emphasis_fraction))
        normalized[:low_end] *= 1.0 + cfg.low_emphasis

    return np.clip(normalized, 0.0, 1.0)


def make_frame(raw, timestamp_ms: float, config: NormalizerConfig | None = None) -> SpectrumFrame:
    """Normalize raw analyser output into a SpectrumFrame."""
    return SpectrumFrame(normalize_magnitudes(raw, config), float(timestamp_ms))


def band_average(spectrum: np.ndarray, start_fraction: float, end_fraction: float) -> float:
    """Mean magnitude over a band given as fractions of the bin range.

    The band always covers at least one bin so narrow bands on small
    spectra still produce a value.
    """
    n_bins = len(spectrum)
    if n_bins == 0:
        return 0.0
    start = min(n_bins - 1, max(0, int(n_bins * start_fraction)))
    end = max(start + 1, min(n_bins, int(math.ceil(n_bins * end_fraction))))
    return float(np.mean(spectrum[start:end]))


def low_frequency_average(spectrum: np.ndarray, fraction: float = 1.0 / 3.0) -> float:
    return band_average(spectrum, 0.0, fraction)


def high_frequency_average(spectrum: np.ndarray, fraction: float = 1.0 / 3.0) -> float:
    n_bins = len(spectrum)
    if n_bins == 0:
        return 0.0
    start = int((n_bins * (1.0 - fraction)))
    start = min(start, n_bins - 1)
    return float(np.mean(spectrum[start:]))


def analyze_frame(frequency_data, time_data=None, config: NormalizerConfig | None = None,
                  low_band_fraction: float = 1.0 / 3.0) -> tuple[np.ndarray, FrameFeatures]:
    """Normalize byte analyser data and compute volume / band averages.

    *time_data* holds unsigned byte samples centered at 128; volume is 0
    when it is missing.
    """
    spectrum = normalize_magnitudes(frequency_data, config)

    volume = 0.0
    if time_data is not None and len(time_data) > 0:
        samples = (np.asarray(time_data, dtype=np.float64) - 128.0) / 128.0
        volume = float(np.sqrt(np.mean(samples ** 2)))

    features = FrameFeatures(
        volume=volume,
        low_frequency_average=low_frequency_average(spectrum, low_band_fraction),
        high_frequency_average=high_frequency_average(spectrum),
    )
    return spectrum, features


def spectrum_from_samples(samples: np.ndarray, n_bins: int) -> np.ndarray:
    """Hann-windowed magnitude spectrum of a PCM block, scaled to [0,1].

    Multi-channel blocks are mixed to mono. The rfft output is resampled
    to *n_bins* so the session bin count does not depend on block size.
    """
    block = np.asarray(samples, dtype=np.float64)
    if block.ndim > 1:
        block = np.mean(block, axis=1)
    if block.size == 0:
        return np.zeros(n_bins)

    window = np.hanning(len(block))
    spectrum = np.abs(np.fft.rfft(block * window))
    # Amplitude of a full-scale sine lands near 1.0
    spectrum = spectrum * 2.0 / max(1.0, float(np.sum(window)))

    if len(spectrum) != n_bins:
        src = np.linspace(0.0, 1.0, num=len(spectrum))
        dst = np.linspace(0.0, 1.0, num=n_bins)
        spectrum = np.interp(dst, src, spectrum)

    return np.clip(spectrum, 0.0, 1.0)
