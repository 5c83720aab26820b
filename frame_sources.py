"""
tempobeat - Frame Sources
Everything that can feed spectra to the estimator implements the same
start/stop/disconnect capability interface, so the tick driver never has
to check what kind of source it holds.

Sources emit raw analyser magnitudes on a 0..full_scale scale (byte data
by default); the driver normalizes them before they reach the estimator.
"""
from __future__ import annotations

import math
import threading
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from frame_utils import SpectrumFrame, spectrum_from_samples
from logging_utils import log_event


class SourceError(RuntimeError):
    """Raised when a source cannot be started."""


class FrameSource(ABC):
    """Capability interface for per-tick spectrum producers"""
    name = "source"
    # Tempo known in advance (playlist metadata); None = detect it
    specified_bpm: Optional[float] = None

    def __init__(self):
        self.running = False
        self.connected = True

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    def disconnect(self) -> None:
        """Release the underlying resources; a disconnected source cannot restart."""
        if self.running:
            self.stop()
        self.connected = False

    @abstractmethod
    def next_frame(self, now_ms: float) -> Optional[SpectrumFrame]:
        """Raw spectrum for the tick at *now_ms*, or None when nothing is available yet."""


class SyntheticPulseSource(FrameSource):
    """
    Deterministic pulse train: a flat baseline spectrum with the low bins
    jumping to `pulse_level` on the first tick at or after every period
    boundary. Levels are given in [0,1] and scaled by `full_scale`.
    Doubles as a playlist track when `specified_bpm` is given.
    """
    name = "synthetic"

    def __init__(self, period_ms: float, n_bins: int = 1024, baseline: float = 0.1,
                 pulse_level: float = 0.9, pulse_fraction: float = 0.1,
                 phase_ms: float = 0.0, noise: float = 0.0, seed: int = 0,
                 specified_bpm: Optional[float] = None, full_scale: float = 255.0):
        super().__init__()
        if period_ms <= 0:
            raise ValueError("period_ms must be positive")
        self.period_ms = float(period_ms)
        self.n_bins = int(n_bins)
        self.baseline = baseline
        self.pulse_level = pulse_level
        self.pulse_bins = max(1, int(n_bins * pulse_fraction))
        self.phase_ms = phase_ms
        self.noise = noise
        self.specified_bpm = specified_bpm
        self.full_scale = full_scale
        self._rng = np.random.default_rng(seed)
        self._last_pulse_index: Optional[int] = None

    def start(self) -> None:
        if not self.connected:
            raise SourceError("synthetic source was disconnected")
        self.running = True
        self._last_pulse_index = None

    def stop(self) -> None:
        self.running = False

    def pulse_index(self, now_ms: float) -> int:
        # Small epsilon so ticks computed as i * (1000 / fps) land on the boundary
        return math.floor((now_ms - self.phase_ms + 1e-6) / self.period_ms)

    def next_frame(self, now_ms: float) -> Optional[SpectrumFrame]:
        if not self.running:
            return None

        spectrum = np.full(self.n_bins, self.baseline, dtype=np.float64)
        if self.noise > 0:
            spectrum += self._rng.uniform(0.0, self.noise, size=self.n_bins)

        index = self.pulse_index(now_ms)
        if now_ms >= self.phase_ms and self._last_pulse_index is not None and index > self._last_pulse_index:
            spectrum[:self.pulse_bins] = self.pulse_level
        self._last_pulse_index = index

        return SpectrumFrame(np.clip(spectrum, 0.0, 1.0) * self.full_scale, float(now_ms))


class MicrophoneSource(FrameSource):
    """Live input through sounddevice; each tick analyses the latest block."""
    name = "microphone"

    def __init__(self, n_bins: int = 1024, sample_rate: int = 44100,
                 device_index: Optional[int] = None, gain: float = 1.0,
                 full_scale: float = 255.0):
        super().__init__()
        self.n_bins = int(n_bins)
        self.sample_rate = int(sample_rate)
        self.device_index = device_index
        self.gain = gain
        self.full_scale = full_scale
        self.block_size = self.n_bins * 2
        self.stream = None
        self._latest: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    def _callback(self, indata, frames, time_info, status):
        if status:
            log_event("DEBUG", "Microphone", "Stream status", status=status)
        with self._lock:
            self._latest = np.array(indata, dtype=np.float64, copy=True)

    def start(self) -> None:
        if not self.connected:
            raise SourceError("microphone source was disconnected")
        if self.running:
            return
        try:
            import sounddevice as sd
        except (OSError, ImportError) as e:
            raise SourceError(f"sounddevice unavailable: {e}") from e
        try:
            self.stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                channels=1,
                device=self.device_index,
                dtype="float32",
                callback=self._callback,
            )
            self.stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self.stream = None
            raise SourceError(f"could not open input device: {e}") from e
        self.running = True
        log_event("INFO", "Microphone", "Capture started",
                  device=self.device_index, sample_rate=self.sample_rate, block=self.block_size)

    def stop(self) -> None:
        if self.stream is not None:
            self.stream.stop()
        self.running = False

    def disconnect(self) -> None:
        super().disconnect()
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        with self._lock:
            self._latest = None

    def next_frame(self, now_ms: float) -> Optional[SpectrumFrame]:
        with self._lock:
            block = self._latest
        if not self.running or block is None:
            return None
        spectrum = spectrum_from_samples(block * self.gain, self.n_bins)
        return SpectrumFrame(spectrum * self.full_scale, float(now_ms))
