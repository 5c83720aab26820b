"""
tempobeat - Tempo Estimator
Per-tick BPM and beat intensity from a stream of magnitude spectra.

One instance per audio session. The caller drives it by calling
process_frame() once per display refresh and calls reset() whenever the
input source changes. There is no internal loop, timer or lock.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from beat_envelope import BeatIntensityEnvelope, override_intensity
from bpm_smoother import BPMSmoother
from config import Config
from detector_state import DetectorState
from frame_utils import SpectrumFrame, low_frequency_average, validate_magnitudes
from logging_utils import log_event
from onset_detector import OnsetDetector, OnsetEvent
from tempo_scorer import TempoScorer


@dataclass
class BPMEstimate:
    """Output of one tick"""
    bpm: float                       # Smoothed tempo, or the specified tempo verbatim
    beat_intensity: float            # 0.0-1.0
    is_override: bool = False        # True when bpm came from the caller (playlist metadata)
    onset: Optional[OnsetEvent] = None


class TempoEstimator:
    def __init__(self, config: Config | None = None):
        self.config = config or Config()
        self.onset_detector = OnsetDetector(self.config.onset)
        self.scorer = TempoScorer(self.config.scorer)
        self.smoother = BPMSmoother(self.config.smoother)
        self.envelope = BeatIntensityEnvelope(self.config.intensity)
        self._state = DetectorState.fresh(self.config)

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def current_bpm(self) -> int:
        state = self._state
        if state.current_bpm is None:
            return self.smoother.smoothed(state.bpm_history)
        return state.current_bpm

    def reset(self) -> None:
        """Drop all detection state. Takes effect before the next tick."""
        self._state = DetectorState.fresh(self.config)
        log_event("INFO", "Tempo", "Detector reset")

    def process_frame(self, frame: SpectrumFrame, specified_bpm: Optional[float] = None,
                      low_frequency_avg: Optional[float] = None) -> BPMEstimate:
        """Advance one tick.

        Raises InvalidFrame (before touching any state) when the frame is
        empty, non-finite or does not match the session bin count.
        """
        state = self._state
        spectrum = validate_magnitudes(frame.magnitudes, state.n_bins)
        now = float(frame.timestamp_ms)

        if specified_bpm is not None and specified_bpm > 0:
            return self._process_override(state, spectrum, specified_bpm, low_frequency_avg)

        if state.n_bins is None:
            state.n_bins = len(spectrum)

        onset = self.onset_detector.detect(state, spectrum, now)
        if onset is not None:
            self._on_onset(state, onset)

        bpm = self.current_bpm
        intensity = self.envelope.update(state, onset, now, bpm)
        state.stats.record(bpm, intensity, onset is not None, False)
        return BPMEstimate(bpm=bpm, beat_intensity=intensity, onset=onset)

    def _on_onset(self, state: DetectorState, onset: OnsetEvent) -> None:
        cfg = self.config.smoother
        onset_times = list(state.onset_history)
        # The current onset is the last entry; intervals come from the ones before it
        state.ioi_histogram.add_onset(onset.timestamp_ms, onset_times[:-1])

        candidates = state.ioi_histogram.candidates(cfg.min_bpm, cfg.max_bpm, cfg.default_bpm)
        raw = state.ioi_histogram.raw_candidates(cfg.min_bpm, cfg.max_bpm)
        winner = self.scorer.select(candidates, onset_times, raw)

        previous = state.current_bpm
        state.current_bpm = self.smoother.push(state.bpm_history, winner)

        log_event("DEBUG", "Onset", "Onset detected",
                  t=f"{onset.timestamp_ms:.0f}", strength=f"{onset.strength:.2f}",
                  flux=f"{onset.flux:.4f}", threshold=f"{onset.threshold:.4f}",
                  winner=winner, bpm=state.current_bpm)
        if previous is None or abs(state.current_bpm - previous) >= 5:
            log_event("INFO", "Tempo", "Tempo estimate changed",
                      bpm=state.current_bpm, previous=previous,
                      onsets=len(onset_times), buckets=len(state.ioi_histogram))

    def _process_override(self, state: DetectorState, spectrum, specified_bpm: float,
                          low_frequency_avg: Optional[float]) -> BPMEstimate:
        if low_frequency_avg is None:
            low_frequency_avg = low_frequency_average(spectrum, self.config.override.low_band_fraction)
        intensity = override_intensity(spectrum, low_frequency_avg, self.config.override)
        state.stats.record(specified_bpm, intensity, False, True)
        return BPMEstimate(bpm=specified_bpm, beat_intensity=intensity, is_override=True)

    def get_tempo_info(self) -> dict:
        """Snapshot of the detector internals for display/debugging."""
        state = self._state
        return {
            'bpm': self.current_bpm,
            'bpm_history': list(state.bpm_history),
            'onsets': len(state.onset_history),
            'flux_samples': len(state.flux_history),
            'histogram': state.ioi_histogram.weights(),
            'last_onset_time': state.last_onset_time,
            'last_beat_time': state.last_beat_time,
        }

    def session_summary(self, ended_at: Optional[float] = None) -> dict:
        return self._state.stats.summary(ended_at)

    def log_shutdown_summary(self) -> None:
        stats = self._state.stats
        if stats.ticks <= 0:
            return
        summary = stats.summary()
        log_event(
            "INFO",
            "Tempo",
            "Session summary",
            ticks=summary["ticks"],
            seconds=f"{summary['seconds']:.1f}",
            onsets=summary["onsets"],
            override_ticks=summary["override_ticks"],
            bpm_min=f"{summary['bpm_min']:.1f}",
            bpm_max=f"{summary['bpm_max']:.1f}",
            bpm_mean=f"{summary['bpm_mean']:.1f}",
            peak_intensity=f"{summary['peak_intensity']:.3f}",
        )
