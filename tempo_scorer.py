"""
tempobeat - Autocorrelation Scorer
Picks the BPM candidate whose beat period best divides the observed
onset-pair intervals into whole beats.
"""
from __future__ import annotations

from collections import Counter
from typing import Sequence

import numpy as np

from config import ScorerConfig
from logging_utils import log_event


class TempoScorer:
    def __init__(self, config: ScorerConfig | None = None):
        self.config = config or ScorerConfig()

    def pair_intervals(self, onset_times: Sequence[float]) -> np.ndarray:
        """Differences t_j - t_i for every unordered pair i < j."""
        times = np.asarray(onset_times, dtype=np.float64)
        if len(times) < 2:
            return np.zeros(0)
        diffs = np.subtract.outer(times, times)
        rows, cols = np.triu_indices(len(times), k=1)
        return diffs[cols, rows]

    def score(self, bpm: float, onset_times: Sequence[float], intervals: np.ndarray | None = None) -> float:
        """Mean per-pair alignment of *bpm* with the onsets, 0.0-1.0.

        A pair counts when its interval lies within `max_error` (relative)
        of a whole number of beats; it contributes 1 / (1 + error).
        """
        cfg = self.config
        if len(onset_times) < cfg.min_pair_onsets or bpm <= 0:
            return 0.0
        if intervals is None:
            intervals = self.pair_intervals(onset_times)
        if len(intervals) == 0:
            return 0.0

        beat_interval = 60000.0 / bpm
        ratio = intervals / beat_interval
        nearest = np.floor(ratio + 0.5)
        valid = nearest > 0
        error = np.full(len(ratio), np.inf)
        error[valid] = np.abs(ratio[valid] - nearest[valid]) / nearest[valid]
        hits = error < cfg.max_error
        total = float(np.sum(1.0 / (1.0 + error[hits])))
        return total / len(intervals)

    def majority(self, raw_candidates: Sequence[int], candidates: Sequence[int]) -> int:
        """Most frequent raw candidate, first encountered on ties."""
        if raw_candidates:
            return Counter(raw_candidates).most_common(1)[0][0]
        return candidates[0]

    def select(self, candidates: Sequence[int], onset_times: Sequence[float],
               raw_candidates: Sequence[int] = ()) -> int:
        """Winning BPM among *candidates* (non-empty).

        Scores within `tie_tolerance` (relative) of the best count as a tie
        and the lowest tied BPM wins. Candidates are whole BPM values, so a
        double-tempo harmonic can fit an off-grid period a hair better than
        the true tempo does.
        """
        cfg = self.config
        if len(onset_times) < cfg.min_onsets:
            return self.majority(raw_candidates, candidates)

        intervals = self.pair_intervals(onset_times)
        scores = [(bpm, self.score(bpm, onset_times, intervals)) for bpm in candidates]
        best_score = max(s for _, s in scores)
        cutoff = best_score * (1.0 - cfg.tie_tolerance)
        best_bpm = min(bpm for bpm, s in scores if s >= cutoff)

        log_event("DEBUG", "Scorer", "Candidate selected",
                  bpm=best_bpm, score=f"{best_score:.3f}",
                  candidates=len(candidates), onsets=len(onset_times))
        return best_bpm
