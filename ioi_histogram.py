"""
tempobeat - Inter-Onset Interval Histogram
Decaying weights over 10 ms interval buckets, turned into BPM candidates.
"""
from __future__ import annotations

from typing import Iterable

from config import HistogramConfig
from frame_utils import round_half_up


class IOIHistogram:
    """
    Bounded interval histogram with an explicit sweep-and-prune step.

    Keys are bucket centers in milliseconds, restricted to
    [min_interval_ms, max_interval_ms], so at most
    (max - min) / bucket_ms + 1 buckets can exist. After every onset all
    weights decay and buckets lighter than `prune_below` are evicted.
    """
    __slots__ = ('config', '_buckets')

    def __init__(self, config: HistogramConfig | None = None):
        self.config = config or HistogramConfig()
        self._buckets: dict[int, float] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    @property
    def capacity(self) -> int:
        cfg = self.config
        return int((cfg.max_interval_ms - cfg.min_interval_ms) // cfg.bucket_ms) + 1

    def weights(self) -> dict[int, float]:
        return dict(self._buckets)

    def bucket_for(self, interval_ms: float) -> int:
        width = self.config.bucket_ms
        return round_half_up(interval_ms / width) * width

    def add_onset(self, onset_time: float, prior_times: Iterable[float]) -> int:
        """Count intervals from every prior onset, then decay. Returns buckets touched."""
        cfg = self.config
        touched = 0
        for prior in prior_times:
            interval = onset_time - prior
            if cfg.min_interval_ms <= interval <= cfg.max_interval_ms:
                bucket = self.bucket_for(interval)
                self._buckets[bucket] = self._buckets.get(bucket, 0.0) + 1.0
                touched += 1
        self.decay()
        return touched

    def decay(self) -> None:
        """Multiply every weight by the decay factor and drop light buckets."""
        cfg = self.config
        for bucket in list(self._buckets):
            weight = self._buckets[bucket] * cfg.decay
            if weight < cfg.prune_below:
                del self._buckets[bucket]
            else:
                self._buckets[bucket] = weight

    def top_buckets(self) -> list[tuple[int, float]]:
        """Heaviest buckets above the minimum weight, heaviest first."""
        cfg = self.config
        eligible = [(b, w) for b, w in self._buckets.items() if w > cfg.min_bucket_weight]
        # Equal weights keep the shorter interval first
        eligible.sort(key=lambda item: (-item[1], item[0]))
        return eligible[:cfg.top_buckets]

    def raw_candidates(self, min_bpm: float = 60.0, max_bpm: float = 200.0) -> list[int]:
        """Base BPM of each top bucket (no harmonics), heaviest bucket first."""
        result = []
        for bucket, _ in self.top_buckets():
            bpm = round_half_up(60000.0 / bucket)
            if min_bpm <= bpm <= max_bpm:
                result.append(bpm)
        return result

    def candidates(self, min_bpm: float = 60.0, max_bpm: float = 200.0,
                   default_bpm: float = 120.0) -> list[int]:
        """Sorted, deduplicated BPM candidates including harmonic variants."""
        found: set[int] = set()
        for bucket, _ in self.top_buckets():
            base = 60000.0 / bucket
            found.add(round_half_up(base))
            for factor in self.config.harmonics:
                found.add(round_half_up(base * factor))

        in_range = sorted(bpm for bpm in found if min_bpm <= bpm <= max_bpm)
        if not in_range:
            return [round_half_up(default_bpm)]
        return in_range

    def clear(self) -> None:
        self._buckets.clear()
