"""
tempobeat - Tick Driver
External scheduler that pulls a raw frame from the active source, normalizes
it and calls the estimator's single process_frame() entry point once per tick.
"""
from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional

from config import Config
from frame_sources import FrameSource
from frame_utils import FrameFeatures, SpectrumFrame, analyze_frame
from logging_utils import log_event
from session_reporter import TempoSessionReporter
from tempo_estimator import BPMEstimate, TempoEstimator


class TickDriver:
    def __init__(
        self,
        config: Config,
        estimator: Optional[TempoEstimator] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_estimate: Optional[Callable[[BPMEstimate], None]] = None,
        report_dir: Optional[Path] = None,
    ):
        self.config = config
        self.estimator = estimator or TempoEstimator(config)
        self.clock = clock
        self.sleep = sleep
        self.on_estimate = on_estimate
        self.source: Optional[FrameSource] = None
        self.latest: Optional[BPMEstimate] = None
        self.features: Optional[FrameFeatures] = None
        self.running = False
        self._origin = clock()
        self._reporter = None
        if report_dir is not None and config.report_generation_enabled:
            self._reporter = TempoSessionReporter(report_dir)

    def now_ms(self) -> float:
        return (self.clock() - self._origin) * 1000.0

    def _close_source(self) -> None:
        if self.source is None:
            return
        self.source.stop()
        self.source.disconnect()
        self._finish_session()

    def switch_source(self, source: FrameSource) -> None:
        """Stop and disconnect the current source, reset the estimator, start *source*."""
        previous = self.source.name if self.source is not None else None
        self._close_source()
        self.source = None
        self.estimator.reset()
        self.latest = None
        self.features = None
        source.start()
        self.source = source
        log_event("INFO", "Driver", "Source switched",
                  previous=previous, source=source.name,
                  specified_bpm=source.specified_bpm)

    def tick(self) -> Optional[BPMEstimate]:
        """Process one frame from the active source, if it has one ready."""
        if self.source is None:
            return None
        raw = self.source.next_frame(self.now_ms())
        if raw is None:
            return None
        spectrum, features = analyze_frame(raw.magnitudes, None, self.config.normalizer,
                                           self.config.override.low_band_fraction)
        self.features = features
        estimate = self.estimator.process_frame(
            SpectrumFrame(spectrum, raw.timestamp_ms),
            specified_bpm=self.source.specified_bpm,
            low_frequency_avg=features.low_frequency_average,
        )
        self.latest = estimate
        if self.on_estimate is not None:
            self.on_estimate(estimate)
        return estimate

    def run(self, seconds: Optional[float] = None) -> int:
        """Tick at the configured rate until *seconds* elapse or stop() is called.

        Returns the number of ticks processed.
        """
        period = 1.0 / self.config.driver.fps
        deadline = None if seconds is None else self.clock() + seconds
        ticks = 0
        self.running = True
        next_tick = self.clock()
        while self.running:
            now = self.clock()
            if deadline is not None and now >= deadline:
                break
            if now < next_tick:
                self.sleep(next_tick - now)
                continue
            if self.tick() is not None:
                ticks += 1
            next_tick += period
            # Skip missed ticks instead of bursting to catch up
            if next_tick < now:
                next_tick = now + period
        self.running = False
        return ticks

    def stop(self) -> None:
        self.running = False

    def shutdown(self) -> None:
        self.running = False
        self._close_source()
        self.source = None

    def _finish_session(self) -> None:
        self.estimator.log_shutdown_summary()
        if self._reporter is None or self.estimator.state.stats.ticks == 0:
            return
        summary = self.estimator.session_summary()
        summary["source"] = self.source.name if self.source is not None else ""
        try:
            self._reporter.save_session(summary)
        except OSError as e:
            log_event("ERROR", "Report", "Failed to write session report", error=e)
