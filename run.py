#!/usr/bin/env python3
"""
tempobeat - Real-time tempo and beat-intensity estimator

Drives the estimator from a synthetic pulse train or a live microphone and
prints the running BPM / beat intensity once per second.
"""

import argparse
import cProfile
import sys
from pathlib import Path

from config import Config, SourceKind
from config_persistence import get_config_dir, load_config
from frame_sources import MicrophoneSource, SourceError, SyntheticPulseSource
from logging_utils import log_event, set_log_level
from tick_driver import TickDriver


def build_source(config: Config, specified_bpm=None):
    drv = config.driver
    full_scale = config.normalizer.full_scale
    if drv.source == SourceKind.MICROPHONE:
        return MicrophoneSource(n_bins=drv.bins, sample_rate=drv.sample_rate,
                                device_index=drv.device_index, full_scale=full_scale)
    return SyntheticPulseSource(drv.pulse_period_ms, n_bins=drv.bins,
                                specified_bpm=specified_bpm, full_scale=full_scale)


def run_app(config: Config, seconds: float, specified_bpm=None, report_dir=None) -> int:
    status = {"next_report_ms": 0.0}
    every_ms = config.driver.report_every_s * 1000.0

    def print_status(estimate):
        now_ms = driver.now_ms()
        if now_ms < status["next_report_ms"]:
            return
        status["next_report_ms"] = now_ms + every_ms
        mode = "specified" if estimate.is_override else "detected"
        print(f"[{now_ms / 1000.0:6.1f}s] bpm={estimate.bpm:6.1f} ({mode}) "
              f"intensity={estimate.beat_intensity:.2f}", flush=True)

    driver = TickDriver(config, on_estimate=print_status, report_dir=report_dir)
    try:
        driver.switch_source(build_source(config, specified_bpm))
    except SourceError as e:
        log_event("ERROR", "Driver", "Could not start source", error=e)
        return 1

    try:
        driver.run(seconds)
    except KeyboardInterrupt:
        log_event("INFO", "Driver", "Interrupted")
    finally:
        driver.shutdown()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the tempobeat estimator")
    parser.add_argument("--source", choices=["synthetic", "microphone"], default=None,
                        help="Frame source (default from config: synthetic)")
    parser.add_argument("--period-ms", type=float, default=None,
                        help="Pulse period of the synthetic source in ms")
    parser.add_argument("--bpm", type=float, default=None,
                        help="Specified tempo; bypasses detection when > 0")
    parser.add_argument("--fps", type=float, default=None, help="Ticks per second")
    parser.add_argument("--bins", type=int, default=None, help="Spectrum bins per frame")
    parser.add_argument("--seconds", type=float, default=10.0,
                        help="How long to run (default: 10)")
    parser.add_argument("--report-dir", default=None,
                        help="Write session reports here (default: config dir)")
    parser.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    args = parser.parse_args()

    config = load_config()
    if args.source is not None:
        config.driver.source = SourceKind[args.source.upper()]
    if args.period_ms is not None:
        config.driver.pulse_period_ms = args.period_ms
    if args.fps is not None:
        config.driver.fps = args.fps
    if args.bins is not None:
        config.driver.bins = args.bins
    set_log_level(args.log_level or config.log_level)

    report_dir = Path(args.report_dir) if args.report_dir else get_config_dir() / "reports"

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_app(config, args.seconds, args.bpm, report_dir)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_app(config, args.seconds, args.bpm, report_dir)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
