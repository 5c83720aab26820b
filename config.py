# tempobeat Configuration
# All default values and constants

from dataclasses import dataclass, field, is_dataclass
from enum import IntEnum

from logging_utils import log_event


CURRENT_CONFIG_VERSION = 2


class SourceKind(IntEnum):
    """Frame source used by the command line driver"""
    SYNTHETIC = 1
    MICROPHONE = 2


@dataclass
class NormalizerConfig:
    """Raw magnitude -> [0,1] spectrum conversion"""
    full_scale: float = 255.0          # Raw value mapped to 1.0 (byte analyser data = 255)
    low_emphasis: float = 0.0          # Extra gain on low bins (0 = off, 0.5 = +50%)
    low_emphasis_fraction: float = 0.33  # Fraction of the bin range that gets the emphasis


@dataclass
class OnsetConfig:
    """Spectral flux onset detection parameters"""
    flux_history_size: int = 100       # Bounded ring of recent flux values
    onset_window_ms: float = 15000.0   # Onset timestamps kept for this long
    # Per-band flux weights, bands given as upper edge fraction of the bin range
    band_edges: tuple = (0.1, 0.5, 0.8, 1.0)
    band_weights: tuple = (0.8, 1.2, 1.0, 0.6)
    threshold_factor_max: float = 1.8  # Factor for perfectly steady flux
    threshold_factor_span: float = 0.6  # Subtracted at full normalized variance
    threshold_floor: float = 1e-6      # Keeps the strength division defined on silent input
    strength_scale: float = 0.8        # strength = (flux - thr) / (thr * this)
    min_spacing_ms: float = 100.0      # Minimum onset spacing before a tempo is known
    spacing_tempo_divisor: float = 2.5  # spacing = 60000 / (bpm * this) once a tempo is known
    spacing_min_ms: float = 60.0
    spacing_max_ms: float = 150.0


@dataclass
class HistogramConfig:
    """Inter-onset interval histogram parameters"""
    min_interval_ms: float = 300.0
    max_interval_ms: float = 2000.0
    bucket_ms: int = 10                # Intervals are rounded to this bucket width
    decay: float = 0.95                # Applied to every bucket after each onset
    prune_below: float = 0.1           # Buckets lighter than this are removed
    top_buckets: int = 5               # Buckets considered for candidates
    min_bucket_weight: float = 1.0     # Buckets must be heavier than this to count
    harmonics: tuple = (2.0, 0.5, 1.5, 4.0 / 3.0)


@dataclass
class ScorerConfig:
    """Autocorrelation candidate scoring parameters"""
    min_onsets: int = 8                # Below this, fall back to majority vote
    min_pair_onsets: int = 4           # Pairwise scan returns 0 below this
    max_error: float = 0.1             # Relative beat error accepted per pair
    tie_tolerance: float = 0.01        # Scores within this fraction of the best count as a tie


@dataclass
class SmootherConfig:
    """BPM history smoothing"""
    history_size: int = 20
    default_bpm: float = 120.0
    min_bpm: float = 60.0
    max_bpm: float = 200.0


@dataclass
class IntensityConfig:
    """Onset-driven beat intensity envelope"""
    min_strength: float = 0.1          # Onsets weaker than this do not trigger a beat
    onset_scale: float = 2.0           # intensity = min(strength * this, 1)
    fade_fraction: float = 0.3         # Fade length as fraction of the beat interval
    max_fade_ms: float = 300.0


@dataclass
class OverrideConfig:
    """Intensity when the tempo is supplied externally (playlist metadata)"""
    low_scale: float = 2.5             # base = min(low_frequency_average * this, 1)
    low_band_fraction: float = 1.0 / 3.0  # Low-frequency average uses this share of bins
    kick_band_start: float = 0.02      # Kick-drum band as fractions of the bin range
    kick_band_end: float = 0.05
    kick_threshold: float = 0.6        # Kick average above this boosts the intensity
    kick_boost: float = 1.5


@dataclass
class DriverConfig:
    """Tick driver and command line defaults"""
    source: SourceKind = SourceKind.SYNTHETIC
    fps: float = 60.0                  # Ticks per second (display refresh rate)
    bins: int = 1024                   # Spectrum size for generated / captured frames
    sample_rate: int = 44100
    device_index: int | None = None    # None = system default input
    pulse_period_ms: float = 500.0     # Synthetic source pulse period
    report_every_s: float = 1.0        # Status line cadence


@dataclass
class Config:
    """Master configuration"""
    version: int = CURRENT_CONFIG_VERSION  # Schema version for persisted configs
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    onset: OnsetConfig = field(default_factory=OnsetConfig)
    histogram: HistogramConfig = field(default_factory=HistogramConfig)
    scorer: ScorerConfig = field(default_factory=ScorerConfig)
    smoother: SmootherConfig = field(default_factory=SmootherConfig)
    intensity: IntensityConfig = field(default_factory=IntensityConfig)
    override: OverrideConfig = field(default_factory=OverrideConfig)
    driver: DriverConfig = field(default_factory=DriverConfig)

    # Global
    log_level: str = "INFO"            # Logging level (DEBUG/INFO/WARNING/ERROR)
    report_generation_enabled: bool = True  # Write session reports on shutdown


def apply_dict_to_dataclass(target, data) -> None:
    """Recursively apply values from a dict onto a dataclass instance.
    Unknown keys are ignored; IntEnum fields are coerced when possible and
    tuple fields are restored from JSON lists."""
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if not hasattr(target, key):
            continue

        current = getattr(target, key)

        if is_dataclass(current) and isinstance(value, dict):
            apply_dict_to_dataclass(current, value)
            continue

        if isinstance(current, IntEnum):
            try:
                setattr(target, key, current.__class__(value))
            except ValueError:
                log_event("WARNING", "Config", "Could not convert value, keeping default",
                          key=key, type=current.__class__.__name__)
            continue

        if isinstance(current, tuple) and isinstance(value, list):
            value = tuple(value)

        setattr(target, key, value)


def _clamped(value, default: float, low: float, high: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        value = default
    return max(low, min(high, value))


def migrate_config(config: Config, loaded_version) -> None:
    """Upgrade older config structures to the current schema.
    Restores defaults for missing/null fields, clamps unsafe ranges and bumps version."""
    try:
        version = int(loaded_version) if loaded_version is not None else 0
    except (TypeError, ValueError):
        version = 0

    if version < 1:
        if getattr(config.smoother, 'default_bpm', None) is None:
            config.smoother.default_bpm = 120.0
        if getattr(config.override, 'kick_boost', None) is None:
            config.override.kick_boost = 1.5
        if getattr(config.intensity, 'onset_scale', None) is None:
            config.intensity.onset_scale = 2.0

    if version < 2:
        # v1 stored an absolute 1e-9 tie tolerance; v2 compares scores relatively
        config.scorer.tie_tolerance = ScorerConfig.tie_tolerance

    if getattr(config, 'report_generation_enabled', True) is None:
        config.report_generation_enabled = True
    if not getattr(config, 'log_level', None):
        config.log_level = "INFO"

    onset = config.onset
    if len(onset.band_edges) != len(onset.band_weights) or not onset.band_edges:
        log_event("WARNING", "Config", "Flux band tables mismatched, restoring defaults",
                  edges=len(onset.band_edges), weights=len(onset.band_weights))
        onset.band_edges = OnsetConfig.band_edges
        onset.band_weights = OnsetConfig.band_weights

    # Always clamp the tempo range and the decay factors
    smoother = config.smoother
    smoother.min_bpm = _clamped(smoother.min_bpm, 60.0, 20.0, 300.0)
    smoother.max_bpm = _clamped(smoother.max_bpm, 200.0, smoother.min_bpm, 400.0)
    smoother.default_bpm = _clamped(smoother.default_bpm, 120.0, smoother.min_bpm, smoother.max_bpm)
    smoother.history_size = int(_clamped(smoother.history_size, 20, 1, 200))

    config.histogram.decay = _clamped(config.histogram.decay, 0.95, 0.0, 1.0)
    config.onset.flux_history_size = int(_clamped(config.onset.flux_history_size, 100, 3, 1000))
    config.driver.fps = _clamped(config.driver.fps, 60.0, 1.0, 240.0)
    config.scorer.tie_tolerance = _clamped(config.scorer.tie_tolerance, 0.01, 0.0, 0.5)

    override = config.override
    override.kick_band_start = _clamped(override.kick_band_start, 0.02, 0.0, 1.0)
    override.kick_band_end = _clamped(override.kick_band_end, 0.05, override.kick_band_start, 1.0)

    config.version = CURRENT_CONFIG_VERSION


# Default config instance
DEFAULT_CONFIG = Config()
