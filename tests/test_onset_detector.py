import unittest

import numpy as np

from config import Config
from detector_state import DetectorState
from onset_detector import OnsetDetector


def flat(n=100, level=0.1):
    return np.full(n, level)


def spike(n=100, level=0.1, peak=0.9, bins=10):
    spectrum = flat(n, level)
    spectrum[:bins] = peak
    return spectrum


class TestOnsetDetector(unittest.TestCase):
    def setUp(self):
        self.config = Config()
        self.detector = OnsetDetector(self.config.onset)
        self.state = DetectorState.fresh(self.config)

    def test_bin_weights_follow_band_positions(self):
        weights = self.detector.bin_weights(10)
        np.testing.assert_allclose(weights, [0.8, 1.2, 1.2, 1.2, 1.2, 1.0, 1.0, 1.0, 0.6, 0.6])

    def test_compute_flux_counts_only_increases(self):
        rising = self.detector.compute_flux(np.ones(10), np.zeros(10))
        self.assertAlmostEqual(rising, 1.0)
        falling = self.detector.compute_flux(np.zeros(10), np.ones(10))
        self.assertEqual(falling, 0.0)

    def test_compute_flux_weights_low_mid_bins_higher(self):
        prev = np.zeros(10)
        low_mid = prev.copy()
        low_mid[2] = 1.0
        top = prev.copy()
        top[9] = 1.0
        self.assertGreater(self.detector.compute_flux(low_mid, prev), self.detector.compute_flux(top, prev))

    def test_adaptive_threshold_steady_flux_uses_max_factor(self):
        self.assertAlmostEqual(self.detector.adaptive_threshold([0.1] * 10), 0.18)

    def test_adaptive_threshold_volatile_flux_uses_min_factor(self):
        history = [0.0] * 5 + [0.1] + [1.0] * 5
        # median 0.1, variance far above median^2 -> factor 1.2
        self.assertAlmostEqual(self.detector.adaptive_threshold(history), 0.12)

    def test_adaptive_threshold_has_floor(self):
        self.assertEqual(self.detector.adaptive_threshold([0.0] * 10), self.config.onset.threshold_floor)

    def test_min_spacing(self):
        self.assertEqual(self.detector.min_spacing_ms(None), 100.0)
        self.assertEqual(self.detector.min_spacing_ms(120), 150.0)
        self.assertAlmostEqual(self.detector.min_spacing_ms(200), 120.0)
        self.assertEqual(self.detector.min_spacing_ms(500), 60.0)

    def test_first_frame_only_stores_spectrum(self):
        self.assertIsNone(self.detector.detect(self.state, spike(), 0.0))
        self.assertIsNotNone(self.state.previous_spectrum)
        self.assertEqual(len(self.state.flux_history), 0)

    def test_spike_after_quiet_frames_is_an_onset(self):
        for i in range(10):
            self.assertIsNone(self.detector.detect(self.state, flat(), i * 16.0))
        onset = self.detector.detect(self.state, spike(), 200.0)
        self.assertIsNotNone(onset)
        self.assertEqual(onset.timestamp_ms, 200.0)
        self.assertEqual(onset.strength, 1.0)
        self.assertEqual(self.state.last_onset_time, 200.0)
        self.assertEqual(list(self.state.onset_history), [200.0])

    def test_constant_spectrum_never_triggers(self):
        for i in range(200):
            self.assertIsNone(self.detector.detect(self.state, flat(level=0.5), i * 16.0))
        self.assertEqual(len(self.state.onset_history), 0)

    def test_onsets_closer_than_min_spacing_are_ignored(self):
        self.detector.detect(self.state, flat(), 0.0)
        self.detector.detect(self.state, flat(), 16.0)
        self.assertIsNotNone(self.detector.detect(self.state, spike(), 32.0))
        self.detector.detect(self.state, flat(), 48.0)
        self.assertIsNone(self.detector.detect(self.state, spike(), 80.0))
        self.detector.detect(self.state, flat(), 120.0)
        self.assertIsNotNone(self.detector.detect(self.state, spike(), 200.0))

    def test_flux_history_is_bounded(self):
        for i in range(300):
            self.detector.detect(self.state, spike() if i % 2 else flat(), i * 16.0)
        self.assertLessEqual(len(self.state.flux_history), 100)

    def test_onset_history_pruned_every_tick(self):
        self.detector.detect(self.state, flat(), 0.0)
        self.detector.detect(self.state, flat(), 16.0)
        self.assertIsNotNone(self.detector.detect(self.state, spike(), 100.0))
        self.detector.detect(self.state, flat(), 14000.0)
        self.assertEqual(len(self.state.onset_history), 1)
        self.detector.detect(self.state, flat(), 15100.0)
        self.assertEqual(len(self.state.onset_history), 0)

    def test_previous_spectrum_is_a_copy(self):
        spectrum = flat()
        self.detector.detect(self.state, spectrum, 0.0)
        spectrum[:] = 1.0
        self.assertAlmostEqual(float(self.state.previous_spectrum[0]), 0.1)


if __name__ == "__main__":
    unittest.main()
