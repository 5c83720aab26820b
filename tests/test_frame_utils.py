import unittest

import numpy as np

from config import NormalizerConfig
from frame_utils import (
    InvalidFrame,
    analyze_frame,
    band_average,
    high_frequency_average,
    low_frequency_average,
    make_frame,
    normalize_magnitudes,
    round_half_up,
    spectrum_from_samples,
    validate_magnitudes,
)


class TestFrameUtils(unittest.TestCase):
    def test_normalize_byte_magnitudes(self):
        spectrum = normalize_magnitudes([0, 51, 255, 510])
        np.testing.assert_allclose(spectrum, [0.0, 0.2, 1.0, 1.0])

    def test_low_emphasis_boosts_only_low_bins(self):
        cfg = NormalizerConfig(full_scale=1.0, low_emphasis=0.5, low_emphasis_fraction=0.5)
        spectrum = normalize_magnitudes([0.4, 0.4, 0.4, 0.4], cfg)
        np.testing.assert_allclose(spectrum, [0.6, 0.6, 0.4, 0.4])

    def test_validate_clips_out_of_range_values(self):
        arr = validate_magnitudes([-0.5, 0.5, 1.5])
        np.testing.assert_allclose(arr, [0.0, 0.5, 1.0])

    def test_validate_rejects_malformed_frames(self):
        with self.assertRaises(InvalidFrame):
            validate_magnitudes([0.1, np.nan, 0.2])
        with self.assertRaises(InvalidFrame):
            validate_magnitudes([0.1, np.inf])
        with self.assertRaises(InvalidFrame):
            validate_magnitudes([])
        with self.assertRaises(InvalidFrame):
            validate_magnitudes(np.zeros((2, 2)))
        with self.assertRaises(InvalidFrame):
            validate_magnitudes([0.1, 0.2], expected_len=3)

    def test_invalid_frame_is_a_value_error(self):
        self.assertTrue(issubclass(InvalidFrame, ValueError))

    def test_make_frame_keeps_timestamp(self):
        frame = make_frame([255, 0], 123)
        self.assertEqual(frame.timestamp_ms, 123.0)
        self.assertEqual(len(frame), 2)

    def test_band_averages(self):
        spectrum = np.array([1.0, 1.0, 1.0, 0.0, 0.0, 0.0, 0.5, 0.5, 0.5])
        self.assertAlmostEqual(low_frequency_average(spectrum), 1.0)
        self.assertAlmostEqual(high_frequency_average(spectrum), 0.5)
        self.assertAlmostEqual(band_average(spectrum, 0.0, 2.0 / 3.0), 0.5)

    def test_narrow_band_covers_at_least_one_bin(self):
        spectrum = np.array([0.9, 0.1, 0.1, 0.1])
        self.assertAlmostEqual(band_average(spectrum, 0.02, 0.05), 0.9)

    def test_analyze_frame_volume_and_averages(self):
        freq = np.zeros(12)
        freq[:4] = 255
        silent = np.full(64, 128)
        spectrum, features = analyze_frame(freq, silent)
        self.assertEqual(features.volume, 0.0)
        self.assertAlmostEqual(features.low_frequency_average, 1.0)
        self.assertAlmostEqual(features.high_frequency_average, 0.0)
        self.assertAlmostEqual(float(spectrum[0]), 1.0)

        square = np.tile([0, 256], 32)
        _, loud = analyze_frame(freq, square)
        self.assertAlmostEqual(loud.volume, 1.0)

    def test_spectrum_from_samples_peaks_at_tone(self):
        sample_rate = 8000
        n = 1024
        t = np.arange(n) / sample_rate
        tone = 0.5 * np.sin(2 * np.pi * 1000.0 * t)
        spectrum = spectrum_from_samples(tone, n // 2 + 1)
        self.assertEqual(len(spectrum), n // 2 + 1)
        peak_bin = int(np.argmax(spectrum))
        self.assertEqual(peak_bin, 128)  # 1000 Hz / (8000 / 1024)
        self.assertAlmostEqual(float(spectrum[peak_bin]), 0.5, delta=0.05)
        self.assertTrue(np.all((spectrum >= 0.0) & (spectrum <= 1.0)))

    def test_spectrum_from_samples_resamples_and_mixes(self):
        stereo = np.zeros((256, 2))
        spectrum = spectrum_from_samples(stereo, 64)
        self.assertEqual(spectrum.shape, (64,))
        self.assertFalse(np.any(spectrum))

    def test_round_half_up(self):
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.49), 2)


if __name__ == "__main__":
    unittest.main()
