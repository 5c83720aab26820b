import unittest

from config import ScorerConfig
from tempo_scorer import TempoScorer


def periodic(period_ms, count, start=1000.0):
    return [start + i * period_ms for i in range(count)]


class TestTempoScorer(unittest.TestCase):
    def setUp(self):
        self.scorer = TempoScorer(ScorerConfig())

    def test_pair_intervals_are_positive_and_complete(self):
        intervals = sorted(self.scorer.pair_intervals([0.0, 100.0, 300.0]).tolist())
        self.assertEqual(intervals, [100.0, 200.0, 300.0])

    def test_perfect_period_scores_one(self):
        onsets = periodic(500.0, 10)
        self.assertAlmostEqual(self.scorer.score(120, onsets), 1.0, places=9)

    def test_subharmonic_scores_lower(self):
        onsets = periodic(500.0, 10)
        self.assertLess(self.scorer.score(60, onsets), self.scorer.score(120, onsets))

    def test_pair_scan_needs_four_onsets(self):
        self.assertEqual(self.scorer.score(120, periodic(500.0, 3)), 0.0)
        self.assertGreater(self.scorer.score(120, periodic(500.0, 4)), 0.0)

    def test_select_picks_best_aligned_candidate(self):
        onsets = periodic(500.0, 12)
        self.assertEqual(self.scorer.select([60, 80, 90, 120, 160, 180], onsets), 120)

    def test_select_ties_keep_lowest_bpm(self):
        onsets = periodic(60000.0 / 90.0, 12)
        # Every 90 BPM pair is also a whole number of 180 BPM beats
        self.assertEqual(self.scorer.select([90, 180], onsets), 90)

    def test_select_prefers_true_tempo_over_rounded_double(self):
        # 650 ms is 92.3 BPM; whole-BPM 185 fits the pairs marginally better than 92
        onsets = periodic(650.0, 12)
        candidates = [62, 69, 92, 123, 138, 185]
        self.assertGreater(self.scorer.score(185, onsets), self.scorer.score(92, onsets))
        self.assertEqual(self.scorer.select(candidates, onsets), 92)

    def test_zero_tie_tolerance_takes_strict_maximum(self):
        scorer = TempoScorer(ScorerConfig(tie_tolerance=0.0))
        onsets = periodic(650.0, 12)
        self.assertEqual(scorer.select([62, 69, 92, 123, 138, 185], onsets), 185)

    def test_select_falls_back_to_majority_below_eight_onsets(self):
        onsets = periodic(500.0, 5)
        self.assertEqual(self.scorer.select([60, 120, 180], onsets, raw_candidates=[120, 60, 120]), 120)
        self.assertEqual(self.scorer.select([60, 120, 180], onsets, raw_candidates=[90, 60]), 90)
        self.assertEqual(self.scorer.select([60, 120, 180], onsets, raw_candidates=[]), 60)

    def test_jittered_onsets_still_score(self):
        onsets = [1000.0, 1510.0, 1995.0, 2505.0, 3000.0, 3490.0, 4004.0, 4500.0]
        score = self.scorer.score(120, onsets)
        self.assertGreater(score, 0.5)
        self.assertLessEqual(score, 1.0)


if __name__ == "__main__":
    unittest.main()
