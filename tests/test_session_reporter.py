import csv
import json
import tempfile
import unittest
from pathlib import Path

import numpy as np

from session_reporter import TempoSessionReporter


def summary(**overrides):
    row = {
        "session_started_at": 1000.0,
        "session_ended_at": 1010.0,
        "seconds": 10.0,
        "source": "synthetic",
        "ticks": 600,
        "onsets": 20,
        "override_ticks": 0,
        "bpm_min": 118.0,
        "bpm_max": 121.0,
        "bpm_mean": 119.8,
        "peak_intensity": 1.0,
    }
    row.update(overrides)
    return row


class TestTempoSessionReporter(unittest.TestCase):
    def test_save_session_writes_json_and_csv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            report_dir = Path(tmpdir)
            reporter = TempoSessionReporter(report_dir)
            reporter.save_session(summary(bpm_mean=np.float64(119.8), ticks=np.int64(600)))

            with open(report_dir / "tempo_session_report.json", "r", encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual(payload["session_count"], 1)
            self.assertEqual(payload["latest"]["ticks"], 600)
            self.assertAlmostEqual(payload["latest"]["bpm_mean"], 119.8, places=6)

            with open(report_dir / "tempo_session_report.csv", "r", newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
            self.assertEqual(len(rows), 1)
            self.assertEqual(rows[0]["source"], "synthetic")

    def test_sessions_accumulate_and_are_capped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            report_dir = Path(tmpdir)
            for i in range(4):
                TempoSessionReporter(report_dir, max_sessions=3).save_session(summary(ticks=i))

            with open(report_dir / "tempo_session_report.json", "r", encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual([s["ticks"] for s in payload["sessions"]], [1, 2, 3])
            self.assertEqual(payload["latest"]["ticks"], 3)

    def test_corrupt_report_starts_fresh(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            report_dir = Path(tmpdir)
            (report_dir / "tempo_session_report.json").write_text("{broken", encoding="utf-8")
            TempoSessionReporter(report_dir).save_session(summary())

            with open(report_dir / "tempo_session_report.json", "r", encoding="utf-8") as f:
                payload = json.load(f)
            self.assertEqual(payload["session_count"], 1)


if __name__ == "__main__":
    unittest.main()
