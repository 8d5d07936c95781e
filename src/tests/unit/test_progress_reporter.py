#!/usr/bin/env python3
"""
Unit tests for SlidingWindowRateCalculator and ProgressTracker
"""

from unittest.mock import patch

from s3_batch_sync.sync.progress_reporter import ProgressTracker, SlidingWindowRateCalculator


class TestSlidingWindowRateCalculator:
    """Test SlidingWindowRateCalculator functionality."""

    def test_initialization_default_window_size(self):
        calc = SlidingWindowRateCalculator()
        assert calc.window_size == 5
        assert calc.batch_times == []

    def test_window_size_limiting_fifo(self):
        """Test that oldest entries are removed first."""
        calc = SlidingWindowRateCalculator(window_size=3)
        for i in range(5):
            calc.add_batch(100.0 + i, 10 * (i + 1))

        assert calc.batch_times == [(102.0, 30), (103.0, 40), (104.0, 50)]

    def test_get_rate_uses_window(self):
        calc = SlidingWindowRateCalculator(window_size=3)
        calc.add_batch(100.0, 10)
        calc.add_batch(104.0, 50)

        assert calc.get_rate(fallback_start_time=0.0, fallback_processed_count=0) == 10.0

    def test_get_rate_insufficient_data_uses_fallback(self):
        calc = SlidingWindowRateCalculator(window_size=5)
        calc.add_batch(101.0, 10)

        with patch("time.time", return_value=105.0):
            rate = calc.get_rate(fallback_start_time=100.0, fallback_processed_count=10)

        assert rate == 2.0

    def test_zero_time_span_does_not_divide_by_zero(self):
        calc = SlidingWindowRateCalculator()
        calc.add_batch(100.0, 10)
        calc.add_batch(100.0, 20)

        assert calc.get_rate(100.0, 20) == 10.0


class TestProgressTracker:
    def test_increment_step_counts(self):
        tracker = ProgressTracker("files", interval=3600)
        tracker.increment_step()
        tracker.increment_step(4)

        assert tracker.completed == 5

    def test_reports_at_most_once_per_interval(self, capsys):
        tracker = ProgressTracker("files", total_items=10, interval=3600)

        tracker.increment_step()
        tracker.increment_step()

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("1/10 (10.0%)")

    def test_show_without_total(self, capsys):
        tracker = ProgressTracker("objects", interval=3600)
        tracker.completed = 3

        tracker.show()

        assert "3 objects" in capsys.readouterr().out

    def test_show_nothing_before_progress(self, capsys):
        ProgressTracker("files").show()

        assert capsys.readouterr().out == ""
