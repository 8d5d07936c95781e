#!/usr/bin/env python3
"""
Progress Reporter for Transfers

Rate calculation and console progress lines for push, pull and copy.
"""

import logging
import time

from ..common import format_duration

logger = logging.getLogger(__name__)


class SlidingWindowRateCalculator:
    """
    Calculate processing rates using a sliding window for more accurate ETAs.

    This prevents ETAs from being skewed by startup overhead or early slow batches
    by using only the most recent completions for rate calculation.
    """

    def __init__(self, window_size: int = 5):
        self.window_size = window_size
        self.batch_times: list[tuple[float, int]] = []  # (timestamp, processed_count)

    def add_batch(self, timestamp: float, processed_count: int) -> None:
        """
        Add a completion record.

        Args:
            timestamp: Time when the increment happened
            processed_count: Cumulative number of items processed
        """
        self.batch_times.append((timestamp, processed_count))

        if len(self.batch_times) > self.window_size:
            self.batch_times.pop(0)

    def get_rate(self, fallback_start_time: float, fallback_processed_count: int) -> float:
        """Processing rate in items per second."""
        if len(self.batch_times) >= 2:
            oldest_time, oldest_count = self.batch_times[0]
            newest_time, newest_count = self.batch_times[-1]

            time_span = newest_time - oldest_time
            count_span = newest_count - oldest_count

            return count_span / max(1, time_span)
        else:
            # Fallback to overall rate for first batch
            overall_elapsed = time.time() - fallback_start_time
            return fallback_processed_count / max(1, overall_elapsed)


class ProgressTracker:
    """
    Progress sink that prints a rate/ETA line at most every ``interval`` seconds.
    """

    def __init__(self, operation_name: str = "files", total_items: int | None = None, interval: float = 5.0):
        self.operation_name = operation_name
        self.total_items = total_items
        self.interval = interval
        self.completed = 0
        self.start_time = time.time()
        self.last_report_time = 0.0
        self.rate_calculator = SlidingWindowRateCalculator()

    def increment_step(self, count: int = 1) -> None:
        self.completed += count
        now = time.time()
        if now - self.last_report_time >= self.interval:
            self.last_report_time = now
            self.show()

    def show(self) -> None:
        if self.completed == 0:
            return

        current_time = time.time()
        elapsed = current_time - self.start_time
        self.rate_calculator.add_batch(current_time, self.completed)
        rate = self.rate_calculator.get_rate(self.start_time, self.completed)

        eta_text = ""
        if rate > 0 and self.total_items and self.total_items > self.completed:
            eta_text = f" (ETA: {format_duration((self.total_items - self.completed) / rate)})"

        if self.total_items:
            percentage = (self.completed / self.total_items) * 100
            progress_part = f"{self.completed:,}/{self.total_items:,} ({percentage:.1f}%)"
        else:
            progress_part = f"{self.completed:,} {self.operation_name}"

        line = f"{progress_part} - {rate:.1f} {self.operation_name}/sec - elapsed: {format_duration(elapsed)}{eta_text}"
        print(line, flush=True)
        logger.info(f"Progress: {line}")
