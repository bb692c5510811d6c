# live_pose_demo/pose_live/orchestration/stats.py
import time
from typing import Callable, Optional


def _now_ms() -> float:
    return time.perf_counter() * 1000.0


class InferenceStats:
    """
    Rolling average of inference latency, reported as a rate once per interval.

    `on_report(rate, max_value)` receives 1000 / average_ms. Nothing is reported
    for an interval with no completed inference.
    """

    MAX_VALUE = 120

    def __init__(self, on_report: Callable[[float, float], None], interval_ms: float = 1000.0,
                 clock: Callable[[], float] = _now_ms):
        self.on_report = on_report
        self.interval_ms = interval_ms
        self.clock = clock
        self.sum_ms = 0.0
        self.count = 0
        self.last_report_ms = 0.0
        self._started_ms: Optional[float] = None

    def begin(self) -> None:
        self._started_ms = self.clock()

    def end(self) -> Optional[float]:
        """Records the inference started by `begin`; returns the rate if one was reported."""
        if self._started_ms is None:
            return None
        now = self.clock()
        self.sum_ms += now - self._started_ms
        self.count += 1
        self._started_ms = None
        return self.maybe_report(now)

    def cancel(self) -> None:
        """Drops a started measurement (the inference failed)."""
        self._started_ms = None

    def maybe_report(self, now: Optional[float] = None) -> Optional[float]:
        now = self.clock() if now is None else now
        if self.count == 0 or now - self.last_report_ms < self.interval_ms:
            return None
        average = self.sum_ms / self.count
        rate = 1000.0 / average if average > 0 else float(self.MAX_VALUE)
        self.sum_ms = 0.0
        self.count = 0
        self.last_report_ms = now
        self.on_report(rate, self.MAX_VALUE)
        return rate
