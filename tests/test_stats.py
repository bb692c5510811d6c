import pytest

from pose_live.orchestration.stats import InferenceStats


class Clock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def timed(stats, clock, start, duration):
    clock.now = start
    stats.begin()
    clock.now = start + duration
    return stats.end()


def test_reports_rate_from_average_latency():
    reports = []
    clock = Clock()
    stats = InferenceStats(lambda rate, max_value: reports.append((rate, max_value)), clock=clock)

    assert timed(stats, clock, 100, 10) is None
    assert timed(stats, clock, 200, 30) is None
    rate = timed(stats, clock, 1000, 20)

    assert rate == pytest.approx(1000.0 / 20.0)
    assert reports == [(pytest.approx(50.0), 120)]
    assert stats.count == 0
    assert stats.sum_ms == 0.0
    assert stats.last_report_ms == 1020


def test_first_inference_reports_immediately():
    reports = []
    clock = Clock()
    stats = InferenceStats(lambda rate, _: reports.append(rate), clock=clock)
    timed(stats, clock, 5000, 25)
    assert reports == [pytest.approx(40.0)]


def test_no_report_without_samples():
    reports = []
    clock = Clock(10_000)
    stats = InferenceStats(lambda rate, _: reports.append(rate), clock=clock)
    assert stats.maybe_report() is None
    assert reports == []


def test_next_interval_starts_fresh():
    reports = []
    clock = Clock()
    stats = InferenceStats(lambda rate, _: reports.append(rate), clock=clock)
    timed(stats, clock, 2000, 100)
    timed(stats, clock, 2500, 50)
    assert len(reports) == 1
    timed(stats, clock, 3100, 10)
    assert reports == [pytest.approx(10.0), pytest.approx(1000.0 / 30.0)]


def test_cancelled_measurement_is_not_counted():
    clock = Clock()
    stats = InferenceStats(lambda rate, _: None, clock=clock)
    clock.now = 50
    stats.begin()
    stats.cancel()
    assert stats.end() is None
    assert stats.count == 0
