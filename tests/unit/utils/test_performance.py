import pytest

from src.utils.performance import (
    PerformanceMetrics,
    clear_metrics,
    format_timings,
    get_all_metrics,
    get_metric_stats,
    record_metric,
    timing_decorator,
)


def test_timing_decorator_records_metric():
    @timing_decorator(metric_name="unit_op")
    def op(x):
        return x * 2

    assert op(2) == 4
    assert op(3) == 6

    stats = get_metric_stats("unit_op")
    assert stats["count"] == 2
    assert stats["min"] <= stats["mean"] <= stats["max"]


def test_timing_decorator_records_errors():
    @timing_decorator(metric_name="failing_op")
    def op():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        op()

    assert get_metric_stats("failing_op") is None
    assert get_metric_stats("failing_op_error")["count"] == 1


def test_performance_metrics_context():
    with PerformanceMetrics("block") as timer:
        sum(range(1000))

    assert timer.elapsed >= 0
    assert get_all_metrics()["block"] == [timer.elapsed]


def test_clear_metrics():
    with PerformanceMetrics("block"):
        pass
    clear_metrics()
    assert get_all_metrics() == {}


def test_format_timings_uses_latest_values():
    record_metric("ingestion_time", 0.5)
    record_metric("ingestion_time", 0.25)
    record_metric("training_run_time", 4.1)

    assert format_timings() == "ingestion 0.25s, training 4.10s"


def test_format_timings_empty():
    assert format_timings() == ""
