"""Wall-clock timings of the pipeline's expensive steps: ingestion, training and batch prediction."""

import functools
import threading
import time
from collections import defaultdict
from typing import Any, Callable, DefaultDict, Dict, Iterable, List, Optional

from src.utils.logger import get_logger

logger = get_logger(__name__)

INGESTION_TIME = "ingestion_time"
TRAINING_TIME = "training_total_time"
TRAINING_RUN_TIME = "training_run_time"
PREDICTION_BATCH_TIME = "prediction_batch_time"

TIMING_LABELS: Dict[str, str] = {
    INGESTION_TIME: "ingestion",
    TRAINING_RUN_TIME: "training",
    PREDICTION_BATCH_TIME: "batch prediction",
}

_samples: DefaultDict[str, List[float]] = defaultdict(list)
_samples_lock = threading.Lock()


def record_metric(name: str, seconds: float) -> None:
    with _samples_lock:
        _samples[name].append(seconds)


def timing_decorator(metric_name: Optional[str] = None, log_result: bool = False):
    """Time every call of the decorated function.

    Failed calls are recorded under ``<metric_name>_error`` so they do not skew
    the timings of successful ones.

    Args:
        metric_name (Optional[str]): Metric name, defaults to the qualified function name.
        log_result (bool): Also log each timing at debug level.

    Returns:
        Callable: Decorator.
    """

    def decorator(func: Callable) -> Callable:
        name = metric_name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            succeeded = False
            try:
                result = func(*args, **kwargs)
                succeeded = True
                return result
            finally:
                elapsed = time.perf_counter() - start
                record_metric(name if succeeded else f"{name}_error", elapsed)
                if log_result:
                    logger.debug(f"[PERF] {name} took {elapsed:.4f}s")

        return wrapper

    return decorator


class PerformanceMetrics:
    """Context manager timing a block; the elapsed time stays readable afterwards."""

    def __init__(self, metric_name: str):
        self.metric_name = metric_name
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self) -> "PerformanceMetrics":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()
        record_metric(self.metric_name, self.elapsed)

    @property
    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return end - self.start_time


def get_metric_stats(metric_name: str) -> Optional[Dict[str, float]]:
    """Summarize one metric.

    Returns:
        Optional[Dict[str, float]]: ``count``, ``total``, ``mean``, ``min`` and ``max``,
        or None if nothing was recorded.
    """
    with _samples_lock:
        values = list(_samples.get(metric_name, []))
    if not values:
        return None
    total = sum(values)
    return {
        "count": len(values),
        "total": total,
        "mean": total / len(values),
        "min": min(values),
        "max": max(values),
    }


def get_all_metrics() -> Dict[str, List[float]]:
    with _samples_lock:
        return {name: list(values) for name, values in _samples.items() if values}


def clear_metrics() -> None:
    with _samples_lock:
        _samples.clear()


def format_timings(metric_names: Iterable[str] = TIMING_LABELS) -> str:
    """Render the latest recorded value of each metric, e.g. ``ingestion 0.02s, training 4.10s``.

    Metrics that were never recorded are left out.
    """
    parts = []
    with _samples_lock:
        for name in metric_names:
            values = _samples.get(name)
            if values:
                parts.append(f"{TIMING_LABELS.get(name, name)} {values[-1]:.2f}s")
    return ", ".join(parts)
