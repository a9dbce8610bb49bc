"""Logging setup for the salary pipeline.

Every record carries the id of the training run that produced it (``none``
outside a run) and the pipeline stage it belongs to, so a single training run
can be followed through ingestion, fitting and persistence in either text or
JSON output.
"""

import contextvars
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import IO, Dict, Optional

from pythonjsonlogger import jsonlogger

run_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("run_id", default=None)
stage_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("stage", default=None)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [run_id=%(run_id)s stage=%(stage)s] - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s %(run_id)s %(stage)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# third-party loggers that are too chatty at INFO during training runs
QUIET_LIBRARIES: Dict[str, int] = {
    "mlflow": logging.WARNING,
    "urllib3": logging.WARNING,
    "git": logging.WARNING,
}


class RunIDFilter(logging.Filter):
    """Stamps records with the current run id and pipeline stage."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get() or "none"
        record.stage = stage_var.get() or "-"
        return True


class RunTracingContext:
    """Context manager binding a training run id (and optionally a stage) to log records.

    Attributes:
        run_id (Optional[str]): Run id to bind; None leaves the current one in place.
        stage (Optional[str]): Pipeline stage name, e.g. ``train`` or ``persist``.
    """

    def __init__(self, run_id: Optional[str] = None, stage: Optional[str] = None):
        self.run_id = run_id
        self.stage = stage
        self._tokens: list = []

    def __enter__(self) -> "RunTracingContext":
        if self.run_id:
            self._tokens.append((run_id_var, run_id_var.set(self.run_id)))
        if self.stage:
            self._tokens.append((stage_var, stage_var.set(self.stage)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def _build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return jsonlogger.JsonFormatter(JSON_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RunIDFilter())
    root.addHandler(handler)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    json_format: bool = False,
    module_levels: Optional[Dict[str, int]] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    stream: Optional[IO] = None,
) -> None:
    """Configure the root logger.

    Args:
        level (int): Root log level.
        log_file (Optional[str]): Also write to this rotating file.
        json_format (bool): Emit one JSON object per record.
        module_levels (Optional[Dict[str, int]]): Per-logger levels, applied after the
            defaults in ``QUIET_LIBRARIES``.
        max_bytes (int): Rotation size of the log file.
        backup_count (int): Rotated files to keep.
        stream (Optional[IO]): Console stream, stdout by default.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = _build_formatter(json_format)
    _attach(root_logger, logging.StreamHandler(stream or sys.stdout), level, formatter)
    if log_file:
        _attach(
            root_logger,
            RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count),
            level,
            formatter,
        )

    levels = dict(QUIET_LIBRARIES)
    levels.update(module_levels or {})
    for module_name, module_level in levels.items():
        logging.getLogger(module_name).setLevel(module_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_run_id() -> Optional[str]:
    """Return the training run id bound to the current context, if any."""
    return run_id_var.get()


def get_stage() -> Optional[str]:
    return stage_var.get()
