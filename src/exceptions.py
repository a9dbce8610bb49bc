"""Custom exceptions for the salary prediction pipeline."""

from typing import Any, Dict, Optional


class SalaryPipelineError(Exception):
    """Base exception for pipeline errors."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize pipeline exception.

        Args:
            code (str): Error code.
            message (str): Error message.
            details (Optional[Dict[str, Any]]): Additional error details.
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class EmptyDatasetError(SalaryPipelineError):
    """Raised when the dataset input is blank."""

    def __init__(self, message: str = "Dataset file is empty"):
        super().__init__(code="EMPTY_DATASET", message=message)


class InsufficientDataError(SalaryPipelineError):
    """Raised when too few valid records remain after cleaning."""

    def __init__(self, valid_count: int, required: int):
        """Initialize insufficient data error.

        Args:
            valid_count (int): Number of valid records found.
            required (int): Minimum number of valid records.
        """
        super().__init__(
            code="INSUFFICIENT_DATA",
            message=(
                f"Insufficient valid data for analysis: "
                f"{valid_count} valid records, at least {required} required"
            ),
            details={"valid_count": valid_count, "required": required},
        )


class CacheCorruptionError(SalaryPipelineError):
    """Raised internally when a cached model entry cannot be used."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="CACHE_CORRUPTED", message=message, details=details)


class TrainingFailure(SalaryPipelineError):
    """Raised when model training fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="TRAINING_FAILED", message=message, details=details)


class TrainingAbandoned(SalaryPipelineError):
    """Raised from a progress callback to abandon an in-flight training run."""

    def __init__(self, message: str = "Training run abandoned"):
        super().__init__(code="TRAINING_ABANDONED", message=message)


class PredictionFailure(SalaryPipelineError):
    """Raised when a single prediction cannot be computed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="PREDICTION_FAILED", message=message, details=details)


class InvalidEncodingError(SalaryPipelineError):
    """Raised when the dataset is not valid UTF-8 text."""

    def __init__(self, reason: str):
        super().__init__(
            code="INVALID_ENCODING",
            message=f"Dataset is not valid UTF-8 text: {reason}",
            details={"reason": reason},
        )
