"""Inference service turning raw feature vectors and job profiles into salary estimates."""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import torch

from src.exceptions import PredictionFailure
from src.model.model import SalaryNetwork
from src.model.preprocessing import UNKNOWN_INDEX, FeatureEncoder
from src.model.scaler import Scaler
from src.model.schemas import JobProfile, ModelMetadata
from src.utils.data_utils import round_half_up
from src.utils.logger import get_logger
from src.utils.performance import PREDICTION_BATCH_TIME, timing_decorator

DEFAULT_CONFIDENCE_MARGIN = 0.15

_PROFILE_FIELDS_BY_FEATURE = {
    1: "experience_level",
    2: "employment_type",
    3: "company_size",
    5: "job_title",
}


def confidence_band(prediction: float, margin: float = DEFAULT_CONFIDENCE_MARGIN) -> Tuple[int, int]:
    """Return the fixed relative band around a prediction.

    This is a heuristic band, not an interval derived from validation residuals.

    Args:
        prediction (float): Predicted salary.
        margin (float): Relative half-width.

    Returns:
        Tuple[int, int]: (low, high), rounded.
    """
    return round_half_up(prediction * (1 - margin)), round_half_up(prediction * (1 + margin))


class PredictionResult:
    """Result of a single profile prediction."""

    def __init__(
        self,
        salary: int,
        low: int,
        high: int,
        features: List[float],
        unknown_fields: Optional[List[str]] = None,
    ) -> None:
        """Initialize prediction result.

        Args:
            salary (int): Predicted salary in USD.
            low (int): Lower end of the confidence band.
            high (int): Upper end of the confidence band.
            features (List[float]): Encoded feature vector used for the prediction.
            unknown_fields (Optional[List[str]]): Profile fields outside the known categories.
        """
        self.salary = salary
        self.low = low
        self.high = high
        self.features = features
        self.unknown_fields = unknown_fields or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "salary": self.salary,
            "low": self.low,
            "high": self.high,
            "features": self.features,
            "unknown_fields": self.unknown_fields,
        }


class SalaryPredictor:
    """Runs predictions with one trained network and the scaler it was trained with.

    Both are treated as read-only for the lifetime of the predictor.
    """

    def __init__(
        self,
        network: SalaryNetwork,
        scaler: Scaler,
        metadata: ModelMetadata,
        vocabulary: Optional[Sequence[str]] = None,
        confidence_margin: float = DEFAULT_CONFIDENCE_MARGIN,
    ) -> None:
        """Initialize the predictor.

        Args:
            network (SalaryNetwork): Trained network.
            scaler (Scaler): Scaler fitted on the network's training data.
            metadata (ModelMetadata): Model provenance.
            vocabulary (Optional[Sequence[str]]): Job title vocabulary for profile
                encoding. Defaults to ``metadata.top_job_titles``.
            confidence_margin (float): Relative half-width of the confidence band.
        """
        self.logger = get_logger(__name__)
        self.network = network
        self.network.eval()
        self.scaler = scaler
        self.metadata = metadata
        self.confidence_margin = confidence_margin
        self.encoder = FeatureEncoder(vocabulary if vocabulary is not None else metadata.top_job_titles)

    def _forward(self, vectors: Any) -> np.ndarray:
        try:
            X = np.asarray(vectors, dtype=np.float64)
        except (ValueError, TypeError) as e:
            raise PredictionFailure(f"Feature vectors are not numeric: {str(e)}") from e
        if X.ndim == 1:
            X = X.reshape(1, -1)
        if X.ndim != 2 or X.shape[1] != self.scaler.n_features:
            raise PredictionFailure(
                f"Expected feature vectors of length {self.scaler.n_features}, got shape {X.shape}"
            )
        if not np.isfinite(X).all():
            raise PredictionFailure("Feature vector contains non-finite values")

        input_tensor = None
        output = None
        try:
            with torch.inference_mode():
                input_tensor = torch.tensor(self.scaler.transform_features(X), dtype=torch.float32)
                output = self.network(input_tensor, train=False)
                standardized = np.array(output.reshape(-1).tolist(), dtype=np.float64)
        except Exception as e:
            self.logger.error(f"Prediction failed: {e}", exc_info=True)
            raise PredictionFailure(f"Prediction failed: {str(e)}") from e
        finally:
            del input_tensor, output

        salaries = self.scaler.inverse_transform_target(standardized)
        if not np.isfinite(salaries).all():
            raise PredictionFailure("Model produced a non-finite prediction")
        return np.maximum(salaries, 0.0)

    def predict(self, features: Sequence[float]) -> int:
        """Predict the salary for one raw feature vector.

        Args:
            features (Sequence[float]): Raw 6-element feature vector.

        Returns:
            int: Non-negative salary rounded to the nearest dollar.

        Raises:
            PredictionFailure: If the vector is malformed or the computation fails.
        """
        return round_half_up(float(self._forward([list(features)])[0]))

    @timing_decorator(metric_name=PREDICTION_BATCH_TIME)
    def predict_batch(self, features: Sequence[Sequence[float]]) -> List[int]:
        """Predict salaries for several raw feature vectors in one pass.

        Args:
            features (Sequence[Sequence[float]]): Raw feature vectors.

        Returns:
            List[int]: One salary per vector, in input order.
        """
        if len(features) == 0:
            return []
        return [round_half_up(float(s)) for s in self._forward(features)]

    def encode_profile(self, profile: JobProfile) -> List[float]:
        return self.encoder.encode_profile(profile)

    def unknown_fields(self, features: Sequence[float]) -> List[str]:
        """Return the profile fields that encoded to the unknown-category index."""
        return [
            field
            for idx, field in _PROFILE_FIELDS_BY_FEATURE.items()
            if int(features[idx]) == UNKNOWN_INDEX
        ]

    def predict_profile(self, profile: JobProfile) -> PredictionResult:
        """Encode a job profile and predict its salary with a confidence band.

        Args:
            profile (JobProfile): Job profile.

        Returns:
            PredictionResult: Salary, band and the encoded features.
        """
        features = self.encode_profile(profile)
        unknown = self.unknown_fields(features)
        if unknown:
            self.logger.warning(f"Profile has unseen categories: {', '.join(unknown)}")
        salary = self.predict(features)
        low, high = confidence_band(salary, self.confidence_margin)
        return PredictionResult(salary=salary, low=low, high=high, features=features, unknown_fields=unknown)
