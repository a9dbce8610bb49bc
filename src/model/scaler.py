from dataclasses import dataclass
from typing import Any, Dict, Sequence, Union

import numpy as np

from src.model.schemas import ScalerDocument

EPSILON = 1e-8

ArrayLike = Union[np.ndarray, Sequence[float], Sequence[Sequence[float]]]


@dataclass(frozen=True, eq=False)
class Scaler:
    """
    Standardization parameters for features and target.

    Fitted once per training run and persisted verbatim with the model weights.
    Standard deviations use the population formula (no Bessel correction).
    """

    feature_mean: np.ndarray
    feature_std: np.ndarray
    target_mean: float
    target_std: float

    def __post_init__(self) -> None:
        for name in ("feature_mean", "feature_std"):
            arr = np.array(getattr(self, name), dtype=np.float64)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        object.__setattr__(self, "target_mean", float(self.target_mean))
        object.__setattr__(self, "target_std", float(self.target_std))

    @classmethod
    def fit(cls, features: ArrayLike, targets: ArrayLike) -> "Scaler":
        """
        Computes per-column mean/std of the features and mean/std of the target.

        Args:
            features: Matrix of shape (n, d).
            targets: Vector of shape (n,).

        Returns:
            Scaler: Fitted parameters.
        """
        X = np.asarray(features, dtype=np.float64)
        y = np.asarray(targets, dtype=np.float64).reshape(-1)
        if X.ndim != 2 or X.shape[0] == 0:
            raise ValueError(f"Expected a non-empty 2D feature matrix, got shape {X.shape}")
        if y.shape[0] != X.shape[0]:
            raise ValueError(f"Features and targets are misaligned: {X.shape[0]} vs {y.shape[0]}")

        return cls(
            feature_mean=X.mean(axis=0),
            feature_std=X.std(axis=0, ddof=0),
            target_mean=float(y.mean()),
            target_std=float(y.std(ddof=0)),
        )

    @property
    def n_features(self) -> int:
        return int(self.feature_mean.shape[0])

    def transform_features(self, features: ArrayLike) -> np.ndarray:
        return (np.asarray(features, dtype=np.float64) - self.feature_mean) / (self.feature_std + EPSILON)

    def transform_target(self, targets: Union[float, ArrayLike]) -> Union[float, np.ndarray]:
        return (np.asarray(targets, dtype=np.float64) - self.target_mean) / (self.target_std + EPSILON)

    def inverse_transform_target(self, values: Union[float, ArrayLike]) -> Union[float, np.ndarray]:
        return np.asarray(values, dtype=np.float64) * self.target_std + self.target_mean

    def to_dict(self) -> Dict[str, Any]:
        """Returns the persisted document form (camelCase keys)."""
        return self.to_document().model_dump(by_alias=True)

    def to_document(self) -> ScalerDocument:
        return ScalerDocument(
            feature_mean=self.feature_mean.tolist(),
            feature_std=self.feature_std.tolist(),
            target_mean=self.target_mean,
            target_std=self.target_std,
        )

    @classmethod
    def from_document(cls, document: ScalerDocument) -> "Scaler":
        if len(document.feature_mean) != len(document.feature_std):
            raise ValueError("featureMean and featureStd lengths differ")
        return cls(
            feature_mean=np.array(document.feature_mean),
            feature_std=np.array(document.feature_std),
            target_mean=document.target_mean,
            target_std=document.target_std,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scaler":
        return cls.from_document(ScalerDocument.model_validate(data))
