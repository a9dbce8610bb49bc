import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class DatasetConfig(BaseModel):
    path: str = Field(default="data/salaries.csv", description="Path to the salary CSV")
    min_valid_records: int = Field(
        default=10, ge=1, description="Minimum number of valid records required after cleaning"
    )


class EncodingConfig(BaseModel):
    top_job_titles: int = Field(
        default=20, ge=1, description="Number of most frequent job titles kept in the vocabulary"
    )


class TrainingConfig(BaseModel):
    epochs: int = Field(default=100, ge=1)
    batch_size: int = Field(default=32, ge=1)
    learning_rate: float = Field(default=0.001, gt=0.0)
    validation_split: float = Field(default=0.2, ge=0.0, lt=1.0)
    l2_factor: float = Field(
        default=0.01, ge=0.0, description="L2 penalty on the first two dense kernels"
    )
    seed: int = Field(default=42)


class CacheConfig(BaseModel):
    directory: str = Field(default=".model_cache", description="Durable local cache directory")
    storage_key: str = Field(default="salary_prediction_model")
    bundled_directory: Optional[str] = Field(
        default="models/bundled", description="Directory holding the bundled fallback model"
    )


class PredictionConfig(BaseModel):
    confidence_margin: float = Field(
        default=0.15, ge=0.0, lt=1.0, description="Fixed relative width of the confidence band"
    )


class TrackingConfig(BaseModel):
    enabled: bool = Field(default=False, description="Log training runs to MLflow")
    experiment_name: str = Field(default="SalaryPrediction")


class Config(BaseModel):
    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)

    @model_validator(mode="after")
    def validate_cache_directories(self) -> "Config":
        """Validate that the bundled model does not live in the clearable cache. Returns: Config: Self for chaining."""
        bundled = self.cache.bundled_directory
        if bundled and os.path.normpath(bundled) == os.path.normpath(self.cache.directory):
            raise ValueError("cache.bundled_directory must differ from cache.directory")
        return self


def validate_config_dict(config: Dict[str, Any]) -> Config:
    """Validate a configuration dictionary using Pydantic. Args: config (Dict[str, Any]): Configuration dictionary. Returns: Config: Validated Config object. Raises: ValidationError: If config is invalid."""
    return Config.model_validate(config)
