"""Pydantic models for prediction profiles and persisted model documents."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

MODEL_VERSION = "1.0.0"

BASE_YEAR = 2020


class JobProfile(BaseModel):
    """A hypothetical job to price. Categories outside the known lists are allowed."""

    work_year: int = Field(default=2024, ge=BASE_YEAR)
    experience_level: str
    employment_type: str
    company_size: str
    remote_ratio: int = Field(default=50, ge=0, le=100)
    job_title: str


class ModelMetadata(BaseModel):
    """Provenance stored next to a trained model."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = MODEL_VERSION
    trained_at: str = Field(
        default_factory=lambda: datetime.now().isoformat(), alias="trainedAt"
    )
    data_size: int = Field(default=0, alias="dataSize")
    features: List[str] = Field(default_factory=list)
    top_job_titles: List[str] = Field(default_factory=list, alias="topJobTitles")


class ScalerDocument(BaseModel):
    """Serialized standardization parameters."""

    model_config = ConfigDict(populate_by_name=True)

    feature_mean: List[float] = Field(alias="featureMean")
    feature_std: List[float] = Field(alias="featureStd")
    target_mean: float = Field(alias="targetMean")
    target_std: float = Field(alias="targetStd")


class CacheDocument(BaseModel):
    """Structured document persisted under the cache storage key."""

    scaler: ScalerDocument
    metadata: ModelMetadata

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class BundledScalerDocument(ScalerDocument):
    """Flat document shipped with the bundled model; provenance fields are optional."""

    version: str = MODEL_VERSION
    trained_at: str = Field(default="", alias="trainedAt")
    data_size: int = Field(default=0, alias="dataSize")
    features: List[str] = Field(default_factory=list)
    top_job_titles: List[str] = Field(default_factory=list, alias="topJobTitles")

    def to_metadata(self) -> ModelMetadata:
        return ModelMetadata(
            version=self.version,
            trained_at=self.trained_at,
            data_size=self.data_size,
            features=self.features,
            top_job_titles=self.top_job_titles,
        )
