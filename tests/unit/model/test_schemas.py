import json

import pytest
from pydantic import ValidationError

from src.model.schemas import (
    MODEL_VERSION,
    BundledScalerDocument,
    CacheDocument,
    JobProfile,
    ModelMetadata,
    ScalerDocument,
)


def test_job_profile_defaults():
    profile = JobProfile(job_title="Data Scientist", experience_level="SE", employment_type="FT", company_size="M")
    assert profile.work_year == 2024
    assert profile.remote_ratio == 50


@pytest.mark.parametrize("field,value", [("remote_ratio", 101), ("remote_ratio", -1), ("work_year", 2019)])
def test_job_profile_rejects_out_of_range(field, value):
    kwargs = dict(job_title="Data Scientist", experience_level="SE", employment_type="FT", company_size="M")
    kwargs[field] = value
    with pytest.raises(ValidationError):
        JobProfile(**kwargs)


def test_job_profile_allows_unknown_categories():
    profile = JobProfile(job_title="Astronaut", experience_level="XX", employment_type="??", company_size="XL")
    assert profile.company_size == "XL"


def test_cache_document_uses_camel_case():
    document = CacheDocument(
        scaler=ScalerDocument(feature_mean=[0.0] * 6, feature_std=[1.0] * 6, target_mean=1.0, target_std=2.0),
        metadata=ModelMetadata(data_size=12, features=["a"] * 6, top_job_titles=["Data Scientist"]),
    )

    payload = json.loads(document.to_json())

    assert set(payload) == {"scaler", "metadata"}
    assert payload["scaler"]["featureMean"] == [0.0] * 6
    assert payload["scaler"]["targetStd"] == 2.0
    assert payload["metadata"]["version"] == MODEL_VERSION
    assert payload["metadata"]["dataSize"] == 12
    assert payload["metadata"]["topJobTitles"] == ["Data Scientist"]
    assert "trainedAt" in payload["metadata"]

    assert CacheDocument.model_validate_json(document.to_json()) == document


def test_bundled_document_defaults_provenance():
    document = BundledScalerDocument.model_validate(
        {"featureMean": [0.0] * 6, "featureStd": [1.0] * 6, "targetMean": 100.0, "targetStd": 10.0}
    )
    metadata = document.to_metadata()

    assert metadata.version == MODEL_VERSION
    assert metadata.trained_at == ""
    assert metadata.data_size == 0
    assert metadata.features == []
    assert metadata.top_job_titles == []
