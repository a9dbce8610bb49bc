"""Pytest configuration and shared test fixtures."""

from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pytest

from src.model.config_schema_model import Config
from src.model.dataset import ProcessedData
from src.model.preprocessing import FeatureEncoder
from src.services.analytics_service import AnalyticsService
from src.utils.config_loader import reset_config
from src.utils.data_utils import DATASET_COLUMNS, parse_salary_csv
from src.utils.performance import clear_metrics

DEFAULT_RECORD: Dict[str, Any] = {
    "work_year": 2023,
    "experience_level": "SE",
    "employment_type": "FT",
    "job_title": "Data Scientist",
    "salary": 150000,
    "salary_currency": "USD",
    "salary_in_usd": 150000,
    "employee_residence": "US",
    "remote_ratio": 100,
    "company_location": "US",
    "company_size": "M",
}


def create_test_config(cache_dir: str = ".model_cache_test", bundled_dir: Optional[str] = None) -> Dict[str, Any]:
    """Create a minimal valid test configuration with a short training run.

    Args:
        cache_dir (str): Local cache directory.
        bundled_dir (Optional[str]): Bundled model directory, None to disable.

    Returns:
        Dict[str, Any]: Test config.
    """
    config = Config().model_dump()
    config["training"].update({"epochs": 3, "batch_size": 8, "seed": 7})
    config["cache"]["directory"] = cache_dir
    config["cache"]["bundled_directory"] = bundled_dir
    return config


def make_record(**overrides: Any) -> Dict[str, Any]:
    record = dict(DEFAULT_RECORD)
    record.update(overrides)
    return record


def _csv_field(value: Any) -> str:
    text = str(value)
    if "," in text:
        return f'"{text}"'
    return text


def make_csv(records: Iterable[Dict[str, Any]]) -> str:
    """Render records as salary CSV text with the standard header."""
    lines = [",".join(DATASET_COLUMNS)]
    for record in records:
        lines.append(",".join(_csv_field(record[col]) for col in DATASET_COLUMNS))
    return "\n".join(lines) + "\n"


def level_records() -> List[Dict[str, Any]]:
    """Twelve valid records: EN x5, SE x5, EX x2."""
    en = [make_record(experience_level="EN", salary_in_usd=s, job_title="Data Analyst") for s in (50000, 55000, 60000, 65000, 70001)]
    se = [make_record(experience_level="SE", salary_in_usd=s) for s in (140000, 150000, 160000, 170000, 180000)]
    ex = [make_record(experience_level="EX", salary_in_usd=s, job_title="Head of Data", company_size="L") for s in (250000, 260001)]
    return en + se + ex


def build_processed_data(records: List[Dict[str, Any]], top_n: int = 20) -> ProcessedData:
    df = parse_salary_csv(make_csv(records))
    encoder = FeatureEncoder.fit(df, top_n=top_n)
    features, targets = encoder.transform(df)
    return ProcessedData(
        raw_data=df,
        statistics=AnalyticsService().build_statistics(df),
        features=features,
        targets=targets,
        feature_names=encoder.feature_names,
        top_job_titles=encoder.vocabulary,
    )


@pytest.fixture(autouse=True)
def _reset_global_state():
    reset_config()
    clear_metrics()
    yield
    reset_config()


@pytest.fixture
def test_config(tmp_path) -> Dict[str, Any]:
    """Test configuration whose cache and bundle live under a temporary directory."""
    return create_test_config(str(tmp_path / "cache"), str(tmp_path / "bundled"))


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    return level_records()


@pytest.fixture
def sample_csv(sample_records) -> str:
    return make_csv(sample_records)


@pytest.fixture
def processed_data(sample_records) -> ProcessedData:
    return build_processed_data(sample_records)


@pytest.fixture
def feature_vector() -> np.ndarray:
    return np.array([3.0, 2.0, 0.0, 1.0, 1.0, 0.0])
