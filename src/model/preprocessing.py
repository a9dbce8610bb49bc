from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from src.model.schemas import BASE_YEAR, JobProfile
from src.utils.config_loader import get_config

UNKNOWN_INDEX = -1

EXPERIENCE_LEVELS: Tuple[str, ...] = ("EN", "MI", "SE", "EX")
EMPLOYMENT_TYPES: Tuple[str, ...] = ("FT", "PT", "CT", "FL")
COMPANY_SIZES: Tuple[str, ...] = ("S", "M", "L")

FEATURE_NAMES: List[str] = [
    "work_year_normalized",
    "experience_level_encoded",
    "employment_type_encoded",
    "company_size_encoded",
    "remote_ratio_normalized",
    "job_title_encoded",
]


class CategoryEncoder:
    """
    Bidirectional mapping between category values and integer indices.

    Attributes:
        categories (tuple): Known values; position is the encoding.
        mapping (dict): Value to index.
    """

    def __init__(self, categories: Iterable[str]) -> None:
        self.categories: Tuple[str, ...] = tuple(categories)
        self.mapping: Dict[str, int] = {}
        for idx, value in enumerate(self.categories):
            self.mapping.setdefault(value, idx)

    def __len__(self) -> int:
        return len(self.categories)

    def __contains__(self, value: Any) -> bool:
        return value in self.mapping

    def encode(self, value: Any) -> int:
        """
        Returns the index of a value.

        Args:
            value: Category value.

        Returns:
            int: Index, or UNKNOWN_INDEX for values outside the known list.
        """
        return self.mapping.get(value, UNKNOWN_INDEX)

    def decode(self, index: int) -> Optional[str]:
        """
        Returns the value at an index.

        Args:
            index (int): Encoded index.

        Returns:
            str or None: The category, or None for UNKNOWN_INDEX and out-of-range indices.
        """
        if 0 <= index < len(self.categories):
            return self.categories[index]
        return None

    def transform(self, X: Union[pd.DataFrame, pd.Series, list]) -> pd.Series:
        """
        Encodes a column of values.

        Args:
            X (pd.DataFrame, pd.Series or list): Category values.

        Returns:
            pd.Series: Integer indices. Unknown values are mapped to UNKNOWN_INDEX.
        """
        if isinstance(X, pd.DataFrame):
            X = X.iloc[:, 0]
        return pd.Series(X).map(self.mapping).fillna(UNKNOWN_INDEX).astype(int)


def build_vocabulary(titles: Iterable[str], top_n: int = 20) -> List[str]:
    """
    Returns the top_n most frequent titles, ties broken by first encounter.

    Args:
        titles: Job titles in record order.
        top_n (int): Vocabulary size limit.

    Returns:
        list: Titles ordered by descending frequency.
    """
    counts: Dict[str, int] = {}
    for title in titles:
        counts[title] = counts.get(title, 0) + 1
    # dicts keep insertion order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [title for title, _ in ranked[:top_n]]


class FeatureEncoder:
    """
    Turns job records into fixed-length feature vectors.

    The same instance (same vocabulary) must be used for training data and live
    predictions; the vocabulary is persisted with the model for that reason.

    Attributes:
        vocabulary (list): Ordered top job titles.
    """

    def __init__(self, vocabulary: Sequence[str]) -> None:
        self.vocabulary: List[str] = list(vocabulary)
        self.experience_encoder = CategoryEncoder(EXPERIENCE_LEVELS)
        self.employment_encoder = CategoryEncoder(EMPLOYMENT_TYPES)
        self.size_encoder = CategoryEncoder(COMPANY_SIZES)
        self.title_encoder = CategoryEncoder(self.vocabulary)

    @classmethod
    def fit(cls, df: pd.DataFrame, top_n: Optional[int] = None) -> "FeatureEncoder":
        """
        Builds the vocabulary from the full valid dataset.

        Args:
            df (pd.DataFrame): Valid records.
            top_n (int, optional): Vocabulary size. Loads from config if None.

        Returns:
            FeatureEncoder: Encoder bound to the new vocabulary.
        """
        if top_n is None:
            top_n = get_config()["encoding"]["top_job_titles"]
        return cls(build_vocabulary(df["job_title"].tolist(), top_n=top_n))

    @property
    def feature_names(self) -> List[str]:
        return list(FEATURE_NAMES)

    def encode_values(
        self,
        work_year: int,
        experience_level: str,
        employment_type: str,
        company_size: str,
        remote_ratio: float,
        job_title: str,
    ) -> List[float]:
        return [
            float(work_year - BASE_YEAR),
            float(self.experience_encoder.encode(experience_level)),
            float(self.employment_encoder.encode(employment_type)),
            float(self.size_encoder.encode(company_size)),
            float(remote_ratio) / 100,
            float(self.title_encoder.encode(job_title)),
        ]

    def encode_record(self, record: Mapping[str, Any]) -> List[float]:
        """Encodes one record given as a mapping (dict or DataFrame row)."""
        return self.encode_values(
            work_year=int(record["work_year"]),
            experience_level=record["experience_level"],
            employment_type=record["employment_type"],
            company_size=record["company_size"],
            remote_ratio=record["remote_ratio"],
            job_title=record["job_title"],
        )

    def encode_profile(self, profile: JobProfile) -> List[float]:
        return self.encode_record(profile.model_dump())

    def transform(self, df: pd.DataFrame) -> Tuple[np.ndarray, np.ndarray]:
        """
        Encodes every record and extracts the salary targets.

        Args:
            df (pd.DataFrame): Valid records.

        Returns:
            tuple: (features of shape (n, 6), targets of shape (n,)), row-aligned.
        """
        features = np.column_stack(
            [
                (df["work_year"].astype(float) - BASE_YEAR).to_numpy(),
                self.experience_encoder.transform(df["experience_level"]).to_numpy(dtype=float),
                self.employment_encoder.transform(df["employment_type"]).to_numpy(dtype=float),
                self.size_encoder.transform(df["company_size"]).to_numpy(dtype=float),
                (df["remote_ratio"].astype(float) / 100).to_numpy(),
                self.title_encoder.transform(df["job_title"]).to_numpy(dtype=float),
            ]
        ).reshape(len(df), len(FEATURE_NAMES))
        targets = df["salary_in_usd"].astype(float).to_numpy()
        return features, targets
