from typing import Any, Callable, Dict, Optional, Union

import pandas as pd

from src.utils.data_utils import round_half_up
from src.utils.logger import get_logger

GroupKey = Union[str, Callable[[pd.Series], Any]]

# Statistic table name -> (grouping column, output key column)
STATISTIC_GROUPINGS: Dict[str, tuple] = {
    "experience_stats": ("experience_level", "level"),
    "location_stats": ("company_location", "location"),
    "yearly_stats": ("work_year", "year"),
    "company_size_stats": ("company_size", "size"),
    "job_title_stats": ("job_title", "title"),
    "remote_stats": ("remote_ratio", "ratio"),
    "employment_stats": ("employment_type", "type"),
}


class AnalyticsService:
    """Service for salary dataset analytics."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def calculate_stats(self, df: pd.DataFrame, group_by: GroupKey, key_name: str) -> pd.DataFrame:
        """Group records and compute count and rounded mean salary per group.

        Args:
            df (pd.DataFrame): Valid records.
            group_by (GroupKey): Column name or a function mapping a row to its group key.
            key_name (str): Name of the group key column in the output.

        Returns:
            pd.DataFrame: Columns ``[key_name, avg_salary, count]`` sorted by descending
            ``avg_salary``; ties keep first-encountered order.
        """
        if df is None or df.empty:
            return pd.DataFrame(columns=[key_name, "avg_salary", "count"])

        if callable(group_by):
            keys = df.apply(group_by, axis=1)
        else:
            keys = df[group_by]

        grouped = df["salary_in_usd"].groupby(keys.values, sort=False)
        means = grouped.mean()
        sizes = grouped.size().reindex(means.index)
        stats = pd.DataFrame(
            {
                key_name: means.index.tolist(),
                "avg_salary": [round_half_up(m) for m in means.values],
                "count": sizes.values.astype(int),
            }
        )
        return stats.sort_values("avg_salary", ascending=False, kind="stable").reset_index(drop=True)

    def build_statistics(self, df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        """Compute the seven grouped statistic tables.

        Args:
            df (pd.DataFrame): Valid records.

        Returns:
            Dict[str, pd.DataFrame]: Table name to statistics.
        """
        return {
            name: self.calculate_stats(df, column, key_name)
            for name, (column, key_name) in STATISTIC_GROUPINGS.items()
        }

    def get_data_summary(self, df: pd.DataFrame) -> Dict[str, Any]:
        """Calculates high-level statistics for the dataset."""
        if df is None or df.empty:
            return {}

        summary: Dict[str, Any] = {
            "total_samples": len(df),
            "shape": df.shape,
            "avg_salary": round_half_up(df["salary_in_usd"].mean()),
            "median_salary": round_half_up(df["salary_in_usd"].median()),
        }

        for col in ["experience_level", "employment_type", "job_title", "company_location", "company_size"]:
            if col in df.columns:
                summary[f"unique_{col}"] = int(df[col].nunique())

        return summary

    def filter_profile_stats(
        self,
        df: pd.DataFrame,
        job_title: Optional[str] = None,
        experience_level: Optional[str] = None,
        employment_type: Optional[str] = None,
        company_size: Optional[str] = None,
    ) -> Dict[str, int]:
        """Summarize the salaries of records matching a partial job profile.

        Empty or None filters are ignored.

        Returns:
            Dict[str, int]: ``count``, ``avg_salary``, ``min_salary``, ``max_salary``;
            salary fields are 0 when nothing matches.
        """
        filters = {
            "job_title": job_title,
            "experience_level": experience_level,
            "employment_type": employment_type,
            "company_size": company_size,
        }
        filtered = df
        for col, value in filters.items():
            if value:
                filtered = filtered[filtered[col] == value]

        if filtered.empty:
            return {"count": 0, "avg_salary": 0, "min_salary": 0, "max_salary": 0}

        salaries = filtered["salary_in_usd"]
        return {
            "count": len(filtered),
            "avg_salary": round_half_up(salaries.mean()),
            "min_salary": int(salaries.min()),
            "max_salary": int(salaries.max()),
        }
