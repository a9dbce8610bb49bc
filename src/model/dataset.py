from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np
import pandas as pd


@dataclass
class ProcessedData:
    """Cleaned records with their statistics tables and aligned training arrays."""

    raw_data: pd.DataFrame
    statistics: Dict[str, pd.DataFrame]
    features: np.ndarray
    targets: np.ndarray
    feature_names: List[str]
    top_job_titles: List[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.raw_data)
