import io
import math
import os
from typing import IO, List, Optional, Union

import pandas as pd

from src.exceptions import EmptyDatasetError, InsufficientDataError, InvalidEncodingError
from src.model.schemas import BASE_YEAR
from src.utils.config_loader import get_config
from src.utils.logger import get_logger
from src.utils.performance import INGESTION_TIME, timing_decorator

logger = get_logger(__name__)

DATASET_COLUMNS: List[str] = [
    "work_year",
    "experience_level",
    "employment_type",
    "job_title",
    "salary",
    "salary_currency",
    "salary_in_usd",
    "employee_residence",
    "remote_ratio",
    "company_location",
    "company_size",
]

NUMERIC_COLUMNS: List[str] = ["work_year", "salary", "salary_in_usd", "remote_ratio"]

REQUIRED_CATEGORICAL_COLUMNS: List[str] = [
    "experience_level",
    "employment_type",
    "company_size",
    "job_title",
]

DataSource = Union[str, bytes, IO]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up. Args: value (float): Value to round. Returns: int: Rounded value."""
    return int(math.floor(value + 0.5))


def safe_int(values: pd.Series) -> pd.Series:
    """Parse the leading integer of each value, defaulting to 0. Args: values (pd.Series): String values. Returns: pd.Series: Integer series."""
    leading = values.astype(str).str.extract(r"^\s*([+-]?\d+)", expand=False)
    return pd.to_numeric(leading, errors="coerce").fillna(0).astype("int64")


def read_source_text(source: DataSource) -> str:
    """Read raw CSV text from a path, raw bytes or a file-like object.

    Args:
        source (DataSource): Data source.

    Returns:
        str: Decoded text.

    Raises:
        InvalidEncodingError: If the content is not valid UTF-8.
    """
    try:
        if isinstance(source, bytes):
            return source.decode("utf-8")
        if isinstance(source, str):
            with open(source, "r", encoding="utf-8") as f:
                return f.read()
        content = source.read()
        if isinstance(content, bytes):
            return content.decode("utf-8")
        return content
    except UnicodeDecodeError as e:
        raise InvalidEncodingError(str(e)) from e


def parse_salary_csv(text: str) -> pd.DataFrame:
    """Parse raw salary CSV text into typed columns without filtering.

    Quoted fields may contain commas. Rows with extra fields are truncated and
    missing fields become empty strings.

    Args:
        text (str): Raw CSV text including the header row.

    Returns:
        pd.DataFrame: One row per data line, in file order.

    Raises:
        EmptyDatasetError: If the text is blank.
    """
    if text is None or not text.strip():
        raise EmptyDatasetError()

    header = pd.read_csv(io.StringIO(text.strip()), nrows=0, engine="python")
    n_fields = len(header.columns)

    df = pd.read_csv(
        io.StringIO(text.strip()),
        dtype=str,
        keep_default_na=False,
        index_col=False,
        engine="python",
        on_bad_lines=lambda fields: fields[:n_fields],
    )
    df.columns = [str(c).replace('"', "").strip() for c in df.columns]
    df = df.fillna("")

    for col in DATASET_COLUMNS:
        if col not in df.columns:
            df[col] = ""

    for col in df.columns:
        if col in NUMERIC_COLUMNS:
            df[col] = safe_int(df[col])
        else:
            df[col] = df[col].astype(str).str.replace('"', "", regex=False).str.strip()

    return df


def validity_mask(df: pd.DataFrame) -> pd.Series:
    """Return a boolean mask of valid records. Args: df (pd.DataFrame): Parsed records. Returns: pd.Series: True where the record is valid."""
    mask = (df["salary_in_usd"] > 0) & (df["work_year"] >= BASE_YEAR)
    for col in REQUIRED_CATEGORICAL_COLUMNS:
        mask &= df[col].astype(str).str.len() > 0
    return mask


def clean_records(df: pd.DataFrame) -> pd.DataFrame:
    """Drop invalid records, keeping file order. Args: df (pd.DataFrame): Parsed records. Returns: pd.DataFrame: Valid records with a fresh index."""
    mask = validity_mask(df)
    dropped = int((~mask).sum())
    if dropped:
        logger.debug(f"Dropped {dropped} invalid records")
    return df[mask].reset_index(drop=True)


@timing_decorator(metric_name=INGESTION_TIME)
def load_data(source: DataSource, min_valid_records: Optional[int] = None) -> pd.DataFrame:
    """Load, parse and clean the salary dataset.

    Args:
        source (DataSource): CSV file path, raw bytes or file-like object.
        min_valid_records (Optional[int]): Minimum valid rows. Defaults to config value.

    Returns:
        pd.DataFrame: Valid records.

    Raises:
        EmptyDatasetError: If the input is blank.
        InvalidEncodingError: If the input is not valid UTF-8.
        InsufficientDataError: If fewer than ``min_valid_records`` valid rows remain.
    """
    if min_valid_records is None:
        min_valid_records = get_config()["dataset"]["min_valid_records"]

    if isinstance(source, str) and not os.path.exists(source):
        raise FileNotFoundError(f"Dataset not found at {source}")

    text = read_source_text(source)
    logger.info(f"CSV file size: {len(text)} characters")

    raw = parse_salary_csv(text)
    logger.info(f"Parsed {len(raw)} raw records")

    valid = clean_records(raw)
    logger.info(f"Filtered to {len(valid)} valid records")

    if len(valid) < min_valid_records:
        raise InsufficientDataError(len(valid), min_valid_records)

    return valid
