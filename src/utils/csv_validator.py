import pandas as pd
from typing import Tuple, Optional, Any

from src.exceptions import EmptyDatasetError, InvalidEncodingError
from src.utils.data_utils import REQUIRED_CATEGORICAL_COLUMNS, parse_salary_csv, read_source_text

REQUIRED_HEADER_COLUMNS = ["work_year", "salary_in_usd", "remote_ratio"] + REQUIRED_CATEGORICAL_COLUMNS


def validate_csv(file_buffer: Any) -> Tuple[bool, Optional[str], Optional[pd.DataFrame]]:
    """Validate a salary CSV file buffer. Args: file_buffer (Any): File-like object. Returns: Tuple[bool, Optional[str], Optional[pd.DataFrame]]: (is_valid, error_message, dataframe)."""
    try:
        file_buffer.seek(0)
        first_byte = file_buffer.read(1)
        if not first_byte:
            return False, "File is empty", None

        file_buffer.seek(0)
        header_line = read_source_text(file_buffer).strip().split("\n", 1)[0]
        header = [h.replace('"', "").strip() for h in header_line.split(",")]

        missing = [c for c in REQUIRED_HEADER_COLUMNS if c not in header]
        if missing:
            return False, f"CSV missing required columns: {', '.join(missing)}", None

        file_buffer.seek(0)
        df = parse_salary_csv(read_source_text(file_buffer))

        if df.empty:
            return False, "CSV contains no data rows", None

        return True, None, df

    except EmptyDatasetError:
        return False, "File is empty", None
    except InvalidEncodingError as e:
        return False, e.message, None
    except Exception as e:
        return False, f"Failed to parse CSV: {str(e)}", None
    finally:
        file_buffer.seek(0)
