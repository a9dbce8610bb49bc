import io

import pandas as pd
import pytest

from conftest import make_csv, make_record
from src.exceptions import EmptyDatasetError, InsufficientDataError, InvalidEncodingError
from src.utils.data_utils import (
    clean_records,
    load_data,
    parse_salary_csv,
    round_half_up,
    safe_int,
    validity_mask,
)
from src.utils.performance import get_metric_stats

HEADER = "work_year,experience_level,employment_type,job_title,salary,salary_currency,salary_in_usd,employee_residence,remote_ratio,company_location,company_size"


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert round_half_up(-2.5) == -2
    assert round_half_up(100000.5) == 100001


def test_safe_int_parses_leading_integer():
    values = pd.Series(["12", " 7 ", "1.9", "42abc", "-5", "abc", "", "nan"])
    assert safe_int(values).tolist() == [12, 7, 1, 42, -5, 0, 0, 0]


def test_parse_quoted_fields_with_commas():
    text = HEADER + '\n2023,SE,FT,"Director, Data Science",1,USD,200000,US,100,"Berlin, DE",L\n'
    df = parse_salary_csv(text)

    assert len(df) == 1
    assert df.iloc[0]["job_title"] == "Director, Data Science"
    assert df.iloc[0]["company_location"] == "Berlin, DE"
    assert df.iloc[0]["salary_in_usd"] == 200000
    assert df.iloc[0]["company_size"] == "L"


def test_parse_strips_header_whitespace_and_quotes():
    header = ", ".join(f'"{c}"' for c in HEADER.split(","))
    text = header + "\n2023, SE, FT, Data Scientist, 1, USD, 150000, US, 50, US, M\n"
    df = parse_salary_csv(text)

    assert "work_year" in df.columns
    assert df.iloc[0]["experience_level"] == "SE"
    assert df.iloc[0]["remote_ratio"] == 50


def test_parse_non_numeric_values_default_to_zero():
    text = HEADER + "\nnot-a-year,SE,FT,Data Scientist,x,USD,lots,US,most,US,M\n"
    df = parse_salary_csv(text)

    assert df.iloc[0]["work_year"] == 0
    assert df.iloc[0]["salary_in_usd"] == 0
    assert df.iloc[0]["remote_ratio"] == 0


def test_parse_short_rows_are_padded():
    text = HEADER + "\n2023,SE,FT,Data Scientist,1,USD,150000\n"
    df = parse_salary_csv(text)

    assert len(df) == 1
    assert df.iloc[0]["company_size"] == ""
    assert df.iloc[0]["remote_ratio"] == 0


def test_parse_long_rows_are_truncated():
    text = HEADER + "\n2023,SE,FT,Data Scientist,1,USD,150000,US,100,US,M,extra,fields\n"
    df = parse_salary_csv(text)

    assert len(df) == 1
    assert list(df.columns)[:11] == HEADER.split(",")
    assert df.iloc[0]["company_size"] == "M"


def test_parse_keeps_file_order():
    records = [make_record(salary_in_usd=s) for s in (3, 1, 2)]
    df = parse_salary_csv(make_csv(records))
    assert df["salary_in_usd"].tolist() == [3, 1, 2]


@pytest.mark.parametrize("text", ["", "   ", "\n\n"])
def test_parse_blank_raises(text):
    with pytest.raises(EmptyDatasetError) as exc_info:
        parse_salary_csv(text)
    assert exc_info.value.code == "EMPTY_DATASET"


def test_validity_mask_drops_only_invalid_records():
    records = [
        make_record(),
        make_record(salary_in_usd=0),
        make_record(salary_in_usd=-10),
        make_record(work_year=2019),
        make_record(experience_level=""),
        make_record(employment_type=""),
        make_record(company_size=""),
        make_record(job_title=""),
        make_record(work_year=2020, salary_in_usd=1),
    ]
    df = parse_salary_csv(make_csv(records))
    mask = validity_mask(df)

    assert mask.tolist() == [True, False, False, False, False, False, False, False, True]

    dropped = df[~mask]
    for _, row in dropped.iterrows():
        assert (
            row["salary_in_usd"] <= 0
            or row["work_year"] < 2020
            or any(row[col] == "" for col in ("experience_level", "employment_type", "company_size", "job_title"))
        )


def test_clean_records_resets_index():
    records = [make_record(salary_in_usd=0), make_record(salary_in_usd=1), make_record(salary_in_usd=2)]
    cleaned = clean_records(parse_salary_csv(make_csv(records)))
    assert cleaned.index.tolist() == [0, 1]
    assert cleaned["salary_in_usd"].tolist() == [1, 2]


def test_load_data_from_path(tmp_path, sample_csv):
    csv_file = tmp_path / "salaries.csv"
    csv_file.write_text(sample_csv)

    df = load_data(str(csv_file), min_valid_records=10)

    assert len(df) == 12
    assert get_metric_stats("ingestion_time")["count"] == 1


def test_load_data_from_bytes_and_buffer(sample_csv):
    assert len(load_data(sample_csv.encode("utf-8"), min_valid_records=10)) == 12
    assert len(load_data(io.StringIO(sample_csv), min_valid_records=10)) == 12


def test_load_data_insufficient_records(sample_records):
    text = make_csv(sample_records[:9] + [make_record(salary_in_usd=0)])

    with pytest.raises(InsufficientDataError) as exc_info:
        load_data(text.encode("utf-8"), min_valid_records=10)

    assert exc_info.value.details == {"valid_count": 9, "required": 10}


def test_load_data_header_only():
    with pytest.raises(InsufficientDataError):
        load_data((HEADER + "\n").encode("utf-8"), min_valid_records=10)


def test_load_data_empty_file(tmp_path):
    csv_file = tmp_path / "empty.csv"
    csv_file.write_text("")
    with pytest.raises(EmptyDatasetError):
        load_data(str(csv_file), min_valid_records=10)


def test_load_data_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data(str(tmp_path / "missing.csv"))


def test_load_data_undecodable_input(tmp_path):
    payload = HEADER.encode("utf-8") + b"\n2023,SE,FT,\xff\xfe Data,1,USD,150000,US,100,US,M\n"
    csv_file = tmp_path / "latin.csv"
    csv_file.write_bytes(payload)

    for source in (payload, io.BytesIO(payload), str(csv_file)):
        with pytest.raises(InvalidEncodingError) as exc_info:
            load_data(source, min_valid_records=1)
        assert exc_info.value.code == "INVALID_ENCODING"
