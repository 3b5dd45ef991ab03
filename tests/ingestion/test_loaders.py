import pandas as pd
import pytest

from leadership_verifier.ingestion.loaders import (
    IngestionError,
    UnsupportedFileTypeError,
    build_input_record,
    ingest_leadership_file,
)
from leadership_verifier.models import JobStatus
from leadership_verifier.store import MemoryRecordStore

HEADER = "filer_ein,org_name,website,employee_name,employee_title,comp_org\n"


@pytest.fixture()
def sample_dataframe():
    return pd.DataFrame(
        [
            {
                "filer_ein": "12-3456789",
                "org_name": "Acme Foundation",
                "website": "https://www.acme.org/about",
                "employee_name": "Doe, Jane",
                "employee_title": "CEO",
                "comp_org": "Acme Foundation",
            },
            {
                "filer_ein": "98765",
                "org_name": "Beta Trust",
                "website": "",
                "employee_name": "Prince",
                "employee_title": "Executive Director",
                "comp_org": "",
            },
        ]
    )


def test_ingest_csv_derives_fields(sample_dataframe, tmp_path):
    csv_path = tmp_path / "leaders.csv"
    sample_dataframe.to_csv(csv_path, index=False)
    store = MemoryRecordStore()

    summary = ingest_leadership_file(store, csv_path)

    assert summary.total_rows == 2
    assert summary.error_count == 0
    job = store.get_job(summary.job.id)
    assert job.status == JobStatus.COMPLETED
    assert job.original_file == "leaders.csv"
    assert job.total_rows == 2

    first, second = store.find_records_by_job(job.id)
    assert first.row_index == 1
    assert first.filer_ein == "123456789"
    assert first.org_domain == "acme.org"
    assert (first.first_name, first.last_name) == ("Jane", "Doe")
    assert first.input_issues == ("name_was_last_comma_first",)

    assert second.org_domain is None
    assert second.comp_org is None
    assert set(second.input_issues) == {"ein_not_9_digits", "missing_website", "name_single_token"}


def test_ingest_excel(sample_dataframe, tmp_path):
    xlsx_path = tmp_path / "leaders.xlsx"
    sample_dataframe.to_excel(xlsx_path, index=False, engine="openpyxl")
    store = MemoryRecordStore()

    summary = ingest_leadership_file(store, xlsx_path)

    assert summary.total_rows == 2
    assert store.find_records_by_job(summary.job.id)[0].org_domain == "acme.org"


def test_blank_rows_are_skipped_and_schema_errors_counted(tmp_path):
    csv_path = tmp_path / "leaders.csv"
    csv_path.write_text(
        HEADER
        + "123456789,Acme,acme.org,Jane Doe,CEO,\n"
        + ",,,,,\n"
        + "123456789,,acme.org,John Roe,CFO,\n",
        encoding="utf-8",
    )
    store = MemoryRecordStore()

    summary = ingest_leadership_file(store, csv_path)

    assert summary.total_rows == 2
    assert summary.error_count == 1
    records = store.find_records_by_job(summary.job.id)
    assert [record.row_index for record in records] == [1, 2]
    assert "row_schema_invalid" in records[1].input_issues


def test_missing_columns_fail_the_job(tmp_path):
    csv_path = tmp_path / "leaders.csv"
    csv_path.write_text("filer_ein,org_name\n123456789,Acme\n", encoding="utf-8")
    store = MemoryRecordStore()

    with pytest.raises(IngestionError, match="website"):
        ingest_leadership_file(store, csv_path)


def test_header_only_upload_is_rejected(tmp_path):
    csv_path = tmp_path / "leaders.csv"
    csv_path.write_text(HEADER, encoding="utf-8")

    with pytest.raises(IngestionError, match="no data rows"):
        ingest_leadership_file(MemoryRecordStore(), csv_path)


def test_unsupported_file_type(tmp_path):
    path = tmp_path / "leaders.json"
    path.write_text("{}", encoding="utf-8")

    with pytest.raises(UnsupportedFileTypeError):
        ingest_leadership_file(MemoryRecordStore(), path)


def test_unparseable_website_is_flagged():
    record = build_input_record(
        "job-1",
        1,
        {
            "filer_ein": "123456789",
            "org_name": "Acme",
            "website": "not a website",
            "employee_name": "Jane Doe",
            "employee_title": "",
            "comp_org": "",
        },
    )

    assert record.org_domain is None
    assert record.input_issues == ("website_unparseable",)
    assert record.employee_title_raw is None
