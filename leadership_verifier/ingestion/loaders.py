"""Utilities for loading leadership rows from spreadsheets into the store."""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from ..models import InputRecord, Job, JobStatus
from ..normalize import normalize_website_to_domain, parse_person_name

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

REQUIRED_COLUMNS = ("filer_ein", "org_name", "website", "employee_name", "employee_title", "comp_org")
# Columns that must carry a value for a row to pass the schema check.
_NON_EMPTY_COLUMNS = ("filer_ein", "org_name", "employee_name")


class IngestionError(ValueError):
    """Raised when an upload cannot be turned into input records."""


class UnsupportedFileTypeError(IngestionError):
    """Raised when an unsupported file format is passed to the loader."""


@dataclass(frozen=True)
class IngestSummary:
    job: Job
    total_rows: int
    error_count: int


def read_leadership_frame(path: PathLike) -> pd.DataFrame:
    """Read a CSV, TSV or Excel upload with every cell as text."""

    path_obj = Path(path)
    suffix = path_obj.suffix.lower()
    try:
        if suffix in {".csv", ".tsv"}:
            frame = pd.read_csv(
                path_obj,
                sep="\t" if suffix == ".tsv" else ",",
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",
            )
        elif suffix in {".xls", ".xlsx", ".xlsm"}:
            frame = pd.read_excel(path_obj, dtype=str, keep_default_na=False, engine="openpyxl")
        else:
            raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise IngestionError(f"Could not read '{path_obj}': {exc}") from exc

    frame.columns = [str(column).strip() for column in frame.columns]
    return frame


def _clean(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def _row_is_empty(row: Mapping[str, str]) -> bool:
    return not any(row.values())


def build_input_record(job_id: str, row_index: int, row: Mapping[str, str]) -> InputRecord:
    """Derive domain, name parts and issue codes for one upload row."""

    issues: List[str] = []
    if any(not row.get(column) for column in _NON_EMPTY_COLUMNS):
        issues.append("row_schema_invalid")

    ein_raw = row.get("filer_ein", "")
    ein_digits = re.sub(r"\D", "", ein_raw)
    if len(ein_digits) != 9:
        issues.append("ein_not_9_digits")

    website_raw = row.get("website", "")
    domain = normalize_website_to_domain(website_raw)
    if not website_raw:
        issues.append("missing_website")
    elif not domain:
        issues.append("website_unparseable")

    name_raw = row.get("employee_name", "")
    name = parse_person_name(name_raw)
    if name is not None:
        issues.extend(name.issues)

    return InputRecord(
        id=uuid.uuid4().hex,
        job_id=job_id,
        row_index=row_index,
        filer_ein=ein_digits or ein_raw,
        org_name=row.get("org_name", ""),
        employee_name_raw=name_raw,
        website_raw=website_raw or None,
        org_domain=domain,
        first_name=name.first_name if name else None,
        middle_name=name.middle_name if name else None,
        last_name=name.last_name if name else None,
        suffix=name.suffix if name else None,
        employee_title_raw=row.get("employee_title") or None,
        comp_org=row.get("comp_org") or None,
        input_issues=tuple(issues),
    )


def ingest_leadership_file(store, path: PathLike, *, original_file: Optional[str] = None) -> IngestSummary:
    """Create a job from an upload and store one input record per data row.

    The job is created before parsing so a rejected upload is still visible as a
    FAILED job.
    """

    path_obj = Path(path)
    job = store.create_job(original_file=original_file or path_obj.name)
    try:
        frame = read_leadership_frame(path_obj)
        missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
        if missing:
            raise IngestionError(f"Upload missing required columns: {', '.join(missing)}")

        rows: List[Dict[str, str]] = []
        for raw in frame.to_dict(orient="records"):
            row = {column: _clean(raw.get(column)) for column in REQUIRED_COLUMNS}
            if not _row_is_empty(row):
                rows.append(row)
        if not rows:
            raise IngestionError("Upload has no data rows")

        store.update_job(job.id, status=JobStatus.RUNNING)
        error_count = 0
        for index, row in enumerate(rows, start=1):
            record = build_input_record(job.id, index, row)
            if "row_schema_invalid" in record.input_issues:
                error_count += 1
            store.create_record(record)

        job = store.update_job(
            job.id,
            status=JobStatus.COMPLETED,
            total_rows=len(rows),
            processed_rows=len(rows),
            error_count=error_count,
        )
    except Exception:
        LOGGER.exception("Ingestion of %s failed", path_obj)
        store.update_job(job.id, status=JobStatus.FAILED)
        raise

    LOGGER.info("Ingested %d rows (%d invalid) into job %s", len(rows), error_count, job.id)
    return IngestSummary(job=job, total_rows=len(rows), error_count=error_count)


__all__ = [
    "IngestSummary",
    "IngestionError",
    "REQUIRED_COLUMNS",
    "UnsupportedFileTypeError",
    "build_input_record",
    "ingest_leadership_file",
    "read_leadership_frame",
]
