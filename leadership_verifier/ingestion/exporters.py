"""Export utilities for verified leadership data."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, MutableMapping, Optional, Tuple, Union

import pandas as pd

from ..models import ConfidenceLevel, EmailType, EmploymentStatus, InputRecord, VerificationResult

PathLike = Union[str, Path]

STATUS_LABELS = {
    EmploymentStatus.STILL_EMPLOYED: "Still employed",
    EmploymentStatus.LEFT_ORGANIZATION: "Left organization",
    EmploymentStatus.UNKNOWN: "Unknown",
}

EMAIL_TYPE_LABELS = {
    EmailType.WORK_VERIFIED: "Work (verified)",
    EmailType.WORK_UNVERIFIED: "Work (unverified)",
    EmailType.PERSONAL: "Personal",
    EmailType.NOT_FOUND: "Not found",
}

EXPORT_COLUMNS = (
    "filer_ein",
    "org_name",
    "website",
    "employee_name",
    "employee_title",
    "comp_org",
    "current_status",
    "verified_email",
    "email_type",
    "current_title",
    "confidence_level",
    "data_sources",
    "last_verified_date",
    "cost_per_record",
    "pdl_email",
    "pdl_phone",
    "pdl_linkedin",
    "pdl_job_title",
)


def result_to_row(record: InputRecord, result: Optional[VerificationResult]) -> Dict[str, object]:
    """Flatten a record and its (possibly missing) result into one export row."""

    row: Dict[str, object] = {
        "filer_ein": record.filer_ein,
        "org_name": record.org_name,
        "website": record.website_raw or "",
        "employee_name": record.employee_name_raw,
        "employee_title": record.employee_title_raw or "",
        "comp_org": record.comp_org or "",
    }
    if result is None:
        row.update(
            {
                "current_status": STATUS_LABELS[EmploymentStatus.UNKNOWN],
                "verified_email": "",
                "email_type": EMAIL_TYPE_LABELS[EmailType.NOT_FOUND],
                "current_title": "",
                "confidence_level": ConfidenceLevel.LOW.value,
                "data_sources": "[]",
                "last_verified_date": "",
                "cost_per_record": 0.0,
                "pdl_email": "",
                "pdl_phone": "",
                "pdl_linkedin": "",
                "pdl_job_title": "",
            }
        )
        return row

    row.update(
        {
            "current_status": STATUS_LABELS.get(result.current_status, "Unknown"),
            "verified_email": result.verified_email or "",
            "email_type": EMAIL_TYPE_LABELS.get(result.email_type, "Not found"),
            "current_title": result.current_title or "",
            "confidence_level": ConfidenceLevel(result.confidence_level).value,
            "data_sources": json.dumps([source.as_dict() for source in result.data_sources]),
            "last_verified_date": result.last_verified_at.isoformat() if result.last_verified_at else "",
            "cost_per_record": result.cost_per_record_usd,
            "pdl_email": result.pdl_email or "",
            "pdl_phone": result.pdl_phone or "",
            "pdl_linkedin": result.pdl_linkedin or "",
            "pdl_job_title": result.pdl_job_title or "",
        }
    )
    return row


def results_to_dataframe(
    pairs: Iterable[Tuple[InputRecord, Optional[VerificationResult]]],
) -> pd.DataFrame:
    """Convert record/result pairs into a :class:`pandas.DataFrame`."""

    rows = [result_to_row(record, result) for record, result in pairs]
    return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))


def export_job_results(
    store,
    job_id: str,
    path: PathLike,
    *,
    sheet_name: str = "Results",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write every record of ``job_id`` in row order to a CSV or Excel file."""

    store.get_job(job_id)
    results = {result.record_id: result for result in store.find_verification_results_by_job(job_id)}
    pairs = [(record, results.get(record.id)) for record in store.find_records_by_job(job_id)]
    dataframe = results_to_dataframe(pairs)

    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _write_dataframe(dataframe, output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        # BOM so spreadsheet apps detect UTF-8
        exporter_kwargs.setdefault("encoding", "utf-8-sig")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in {".xlsx", ".xlsm"}:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = ["EXPORT_COLUMNS", "export_job_results", "result_to_row", "results_to_dataframe"]
