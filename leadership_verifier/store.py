"""Persistence for jobs, input records and verification results.

Two backends share the :class:`RecordStore` interface: an in-memory store for tests
and one-shot runs, and a SQLite store for the CLI. Both are safe to call from the
job runner's worker threads.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol

from .cache import utc_now
from .models import (
    EMAIL_FIELDS,
    PEOPLE_FIELDS,
    SCORE_FIELDS,
    VERIFICATION_FIELDS,
    ConfidenceLevel,
    EmailType,
    EmploymentStatus,
    EvidenceSource,
    InputRecord,
    Job,
    JobStatus,
    VerificationResult,
    VerifyMode,
)

LOGGER = logging.getLogger(__name__)

RESULT_FIELDS = VERIFICATION_FIELDS | EMAIL_FIELDS | PEOPLE_FIELDS | SCORE_FIELDS
JOB_FIELDS = frozenset({"status", "original_file", "total_rows", "processed_rows", "error_count"})

_ENUM_FIELDS = {
    "mode": VerifyMode,
    "current_status": EmploymentStatus,
    "email_type": EmailType,
    "confidence_level": ConfidenceLevel,
}
_DATETIME_FIELDS = frozenset({"evidence_date", "last_verified_at", "email_last_checked_at", "pdl_enriched_at"})


class RecordNotFoundError(LookupError):
    """Raised when a record id is not present in the store."""


class JobNotFoundError(LookupError):
    """Raised when a job id is not present in the store."""


# ---------------------------------------------------------------------------
# Field codec shared by both backends
# ---------------------------------------------------------------------------

def encode_result_value(name: str, value: Any) -> Any:
    """Convert a result field to its JSON-safe form."""
    if value is None:
        return None
    if name in _ENUM_FIELDS:
        return _ENUM_FIELDS[name](value).value
    if name in _DATETIME_FIELDS:
        return value.isoformat() if isinstance(value, datetime) else str(value)
    if name == "data_sources":
        return [source.as_dict() if isinstance(source, EvidenceSource) else dict(source) for source in value]
    return value


def decode_result_value(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in _ENUM_FIELDS:
        return _ENUM_FIELDS[name](value)
    if name in _DATETIME_FIELDS:
        return value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if name == "data_sources":
        return [source if isinstance(source, EvidenceSource) else EvidenceSource.from_dict(source) for source in value]
    return value


def _check_result_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - RESULT_FIELDS
    if unknown:
        raise ValueError(f"Unknown verification result field(s): {', '.join(sorted(unknown))}")


def _apply_fields(result: VerificationResult, fields: Mapping[str, Any]) -> VerificationResult:
    values = {name: decode_result_value(name, encode_result_value(name, value)) for name, value in fields.items()}
    for name in ("cost_usd", "email_cost_usd", "pdl_cost_usd", "cost_per_record_usd"):
        if name in values and values[name] is None:
            values[name] = 0.0
    return replace(result, **values)


def result_to_json(result: VerificationResult) -> str:
    return json.dumps({name: encode_result_value(name, getattr(result, name)) for name in sorted(RESULT_FIELDS)})


def result_from_json(record_id: str, job_id: str, payload: str) -> VerificationResult:
    return _apply_fields(VerificationResult(record_id=record_id, job_id=job_id), json.loads(payload))


def new_job_id() -> str:
    return uuid.uuid4().hex


class RecordStore(Protocol):
    """Operations the ingestion, job runner, scorer and exporter rely on."""

    def create_job(self, *, original_file: Optional[str] = None, total_rows: int = 0) -> Job:  # pragma: no cover
        ...

    def get_job(self, job_id: str) -> Job:  # pragma: no cover
        ...

    def update_job(self, job_id: str, **fields: Any) -> Job:  # pragma: no cover
        ...

    def increment_job_counts(self, job_id: str, *, processed: int = 0, errors: int = 0) -> Job:  # pragma: no cover
        ...

    def create_record(self, record: InputRecord) -> InputRecord:  # pragma: no cover
        ...

    def find_records_by_job(
        self, job_id: str, record_ids: Optional[Iterable[str]] = None
    ) -> List[InputRecord]:  # pragma: no cover
        ...

    def find_record_by_id(self, record_id: str) -> InputRecord:  # pragma: no cover
        ...

    def upsert_verification_result(
        self, record_id: str, job_id: str, fields: Mapping[str, Any]
    ) -> VerificationResult:  # pragma: no cover
        ...

    def find_verification_result(self, record_id: str) -> Optional[VerificationResult]:  # pragma: no cover
        ...

    def find_verification_results_by_job(self, job_id: str) -> List[VerificationResult]:  # pragma: no cover
        ...


def _check_job_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - JOB_FIELDS
    if unknown:
        raise ValueError(f"Unknown job field(s): {', '.join(sorted(unknown))}")


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class MemoryRecordStore:
    def __init__(self, *, now: Callable[[], datetime] = utc_now) -> None:
        self._now = now
        self._lock = threading.RLock()
        self._jobs: Dict[str, Job] = {}
        self._records: Dict[str, InputRecord] = {}
        self._results: Dict[str, VerificationResult] = {}

    def create_job(self, *, original_file: Optional[str] = None, total_rows: int = 0) -> Job:
        now = self._now()
        job = Job(id=new_job_id(), original_file=original_file, total_rows=total_rows, created_at=now, updated_at=now)
        with self._lock:
            self._jobs[job.id] = job
        return replace(job)

    def _job(self, job_id: str) -> Job:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise JobNotFoundError(job_id) from None

    def get_job(self, job_id: str) -> Job:
        with self._lock:
            return replace(self._job(job_id))

    def update_job(self, job_id: str, **fields: Any) -> Job:
        _check_job_fields(fields)
        if "status" in fields:
            fields["status"] = JobStatus(fields["status"])
        with self._lock:
            job = replace(self._job(job_id), updated_at=self._now(), **fields)
            self._jobs[job_id] = job
            return replace(job)

    def increment_job_counts(self, job_id: str, *, processed: int = 0, errors: int = 0) -> Job:
        with self._lock:
            job = self._job(job_id)
            job = replace(
                job,
                processed_rows=job.processed_rows + processed,
                error_count=job.error_count + errors,
                updated_at=self._now(),
            )
            self._jobs[job_id] = job
            return replace(job)

    def create_record(self, record: InputRecord) -> InputRecord:
        with self._lock:
            self._job(record.job_id)
            self._records[record.id] = record
        return record

    def find_records_by_job(self, job_id: str, record_ids: Optional[Iterable[str]] = None) -> List[InputRecord]:
        wanted = set(record_ids) if record_ids else None
        with self._lock:
            records = [
                record
                for record in self._records.values()
                if record.job_id == job_id and (wanted is None or record.id in wanted)
            ]
        return sorted(records, key=lambda record: record.row_index)

    def find_record_by_id(self, record_id: str) -> InputRecord:
        with self._lock:
            try:
                return self._records[record_id]
            except KeyError:
                raise RecordNotFoundError(record_id) from None

    def upsert_verification_result(
        self, record_id: str, job_id: str, fields: Mapping[str, Any]
    ) -> VerificationResult:
        _check_result_fields(fields)
        with self._lock:
            if record_id not in self._records:
                raise RecordNotFoundError(record_id)
            current = self._results.get(record_id) or VerificationResult(record_id=record_id, job_id=job_id)
            updated = _apply_fields(replace(current, job_id=job_id), fields)
            self._results[record_id] = updated
            return replace(updated)

    def find_verification_result(self, record_id: str) -> Optional[VerificationResult]:
        with self._lock:
            result = self._results.get(record_id)
            return replace(result) if result else None

    def find_verification_results_by_job(self, job_id: str) -> List[VerificationResult]:
        with self._lock:
            results = [replace(result) for result in self._results.values() if result.job_id == job_id]
            order = {record_id: record.row_index for record_id, record in self._records.items()}
        return sorted(results, key=lambda result: order.get(result.record_id, 0))


# ---------------------------------------------------------------------------
# SQLite backend
# ---------------------------------------------------------------------------

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        status TEXT NOT NULL,
        original_file TEXT,
        total_rows INTEGER NOT NULL DEFAULT 0,
        processed_rows INTEGER NOT NULL DEFAULT 0,
        error_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS input_records (
        id TEXT PRIMARY KEY,
        job_id TEXT NOT NULL REFERENCES jobs(id),
        row_index INTEGER NOT NULL,
        filer_ein TEXT NOT NULL,
        org_name TEXT NOT NULL,
        employee_name_raw TEXT NOT NULL,
        website_raw TEXT,
        org_domain TEXT,
        first_name TEXT,
        middle_name TEXT,
        last_name TEXT,
        suffix TEXT,
        employee_title_raw TEXT,
        comp_org TEXT,
        input_issues TEXT NOT NULL DEFAULT '[]'
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_input_records_job ON input_records(job_id, row_index)",
    """
    CREATE TABLE IF NOT EXISTS verification_results (
        record_id TEXT PRIMARY KEY REFERENCES input_records(id),
        job_id TEXT NOT NULL,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_results_job ON verification_results(job_id)",
)

_RECORD_COLUMNS = (
    "id",
    "job_id",
    "row_index",
    "filer_ein",
    "org_name",
    "employee_name_raw",
    "website_raw",
    "org_domain",
    "first_name",
    "middle_name",
    "last_name",
    "suffix",
    "employee_title_raw",
    "comp_org",
    "input_issues",
)


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        status=JobStatus(row["status"]),
        original_file=row["original_file"],
        total_rows=row["total_rows"],
        processed_rows=row["processed_rows"],
        error_count=row["error_count"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_record(row: sqlite3.Row) -> InputRecord:
    values = {column: row[column] for column in _RECORD_COLUMNS}
    values["input_issues"] = tuple(json.loads(values["input_issues"] or "[]"))
    return InputRecord(**values)


class SqliteRecordStore:
    """SQLite-backed store; a connection per call plus a write lock keeps threads apart."""

    def __init__(self, path: str | Path, *, now: Callable[[], datetime] = utc_now) -> None:
        self.path = Path(path)
        self._now = now
        self._write_lock = threading.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        con = self._connect()
        try:
            for statement in _SCHEMA:
                con.execute(statement)
            con.commit()
        finally:
            con.close()

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.path), timeout=30)
        con.row_factory = sqlite3.Row
        return con

    # -- jobs -------------------------------------------------------------
    def create_job(self, *, original_file: Optional[str] = None, total_rows: int = 0) -> Job:
        now = self._now().isoformat()
        job_id = new_job_id()
        with self._write_lock:
            con = self._connect()
            try:
                con.execute(
                    "INSERT INTO jobs (id, status, original_file, total_rows, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, ?, ?)",
                    (job_id, JobStatus.PENDING.value, original_file, int(total_rows), now, now),
                )
                con.commit()
            finally:
                con.close()
        return self.get_job(job_id)

    def get_job(self, job_id: str) -> Job:
        con = self._connect()
        try:
            row = con.execute("SELECT * FROM jobs WHERE id=?", (job_id,)).fetchone()
        finally:
            con.close()
        if row is None:
            raise JobNotFoundError(job_id)
        return _row_to_job(row)

    def update_job(self, job_id: str, **fields: Any) -> Job:
        _check_job_fields(fields)
        if "status" in fields:
            fields["status"] = JobStatus(fields["status"]).value
        assignments = ", ".join(f"{name}=?" for name in fields)
        params = [*fields.values(), self._now().isoformat(), job_id]
        sql = f"UPDATE jobs SET {assignments + ', ' if assignments else ''}updated_at=? WHERE id=?"
        with self._write_lock:
            con = self._connect()
            try:
                cursor = con.execute(sql, params)
                con.commit()
            finally:
                con.close()
        if cursor.rowcount == 0:
            raise JobNotFoundError(job_id)
        return self.get_job(job_id)

    def increment_job_counts(self, job_id: str, *, processed: int = 0, errors: int = 0) -> Job:
        with self._write_lock:
            con = self._connect()
            try:
                cursor = con.execute(
                    "UPDATE jobs SET processed_rows=processed_rows+?, error_count=error_count+?, updated_at=?"
                    " WHERE id=?",
                    (int(processed), int(errors), self._now().isoformat(), job_id),
                )
                con.commit()
            finally:
                con.close()
        if cursor.rowcount == 0:
            raise JobNotFoundError(job_id)
        return self.get_job(job_id)

    # -- records ----------------------------------------------------------
    def create_record(self, record: InputRecord) -> InputRecord:
        self.get_job(record.job_id)
        values = [getattr(record, column) for column in _RECORD_COLUMNS]
        values[-1] = json.dumps(list(record.input_issues))
        placeholders = ", ".join("?" for _ in _RECORD_COLUMNS)
        with self._write_lock:
            con = self._connect()
            try:
                con.execute(
                    f"INSERT INTO input_records ({', '.join(_RECORD_COLUMNS)}) VALUES ({placeholders})",
                    values,
                )
                con.commit()
            finally:
                con.close()
        return record

    def find_records_by_job(self, job_id: str, record_ids: Optional[Iterable[str]] = None) -> List[InputRecord]:
        con = self._connect()
        try:
            rows = con.execute(
                "SELECT * FROM input_records WHERE job_id=? ORDER BY row_index", (job_id,)
            ).fetchall()
        finally:
            con.close()
        records = [_row_to_record(row) for row in rows]
        if record_ids:
            wanted = set(record_ids)
            records = [record for record in records if record.id in wanted]
        return records

    def find_record_by_id(self, record_id: str) -> InputRecord:
        con = self._connect()
        try:
            row = con.execute("SELECT * FROM input_records WHERE id=?", (record_id,)).fetchone()
        finally:
            con.close()
        if row is None:
            raise RecordNotFoundError(record_id)
        return _row_to_record(row)

    # -- results ----------------------------------------------------------
    def upsert_verification_result(
        self, record_id: str, job_id: str, fields: Mapping[str, Any]
    ) -> VerificationResult:
        _check_result_fields(fields)
        with self._write_lock:
            con = self._connect()
            try:
                exists = con.execute("SELECT 1 FROM input_records WHERE id=?", (record_id,)).fetchone()
                if exists is None:
                    raise RecordNotFoundError(record_id)
                row = con.execute(
                    "SELECT payload FROM verification_results WHERE record_id=?", (record_id,)
                ).fetchone()
                if row is None:
                    current = VerificationResult(record_id=record_id, job_id=job_id)
                else:
                    current = result_from_json(record_id, job_id, row["payload"])
                updated = _apply_fields(current, fields)
                con.execute(
                    """
                    INSERT INTO verification_results (record_id, job_id, payload, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(record_id) DO UPDATE SET
                        job_id=excluded.job_id,
                        payload=excluded.payload,
                        updated_at=excluded.updated_at
                    """,
                    (record_id, job_id, result_to_json(updated), self._now().isoformat()),
                )
                con.commit()
            finally:
                con.close()
        return updated

    def find_verification_result(self, record_id: str) -> Optional[VerificationResult]:
        con = self._connect()
        try:
            row = con.execute(
                "SELECT job_id, payload FROM verification_results WHERE record_id=?", (record_id,)
            ).fetchone()
        finally:
            con.close()
        if row is None:
            return None
        return result_from_json(record_id, row["job_id"], row["payload"])

    def find_verification_results_by_job(self, job_id: str) -> List[VerificationResult]:
        con = self._connect()
        try:
            rows = con.execute(
                """
                SELECT r.record_id, r.payload FROM verification_results r
                JOIN input_records i ON i.id = r.record_id
                WHERE r.job_id=? ORDER BY i.row_index
                """,
                (job_id,),
            ).fetchall()
        finally:
            con.close()
        return [result_from_json(row["record_id"], job_id, row["payload"]) for row in rows]
