"""Job runner that sweeps a job's records through one enrichment pass at a time."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from ..cache import utc_now
from ..config import Settings
from ..enrichers import enrich_email_record, enrich_people_record, verify_record
from ..factory import ServiceRegistry
from ..merge import merge_people_fields
from ..models import EmailType, EmploymentStatus, InputRecord, JobStatus, VerifyMode
from ..scoring import score_job
from ..store import RecordStore

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def map_with_concurrency(items: Sequence[T], concurrency: int, fn: Callable[[T, int], None]) -> None:
    """Run ``fn(item, index)`` over ``items`` on a fixed number of worker threads.

    Workers claim the next unprocessed index from a shared counter, so at most
    ``concurrency`` calls are in flight. An exception raised by ``fn`` stops that
    worker and is re-raised once the others have drained the queue.
    """

    items = list(items)
    if not items:
        return
    workers = max(1, min(int(concurrency or 1), len(items)))
    lock = threading.Lock()
    next_index = [0]

    def worker() -> None:
        while True:
            with lock:
                index = next_index[0]
                next_index[0] += 1
            if index >= len(items):
                return
            fn(items[index], index)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="record-worker") as executor:
        futures = [executor.submit(worker) for _ in range(workers)]
        for future in as_completed(futures):
            future.result()


@dataclass
class PassSummary:
    record_count: int = 0
    processed: int = 0
    total_cost_usd: float = 0.0
    errors: int = 0
    enriched_count: int = 0


@dataclass(frozen=True)
class _RecordResult:
    cost_usd: float = 0.0
    enriched: bool = False
    error: bool = False


class JobRunner:
    """Runs the verify, email and people-data passes over a stored job.

    Each record is isolated: a failure is logged, counted on the job and, for the
    verify and email passes, recorded as a degraded result so no row is skipped. The job's
    ``processed_rows`` and ``error_count`` restart at zero with every pass.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Settings,
        services: Optional[ServiceRegistry] = None,
        *,
        verifier: Callable = verify_record,
        email_enricher: Callable = enrich_email_record,
        people_enricher: Callable = enrich_people_record,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._services = services
        self._verifier = verifier
        self._email_enricher = email_enricher
        self._people_enricher = people_enricher
        self._now = now

    @property
    def _mode(self) -> VerifyMode:
        return VerifyMode.ONLINE if self._settings.online else VerifyMode.OFFLINE

    def _service(self, name: str):
        return getattr(self._services, name) if self._services is not None else None

    # ------------------------------------------------------------------
    # Public passes
    # ------------------------------------------------------------------
    def run_verify(self, job_id: str) -> PassSummary:
        return self._run_pass(
            job_id,
            "verify",
            self._verify_one,
            self._verify_failed,
            preflight=self._settings.require_online_search,
        )

    def run_email_enrichment(self, job_id: str) -> PassSummary:
        return self._run_pass(job_id, "email", self._email_one, self._email_failed)

    def run_people_enrichment(self, job_id: str, record_ids: Optional[Iterable[str]] = None) -> PassSummary:
        return self._run_pass(
            job_id,
            "people",
            self._people_one,
            None,
            record_ids=list(record_ids) if record_ids else None,
        )

    # ------------------------------------------------------------------
    def _run_pass(
        self,
        job_id: str,
        pass_name: str,
        handle: Callable[[InputRecord], _RecordResult],
        on_failure: Optional[Callable[[InputRecord, Exception], None]],
        *,
        record_ids: Optional[List[str]] = None,
        preflight: Optional[Callable[[], None]] = None,
    ) -> PassSummary:
        self._store.get_job(job_id)
        self._store.update_job(job_id, status=JobStatus.RUNNING, processed_rows=0, error_count=0)
        summary = PassSummary()
        summary_lock = threading.Lock()

        def process(record: InputRecord, index: int) -> None:
            try:
                result = handle(record)
            except Exception as exc:
                LOGGER.exception("%s pass failed for record %s (row %d)", pass_name, record.id, record.row_index)
                if on_failure is not None:
                    on_failure(record, exc)
                result = _RecordResult(error=True)
            self._store.increment_job_counts(job_id, processed=1, errors=1 if result.error else 0)
            with summary_lock:
                summary.processed += 1
                summary.total_cost_usd += result.cost_usd
                summary.errors += 1 if result.error else 0
                summary.enriched_count += 1 if result.enriched else 0

        try:
            if preflight is not None:
                preflight()
            records = self._store.find_records_by_job(job_id, record_ids)
            summary.record_count = len(records)
            LOGGER.info("Starting %s pass for job %s (%d records)", pass_name, job_id, len(records))
            map_with_concurrency(records, self._settings.worker_concurrency, process)
            score_job(self._store, job_id, self._now())
        except Exception:
            LOGGER.exception("%s pass for job %s failed", pass_name, job_id)
            self._store.update_job(job_id, status=JobStatus.FAILED)
            raise

        self._store.update_job(job_id, status=JobStatus.COMPLETED)
        summary.total_cost_usd = round(summary.total_cost_usd, 6)
        LOGGER.info(
            "Finished %s pass for job %s: %d processed, %d errors, %d enriched, $%.4f",
            pass_name,
            job_id,
            summary.processed,
            summary.errors,
            summary.enriched_count,
            summary.total_cost_usd,
        )
        return summary

    # -- verify -----------------------------------------------------------
    def _verify_one(self, record: InputRecord) -> _RecordResult:
        outcome = self._verifier(record, settings=self._settings, search=self._service("search"))
        fields = outcome.as_fields()
        fields["last_verified_at"] = self._now()
        self._store.upsert_verification_result(record.id, record.job_id, fields)
        return _RecordResult(
            cost_usd=outcome.cost_usd,
            enriched=outcome.current_status != EmploymentStatus.UNKNOWN,
        )

    def _verify_failed(self, record: InputRecord, exc: Exception) -> None:
        self._store.upsert_verification_result(
            record.id,
            record.job_id,
            {
                "mode": self._mode,
                "current_status": EmploymentStatus.UNKNOWN,
                "unknown_reason": "processing_error",
                "current_title": None,
                "evidence_date": None,
                "data_sources": [],
                "notes": f"Processing error: {exc}",
                "cost_usd": 0.0,
                "last_verified_at": self._now(),
            },
        )

    # -- email ------------------------------------------------------------
    def _email_one(self, record: InputRecord) -> _RecordResult:
        outcome = self._email_enricher(
            record,
            settings=self._settings,
            finder=self._service("finder"),
            verifier=self._service("verifier"),
        )
        fields = outcome.as_fields()
        fields["email_last_checked_at"] = self._now()
        if self._store.find_verification_result(record.id) is None:
            fields["mode"] = self._mode
        self._store.upsert_verification_result(record.id, record.job_id, fields)
        return _RecordResult(cost_usd=outcome.cost_usd, enriched=outcome.verified_email is not None)

    def _email_failed(self, record: InputRecord, exc: Exception) -> None:
        fields = {
            "verified_email": None,
            "email_type": EmailType.NOT_FOUND,
            "email_checks": {"error": str(exc)},
            "email_sources": [],
            "email_cost_usd": 0.0,
            "email_last_checked_at": self._now(),
        }
        if self._store.find_verification_result(record.id) is None:
            fields["mode"] = self._mode
        self._store.upsert_verification_result(record.id, record.job_id, fields)

    # -- people data ------------------------------------------------------
    def _people_one(self, record: InputRecord) -> _RecordResult:
        outcome = self._people_enricher(record, settings=self._settings, client=self._service("pdl"))
        if outcome.raw_response is None:
            return _RecordResult(cost_usd=outcome.cost_usd)
        if outcome.is_error:
            LOGGER.warning("People-data lookup for record %s returned an error", record.id)
            return _RecordResult(cost_usd=outcome.cost_usd, error=True)

        existing = self._store.find_verification_result(record.id)
        fields = merge_people_fields(existing, outcome, now=self._now)
        if existing is None:
            fields["mode"] = self._mode
        self._store.upsert_verification_result(record.id, record.job_id, fields)
        return _RecordResult(
            cost_usd=outcome.cost_usd,
            enriched=bool(outcome.email or outcome.phone or outcome.linkedin),
        )
