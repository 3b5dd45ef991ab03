from datetime import datetime, timedelta, timezone

import pytest

from leadership_verifier.models import (
    ConfidenceLevel,
    EmailType,
    EmploymentStatus,
    EvidenceSource,
    InputRecord,
    VerificationResult,
)
from leadership_verifier.scoring import cost_per_record, score_job, score_record
from leadership_verifier.store import MemoryRecordStore

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _result(**fields) -> VerificationResult:
    values = {
        "current_status": EmploymentStatus.STILL_EMPLOYED,
        "evidence_date": NOW - timedelta(days=10),
        "data_sources": [EvidenceSource(type="org_site"), EvidenceSource(type="web")],
        "email_type": EmailType.WORK_VERIFIED,
    }
    values.update(fields)
    return VerificationResult(record_id="rec-1", job_id="job-1", **values)


def test_recent_org_site_evidence_with_verified_email_is_high() -> None:
    assert score_record(_result(), NOW) == ConfidenceLevel.HIGH


def test_single_source_drops_to_medium() -> None:
    result = _result(data_sources=[EvidenceSource(type="org_site")])

    assert score_record(result, NOW) == ConfidenceLevel.MEDIUM


def test_old_evidence_with_org_site_is_medium() -> None:
    result = _result(evidence_date=NOW - timedelta(days=400))

    assert score_record(result, NOW) == ConfidenceLevel.MEDIUM


def test_missing_date_without_org_site_is_low() -> None:
    result = _result(evidence_date=None, data_sources=[EvidenceSource(type="web")])

    assert score_record(result, NOW) == ConfidenceLevel.LOW


def test_missing_date_with_org_site_is_medium() -> None:
    result = _result(evidence_date=None)

    assert score_record(result, NOW) == ConfidenceLevel.MEDIUM


def test_recent_web_evidence_is_medium() -> None:
    result = _result(data_sources=[EvidenceSource(type="web")], evidence_date=NOW - timedelta(days=200))

    assert score_record(result, NOW) == ConfidenceLevel.MEDIUM


def test_personal_email_is_low() -> None:
    assert score_record(_result(email_type=EmailType.PERSONAL), NOW) == ConfidenceLevel.LOW


def test_left_organization_is_low() -> None:
    assert score_record(_result(current_status=EmploymentStatus.LEFT_ORGANIZATION), NOW) == ConfidenceLevel.LOW


def test_cost_per_record_sums_every_pass() -> None:
    result = _result(cost_usd=0.005, email_cost_usd=0.024, pdl_cost_usd=0.05)

    assert cost_per_record(result) == pytest.approx(0.079)


def test_score_job_updates_stored_results() -> None:
    store = MemoryRecordStore()
    job = store.create_job(total_rows=1)
    record = InputRecord(
        id="rec-1", job_id=job.id, row_index=1, filer_ein="123456789", org_name="Acme", employee_name_raw="Jane Doe"
    )
    store.create_record(record)
    store.upsert_verification_result(
        record.id,
        job.id,
        {
            "current_status": EmploymentStatus.STILL_EMPLOYED,
            "evidence_date": NOW - timedelta(days=5),
            "data_sources": [EvidenceSource(type="org_site"), EvidenceSource(type="web")],
            "email_type": EmailType.WORK_VERIFIED,
            "cost_usd": 0.005,
            "email_cost_usd": 0.02,
        },
    )

    assert score_job(store, job.id, NOW) == 1

    stored = store.find_verification_result(record.id)
    assert stored.confidence_level == ConfidenceLevel.HIGH
    assert stored.cost_per_record_usd == pytest.approx(0.025)
