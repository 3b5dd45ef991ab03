"""Confidence scoring over stored verification results."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .cache import utc_now
from .models import ConfidenceLevel, EmailType, EmploymentStatus, VerificationResult

LOGGER = logging.getLogger(__name__)

ORG_SITE_SOURCE = "org_site"
HIGH_MAX_AGE_DAYS = 90
MEDIUM_MAX_AGE_DAYS = 365


def evidence_age_days(result: VerificationResult, now: datetime) -> float:
    """Days since the evidence date; a missing date is infinitely old."""
    if result.evidence_date is None:
        return float("inf")
    return (now - result.evidence_date).total_seconds() / 86400


def score_record(result: VerificationResult, now: Optional[datetime] = None) -> ConfidenceLevel:
    now = now or utc_now()
    age = evidence_age_days(result, now)
    has_org_source = any(source.type == ORG_SITE_SOURCE for source in result.data_sources)
    still_employed = result.current_status == EmploymentStatus.STILL_EMPLOYED

    if (
        still_employed
        and age <= HIGH_MAX_AGE_DAYS
        and has_org_source
        and len(result.data_sources) >= 2
        and result.email_type == EmailType.WORK_VERIFIED
    ):
        return ConfidenceLevel.HIGH
    if still_employed and (age <= MEDIUM_MAX_AGE_DAYS or has_org_source) and result.email_type != EmailType.PERSONAL:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def cost_per_record(result: VerificationResult) -> float:
    """Total spend for the record across verification, email and people-data passes."""
    return round(result.cost_usd + result.email_cost_usd + result.pdl_cost_usd, 6)


def score_job(store, job_id: str, now: Optional[datetime] = None) -> int:
    """Recompute confidence and cost for every stored result of ``job_id``."""

    now = now or utc_now()
    results = store.find_verification_results_by_job(job_id)
    for result in results:
        store.upsert_verification_result(
            result.record_id,
            job_id,
            {
                "confidence_level": score_record(result, now),
                "cost_per_record_usd": cost_per_record(result),
            },
        )
    LOGGER.info("Scored %d results for job %s", len(results), job_id)
    return len(results)
