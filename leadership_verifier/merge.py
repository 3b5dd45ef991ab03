"""Field-level merge of a people-data pass into an existing result."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .cache import utc_now
from .enrichers.people import PeopleOutcome
from .models import VerificationResult

PEOPLE_VALUE_FIELDS = (
    "pdl_email",
    "pdl_phone",
    "pdl_linkedin",
    "pdl_job_title",
    "pdl_seniority",
    "pdl_organization",
)


def should_update_field(
    current: Any,
    new: Any,
    current_confidence: Optional[float],
    new_confidence: Optional[float],
) -> bool:
    """Decide whether ``new`` replaces ``current``.

    A value always fills an empty slot. Between two values the newer one wins only
    with a strictly higher confidence; an unscored stored value is always replaced
    and an unscored new value never replaces.
    """

    if new is None or new == "":
        return False
    if current is None or current == "":
        return True
    if current_confidence is None:
        return True
    if new_confidence is None:
        return False
    return new_confidence > current_confidence


def merge_people_fields(
    existing: Optional[VerificationResult],
    outcome: PeopleOutcome,
    *,
    now: Callable[[], datetime] = utc_now,
) -> Dict[str, Any]:
    """Return the people-data fields to write for ``outcome``."""

    new_values = outcome.as_fields()
    current_confidence = existing.pdl_confidence_score if existing else None
    new_confidence = outcome.confidence_score

    fields: Dict[str, Any] = {
        "pdl_raw_response": outcome.raw_response,
        "pdl_enriched_at": outcome.enriched_at or now(),
        "pdl_cost_usd": outcome.cost_usd,
    }
    for name in PEOPLE_VALUE_FIELDS:
        current = getattr(existing, name) if existing else None
        if should_update_field(current, new_values[name], current_confidence, new_confidence):
            fields[name] = new_values[name]

    if should_update_field(current_confidence, new_confidence, current_confidence, new_confidence):
        fields["pdl_confidence_score"] = new_confidence
    return fields
