"""People-data (PDL) enrichment for a single record."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..cache import utc_now
from ..config import Settings
from ..models import InputRecord
from ..normalize import normalize_name_for_search
from ..providers import PdlClient, PersonMatch, PersonProfile, ProviderError

LOGGER = logging.getLogger(__name__)


@dataclass
class PeopleOutcome:
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin: Optional[str] = None
    job_title: Optional[str] = None
    seniority: Optional[str] = None
    organization: Optional[str] = None
    confidence_score: Optional[float] = None
    raw_response: Optional[Dict[str, Any]] = None
    enriched_at: Optional[datetime] = None
    cost_usd: float = 0.0

    @property
    def is_error(self) -> bool:
        """True when the raw response carries an error other than not-found."""
        if not self.raw_response:
            return False
        error = self.raw_response.get("error")
        if not error:
            return False
        return not (isinstance(error, dict) and error.get("type") == "not_found")

    @property
    def enriched(self) -> bool:
        return self.enriched_at is not None

    def as_fields(self) -> Dict[str, Any]:
        return {
            "pdl_email": self.email,
            "pdl_phone": self.phone,
            "pdl_linkedin": self.linkedin,
            "pdl_job_title": self.job_title,
            "pdl_seniority": self.seniority,
            "pdl_organization": self.organization,
            "pdl_confidence_score": self.confidence_score,
            "pdl_raw_response": self.raw_response,
            "pdl_enriched_at": self.enriched_at,
            "pdl_cost_usd": self.cost_usd,
        }


def linkedin_handle(first_name: Optional[str], last_name: Optional[str]) -> Optional[str]:
    if not first_name or not last_name:
        return None
    slug = re.sub(r"[^a-z0-9]", "", f"{first_name}{last_name}".lower())
    return f"linkedin.com/in/{slug}" if slug else None


# --- Field extractors ---

def extract_work_email(profile: PersonProfile) -> Optional[str]:
    if profile.work_email:
        return profile.work_email
    for address, kind in profile.emails:
        if kind in ("work", "professional"):
            return address
    return profile.emails[0][0] if profile.emails else None


def extract_phone(profile: PersonProfile) -> Optional[str]:
    if profile.mobile_phone:
        return profile.mobile_phone
    return profile.phone_numbers[0] if profile.phone_numbers else None


def extract_linkedin(profile: PersonProfile) -> Optional[str]:
    if profile.linkedin_url:
        return profile.linkedin_url
    for network, url in profile.profiles:
        if (network or "").lower() == "linkedin" and url:
            return url
    return None


def extract_job_title(profile: PersonProfile) -> Optional[str]:
    if profile.job_title:
        return profile.job_title
    experience = profile.primary_experience
    return experience.title if experience else None


def extract_seniority(profile: PersonProfile) -> Optional[str]:
    if profile.job_title_levels:
        return profile.job_title_levels[0]
    experience = profile.primary_experience
    if experience and experience.levels:
        return experience.levels[0]
    return None


def extract_organization(profile: PersonProfile) -> Optional[str]:
    if profile.job_company_name:
        return profile.job_company_name
    experience = profile.primary_experience
    return experience.company_name if experience else None


def enrich_people_record(
    record: InputRecord,
    *,
    settings: Settings,
    client: Optional[PdlClient],
    now: Callable[[], datetime] = utc_now,
) -> PeopleOutcome:
    """Look the record's person up and extract contact fields.

    Not-found and provider failures are returned as empty outcomes rather than
    raised; :attr:`PeopleOutcome.is_error` tells the two apart.
    """

    if not settings.online or client is None:
        return PeopleOutcome()

    first = (record.first_name or "").strip()
    last = (record.last_name or "").strip()
    if not first or not last:
        return PeopleOutcome()

    name = normalize_name_for_search(f"{first} {last}")
    first = name.first or first
    last = name.last or last
    profile_handle = linkedin_handle(first, last)
    if not profile_handle:
        return PeopleOutcome()

    try:
        call = client.enrich_person(
            profile=profile_handle,
            first_name=first.lower(),
            last_name=last.lower(),
            company_domain=(record.org_domain or "").lower(),
            company_name=(record.org_name or "").lower(),
        )
    except ProviderError as exc:
        LOGGER.warning("People-data lookup failed for record %s: %s", record.id, exc)
        return PeopleOutcome(raw_response={"error": str(exc), "status": exc.status_code or 500})

    result = call.response
    if not isinstance(result, PersonMatch):
        return PeopleOutcome(raw_response=call.raw, cost_usd=call.cost_usd)

    profile = result.profile
    return PeopleOutcome(
        email=extract_work_email(profile),
        phone=extract_phone(profile),
        linkedin=extract_linkedin(profile),
        job_title=extract_job_title(profile),
        seniority=extract_seniority(profile),
        organization=extract_organization(profile),
        confidence_score=result.likelihood / 10 if result.likelihood is not None else None,
        raw_response=call.raw,
        enriched_at=now(),
        cost_usd=call.cost_usd,
    )
