"""Work-email discovery and classification for a single record."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..config import Settings
from ..models import EmailType, InputRecord
from ..providers import HunterClient, ProviderError, ZeroBounceClient

LOGGER = logging.getLogger(__name__)

FREE_EMAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "aol.com",
        "icloud.com",
        "proton.me",
        "protonmail.com",
        "live.com",
    }
)

MAX_CITATIONS = 3

_EMAIL_RE = re.compile(r"^(?!.*\.{2})[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)


@dataclass
class EmailOutcome:
    verified_email: Optional[str]
    email_type: EmailType
    checks: Dict[str, Any] = field(default_factory=dict)
    sources: List[Dict[str, Any]] = field(default_factory=list)
    cost_usd: float = 0.0

    def as_fields(self) -> Dict[str, Any]:
        return {
            "verified_email": self.verified_email,
            "email_type": self.email_type,
            "email_checks": dict(self.checks),
            "email_sources": list(self.sources),
            "email_cost_usd": self.cost_usd,
        }


def is_valid_email_syntax(email: str) -> bool:
    if len(email) > 254:
        return False
    return bool(_EMAIL_RE.match(email))


def email_domain(email: str) -> str:
    _, _, domain = email.partition("@")
    return domain.lower()


def pattern_candidates(record: InputRecord) -> List[str]:
    """``first.last``, ``flast`` and ``firstlast`` at the org domain, in that order."""
    domain = (record.org_domain or "").lower()
    first = (record.first_name or "").lower()
    last = (record.last_name or "").lower()
    if not domain or not first or not last:
        return []
    return [f"{first}.{last}@{domain}", f"{first[0]}{last}@{domain}", f"{first}{last}@{domain}"]


def _find_with_provider(
    record: InputRecord, finder: HunterClient, sources: List[Dict[str, Any]]
) -> Tuple[Optional[str], float]:
    call = finder.find_email(record.org_domain, record.first_name, record.last_name)
    result = call.response
    if not result.found:
        LOGGER.debug("Finder returned no email for record %s", record.id)
        return None, call.cost_usd
    sources.append(
        {
            "provider": finder.name,
            "score": result.score,
            "position": result.position,
            "sources": result.sources[:MAX_CITATIONS],
        }
    )
    return result.email, call.cost_usd


def enrich_email_record(
    record: InputRecord,
    *,
    settings: Settings,
    finder: Optional[HunterClient] = None,
    verifier: Optional[ZeroBounceClient] = None,
) -> EmailOutcome:
    """Choose a candidate address, run local checks and optionally verify it."""

    checks: Dict[str, Any] = {}
    sources: List[Dict[str, Any]] = []
    cost_usd = 0.0
    email: Optional[str] = None

    use_finder = settings.finder_enabled and finder is not None
    if use_finder and record.org_domain and record.first_name and record.last_name:
        try:
            email, cost = _find_with_provider(record, finder, sources)
            cost_usd += cost
        except ProviderError as exc:
            LOGGER.warning("Email finder failed for record %s: %s", record.id, exc)
            sources.append({"provider": finder.name, "error": str(exc)})

    if not email:
        candidates = pattern_candidates(record)
        if candidates:
            email = candidates[0]
            sources.append({"provider": "pattern_guess", "pattern": "first.last", "alternates": candidates[1:]})

    if not email:
        return EmailOutcome(
            verified_email=None,
            email_type=EmailType.NOT_FOUND,
            checks={"reason": "missing_name_or_domain"},
            sources=sources,
            cost_usd=cost_usd,
        )

    domain = email_domain(email)
    checks["syntax_valid"] = is_valid_email_syntax(email)
    checks["domain"] = domain
    checks["is_free_mailbox"] = domain in FREE_EMAIL_DOMAINS
    checks["domain_matches_org"] = bool(record.org_domain) and domain == record.org_domain.lower()

    email_type = EmailType.PERSONAL if checks["is_free_mailbox"] else EmailType.WORK_UNVERIFIED

    use_verifier = settings.verifier_enabled and verifier is not None
    if use_verifier and checks["syntax_valid"]:
        try:
            call = verifier.validate(email)
        except ProviderError as exc:
            LOGGER.warning("Email verifier failed for record %s: %s", record.id, exc)
            sources.append({"provider": verifier.name, "error": str(exc)})
        else:
            cost_usd += call.cost_usd
            validation = call.response
            sources.append(
                {"provider": verifier.name, "status": validation.status, "sub_status": validation.sub_status}
            )
            checks[verifier.name] = call.raw
            if validation.is_valid and not checks["is_free_mailbox"]:
                email_type = EmailType.WORK_VERIFIED

    return EmailOutcome(
        verified_email=email,
        email_type=email_type,
        checks=checks,
        sources=sources,
        cost_usd=cost_usd,
    )
