"""Per-record decision logic for the verify, email and people-data passes."""

from .email import EmailOutcome, enrich_email_record  # noqa: F401
from .people import PeopleOutcome, enrich_people_record  # noqa: F401
from .verify import VERIFICATION_RULES, VerificationOutcome, verify_record  # noqa: F401

__all__ = [
    "EmailOutcome",
    "PeopleOutcome",
    "VERIFICATION_RULES",
    "VerificationOutcome",
    "enrich_email_record",
    "enrich_people_record",
    "verify_record",
]
