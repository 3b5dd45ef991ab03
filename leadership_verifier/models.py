"""Data models shared by the store, the enrichers, the scorer and the exporters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# --- Enumerations ---

class VerifyMode(str, Enum):
    OFFLINE = "OFFLINE"
    ONLINE = "ONLINE"


class EmploymentStatus(str, Enum):
    STILL_EMPLOYED = "STILL_EMPLOYED"
    LEFT_ORGANIZATION = "LEFT_ORGANIZATION"
    UNKNOWN = "UNKNOWN"


class EmailType(str, Enum):
    WORK_VERIFIED = "WORK_VERIFIED"
    WORK_UNVERIFIED = "WORK_UNVERIFIED"
    PERSONAL = "PERSONAL"
    NOT_FOUND = "NOT_FOUND"


class ConfidenceLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CacheProvider(str, Enum):
    GOOGLE_CSE = "GOOGLE_CSE"
    EMAIL_FINDER = "EMAIL_FINDER"
    EMAIL_VERIFIER = "EMAIL_VERIFIER"
    PDL = "PDL"


# --- Core Input Models ---

@dataclass(frozen=True, slots=True)
class InputRecord:
    """One ingested leadership row; derived fields are fixed at creation."""

    id: str
    job_id: str
    row_index: int
    filer_ein: str
    org_name: str
    employee_name_raw: str
    website_raw: Optional[str] = None
    org_domain: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    suffix: Optional[str] = None
    employee_title_raw: Optional[str] = None
    comp_org: Optional[str] = None
    input_issues: tuple[str, ...] = ()

    def display_name(self) -> str:
        """Return a readable name for logs."""
        name = " ".join(filter(None, [self.first_name, self.last_name])).strip()
        return name or self.employee_name_raw or "(Unnamed)"


@dataclass(slots=True)
class Job:
    """A batch of records created from one upload."""

    id: str
    status: JobStatus = JobStatus.PENDING
    original_file: Optional[str] = None
    total_rows: int = 0
    processed_rows: int = 0
    error_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Verification Results ---

@dataclass
class EvidenceSource:
    """One piece of supporting data recorded against a verification outcome."""

    type: str
    query: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    snippet: Optional[str] = None
    evidence_date: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvidenceSource":
        return cls(
            type=str(data.get("type") or "web"),
            query=data.get("query"),
            url=data.get("url"),
            title=data.get("title"),
            snippet=data.get("snippet"),
            evidence_date=data.get("evidence_date"),
        )


@dataclass
class VerificationResult:
    """Stored outcome for a record; each pass owns a disjoint set of fields."""

    record_id: str
    job_id: str
    mode: VerifyMode = VerifyMode.OFFLINE
    current_status: EmploymentStatus = EmploymentStatus.UNKNOWN
    unknown_reason: Optional[str] = None
    current_title: Optional[str] = None
    evidence_date: Optional[datetime] = None
    data_sources: List[EvidenceSource] = field(default_factory=list)
    notes: Optional[str] = None
    cost_usd: float = 0.0
    last_verified_at: Optional[datetime] = None

    verified_email: Optional[str] = None
    email_type: EmailType = EmailType.NOT_FOUND
    email_checks: Dict[str, Any] = field(default_factory=dict)
    email_sources: List[Dict[str, Any]] = field(default_factory=list)
    email_cost_usd: float = 0.0
    email_last_checked_at: Optional[datetime] = None

    pdl_email: Optional[str] = None
    pdl_phone: Optional[str] = None
    pdl_linkedin: Optional[str] = None
    pdl_job_title: Optional[str] = None
    pdl_seniority: Optional[str] = None
    pdl_organization: Optional[str] = None
    pdl_confidence_score: Optional[float] = None
    pdl_raw_response: Optional[Dict[str, Any]] = None
    pdl_enriched_at: Optional[datetime] = None
    pdl_cost_usd: float = 0.0

    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    cost_per_record_usd: float = 0.0


VERIFICATION_FIELDS = frozenset(
    {
        "mode",
        "current_status",
        "unknown_reason",
        "current_title",
        "evidence_date",
        "data_sources",
        "notes",
        "cost_usd",
        "last_verified_at",
    }
)
EMAIL_FIELDS = frozenset(
    {
        "verified_email",
        "email_type",
        "email_checks",
        "email_sources",
        "email_cost_usd",
        "email_last_checked_at",
    }
)
PEOPLE_FIELDS = frozenset(
    {
        "pdl_email",
        "pdl_phone",
        "pdl_linkedin",
        "pdl_job_title",
        "pdl_seniority",
        "pdl_organization",
        "pdl_confidence_score",
        "pdl_raw_response",
        "pdl_enriched_at",
        "pdl_cost_usd",
    }
)
SCORE_FIELDS = frozenset({"confidence_level", "cost_per_record_usd"})


# --- Cache ---

@dataclass(slots=True)
class CacheEntry:
    """A stored provider response keyed by the canonical request hash."""

    cache_key: str
    provider: CacheProvider
    request: Dict[str, Any]
    response: Any
    status_code: Optional[int] = None
    cost_usd: float = 0.0
    fetched_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now
