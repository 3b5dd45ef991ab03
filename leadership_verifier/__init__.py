"""Top-level package for the leadership verification pipeline."""

from . import models  # noqa: F401
from .config import ConfigurationError, Settings, load_settings  # noqa: F401
from .factory import ServiceRegistry, build_services  # noqa: F401
from .models import (  # noqa: F401
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
from .orchestrator import JobRunner, PassSummary  # noqa: F401
from .store import MemoryRecordStore, SqliteRecordStore  # noqa: F401

__all__ = [
    "ConfidenceLevel",
    "ConfigurationError",
    "EmailType",
    "EmploymentStatus",
    "EvidenceSource",
    "InputRecord",
    "Job",
    "JobRunner",
    "JobStatus",
    "MemoryRecordStore",
    "PassSummary",
    "ServiceRegistry",
    "Settings",
    "SqliteRecordStore",
    "VerificationResult",
    "VerifyMode",
    "build_services",
    "load_settings",
    "enrichers",
    "ingestion",
    "orchestrator",
    "providers",
]
