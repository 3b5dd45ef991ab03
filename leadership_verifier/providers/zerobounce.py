"""ZeroBounce email-validation client."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..config import ConfigurationError
from ..models import CacheProvider
from .base import ProviderCall, ProviderClient, _str

VALIDATION_STATUSES = frozenset(
    {"valid", "invalid", "catch-all", "unknown", "spamtrap", "abuse", "do_not_mail"}
)


@dataclass(frozen=True)
class ValidationResponse:
    address: Optional[str] = None
    status: Optional[str] = None
    sub_status: Optional[str] = None
    free_email: Optional[bool] = None
    domain: Optional[str] = None
    mx_found: Optional[str] = None
    processed_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.status == "valid"

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "ValidationResponse":
        status = _str(payload.get("status"))
        if status is not None:
            status = status.lower()
            if status not in VALIDATION_STATUSES:
                status = "unknown"
        free_email = payload.get("free_email")
        return cls(
            address=_str(payload.get("address")),
            status=status,
            sub_status=_str(payload.get("sub_status")),
            free_email=free_email if isinstance(free_email, bool) else None,
            domain=_str(payload.get("domain")),
            mx_found=_str(payload.get("mx_found")),
            processed_at=_str(payload.get("processed_at")),
            error=_str(payload.get("error")),
        )


class ZeroBounceClient(ProviderClient[ValidationResponse]):
    name = "zerobounce"
    provider = CacheProvider.EMAIL_VERIFIER
    base_url = "https://api.zerobounce.net/v2/validate"
    ttl_days = 90

    def require_credentials(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("ZEROBOUNCE_API_KEY is required when email_verifier_provider=zerobounce")

    def build_query(self, request: Mapping[str, Any]) -> Tuple[Dict[str, str], Dict[str, str]]:
        params = {"api_key": self.settings.api_key, "email": str(request["email"]), "ip_address": ""}
        return params, {"Accept": "application/json"}

    def cost_for(self, status_code: int, payload: Dict[str, Any]) -> float:
        if payload.get("error"):
            return 0.0
        return super().cost_for(status_code, payload)

    def should_cache(self, status_code: int, payload: Dict[str, Any]) -> bool:
        return status_code < 400 and not payload.get("error")

    def parse(self, payload: Dict[str, Any], status_code: int) -> ValidationResponse:
        return ValidationResponse.from_json(payload)

    def validate(self, email: str) -> ProviderCall[ValidationResponse]:
        return self._call({"email": email})
