"""Hunter.io email-finder client."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config import ConfigurationError
from ..models import CacheProvider
from .base import ProviderCall, ProviderClient, _list, _str


@dataclass(frozen=True)
class FinderResponse:
    """Candidate address with Hunter's score and the pages it was seen on."""

    email: Optional[str] = None
    score: Optional[float] = None
    position: Optional[str] = None
    sources: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Any] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.email)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "FinderResponse":
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        score = data.get("score")
        return cls(
            email=_str(data.get("email")),
            score=float(score) if isinstance(score, (int, float)) else None,
            position=_str(data.get("position")),
            sources=[source for source in _list(data.get("sources")) if isinstance(source, dict)],
            errors=_list(payload.get("errors")),
        )


class HunterClient(ProviderClient[FinderResponse]):
    name = "hunter"
    provider = CacheProvider.EMAIL_FINDER
    base_url = "https://api.hunter.io/v2/email-finder"
    ttl_days = 90

    def require_credentials(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("HUNTER_API_KEY is required when email_finder_provider=hunter")

    def build_query(self, request: Mapping[str, Any]) -> Tuple[Dict[str, str], Dict[str, str]]:
        params = {key: str(value) for key, value in request.items()}
        params["api_key"] = self.settings.api_key
        return params, {"Accept": "application/json"}

    def parse(self, payload: Dict[str, Any], status_code: int) -> FinderResponse:
        return FinderResponse.from_json(payload)

    def find_email(self, domain: str, first_name: str, last_name: str) -> ProviderCall[FinderResponse]:
        return self._call({"domain": domain, "first_name": first_name, "last_name": last_name})
