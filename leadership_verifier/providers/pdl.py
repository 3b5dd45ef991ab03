"""People Data Labs person-enrichment client.

Responses come in three shapes, modelled as separate types:

* :class:`PersonMatch` – HTTP 200 with a ``data`` profile and a ``likelihood``.
* :class:`PersonNotFound` – HTTP 404; cached and free, not an error.
* :class:`PersonLookupError` – any other body carrying an ``error`` object.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..config import ConfigurationError
from ..models import CacheProvider
from .base import ProviderCall, ProviderClient, _list, _str

NOT_FOUND_MESSAGE = "No records were found matching your request"


@dataclass(frozen=True)
class Experience:
    title: Optional[str] = None
    levels: List[str] = field(default_factory=list)
    company_name: Optional[str] = None
    company_website: Optional[str] = None
    is_primary: bool = False

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Experience":
        title = data.get("title") if isinstance(data.get("title"), dict) else {}
        company = data.get("company") if isinstance(data.get("company"), dict) else {}
        return cls(
            title=_str(title.get("name")),
            levels=[str(level) for level in _list(title.get("levels")) if level],
            company_name=_str(company.get("name")),
            company_website=_str(company.get("website")),
            is_primary=bool(data.get("is_primary")),
        )


@dataclass(frozen=True)
class PersonProfile:
    """The subset of a PDL person record the enricher reads."""

    full_name: Optional[str] = None
    work_email: Optional[str] = None
    emails: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    mobile_phone: Optional[str] = None
    phone_numbers: List[str] = field(default_factory=list)
    linkedin_url: Optional[str] = None
    profiles: List[Tuple[Optional[str], Optional[str]]] = field(default_factory=list)
    job_title: Optional[str] = None
    job_title_levels: List[str] = field(default_factory=list)
    job_company_name: Optional[str] = None
    experience: List[Experience] = field(default_factory=list)

    @property
    def primary_experience(self) -> Optional[Experience]:
        for entry in self.experience:
            if entry.is_primary:
                return entry
        return self.experience[0] if self.experience else None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "PersonProfile":
        emails = []
        for entry in _list(data.get("emails")):
            if isinstance(entry, dict) and _str(entry.get("address")):
                emails.append((_str(entry.get("address")), _str(entry.get("type"))))
        profiles = []
        for entry in _list(data.get("profiles")):
            if isinstance(entry, dict):
                profiles.append((_str(entry.get("network")), _str(entry.get("url"))))
        return cls(
            full_name=_str(data.get("full_name")),
            work_email=_str(data.get("work_email")),
            emails=emails,
            mobile_phone=_str(data.get("mobile_phone")),
            phone_numbers=[str(number) for number in _list(data.get("phone_numbers")) if number],
            linkedin_url=_str(data.get("linkedin_url")),
            profiles=profiles,
            job_title=_str(data.get("job_title")),
            job_title_levels=[str(level) for level in _list(data.get("job_title_levels")) if level],
            job_company_name=_str(data.get("job_company_name")),
            experience=[Experience.from_json(entry) for entry in _list(data.get("experience")) if isinstance(entry, dict)],
        )


@dataclass(frozen=True)
class PersonMatch:
    profile: PersonProfile
    likelihood: Optional[float] = None


@dataclass(frozen=True)
class PersonNotFound:
    message: str = NOT_FOUND_MESSAGE


@dataclass(frozen=True)
class PersonLookupError:
    error_type: Optional[str] = None
    message: Optional[str] = None
    status: Optional[int] = None


PersonResponse = Union[PersonMatch, PersonNotFound, PersonLookupError]


def parse_person_response(payload: Mapping[str, Any], status_code: int = 200) -> PersonResponse:
    data = payload.get("data")
    error = payload.get("error") if isinstance(payload.get("error"), dict) else None
    status = payload.get("status") if isinstance(payload.get("status"), int) else status_code

    if status == 404 or (error and error.get("type") == "not_found"):
        return PersonNotFound(message=(_str(error.get("message")) if error else None) or NOT_FOUND_MESSAGE)
    if isinstance(data, dict) and data:
        likelihood = payload.get("likelihood")
        return PersonMatch(
            profile=PersonProfile.from_json(data),
            likelihood=float(likelihood) if isinstance(likelihood, (int, float)) else None,
        )
    return PersonLookupError(
        error_type=_str(error.get("type")) if error else None,
        message=_str(error.get("message")) if error else "Response did not include a person record",
        status=status,
    )


class PdlClient(ProviderClient[PersonResponse]):
    name = "pdl"
    provider = CacheProvider.PDL
    base_url = "https://api.peopledatalabs.com/v5/person/enrich"
    ttl_days = 90

    _PARAM_NAMES = (
        ("profile", "profile"),
        ("email", "email"),
        ("first_name", "first_name"),
        ("last_name", "last_name"),
        ("company_domain", "company_domain"),
        ("company_name", "company"),
    )

    def require_credentials(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("PDL_API_KEY is required for PDL enrichment")

    def build_query(self, request: Mapping[str, Any]) -> Tuple[Dict[str, str], Dict[str, str]]:
        headers = {"X-Api-Key": self.settings.api_key, "Accept": "application/json"}
        return {key: str(value) for key, value in request.items()}, headers

    def adapt_payload(self, status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        if status_code == 404:
            return {"status": 404, "error": {"type": "not_found", "message": NOT_FOUND_MESSAGE}}
        payload.setdefault("status", status_code)
        return payload

    def cost_for(self, status_code: int, payload: Dict[str, Any]) -> float:
        if status_code == 200 and isinstance(payload.get("data"), dict) and payload["data"]:
            return self.settings.cost_usd
        return 0.0

    def should_cache(self, status_code: int, payload: Dict[str, Any]) -> bool:
        return status_code in (200, 404)

    def cached_status(self, payload: Dict[str, Any]) -> int:
        status = payload.get("status")
        return status if isinstance(status, int) else 200

    def parse(self, payload: Dict[str, Any], status_code: int) -> PersonResponse:
        return parse_person_response(payload, status_code)

    def enrich_person(
        self,
        *,
        profile: Optional[str] = None,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        company_domain: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> ProviderCall[PersonResponse]:
        """Look up a person; only non-empty parameters are sent and hashed."""

        values = {
            "profile": profile,
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "company_domain": company_domain,
            "company_name": company_name,
        }
        request = {
            wire_name: values[key]
            for key, wire_name in self._PARAM_NAMES
            if values[key]
        }
        return self._call(request)
