"""Cache-backed, rate-limited clients for the external data providers."""

from .base import (  # noqa: F401
    ProviderCall,
    ProviderClient,
    ProviderError,
    ProviderUnavailableError,
    QuotaExceededError,
    ResponseParseError,
)
from .google_cse import GoogleCseClient, SearchItem, SearchResponse  # noqa: F401
from .hunter import FinderResponse, HunterClient  # noqa: F401
from .pdl import PdlClient, PersonLookupError, PersonMatch, PersonNotFound, PersonProfile  # noqa: F401
from .zerobounce import ValidationResponse, ZeroBounceClient  # noqa: F401

__all__ = [
    "ProviderCall",
    "ProviderClient",
    "ProviderError",
    "ProviderUnavailableError",
    "QuotaExceededError",
    "ResponseParseError",
    "GoogleCseClient",
    "SearchItem",
    "SearchResponse",
    "HunterClient",
    "FinderResponse",
    "ZeroBounceClient",
    "ValidationResponse",
    "PdlClient",
    "PersonMatch",
    "PersonNotFound",
    "PersonLookupError",
    "PersonProfile",
]
