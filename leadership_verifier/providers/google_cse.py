"""Google Programmable Search (Custom Search JSON API) client."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..config import ConfigurationError
from ..models import CacheProvider
from .base import ProviderCall, ProviderClient, _list, _str

_DATE_TAGS = ("article:published_time", "article:modified_time", "og:updated_time", "date")


@dataclass(frozen=True)
class SearchItem:
    """A single search hit."""

    title: Optional[str] = None
    link: Optional[str] = None
    snippet: Optional[str] = None
    display_link: Optional[str] = None
    pagemap: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return f"{self.title or ''} {self.snippet or ''}"

    @property
    def evidence_date(self) -> Optional[str]:
        """Publication/update date from the first metatags block, when present."""
        metatags = _list(self.pagemap.get("metatags"))
        if not metatags or not isinstance(metatags[0], dict):
            return None
        tags = metatags[0]
        for key in _DATE_TAGS:
            value = tags.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "SearchItem":
        pagemap = data.get("pagemap")
        return cls(
            title=_str(data.get("title")),
            link=_str(data.get("link")),
            snippet=_str(data.get("snippet")),
            display_link=_str(data.get("displayLink")),
            pagemap=pagemap if isinstance(pagemap, dict) else {},
        )


@dataclass(frozen=True)
class SearchResponse:
    items: List[SearchItem] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "SearchResponse":
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("status")
        return cls(
            items=[SearchItem.from_json(item) for item in _list(data.get("items")) if isinstance(item, dict)],
            error=_str(error),
        )


class GoogleCseClient(ProviderClient[SearchResponse]):
    """Web search with a fixed cost per uncached query."""

    name = "google_cse"
    provider = CacheProvider.GOOGLE_CSE
    base_url = "https://www.googleapis.com/customsearch/v1"
    ttl_days = 30

    def __init__(self, settings, *, cx: str, **kwargs) -> None:
        super().__init__(settings, **kwargs)
        self.cx = cx

    def require_credentials(self) -> None:
        if not self.settings.api_key or not self.cx:
            raise ConfigurationError("enrichment_mode=online requires GOOGLE_CSE_API_KEY and GOOGLE_CSE_CX")

    def build_query(self, request: Mapping[str, Any]) -> Tuple[Dict[str, str], Dict[str, str]]:
        params = {
            "key": self.settings.api_key,
            "cx": self.cx,
            "q": str(request["q"]),
            "num": str(request["num"]),
        }
        return params, {"Accept": "application/json"}

    def parse(self, payload: Dict[str, Any], status_code: int) -> SearchResponse:
        return SearchResponse.from_json(payload)

    def search(self, query: str, num: int = 5) -> ProviderCall[SearchResponse]:
        return self._call({"q": query, "num": num, "cx": self.cx})
