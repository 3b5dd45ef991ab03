"""Employment verification from web-search evidence.

The decision is an ordered list of rules (:data:`VERIFICATION_RULES`); the first
rule that returns an outcome wins. Up to five of the top search results are
appended to every online outcome as diagnostic evidence.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import ConfigurationError, Settings
from ..evidence import (
    extract_other_leader,
    extract_title,
    has_former_qualifier,
    has_leader_keyword,
    name_matches,
    parse_evidence_date,
    simplify,
)
from ..models import EmploymentStatus, EvidenceSource, InputRecord, VerifyMode
from ..normalize import NormalizedName, NormalizedTitle, normalize_name_for_search, normalize_title
from ..providers import GoogleCseClient, ProviderError, SearchItem

LOGGER = logging.getLogger(__name__)

ORG_SITE = "org_site"
WEB = "web"
OFFLINE = "offline"

MAX_DIAGNOSTIC_SOURCES = 5
RESULTS_PER_QUERY = 5

_LEADER_TERMS = '(CEO OR "Chief Executive" OR "Executive Director")'


@dataclass
class VerificationOutcome:
    mode: VerifyMode
    current_status: EmploymentStatus
    unknown_reason: Optional[str] = None
    current_title: Optional[str] = None
    evidence_date: Optional[datetime] = None
    data_sources: List[EvidenceSource] = field(default_factory=list)
    notes: Optional[str] = None
    cost_usd: float = 0.0

    def as_fields(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "current_status": self.current_status,
            "unknown_reason": self.unknown_reason,
            "current_title": self.current_title,
            "evidence_date": self.evidence_date,
            "data_sources": list(self.data_sources),
            "notes": self.notes,
            "cost_usd": self.cost_usd,
        }


@dataclass(frozen=True)
class SearchHit:
    item: SearchItem
    source_type: str
    query: str

    def to_source(self) -> EvidenceSource:
        return EvidenceSource(
            type=self.source_type,
            query=self.query,
            url=self.item.link,
            title=self.item.title,
            snippet=self.item.snippet,
            evidence_date=self.item.evidence_date,
        )


@dataclass
class VerificationContext:
    """Everything the rules look at for one record."""

    record: InputRecord
    name: NormalizedName
    title: NormalizedTitle
    hits: List[SearchHit]
    cost_usd: float

    @property
    def first_name(self) -> Optional[str]:
        return self.record.first_name or self.name.first

    @property
    def last_name(self) -> Optional[str]:
        return self.record.last_name or self.name.last

    def mentions_person(self, text: str) -> bool:
        return name_matches(text, self.first_name, self.last_name)

    def outcome(self, status: EmploymentStatus, **kwargs) -> VerificationOutcome:
        return VerificationOutcome(mode=VerifyMode.ONLINE, current_status=status, cost_usd=self.cost_usd, **kwargs)


@dataclass(frozen=True)
class Rule:
    name: str
    apply: Callable[[VerificationContext], Optional[VerificationOutcome]]


def _no_search_hits(ctx: VerificationContext) -> Optional[VerificationOutcome]:
    if ctx.hits:
        return None
    reason = "name_normalization_issue" if ctx.name.too_short else "no_search_hits"
    return ctx.outcome(EmploymentStatus.UNKNOWN, unknown_reason=reason, notes="Search returned no results")


def _former_mention(ctx: VerificationContext) -> Optional[VerificationOutcome]:
    for hit in ctx.hits:
        text = hit.item.text
        if ctx.mentions_person(text) and has_leader_keyword(text) and has_former_qualifier(text):
            return ctx.outcome(
                EmploymentStatus.LEFT_ORGANIZATION,
                data_sources=[hit.to_source()],
                evidence_date=parse_evidence_date(hit.item.evidence_date),
                notes="Result describes the person as a former leader",
            )
    return None


def _org_site_match(ctx: VerificationContext) -> Optional[VerificationOutcome]:
    for hit in ctx.hits:
        if hit.source_type != ORG_SITE:
            continue
        text = hit.item.text
        if ctx.mentions_person(text) and has_leader_keyword(text) and not has_former_qualifier(text):
            return ctx.outcome(
                EmploymentStatus.STILL_EMPLOYED,
                current_title=extract_title(hit.item.snippet),
                evidence_date=parse_evidence_date(hit.item.evidence_date),
                data_sources=[hit.to_source()],
                notes="Matched org-site result",
            )
    return None


def _different_leader(ctx: VerificationContext) -> Optional[VerificationOutcome]:
    last = simplify(ctx.last_name)
    if not last:
        return None
    for hit in ctx.hits:
        snippet = hit.item.snippet or ""
        if not has_leader_keyword(snippet):
            continue
        other = extract_other_leader(snippet)
        if other and last not in simplify(other):
            return ctx.outcome(
                EmploymentStatus.LEFT_ORGANIZATION,
                data_sources=[hit.to_source()],
                evidence_date=parse_evidence_date(hit.item.evidence_date),
                notes=f"Detected different leader name: {other}",
            )
    return None


def _no_strong_match(ctx: VerificationContext) -> VerificationOutcome:
    if ctx.name.too_short:
        reason = "name_too_short"
    elif ctx.title.is_former:
        reason = "title_suggests_former_but_not_confirmed"
    elif ctx.title.is_acting_or_interim:
        reason = "acting_or_interim_neutral"
    else:
        reason = "no_strong_match"
    return ctx.outcome(EmploymentStatus.UNKNOWN, unknown_reason=reason, notes="No strong match")


VERIFICATION_RULES: Tuple[Rule, ...] = (
    Rule("no_search_hits", _no_search_hits),
    Rule("former_mention", _former_mention),
    Rule("org_site_match", _org_site_match),
    Rule("different_leader", _different_leader),
    Rule("no_strong_match", _no_strong_match),
)


def build_queries(record: InputRecord, search_name: str, limit: int) -> List[Tuple[str, str]]:
    """Queries in priority order, truncated to the per-record spend cap."""

    queries: List[Tuple[str, str]] = []
    if record.org_domain:
        queries.append((ORG_SITE, f'site:{record.org_domain} {_LEADER_TERMS} "{search_name}"'))
    queries.append((WEB, f'"{record.org_name}" "{search_name}" {_LEADER_TERMS}'))
    queries.append((WEB, f'"{record.org_name}" {_LEADER_TERMS}'))
    return queries[: max(1, limit)]


def _with_diagnostics(outcome: VerificationOutcome, hits: List[SearchHit]) -> VerificationOutcome:
    seen = {(source.url, source.query) for source in outcome.data_sources}
    for hit in hits[:MAX_DIAGNOSTIC_SOURCES]:
        source = hit.to_source()
        if (source.url, source.query) in seen:
            continue
        seen.add((source.url, source.query))
        outcome.data_sources.append(source)
    return outcome


def offline_outcome() -> VerificationOutcome:
    return VerificationOutcome(
        mode=VerifyMode.OFFLINE,
        current_status=EmploymentStatus.UNKNOWN,
        unknown_reason="offline_mode",
        data_sources=[EvidenceSource(type=OFFLINE, snippet="Offline mode: no external lookups performed")],
        notes="Offline-only mode",
        cost_usd=0.0,
    )


def verify_record(
    record: InputRecord,
    *,
    settings: Settings,
    search: Optional[GoogleCseClient],
) -> VerificationOutcome:
    """Classify whether the record's person still leads the organization."""

    if not settings.online:
        return offline_outcome()
    if search is None:
        raise ConfigurationError("Online verification requires a configured search client")

    name = normalize_name_for_search(record.employee_name_raw)
    title = normalize_title(record.employee_title_raw)
    search_name = name.normalized or record.employee_name_raw

    hits: List[SearchHit] = []
    cost_usd = 0.0
    for source_type, query in build_queries(record, search_name, settings.max_queries_per_record):
        try:
            call = search.search(query, num=RESULTS_PER_QUERY)
        except ProviderError as exc:
            LOGGER.warning("Search failed for record %s: %s", record.id, exc)
            failed = VerificationOutcome(
                mode=VerifyMode.ONLINE,
                current_status=EmploymentStatus.UNKNOWN,
                unknown_reason="rate_limited_or_quota",
                notes=f"Search failed: {exc}",
                cost_usd=cost_usd,
            )
            return _with_diagnostics(failed, hits)
        cost_usd += call.cost_usd
        if call.response.error:
            LOGGER.warning("Search error for record %s: %s", record.id, call.response.error)
            failed = VerificationOutcome(
                mode=VerifyMode.ONLINE,
                current_status=EmploymentStatus.UNKNOWN,
                unknown_reason="rate_limited_or_quota",
                notes=f"Search error: {call.response.error}",
                cost_usd=cost_usd,
            )
            return _with_diagnostics(failed, hits)
        hits.extend(SearchHit(item=item, source_type=source_type, query=query) for item in call.response.items)

    ctx = VerificationContext(record=record, name=name, title=title, hits=hits, cost_usd=cost_usd)
    for rule in VERIFICATION_RULES:
        outcome = rule.apply(ctx)
        if outcome is not None:
            LOGGER.debug("Record %s decided by rule %s", record.id, rule.name)
            return _with_diagnostics(outcome, hits)

    raise AssertionError("verification rules must end with a catch-all rule")  # pragma: no cover
