from dataclasses import replace
from datetime import datetime, timezone

import pytest

from leadership_verifier.config import ConfigurationError, Settings
from leadership_verifier.enrichers.verify import VERIFICATION_RULES, build_queries, verify_record
from leadership_verifier.models import EmploymentStatus, VerifyMode
from leadership_verifier.providers import ProviderCall, QuotaExceededError, SearchItem, SearchResponse


class FakeSearch:
    def __init__(self, *item_batches, cost: float = 0.005, error=None) -> None:
        self._batches = list(item_batches)
        self._cost = cost
        self._error = error
        self.queries = []

    def search(self, query: str, num: int = 5) -> ProviderCall:
        self.queries.append(query)
        if isinstance(self._error, Exception):
            raise self._error
        items = self._batches.pop(0) if self._batches else []
        return ProviderCall(
            response=SearchResponse(items=items, error=self._error),
            raw={},
            cost_usd=self._cost,
            cached=False,
            status_code=200,
        )


def _item(snippet: str, *, title: str = "Acme Foundation", link: str = "https://acme.org/team", date=None) -> SearchItem:
    pagemap = {"metatags": [{"article:published_time": date}]} if date else {}
    return SearchItem(title=title, link=link, snippet=snippet, pagemap=pagemap)


def test_org_site_match_is_still_employed(make_record, online_settings) -> None:
    search = FakeSearch([_item("Jane Doe, CEO of Acme Foundation, welcomes you.", date="2024-05-01T00:00:00Z")])

    outcome = verify_record(make_record(), settings=online_settings, search=search)

    assert outcome.mode == VerifyMode.ONLINE
    assert outcome.current_status == EmploymentStatus.STILL_EMPLOYED
    assert outcome.current_title == "CEO"
    assert outcome.evidence_date == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert outcome.data_sources[0].type == "org_site"
    assert outcome.cost_usd == 0.005
    assert search.queries[0].startswith("site:acme.org")


def test_former_mention_means_left_organization(make_record, online_settings) -> None:
    search = FakeSearch([_item("Jane Doe, former CEO of Acme Foundation, retired in 2022.")])

    outcome = verify_record(make_record(), settings=online_settings, search=search)

    assert outcome.current_status == EmploymentStatus.LEFT_ORGANIZATION
    assert outcome.unknown_reason is None


def test_different_leader_means_left_organization(make_record, online_settings) -> None:
    search = FakeSearch([_item("John Smith, CEO of Acme Foundation since 2023.", link="https://news.example.com")])
    record = make_record(org_domain=None)

    outcome = verify_record(record, settings=online_settings, search=search)

    assert outcome.current_status == EmploymentStatus.LEFT_ORGANIZATION
    assert outcome.notes == "Detected different leader name: John Smith"
    assert outcome.data_sources[0].type == "web"


def test_no_hits_is_unknown(make_record, online_settings) -> None:
    outcome = verify_record(make_record(), settings=online_settings, search=FakeSearch([]))

    assert outcome.current_status == EmploymentStatus.UNKNOWN
    assert outcome.unknown_reason == "no_search_hits"
    assert outcome.data_sources == []


def test_no_hits_with_unusable_name_is_a_normalization_issue(make_record, online_settings) -> None:
    record = make_record(employee_name_raw="Cher", first_name="Cher", last_name=None)

    outcome = verify_record(record, settings=online_settings, search=FakeSearch([]))

    assert outcome.unknown_reason == "name_normalization_issue"


def test_quota_error_is_unknown_and_keeps_prior_cost(make_record, online_settings) -> None:
    search = FakeSearch(error=QuotaExceededError("google_cse", "rate limit exceeded", status_code=429))

    outcome = verify_record(make_record(), settings=online_settings, search=search)

    assert outcome.current_status == EmploymentStatus.UNKNOWN
    assert outcome.unknown_reason == "rate_limited_or_quota"
    assert outcome.cost_usd == 0.0


def test_search_error_payload_is_treated_as_quota(make_record, online_settings) -> None:
    outcome = verify_record(make_record(), settings=online_settings, search=FakeSearch(error="Daily Limit Exceeded"))

    assert outcome.unknown_reason == "rate_limited_or_quota"


def test_weak_evidence_with_former_title_reports_reason(make_record, online_settings) -> None:
    search = FakeSearch([_item("Acme Foundation annual report and financials.")])
    record = make_record(employee_title_raw="Former CEO")

    outcome = verify_record(record, settings=online_settings, search=search)

    assert outcome.current_status == EmploymentStatus.UNKNOWN
    assert outcome.unknown_reason == "title_suggests_former_but_not_confirmed"
    assert len(outcome.data_sources) == 1


def test_weak_evidence_with_interim_title_reports_reason(make_record, online_settings) -> None:
    search = FakeSearch([_item("Acme Foundation annual report.")])

    outcome = verify_record(
        make_record(employee_title_raw="Interim Executive Director"), settings=online_settings, search=search
    )

    assert outcome.unknown_reason == "acting_or_interim_neutral"


def test_offline_mode_never_searches(make_record) -> None:
    search = FakeSearch([_item("Jane Doe, CEO")])

    outcome = verify_record(make_record(), settings=Settings(), search=search)

    assert outcome.mode == VerifyMode.OFFLINE
    assert outcome.current_status == EmploymentStatus.UNKNOWN
    assert outcome.cost_usd == 0.0
    assert search.queries == []


def test_online_mode_requires_a_search_client(make_record, online_settings) -> None:
    with pytest.raises(ConfigurationError):
        verify_record(make_record(), settings=online_settings, search=None)


def test_query_budget_caps_queries(make_record, online_settings) -> None:
    settings = replace(online_settings, max_queries_per_record=3)
    search = FakeSearch([], [], [])

    verify_record(make_record(), settings=settings, search=search)

    assert len(search.queries) == 3
    assert search.queries[0].startswith("site:acme.org")
    assert '"Jane Doe"' in search.queries[1]
    assert "Jane Doe" not in search.queries[2]


def test_queries_without_domain_skip_site_search(make_record) -> None:
    queries = build_queries(make_record(org_domain=None), "Jane Doe", 5)

    assert [kind for kind, _ in queries] == ["web", "web"]


def test_diagnostic_sources_are_capped(make_record, online_settings) -> None:
    items = [_item(f"Unrelated result {index}", link=f"https://example.com/{index}") for index in range(8)]

    outcome = verify_record(make_record(), settings=online_settings, search=FakeSearch(items))

    assert len(outcome.data_sources) == 5


def test_rules_end_with_catch_all() -> None:
    assert [rule.name for rule in VERIFICATION_RULES][-1] == "no_strong_match"
