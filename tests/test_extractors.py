# tests/test_extractors.py
import pytest

from contra_alerts.errors import AuthExpired
from contra_alerts.extractors import (
    MarkupCardExtractor,
    PostingExtractor,
    RelayRecordExtractor,
    ensure_authenticated,
    typename_counts,
)
from contra_alerts.extractors.relay import format_budget, parse_amount
from contra_alerts.models import PageContent, Posting

TEMPLATE = "https://contra.com/opportunity/{slug}"


# ----------------------------------------------------------------------
# Structured-data scan
# ----------------------------------------------------------------------
def test_relay_projects_job_with_resolved_organization(make_relay_page, designer_records):
    postings = RelayRecordExtractor(TEMPLATE).extract(make_relay_page(designer_records))

    assert postings == [
        Posting(
            id="abc123",
            title="Product Designer",
            url="https://contra.com/opportunity/product-designer-acme",
            company="Acme",
            budget=None,
            posted_at="2025-05-30T09:00:00.000Z",
        )
    ]


@pytest.mark.parametrize(
    "path",
    [
        (),
        ("publicAppConfiguration",),
        ("pageProps",),
        ("props", "pageProps"),
        ("props", "pageProps", "publicAppConfiguration"),
    ],
)
def test_record_map_found_at_each_candidate_path(make_relay_page, designer_records, path):
    postings = RelayRecordExtractor(TEMPLATE).extract(make_relay_page(designer_records, path=path))
    assert [p.id for p in postings] == ["abc123"]


def test_record_map_at_unknown_path_is_not_an_error(make_relay_page, designer_records):
    page = make_relay_page(designer_records, path=("deeply", "nested", "somewhere", "else"))
    assert RelayRecordExtractor(TEMPLATE).extract(page) == []


def test_malformed_fragment_is_skipped(make_relay_page, designer_records):
    page = make_relay_page(designer_records, extra_scripts=['{"relayRecordMap": {oops', ""])
    postings = RelayRecordExtractor(TEMPLATE).extract(page)
    assert [p.title for p in postings] == ["Product Designer"]


def test_deeply_nested_fragment_is_skipped(make_relay_page, designer_records):
    page = make_relay_page(designer_records, extra_scripts=["[" * 100000 + "]" * 100000])
    postings = RelayRecordExtractor(TEMPLATE).extract(page)
    assert [p.title for p in postings] == ["Product Designer"]


def test_deeply_nested_fragment_still_reaches_markup_fallback():
    html = (
        '<html><head><script type="application/json">'
        + "[" * 100000
        + "]" * 100000
        + '</script></head><body><div data-testid="job-card"><h3>UX Lead</h3></div></body></html>'
    )
    postings = PostingExtractor().extract(PageContent(html=html, url="https://contra.com/jobs"))
    assert [p.id for p in postings] == ["ux-lead"]


def test_next_data_script_is_scanned():
    html = (
        '<script id="__NEXT_DATA__">'
        '{"props": {"pageProps": {"relayRecordMap": {'
        '"J:1": {"__typename": "Job", "id": "j1", "title": "UX Lead"}}}}}'
        "</script>"
    )
    postings = RelayRecordExtractor(TEMPLATE).extract(html)
    assert [p.id for p in postings] == ["j1"]


def test_overlapping_payloads_do_not_duplicate_ids(make_relay_page, designer_records):
    import json

    other = json.dumps({"relayRecordMap": designer_records})
    page = make_relay_page(designer_records, extra_scripts=[other])
    postings = RelayRecordExtractor(TEMPLATE).extract(page)
    assert [p.id for p in postings] == ["abc123"]


def test_id_falls_back_to_slug_and_untitled_records_are_skipped(make_relay_page):
    records = {
        "client:1": {"__typename": "JobOpportunity", "slug": "logo-refresh", "title": "Logo Refresh"},
        "client:2": {"__typename": "JobOpportunity", "id": "no-title", "title": "   "},
        "client:3": {"__typename": "Organization", "name": "Ignored Co"},
    }
    postings = RelayRecordExtractor(TEMPLATE).extract(make_relay_page(records))

    assert len(postings) == 1
    assert postings[0].id == "logo-refresh"
    assert postings[0].url == "https://contra.com/opportunity/logo-refresh"
    assert postings[0].company is None


def test_unresolvable_references_leave_company_and_budget_empty(make_relay_page):
    records = {
        "J:1": {
            "__typename": "JobOpportunity",
            "id": "j1",
            "title": "Brand Designer",
            "organization": {"__ref": "Organization:missing"},
            "budget": {"__ref": "Budget:missing"},
        }
    }
    (posting,) = RelayRecordExtractor(TEMPLATE).extract(make_relay_page(records))
    assert posting.company is None
    assert posting.budget is None


def test_budget_resolved_through_reference(make_relay_page, designer_records):
    records = dict(designer_records)
    records["Budget:9"] = {
        "__typename": "JobOpportunityHourlyBudget",
        "minimum": "USD 80.00",
        "maximum": "USD 120.00",
    }
    records["JobOpportunity:abc123"] = {**records["JobOpportunity:abc123"], "budget": {"__ref": "Budget:9"}}

    (posting,) = RelayRecordExtractor(TEMPLATE).extract(make_relay_page(records))
    assert posting.budget == "$80 - $120/hr"


@pytest.mark.parametrize(
    "record, expected",
    [
        ({"__typename": "FixedBudget", "minimum": "USD 5000", "maximum": "USD 10,000.00"}, "$5,000 - $10,000"),
        ({"__typename": "HourlyRate", "min": 79.5, "max": 100}, "$80 - $100/hr"),
        ({"__typename": "MonthlyBudget", "minimum": "$3,000"}, "$3,000+/mo"),
        ({"__typename": "FixedBudget", "maximum": 2500}, "Up to $2,500"),
        ({"__typename": "FixedBudget", "minimum": 700, "maximum": 700}, "$700"),
        ({"__typename": "FixedBudget"}, None),
        ({"__typename": "FixedBudget", "minimum": "negotiable"}, None),
    ],
)
def test_format_budget(record, expected):
    assert format_budget(record) == expected


def test_parse_amount_rejects_non_numbers():
    assert parse_amount(True) is None
    assert parse_amount({"amount": 5}) is None
    assert parse_amount("USD 1,234.49") == 1234


def test_ids_unique_within_a_pass(make_relay_page):
    records = {
        f"J:{i}": {"__typename": "JobOpportunity", "id": f"job-{i % 3}", "title": f"Designer {i}"}
        for i in range(9)
    }
    postings = RelayRecordExtractor(TEMPLATE).extract(make_relay_page(records))
    ids = [p.id for p in postings]
    assert len(ids) == len(set(ids)) == 3
    # first occurrence wins
    assert [p.title for p in postings] == ["Designer 0", "Designer 1", "Designer 2"]


def test_typename_counts(make_relay_page, designer_records):
    counts = typename_counts(make_relay_page(designer_records))
    assert counts == {"Organization": 1, "JobOpportunity": 1}


# ----------------------------------------------------------------------
# Markup scan
# ----------------------------------------------------------------------
CARDS_HTML = """
<html><body>
  <div data-testid="job-card" aria-label="Posted by Acme Studio">
    <a href="/opportunity/brand-designer-x?ref=feed"><h3>Brand Designer</h3></a>
    <p>Budget: $1,500 - $3,000</p>
  </div>
  <div data-testid="job-card">
    <span>  </span><span>Logo Refresh</span>
    <button aria-label="Posted by Beta LLC">Beta</button>
    <p>$50 - $75/hr</p>
  </div>
  <div data-testid="job-card"><img src="logo.png"></div>
  <div data-testid="job-card"><h2>Brand  Designer</h2></div>
  <div class="not-a-card"><h3>Ignored</h3></div>
</body></html>
"""


def test_markup_scan_reads_cards():
    page = PageContent(html=CARDS_HTML, url="https://contra.com/jobs")
    postings = MarkupCardExtractor(TEMPLATE).extract(page)

    assert postings == [
        Posting(
            id="brand-designer",
            title="Brand Designer",
            url="https://contra.com/opportunity/brand-designer-x",
            company="Acme Studio",
            budget="$1,500 - $3,000",
        ),
        Posting(
            id="logo-refresh",
            title="Logo Refresh",
            url="https://contra.com/opportunity/logo-refresh",
            company="Beta LLC",
            budget="$50 - $75/hr",
        ),
    ]


def test_card_heading_wins_over_leading_badge_text():
    html = (
        '<div data-testid="job-card"><span>New</span><span>Featured</span>'
        "<h3>Motion Designer</h3></div>"
        '<div data-testid="job-card"><p>Illustrator</p><p>$500</p></div>'
    )
    postings = MarkupCardExtractor(TEMPLATE).extract(PageContent(html=html))
    assert [(p.id, p.title) for p in postings] == [
        ("motion-designer", "Motion Designer"),
        ("illustrator", "Illustrator"),
    ]


# ----------------------------------------------------------------------
# Strategy ordering
# ----------------------------------------------------------------------
class CountingExtractor:
    def __init__(self, result):
        self.result = result
        self.calls = 0

    def extract(self, page):
        self.calls += 1
        return list(self.result)


def test_fallback_runs_once_when_primary_is_empty():
    fallback_posting = Posting(id="x", title="X", url="u")
    primary = CountingExtractor([])
    fallback = CountingExtractor([fallback_posting])

    result = PostingExtractor(primary=primary, fallback=fallback).extract("<html></html>")

    assert result == [fallback_posting]
    assert primary.calls == 1
    assert fallback.calls == 1


def test_fallback_never_runs_when_primary_finds_postings():
    primary = CountingExtractor([Posting(id="a", title="A", url="u")])
    fallback = CountingExtractor([Posting(id="b", title="B", url="u")])

    result = PostingExtractor(primary=primary, fallback=fallback).extract("<html></html>")

    assert [p.id for p in result] == ["a"]
    assert fallback.calls == 0


def test_default_chain_uses_markup_when_no_record_map():
    postings = PostingExtractor(TEMPLATE).extract(PageContent(html=CARDS_HTML, url="https://contra.com/jobs"))
    assert [p.id for p in postings] == ["brand-designer", "logo-refresh"]


# ----------------------------------------------------------------------
# Login redirect
# ----------------------------------------------------------------------
@pytest.mark.parametrize("url", ["https://contra.com/log-in?redirect=%2Fjobs", "https://contra.com/sign-in"])
def test_login_redirect_raises_auth_expired(url):
    with pytest.raises(AuthExpired):
        ensure_authenticated(PageContent(html="", url=url))


def test_jobs_page_is_authenticated():
    ensure_authenticated(PageContent(html="", url="https://contra.com/jobs"))
