from __future__ import annotations
import json
import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple
from ..models import Posting
from .base import ExtractorBase, PageInput, as_page, parse_html

logger = logging.getLogger(__name__)

RECORD_MAP_KEY = "relayRecordMap"

# Where the record map has been seen inside the embedded payloads, most likely first.
CANDIDATE_PATHS: Tuple[Tuple[str, ...], ...] = (
    (),
    ("publicAppConfiguration",),
    ("pageProps",),
    ("pageProps", "publicAppConfiguration"),
    ("props", "pageProps"),
    ("props", "pageProps", "publicAppConfiguration"),
)

ORGANIZATION_KINDS = {"Organization", "Company"}
JOB_KINDS = {"JobOpportunity", "Job", "JobPosting", "Opportunity"}
BUDGET_MARKERS = ("Budget", "Rate", "Compensation")

ORGANIZATION_FIELDS = ("organization", "client", "company")
BUDGET_FIELDS = ("budget", "compensation", "rate")
MIN_FIELDS = ("minimum", "min", "minAmount", "minBudget")
MAX_FIELDS = ("maximum", "max", "maxAmount", "maxBudget")


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return ""


def _first(record: Dict[str, Any], fields: Tuple[str, ...]) -> Any:
    for f in fields:
        if record.get(f) is not None:
            return record[f]
    return None


def parse_amount(value: Any) -> Optional[int]:
    """Turn ``1500``, ``"USD 1,500.00"`` or ``"$1500"`` into a whole number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = re.sub(r"[^0-9.\-]", "", value)
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(math.floor(number + 0.5))


def rate_suffix(typename: str) -> str:
    if "Hourly" in typename:
        return "/hr"
    if "Monthly" in typename:
        return "/mo"
    return ""


def format_budget(record: Dict[str, Any]) -> Optional[str]:
    low = parse_amount(_first(record, MIN_FIELDS))
    high = parse_amount(_first(record, MAX_FIELDS))
    suffix = rate_suffix(_text(record.get("__typename")))
    if low is not None and high is not None:
        text = f"${low:,}" if low == high else f"${low:,} - ${high:,}"
    elif low is not None:
        text = f"${low:,}+"
    elif high is not None:
        text = f"Up to ${high:,}"
    else:
        return None
    return text + suffix


def is_budget_kind(typename: str) -> bool:
    return any(marker in typename for marker in BUDGET_MARKERS)


def iter_payloads(page: PageInput) -> Iterator[Any]:
    """Yield every JSON payload embedded in the page. Unparseable fragments are skipped."""
    soup = parse_html(as_page(page))
    for script in soup.find_all("script"):
        if script.get("type") != "application/json" and script.get("id") != "__NEXT_DATA__":
            continue
        body = script.string if script.string is not None else script.get_text()
        if not body or not body.strip():
            continue
        try:
            yield json.loads(body)
        except (ValueError, RecursionError) as e:
            logger.debug("Skipping malformed JSON fragment: %s", e)


def find_record_map(payload: Any) -> Optional[Dict[str, Any]]:
    for path in CANDIDATE_PATHS:
        node = payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if isinstance(node, dict) and isinstance(node.get(RECORD_MAP_KEY), dict):
            return node[RECORD_MAP_KEY]
    return None


def record_maps(page: PageInput) -> List[Dict[str, Any]]:
    maps = []
    for payload in iter_payloads(page):
        found = find_record_map(payload)
        if found is not None:
            maps.append(found)
    return maps


def typename_counts(page: PageInput) -> Counter:
    counts: Counter = Counter()
    for rm in record_maps(page):
        for record in rm.values():
            if isinstance(record, dict) and _text(record.get("__typename")):
                counts[record["__typename"]] += 1
    return counts


@dataclass
class RecordIndex:
    organizations: Dict[str, str] = field(default_factory=dict)
    budgets: Dict[str, str] = field(default_factory=dict)

    def add(self, key: str, record: Dict[str, Any]) -> None:
        typename = _text(record.get("__typename"))
        if typename in ORGANIZATION_KINDS:
            name = _text(record.get("name")) or _text(record.get("displayName"))
            if name:
                self.organizations[key] = name
        elif is_budget_kind(typename):
            budget = format_budget(record)
            if budget:
                self.budgets[key] = budget

    def company_for(self, record: Dict[str, Any]) -> Optional[str]:
        for f in ORGANIZATION_FIELDS:
            ref = record.get(f)
            if isinstance(ref, dict) and "__ref" not in ref:
                name = _text(ref.get("name")) or _text(ref.get("displayName"))
            else:
                name = self.organizations.get(_ref_key(ref), "")
            if name:
                return name
        return _text(record.get("clientName")) or _text(record.get("companyName")) or None

    def budget_for(self, record: Dict[str, Any]) -> Optional[str]:
        for f in BUDGET_FIELDS:
            ref = record.get(f)
            if isinstance(ref, dict) and "__ref" not in ref:
                budget = format_budget(ref)
            else:
                budget = self.budgets.get(_ref_key(ref))
            if budget:
                return budget
        return None


def _ref_key(ref: Any) -> str:
    if isinstance(ref, dict):
        return _text(ref.get("__ref"))
    return _text(ref)


class RelayRecordExtractor(ExtractorBase):
    """Reads postings out of the Relay record map embedded in the page's JSON scripts.

    Organizations and budgets are indexed across every record map first, then each
    job record is projected into a ``Posting`` with its references resolved.
    """

    def __init__(self, posting_url_template: str = "https://contra.com/opportunity/{slug}") -> None:
        self.posting_url_template = posting_url_template

    def extract(self, page: PageInput) -> List[Posting]:
        maps = record_maps(page)
        index = RecordIndex()
        for rm in maps:
            for key, record in rm.items():
                if isinstance(record, dict):
                    index.add(str(key), record)

        seen: Set[str] = set()
        postings: List[Posting] = []
        for rm in maps:
            for key, record in rm.items():
                if not isinstance(record, dict) or _text(record.get("__typename")) not in JOB_KINDS:
                    continue
                posting = self._project(str(key), record, index)
                if posting is None or posting.id in seen:
                    continue
                seen.add(posting.id)
                postings.append(posting)
        return postings

    def _project(self, key: str, record: Dict[str, Any], index: RecordIndex) -> Optional[Posting]:
        title = _text(record.get("title")) or _text(record.get("name"))
        if not title:
            return None
        slug = _text(record.get("slug"))
        posting_id = _text(record.get("id")) or slug or key
        posted_at = _text(record.get("createdAt")) or _text(record.get("publishedAt"))
        return Posting(
            id=posting_id,
            title=title,
            url=self.posting_url_template.format(slug=slug or posting_id),
            company=index.company_for(record),
            budget=index.budget_for(record),
            posted_at=posted_at or None,
        )
