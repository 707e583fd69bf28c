from __future__ import annotations
from typing import Iterable, List

from .models import KeywordPolicy, Posting


def _search_text(posting: Posting) -> str:
    return f"{posting.title} {posting.company or ''}".lower()


def matches(posting: Posting, policy: KeywordPolicy) -> bool:
    """Exclude keywords always win; an empty include list accepts everything left."""
    text = _search_text(posting)
    if any(kw.lower() in text for kw in policy.exclude):
        return False
    if not policy.include:
        return True
    return any(kw.lower() in text for kw in policy.include)


def filter_all(postings: Iterable[Posting], policy: KeywordPolicy) -> List[Posting]:
    return [p for p in postings if matches(p, policy)]
