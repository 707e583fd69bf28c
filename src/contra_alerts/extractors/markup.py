from __future__ import annotations
import logging
import re
from typing import List, Optional, Set
from urllib.parse import urljoin
from bs4 import Tag
from ..models import Posting
from ..state import title_key
from .base import ExtractorBase, PageInput, as_page, parse_html

logger = logging.getLogger(__name__)

CARD_SELECTOR = '[data-testid="job-card"]'
COMPANY_LEAD_IN = "Posted by "

_AMOUNT = r"\$\s?\d[\d,]*(?:\.\d+)?[kK]?"
MONEY_RANGE_RE = re.compile(
    rf"{_AMOUNT}(?:\s*(?:-|–|—|to)\s*{_AMOUNT})?\+?(?:\s*/\s*(?:hr|hour|mo|month))?"
)


def _clean(text: str) -> str:
    return " ".join((text or "").split())


def _card_title(card: Tag) -> str:
    heading = card.find(["h1", "h2", "h3", "h4"])
    if heading is not None:
        title = _clean(heading.get_text(" ", strip=True))
        if title:
            return title
    for s in card.stripped_strings:
        title = _clean(s)
        if title:
            return title
    return ""


def _card_company(card: Tag, lead_in: str) -> Optional[str]:
    lead = lead_in.lower()
    for el in [card] + card.find_all(attrs={"aria-label": True}):
        label = _clean(el.get("aria-label") or "")
        if label.lower().startswith(lead):
            return label[len(lead_in):].strip() or None
    return None


def _card_budget(card: Tag) -> Optional[str]:
    m = MONEY_RANGE_RE.search(card.get_text(" ", strip=True))
    return _clean(m.group(0)) if m else None


class MarkupCardExtractor(ExtractorBase):
    """Last resort when no record map is embedded: read the visible job cards.

    Cards carry no native id, so one is synthesized from the title.
    """

    def __init__(
        self,
        posting_url_template: str = "https://contra.com/opportunity/{slug}",
        *,
        card_selector: str = CARD_SELECTOR,
        company_lead_in: str = COMPANY_LEAD_IN,
    ) -> None:
        self.posting_url_template = posting_url_template
        self.card_selector = card_selector
        self.company_lead_in = company_lead_in

    def _card_url(self, card: Tag, base: str, slug: str) -> str:
        link = card if card.name == "a" and card.get("href") else card.find("a", href=True)
        href = (link.get("href") or "").strip() if link is not None else ""
        if href:
            return urljoin(base, href.split("?", 1)[0])
        return self.posting_url_template.format(slug=slug)

    def extract(self, page: PageInput) -> List[Posting]:
        page = as_page(page)
        soup = parse_html(page)
        base = page.url or self.posting_url_template
        seen: Set[str] = set()
        postings: List[Posting] = []
        cards = soup.select(self.card_selector)
        for card in cards:
            title = _card_title(card)
            if not title:
                continue
            posting_id = title_key(title)
            if posting_id in seen:
                continue
            seen.add(posting_id)
            postings.append(
                Posting(
                    id=posting_id,
                    title=title,
                    url=self._card_url(card, base, posting_id),
                    company=_card_company(card, self.company_lead_in),
                    budget=_card_budget(card),
                )
            )
        logger.debug("Markup scan found %d cards, %d postings", len(cards), len(postings))
        return postings
