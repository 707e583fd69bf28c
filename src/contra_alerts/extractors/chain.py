from __future__ import annotations
import logging
from typing import List, Optional
from urllib.parse import urlparse
from ..errors import AuthExpired
from ..models import Posting
from .base import ExtractorBase, PageInput, as_page
from .markup import MarkupCardExtractor
from .relay import RelayRecordExtractor

logger = logging.getLogger(__name__)

LOGIN_PATH_MARKERS = ("/log-in", "/login", "/sign-in", "/signin", "/sign-up")


def ensure_authenticated(page: PageInput) -> None:
    url = as_page(page).url or ""
    path = urlparse(url).path.lower()
    if any(marker in path for marker in LOGIN_PATH_MARKERS):
        raise AuthExpired(
            f"Contra redirected to {url}; the saved session is no longer valid. "
            "Run `contra-alerts-save-session` or refresh CONTRA_COOKIES."
        )


class PostingExtractor(ExtractorBase):
    """Structured-data scan first, markup scan only when that finds nothing."""

    def __init__(
        self,
        posting_url_template: str = "https://contra.com/opportunity/{slug}",
        *,
        primary: Optional[ExtractorBase] = None,
        fallback: Optional[ExtractorBase] = None,
    ) -> None:
        self.primary = primary or RelayRecordExtractor(posting_url_template)
        self.fallback = fallback or MarkupCardExtractor(posting_url_template)

    def extract(self, page: PageInput) -> List[Posting]:
        page = as_page(page)
        postings = self.primary.extract(page)
        if postings:
            return postings
        logger.info("No record map postings found, falling back to markup scan")
        return self.fallback.extract(page)


def extract(page: PageInput, posting_url_template: str = "https://contra.com/opportunity/{slug}") -> List[Posting]:
    return PostingExtractor(posting_url_template).extract(page)
