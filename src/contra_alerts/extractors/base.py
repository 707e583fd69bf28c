from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Union
from bs4 import BeautifulSoup
from ..models import PageContent, Posting


PageInput = Union[PageContent, str]


def as_page(page: PageInput) -> PageContent:
    if isinstance(page, PageContent):
        return page
    return PageContent(html=page or "", url="")


def parse_html(page: PageContent) -> BeautifulSoup:
    return BeautifulSoup(page.html or "", "html.parser")


class ExtractorBase(ABC):
    @abstractmethod
    def extract(self, page: PageInput) -> List[Posting]:
        raise NotImplementedError
