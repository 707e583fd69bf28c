from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Posting:
    id: str
    title: str
    url: str
    company: Optional[str] = None
    budget: Optional[str] = None
    posted_at: Optional[str] = None

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company or "",
            "budget": self.budget or "",
            "url": self.url,
            "posted_at": self.posted_at or "",
        }


@dataclass
class SeenRecord:
    first_seen: str

    def to_dict(self) -> dict:
        return {"first_seen": self.first_seen}


@dataclass
class PipelineState:
    """Seen postings keyed by id and by normalized title, plus the last run time."""

    jobs: Dict[str, SeenRecord] = field(default_factory=dict)
    titles: Dict[str, SeenRecord] = field(default_factory=dict)
    last_run: str = ""

    def to_dict(self) -> dict:
        return {
            "jobs": {k: v.to_dict() for k, v in self.jobs.items()},
            "titles": {k: v.to_dict() for k, v in self.titles.items()},
            "last_run": self.last_run,
        }


@dataclass(frozen=True)
class KeywordPolicy:
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()


@dataclass
class AlertPolicy:
    keywords: KeywordPolicy
    notification_email: str = ""


@dataclass(frozen=True)
class PageContent:
    """Rendered markup plus the final URL after any redirects."""

    html: str
    url: str = ""
