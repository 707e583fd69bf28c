from __future__ import annotations
import html
import logging
import os
from datetime import datetime
from typing import List, Optional, Sequence
import requests
from .errors import NotificationError
from .models import Posting

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
DEFAULT_SENDER = "Contra Alerts <onboarding@resend.dev>"


def esc(s: Optional[str]) -> str:
    if s is None:
        return ""
    return html.escape(str(s), quote=True)


def format_date(iso: str) -> str:
    try:
        ts = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return iso
    return f"{ts:%b} {ts.day}, {ts.year}"


def subject_for(postings: Sequence[Posting]) -> str:
    n = len(postings)
    return f"{n} New Contra Job{'' if n == 1 else 's'} Found"


def build_html(postings: Sequence[Posting], jobs_url: str) -> str:
    rows: List[str] = []
    for p in postings:
        details = []
        if p.company:
            details.append(f'<br><span style="color:#666;font-size:14px;">{esc(p.company)}</span>')
        if p.budget:
            details.append(f'<br><span style="color:#15803d;font-size:14px;">{esc(p.budget)}</span>')
        if p.posted_at:
            details.append(f'<br><span style="color:#999;font-size:12px;">{esc(format_date(p.posted_at))}</span>')
        rows.append(
            '<tr><td style="padding:12px;border-bottom:1px solid #eee;">'
            f'<a href="{esc(p.url)}" style="color:#2563eb;text-decoration:none;font-weight:500;">{esc(p.title)}</a>'
            + "".join(details)
            + "</td></tr>"
        )
    n = len(postings)
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>"
        "<body style=\"font-family:-apple-system,'Segoe UI',Roboto,sans-serif;background:#f5f5f5;padding:20px;\">"
        "<div style=\"max-width:600px;margin:0 auto;background:white;border-radius:8px;\">"
        "<div style=\"background:#2563eb;color:white;padding:20px;\">"
        "<h1 style=\"margin:0;font-size:20px;\">New Contra Jobs Alert</h1>"
        f"<p style=\"margin:8px 0 0;font-size:14px;\">{n} new job{'' if n == 1 else 's'} matching your filters</p>"
        "</div>"
        f"<table style=\"width:100%;border-collapse:collapse;\">{''.join(rows)}</table>"
        "<div style=\"padding:16px;text-align:center;font-size:12px;\">"
        f"<a href=\"{esc(jobs_url)}\" style=\"color:#2563eb;\">View all jobs on Contra</a>"
        "</div></div></body></html>"
    )


def build_text(postings: Sequence[Posting]) -> str:
    blocks = []
    for p in postings:
        head = p.title + (f" - {p.company}" if p.company else "")
        if p.budget:
            head += f" ({p.budget})"
        blocks.append(f"{head}\n{p.url}")
    return "\n\n".join(blocks)


class ResendNotifier:
    """Sends the alert email through the Resend HTTP API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        jobs_url: str = "https://contra.com/jobs",
        timeout: int = 30,
    ) -> None:
        self.api_key = api_key or os.getenv("RESEND_API_KEY")
        self.sender = sender or os.getenv("RESEND_FROM") or DEFAULT_SENDER
        self.jobs_url = jobs_url
        self.timeout = timeout

    def notify(self, postings: Sequence[Posting], to_email: str) -> None:
        if not postings:
            logger.info("No postings to notify about")
            return
        if not self.api_key:
            raise NotificationError("RESEND_API_KEY environment variable is required")

        payload = {
            "from": self.sender,
            "to": [to_email],
            "subject": subject_for(postings),
            "html": build_html(postings, self.jobs_url),
            "text": build_text(postings),
        }
        logger.info("Sending notification for %d postings to %s", len(postings), to_email)
        try:
            resp = requests.post(
                RESEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NotificationError(f"Failed to send email: {e}") from e
        if resp.status_code >= 300:
            raise NotificationError(f"Failed to send email: HTTP {resp.status_code} {resp.text[:200]}")
