from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from playwright.sync_api import sync_playwright, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError
from .errors import TransientRenderError
from .models import PageContent

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
CONTENT_SELECTOR = '[data-testid="job-card"], a[href*="/opportunity/"]'
CONTENT_WAIT_MS = 15000


def _should_block(url: str) -> bool:
    u = (url or "").lower()
    return any(host in u for host in [
        "doubleclick.net", "googletagmanager.com", "googlesyndication.com",
        "google-analytics.com", "facebook.net", "bat.bing.com", "segment.io",
    ])


def parse_cookies(raw: Optional[str]) -> List[Dict[str, Any]]:
    """Parse a JSON cookie export (browser devtools or extension format)."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning("CONTRA_COOKIES is not valid JSON, ignoring: %s", e)
        return []
    if not isinstance(data, list):
        return []
    cookies = []
    for c in data:
        if not isinstance(c, dict) or not c.get("name"):
            continue
        cookie = {
            "name": str(c["name"]),
            "value": str(c.get("value", "")),
            "domain": c.get("domain") or ".contra.com",
            "path": c.get("path") or "/",
        }
        if c.get("secure") is not None:
            cookie["secure"] = bool(c["secure"])
        if c.get("httpOnly") is not None:
            cookie["httpOnly"] = bool(c["httpOnly"])
        cookies.append(cookie)
    return cookies


@dataclass
class AuthContext:
    """Session material injected into the browser. Empty means anonymous."""

    storage_state_path: Optional[str] = None
    cookies: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def storage_state(self) -> Optional[str]:
        if self.storage_state_path and os.path.exists(self.storage_state_path):
            return self.storage_state_path
        return None

    @property
    def anonymous(self) -> bool:
        return self.storage_state is None and not self.cookies


class PlaywrightRenderer:
    def __init__(self, *, headless: bool = True) -> None:
        self.headless = headless

    def render(self, url: str, auth: AuthContext, timeout_ms: int = 45000) -> PageContent:
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=self.headless)
                context = browser.new_context(user_agent=USER_AGENT, storage_state=auth.storage_state)
                try:
                    if auth.cookies:
                        context.add_cookies(auth.cookies)
                    context.route(
                        "**/*",
                        lambda route: route.abort() if _should_block(route.request.url) else route.continue_(),
                    )
                    page = context.new_page()
                    page.set_default_timeout(timeout_ms)
                    page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                    try:
                        page.wait_for_selector(CONTENT_SELECTOR, timeout=CONTENT_WAIT_MS)
                    except PlaywrightTimeoutError:
                        logger.info("No job cards appeared on %s, continuing with what rendered", page.url)
                    return PageContent(html=page.content(), url=page.url)
                finally:
                    context.close()
                    browser.close()
        except PlaywrightError as e:
            raise TransientRenderError(f"Rendering {url} failed: {e}") from e
