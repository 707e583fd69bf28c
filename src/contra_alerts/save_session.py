from __future__ import annotations
import argparse
import json
import os
from typing import Any, Dict, Iterable, List, Optional
from playwright.sync_api import sync_playwright
from .config import AppConfig

LOGIN_URL = "https://contra.com/log-in"
COOKIE_DOMAIN = "contra.com"


def contra_cookies(cookies: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep only cookies set for a Contra domain, in the CONTRA_COOKIES format."""
    return [c for c in cookies if COOKIE_DOMAIN in (c.get("domain") or "")]


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Log in to Contra and store the session for later runs")
    p.add_argument(
        "--print-cookies",
        action="store_true",
        help="Also print the Contra cookies as JSON, for use as CONTRA_COOKIES",
    )
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    cfg = AppConfig()
    state_path = cfg.storage_state_path
    os.makedirs(os.path.dirname(state_path), exist_ok=True)

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=False, slow_mo=100)
        context = browser.new_context()
        page = context.new_page()
        page.set_default_timeout(180000)
        try:
            page.goto(LOGIN_URL, timeout=180000)
            print("Log in to Contra in the opened window, then press Enter here.")
            input()
            page.goto(cfg.jobs_url, timeout=180000)
            context.storage_state(path=state_path)
            print(f"Saved Contra session to {state_path}")
            if args.print_cookies:
                print(json.dumps(contra_cookies(context.cookies()), indent=2))
        finally:
            context.close()
            browser.close()


if __name__ == "__main__":
    main()
