from __future__ import annotations
import argparse
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Sequence
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from .config import AppConfig, ensure_dirs, load_policy
from .errors import AuthExpired, ContraAlertsError, TransientRenderError
from .extractors import PostingExtractor, ensure_authenticated, typename_counts
from .filters import filter_all
from .models import PageContent, Posting
from .renderer import AuthContext, parse_cookies
from .state import StateStore, format_timestamp, is_new, prune, record
from .storage import append_postings_to_csv

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2


class Renderer(Protocol):
    def render(self, url: str, auth: AuthContext, timeout_ms: int = ...) -> PageContent:
        ...


class Notifier(Protocol):
    def notify(self, postings: Sequence[Posting], to_email: str) -> None:
        ...


@dataclass
class RunSummary:
    scraped: int
    matching: int
    new: int
    notified: bool
    saved: bool


def auth_context(cfg: AppConfig) -> AuthContext:
    return AuthContext(storage_state_path=cfg.storage_state_path, cookies=parse_cookies(cfg.cookies_json))


def render_and_extract(
    cfg: AppConfig,
    renderer: Renderer,
    extractor: PostingExtractor,
    auth: AuthContext,
) -> List[Posting]:
    """Render the jobs page and extract postings, retrying once on a transient failure.

    Each attempt starts over with a fresh render. A login redirect is never retried.
    """
    for attempt in Retrying(
        stop=stop_after_attempt(MAX_ATTEMPTS),
        retry=retry_if_exception_type(TransientRenderError),
        reraise=True,
    ):
        with attempt:
            n = attempt.retry_state.attempt_number
            if n > 1:
                print(f"[render] retry attempt {n - 1}...")
            page = renderer.render(cfg.jobs_url, auth, cfg.nav_timeout_ms)
            ensure_authenticated(page)
            return extractor.extract(page)
    raise AssertionError("unreachable")


def run_once(
    cfg: AppConfig,
    *,
    renderer: Optional[Renderer] = None,
    notifier: Optional[Notifier] = None,
    now: Optional[Callable[[], datetime]] = None,
    dry_run: bool = False,
) -> RunSummary:
    clock = now or (lambda: datetime.now(timezone.utc))
    policy = load_policy(cfg.policy_path)
    print(f"[config] include: {', '.join(policy.keywords.include) or '(none)'}")
    print(f"[config] exclude: {', '.join(policy.keywords.exclude) or '(none)'}")

    store = StateStore(cfg.state_path)
    state = store.load()
    print(f"[state] previously seen postings: {len(state.jobs)}")

    if renderer is None:
        from .renderer import PlaywrightRenderer

        renderer = PlaywrightRenderer(headless=cfg.headless)
    auth = auth_context(cfg)
    if auth.anonymous:
        logger.warning("No Contra session configured; rendering anonymously")
    extractor = PostingExtractor(cfg.posting_url_template)
    postings = render_and_extract(cfg, renderer, extractor, auth)
    print(f"[scrape] total postings: {len(postings)}")

    matching = filter_all(postings, policy.keywords)
    new_postings = [p for p in matching if is_new(p, state)]
    print(f"[filter] matching: {len(matching)} new: {len(new_postings)}")

    recipient = cfg.notification_email or policy.notification_email
    notified = False
    if new_postings and recipient and not dry_run:
        if notifier is None:
            from .notifier import ResendNotifier

            notifier = ResendNotifier(jobs_url=cfg.jobs_url)
        notifier.notify(new_postings, recipient)
        notified = True
        print(f"[notify] sent {len(new_postings)} postings to {recipient}")
    elif new_postings:
        reason = "dry run" if dry_run else "no notification email configured"
        print(f"[notify] skipped ({reason}); new postings:")
        for p in new_postings:
            print(f"  - {p.title} ({p.url})")

    if dry_run:
        return RunSummary(len(postings), len(matching), len(new_postings), notified, saved=False)

    ts = clock()
    record(postings, state, ts)
    removed = prune(state, ts, timedelta(days=cfg.retention_days))
    store.save(state)
    print(f"[state] saved {len(state.jobs)} postings ({removed} expired entries pruned)")

    if notified:
        try:
            rows = append_postings_to_csv(new_postings, cfg.archive_csv_path, notified_at=format_timestamp(ts))
            print(f"[archive] {cfg.archive_csv_path} rows={rows}")
        except (OSError, ValueError) as e:
            logger.warning("Archive append failed: %s", e)
    return RunSummary(len(postings), len(matching), len(new_postings), notified, saved=True)


def inspect_page(cfg: AppConfig, renderer: Optional[Renderer] = None) -> None:
    if renderer is None:
        from .renderer import PlaywrightRenderer

        renderer = PlaywrightRenderer(headless=cfg.headless)
    page = renderer.render(cfg.jobs_url, auth_context(cfg), cfg.nav_timeout_ms)
    print(f"URL: {page.url}")
    for typename, count in typename_counts(page).most_common(30):
        print(f"  {typename}: {count}")


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check Contra for new job postings and email the matches")
    parser.add_argument("--config", dest="policy_path", type=str, default=None, help="Path to the keyword policy (YAML or JSON). Defaults to config/alerts.yaml")
    parser.add_argument("--state", dest="state_path", type=str, default=None, help="Path to the seen-postings state file. Defaults to data/seen-jobs.json")
    parser.add_argument("--dry-run", action="store_true", help="Print new postings without emailing or saving state")
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--inspect", action="store_true", help="Render the page and list the record types it embeds")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cfg = AppConfig()
    if args.policy_path:
        cfg.policy_path = os.path.abspath(args.policy_path)
    if args.state_path:
        cfg.state_path = os.path.abspath(args.state_path)
    if args.headful:
        cfg.headless = False
    ensure_dirs(cfg)

    print("=== Contra Alerts ===")
    print(f"Time: {datetime.now(timezone.utc).isoformat()}")
    try:
        if args.inspect:
            inspect_page(cfg)
            return 0
        summary = run_once(cfg, dry_run=args.dry_run)
    except AuthExpired as e:
        print(f"Session expired: {e}", file=sys.stderr)
        return 1
    except ContraAlertsError as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Unexpected failure")
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1
    print(f"Done: {summary.new} new of {summary.scraped} scraped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
