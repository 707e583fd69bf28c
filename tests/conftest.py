# tests/conftest.py
import json
from datetime import datetime, timezone

import pytest

from contra_alerts.config import AppConfig
from contra_alerts.models import PageContent

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
JOBS_URL = "https://contra.com/jobs"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Keep a developer's .env or shell from leaking into tests
    for name in (
        "NOTIFICATION_EMAIL",
        "RESEND_API_KEY",
        "RESEND_FROM",
        "CONTRA_COOKIES",
        "CONTRA_STORAGE_STATE",
        "POLICY_CONFIG_PATH",
        "STATE_PATH",
        "ARCHIVE_CSV_PATH",
        "RETENTION_DAYS",
        "CONTRA_JOBS_URL",
        "CONTRA_POSTING_URL_TEMPLATE",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_relay_page():
    """Build a page embedding ``records`` as a Relay record map at ``path``."""

    def build(records, *, path=("props", "pageProps", "publicAppConfiguration"), url=JOBS_URL, extra_scripts=()):
        payload = {"relayRecordMap": records}
        for key in reversed(path):
            payload = {key: payload}
        scripts = list(extra_scripts) + [json.dumps(payload)]
        body = "".join(f'<script type="application/json">{s}</script>' for s in scripts)
        return PageContent(html=f"<html><head>{body}</head><body></body></html>", url=url)

    return build


@pytest.fixture
def designer_records():
    return {
        "Organization:1": {"__typename": "Organization", "id": "org-1", "name": "Acme"},
        "JobOpportunity:abc123": {
            "__typename": "JobOpportunity",
            "id": "abc123",
            "slug": "product-designer-acme",
            "title": "Product Designer",
            "organization": {"__ref": "Organization:1"},
            "createdAt": "2025-05-30T09:00:00.000Z",
        },
    }


@pytest.fixture
def write_policy(tmp_path):
    def write(**fields):
        path = tmp_path / "alerts.json"
        path.write_text(json.dumps(fields), encoding="utf-8")
        return path

    return write


@pytest.fixture
def app_config(tmp_path, write_policy):
    policy = write_policy(
        keywords_include=["designer"],
        keywords_exclude=["intern"],
        notification_email="me@example.com",
    )
    return AppConfig(
        data_dir=str(tmp_path / "data"),
        state_path=str(tmp_path / "data" / "seen-jobs.json"),
        policy_path=str(policy),
        archive_csv_path=str(tmp_path / "data" / "notified.csv"),
        storage_state_path=str(tmp_path / "data" / "contra_state.json"),
        cookies_json=None,
        jobs_url=JOBS_URL,
        notification_email=None,
    )


class FakeRenderer:
    """Returns (or raises) the queued outcomes in order, one per render call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def render(self, url, auth, timeout_ms=45000):
        self.calls.append((url, timeout_ms))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeNotifier:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def notify(self, postings, to_email):
        if self.error is not None:
            raise self.error
        self.sent.append((list(postings), to_email))


@pytest.fixture
def fake_renderer():
    return FakeRenderer


@pytest.fixture
def fake_notifier():
    return FakeNotifier
