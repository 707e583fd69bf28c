# tests/test_renderer.py
import json

from contra_alerts.renderer import AuthContext, _should_block, parse_cookies


def test_parse_cookie_export():
    raw = json.dumps(
        [
            {"name": "session", "value": "abc", "domain": ".contra.com", "path": "/", "httpOnly": True},
            {"name": "theme", "value": "dark"},
            {"value": "nameless"},
            "junk",
        ]
    )
    cookies = parse_cookies(raw)
    assert cookies == [
        {"name": "session", "value": "abc", "domain": ".contra.com", "path": "/", "httpOnly": True},
        {"name": "theme", "value": "dark", "domain": ".contra.com", "path": "/"},
    ]


def test_parse_cookies_tolerates_bad_input():
    assert parse_cookies(None) == []
    assert parse_cookies("not json") == []
    assert parse_cookies('{"name": "x"}') == []


def test_auth_context_is_anonymous_without_session(tmp_path):
    assert AuthContext(storage_state_path=str(tmp_path / "missing.json")).anonymous

    state = tmp_path / "contra_state.json"
    state.write_text("{}", encoding="utf-8")
    assert AuthContext(storage_state_path=str(state)).storage_state == str(state)
    assert not AuthContext(cookies=[{"name": "s", "value": "v"}]).anonymous


def test_tracker_requests_are_blocked():
    assert _should_block("https://www.googletagmanager.com/gtm.js")
    assert not _should_block("https://contra.com/jobs")
