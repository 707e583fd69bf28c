from __future__ import annotations
import json
import logging
import os
import re
import stat
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from .errors import StatePersistenceError
from .models import PipelineState, Posting, SeenRecord

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=30)
TITLE_KEY_MAX_LEN = 100
DEFAULT_FILE_MODE = 0o644


def title_key(title: str) -> str:
    # Separators at either end are kept so keys match state files already on disk.
    return re.sub(r"[^a-z0-9]+", "-", (title or "").lower())[:TITLE_KEY_MAX_LEN]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed). Naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        ts = datetime.fromisoformat(s)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def _records_from(raw: Any, section: str) -> Dict[str, SeenRecord]:
    out: Dict[str, SeenRecord] = {}
    if not isinstance(raw, dict):
        return out
    dropped = 0
    for key, entry in raw.items():
        first_seen = entry.get("first_seen") if isinstance(entry, dict) else None
        if parse_timestamp(first_seen) is None:
            dropped += 1
            continue
        out[str(key)] = SeenRecord(first_seen=first_seen)
    if dropped:
        logger.warning("Dropped %d malformed %s entries from state", dropped, section)
    return out


def state_from_dict(data: Any) -> PipelineState:
    if not isinstance(data, dict):
        return PipelineState()
    last_run = data.get("last_run")
    return PipelineState(
        jobs=_records_from(data.get("jobs"), "jobs"),
        titles=_records_from(data.get("titles"), "titles"),
        last_run=last_run if isinstance(last_run, str) else "",
    )


class StateStore:
    """JSON file holding every posting identity reported or seen so far."""

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> PipelineState:
        if not os.path.exists(self.path):
            return PipelineState()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError, RecursionError) as e:
            logger.warning("Failed to load %s, starting fresh: %s", self.path, e)
            return PipelineState()
        return state_from_dict(data)

    def save(self, state: PipelineState) -> None:
        """Write the state atomically: the previous file survives a failed write."""
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, prefix=".seen-", suffix=".tmp", delete=False
            ) as tmp:
                tmp_path = tmp.name
                json.dump(state.to_dict(), tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            # NamedTemporaryFile creates 0600; keep the mode of the file being replaced.
            mode = DEFAULT_FILE_MODE
            if os.path.exists(self.path):
                mode = stat.S_IMODE(os.stat(self.path).st_mode)
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StatePersistenceError(f"Failed to save state to {self.path}: {e}") from e


def is_new(posting: Posting, state: PipelineState) -> bool:
    return posting.id not in state.jobs and title_key(posting.title) not in state.titles


def record(postings: Iterable[Posting], state: PipelineState, now: datetime) -> None:
    stamp = format_timestamp(now)
    for p in postings:
        if p.id not in state.jobs:
            state.jobs[p.id] = SeenRecord(first_seen=stamp)
        key = title_key(p.title)
        if key not in state.titles:
            state.titles[key] = SeenRecord(first_seen=stamp)
    state.last_run = stamp


def prune(state: PipelineState, now: datetime, retention: timedelta = DEFAULT_RETENTION) -> int:
    """Drop entries first seen before ``now - retention``. Returns how many were removed."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - retention
    removed = 0
    for section in (state.jobs, state.titles):
        for key in list(section):
            first_seen = parse_timestamp(section[key].first_seen)
            if first_seen is None or first_seen < cutoff:
                del section[key]
                removed += 1
    return removed
