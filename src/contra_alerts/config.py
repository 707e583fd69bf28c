from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import yaml
from dotenv import load_dotenv

from .models import AlertPolicy, KeywordPolicy


load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = ["designer", "figma", "product design", "ux", "ui", "brand"]


def _env_path(name: str, *parts: str) -> str:
    return os.path.abspath(os.getenv(name) or os.path.join(os.getcwd(), *parts))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class AppConfig:
    data_dir: str = field(default_factory=lambda: _env_path("DATA_DIR", "data"))
    state_path: str = field(default_factory=lambda: _env_path("STATE_PATH", "data", "seen-jobs.json"))
    policy_path: str = field(default_factory=lambda: _env_path("POLICY_CONFIG_PATH", "config", "alerts.yaml"))
    archive_csv_path: str = field(default_factory=lambda: _env_path("ARCHIVE_CSV_PATH", "data", "notified.csv"))
    storage_state_path: str = field(
        default_factory=lambda: _env_path("CONTRA_STORAGE_STATE", "data", "contra_state.json")
    )
    cookies_json: Optional[str] = field(default_factory=lambda: os.getenv("CONTRA_COOKIES"))
    jobs_url: str = field(default_factory=lambda: os.getenv("CONTRA_JOBS_URL", "https://contra.com/jobs"))
    posting_url_template: str = field(
        default_factory=lambda: os.getenv("CONTRA_POSTING_URL_TEMPLATE", "https://contra.com/opportunity/{slug}")
    )
    nav_timeout_ms: int = field(default_factory=lambda: int(os.getenv("NAV_TIMEOUT_MS", "45000")))
    retention_days: int = field(default_factory=lambda: int(os.getenv("RETENTION_DAYS", "30")))
    headless: bool = field(default_factory=lambda: _env_bool("CONTRA_HEADLESS", True))
    notification_email: Optional[str] = field(default_factory=lambda: os.getenv("NOTIFICATION_EMAIL"))


def ensure_dirs(cfg: AppConfig) -> None:
    os.makedirs(os.path.dirname(cfg.state_path), exist_ok=True)
    os.makedirs(os.path.dirname(cfg.archive_csv_path), exist_ok=True)


def _string_list(value: Any, default: List[str]) -> List[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        logger.warning("Ignoring keyword list of type %s", type(value).__name__)
        return list(default)
    return [str(v).strip() for v in value if str(v).strip()]


def load_policy(path: str) -> AlertPolicy:
    """Read the keyword policy. JSON files work too since JSON is valid YAML.

    Never raises: a missing or unreadable file, or missing fields, fall back to
    the defaults.
    """
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning("Policy file %s is not a mapping, using defaults", path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Failed to load %s, using defaults: %s", path, e)

    keywords = KeywordPolicy(
        include=tuple(_string_list(data.get("keywords_include"), DEFAULT_INCLUDE)),
        exclude=tuple(_string_list(data.get("keywords_exclude"), [])),
    )
    email = data.get("notification_email") or ""
    return AlertPolicy(keywords=keywords, notification_email=str(email).strip())
