from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from inbox_triage.errors import ConfigError

# Load .env once, globally
load_dotenv()

# Project root (independent of current working directory).
PROJECT_ROOT = Path(__file__).resolve().parents[3]


def resolve_dir(env_key: str, default: str, env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Resolve a directory path from ENV.
    Relative paths are resolved against PROJECT_ROOT.
    """
    source = os.environ if env is None else env
    value = source.get(env_key) or default
    path = Path(value)

    if not path.is_absolute():
        path = PROJECT_ROOT / path

    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass(frozen=True)
class Settings:
    openai_api_key: str
    credentials_path: Path
    token_path: Path
    rules_path: Path
    openai_model: str = "gpt-4.1-mini"
    classifier_timeout_s: float = 60.0
    poll_interval_s: float = 30.0
    lookback_minutes: int = 60
    max_results: int = 50
    my_name: str = ""
    log_level: str = "INFO"


def _positive_number(source: Mapping[str, str], key: str, default: float, cast=float):
    raw = source.get(key)
    if raw is None or raw == "":
        return cast(default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None, *, require_gmail: bool = True) -> Settings:
    """
    Build Settings from the environment and validate them.
    Raises ConfigError for anything that would make the monitor fail later.
    """
    source = os.environ if env is None else env

    api_key = (source.get("OPENAI_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("Missing OPENAI_API_KEY. Set it in the environment or in .env.")

    secrets_dir = resolve_dir("INBOX_TRIAGE_SECRETS_DIR", "secrets", source)
    state_dir = resolve_dir("INBOX_TRIAGE_STATE_DIR", ".state", source)

    credentials_path = secrets_dir / "credentials.json"
    token_path = secrets_dir / "gmail_token.json"
    if require_gmail and not token_path.exists() and not credentials_path.exists():
        raise ConfigError(
            f"Missing Gmail token at {token_path} (and no credentials at {credentials_path}). "
            "Did you configure INBOX_TRIAGE_SECRETS_DIR?"
        )

    return Settings(
        openai_api_key=api_key,
        credentials_path=credentials_path,
        token_path=token_path,
        rules_path=state_dir / "automations.json",
        openai_model=source.get("INBOX_TRIAGE_MODEL") or "gpt-4.1-mini",
        classifier_timeout_s=_positive_number(source, "INBOX_TRIAGE_CLASSIFIER_TIMEOUT", 60.0),
        poll_interval_s=_positive_number(source, "INBOX_TRIAGE_POLL_SECONDS", 30.0),
        lookback_minutes=_positive_number(source, "INBOX_TRIAGE_LOOKBACK_MINUTES", 60, cast=int),
        max_results=_positive_number(source, "INBOX_TRIAGE_MAX_RESULTS", 50, cast=int),
        my_name=(source.get("INBOX_TRIAGE_MY_NAME") or "").strip(),
        log_level=(source.get("INBOX_TRIAGE_LOG_LEVEL") or "INFO").upper(),
    )
