from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Values already present in the environment win over .env entries.
load_dotenv(override=False)

DEV_SESSION_SECRET = "moodflix-dev-secret-change-me"


def _get_env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer, got {raw!r}") from exc


def _get_env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number, got {raw!r}") from exc


def parse_csv_env(name: str) -> list[str]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return []

    # Support both comma-separated values and newline-separated values (common in PaaS).
    parts = [p.strip() for p in raw.replace("\n", ",").split(",")]
    return [p for p in parts if p]


def default_data_dir() -> Path:
    return Path(os.environ.get("MOODFLIX_DATA_DIR", "data")).resolve()


def database_path() -> Path:
    default_db = default_data_dir() / "moodflix.sqlite3"
    return Path(os.environ.get("MOODFLIX_DB", str(default_db))).resolve()


_warned_dev_secret = False


def session_secret() -> str:
    global _warned_dev_secret

    secret = os.environ.get("MOODFLIX_SESSION_SECRET", "").strip()
    if not secret:
        if not _warned_dev_secret:
            logger.warning("MOODFLIX_SESSION_SECRET is not set; using the development secret")
            _warned_dev_secret = True
        return DEV_SESSION_SECRET
    return secret


@dataclass(frozen=True)
class TmdbSettings:
    api_key: str | None
    base_url: str
    image_base_url: str


@dataclass(frozen=True)
class LlmSettings:
    api_key: str | None
    base_url: str
    model: str
    site_url: str
    site_name: str


@dataclass(frozen=True)
class RateLimitSettings:
    global_limit: int
    global_window_s: float
    recommend_limit: int
    recommend_window_s: float


def tmdb_settings() -> TmdbSettings:
    return TmdbSettings(
        api_key=os.environ.get("TMDB_API_KEY") or None,
        base_url=os.environ.get("TMDB_BASE_URL", "https://api.themoviedb.org/3").rstrip("/"),
        image_base_url=os.environ.get("TMDB_IMAGE_BASE_URL", "https://image.tmdb.org/t/p"),
    )


def llm_settings() -> LlmSettings:
    return LlmSettings(
        api_key=os.environ.get("OPENROUTER_API_KEY") or None,
        base_url=os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1").rstrip("/"),
        model=os.environ.get("OPENROUTER_MODEL", "deepseek/deepseek-chat"),
        site_url=os.environ.get("MOODFLIX_SITE_URL", "http://localhost:8000"),
        site_name=os.environ.get("MOODFLIX_SITE_NAME", "Moodflix"),
    )


def google_client_id() -> str | None:
    return os.environ.get("GOOGLE_CLIENT_ID") or None


def rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings(
        global_limit=_get_env_int("MOODFLIX_RL_GLOBAL", 60),
        global_window_s=_get_env_float("MOODFLIX_RL_GLOBAL_WINDOW_S", 60.0),
        recommend_limit=_get_env_int("MOODFLIX_RL_RECOMMEND", 10),
        recommend_window_s=_get_env_float("MOODFLIX_RL_RECOMMEND_WINDOW_S", 60.0),
    )


def log_level() -> str:
    return os.environ.get("MOODFLIX_LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int
    reload: bool


def server_settings() -> ServerSettings:
    return ServerSettings(
        host=os.environ.get("MOODFLIX_HOST", "127.0.0.1"),
        port=_get_env_int("MOODFLIX_PORT", 8000),
        reload=os.environ.get("MOODFLIX_RELOAD", "").strip().lower() in ("1", "true", "yes"),
    )
