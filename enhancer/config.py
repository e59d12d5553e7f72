"""
Application configuration loaded from environment variables.

Settings are read once at startup into an immutable ``Settings`` value that
is passed explicitly to the dispatcher and the GitHub client.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


# ── Fixed limits ──────────────────────────────────────────────────────

# Characters of a code base embedded in an /enhance-code message
CODEBASE_CHAR_LIMIT: int = 8000

LOG_FORMAT: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
LOG_DATEFMT: str = "%H:%M:%S"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration. Read-only after construction."""

    # ── AI providers ──────────────────────────────────────────────────
    grok_api_key: str = ""
    gemini_api_key: str = ""
    grok_api_url: str = "https://api.x.ai/v1/chat/completions"
    grok_model: str = "grok-4"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-flash-latest"
    llm_timeout: float = 120.0  # Seconds to wait for a completion

    # ── GitHub API ────────────────────────────────────────────────────
    github_token: str | None = None  # Optional, for higher rate limits
    github_api_base: str = "https://api.github.com"
    github_request_timeout: float = 30.0  # Seconds per GitHub API request

    # ── Retry / rate limiting ─────────────────────────────────────────
    retry_delay_seconds: float = 1.0
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: float = 15 * 60

    # ── Server ────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "DEBUG"
    error_log_file: str | None = "error.log"
    cors_origins: tuple[str, ...] = ("*",)
    host: str = "0.0.0.0"
    port: int = 5000


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


def load_settings() -> Settings:
    """Build a ``Settings`` value from the current environment."""
    environment = _env_str("APP_ENV", "development")
    default_level = "INFO" if environment == "production" else "DEBUG"
    origins = tuple(
        o.strip() for o in _env_str("CORS_ORIGINS", "*").split(",") if o.strip()
    )

    return Settings(
        grok_api_key=os.environ.get("GROK_API_KEY", ""),
        gemini_api_key=os.environ.get("GEMINI_API_KEY", ""),
        grok_api_url=_env_str("GROK_API_URL", Settings.grok_api_url),
        grok_model=_env_str("GROK_MODEL", Settings.grok_model),
        gemini_api_base=_env_str("GEMINI_API_BASE", Settings.gemini_api_base).rstrip("/"),
        gemini_model=_env_str("GEMINI_MODEL", Settings.gemini_model),
        llm_timeout=float(_env_str("LLM_TIMEOUT", str(Settings.llm_timeout))),
        github_token=os.environ.get("GITHUB_TOKEN") or None,
        github_api_base=_env_str("GITHUB_API_BASE", Settings.github_api_base).rstrip("/"),
        github_request_timeout=float(
            _env_str("GITHUB_REQUEST_TIMEOUT", str(Settings.github_request_timeout))
        ),
        retry_delay_seconds=float(
            _env_str("RETRY_DELAY_SECONDS", str(Settings.retry_delay_seconds))
        ),
        rate_limit_max_requests=int(
            _env_str("RATE_LIMIT_MAX_REQUESTS", str(Settings.rate_limit_max_requests))
        ),
        rate_limit_window_seconds=float(
            _env_str("RATE_LIMIT_WINDOW_SECONDS", str(Settings.rate_limit_window_seconds))
        ),
        environment=environment,
        log_level=_env_str("LOG_LEVEL", default_level).upper(),
        # An explicitly empty ERROR_LOG_FILE disables the file handler
        error_log_file=os.environ.get("ERROR_LOG_FILE", "error.log") or None,
        cors_origins=origins or ("*",),
        host=_env_str("HOST", Settings.host),
        port=int(_env_str("PORT", str(Settings.port))),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return load_settings()


def configure_logging(settings: Settings) -> None:
    """Console logging at the configured level, plus an error log file."""
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if settings.error_log_file:
        root = logging.getLogger()
        already = any(
            isinstance(h, logging.FileHandler)
            and h.baseFilename == os.path.abspath(settings.error_log_file)
            for h in root.handlers
        )
        if not already:
            handler = logging.FileHandler(settings.error_log_file, delay=True)
            handler.setLevel(logging.ERROR)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
