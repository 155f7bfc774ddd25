import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    database_dir: str = "database"
    openai_model: str = "gpt-4o-mini"
    analysis_max_tokens: int = 800
    analysis_timeout_seconds: float = 90
    enhance_timeout_seconds: float = 30
    openai_api_key: Optional[str] = None
    analysis_server_url: Optional[str] = None
    log_level: str = "INFO"


def _number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    return Settings(
        database_dir=os.getenv("DATABASE_DIR") or Settings.database_dir,
        openai_model=os.getenv("OPENAI_MODEL") or Settings.openai_model,
        analysis_max_tokens=_number("ANALYSIS_MAX_TOKENS", Settings.analysis_max_tokens, int),
        analysis_timeout_seconds=_number("ANALYSIS_TIMEOUT_SECONDS", Settings.analysis_timeout_seconds, float),
        enhance_timeout_seconds=_number("ENHANCE_TIMEOUT_SECONDS", Settings.enhance_timeout_seconds, float),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        analysis_server_url=(os.getenv("ANALYSIS_SERVER_URL") or "").strip() or None,
        log_level=(os.getenv("LOG_LEVEL") or Settings.log_level).upper(),
    )
