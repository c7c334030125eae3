from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    summary_api_key: str | None
    summary_api_base_url: str
    summary_model: str
    summary_timeout_seconds: float
    summary_max_chars: int
    insights_db_path: str
    upload_dir: str
    top_words_count: int
    pdf_ocr_enabled: bool
    pdf_text_min_length: int
    log_level: str
    cors_allowed_origins: tuple[str, ...]


def load_settings() -> Settings:
    return Settings(
        summary_api_key=_get_env("SARVAM_API_KEY") or _get_env("OPENAI_API_KEY"),
        summary_api_base_url=_get_env("SUMMARY_API_BASE_URL", "https://api.sarvam.ai/v1") or "https://api.sarvam.ai/v1",
        summary_model=_get_env("SUMMARY_MODEL", "sarvam-m") or "sarvam-m",
        summary_timeout_seconds=_get_env_float("SUMMARY_TIMEOUT_SECONDS", 30.0),
        summary_max_chars=_get_env_int("SUMMARY_MAX_CHARS", 6000),
        insights_db_path=_get_env("INSIGHTS_DB_PATH", "data/insights.json") or "data/insights.json",
        upload_dir=_get_env("UPLOAD_DIR", "uploads") or "uploads",
        top_words_count=_get_env_int("TOP_WORDS_COUNT", 5),
        pdf_ocr_enabled=_get_env_bool("PDF_OCR_ENABLED", False),
        pdf_text_min_length=_get_env_int("PDF_TEXT_MIN_LENGTH", 80),
        log_level=(_get_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        cors_allowed_origins=_get_env_list(
            "CORS_ALLOWED_ORIGINS",
            [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
            ],
        ),
    )


settings = load_settings()

if settings.top_words_count < 0:
    raise RuntimeError("TOP_WORDS_COUNT must be zero or greater.")
