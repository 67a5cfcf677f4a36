from __future__ import annotations

import os
from dataclasses import dataclass


LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "Weather Insight AI API"
    app_version: str = "1.0.0"
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_default_model: str = "gemini-2.0-flash-exp"
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    request_timeout_seconds: float = 30.0
    api_retry_attempts: int = 2
    log_level: str = "INFO"
    frontend_origins: tuple[str, ...] = ("http://localhost:3000", "http://127.0.0.1:3000")


def get_settings() -> Settings:
    origins_raw = os.getenv("FRONTEND_ORIGINS", "").strip()
    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "").strip()
    retry_attempts_raw = os.getenv("API_RETRY_ATTEMPTS", "").strip()
    log_level_raw = os.getenv("LOG_LEVEL", "").strip().upper()

    if log_level_raw not in LOG_LEVELS:
        log_level_raw = ""

    parsed_origins = tuple(item.strip() for item in origins_raw.split(",") if item.strip())

    try:
        request_timeout_seconds = float(timeout_raw) if timeout_raw else 30.0
    except ValueError:
        request_timeout_seconds = 30.0

    try:
        retry_attempts = int(retry_attempts_raw) if retry_attempts_raw else 2
    except ValueError:
        retry_attempts = 2

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_base_url=os.getenv("GEMINI_BASE_URL", "").strip().rstrip("/") or Settings.gemini_base_url,
        gemini_default_model=os.getenv("GEMINI_DEFAULT_MODEL", "").strip() or Settings.gemini_default_model,
        openweather_api_key=os.getenv("OPENWEATHER_API_KEY", "").strip(),
        openweather_base_url=(
            os.getenv("OPENWEATHER_BASE_URL", "").strip().rstrip("/") or Settings.openweather_base_url
        ),
        request_timeout_seconds=max(1.0, request_timeout_seconds),
        api_retry_attempts=max(0, retry_attempts),
        log_level=log_level_raw or Settings.log_level,
        frontend_origins=parsed_origins or Settings.frontend_origins,
    )
