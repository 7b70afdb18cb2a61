from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List
from urllib.parse import urlparse

from stylist.limits import TRANSPORT_LIMIT_BYTES

DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_TIMEOUT_SECONDS = 120.0


def _as_float(value: str | None, default: float) -> float:
    """Parse a positive float, falling back to ``default`` on junk input."""

    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


@dataclass
class GenAIConfig:
    api_key: str | None
    model: str = DEFAULT_IMAGE_MODEL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "GenAIConfig":
        # Read on every request so a missing key fails the caller, not startup.
        api_key = (os.getenv("GOOGLE_API_KEY") or "").strip() or None
        model = os.getenv("GENAI_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL
        timeout = _as_float(os.getenv("GENAI_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECONDS)
        return cls(api_key=api_key, model=model, timeout_seconds=timeout)


@dataclass
class GuardConfig:
    max_body_bytes: int

    @classmethod
    def from_env(cls) -> "GuardConfig":
        raw_max = os.getenv("MAX_BODY_BYTES", str(TRANSPORT_LIMIT_BYTES))
        try:
            max_bytes = max(int(raw_max), 0)
        except (TypeError, ValueError):
            max_bytes = TRANSPORT_LIMIT_BYTES
        return cls(max_body_bytes=max_bytes)


@dataclass
class Settings:
    environment: str
    allowed_origins: List[str]
    log_level: str
    guard: GuardConfig


def _parse_allowed_origins(raw: str | None) -> List[str]:
    """Normalise comma-separated origins into values accepted by CORSMiddleware."""

    if not raw:
        return ["*"]

    cleaned: List[str] = []
    for origin in raw.split(","):
        value = origin.strip()
        if not value:
            continue
        if value == "*":
            return ["*"]

        parsed = urlparse(value)
        if parsed.scheme and parsed.netloc:
            normalised = f"{parsed.scheme}://{parsed.netloc}"
        else:
            normalised = value

        if normalised not in cleaned:
            cleaned.append(normalised)

    return cleaned or ["*"]


@lru_cache()
def get_settings() -> Settings:
    def _get(name: str, default: str | None = None) -> str | None:
        v = os.getenv(name)
        return v if v is not None else default

    return Settings(
        environment=_get("ENVIRONMENT", "development") or "development",
        allowed_origins=_parse_allowed_origins(_get("ALLOWED_ORIGINS", "*")),
        log_level=(_get("LOG_LEVEL", "INFO") or "INFO").upper(),
        guard=GuardConfig.from_env(),
    )


def default_server_url() -> str:
    return (os.getenv("STYLIST_SERVER_URL") or "http://127.0.0.1:8000").rstrip("/")
