"""
Configuration for the smart search service.

Values come from the environment (a local .env file is loaded first) and,
for the API key, from the secret files mounted into the container.
"""
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Tried in order; later entries are older model versions kept as fallbacks
GEMINI_MODELS = ["gemini-1.5-flash", "gemini-pro", "gemini-1.0-pro"]


def endpoints_for(base_url: str) -> List[str]:
    base_url = base_url.rstrip("/")
    return [f"{base_url}/models/{model}:generateContent" for model in GEMINI_MODELS]


DEFAULT_ENDPOINTS = endpoints_for(DEFAULT_BASE_URL)

SECRET_FILES = ["/etc/secrets/gemini-api-key", "/var/secrets/gemini-api-key"]

TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUTHY


def _read_secret(paths: List[str]) -> Optional[str]:
    for path in paths:
        try:
            with open(path, "r") as f:
                value = f.read().strip()
        except FileNotFoundError:
            continue
        if value:
            return value
    return None


class AIConfig(BaseModel):
    gemini_api_key: Optional[str] = None
    gemini_base_url: str = DEFAULT_BASE_URL
    endpoints: List[str] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    debug_enabled: bool = False
    production: bool = False
    request_timeout: float = 30.0   # seconds, covers every endpoint and retry of one request
    max_retries: int = 2            # attempts beyond the first, per endpoint

    @classmethod
    def from_env(cls, secret_files: Optional[List[str]] = None) -> "AIConfig":
        load_dotenv()

        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            api_key = _read_secret(SECRET_FILES if secret_files is None else secret_files)

        base_url = os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL)
        app_env = os.getenv("APP_ENV", "development").strip().lower()
        config = cls(
            gemini_api_key=api_key,
            gemini_base_url=base_url,
            endpoints=endpoints_for(base_url),
            debug_enabled=_env_flag("DEBUG"),
            production=app_env == "production" or _env_flag("PRODUCTION"),
            request_timeout=float(os.getenv("GEMINI_TIMEOUT_SEC", "30")),
            max_retries=int(os.getenv("GEMINI_MAX_RETRIES", "2")),
        )

        if config.gemini_api_key:
            logger.info("Gemini API key loaded")
        else:
            logger.warning("No Gemini API key found")
        return config
