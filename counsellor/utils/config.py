"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Credential pools are parsed once from comma-separated environment
variables and handed to the provider clients as immutable values.
"""

import logging
import sys
from typing import Dict, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings

from counsellor.llm.keys import ProviderKeyPool


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # LLM credentials (comma-separated for rotation)
    GEMINI_API_KEYS: str = ""
    GROQ_API_KEYS: str = ""

    # Provider selection
    DEFAULT_PROVIDER: str = "GEMINI"
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_LITE_MODEL: str = "gemini-2.5-flash-lite"
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    GROQ_TEMPERATURE: float = 0.7
    GROQ_MAX_TOKENS: int = 2000

    # Timeouts
    LLM_TIMEOUT: float = 30.0

    # Database (falls back to SQLite when unset)
    DATABASE_URL: Optional[str] = None

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()


def parse_keys(raw: Optional[str]) -> tuple:
    """Split a comma-separated credential string, dropping blanks."""
    if not raw:
        return ()
    return tuple(k.strip() for k in raw.split(",") if k.strip())


def load_key_pools(settings: Optional[Settings] = None) -> Dict[str, ProviderKeyPool]:
    """
    Build the process-wide credential pools.

    Called once at startup; the returned pools are frozen and shared
    by every provider client.
    """
    settings = settings or get_settings()
    return {
        "GEMINI": ProviderKeyPool("GEMINI", parse_keys(settings.GEMINI_API_KEYS)),
        "GROQ": ProviderKeyPool("GROQ", parse_keys(settings.GROQ_API_KEYS)),
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts and service entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )
