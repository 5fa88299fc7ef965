"""Configuration - Settings read from the environment.

A local ``.env`` file is loaded first so development needs no exported vars.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://localhost:5173")


def _split_csv(value: str | None, default: tuple[str, ...]) -> list[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class AppConfig:
    """Application settings.

    Attributes:
        store_backend: "firestore" or "memory"
        firestore_project: GCP project ID (None for default)
        firestore_database: Firestore database name
        openai_api_key: Key for the estimation service (None disables estimation)
        openai_model: Chat model used for estimates
        cors_origins: Origins allowed to call the API from a browser
        host: Interface to bind
        port: Port to bind
        log_level: Root logging level name
    """

    store_backend: str = "firestore"
    firestore_project: str | None = None
    firestore_database: str | None = "nutrilog"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build settings from environment variables (and .env if present)."""
        load_dotenv()
        return cls(
            store_backend=os.environ.get("NUTRILOG_STORE", "firestore").lower(),
            firestore_project=os.environ.get("FIRESTORE_PROJECT") or None,
            firestore_database=os.environ.get("FIRESTORE_DATABASE", "nutrilog"),
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"),
            cors_origins=_split_csv(os.environ.get("CORS_ORIGINS"), DEFAULT_CORS_ORIGINS),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 8080)),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
