import os
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine.url import make_url, URL
from sqlalchemy.exc import ArgumentError

# Project root (parent of moderation/) - used so .env is found regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Explicitly load .env into os.environ so it works in tests and subprocesses
load_dotenv(_PROJECT_ROOT / ".env")

# Values shipped in example .env files; treated as "not configured"
PLACEHOLDER_MARKERS = ("your_", "placeholder", "changeme")


def _is_placeholder(value: str) -> bool:
    lowered = value.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


class Settings(BaseSettings):
    app_name: str = "moderation-console"
    database_url: Optional[str] = None  # Will be set dynamically
    database_pool_size: int = Field(
        default=10, json_schema_extra={"env": "DATABASE_POOL_SIZE"}
    )
    database_max_overflow: int = Field(
        default=20, json_schema_extra={"env": "DATABASE_MAX_OVERFLOW"}
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", json_schema_extra={"env": "LOG_LEVEL"})
    port: int = Field(default=8000, json_schema_extra={"env": "PORT"})

    # Content audit gateway
    audit_url: Optional[str] = Field(
        default=None, json_schema_extra={"env": "AUDIT_URL"}
    )
    audit_channel: str = Field(default="web", json_schema_extra={"env": "AUDIT_CHANNEL"})
    audit_timeout_seconds: float = Field(
        default=30.0, gt=0, json_schema_extra={"env": "AUDIT_TIMEOUT_SECONDS"}
    )

    # Reply send transaction (insert reply + resolve pending), per step
    send_timeout_seconds: float = Field(
        default=30.0, gt=0, json_schema_extra={"env": "SEND_TIMEOUT_SECONDS"}
    )

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="before")
    def set_database_url(cls, values):
        """Set the database_url from the environment unless given explicitly."""
        if values.get("database_url"):
            return values
        environment = values.get(
            "environment", values.get("ENV", os.getenv("ENV", "development"))
        )
        if str(environment).lower() == "test":
            values["database_url"] = os.getenv("TEST_DATABASE_URL")
        else:
            values["database_url"] = os.getenv("DATABASE_URL")

        return values

    @property
    def database_url_obj(self) -> URL:
        """Return the database URL as a URL object using sqlalchemy's make_url."""
        if not self.database_url:
            raise ValueError("Database URL is not set.")
        return make_url(self.database_url)

    @property
    def is_store_configured(self) -> bool:
        """True when the message store URL parses and is not a placeholder."""
        if not self.database_url or _is_placeholder(self.database_url):
            return False
        try:
            url_obj = self.database_url_obj
        except (ArgumentError, ValueError):
            return False
        return bool(url_obj.drivername)

    @property
    def is_audit_configured(self) -> bool:
        """True when the audit URL is an http(s) URL that is not a placeholder."""
        if not self.audit_url or _is_placeholder(self.audit_url):
            return False
        parsed = urlparse(self.audit_url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def get_settings() -> Settings:
    """Get application settings from the environment."""
    return Settings()
