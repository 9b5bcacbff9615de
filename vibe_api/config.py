# vibe_api/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
Clients are never built from module globals: the Settings instance is passed
to ``build_services`` at startup and everything downstream receives it explicitly.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Key-value stores ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis holding chat sessions and terminal registry"
    )
    BILLING_REDIS_URL: Optional[str] = Field(
        default=None,
        description="Redis holding customer-id cache and purchased domains (defaults to REDIS_URL)"
    )

    # --- Document database ---
    MONGODB_URI: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="vibe-coding-platform",
        description="MongoDB database name"
    )

    # --- Sandbox provider ---
    VERCEL_TOKEN: str = Field(default="", description="Sandbox provider API token")
    VERCEL_TEAM_ID: str = Field(default="", description="Sandbox provider team id")
    VERCEL_PROJECT_ID: str = Field(default="", description="Sandbox provider project id")

    # --- Billing ---
    STRIPE_SECRET_KEY: str = Field(default="", description="Payment processor secret key")
    PAYMENT_SERVER: str = Field(
        default="https://payment.blackbox.ai",
        description="Credits ledger service base URL"
    )
    CUSTOMER_RECHECK_DELAY_SECONDS: float = Field(
        default=10.0,
        description="Delay before searching the payment processor a second time for a customer"
    )
    TELEMETRY_URL: str = Field(
        default="https://www.useblackbox.io/tlm",
        description="Analytics event sink"
    )

    # --- Identity ---
    AUTH_SECRET: str = Field(default="change-me", description="HS256 secret for session tokens")
    SESSION_COOKIE_NAME: str = Field(default="session-token", description="Cookie holding the session token")

    # --- Domains ---
    EXPECTED_DOMAIN_IP: str = Field(default="76.76.21.21", description="A record custom domains must point to")
    DNS_TIMEOUT_SECONDS: float = Field(default=5.0, description="DNS resolution lifetime")

    # --- Terminals ---
    TERMINAL_REGISTRY_ENABLED: bool = Field(
        default=False,
        description="Track terminals server-side; when off, listing returns an empty collection"
    )

    # --- Rate limits (requests per minute per client) ---
    API_RATE_LIMIT: int = Field(default=120)
    BILLING_RATE_LIMIT: int = Field(default=20)
    GENERAL_RATE_LIMIT: int = Field(default=200)

    # --- Server ---
    HOST: str = Field(
        default="127.0.0.1",
        description="Server bind host"
    )
    PORT: int = Field(
        default=8888,
        description="Server bind port"
    )
    SERVICE_NAME: str = Field(default="vibe-api")

    # --- Debug / Logging / Tracing ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    LOGS_PATH: str = Field(
        default=os.path.join(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")), "logs"),
        description="Directory for access/error log files"
    )
    TRACING_ENABLED: bool = Field(default=False)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @property
    def billing_redis_url(self) -> str:
        return self.BILLING_REDIS_URL or self.REDIS_URL


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()
