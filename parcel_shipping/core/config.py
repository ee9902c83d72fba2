"""
Application configuration

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- Sendcloud API keys have no usable default (production validation fails if blank)
- Runtime validation catches insecure configurations
"""
import json
import os
import logging
from typing import Dict, Union
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_SENDCLOUD_API_BASE = "https://panel.sendcloud.sc/api/v2"


class Settings(BaseSettings):
    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Parcel Shipping"
    DEBUG: bool = False  # SECURE DEFAULT: off in production
    ENVIRONMENT: str = "production"  # Explicit env marker

    # Sendcloud API
    SENDCLOUD_API_BASE: str = DEFAULT_SENDCLOUD_API_BASE
    SENDCLOUD_API_KEY: str = ""
    SENDCLOUD_API_SECRET: str = ""
    SENDCLOUD_TIMEOUT_SECONDS: float = 30.0

    # Sendcloud shipping method id for "Pakket Nederland (PostNL)"
    SENDCLOUD_PAKKET_NEDERLAND_METHOD_ID: str = "8"

    @field_validator("SENDCLOUD_API_BASE", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if not v:
            return DEFAULT_SENDCLOUD_API_BASE
        return v.rstrip("/")

    # Rate quote cache
    SHIPPING_RATE_CACHE_TTL_SECONDS: int = 600
    SHIPPING_RATE_CACHE_MAX_SIZE: int = 1000

    # Weight limit overrides - JSON {"postnl": {"NL": 30, "BE": 20}}
    # Empty means the bundled table in weight_limits.py is used
    SHIPPING_WEIGHT_LIMITS: Union[str, Dict[str, Dict[str, float]]] = ""

    @field_validator("SHIPPING_WEIGHT_LIMITS", mode="before")
    @classmethod
    def parse_weight_limits(cls, v):
        if isinstance(v, dict):
            return v
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"SHIPPING_WEIGHT_LIMITS is not valid JSON: {e}")
            if not isinstance(parsed, dict):
                raise ValueError("SHIPPING_WEIGHT_LIMITS must be a JSON object")
            return parsed
        return v

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch insecure production configurations."""
        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            if not self.SENDCLOUD_API_KEY or not self.SENDCLOUD_API_SECRET:
                errors.append(
                    "SENDCLOUD_API_KEY and SENDCLOUD_API_SECRET are required in production."
                )

            if not self.SENDCLOUD_API_BASE.startswith("https://"):
                errors.append("SENDCLOUD_API_BASE must use https in production.")

            if errors:
                raise ValueError(
                    "PRODUCTION CONFIGURATION VIOLATIONS:\n" + "\n".join(f"  - {e}" for e in errors)
                )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


# Try to load settings, provide helpful error on failure
try:
    settings = Settings()
except Exception as e:
    # In development, allow fallback defaults
    if os.getenv("ENVIRONMENT", "development") == "development":
        logger.warning(
            f"Settings validation failed ({e}), using development defaults. "
            "Set SENDCLOUD_API_KEY and SENDCLOUD_API_SECRET in .env file."
        )
        os.environ.setdefault("ENVIRONMENT", "development")
        settings = Settings()
    else:
        raise
