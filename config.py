"""
Application settings for the Hunter and Matrimony backends.

Loaded once from environment variables (or a local .env file) with
pydantic-settings, then imported everywhere as the `settings` singleton.
"""

from typing import List
from urllib.parse import quote_plus

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── MongoDB ───────────────────────────────────────────────────────────
    # An explicit URI wins; otherwise one is built from DB_USER / DB_PASS.
    database_url: str = Field(default="", description="Full MongoDB connection URI")
    db_user: str = Field(default="")
    db_pass: str = Field(default="")
    db_host: str = Field(default="cluster0.mongodb.net")

    bikes_db_name: str = Field(default="HunterDB")
    matrimony_db_name: str = Field(default="MatrimonyDB")

    # Applies to server selection, connects and every operation
    db_timeout_ms: int = Field(default=5000, ge=100, le=120_000)

    # ── Auth ──────────────────────────────────────────────────────────────
    access_token_secret: str = Field(default="")
    token_ttl_days: int = Field(default=365, ge=1)
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("environment", "node_env"),
    )

    # ── Payments ──────────────────────────────────────────────────────────
    stripe_secret_key: str = Field(default="")
    payment_currency: str = Field(default="usd")
    payment_timeout_seconds: int = Field(default=10, ge=1, le=80)

    # ── HTTP ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(
        default="http://localhost:5173,https://assignment-12-50161.web.app"
    )
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000, ge=1, le=65535)
    log_level: str = Field(default="INFO")

    max_page_size: int = Field(default=100, ge=1, le=1000)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @property
    def mongodb_uri(self) -> str:
        if self.database_url:
            return self.database_url
        if self.db_user:
            return (
                f"mongodb+srv://{quote_plus(self.db_user)}:{quote_plus(self.db_pass)}"
                f"@{self.db_host}/?retryWrites=true&w=majority"
            )
        return "mongodb://localhost:27017"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def validate_required_for_production(self) -> None:
        """Raise ValueError listing every missing secret."""
        errors = []
        if not self.access_token_secret:
            errors.append("ACCESS_TOKEN_SECRET is not set; protected routes will reject every token.")
        if not self.stripe_secret_key:
            errors.append("STRIPE_SECRET_KEY is not set; payment intents will fail.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
