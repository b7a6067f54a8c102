"""Centralized configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Built once at process start and handed to every component that needs
    configuration (token codec, cookie adapter, email service, database).
    """

    # ==================== Session Tokens ====================
    jwt_secret: str
    node_env: str = "development"

    # ==================== Server ====================
    host: str = "0.0.0.0"
    port: int = 8083
    log_level: str = "INFO"
    app_base_url: str = "http://localhost:3000"  # web client, for links in emails
    enable_debug_routes: bool = False

    # ==================== MongoDB ====================
    mongodb_uri: str = "mongodb://localhost:27017"
    database_name: str = "chatdesk"

    # ==================== Verification Codes ====================
    user_code_expiry_minutes: int = 15
    admin_code_expiry_minutes: int = 10
    max_code_attempts: int = 5
    code_resend_cooldown_seconds: int = 30
    conceal_account_existence: bool = True
    # None means "only outside production"
    expose_codes: Optional[bool] = None

    # ==================== Passwords ====================
    bcrypt_rounds: int = 12

    # ==================== Email ====================
    resend_api_key: Optional[str] = None
    email_from: str = "no-reply@chatdesk.local"
    alert_email: Optional[str] = None
    smtp_host: Optional[str] = None  # If None and no Resend key, print to console
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None

    # ==================== Seeding ====================
    seed_admin_username: Optional[str] = None
    seed_admin_email: Optional[str] = None
    seed_admin_password: Optional[str] = None

    @field_validator("jwt_secret")
    @classmethod
    def require_secret(cls, v):
        if not v or not v.strip():
            raise ValueError("JWT_SECRET must be set")
        return v

    # Handle empty strings for optional string fields
    @field_validator(
        "resend_api_key",
        "alert_email",
        "smtp_host",
        "smtp_user",
        "smtp_password",
        "seed_admin_username",
        "seed_admin_email",
        "seed_admin_password",
        "expose_codes",
        mode="before",
    )
    @classmethod
    def parse_optional_str(cls, v):
        if v == "":
            return None
        return v

    @property
    def is_production(self) -> bool:
        return self.node_env.strip().lower() == "production"

    @property
    def codes_exposed(self) -> bool:
        """Whether issued codes are echoed back in API responses."""
        if self.expose_codes is None:
            return not self.is_production
        return self.expose_codes

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
