# pp_app/core/config.py
from __future__ import annotations
from typing import List

from pydantic import Field, AliasChoices, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = Field(
        default="dev",
        validation_alias=AliasChoices("env", "ENV"),
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./peerplates.db",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
    )
    site_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("site_url", "SITE_URL", "NEXT_PUBLIC_SITE_URL"),
    )

    # --- admin ---
    admin_secret: str = Field(
        default="",
        validation_alias=AliasChoices("admin_secret", "ADMIN_SECRET"),
    )

    # --- queue session tokens (issued after OTP verification) ---
    jwt_secret: str = Field(
        default="dev-secret-change-me",
        validation_alias=AliasChoices("jwt_secret", "PP_JWT_SECRET"),
    )
    queue_token_minutes: int = 60

    # --- referrals ---
    referral_points_per_signup: int = 10

    # --- one-time codes ---
    otp_ttl_minutes: int = 10
    otp_max_attempts: int = 5
    resend_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("resend_api_key", "RESEND_API_KEY"),
    )
    email_from: str = "PeerPlates <noreply@peerplates.io>"

    # --- vendor certificates ---
    certificate_dir: str = "data/vendor-certificates"
    certificate_max_bytes: int = 5 * 1024 * 1024

    # --- logging ---
    log_level: str = "INFO"
    log_format: str = ""  # json|text; empty picks by env

    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias=AliasChoices("cors_origins", "CORS_ORIGINS"),
    )

    # Derived/normalized
    cors_origins: List[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _normalize(self):
        self.cors_origins = [
            o.strip() for o in self.cors_origins_raw.split(",") if o.strip()
        ]
        self.site_url = self.site_url.rstrip("/")
        if not self.log_format:
            self.log_format = "json" if self.is_production else "text"
        return self

    @property
    def is_production(self) -> bool:
        return self.env.lower() in {"prod", "production"}


settings = Settings()
