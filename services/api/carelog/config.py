from __future__ import annotations

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Compose passes env vars; env_file is optional (missing file is fine).
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    carelog_env: str = "dev"
    carelog_jwt_secret: str = "change-me-in-prod"
    carelog_jwt_issuer: str = "carelog"
    carelog_jwt_audience: str = "carelog-ward"
    carelog_access_token_minutes: int = 720

    database_url_app: str = Field("", validate_default=True)

    demo_admin_email: str = "nurse@carelog.local"
    demo_admin_password: str = "Nurse!234"
    demo_admin_display_name: str = "Station C Nurse"

    # Tokens issued by the managed auth backend (e.g. a hosted Postgres/auth
    # provider) can be accepted alongside our own.
    oidc_enabled: bool = False
    oidc_issuer: str = "https://auth.example"
    oidc_audience: str = "authenticated"
    oidc_jwks_url: str = "https://auth.example/.well-known/jwks.json"

    otel_enabled: bool = False

    @field_validator("database_url_app", mode="before")
    @classmethod
    def _coerce_db_url_app(cls, v):
        # Accept multiple env naming conventions.
        if v:
            return str(v)
        for k in ("DATABASE_URL_APP", "CARELOG_DATABASE_URL_APP", "DATABASE_URL"):
            if os.getenv(k):
                return os.getenv(k)
        db = os.getenv("POSTGRES_DB", "carelog")
        user = os.getenv("POSTGRES_USER", "carelog_app")
        pwd = os.getenv("POSTGRES_PASSWORD", "carelog")
        host = os.getenv("POSTGRES_HOST", "postgres")
        port = os.getenv("POSTGRES_PORT", "5432")
        return f"postgresql+psycopg://{user}:{pwd}@{host}:{port}/{db}"


settings = Settings()
