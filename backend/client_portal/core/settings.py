from __future__ import annotations

import json
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, DotEnvSettingsSource, EnvSettingsSource, SettingsConfigDict


class _FallbackEnvSettingsSource(EnvSettingsSource):
    """Allow ALLOW_ORIGINS to be comma-separated instead of strict JSON."""

    def decode_complex_value(self, field_name, field, value):  # type: ignore[override]
        try:
            return super().decode_complex_value(field_name, field, value)
        except json.JSONDecodeError:
            if field_name == "allow_origins":
                return value
            raise


class _FallbackDotEnvSettingsSource(DotEnvSettingsSource):
    """Allow ALLOW_ORIGINS to be comma-separated instead of strict JSON."""

    def decode_complex_value(self, field_name, field, value):  # type: ignore[override]
        try:
            return super().decode_complex_value(field_name, field, value)
        except json.JSONDecodeError:
            if field_name == "allow_origins":
                return value
            raise


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    project_name: str = "Client Portal Invoices API"
    project_version: str = "1.0.0"
    environment: str = Field(
        default="development",
        description="Deployment environment name",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Database
    database_url: str = Field(
        default="sqlite+pysqlite:///./client_portal.db",
        description="SQLAlchemy database URL",
    )
    db_pool_size: int = Field(default=5, description="Base DB connection pool size")
    db_max_overflow: int = Field(default=10, description="Additional DB connections beyond pool size")
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a DB connection")
    db_pool_recycle: int = Field(default=1800, description="Recycle DB connections after N seconds")

    # Auth / JWT
    jwt_secret: str = Field(default="change_me", description="JWT signing secret")
    algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Access token expiry in minutes")

    # CORS
    allow_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )

    # Portal listing
    portal_default_per_page: int = Field(default=10, ge=1, description="Default invoices per page")
    portal_max_per_page: int = Field(default=100, ge=1, description="Upper bound for invoices per page")
    default_locale: str = Field(
        default="en",
        description="Locale used when neither client nor company sets one",
        validation_alias=AliasChoices("DEFAULT_LOCALE", "PORTAL_LOCALE"),
    )

    # Export
    export_tmp_dir: str = Field(
        default_factory=tempfile.gettempdir,
        description="Directory for transient export archives",
        validation_alias=AliasChoices("EXPORT_TMP_DIR", "EXPORT_TEMP_DIR"),
    )
    export_max_invoices: int = Field(default=100, ge=1, description="Max invoices per export")
    export_seconds_per_invoice: float = Field(
        default=10.0,
        gt=0,
        description="Wall-clock budget per invoice for one export",
    )
    export_chunk_size: int = Field(default=64 * 1024, ge=1024, description="Bytes per streamed chunk")

    @field_validator("allow_origins", mode="before")
    @classmethod
    def parse_allow_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if isinstance(value, str) and value.strip():
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return [
            "http://localhost",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

    @field_validator("default_locale")
    @classmethod
    def normalize_default_locale(cls, value: str) -> str:
        locale = (value or "").strip().replace("-", "_")
        return locale or "en"

    def ensure_export_tmp_dir(self) -> Path:
        export_path = Path(self.export_tmp_dir).expanduser().resolve()
        export_path.mkdir(parents=True, exist_ok=True)
        return export_path

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            _FallbackEnvSettingsSource(settings_cls),
            _FallbackDotEnvSettingsSource(settings_cls),
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_export_tmp_dir()
    return settings


settings = get_settings()
