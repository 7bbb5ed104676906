from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./loyalty_admin.db"
    sql_echo: bool = False

    # Application URLs
    frontend_url: str = "http://localhost:3000"
    api_base_url: str = "http://localhost:8000"
    referral_signup_path: str = "/signup"

    # Admin API security
    admin_api_key: str = ""

    # Audit trail
    audit_enabled: bool = True

    # Observability
    log_level: str = "INFO"
    tracing_enabled: bool = True
    trace_sample_ratio: float = Field(default=1.0, ge=0.0, le=1.0)
    otel_exporter_endpoint: str | None = Field(default=None, validation_alias="OTEL_EXPORTER_OTLP_ENDPOINT")
    otel_exporter_headers: str | None = Field(default=None, validation_alias="OTEL_EXPORTER_OTLP_HEADERS")

    @field_validator("frontend_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            return value.rstrip("/")
        return value

    @field_validator("referral_signup_path", mode="before")
    @classmethod
    def _normalize_signup_path(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip() or "/signup"
            return value if value.startswith("/") else f"/{value}"
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
