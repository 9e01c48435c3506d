"""
Runtime configuration from environment variables (and an optional .env file).

Usage:
    from backend.app.config import get_settings

    settings = get_settings()
    print(settings.openai_model)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"


class Settings(BaseSettings):
    """One field per env var; names match case-insensitively (DATABASE_URL -> database_url)."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: Optional[str] = Field(None, description="Read/write DSN (file uploads, seeding)")
    database_url_readonly: Optional[str] = Field(
        None, description="DSN used to execute agent SQL (defaults to database_url)"
    )

    openai_model: str = Field("gpt-4o-mini", description="Model for schema/summary/chart agents")
    openai_sql_model: Optional[str] = Field(None, description="Model for the SQL agent (defaults to openai_model)")
    llm_base_url: Optional[str] = Field(None, description="OpenAI-compatible endpoint")
    llm_api_key: Optional[str] = Field(None, description="Key for llm_base_url; SDK default otherwise")
    llm_backend: Literal["langchain", "openai"] = "langchain"

    agent_timeout_seconds: float = Field(60.0, gt=0, description="Budget for one agent call")

    # Comma-separated, not JSON
    cors_origins: str = DEFAULT_CORS_ORIGINS

    @field_validator("llm_backend", mode="before")
    @classmethod
    def _lower_backend(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("database_url", "database_url_readonly", "openai_sql_model", "llm_base_url", "llm_api_key", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        return None if isinstance(v, str) and not v.strip() else v

    @model_validator(mode="after")
    def _fill_defaults(self) -> "Settings":
        if self.database_url_readonly is None:
            self.database_url_readonly = self.database_url
        if self.openai_sql_model is None:
            self.openai_sql_model = self.openai_model
        return self

    @property
    def cors_origin_list(self) -> List[str]:
        return [item.strip() for item in self.cors_origins.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
