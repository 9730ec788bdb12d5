"""Importer settings powered by Pydantic BaseSettings."""

from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dropmark.constants import DEFAULT_HTTP_TIMEOUT_SECONDS


class DropmarkSettings(BaseSettings):
    """Environment configuration, read from ``DROPMARK_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="DROPMARK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    user_agent: str | None = Field(
        default=None, description="User-Agent header sent with API requests"
    )
    timeout_seconds: Annotated[float, Field(gt=0.0, le=600.0)] = (
        DEFAULT_HTTP_TIMEOUT_SECONDS
    )
    run_concurrently: bool = False
    max_workers: Annotated[int, Field(ge=1)] | None = None
    strict_decode: bool = True
    validate_endpoint: bool = False


def get_settings() -> DropmarkSettings:
    """Get a settings instance."""
    return DropmarkSettings()
