"""
Configuration module - loads settings from environment variables and .env.
"""
import json
import logging
from functools import lru_cache
from typing import Annotated, Any, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Documents
    max_upload_mb: int = Field(
        default=10,
        alias="MAX_UPLOAD_MB",
        description="Largest accepted PDF upload in megabytes",
    )
    date_format: str = Field(
        default="%Y-%m-%d",
        alias="DATE_FORMAT",
        description="strftime pattern used to render date fields",
    )
    pdf_producer: str = Field(default="fieldsign", alias="PDF_PRODUCER")

    # CORS
    # NoDecode: the raw env string goes to the parser below instead of json.loads
    allowed_origins: Annotated[List[str], NoDecode] = Field(default=[], alias="ALLOWED_ORIGINS")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _parse_allowed_origins(cls, v: Any) -> List[str]:
        """Parse ALLOWED_ORIGINS from JSON list, CSV, semicolon-separated string, or list."""
        if v is None:
            return []
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    return json.loads(s)
                except json.JSONDecodeError:
                    pass  # Fall through to delimiter parsing
            parts = [p.strip() for p in s.replace(",", ";").split(";")]
            return [p for p in parts if p]
        return []

    @field_validator("date_format")
    @classmethod
    def _validate_date_format(cls, v: str) -> str:
        if "%" not in v:
            raise ValueError(f"DATE_FORMAT must contain strftime directives, got {v!r}")
        return v

    @model_validator(mode="after")
    def _validate_limits(self) -> "Settings":
        if self.max_upload_mb <= 0:
            raise ValueError("MAX_UPLOAD_MB must be positive")
        if self.environment == "production" and self.debug:
            logger.warning("Configuration Warning: DEBUG is enabled in production")
        return self

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
