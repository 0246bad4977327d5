"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
import os
from enum import Enum
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./photolog.db"


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION",
    )

    # Application
    app_name: str = Field(default="Photo Log API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode="after")
    def set_debug_from_environment(self):
        """Set debug mode from the environment unless DEBUG is given explicitly."""
        if "DEBUG" not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    # Database
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)
    reset_db_on_startup: bool = Field(
        default=False,
        description="Drop and recreate all tables at startup. Destroys existing data.",
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return DEFAULT_DATABASE_URL
        return v

    # Media storage
    media_root: str = Field(
        default=".",
        description="Directory that holds the upload tree on disk",
    )
    upload_subdir: str = Field(
        default="uploads",
        description="First segment of stored paths and the URL prefix they are served at",
    )
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)
    allowed_extensions: str = Field(default="jpg,jpeg,png,gif")
    # e.g. ALLOWED_CATEGORIES=Inventory,Shipments
    allowed_categories: str = Field(
        default="",
        description="Comma separated categories. Empty accepts any safe category name.",
    )

    @property
    def extension_set(self) -> frozenset:
        return frozenset(
            ext.strip().lower().lstrip(".")
            for ext in self.allowed_extensions.split(",")
            if ext.strip()
        )

    @property
    def category_list(self) -> List[str]:
        return [c.strip() for c in self.allowed_categories.split(",") if c.strip()]

    # Transcoding
    display_max_side: int = Field(default=2000)
    display_quality: int = Field(default=80, ge=1, le=95)
    thumbnail_size: int = Field(default=200)
    thumbnail_quality: int = Field(default=70, ge=1, le=95)

    # Gallery
    default_page_size: int = Field(default=20)
    max_page_size: int = Field(default=100)

    # Orphan file sweep
    orphan_sweep_interval_seconds: int = Field(
        default=0,
        description="Background sweep interval in seconds. 0 disables the loop.",
    )
    orphan_grace_seconds: int = Field(
        default=3600,
        description="Unreferenced files younger than this are left alone.",
    )

    # HTTP
    cors_allow_origins: str = Field(default="*")

    # Logging
    log_dir: str = Field(
        default="",
        description="Directory for NDJSON log files. Empty disables file logging.",
    )
    instance_ip: str = Field(default="", description="Instance identifier for logs")

    # Prometheus
    node_name: str = Field(default="", description="Node/Pod identifier for Prometheus labels")
    prometheus_pushgateway_url: str = Field(
        default="",
        description="Prometheus Pushgateway URL (e.g. http://pushgateway:9091). Empty disables pushing.",
    )
    prometheus_push_interval_seconds: int = Field(default=30)

    @field_validator("prometheus_push_interval_seconds", "orphan_sweep_interval_seconds", mode="before")
    @classmethod
    def coerce_interval(cls, v: object) -> int:
        if v is None or v == "":
            return 0
        return int(v)

    @property
    def cors_origins(self) -> List[str]:
        if not self.cors_allow_origins:
            return ["*"]
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid re-reading the environment on every request.
    """
    return Settings()
