"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class StorageSettings(BaseSettings):
    """Index catalog storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path | None = Field(
        default=None,
        description="Directory for index metadata (None keeps it in memory)",
    )
    database: str = Field(
        default="beansack",
        description="Database name used as the catalog subdirectory",
    )


class SearchSettings(BaseSettings):
    """Vector search and IVF training configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    default_top_k: int = Field(
        default=5,
        ge=1,
        description="Results returned when a query does not set k",
    )
    max_k: int = Field(
        default=1000,
        ge=1,
        description="Upper bound accepted for k",
    )
    default_nprobe: int = Field(
        default=4,
        ge=1,
        description="IVF partitions scanned per query",
    )
    train_factor: int = Field(
        default=4,
        ge=1,
        description="Vectors per partition required before IVF training",
    )
    kmeans_iterations: int = Field(
        default=20,
        ge=1,
        description="Lloyd iterations when training IVF centroids",
    )
    seed: int = Field(
        default=42,
        description="Random seed for centroid initialisation",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
