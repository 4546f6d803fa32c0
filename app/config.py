"""Application configuration loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "distributor-permissions"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Region reference data
    regions_csv_path: Path = Path("data/cities.csv")
    regions_csv_has_header: bool = False
    regions_csv_delimiter: str = Field(default=",", min_length=1, max_length=1)

    # Distributor bootstrap
    distributors_path: Path = Path("data/distributors.json")

    # Resolver
    max_hierarchy_depth: int = Field(default=64, ge=1)

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
