"""
Configuration management using Pydantic Settings
"""
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class LedgerSettings(BaseSettings):
    """Portfolio ledger configuration"""

    data_dir: str = Field(default="./data/portfolio", description="Directory for persisted documents")
    storage_backend: Literal["file", "sqlite", "memory"] = Field(
        default="file",
        description="Key-value backend for persisted documents"
    )
    sqlite_filename: str = Field(default="portfolio.db", description="SQLite file name inside data_dir")

    snapshot_interval: float = Field(default=86400.0, gt=0, description="Seconds between scheduled snapshots")
    snapshot_retention_days: int = Field(default=365, ge=1, description="Days of snapshot history to keep")

    model_config = SettingsConfigDict(env_prefix="LEDGER_")


class Settings(BaseSettings):
    """Main application settings"""

    app_name: str = Field(default="TradeVision Ledger", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    # Sub-configurations
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore"
    )


# Global settings instance
settings = Settings()
