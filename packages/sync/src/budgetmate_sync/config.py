"""Configuration system for Budget Mate sync.

This module provides Pydantic Settings-based configuration with environment
variable support and sensible defaults for the autosave engine, the remote
store client and onboarding draft recovery.

Usage:
    from budgetmate_sync.config import BudgetMateConfig

    # Load from environment variables and .env file
    config = BudgetMateConfig()

    # Access autosave settings
    print(config.sync.debounce_seconds)

    # Access remote store settings
    print(config.remote.base_url)
"""

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ViewMode(str, Enum):
    """Layouts of the allocation table."""

    PRIORITY = "priority"
    CATEGORY = "category"
    SNAPSHOT = "snapshot"


class SyncConfig(BaseSettings):
    """Autosave configuration settings.

    Environment Variables:
        BUDGETMATE_SYNC_DEBOUNCE_SECONDS: Quiet period before a batch is saved
        BUDGETMATE_SYNC_SAVED_DISPLAY_SECONDS: How long "saved" is shown
        BUDGETMATE_SYNC_ERROR_DISPLAY_SECONDS: How long "error" is shown
        BUDGETMATE_SYNC_BACKUP_DIR: Directory holding the local backup files
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGETMATE_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debounce_seconds: float = Field(
        default=1.5,
        ge=0.0,
        le=10.0,
        description="Quiet window in seconds before dirty envelopes are saved",
    )
    saved_display_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Seconds the saved status is shown before returning to idle",
    )
    error_display_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Seconds the error status is shown before returning to idle",
    )
    backup_dir: Optional[str] = Field(
        default=None,
        description="Directory for local backup files (defaults to data_dir/backup)",
    )


class RemoteConfig(BaseSettings):
    """Remote store configuration settings.

    Environment Variables:
        BUDGETMATE_REMOTE_BASE_URL: Base URL of the budget API
        BUDGETMATE_REMOTE_API_KEY: Bearer token for the budget API
        BUDGETMATE_REMOTE_TIMEOUT: Request timeout in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGETMATE_REMOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the budget API",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Bearer token sent with every request",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        description="Request timeout in seconds",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalise the base URL so paths can be appended."""
        return v.strip().rstrip("/")


class DraftConfig(BaseSettings):
    """Onboarding draft configuration settings.

    Environment Variables:
        BUDGETMATE_DRAFT_CORRUPTION_THRESHOLD_STEP: Step past which a draft
            without any money in it is treated as corrupted
        BUDGETMATE_DRAFT_TOTAL_STEPS: Number of onboarding steps
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGETMATE_DRAFT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    corruption_threshold_step: int = Field(
        default=7,
        ge=1,
        description="Drafts past this step must contain a non-zero amount",
    )
    total_steps: int = Field(
        default=11,
        ge=1,
        description="Number of steps in the onboarding flow",
    )

    @model_validator(mode="after")
    def check_threshold_within_steps(self) -> "DraftConfig":
        """The threshold must be a real step."""
        if self.corruption_threshold_step > self.total_steps:
            raise ValueError(
                f"corruption_threshold_step ({self.corruption_threshold_step}) "
                f"exceeds total_steps ({self.total_steps})"
            )
        return self


class ViewConfig(BaseSettings):
    """Allocation view options injected by the host application.

    Environment Variables:
        BUDGETMATE_VIEW_ENHANCED: Show the enhanced allocation table
        BUDGETMATE_VIEW_VIEW_MODE: priority, category or snapshot
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGETMATE_VIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enhanced: bool = Field(default=False)
    view_mode: ViewMode = Field(default=ViewMode.PRIORITY)


class BudgetMateConfig(BaseSettings):
    """Root configuration for Budget Mate.

    Environment Variables:
        BUDGETMATE_ENV: Environment name (development, staging, production)
        BUDGETMATE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        BUDGETMATE_DATA_DIR: Directory for local data files

    Example:
        config = BudgetMateConfig(
            sync=SyncConfig(debounce_seconds=0.5),
            remote=RemoteConfig(base_url="https://budget.example.com/api"),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGETMATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    data_dir: str = Field(
        default="./data",
        description="Directory for local data files",
    )

    sync: SyncConfig = Field(default_factory=SyncConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    draft: DraftConfig = Field(default_factory=DraftConfig)
    view: ViewConfig = Field(default_factory=ViewConfig)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    @property
    def is_debug(self) -> bool:
        return self.log_level == "DEBUG"

    @property
    def backup_dir(self) -> str:
        """Backup directory, defaulting to a folder inside the data directory."""
        if self.sync.backup_dir:
            return self.sync.backup_dir
        return f"{self.data_dir.rstrip('/')}/backup"
