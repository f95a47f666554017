"""
Configuration Management for the Expense Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger itself takes an explicit settings object, so tests and
embedding hosts can construct one without touching the environment.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageKeySettings(BaseSettings):
    """Keys the ledger uses in the durable key-value store."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_LEDGER_KEY_",
        extra="ignore"
    )

    expenses: str = Field(
        default="expenses",
        description="Key holding the expense collection"
    )
    tags: str = Field(
        default="tags",
        description="Key holding the tag collection"
    )
    current_month: str = Field(
        default="currentMonth",
        description="Key holding the last-viewed month marker"
    )

    @field_validator('expenses', 'tags', 'current_month')
    @classmethod
    def validate_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Storage keys must not be blank")
        return v


class LedgerSettings(BaseSettings):
    """
    Main ledger settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Validation thresholds
    future_date_tolerance_days: int = Field(
        default=0,
        ge=0,
        description="How many days in the future an expense date can be"
    )

    # File-backed durable store
    storage_path: str = Field(
        default="expense_ledger.json",
        description="Path of the JSON file used by JsonFileStore"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a durable-store write before giving up"
    )

    keys: StorageKeySettings = Field(default_factory=StorageKeySettings)


@lru_cache()
def get_settings() -> LedgerSettings:
    """
    Get ledger settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return LedgerSettings()
