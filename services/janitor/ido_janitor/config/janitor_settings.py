from typing import Dict

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..janitor.tables import DEFAULT_AGES, KNOWN_TABLES, TABLE_NAMES

MAX_RETENTION_DAYS = 100 * 365


class JanitorSettings(BaseSettings):
    instance: str = Field("default")
    limit: int = Field(10000)
    interval: float = Field(60.0)
    fast_interval: float = Field(10.0)
    once: bool = Field(False)
    noop: bool = Field(False)
    debug: bool = Field(False)
    retention_ages: Dict[str, int] = Field(default_factory=dict)

    model_config = SettingsConfigDict(env_prefix="CLEANUP_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("limit")
    @classmethod
    def _positive_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("limit must be at least 1")
        return value

    @field_validator("retention_ages")
    @classmethod
    def _known_ages(cls, value: Dict[str, int]) -> Dict[str, int]:
        for name, age in value.items():
            if name not in TABLE_NAMES:
                raise ValueError(f"unknown table {name!r}")
            if age < 0 or age > MAX_RETENTION_DAYS:
                raise ValueError(f"age for {name} must be between 0 and {MAX_RETENTION_DAYS} days")
        return value

    @model_validator(mode="after")
    def _interval_order(self) -> "JanitorSettings":
        if self.fast_interval <= 0:
            raise ValueError("fast_interval must be positive")
        if self.interval <= self.fast_interval:
            raise ValueError("interval must be larger than fast_interval")
        return self

    @property
    def ages(self) -> Dict[str, int]:
        """Retention age per registry table, defaults overlaid with overrides."""
        resolved = {table.name: DEFAULT_AGES.get(table.name, 0) for table in KNOWN_TABLES}
        resolved.update(self.retention_ages)
        return resolved
