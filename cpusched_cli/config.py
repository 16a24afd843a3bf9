from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── Admission ───────────────────────────────────────────────
    memory_budget: int = Field(default=2048, gt=0)
    admission_poll_interval: float = Field(default=0.1, gt=0)  # seconds
    ingest_timeout: Optional[float] = Field(default=None, gt=0)  # seconds, None waits forever

    # ── Scheduling ──────────────────────────────────────────────
    quantum: int = Field(default=7, gt=0)
    priority_min: int = 1
    priority_max: int = 8
    higher_value_is_higher_priority: bool = True
    starvation_base: int = 10
    starvation_factor: int = 10

    # ── App ─────────────────────────────────────────────────────
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CPUSCHED_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return value

    @model_validator(mode="after")
    def _check_priority_range(self) -> "Settings":
        if self.priority_min > self.priority_max:
            raise ValueError(
                f"priority_min ({self.priority_min}) must not exceed priority_max ({self.priority_max})"
            )
        return self

    def priority_rank(self, priority: int) -> int:
        """
        Map a priority value onto the "higher is more urgent" scale.
        """
        if self.higher_value_is_higher_priority:
            return priority
        return self.priority_min + self.priority_max - priority

    def starvation_threshold(self, priority: int) -> int:
        return (self.starvation_base - self.priority_rank(priority)) * self.starvation_factor


settings = Settings()
