"""Configuration management for the employee engine.

Two layers:
    Settings      - deployment settings loaded from the environment (.env aware)
    EngineConfig  - business policy knobs, explicit and immutable
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    log_level: str
    db_echo: bool

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./employee_engine.db",
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            db_echo=os.getenv("DB_ECHO", "false").lower() == "true",
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


@dataclass(frozen=True)
class EngineConfig:
    """
    Policy configuration for the employee engine.

    Attributes:
        soft_delete_reason_min_length: Shortest accepted soft-delete reason.
        soft_delete_reason_max_length: Longest accepted soft-delete reason.
        recent_audit_limit: Audit entries embedded in an employee view.
        audit_page_size: Default page size when iterating the audit trail.
        max_payment_retries: Retries allowed per failed payment attempt.
        lock_timeout_seconds: How long a writer waits for an employee lock
            before giving up with a conflict.
    """

    soft_delete_reason_min_length: int = 10
    soft_delete_reason_max_length: int = 500
    recent_audit_limit: int = 10
    audit_page_size: int = 50
    max_payment_retries: int = 3
    lock_timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.soft_delete_reason_min_length < 1:
            raise ValueError("soft_delete_reason_min_length must be at least 1")
        if self.soft_delete_reason_max_length < self.soft_delete_reason_min_length:
            raise ValueError(
                "soft_delete_reason_max_length cannot be below the minimum length"
            )
        if self.recent_audit_limit < 0:
            raise ValueError("recent_audit_limit cannot be negative")
        if self.audit_page_size < 1:
            raise ValueError("audit_page_size must be at least 1")
        if self.max_payment_retries < 0:
            raise ValueError("max_payment_retries cannot be negative")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
