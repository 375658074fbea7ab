"""
Settings -- frozen runtime configuration.

Every field has a documented default so a partial YAML file is valid.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the engine and its database.

    Guarantees:
        - pool_size, max_overflow >= 0; pool_timeout, busy_timeout > 0.
        - log_level is a standard logging level name.
    """

    database_url: str = "sqlite:///procure.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    busy_timeout: float = 5.0
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if self.pool_size < 0 or self.max_overflow < 0:
            raise ValueError("pool_size and max_overflow must be >= 0")
        if self.pool_timeout <= 0:
            raise ValueError(f"pool_timeout must be positive, got {self.pool_timeout}")
        if self.busy_timeout <= 0:
            raise ValueError(f"busy_timeout must be positive, got {self.busy_timeout}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level {self.log_level!r}")
        object.__setattr__(self, "log_level", self.log_level.upper())

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))
