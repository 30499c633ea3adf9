"""
Settings schema for the relief stock ledger.

Frozen dataclasses describing everything a deployment may tune: the
database connection, ledger write policy, analytics defaults and log
level.  Every section validates itself in ``__post_init__`` so an invalid
YAML document fails at load time rather than at the first operation.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Any

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_DATABASE_URL = "sqlite:///relief_ledger.db"


def _require_positive_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    lock_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.strip():
            raise ValueError("database.url must be a non-empty string")
        _require_positive_int("database.pool_size", self.pool_size)
        if isinstance(self.max_overflow, bool) or not isinstance(self.max_overflow, int) or self.max_overflow < 0:
            raise ValueError(
                f"database.max_overflow must be a non-negative integer, got {self.max_overflow!r}"
            )
        if not isinstance(self.lock_timeout_seconds, (int, float)) or self.lock_timeout_seconds <= 0:
            raise ValueError(
                f"database.lock_timeout_seconds must be positive, got {self.lock_timeout_seconds!r}"
            )


@dataclass(frozen=True)
class LedgerPolicy:
    """Write-path policy: retry limit and thresholds for new items."""

    max_update_attempts: int = 3
    default_min_stock_level: int = 10
    default_critical_level: int = 5

    def __post_init__(self) -> None:
        _require_positive_int("ledger.max_update_attempts", self.max_update_attempts)
        _require_positive_int("ledger.default_min_stock_level", self.default_min_stock_level)
        _require_positive_int("ledger.default_critical_level", self.default_critical_level)
        if self.default_critical_level >= self.default_min_stock_level:
            raise ValueError(
                "ledger.default_critical_level must be below ledger.default_min_stock_level"
            )


@dataclass(frozen=True)
class AnalyticsSettings:
    shelter_tight_low_count: int = 3
    trend_days: int = 7

    def __post_init__(self) -> None:
        _require_positive_int("analytics.shelter_tight_low_count", self.shelter_tight_low_count)
        _require_positive_int("analytics.trend_days", self.trend_days)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if not isinstance(self.level, str) or self.level.upper() not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {LOG_LEVELS}, got {self.level!r}")
        object.__setattr__(self, "level", self.level.upper())


@dataclass(frozen=True)
class LedgerSettings:
    """
    Complete runtime settings.

    Built from a plain mapping via ``from_dict`` (missing sections and keys
    fall back to defaults, unknown keys are rejected) or from
    ``with_defaults`` for tests and local runs.
    """

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    ledger: LedgerPolicy = field(default_factory=LedgerPolicy)
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def with_defaults(cls) -> LedgerSettings:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> LedgerSettings:
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Settings document must be a mapping, got {type(data).__name__}")
        sections = {
            "database": DatabaseSettings,
            "ledger": LedgerPolicy,
            "analytics": AnalyticsSettings,
            "logging": LoggingSettings,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"Unknown settings sections: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for name, section_cls in sections.items():
            raw = data.get(name) or {}
            if not isinstance(raw, dict):
                raise ValueError(f"Settings section '{name}' must be a mapping")
            allowed = set(section_cls.__dataclass_fields__)
            extra = set(raw) - allowed
            if extra:
                raise ValueError(f"Unknown keys in '{name}': {sorted(extra)}")
            try:
                kwargs[name] = section_cls(**raw)
            except TypeError as exc:
                raise ValueError(f"Invalid '{name}' section: {exc}") from exc
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def checksum(self) -> str:
        """SHA-256 of the canonical JSON form; identical settings hash identically."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()
