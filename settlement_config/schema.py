"""
SettlementConfig schema.

Frozen dataclasses that the loader parses YAML into.  Defaults match
``sets/default.yaml`` so a partial file still yields a complete config.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Engine settings.  ``url`` may be overridden by SETTLEMENT_DATABASE_URL."""

    url: str = "sqlite:///settlement.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class MoneyConfig:
    decimal_places: int = 2


@dataclass(frozen=True)
class LedgerConfig:
    # Attempts made by retry_on_conflict before the ConflictError surfaces
    max_conflict_retries: int = 3


@dataclass(frozen=True)
class ListingConfig:
    default_page_size: int = 6
    max_page_size: int = 100


@dataclass(frozen=True)
class DashboardConfig:
    active_projects_limit: int = 10
    upcoming_deadline_days: int = 7
    upcoming_deadlines_limit: int = 5
    recent_completed_limit: int = 5
    chart_months: int = 6


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementConfig:
    """The complete runtime configuration."""

    config_id: str = "default"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    money: MoneyConfig = field(default_factory=MoneyConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    listing: ListingConfig = field(default_factory=ListingConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    checksum: str = ""
