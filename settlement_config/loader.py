"""
Configuration Loader (``settlement_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``settlement_config.schema`` dataclasses.  Callers go through
``settlement_config.get_active_config()``; nothing else reads config
files or environment variables.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys and out-of-range values raise ``ValueError``; there are
  no silent corrections.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed source for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from settlement_config.schema import (
    DashboardConfig,
    DatabaseConfig,
    LedgerConfig,
    ListingConfig,
    MoneyConfig,
    SettlementConfig,
)

DATABASE_URL_ENV = "SETTLEMENT_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: Mapping[str, Any]) -> str:
    """Deterministic SHA-256 over the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_section(cls: type, name: str, data: Any):
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"{name}: must be a mapping")

    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"{name}: unknown keys {sorted(unknown)}")

    values: dict[str, Any] = {}
    for key, raw in data.items():
        expected = type(getattr(cls(), key))
        if expected is bool:
            if not isinstance(raw, bool):
                raise ValueError(f"{name}.{key}: expected a boolean, got {raw!r}")
        elif expected is int:
            if isinstance(raw, bool) or not isinstance(raw, int):
                raise ValueError(f"{name}.{key}: expected an integer, got {raw!r}")
        elif not isinstance(raw, expected):
            raise ValueError(f"{name}.{key}: expected {expected.__name__}, got {raw!r}")
        values[key] = raw
    return cls(**values)


def _require_positive(name: str, value: int) -> None:
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")


def validate_config(config: SettlementConfig) -> None:
    """Range checks that the type parsing cannot express."""
    db = config.database
    if not db.url:
        raise ValueError("database.url must not be empty")
    _require_positive("database.pool_size", db.pool_size)
    if db.max_overflow < 0:
        raise ValueError(f"database.max_overflow must be >= 0, got {db.max_overflow}")
    _require_positive("database.pool_timeout", db.pool_timeout)

    if not 0 <= config.money.decimal_places <= 9:
        raise ValueError(
            f"money.decimal_places must be within [0, 9], got {config.money.decimal_places}"
        )

    _require_positive("ledger.max_conflict_retries", config.ledger.max_conflict_retries)

    listing = config.listing
    _require_positive("listing.default_page_size", listing.default_page_size)
    _require_positive("listing.max_page_size", listing.max_page_size)
    if listing.default_page_size > listing.max_page_size:
        raise ValueError("listing.default_page_size must not exceed listing.max_page_size")

    dashboard = config.dashboard
    for f in fields(DashboardConfig):
        _require_positive(f"dashboard.{f.name}", getattr(dashboard, f.name))


def parse_config(
    data: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> SettlementConfig:
    """
    Parse a config mapping into a validated SettlementConfig.

    ``environ[SETTLEMENT_DATABASE_URL]`` overrides ``database.url``.
    """
    sections = {
        "database": DatabaseConfig,
        "money": MoneyConfig,
        "ledger": LedgerConfig,
        "listing": ListingConfig,
        "dashboard": DashboardConfig,
    }
    unknown = set(data) - set(sections) - {"config_id"}
    if unknown:
        raise ValueError(f"unknown configuration sections {sorted(unknown)}")

    parsed = {name: _parse_section(cls, name, data.get(name)) for name, cls in sections.items()}

    url_override = (environ or {}).get(DATABASE_URL_ENV)
    if url_override:
        db = parsed["database"]
        parsed["database"] = DatabaseConfig(
            url=url_override,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )

    config = SettlementConfig(
        config_id=str(data.get("config_id", "default")),
        checksum=compute_checksum(data),
        **parsed,
    )
    validate_config(config)
    return config
