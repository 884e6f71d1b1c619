"""
settlement_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits beside ``settlement_kernel``.  The kernel receives
    config values as arguments (``init_engine_from_config``, selector and
    service constructors); it never locates config files itself.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ValueError`` -- unknown keys, wrong types or out-of-range values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from settlement_config.loader import DATABASE_URL_ENV, load_yaml_file, parse_config
from settlement_config.schema import (
    DashboardConfig,
    DatabaseConfig,
    LedgerConfig,
    ListingConfig,
    MoneyConfig,
    SettlementConfig,
)

_logger = logging.getLogger("settlement_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> SettlementConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to settlement_config/sets/default.yaml.
        environ: Environment mapping used for overrides.  Defaults to
            ``os.environ``.

    Returns:
        A validated, frozen SettlementConfig.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ
    data = load_yaml_file(config_path)
    config = parse_config(data, env)

    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "config_id": config.config_id,
            "config_path": str(config_path),
            "checksum": config.checksum,
            "database_url_overridden": DATABASE_URL_ENV in env,
        },
    )
    return config


__all__ = [
    "DATABASE_URL_ENV",
    "DashboardConfig",
    "DatabaseConfig",
    "LedgerConfig",
    "ListingConfig",
    "MoneyConfig",
    "SettlementConfig",
    "get_active_config",
]
