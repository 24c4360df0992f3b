"""
microfinance_config -- single public entrypoint for ledger configuration.

``get_active_config()`` is the only way services obtain configuration.  The
kernel never imports this package; the service layer reads the settings it
needs and passes plain values down.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set is missing.
    - ``ValueError`` -- the set fails validation.

Every successful call logs a ``ledger_config_loaded`` trace carrying the
config id, version and checksum.
"""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path

from microfinance_config.loader import load_configuration, validate_chart
from microfinance_config.schema import (
    ChartAccountDef,
    ClosingSettings,
    DatabaseSettings,
    DistributionSettings,
    LedgerConfiguration,
    LedgerSettings,
)
from microfinance_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "MICROFINANCE_DATABASE_URL"

__all__ = [
    "get_active_config",
    "LedgerConfiguration",
    "LedgerSettings",
    "ClosingSettings",
    "DistributionSettings",
    "DatabaseSettings",
    "ChartAccountDef",
]


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> LedgerConfiguration:
    """
    Load, validate and return configuration set ``name``.

    The database URL can be overridden with the MICROFINANCE_DATABASE_URL
    environment variable.

    Raises:
        FileNotFoundError: no ``<config_dir>/<name>/root.yaml``.
        ValueError: the chart of accounts or a setting is invalid.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    set_dir = sets_dir / name
    if not (set_dir / "root.yaml").exists():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    config = load_configuration(set_dir)

    errors = validate_chart(config.chart_of_accounts)
    saving = config.distribution.default_saving_percentage
    if saving is not None and not (0 <= saving <= 100):
        errors.append(f"default_saving_percentage out of range: {saving}")
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=override),
        )

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "chart_size": len(config.chart_of_accounts),
            "database_url_overridden": bool(override),
        },
    )
    return config
