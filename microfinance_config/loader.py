"""
Configuration loader (``microfinance_config.loader``).

Reads one YAML configuration set and parses it into the frozen dataclasses
of ``microfinance_config.schema``.  Callers use
``microfinance_config.get_active_config()``; this module is its tooling.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from microfinance_config.schema import (
    ChartAccountDef,
    ClosingSettings,
    DatabaseSettings,
    DistributionSettings,
    LedgerConfiguration,
    LedgerSettings,
)

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "revenue", "expense"})
_NATURES = frozenset({"debit", "credit"})
_BASIC_TYPES = frozenset({
    "bank",
    "loans_receivable",
    "loan_income",
    "partner_payable",
    "partner_equity",
    "partner_saving",
    "partner_shares_expenses",
    "company_shares",
    "savings",
    "other",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, float):
        # YAML floats go through str() so 2.5 stays 2.5
        value = str(value)
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse decimal from {value!r}") from exc


def parse_ledger(data: dict[str, Any]) -> LedgerSettings:
    return LedgerSettings(
        zakat_source_types=tuple(
            str(s).lower() for s in data.get("zakat_source_types", ("zakat",))
        ),
        default_page_size=int(data.get("default_page_size", 20)),
    )


def parse_closing(data: dict[str, Any]) -> ClosingSettings:
    defaults = ClosingSettings()
    return ClosingSettings(
        post_closing_journal=bool(data.get("post_closing_journal", False)),
        new_period_name_format=data.get(
            "new_period_name_format", defaults.new_period_name_format
        ),
        reference_format=data.get("reference_format", defaults.reference_format),
        description_format=data.get("description_format", defaults.description_format),
    )


def parse_distribution(data: dict[str, Any]) -> DistributionSettings:
    defaults = DistributionSettings()
    return DistributionSettings(
        default_saving_percentage=parse_decimal(data.get("default_saving_percentage")),
        saving_reference_format=data.get(
            "saving_reference_format", defaults.saving_reference_format
        ),
        saving_description_format=data.get(
            "saving_description_format", defaults.saving_description_format
        ),
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    defaults = DatabaseSettings()
    return DatabaseSettings(
        url=data.get("url", defaults.url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
    )


def parse_chart_account(data: dict[str, Any]) -> ChartAccountDef:
    """
    Parse one chart entry.

    Raises:
        KeyError: if code, name or account_type is missing.
        ValueError: on an unknown account type, nature or basic type.
    """
    account_type = str(data["account_type"]).lower()
    if account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"Unknown account_type {account_type!r} for {data['code']}")
    basic_type = str(data.get("basic_type", "other")).lower()
    if basic_type not in _BASIC_TYPES:
        raise ValueError(f"Unknown basic_type {basic_type!r} for {data['code']}")
    nature = data.get("nature")
    if nature is not None:
        nature = str(nature).lower()
        if nature not in _NATURES:
            raise ValueError(f"Unknown nature {nature!r} for {data['code']}")
    parent = data.get("parent")
    return ChartAccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=account_type,
        basic_type=basic_type,
        parent=str(parent) if parent is not None else None,
        nature=nature,
    )


def validate_chart(chart: tuple[ChartAccountDef, ...]) -> list[str]:
    """Return a list of problems: duplicate codes, unknown or later parents."""
    errors: list[str] = []
    seen: set[str] = set()
    for account in chart:
        if account.code in seen:
            errors.append(f"Duplicate account code {account.code}")
        if account.parent is not None and account.parent not in seen:
            errors.append(
                f"Account {account.code} refers to parent {account.parent} "
                "which is not defined before it"
            )
        seen.add(account.code)
    return errors


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_configuration(data: dict[str, Any], config_id: str) -> LedgerConfiguration:
    chart = tuple(parse_chart_account(a) for a in data.get("chart_of_accounts", []))
    return LedgerConfiguration(
        config_id=data.get("config_id", config_id),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        ledger=parse_ledger(data.get("ledger", {})),
        closing=parse_closing(data.get("closing", {})),
        distribution=parse_distribution(data.get("distribution", {})),
        database=parse_database(data.get("database", {})),
        chart_of_accounts=chart,
    )


def load_configuration(set_dir: Path) -> LedgerConfiguration:
    """Load ``root.yaml`` of a configuration set directory."""
    data = load_yaml_file(set_dir / "root.yaml")
    return parse_configuration(data, config_id=set_dir.name)
