"""
LedgerConfiguration schema.

YAML configuration sets are parsed into these frozen dataclasses by the
loader.  Nothing here executes logic; services receive plain values taken
from these objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Ledger behaviour
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    """Journal engine settings."""

    # Journals with these source types cannot be unposted
    zakat_source_types: tuple[str, ...] = ("zakat",)
    default_page_size: int = 20


@dataclass(frozen=True)
class ClosingSettings:
    """Period closer settings."""

    post_closing_journal: bool = False
    new_period_name_format: str = "Open period starting {start:%Y-%m-%d}"
    reference_format: str = "CLOSE-PERIOD-{period_id}-{timestamp}"
    description_format: str = "Closing partner profit for period {period_id}"


@dataclass(frozen=True)
class DistributionSettings:
    """Profit distribution settings."""

    default_saving_percentage: Decimal | None = None
    saving_reference_format: str = "SAVING-{period_id}-{partner_code}"
    saving_description_format: str = "Partner saving {percentage}% for period {period_id}"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


# ---------------------------------------------------------------------------
# Chart of accounts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChartAccountDef:
    """One account of the seed chart.  parent refers to another code."""

    code: str
    name: str
    account_type: str
    basic_type: str = "other"
    parent: str | None = None
    nature: str | None = None


# ---------------------------------------------------------------------------
# Configuration set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfiguration:
    """
    A complete, validated configuration set.

    Attributes:
        config_id: Identifier of the set (its directory name by default)
        version: Configuration version number
        checksum: SHA-256 of the canonical serialization of the source
        chart_of_accounts: Seed chart, parents before children
    """

    config_id: str
    version: int
    checksum: str
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    closing: ClosingSettings = field(default_factory=ClosingSettings)
    distribution: DistributionSettings = field(default_factory=DistributionSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    chart_of_accounts: tuple[ChartAccountDef, ...] = ()

    def chart_account(self, code: str) -> ChartAccountDef | None:
        for account in self.chart_of_accounts:
            if account.code == code:
                return account
        return None
