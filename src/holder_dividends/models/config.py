"""Configuration models for the dividend engine."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SettingsSeed:
    """Values used to create the AutoClaimSettings row on first start."""

    enabled: bool = False
    claim_interval_minutes: int = 10
    distribution_percentage: float = 30.0
    min_claim_amount: float = 0.001  # native units
    wallet_address: str = ""
    asset_id: str = ""  # "CODE:ISSUER"


@dataclass
class EngineConfig:
    """Complete engine configuration."""

    # Daemon
    tick_interval: int = 120  # seconds between scheduler ticks
    log_level: str = "info"

    # Stellar
    network: str = "testnet"
    horizon_url: str = "https://horizon-testnet.stellar.org"
    network_passphrase: str = "Test SDF Network ; September 2015"
    keypair_secret: str = ""  # loaded from env var HOLDER_DIVIDENDS_SECRET

    # Fee claim API
    fee_claim_api_url: str = ""
    fee_claim_timeout: int = 30  # seconds

    # Payments
    base_fee: int = 100  # stroops per operation
    min_reserve: int = 20_000_000  # stroops kept in the funding wallet
    tx_timeout: int = 30  # seconds

    # Loyalty
    retention_threshold: float = 70.0  # percent of the initial bag

    # Storage
    db_path: str = "~/.holder_dividends/state.db"

    # Seed for the runtime settings row
    settings: SettingsSeed = field(default_factory=SettingsSeed)
