"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from holder_dividends.models.config import EngineConfig, SettingsSeed

_PASSPHRASES = {
    "testnet": "Test SDF Network ; September 2015",
    "mainnet": "Public Global Stellar Network ; September 2015",
    "public": "Public Global Stellar Network ; September 2015",
}

_HORIZON_URLS = {
    "testnet": "https://horizon-testnet.stellar.org",
    "mainnet": "https://horizon.stellar.org",
    "public": "https://horizon.stellar.org",
}


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "HOLDER_DIVIDENDS_",
) -> EngineConfig:
    """Load engine configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (HOLDER_DIVIDENDS_SECRET, etc.)
        2. TOML config file
        3. Defaults from EngineConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = EngineConfig()
    explicit_horizon = False
    explicit_passphrase = False

    # ── Daemon section ─────────────────────────────────────
    daemon = raw.get("daemon", {})
    if v := daemon.get("tick_interval"):
        cfg.tick_interval = int(v)
    if v := daemon.get("log_level"):
        cfg.log_level = str(v)

    # ── Stellar section ────────────────────────────────────
    stellar = raw.get("stellar", {})
    if v := stellar.get("network"):
        cfg.network = str(v)
    if v := stellar.get("horizon_url"):
        cfg.horizon_url = str(v)
        explicit_horizon = True
    if v := stellar.get("network_passphrase"):
        cfg.network_passphrase = str(v)
        explicit_passphrase = True
    if v := stellar.get("keypair_secret"):
        cfg.keypair_secret = str(v)

    # ── Fee claim section ──────────────────────────────────
    fee_claim = raw.get("fee_claim", {})
    if v := fee_claim.get("api_url"):
        cfg.fee_claim_api_url = str(v)
    if v := fee_claim.get("timeout"):
        cfg.fee_claim_timeout = int(v)

    # ── Payments section ───────────────────────────────────
    payments = raw.get("payments", {})
    if v := payments.get("base_fee"):
        cfg.base_fee = int(v)
    if (v := payments.get("min_reserve")) is not None:
        cfg.min_reserve = int(v)
    if v := payments.get("tx_timeout"):
        cfg.tx_timeout = int(v)

    # ── Loyalty section ────────────────────────────────────
    loyalty = raw.get("loyalty", {})
    if (v := loyalty.get("retention_threshold")) is not None:
        cfg.retention_threshold = float(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Settings seed section ──────────────────────────────
    seed = raw.get("settings", {})
    cfg.settings = SettingsSeed(
        enabled=bool(seed.get("enabled", False)),
        claim_interval_minutes=int(seed.get("claim_interval_minutes", 10)),
        distribution_percentage=float(seed.get("distribution_percentage", 30.0)),
        min_claim_amount=float(seed.get("min_claim_amount", 0.001)),
        wallet_address=str(seed.get("wallet_address", "")),
        asset_id=str(seed.get("asset_id", "")),
    )

    # ── Environment variable overrides (highest priority) ──
    if secret := os.environ.get(f"{env_prefix}SECRET"):
        cfg.keypair_secret = secret
    if net := os.environ.get(f"{env_prefix}NETWORK"):
        cfg.network = net
    if url := os.environ.get(f"{env_prefix}HORIZON_URL"):
        cfg.horizon_url = url
        explicit_horizon = True
    if api := os.environ.get(f"{env_prefix}FEE_CLAIM_API_URL"):
        cfg.fee_claim_api_url = api
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db

    # Network presets unless overridden
    if not explicit_horizon and cfg.network in _HORIZON_URLS:
        cfg.horizon_url = _HORIZON_URLS[cfg.network]
    if not explicit_passphrase and cfg.network in _PASSPHRASES:
        cfg.network_passphrase = _PASSPHRASES[cfg.network]

    # Expand ~ in paths
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
