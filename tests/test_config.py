"""Configuration loading from TOML and environment."""

from __future__ import annotations

from holder_dividends.config import load_config

TOML = """
[daemon]
tick_interval = 60
log_level = "debug"

[stellar]
network = "mainnet"
keypair_secret = "SFROMFILE"

[fee_claim]
api_url = "https://portal.example.com/api"
timeout = 15

[payments]
base_fee = 200
min_reserve = 0

[loyalty]
retention_threshold = 80

[storage]
db_path = "/tmp/holder-dividends-test.db"

[settings]
enabled = true
claim_interval_minutes = 15
distribution_percentage = 25
wallet_address = "GWALLET"
asset_id = "DIVI:GISSUER"
"""


def test_defaults(monkeypatch):
    for var in ("SECRET", "NETWORK", "HORIZON_URL", "FEE_CLAIM_API_URL", "DB_PATH"):
        monkeypatch.delenv(f"HOLDER_DIVIDENDS_{var}", raising=False)

    cfg = load_config(None)
    assert cfg.tick_interval == 120
    assert cfg.retention_threshold == 70.0
    assert cfg.horizon_url == "https://horizon-testnet.stellar.org"
    assert cfg.settings.enabled is False
    assert cfg.settings.claim_interval_minutes == 10
    assert cfg.settings.distribution_percentage == 30.0
    assert cfg.settings.min_claim_amount == 0.001


def test_toml_file(tmp_path, monkeypatch):
    monkeypatch.delenv("HOLDER_DIVIDENDS_SECRET", raising=False)
    monkeypatch.delenv("HOLDER_DIVIDENDS_NETWORK", raising=False)
    path = tmp_path / "config.toml"
    path.write_text(TOML)

    cfg = load_config(path)
    assert cfg.tick_interval == 60
    assert cfg.log_level == "debug"
    assert cfg.network == "mainnet"
    assert cfg.horizon_url == "https://horizon.stellar.org"
    assert cfg.network_passphrase == "Public Global Stellar Network ; September 2015"
    assert cfg.keypair_secret == "SFROMFILE"
    assert cfg.fee_claim_api_url == "https://portal.example.com/api"
    assert cfg.fee_claim_timeout == 15
    assert cfg.base_fee == 200
    assert cfg.min_reserve == 0
    assert cfg.retention_threshold == 80.0
    assert cfg.db_path == "/tmp/holder-dividends-test.db"
    assert cfg.settings.enabled is True
    assert cfg.settings.claim_interval_minutes == 15
    assert cfg.settings.distribution_percentage == 25.0
    assert cfg.settings.asset_id == "DIVI:GISSUER"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    path.write_text(TOML)
    monkeypatch.setenv("HOLDER_DIVIDENDS_SECRET", "SFROMENV")
    monkeypatch.setenv("HOLDER_DIVIDENDS_HORIZON_URL", "http://localhost:8000")
    monkeypatch.setenv("HOLDER_DIVIDENDS_DB_PATH", ":memory:")

    cfg = load_config(path)
    assert cfg.keypair_secret == "SFROMENV"
    assert cfg.horizon_url == "http://localhost:8000"
    assert cfg.db_path == ":memory:"


def test_missing_file_uses_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.toml")
    assert cfg.tick_interval == 120
