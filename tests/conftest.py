"""Shared fixtures for holder_dividends tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from holder_dividends.claims.orchestrator import FeeClaimOrchestrator
from holder_dividends.engine import DividendEngine
from holder_dividends.loyalty.ledger import LoyaltyLedger
from holder_dividends.models.config import EngineConfig, SettingsSeed
from holder_dividends.scheduler import ClaimScheduler, CycleLock
from holder_dividends.storage.sqlite import SQLiteStateStore

from tests.factories import ASSET_ID, HOLDER_A, HOLDER_B, WALLET
from tests.mocks import MockFeeClaimService, MockHolderRegistry, MockPaymentExecutor

TEST_SECRET = "SBWVJTD3F5ETMVWCNI7MM4HUAPUSCUXXMUEJZJTPRWRJGXW2BF4SVQTK"
TEST_PUBLIC = WALLET


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add network info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stellar Testnet (mocked)"
    meta["Claiming Wallet"] = TEST_PUBLIC
    meta["Tracked Asset"] = ASSET_ID


def make_test_config(**overrides) -> EngineConfig:
    """Build an EngineConfig suitable for testing."""
    defaults = dict(
        tick_interval=1,
        horizon_url="https://horizon-testnet.stellar.org",
        network_passphrase="Test SDF Network ; September 2015",
        keypair_secret=TEST_SECRET,
        fee_claim_api_url="https://portal.example.com/api",
        db_path=":memory:",
        settings=make_test_seed(),
    )
    defaults.update(overrides)
    return EngineConfig(**defaults)


def make_test_seed(**overrides) -> SettingsSeed:
    defaults = dict(
        enabled=True,
        claim_interval_minutes=10,
        distribution_percentage=40.0,
        min_claim_amount=0.001,
        wallet_address=WALLET,
        asset_id=ASSET_ID,
    )
    defaults.update(overrides)
    return SettingsSeed(**defaults)


def make_engine(store, fee_service, registry, executor, settings_store=None) -> DividendEngine:
    return DividendEngine(
        store=store,
        settings_store=settings_store or store,
        orchestrator=FeeClaimOrchestrator(fee_service),
        registry=registry,
        ledger=LoyaltyLedger(settings_store or store),
        executor=executor,
    )


@pytest.fixture
def test_config():
    """Default EngineConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteStateStore seeded with enabled settings."""
    s = SQLiteStateStore(":memory:", seed=make_test_seed())
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_fee_service():
    return MockFeeClaimService(claimed_amount=100.0)


@pytest.fixture
def mock_registry():
    return MockHolderRegistry({HOLDER_A: 100, HOLDER_B: 300})


@pytest.fixture
def mock_executor():
    return MockPaymentExecutor()


@pytest.fixture
def ledger(store):
    return LoyaltyLedger(store)


@pytest.fixture
def engine(store, mock_fee_service, mock_registry, mock_executor):
    """DividendEngine wired to the in-memory store and mocked collaborators."""
    return make_engine(store, mock_fee_service, mock_registry, mock_executor)


@pytest.fixture
def scheduler(engine, store):
    return ClaimScheduler(engine, store, CycleLock(), tick_interval=1)
