"""Dividend daemon - wires all components together."""

from __future__ import annotations

import asyncio
import logging
import signal

from stellar_sdk import Keypair

from holder_dividends.claims.orchestrator import FeeClaimOrchestrator
from holder_dividends.engine import DividendEngine
from holder_dividends.loyalty.ledger import LoyaltyLedger
from holder_dividends.models.config import EngineConfig
from holder_dividends.models.records import CycleResult
from holder_dividends.scheduler import ClaimScheduler, CycleLock
from holder_dividends.stellar.fee_claim import PortalFeeClaimService
from holder_dividends.stellar.holders import HorizonHolderRegistry
from holder_dividends.stellar.payments import StellarPaymentExecutor
from holder_dividends.storage.sqlite import SQLiteStateStore

log = logging.getLogger(__name__)


class DividendDaemon:
    """Autonomous dividend distributor.

    Owns the state store, the Stellar collaborators, the claim engine and
    the scheduler that drives it.
    """

    def __init__(self, cfg: EngineConfig) -> None:
        self._cfg = cfg
        self._stop_event = asyncio.Event()

        keypair = Keypair.from_secret(cfg.keypair_secret)
        self._public_key = keypair.public_key

        self.store = SQLiteStateStore(cfg.db_path, seed=cfg.settings)
        self.registry = HorizonHolderRegistry(cfg.horizon_url)
        self.fee_service = PortalFeeClaimService(
            cfg.fee_claim_api_url, cfg.horizon_url, cfg.network_passphrase, keypair,
            timeout=cfg.fee_claim_timeout,
        )
        self.executor = StellarPaymentExecutor(
            cfg.horizon_url, cfg.network_passphrase, keypair,
            base_fee=cfg.base_fee, min_reserve=cfg.min_reserve, tx_timeout=cfg.tx_timeout,
        )
        self.ledger = LoyaltyLedger(self.store, cfg.retention_threshold)
        self.engine = DividendEngine(
            store=self.store,
            settings_store=self.store,
            orchestrator=FeeClaimOrchestrator(self.fee_service),
            registry=self.registry,
            ledger=self.ledger,
            executor=self.executor,
        )
        self.scheduler = ClaimScheduler(
            self.engine, self.store, CycleLock(), tick_interval=cfg.tick_interval,
        )

    async def open(self) -> None:
        await self.store.initialize()
        settings = await self.store.get_settings()
        if settings.is_configured and settings.wallet_address != self._public_key:
            log.warning(
                "Signing key %s does not match configured wallet %s",
                self._public_key[:16], settings.wallet_address[:16],
            )

    async def close(self) -> None:
        await self.store.close()

    async def start(self) -> None:
        """Initialize components and run until stopped."""
        log.info("Starting holder dividend daemon")
        log.info("  Wallet: %s", self._public_key)
        log.info("  Horizon: %s", self._cfg.horizon_url)
        log.info("  Fee API: %s", self._cfg.fee_claim_api_url or "(not set)")
        log.info("  Retention threshold: %g%%", self._cfg.retention_threshold)

        await self.open()
        settings = await self.store.get_settings()
        if not settings.effective_enabled:
            log.warning(
                "Auto-claim inactive (enabled=%s, configured=%s)",
                settings.enabled, settings.is_configured,
            )

        await self.scheduler.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.scheduler.stop()
            await self.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._stop_event.set()

    async def claim_now(self, force: bool = False) -> CycleResult:
        """One manual cycle outside the daemon loop."""
        await self.open()
        try:
            return await self.scheduler.trigger_manual_claim(force=force)
        finally:
            await self.close()


async def run_daemon(cfg: EngineConfig) -> None:
    """Entry point for running the daemon."""
    daemon = DividendDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
