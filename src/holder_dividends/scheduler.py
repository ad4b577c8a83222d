"""Claim scheduler - periodic ticks guarded by a single-cycle lock."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from holder_dividends.engine import DividendEngine
from holder_dividends.interfaces.store import SettingsStore
from holder_dividends.models.records import AutoClaimSettings, CronStatus, CycleResult

log = logging.getLogger(__name__)

CLAIM_IN_PROGRESS = "claim_in_progress"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        log.warning("Unparseable next_claim_scheduled %r, treating claim as due", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def interval_spec(tick_interval: int) -> str:
    return f"every {tick_interval}s"


def is_due(settings: AutoClaimSettings, now: datetime) -> bool:
    """Enabled (and configured) and past the scheduled time. No schedule means due."""
    if not settings.effective_enabled:
        return False
    scheduled = _parse_time(settings.next_claim_scheduled)
    return scheduled is None or now >= scheduled


class CycleLock:
    """Single-slot, non-blocking lock: at most one claim cycle in flight.

    Callers that fail to acquire are turned away, never queued. Check and
    set happen without an await in between, so this is safe on one event
    loop.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def in_progress(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False


class ClaimScheduler:
    """Ticks every `tick_interval` seconds and runs a claim cycle when due.

    Manual triggers share the same lock, so a trigger that arrives while a
    cycle is running gets a claim_in_progress result instead of waiting.
    """

    def __init__(
        self,
        engine: DividendEngine,
        settings_store: SettingsStore,
        lock: CycleLock | None = None,
        tick_interval: int = 120,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._engine = engine
        self._settings_store = settings_store
        self._lock = lock or CycleLock()
        self._tick_interval = tick_interval
        self._clock = clock
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def lock(self) -> CycleLock:
        return self._lock

    # ── Lifecycle ─────────────────────────────────────────

    async def start(self) -> None:
        if self._task is not None:
            log.info("Claim scheduler already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        log.info("Claim scheduler started (every %ds)", self._tick_interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        log.info("Claim scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                log.error("Scheduled claim failed: %s", exc, exc_info=True)

            try:
                await asyncio.sleep(self._tick_interval)
            except asyncio.CancelledError:
                break

    # ── Triggers ──────────────────────────────────────────

    async def tick(self) -> CycleResult | None:
        """One scheduler tick. Returns None when nothing was due."""
        if not self._lock.try_acquire():
            log.info("Dividend claim already in progress, skipping tick")
            return CycleResult(success=False, reason=CLAIM_IN_PROGRESS)

        try:
            settings = await self._settings_store.get_settings()
            if not is_due(settings, self._clock()):
                log.debug("Not time for dividend claim yet")
                return None

            log.info("Starting scheduled dividend claim")
            result = await self._engine.run_cycle(settings)
            if result.success:
                log.info(
                    "Scheduled claim completed: %.7f claimed, %.7f distributed to %d holders",
                    result.claimed_amount, result.distribution_amount, result.eligible_holders,
                )
            else:
                log.info("Scheduled claim ended without payout: %s", result.reason)
            return result
        finally:
            self._lock.release()

    async def trigger_manual_claim(self, force: bool = False) -> CycleResult:
        """Run a cycle now. `force` skips the enabled flag and the schedule."""
        if not self._lock.try_acquire():
            log.info("Manual claim rejected: claim in progress")
            return CycleResult(success=False, reason=CLAIM_IN_PROGRESS)

        try:
            settings = await self._settings_store.get_settings()
            if not force:
                if not settings.effective_enabled:
                    return CycleResult(success=False, reason="auto_claim_disabled")
                if not is_due(settings, self._clock()):
                    return CycleResult(
                        success=False,
                        reason="not_due",
                        next_claim_time=settings.next_claim_scheduled,
                    )
            log.info("Starting manual dividend claim (force=%s)", force)
            return await self._engine.run_cycle(settings)
        finally:
            self._lock.release()

    # ── Diagnostics ───────────────────────────────────────

    async def should_run_claim(self) -> bool:
        """Read-only schedule check."""
        try:
            settings = await self._settings_store.get_settings()
        except Exception as exc:
            log.error("Could not read auto-claim settings: %s", exc)
            return False
        return is_due(settings, self._clock())

    def get_cron_status(self) -> CronStatus:
        return CronStatus(
            running=self._task is not None,
            claim_in_progress=self._lock.in_progress,
            interval_spec=interval_spec(self._tick_interval),
        )
