"""SQLite implementation of the settings, loyalty and audit store protocols."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from holder_dividends.errors import PersistenceError
from holder_dividends.models.config import SettingsSeed
from holder_dividends.models.loyalty import (
    EligibilityState,
    HolderEligibility,
    HolderInitialBag,
    LoyaltyStats,
)
from holder_dividends.models.records import (
    ActivityRecord,
    AutoClaimSettings,
    DividendClaim,
    DividendDistribution,
    HolderSnapshot,
    HolderStats,
)

SCHEMA = """
-- Runtime auto-claim settings
CREATE TABLE IF NOT EXISTS auto_claim_settings (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    enabled INTEGER NOT NULL DEFAULT 0,
    claim_interval_minutes INTEGER NOT NULL DEFAULT 10,
    distribution_percentage REAL NOT NULL DEFAULT 30,
    min_claim_amount REAL NOT NULL DEFAULT 0.001,
    wallet_address TEXT NOT NULL DEFAULT '',
    asset_id TEXT NOT NULL DEFAULT '',
    next_claim_scheduled TEXT,
    last_successful_claim TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Loyalty baselines
CREATE TABLE IF NOT EXISTS holder_initial_bags (
    address TEXT PRIMARY KEY,
    initial_balance INTEGER NOT NULL,
    initial_percentage REAL NOT NULL,
    asset_id TEXT NOT NULL,
    first_recorded_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Loyalty eligibility
CREATE TABLE IF NOT EXISTS holder_eligibility (
    address TEXT PRIMARY KEY,
    current_balance INTEGER NOT NULL,
    initial_balance INTEGER NOT NULL,
    retention_percentage REAL NOT NULL,
    state TEXT NOT NULL,
    is_eligible INTEGER NOT NULL,
    permanently_blacklisted INTEGER NOT NULL DEFAULT 0,
    blacklisted_at TEXT,
    blacklist_reason TEXT,
    last_checked_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_eligibility_state ON holder_eligibility(state);

-- Fee claims
CREATE TABLE IF NOT EXISTS dividend_claims (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claimed_amount REAL NOT NULL,
    distribution_amount REAL NOT NULL,
    total_supply INTEGER NOT NULL DEFAULT 0,
    holder_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'processing',
    transaction_id TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Per-claim holder snapshots
CREATE TABLE IF NOT EXISTS holder_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim_id INTEGER NOT NULL REFERENCES dividend_claims(id),
    holder_address TEXT NOT NULL,
    token_balance INTEGER NOT NULL,
    percentage REAL NOT NULL,
    initial_balance INTEGER NOT NULL,
    retention_percentage REAL NOT NULL,
    is_eligible INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_snapshots_claim ON holder_snapshots(claim_id);

-- Per-claim payouts
CREATE TABLE IF NOT EXISTS dividend_distributions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim_id INTEGER NOT NULL REFERENCES dividend_claims(id),
    holder_address TEXT NOT NULL,
    token_balance INTEGER NOT NULL,
    share_percentage REAL NOT NULL,
    dividend_amount REAL NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    transaction_signature TEXT,
    error_message TEXT,
    paid_at TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_distributions_claim_holder
    ON dividend_distributions(claim_id, holder_address);
CREATE INDEX IF NOT EXISTS idx_distributions_status ON dividend_distributions(status);

-- Per-holder dividend totals
CREATE TABLE IF NOT EXISTS holder_stats (
    address TEXT PRIMARY KEY,
    current_balance INTEGER NOT NULL DEFAULT 0,
    current_percentage REAL NOT NULL DEFAULT 0,
    total_dividends_received REAL NOT NULL DEFAULT 0,
    participation_count INTEGER NOT NULL DEFAULT 0,
    last_dividend_at TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    claim_id INTEGER,
    holder_address TEXT,
    amount REAL,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed implementation of SettingsStore, LoyaltyStore and AuditStore."""

    def __init__(self, db_path: str, seed: SettingsSeed | None = None) -> None:
        self._db_path = db_path
        self._seed = seed or SettingsSeed()
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Settings ───────────────────────────────────────────

    async def get_settings(self) -> AutoClaimSettings:
        async with self.db.execute("SELECT * FROM auto_claim_settings WHERE id=1") as cur:
            row = await cur.fetchone()
        if row is None:
            await self._insert_seed()
            async with self.db.execute("SELECT * FROM auto_claim_settings WHERE id=1") as cur:
                row = await cur.fetchone()
        return _row_to_settings(row)

    async def _insert_seed(self) -> None:
        s = self._seed
        await self.db.execute(
            "INSERT OR IGNORE INTO auto_claim_settings"
            " (id, enabled, claim_interval_minutes, distribution_percentage,"
            "  min_claim_amount, wallet_address, asset_id, updated_at)"
            " VALUES (1, ?, ?, ?, ?, ?, ?, ?)",
            (
                int(s.enabled), s.claim_interval_minutes, s.distribution_percentage,
                s.min_claim_amount, s.wallet_address, s.asset_id, _now(),
            ),
        )
        await self.db.commit()

    async def set_next_schedule(
        self, next_claim: str, last_successful_claim: str | None = None
    ) -> None:
        await self.get_settings()
        if last_successful_claim:
            await self.db.execute(
                "UPDATE auto_claim_settings SET next_claim_scheduled=?,"
                " last_successful_claim=?, updated_at=? WHERE id=1",
                (next_claim, last_successful_claim, _now()),
            )
        else:
            await self.db.execute(
                "UPDATE auto_claim_settings SET next_claim_scheduled=?, updated_at=? WHERE id=1",
                (next_claim, _now()),
            )
        await self.db.commit()

    async def update_settings(
        self,
        enabled: bool | None = None,
        claim_interval_minutes: int | None = None,
        distribution_percentage: float | None = None,
        min_claim_amount: float | None = None,
        wallet_address: str | None = None,
        asset_id: str | None = None,
    ) -> AutoClaimSettings:
        if distribution_percentage is not None and not 0 < distribution_percentage <= 100:
            raise ValueError("distribution_percentage must be in (0, 100]")
        if claim_interval_minutes is not None and claim_interval_minutes < 1:
            raise ValueError("claim_interval_minutes must be at least 1")
        if min_claim_amount is not None and min_claim_amount < 0:
            raise ValueError("min_claim_amount must not be negative")

        await self.get_settings()
        updates = ["updated_at=?"]
        params: list = [_now()]
        if enabled is not None:
            updates.append("enabled=?")
            params.append(int(enabled))
        if claim_interval_minutes is not None:
            updates.append("claim_interval_minutes=?")
            params.append(claim_interval_minutes)
        if distribution_percentage is not None:
            updates.append("distribution_percentage=?")
            params.append(distribution_percentage)
        if min_claim_amount is not None:
            updates.append("min_claim_amount=?")
            params.append(min_claim_amount)
        if wallet_address is not None:
            updates.append("wallet_address=?")
            params.append(wallet_address)
        if asset_id is not None:
            updates.append("asset_id=?")
            params.append(asset_id)

        await self.db.execute(
            f"UPDATE auto_claim_settings SET {', '.join(updates)} WHERE id=1", params,
        )
        await self.db.commit()
        return await self.get_settings()

    # ── Loyalty ────────────────────────────────────────────

    async def get_initial_bag(self, address: str) -> HolderInitialBag | None:
        async with self.db.execute(
            "SELECT * FROM holder_initial_bags WHERE address=?", (address,)
        ) as cur:
            row = await cur.fetchone()
            if row:
                return HolderInitialBag(
                    address=row["address"],
                    initial_balance=row["initial_balance"],
                    initial_percentage=row["initial_percentage"],
                    asset_id=row["asset_id"],
                    first_recorded_at=row["first_recorded_at"],
                )
        return None

    async def save_initial_bag(self, bag: HolderInitialBag) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO holder_initial_bags"
            " (address, initial_balance, initial_percentage, asset_id, first_recorded_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (
                bag.address, bag.initial_balance, bag.initial_percentage,
                bag.asset_id, bag.first_recorded_at or _now(),
            ),
        )
        await self.db.commit()

    async def get_eligibility(self, address: str) -> HolderEligibility | None:
        async with self.db.execute(
            "SELECT * FROM holder_eligibility WHERE address=?", (address,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_eligibility(row) if row else None

    async def get_all_eligibility(self) -> list[HolderEligibility]:
        async with self.db.execute(
            "SELECT * FROM holder_eligibility ORDER BY address"
        ) as cur:
            return [_row_to_eligibility(row) async for row in cur]

    async def save_eligibility(self, record: HolderEligibility) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO holder_eligibility"
            " (address, current_balance, initial_balance, retention_percentage, state,"
            "  is_eligible, permanently_blacklisted, blacklisted_at, blacklist_reason,"
            "  last_checked_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.address, record.current_balance, record.initial_balance,
                record.retention_percentage, record.state.value,
                int(record.is_eligible), int(record.permanently_blacklisted),
                record.blacklisted_at, record.blacklist_reason,
                record.last_checked_at or _now(),
            ),
        )
        await self.db.commit()

    async def get_loyalty_stats(self) -> LoyaltyStats:
        async with self.db.execute(
            "SELECT COUNT(*) AS total,"
            " COALESCE(SUM(state='eligible'), 0) AS eligible,"
            " COALESCE(SUM(state='temp_blacklisted'), 0) AS temp,"
            " COALESCE(SUM(state='permanently_blacklisted'), 0) AS perm,"
            " COALESCE(AVG(retention_percentage), 0) AS avg_retention"
            " FROM holder_eligibility"
        ) as cur:
            row = await cur.fetchone()
        total = row["total"] if row else 0
        eligible = row["eligible"] if row else 0
        return LoyaltyStats(
            total_holders=total,
            eligible_holders=eligible,
            temp_blacklisted=row["temp"] if row else 0,
            permanently_blacklisted=row["perm"] if row else 0,
            eligibility_rate=(eligible / total * 100) if total else 0.0,
            average_retention=row["avg_retention"] if row else 0.0,
        )

    # ── Claims ─────────────────────────────────────────────

    async def create_claim(
        self,
        claimed_amount: float,
        distribution_amount: float,
        transaction_id: str | None,
        total_supply: int = 0,
        holder_count: int = 0,
    ) -> int:
        now = _now()
        cur = await self.db.execute(
            "INSERT INTO dividend_claims"
            " (claimed_amount, distribution_amount, total_supply, holder_count,"
            "  status, transaction_id, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, 'processing', ?, ?, ?)",
            (
                claimed_amount, distribution_amount, total_supply, holder_count,
                transaction_id, now, now,
            ),
        )
        await self.db.commit()
        return cur.lastrowid

    async def update_claim_status(
        self, claim_id: int, status: str, error: str | None = None
    ) -> None:
        await self.db.execute(
            "UPDATE dividend_claims SET status=?, error_message=?, updated_at=? WHERE id=?",
            (status, error, _now(), claim_id),
        )
        await self.db.commit()

    async def update_claim_totals(
        self, claim_id: int, holder_count: int, total_supply: int
    ) -> None:
        await self.db.execute(
            "UPDATE dividend_claims SET holder_count=?, total_supply=?, updated_at=?"
            " WHERE id=?",
            (holder_count, total_supply, _now(), claim_id),
        )
        await self.db.commit()

    async def get_claim(self, claim_id: int) -> DividendClaim | None:
        async with self.db.execute(
            "SELECT * FROM dividend_claims WHERE id=?", (claim_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_claim(row) if row else None

    async def get_claims(self, limit: int = 20) -> list[DividendClaim]:
        async with self.db.execute(
            "SELECT * FROM dividend_claims ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_claim(row) async for row in cur]

    # ── Snapshots ──────────────────────────────────────────

    async def create_snapshots(self, snapshots: list[HolderSnapshot]) -> None:
        if not snapshots:
            return
        now = _now()
        await self.db.executemany(
            "INSERT INTO holder_snapshots"
            " (claim_id, holder_address, token_balance, percentage, initial_balance,"
            "  retention_percentage, is_eligible, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    s.claim_id, s.holder_address, s.token_balance, s.percentage,
                    s.initial_balance, s.retention_percentage, int(s.is_eligible), now,
                )
                for s in snapshots
            ],
        )
        await self.db.executemany(
            "INSERT INTO holder_stats (address, current_balance, current_percentage, updated_at)"
            " VALUES (?, ?, ?, ?)"
            " ON CONFLICT(address) DO UPDATE SET current_balance=excluded.current_balance,"
            " current_percentage=excluded.current_percentage, updated_at=excluded.updated_at",
            [(s.holder_address, s.token_balance, s.percentage, now) for s in snapshots],
        )
        await self.db.commit()

    async def get_snapshots(self, claim_id: int) -> list[HolderSnapshot]:
        async with self.db.execute(
            "SELECT * FROM holder_snapshots WHERE claim_id=? ORDER BY id", (claim_id,)
        ) as cur:
            return [
                HolderSnapshot(
                    claim_id=row["claim_id"],
                    holder_address=row["holder_address"],
                    token_balance=row["token_balance"],
                    percentage=row["percentage"],
                    initial_balance=row["initial_balance"],
                    retention_percentage=row["retention_percentage"],
                    is_eligible=bool(row["is_eligible"]),
                    created_at=row["created_at"],
                )
                async for row in cur
            ]

    # ── Distributions ──────────────────────────────────────

    async def create_distributions(
        self, distributions: list[DividendDistribution]
    ) -> None:
        if not distributions:
            return
        now = _now()
        await self.db.executemany(
            "INSERT INTO dividend_distributions"
            " (claim_id, holder_address, token_balance, share_percentage,"
            "  dividend_amount, status, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    d.claim_id, d.holder_address, d.token_balance, d.share_percentage,
                    d.dividend_amount, d.status, now, now,
                )
                for d in distributions
            ],
        )
        await self.db.commit()

    async def update_distribution(
        self,
        claim_id: int,
        holder_address: str,
        status: str,
        signature: str | None = None,
        error: str | None = None,
    ) -> None:
        now = _now()
        paid_at = now if status == "completed" else None
        try:
            async with self.db.execute(
                "SELECT status, dividend_amount FROM dividend_distributions"
                " WHERE claim_id=? AND holder_address=?",
                (claim_id, holder_address),
            ) as cur:
                row = await cur.fetchone()
            if row is None:
                raise PersistenceError(
                    f"no distribution for claim {claim_id} holder {holder_address}"
                )
            await self.db.execute(
                "UPDATE dividend_distributions SET status=?, transaction_signature=?,"
                " error_message=?, paid_at=?, updated_at=?"
                " WHERE claim_id=? AND holder_address=?",
                (status, signature, error, paid_at, now, claim_id, holder_address),
            )
            if status == "completed" and row["status"] != "completed":
                await self.db.execute(
                    "INSERT INTO holder_stats"
                    " (address, total_dividends_received, participation_count,"
                    "  last_dividend_at, updated_at)"
                    " VALUES (?, ?, 1, ?, ?)"
                    " ON CONFLICT(address) DO UPDATE SET"
                    " total_dividends_received=total_dividends_received"
                    " + excluded.total_dividends_received,"
                    " participation_count=participation_count + 1,"
                    " last_dividend_at=excluded.last_dividend_at,"
                    " updated_at=excluded.updated_at",
                    (holder_address, row["dividend_amount"], now, now),
                )
            await self.db.commit()
        except aiosqlite.Error as exc:
            await self.db.rollback()
            raise PersistenceError(f"distribution update failed: {exc}") from exc

    async def get_distributions(self, claim_id: int) -> list[DividendDistribution]:
        async with self.db.execute(
            "SELECT * FROM dividend_distributions WHERE claim_id=? ORDER BY id", (claim_id,)
        ) as cur:
            return [_row_to_distribution(row) async for row in cur]

    async def get_failed_distributions(self) -> list[DividendDistribution]:
        async with self.db.execute(
            "SELECT * FROM dividend_distributions WHERE status='failed'"
            " ORDER BY claim_id, id"
        ) as cur:
            return [_row_to_distribution(row) async for row in cur]

    # ── Holder stats ───────────────────────────────────────

    async def get_holder_stats(self, address: str) -> HolderStats | None:
        async with self.db.execute(
            "SELECT s.*, (SELECT COALESCE(SUM(d.dividend_amount), 0)"
            "  FROM dividend_distributions d"
            "  WHERE d.holder_address=s.address AND d.status='pending') AS pending_dividends"
            " FROM holder_stats s WHERE s.address=?",
            (address,),
        ) as cur:
            row = await cur.fetchone()
        if row is None:
            return None
        return HolderStats(
            address=row["address"],
            current_balance=row["current_balance"],
            current_percentage=row["current_percentage"],
            total_dividends_received=row["total_dividends_received"],
            participation_count=row["participation_count"],
            pending_dividends=row["pending_dividends"],
            last_dividend_at=row["last_dividend_at"],
            updated_at=row["updated_at"],
        )

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        claim_id: int | None = None,
        holder_address: str | None = None,
        amount: float | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log"
            " (event_type, claim_id, holder_address, amount, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (event_type, claim_id, holder_address, amount, message, _now()),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    claim_id=row["claim_id"],
                    holder_address=row["holder_address"],
                    amount=row["amount"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


# ── Row converters ─────────────────────────────────────────


def _row_to_settings(row: aiosqlite.Row) -> AutoClaimSettings:
    return AutoClaimSettings(
        enabled=bool(row["enabled"]),
        claim_interval_minutes=row["claim_interval_minutes"],
        distribution_percentage=row["distribution_percentage"],
        min_claim_amount=row["min_claim_amount"],
        wallet_address=row["wallet_address"],
        asset_id=row["asset_id"],
        next_claim_scheduled=row["next_claim_scheduled"],
        last_successful_claim=row["last_successful_claim"],
        updated_at=row["updated_at"],
    )


def _row_to_eligibility(row: aiosqlite.Row) -> HolderEligibility:
    return HolderEligibility(
        address=row["address"],
        current_balance=row["current_balance"],
        initial_balance=row["initial_balance"],
        retention_percentage=row["retention_percentage"],
        state=EligibilityState(row["state"]),
        blacklisted_at=row["blacklisted_at"],
        blacklist_reason=row["blacklist_reason"],
        last_checked_at=row["last_checked_at"],
    )


def _row_to_claim(row: aiosqlite.Row) -> DividendClaim:
    return DividendClaim(
        id=row["id"],
        claimed_amount=row["claimed_amount"],
        distribution_amount=row["distribution_amount"],
        total_supply=row["total_supply"],
        holder_count=row["holder_count"],
        status=row["status"],
        transaction_id=row["transaction_id"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_distribution(row: aiosqlite.Row) -> DividendDistribution:
    return DividendDistribution(
        claim_id=row["claim_id"],
        holder_address=row["holder_address"],
        token_balance=row["token_balance"],
        share_percentage=row["share_percentage"],
        dividend_amount=row["dividend_amount"],
        status=row["status"],
        transaction_signature=row["transaction_signature"],
        error_message=row["error_message"],
        paid_at=row["paid_at"],
    )
