"""Persistence strategies for PerpLedger."""

import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

from perpledger.models import (
    STATE_VERSION,
    Account,
    LedgerState,
    LimitOrder,
    Position,
    Trade,
    WaitlistEntry,
)


class BaseLedgerStore(ABC):
    """Abstract base class for ledger persistence strategies."""

    @abstractmethod
    def save(self, state: LedgerState) -> None:
        """Persist a full ledger snapshot, replacing the previous one.

        Args:
            state: Snapshot to persist.
        """
        pass

    @abstractmethod
    def load(self) -> Optional[LedgerState]:
        """Load the last persisted snapshot.

        Returns:
            The snapshot, or None if nothing has been saved yet.
        """
        pass


class MemoryLedgerStore(BaseLedgerStore):
    """Keeps the last snapshot in memory."""

    def __init__(self, state: Optional[LedgerState] = None):
        self._state = state
        self.save_count = 0

    def save(self, state: LedgerState) -> None:
        self._state = state
        self.save_count += 1

    def load(self) -> Optional[LedgerState]:
        return self._state


def _ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class LedgerStore(BaseLedgerStore):
    """SQLite-based ledger store."""

    REQUIRED_TABLES = [
        "meta",
        "accounts",
        "positions",
        "limit_orders",
        "trades",
        "waitlist",
    ]

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path).expanduser()
        self._write_lock = threading.Lock()
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    seq INTEGER NOT NULL,
                    username TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    paper_account_id TEXT NOT NULL,
                    balance REAL NOT NULL,
                    initial_balance REAL NOT NULL,
                    net_deposits REAL NOT NULL,
                    created_at TEXT NOT NULL,
                    referral_code TEXT NOT NULL UNIQUE,
                    referred_by TEXT,
                    total_pnl REAL NOT NULL,
                    trades_count INTEGER NOT NULL,
                    win_rate REAL NOT NULL,
                    margin_mode TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS positions (
                    id TEXT PRIMARY KEY,
                    seq INTEGER NOT NULL,
                    account_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    entry_price REAL NOT NULL,
                    size REAL NOT NULL,
                    leverage INTEGER NOT NULL,
                    opened_at TEXT NOT NULL,
                    margin REAL NOT NULL,
                    margin_mode TEXT NOT NULL,
                    take_profit REAL,
                    stop_loss REAL,
                    liquidation_price REAL NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS limit_orders (
                    id TEXT PRIMARY KEY,
                    seq INTEGER NOT NULL,
                    account_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    price REAL NOT NULL,
                    size REAL NOT NULL,
                    leverage INTEGER NOT NULL,
                    margin_mode TEXT NOT NULL,
                    take_profit REAL,
                    stop_loss REAL,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    seq INTEGER NOT NULL,
                    account_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    entry_price REAL NOT NULL,
                    exit_price REAL NOT NULL,
                    size REAL NOT NULL,
                    leverage INTEGER NOT NULL,
                    pnl REAL NOT NULL,
                    pnl_percent REAL NOT NULL,
                    opened_at TEXT NOT NULL,
                    closed_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS waitlist (
                    id TEXT PRIMARY KEY,
                    seq INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    telegram TEXT,
                    referral_code TEXT,
                    created_at TEXT NOT NULL
                )
            """)

            conn.commit()
        finally:
            conn.close()

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]
        finally:
            conn.close()

    # ==================== Save ====================

    def save(self, state: LedgerState) -> None:
        """Replace the stored snapshot in a single transaction.

        Args:
            state: Snapshot to persist.
        """
        with self._write_lock:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                for table in self.REQUIRED_TABLES:
                    cursor.execute(f"DELETE FROM {table}")

                cursor.execute(
                    "INSERT INTO meta (key, value) VALUES (?, ?)",
                    ("version", str(state.version)),
                )
                cursor.execute(
                    "INSERT INTO meta (key, value) VALUES (?, ?)",
                    ("saved_at", datetime.now().isoformat()),
                )

                cursor.executemany(
                    """
                    INSERT INTO accounts
                    (id, seq, username, password_hash, paper_account_id, balance,
                     initial_balance, net_deposits, created_at, referral_code,
                     referred_by, total_pnl, trades_count, win_rate, margin_mode)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            a.id, seq, a.username, a.password_hash, a.paper_account_id,
                            a.balance, a.initial_balance, a.net_deposits,
                            a.created_at.isoformat(), a.referral_code, a.referred_by,
                            a.total_pnl, a.trades_count, a.win_rate, a.margin_mode,
                        )
                        for seq, a in enumerate(state.accounts)
                    ],
                )

                cursor.executemany(
                    """
                    INSERT INTO positions
                    (id, seq, account_id, symbol, side, entry_price, size, leverage,
                     opened_at, margin, margin_mode, take_profit, stop_loss, liquidation_price)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            p.id, seq, p.account_id, p.symbol, p.side, p.entry_price,
                            p.size, p.leverage, p.opened_at.isoformat(), p.margin,
                            p.margin_mode, p.take_profit, p.stop_loss, p.liquidation_price,
                        )
                        for seq, p in enumerate(state.positions)
                    ],
                )

                cursor.executemany(
                    """
                    INSERT INTO limit_orders
                    (id, seq, account_id, symbol, side, price, size, leverage,
                     margin_mode, take_profit, stop_loss, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            o.id, seq, o.account_id, o.symbol, o.side, o.price, o.size,
                            o.leverage, o.margin_mode, o.take_profit, o.stop_loss,
                            o.created_at.isoformat(),
                        )
                        for seq, o in enumerate(state.limit_orders)
                    ],
                )

                cursor.executemany(
                    """
                    INSERT INTO trades
                    (id, seq, account_id, symbol, side, entry_price, exit_price, size,
                     leverage, pnl, pnl_percent, opened_at, closed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            t.id, seq, t.account_id, t.symbol, t.side, t.entry_price,
                            t.exit_price, t.size, t.leverage, t.pnl, t.pnl_percent,
                            t.opened_at.isoformat(), t.closed_at.isoformat(),
                        )
                        for seq, t in enumerate(state.trades)
                    ],
                )

                cursor.executemany(
                    """
                    INSERT INTO waitlist
                    (id, seq, name, email, telegram, referral_code, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            w.id, seq, w.name, w.email, w.telegram, w.referral_code,
                            w.created_at.isoformat(),
                        )
                        for seq, w in enumerate(state.waitlist)
                    ],
                )

                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    # ==================== Load ====================

    def load(self) -> Optional[LedgerState]:
        """Load the stored snapshot.

        Returns:
            The snapshot, or None for a database that was never saved to.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM meta WHERE key = 'version'")
            row = cursor.fetchone()
            if row is None:
                return None
            version = int(row["value"])
            if version > STATE_VERSION:
                raise ValueError(
                    f"Snapshot version {version} is newer than supported version {STATE_VERSION}"
                )

            cursor.execute("SELECT * FROM accounts ORDER BY seq")
            accounts = [
                Account(
                    id=row["id"],
                    username=row["username"],
                    password_hash=row["password_hash"],
                    paper_account_id=row["paper_account_id"],
                    balance=row["balance"],
                    initial_balance=row["initial_balance"],
                    net_deposits=row["net_deposits"],
                    created_at=_ts(row["created_at"]),
                    referral_code=row["referral_code"],
                    referred_by=row["referred_by"],
                    total_pnl=row["total_pnl"],
                    trades_count=row["trades_count"],
                    win_rate=row["win_rate"],
                    margin_mode=row["margin_mode"],
                )
                for row in cursor.fetchall()
            ]

            cursor.execute("SELECT * FROM positions ORDER BY seq")
            positions = [
                Position(
                    id=row["id"],
                    account_id=row["account_id"],
                    symbol=row["symbol"],
                    side=row["side"],
                    entry_price=row["entry_price"],
                    size=row["size"],
                    leverage=row["leverage"],
                    opened_at=_ts(row["opened_at"]),
                    margin=row["margin"],
                    margin_mode=row["margin_mode"],
                    take_profit=row["take_profit"],
                    stop_loss=row["stop_loss"],
                    liquidation_price=row["liquidation_price"],
                )
                for row in cursor.fetchall()
            ]

            cursor.execute("SELECT * FROM limit_orders ORDER BY seq")
            limit_orders = [
                LimitOrder(
                    id=row["id"],
                    account_id=row["account_id"],
                    symbol=row["symbol"],
                    side=row["side"],
                    price=row["price"],
                    size=row["size"],
                    leverage=row["leverage"],
                    margin_mode=row["margin_mode"],
                    take_profit=row["take_profit"],
                    stop_loss=row["stop_loss"],
                    created_at=_ts(row["created_at"]),
                )
                for row in cursor.fetchall()
            ]

            cursor.execute("SELECT * FROM trades ORDER BY seq")
            trades = [
                Trade(
                    id=row["id"],
                    account_id=row["account_id"],
                    symbol=row["symbol"],
                    side=row["side"],
                    entry_price=row["entry_price"],
                    exit_price=row["exit_price"],
                    size=row["size"],
                    leverage=row["leverage"],
                    pnl=row["pnl"],
                    pnl_percent=row["pnl_percent"],
                    opened_at=_ts(row["opened_at"]),
                    closed_at=_ts(row["closed_at"]),
                )
                for row in cursor.fetchall()
            ]

            cursor.execute("SELECT * FROM waitlist ORDER BY seq")
            waitlist = [
                WaitlistEntry(
                    id=row["id"],
                    name=row["name"],
                    email=row["email"],
                    telegram=row["telegram"],
                    referral_code=row["referral_code"],
                    created_at=_ts(row["created_at"]),
                )
                for row in cursor.fetchall()
            ]

            return LedgerState(
                version=version,
                accounts=accounts,
                positions=positions,
                limit_orders=limit_orders,
                trades=trades,
                waitlist=waitlist,
            )
        finally:
            conn.close()

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
        finally:
            conn.close()
