"""Paper trading ledger for simulated perpetual futures.

``PaperLedger`` is the command surface callers use. Every mutating
command runs under the owning account's lock and, once applied,
schedules a best-effort save through the attached store.
"""

import logging
import re
import threading
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from perpledger.db.store import BaseLedgerStore
from perpledger.ledger import accounts, book, ranking, settlement
from perpledger.ledger.accounts import STARTING_BALANCE, AccountRegistry
from perpledger.ledger.book import AccountBook
from perpledger.ledger.ranking import DEFAULT_LEADERBOARD_SIZE
from perpledger.ledger.settlement import DEFAULT_HISTORY_LIMIT
from perpledger.ledger.util import new_id
from perpledger.models import (
    Account,
    CommandResult,
    ErrorCode,
    LeaderboardEntry,
    LedgerState,
    LimitOrder,
    PortfolioSummary,
    Position,
    PositionMark,
    Trade,
    WaitlistEntry,
)
from perpledger.models.waitlist import EMAIL_PATTERN

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaperLedger:
    """Paper trading ledger.

    Keeps accounts, open positions, limit orders and trade history
    consistent: for every account, balance plus reserved margin always
    equals initial balance plus net deposits plus realized P&L.

    Prices are never fetched here. Callers pass entry, exit and mark
    prices in, typically read from a ``BasePriceFeed``.
    """

    def __init__(
        self,
        store: Optional[BaseLedgerStore] = None,
        starting_balance: float = STARTING_BALANCE,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        leaderboard_size: int = DEFAULT_LEADERBOARD_SIZE,
        async_persist: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the ledger.

        Args:
            store: Persistence strategy. State is loaded from it on creation
                and saved to it after every successful mutation.
            starting_balance: Balance credited to new accounts.
            history_limit: Trades retained per account.
            leaderboard_size: Entries returned by get_leaderboard.
            async_persist: Save on a background worker instead of inline.
            clock: Source of timestamps, defaults to current UTC time.
        """
        self._store = store
        self._history_limit = history_limit
        self._leaderboard_size = leaderboard_size
        self._clock = clock or _utcnow
        self._registry = AccountRegistry(starting_balance)
        self._waitlist: list[WaitlistEntry] = []
        self._waitlist_lock = threading.Lock()

        self._executor: Optional[ThreadPoolExecutor] = None
        self._last_save: Optional[Future] = None
        self._save_lock = threading.Lock()
        if store is not None and async_persist:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="perpledger-save")

        if store is not None:
            self._load()

    @classmethod
    def from_config(cls, config, store: Optional[BaseLedgerStore] = None, **kwargs) -> "PaperLedger":
        """Build a ledger from a ``LedgerConfig``."""
        return cls(
            store=store,
            starting_balance=config.ledger.starting_balance,
            history_limit=config.ledger.history_limit,
            leaderboard_size=config.ledger.leaderboard_size,
            **kwargs,
        )

    # ==================== Persistence ====================

    def _load(self) -> None:
        try:
            state = self._store.load()
        except Exception:
            logger.warning("Failed to load ledger state, starting empty", exc_info=True)
            return
        if state is not None:
            self.restore(state)
            logger.info(
                "Loaded %d accounts, %d positions, %d orders",
                len(state.accounts),
                len(state.positions),
                len(state.limit_orders),
            )

    def _save(self) -> None:
        try:
            self._store.save(self.snapshot())
        except Exception:
            logger.exception("Failed to save ledger state")

    def _persist(self) -> None:
        if self._store is None:
            return
        if self._executor is None:
            self._save()
            return
        with self._save_lock:
            self._last_save = self._executor.submit(self._save)

    def flush(self) -> None:
        """Wait until every scheduled save has run."""
        with self._save_lock:
            pending = self._last_save
        if pending is not None:
            pending.result()

    def close(self) -> None:
        """Flush pending saves and stop the save worker."""
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "PaperLedger":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def snapshot(self) -> LedgerState:
        """Capture the full ledger state.

        Each account is copied under its own lock, one at a time.
        """
        account_list, positions, orders, trades = [], [], [], []
        for account_book in self._registry.books():
            with account_book.lock:
                account_list.append(account_book.account)
                positions.extend(account_book.positions.values())
                orders.extend(account_book.orders.values())
                trades.extend(account_book.history)
        with self._waitlist_lock:
            waitlist = list(self._waitlist)

        return LedgerState(
            accounts=account_list,
            positions=positions,
            limit_orders=orders,
            trades=trades,
            waitlist=waitlist,
        )

    def restore(self, state: LedgerState) -> None:
        """Replace the ledger's contents with a snapshot.

        Positions, orders and trades whose account is missing from the
        snapshot are dropped with a warning.
        """
        grouped: dict[str, dict[str, list]] = defaultdict(
            lambda: {"positions": [], "orders": [], "trades": []}
        )
        for position in state.positions:
            grouped[position.account_id]["positions"].append(position)
        for order in state.limit_orders:
            grouped[order.account_id]["orders"].append(order)
        for trade in state.trades:
            grouped[trade.account_id]["trades"].append(trade)

        books = []
        for account in state.accounts:
            entries = grouped.pop(account.id, {"positions": [], "orders": [], "trades": []})
            books.append(
                AccountBook(
                    account=account,
                    positions={p.id: p for p in entries["positions"]},
                    orders={o.id: o for o in entries["orders"]},
                    history=entries["trades"][: self._history_limit],
                )
            )
        for account_id in grouped:
            logger.warning("Dropping entries for unknown account %s", account_id)

        self._registry.replace(books)
        with self._waitlist_lock:
            self._waitlist = list(state.waitlist)

    # ==================== Command plumbing ====================

    def _apply(self, account_id: str, command: Callable[[AccountBook], CommandResult]) -> CommandResult:
        account_book = self._registry.get(account_id)
        if account_book is None:
            return CommandResult.failure(
                ErrorCode.ACCOUNT_NOT_FOUND, f"Account {account_id} not found"
            )
        with account_book.lock:
            result = command(account_book)
        # Saved outside the account lock; snapshot takes other accounts' locks
        if result.ok:
            self._persist()
        return result

    def _read(self, account_id: str, reader: Callable[[AccountBook], object]):
        account_book = self._registry.get(account_id)
        if account_book is None:
            return None
        with account_book.lock:
            return reader(account_book)

    # ==================== Accounts ====================

    def sign_up(
        self, username: str, password: str, referral_code: Optional[str] = None
    ) -> CommandResult[Account]:
        """Create an account funded with the starting balance.

        Args:
            username: Username, unique case-insensitively.
            password: Password.
            referral_code: Optional referring code, stored as given.

        Returns:
            CommandResult with the new Account, or USERNAME_TAKEN.
        """
        result = self._registry.sign_up(username, password, referral_code, now=self._clock())
        if result.ok:
            logger.info("Signed up %s (%s)", result.value.username, result.value.id)
            self._persist()
        return result

    def login(self, username: str, password: str) -> CommandResult[Account]:
        """Check credentials and return the matching account."""
        return self._registry.login(username, password)

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._read(account_id, lambda b: b.account)

    def list_accounts(self) -> list[Account]:
        accounts_found = []
        for account_book in self._registry.books():
            with account_book.lock:
                accounts_found.append(account_book.account)
        return accounts_found

    def deposit(self, account_id: str, amount: float) -> CommandResult[Account]:
        """Credit the available balance."""
        return self._apply(account_id, lambda b: accounts.deposit(b, amount))

    def withdraw(self, account_id: str, amount: float) -> CommandResult[Account]:
        """Debit the available balance; ``ok`` is False when it does not cover the amount."""
        return self._apply(account_id, lambda b: accounts.withdraw(b, amount))

    def set_margin_mode(self, account_id: str, margin_mode: str) -> CommandResult[Account]:
        """Set the account's default margin mode."""
        return self._apply(account_id, lambda b: accounts.set_margin_mode(b, margin_mode))

    # ==================== Positions & Orders ====================

    def open_position(
        self,
        account_id: str,
        symbol: str,
        side: str,
        entry_price: float,
        size: float,
        leverage: int,
        margin_mode: Optional[str] = None,
        take_profit: Optional[float] = None,
        stop_loss: Optional[float] = None,
    ) -> CommandResult[Position]:
        """Open a position at a caller-supplied price, reserving size / leverage."""
        result = self._apply(
            account_id,
            lambda b: book.open_position(
                b, symbol, side, entry_price, size, leverage, margin_mode,
                take_profit, stop_loss, now=self._clock(),
            ),
        )
        if result.ok:
            position = result.value
            logger.info(
                "Opened %s %s %s: size=%.2f leverage=%dx entry=%s liq=%.4f",
                position.id, position.side, position.symbol, position.size,
                position.leverage, position.entry_price, position.liquidation_price,
            )
        return result

    def place_limit_order(
        self,
        account_id: str,
        symbol: str,
        side: str,
        price: float,
        size: float,
        leverage: int,
        margin_mode: Optional[str] = None,
        take_profit: Optional[float] = None,
        stop_loss: Optional[float] = None,
    ) -> CommandResult[LimitOrder]:
        """Place a limit order, reserving size / leverage until cancelled."""
        result = self._apply(
            account_id,
            lambda b: book.place_limit_order(
                b, symbol, side, price, size, leverage, margin_mode,
                take_profit, stop_loss, now=self._clock(),
            ),
        )
        if result.ok:
            logger.info("Placed limit order %s at %s", result.value.id, result.value.price)
        return result

    def cancel_limit_order(self, account_id: str, order_id: str) -> CommandResult[LimitOrder]:
        """Cancel one of the account's limit orders and release its margin."""
        result = self._apply(account_id, lambda b: book.cancel_limit_order(b, order_id))
        if result.ok:
            logger.info("Cancelled limit order %s", order_id)
        return result

    def get_positions(self, account_id: str) -> list[Position]:
        return self._read(account_id, lambda b: list(b.positions.values())) or []

    def get_limit_orders(self, account_id: str) -> list[LimitOrder]:
        return self._read(account_id, lambda b: list(b.orders.values())) or []

    # ==================== Settlement ====================

    def close_position(self, account_id: str, position_id: str, exit_price: float) -> CommandResult[Trade]:
        """Close a position at a caller-supplied price and realize its P&L."""
        result = self._apply(
            account_id,
            lambda b: settlement.close_position(
                b, position_id, exit_price,
                now=self._clock(), history_limit=self._history_limit,
            ),
        )
        if result.ok:
            trade = result.value
            logger.info(
                "Closed %s %s at %s: pnl=%.2f (%.2f%%)",
                position_id, trade.symbol, trade.exit_price, trade.pnl, trade.pnl_percent,
            )
        return result

    def get_trade_history(self, account_id: str) -> list[Trade]:
        """Get retained trades, most recent first."""
        return self._read(account_id, lambda b: list(b.history)) or []

    def mark_positions(self, account_id: str, prices: Mapping[str, float]) -> list[PositionMark]:
        """Value open positions at current prices."""
        return settlement.mark_positions(self.get_positions(account_id), prices)

    def unrealized_pnl(self, account_id: str, prices: Mapping[str, float]) -> float:
        """Total unrealized P&L; positions without a price contribute nothing."""
        return settlement.unrealized_pnl(self.get_positions(account_id), prices)

    def portfolio_summary(
        self, account_id: str, prices: Mapping[str, float]
    ) -> Optional[PortfolioSummary]:
        """Summarize an account's balance, reserved margin and unrealized P&L."""
        def summarize(b: AccountBook) -> PortfolioSummary:
            unrealized = settlement.unrealized_pnl(list(b.positions.values()), prices)
            return PortfolioSummary(
                account_id=b.account.id,
                balance=b.account.balance,
                position_margin=b.position_margin,
                order_margin=b.order_margin,
                unrealized_pnl=unrealized,
                total_equity=b.account.balance + unrealized,
                equity_basis=b.account.equity_basis,
                open_positions=len(b.positions),
                open_orders=len(b.orders),
            )

        return self._read(account_id, summarize)

    # ==================== Ranking & Reporting ====================

    def get_leaderboard(self, limit: Optional[int] = None) -> list[LeaderboardEntry]:
        """Rank all accounts by realized P&L, keeping the top ``limit`` entries."""
        size = self._leaderboard_size if limit is None else limit
        return ranking.build_leaderboard(self.list_accounts(), size)

    def export_trade_history_csv(self, account_id: str) -> str:
        """Export an account's retained trades as CSV."""
        return ranking.export_trade_history_csv(self.get_trade_history(account_id))

    # ==================== Waitlist ====================

    def add_to_waitlist(
        self,
        name: str,
        email: str,
        telegram: Optional[str] = None,
        referral_code: Optional[str] = None,
    ) -> CommandResult[WaitlistEntry]:
        """Record a waitlist sign-up."""
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not re.fullmatch(EMAIL_PATTERN, email):
            return CommandResult.failure(
                ErrorCode.INVALID_WAITLIST_ENTRY, "A name and a valid email are required"
            )

        entry = WaitlistEntry(
            id=new_id("waitlist"),
            name=name,
            email=email,
            telegram=telegram or None,
            referral_code=referral_code or None,
            created_at=self._clock(),
        )
        with self._waitlist_lock:
            self._waitlist.append(entry)
        self._persist()
        return CommandResult.success(entry, "Added to waitlist")

    def get_waitlist(self) -> list[WaitlistEntry]:
        with self._waitlist_lock:
            return list(self._waitlist)
