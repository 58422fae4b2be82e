"""Leaderboard ranking and trade history export."""

import csv
import io
from datetime import datetime, timezone
from typing import Iterable, Optional

from perpledger.models import Account, Badge, LeaderboardEntry, Trade

DEFAULT_LEADERBOARD_SIZE = 50

# Minimum total P&L for each badge, highest first
BADGE_THRESHOLDS: list[tuple[float, Badge]] = [
    (100_000, "diamond"),
    (50_000, "platinum"),
    (20_000, "gold"),
    (5_000, "silver"),
    (1_000, "bronze"),
]

CSV_HEADER = ["Date", "Symbol", "Side", "Entry", "Exit", "Size", "Leverage", "PnL", "PnL%"]


def badge_for(total_pnl: float) -> Optional[Badge]:
    """Return the badge earned by a total P&L, or None below bronze."""
    for threshold, badge in BADGE_THRESHOLDS:
        if total_pnl >= threshold:
            return badge
    return None


def build_leaderboard(
    accounts: Iterable[Account], limit: int = DEFAULT_LEADERBOARD_SIZE
) -> list[LeaderboardEntry]:
    """Rank accounts by total P&L.

    Tied accounts share a rank equal to one plus the number of accounts
    with a strictly greater P&L, so ``[500, 500, 100]`` ranks ``[1, 1, 3]``.

    Args:
        accounts: Accounts to rank.
        limit: Maximum number of entries returned.

    Returns:
        Entries ordered by total P&L, highest first.
    """
    ranked = sorted(accounts, key=lambda a: a.total_pnl, reverse=True)

    entries = []
    rank = 0
    previous_pnl = None
    for position, account in enumerate(ranked[:limit], start=1):
        if previous_pnl is None or account.total_pnl < previous_pnl:
            rank = position
            previous_pnl = account.total_pnl
        entries.append(
            LeaderboardEntry(
                rank=rank,
                account_id=account.id,
                username=account.username,
                paper_account_id=account.paper_account_id,
                total_pnl=account.total_pnl,
                trades_count=account.trades_count,
                win_rate=account.win_rate,
                badge=badge_for(account.total_pnl),
                created_at=account.created_at,
            )
        )
    return entries


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as ISO-8601 UTC with milliseconds, e.g. ``2024-01-01T00:00:00.000Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _amount(value: float) -> str:
    # Adding 0.0 turns -0.0 into 0.0
    return f"{value + 0.0:.2f}"


def export_trade_history_csv(trades: Iterable[Trade]) -> str:
    """Render trades as CSV text, one row per trade in the given order.

    Args:
        trades: Trades, most recent first.

    Returns:
        CSV text with a header row and no trailing newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for trade in trades:
        writer.writerow(
            [
                format_timestamp(trade.closed_at),
                trade.symbol,
                trade.side,
                f"{trade.entry_price:.2f}",
                f"{trade.exit_price:.2f}",
                f"{trade.size:.2f}",
                str(trade.leverage),
                _amount(trade.pnl),
                _amount(trade.pnl_percent),
            ]
        )
    return buffer.getvalue().rstrip("\n")
