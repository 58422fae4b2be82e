"""Settlement engine for PerpLedger.

Turns open positions into realized trades and values open positions
against caller-supplied prices.
"""

from datetime import datetime
from typing import Mapping

from perpledger.ledger.accounts import record_trade_outcome
from perpledger.ledger.book import AccountBook
from perpledger.ledger.util import is_positive_number, new_id
from perpledger.models import CommandResult, ErrorCode, Position, PositionMark, Trade

DEFAULT_HISTORY_LIMIT = 100


def calculate_pnl(
    side: str,
    entry_price: float,
    exit_price: float,
    size: float,
    leverage: int,
) -> float:
    """Calculate the P&L of a leveraged position.

    Args:
        side: ``long`` or ``short``.
        entry_price: Entry price.
        exit_price: Exit or mark price.
        size: Notional size.
        leverage: Leverage multiplier.

    Returns:
        P&L in quote currency.
    """
    direction = 1 if side == "long" else -1
    return (exit_price - entry_price) / entry_price * size * leverage * direction


def mark_position(position: Position, price: float) -> PositionMark:
    """Value an open position at a current price."""
    pnl = calculate_pnl(
        position.side, position.entry_price, price, position.size, position.leverage
    )
    return PositionMark(
        position=position,
        current_price=price,
        pnl=pnl,
        pnl_percent=pnl / position.margin * 100,
    )


def mark_positions(
    positions: list[Position], prices: Mapping[str, float]
) -> list[PositionMark]:
    """Value positions, falling back to the entry price when a symbol has no price."""
    marks = []
    for position in positions:
        price = prices.get(position.symbol)
        if not is_positive_number(price):
            price = position.entry_price
        marks.append(mark_position(position, price))
    return marks


def unrealized_pnl(positions: list[Position], prices: Mapping[str, float]) -> float:
    """Sum unrealized P&L, skipping positions whose symbol has no price."""
    total = 0.0
    for position in positions:
        price = prices.get(position.symbol)
        if not is_positive_number(price):
            continue
        total += mark_position(position, price).pnl
    return total


def close_position(
    book: AccountBook,
    position_id: str,
    exit_price: float,
    *,
    now: datetime,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> CommandResult[Trade]:
    """Close a position at a price and settle it into the balance.

    Returns the margin plus P&L to the balance without flooring it, so a
    loss larger than the margin leaves the balance lower than before the
    position was opened. Every change is computed before any is applied.

    Args:
        book: Account book to mutate.
        position_id: ID of the position to close.
        exit_price: Exit price supplied by the caller.
        now: Close timestamp.
        history_limit: Number of trades retained in the book's history.

    Returns:
        CommandResult with the realized Trade.
    """
    position = book.positions.get(position_id)
    if position is None:
        return CommandResult.failure(
            ErrorCode.POSITION_NOT_FOUND, f"Position {position_id} not found"
        )

    if not is_positive_number(exit_price):
        return CommandResult.failure(ErrorCode.INVALID_PRICE, "Exit price must be a positive number")

    pnl = calculate_pnl(
        position.side, position.entry_price, exit_price, position.size, position.leverage
    )
    trade = Trade(
        id=new_id("trade"),
        account_id=position.account_id,
        symbol=position.symbol,
        side=position.side,
        entry_price=position.entry_price,
        exit_price=exit_price,
        size=position.size,
        leverage=position.leverage,
        pnl=pnl,
        pnl_percent=pnl / position.margin * 100,
        opened_at=position.opened_at,
        closed_at=now,
    )

    account = record_trade_outcome(book.account, pnl)
    account = account.model_copy(update={"balance": book.account.balance + position.margin + pnl})
    history = [trade, *book.history][:history_limit]

    book.account = account
    book.history = history
    del book.positions[position_id]
    return CommandResult.success(trade, "Position closed")
