"""Position and limit order book.

Handles admission control and margin reservation for new exposure.
Functions here mutate an ``AccountBook`` and expect the caller to hold
the book's lock.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from perpledger.ledger.util import is_positive_number, new_id
from perpledger.models import (
    Account,
    CommandResult,
    ErrorCode,
    LimitOrder,
    Position,
    Trade,
)

# Maintenance margin rate used by the liquidation estimate
MAINTENANCE_MARGIN_RATE = 0.005

MAX_LEVERAGE = 125

SIDES = ("long", "short")
MARGIN_MODES = ("cross", "isolated")


@dataclass
class AccountBook:
    """Mutable per-account state: the account, its exposure and its history."""

    account: Account
    positions: dict[str, Position] = field(default_factory=dict)
    orders: dict[str, LimitOrder] = field(default_factory=dict)
    history: list[Trade] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def position_margin(self) -> float:
        return sum(p.margin for p in self.positions.values())

    @property
    def order_margin(self) -> float:
        return sum(o.margin for o in self.orders.values())


def liquidation_price(entry_price: float, side: str, leverage: int) -> float:
    """Estimate the liquidation price of a position.

    Linear approximation that ignores fees and funding.

    Args:
        entry_price: Entry price.
        side: ``long`` or ``short``.
        leverage: Leverage multiplier.

    Returns:
        Price at which the margin is consumed down to the maintenance rate.
    """
    if side == "long":
        return entry_price * (1 - 1 / leverage + MAINTENANCE_MARGIN_RATE)
    return entry_price * (1 + 1 / leverage - MAINTENANCE_MARGIN_RATE)


def _normalize_leverage(leverage) -> Optional[int]:
    if isinstance(leverage, bool):
        return None
    if isinstance(leverage, int):
        return leverage if 1 <= leverage <= MAX_LEVERAGE else None
    if isinstance(leverage, float) and leverage.is_integer() and 1 <= leverage <= MAX_LEVERAGE:
        return int(leverage)
    return None


def validate_order(
    symbol: str,
    side: str,
    price: float,
    size: float,
    leverage,
    margin_mode: Optional[str],
    take_profit: Optional[float],
    stop_loss: Optional[float],
) -> Optional[CommandResult]:
    """Validate order parameters.

    Returns:
        A failed CommandResult describing the first problem, or None.
    """
    problem = None
    if not symbol or not symbol.strip():
        problem = "Symbol is required"
    elif side not in SIDES:
        problem = f"Side must be one of {', '.join(SIDES)}"
    elif not is_positive_number(price):
        problem = "Price must be a positive number"
    elif not is_positive_number(size):
        problem = "Size must be a positive number"
    elif _normalize_leverage(leverage) is None:
        problem = f"Leverage must be an integer between 1 and {MAX_LEVERAGE}"
    elif margin_mode is not None and margin_mode not in MARGIN_MODES:
        problem = f"Margin mode must be one of {', '.join(MARGIN_MODES)}"
    elif take_profit is not None and not is_positive_number(take_profit):
        problem = "Take-profit must be a positive number"
    elif stop_loss is not None and not is_positive_number(stop_loss):
        problem = "Stop-loss must be a positive number"

    if problem:
        return CommandResult.failure(ErrorCode.INVALID_ORDER_PARAMETERS, problem)
    return None


def _check_margin(book: AccountBook, margin: float) -> Optional[CommandResult]:
    if not is_positive_number(margin):
        return CommandResult.failure(
            ErrorCode.INVALID_ORDER_PARAMETERS, "Margin (size / leverage) must be positive"
        )
    balance = book.account.balance
    if margin > balance:
        return CommandResult.failure(
            ErrorCode.INSUFFICIENT_MARGIN,
            f"Insufficient margin. Required: {margin:.2f}, Available: {balance:.2f}",
        )
    return None


def open_position(
    book: AccountBook,
    symbol: str,
    side: str,
    entry_price: float,
    size: float,
    leverage: int,
    margin_mode: Optional[str] = None,
    take_profit: Optional[float] = None,
    stop_loss: Optional[float] = None,
    *,
    now: datetime,
) -> CommandResult[Position]:
    """Open a position, reserving its margin from the balance.

    Args:
        book: Account book to mutate.
        symbol: Market symbol.
        side: ``long`` or ``short``.
        entry_price: Fill price supplied by the caller.
        size: Notional size in quote currency.
        leverage: Leverage multiplier.
        margin_mode: ``cross`` or ``isolated``; the account default when None.
        take_profit: Optional take-profit price, recorded only.
        stop_loss: Optional stop-loss price, recorded only.
        now: Open timestamp.

    Returns:
        CommandResult with the new Position.
    """
    rejected = validate_order(
        symbol, side, entry_price, size, leverage, margin_mode, take_profit, stop_loss
    )
    if rejected is not None:
        return rejected

    leverage = _normalize_leverage(leverage)
    margin = size / leverage
    rejected = _check_margin(book, margin)
    if rejected is not None:
        return rejected

    position = Position(
        id=new_id("pos"),
        account_id=book.account.id,
        symbol=symbol.strip().upper(),
        side=side,
        entry_price=entry_price,
        size=size,
        leverage=leverage,
        opened_at=now,
        margin=margin,
        margin_mode=margin_mode or book.account.margin_mode,
        take_profit=take_profit,
        stop_loss=stop_loss,
        liquidation_price=liquidation_price(entry_price, side, leverage),
    )

    book.account = book.account.model_copy(update={"balance": book.account.balance - margin})
    book.positions[position.id] = position
    return CommandResult.success(position, "Position opened")


def place_limit_order(
    book: AccountBook,
    symbol: str,
    side: str,
    price: float,
    size: float,
    leverage: int,
    margin_mode: Optional[str] = None,
    take_profit: Optional[float] = None,
    stop_loss: Optional[float] = None,
    *,
    now: datetime,
) -> CommandResult[LimitOrder]:
    """Place a limit order, reserving its margin from the balance.

    Orders never fill on their own; they leave the book only through
    ``cancel_limit_order``.
    """
    rejected = validate_order(
        symbol, side, price, size, leverage, margin_mode, take_profit, stop_loss
    )
    if rejected is not None:
        return rejected

    leverage = _normalize_leverage(leverage)
    margin = size / leverage
    rejected = _check_margin(book, margin)
    if rejected is not None:
        return rejected

    order = LimitOrder(
        id=new_id("order"),
        account_id=book.account.id,
        symbol=symbol.strip().upper(),
        side=side,
        price=price,
        size=size,
        leverage=leverage,
        margin_mode=margin_mode or book.account.margin_mode,
        take_profit=take_profit,
        stop_loss=stop_loss,
        created_at=now,
    )

    book.account = book.account.model_copy(update={"balance": book.account.balance - margin})
    book.orders[order.id] = order
    return CommandResult.success(order, "Limit order placed")


def cancel_limit_order(book: AccountBook, order_id: str) -> CommandResult[LimitOrder]:
    """Cancel a limit order and release its margin.

    Args:
        book: Account book to mutate.
        order_id: ID of the order to cancel.

    Returns:
        CommandResult with the cancelled order, or ORDER_NOT_FOUND.
    """
    order = book.orders.get(order_id)
    if order is None:
        return CommandResult.failure(ErrorCode.ORDER_NOT_FOUND, f"Order {order_id} not found")

    book.account = book.account.model_copy(
        update={"balance": book.account.balance + order.margin}
    )
    del book.orders[order_id]
    return CommandResult.success(order, "Limit order cancelled")
