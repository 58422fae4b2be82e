"""Data models for PerpLedger."""

from perpledger.models.account import Account, MarginMode
from perpledger.models.order import LimitOrder
from perpledger.models.portfolio import Badge, LeaderboardEntry, PortfolioSummary
from perpledger.models.position import Position, PositionMark, Side
from perpledger.models.result import CommandResult, ErrorCode, LedgerError
from perpledger.models.state import STATE_VERSION, LedgerState
from perpledger.models.trade import Trade
from perpledger.models.waitlist import WaitlistEntry

__all__ = [
    "Account",
    "Badge",
    "CommandResult",
    "ErrorCode",
    "LeaderboardEntry",
    "LedgerError",
    "LedgerState",
    "LimitOrder",
    "MarginMode",
    "PortfolioSummary",
    "Position",
    "PositionMark",
    "STATE_VERSION",
    "Side",
    "Trade",
    "WaitlistEntry",
]
