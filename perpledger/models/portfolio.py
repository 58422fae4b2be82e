"""Leaderboard and portfolio view models."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Badge = Literal["bronze", "silver", "gold", "platinum", "diamond"]


class LeaderboardEntry(BaseModel):
    """Represents a ranked account on the leaderboard."""

    rank: int = Field(..., ge=1, description="1 + number of accounts with higher P&L")
    account_id: str = Field(..., description="Account ID")
    username: str = Field(..., description="Username")
    paper_account_id: str = Field(..., description="Paper account number")
    total_pnl: float = Field(..., description="Cumulative realized P&L")
    trades_count: int = Field(..., ge=0, description="Closed trades")
    win_rate: float = Field(..., ge=0, le=100, description="Win rate percentage")
    badge: Optional[Badge] = Field(default=None, description="P&L tier badge")
    created_at: datetime = Field(..., description="Sign-up timestamp")

    model_config = {"frozen": True}


class PortfolioSummary(BaseModel):
    """Represents an account valued against current prices."""

    account_id: str = Field(..., description="Account ID")
    balance: float = Field(..., description="Available balance")
    position_margin: float = Field(..., ge=0, description="Margin held by open positions")
    order_margin: float = Field(..., ge=0, description="Margin held by limit orders")
    unrealized_pnl: float = Field(..., description="Unrealized P&L of open positions")
    total_equity: float = Field(..., description="Balance plus unrealized P&L")
    equity_basis: float = Field(
        ..., description="Initial balance plus net deposits plus realized P&L"
    )
    open_positions: int = Field(..., ge=0, description="Number of open positions")
    open_orders: int = Field(..., ge=0, description="Number of pending limit orders")

    model_config = {"frozen": True}
