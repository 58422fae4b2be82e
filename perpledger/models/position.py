"""Position data model."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from perpledger.models.account import MarginMode

Side = Literal["long", "short"]


class Position(BaseModel):
    """Represents an open leveraged position."""

    id: str = Field(..., min_length=1, description="Position ID")
    account_id: str = Field(..., min_length=1, description="Owning account ID")
    symbol: str = Field(..., min_length=1, description="Market symbol")
    side: Side = Field(..., description="Position side")
    entry_price: float = Field(..., gt=0, description="Entry price")
    size: float = Field(..., gt=0, description="Notional size in quote currency")
    leverage: int = Field(..., ge=1, description="Leverage multiplier")
    opened_at: datetime = Field(..., description="Open timestamp")
    margin: float = Field(..., gt=0, description="Reserved margin (size / leverage)")
    margin_mode: MarginMode = Field(default="cross", description="Margin mode")
    take_profit: Optional[float] = Field(
        default=None, gt=0, description="Take-profit price (not enforced)"
    )
    stop_loss: Optional[float] = Field(
        default=None, gt=0, description="Stop-loss price (not enforced)"
    )
    liquidation_price: float = Field(..., description="Liquidation price at open")

    model_config = {"frozen": True}


class PositionMark(BaseModel):
    """Represents a position valued at a current price."""

    position: Position = Field(..., description="Marked position")
    current_price: float = Field(..., gt=0, description="Price used for the mark")
    pnl: float = Field(..., description="Unrealized P&L")
    pnl_percent: float = Field(..., description="Unrealized P&L as % of margin (ROI)")

    model_config = {"frozen": True}
