"""Trade data model."""

from datetime import datetime

from pydantic import BaseModel, Field

from perpledger.models.position import Side


class Trade(BaseModel):
    """Represents a closed position."""

    id: str = Field(..., min_length=1, description="Trade ID")
    account_id: str = Field(..., min_length=1, description="Owning account ID")
    symbol: str = Field(..., min_length=1, description="Market symbol")
    side: Side = Field(..., description="Side of the closed position")
    entry_price: float = Field(..., gt=0, description="Entry price")
    exit_price: float = Field(..., gt=0, description="Exit price")
    size: float = Field(..., gt=0, description="Notional size")
    leverage: int = Field(..., ge=1, description="Leverage multiplier")
    pnl: float = Field(..., description="Realized P&L")
    pnl_percent: float = Field(..., description="Realized P&L as % of margin")
    opened_at: datetime = Field(..., description="Position open timestamp")
    closed_at: datetime = Field(..., description="Position close timestamp")

    model_config = {"frozen": True}
