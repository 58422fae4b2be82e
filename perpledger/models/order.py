"""LimitOrder data model."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from perpledger.models.account import MarginMode
from perpledger.models.position import Side


class LimitOrder(BaseModel):
    """Represents a pending limit order with reserved margin."""

    id: str = Field(..., min_length=1, description="Order ID")
    account_id: str = Field(..., min_length=1, description="Owning account ID")
    symbol: str = Field(..., min_length=1, description="Market symbol")
    side: Side = Field(..., description="Order side")
    price: float = Field(..., gt=0, description="Limit price")
    size: float = Field(..., gt=0, description="Notional size in quote currency")
    leverage: int = Field(..., ge=1, description="Leverage multiplier")
    margin_mode: MarginMode = Field(default="cross", description="Margin mode")
    take_profit: Optional[float] = Field(default=None, gt=0, description="Take-profit price")
    stop_loss: Optional[float] = Field(default=None, gt=0, description="Stop-loss price")
    created_at: datetime = Field(..., description="Placement timestamp")

    model_config = {"frozen": True}

    @property
    def margin(self) -> float:
        """Margin reserved for this order."""
        return self.size / self.leverage
