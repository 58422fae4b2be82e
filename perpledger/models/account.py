"""Account data model."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

MarginMode = Literal["cross", "isolated"]


class Account(BaseModel):
    """Represents a paper trading account."""

    id: str = Field(..., min_length=1, description="Account ID")
    username: str = Field(..., min_length=1, description="Display username")
    password_hash: str = Field(..., description="Salted credential hash")
    paper_account_id: str = Field(
        ..., pattern=r"^\d{10}$", description="10-digit paper account number"
    )
    balance: float = Field(..., description="Available balance")
    initial_balance: float = Field(..., ge=0, description="Starting balance")
    net_deposits: float = Field(
        default=0.0, description="Deposits minus withdrawals"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Sign-up timestamp",
    )
    referral_code: str = Field(..., min_length=1, description="Own referral code")
    referred_by: Optional[str] = Field(
        default=None, description="Referral code used at sign-up"
    )
    total_pnl: float = Field(default=0.0, description="Cumulative realized P&L")
    trades_count: int = Field(default=0, ge=0, description="Closed trades")
    win_rate: float = Field(default=0.0, ge=0, le=100, description="Win rate percentage")
    margin_mode: MarginMode = Field(
        default="cross", description="Default margin mode for new orders"
    )

    model_config = {"frozen": True}

    @property
    def equity_basis(self) -> float:
        """Initial balance plus net deposits plus realized P&L."""
        return self.initial_balance + self.net_deposits + self.total_pnl
