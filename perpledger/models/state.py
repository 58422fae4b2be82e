"""Serializable ledger snapshot."""

from pydantic import BaseModel, Field

from perpledger.models.account import Account
from perpledger.models.order import LimitOrder
from perpledger.models.position import Position
from perpledger.models.trade import Trade
from perpledger.models.waitlist import WaitlistEntry

STATE_VERSION = 1


class LedgerState(BaseModel):
    """Full ledger state handed to a persistence strategy.

    ``trades`` holds every account's retained history, each account's
    entries ordered most-recent-first.
    """

    version: int = Field(default=STATE_VERSION, ge=1, description="Schema version")
    accounts: list[Account] = Field(default_factory=list)
    positions: list[Position] = Field(default_factory=list)
    limit_orders: list[LimitOrder] = Field(default_factory=list)
    trades: list[Trade] = Field(default_factory=list)
    waitlist: list[WaitlistEntry] = Field(default_factory=list)

    model_config = {"frozen": True}
