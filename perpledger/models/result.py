"""Command result and error models.

Ledger commands never raise for caller mistakes. They return a
``CommandResult`` whose ``error`` names what went wrong, mirroring how a
broker reports a rejected order.
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Caller-facing failure reasons."""

    USERNAME_TAKEN = "USERNAME_TAKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INSUFFICIENT_MARGIN = "INSUFFICIENT_MARGIN"
    INVALID_ORDER_PARAMETERS = "INVALID_ORDER_PARAMETERS"
    INVALID_PRICE = "INVALID_PRICE"
    POSITION_NOT_FOUND = "POSITION_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    INVALID_WAITLIST_ENTRY = "INVALID_WAITLIST_ENTRY"


class LedgerError(Exception):
    """Raised by ``CommandResult.unwrap`` for a failed command."""

    def __init__(self, code: ErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code
        self.message = message


class CommandResult(BaseModel, Generic[T]):
    """Outcome of a ledger command."""

    ok: bool = Field(..., description="Whether the command was applied")
    value: Optional[T] = Field(default=None, description="Resulting entity")
    error: Optional[ErrorCode] = Field(default=None, description="Failure reason")
    message: str = Field(default="", description="Human readable status")

    model_config = {"frozen": True}

    @classmethod
    def success(cls, value: T, message: str = "") -> "CommandResult[T]":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorCode, message: str) -> "CommandResult[T]":
        return cls(ok=False, error=error, message=message)

    def unwrap(self) -> T:
        """Return the value or raise ``LedgerError``."""
        if not self.ok:
            raise LedgerError(self.error, self.message)
        return self.value

    def __bool__(self) -> bool:
        return self.ok
