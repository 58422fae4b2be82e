"""PerpLedger - paper trading ledger for simulated perpetual futures."""

from perpledger.ledger import PaperLedger

__all__ = ["PaperLedger"]
