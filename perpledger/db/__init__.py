"""Persistence for PerpLedger."""

from perpledger.db.store import BaseLedgerStore, LedgerStore, MemoryLedgerStore

__all__ = ["BaseLedgerStore", "LedgerStore", "MemoryLedgerStore"]
