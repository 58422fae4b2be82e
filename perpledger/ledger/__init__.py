"""Paper trading ledger: accounts, order book, settlement and ranking."""

from perpledger.ledger.accounts import STARTING_BALANCE, AccountRegistry
from perpledger.ledger.book import MAINTENANCE_MARGIN_RATE, AccountBook, liquidation_price
from perpledger.ledger.paper import PaperLedger
from perpledger.ledger.ranking import badge_for, build_leaderboard, export_trade_history_csv
from perpledger.ledger.settlement import calculate_pnl, mark_position

__all__ = [
    "AccountBook",
    "AccountRegistry",
    "MAINTENANCE_MARGIN_RATE",
    "PaperLedger",
    "STARTING_BALANCE",
    "badge_for",
    "build_leaderboard",
    "calculate_pnl",
    "export_trade_history_csv",
    "liquidation_price",
    "mark_position",
]
