"""Account registry for PerpLedger.

Owns account identity, credentials and balances. Trade statistics are
updated only through ``record_trade_outcome``, called by settlement.
"""

import hashlib
import hmac
import os
import random
import string
import threading
from datetime import datetime
from typing import Iterable, Optional

from perpledger.ledger.book import MARGIN_MODES, AccountBook
from perpledger.ledger.util import is_positive_number, new_id, round_half_up
from perpledger.models import Account, CommandResult, ErrorCode

STARTING_BALANCE = 10000.0
REFERRAL_PREFIX = "ARK"

_PBKDF2_ITERATIONS = 120_000
_BASE36 = string.digits + string.ascii_uppercase


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """Hash a password with salted PBKDF2-SHA256.

    Returns:
        Encoded hash in the form ``pbkdf2_sha256$<iterations>$<salt>$<digest>``.
    """
    salt = salt if salt is not None else os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against a hash produced by ``hash_password``."""
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


def generate_account_number() -> str:
    """Generate a 10-digit numeric paper account number."""
    return "".join(random.choice(string.digits) for _ in range(10))


def generate_referral_code() -> str:
    """Generate a referral code such as ``ARK7Q2K9Z``."""
    return REFERRAL_PREFIX + "".join(random.choice(_BASE36) for _ in range(6))


class AccountRegistry:
    """Index of account books keyed by account ID.

    The registry lock guards the index and username/referral uniqueness.
    It is never acquired while an account lock is held by the same code
    path, so the two lock levels cannot deadlock.
    """

    def __init__(self, starting_balance: float = STARTING_BALANCE):
        self._starting_balance = starting_balance
        self._lock = threading.RLock()
        self._books: dict[str, AccountBook] = {}
        self._usernames: dict[str, str] = {}
        self._referral_codes: set[str] = set()

    @property
    def starting_balance(self) -> float:
        return self._starting_balance

    def _unique_referral_code(self) -> str:
        code = generate_referral_code()
        while code in self._referral_codes:
            code = generate_referral_code()
        return code

    def sign_up(
        self,
        username: str,
        password: str,
        referral_code: Optional[str] = None,
        *,
        now: datetime,
    ) -> CommandResult[Account]:
        """Create an account with the starting balance.

        Args:
            username: Desired username, unique case-insensitively.
            password: Plain password; only its hash is stored.
            referral_code: Optional code of the referring account, stored as given.
            now: Creation timestamp.

        Returns:
            CommandResult with the new Account, or USERNAME_TAKEN.
        """
        if not username or not username.strip() or not password:
            return CommandResult.failure(
                ErrorCode.INVALID_CREDENTIALS, "Username and password are required"
            )

        key = username.casefold()
        with self._lock:
            if key in self._usernames:
                return CommandResult.failure(
                    ErrorCode.USERNAME_TAKEN, f"Username '{username}' is already taken"
                )

            account = Account(
                id=new_id("user"),
                username=username,
                password_hash=hash_password(password),
                paper_account_id=generate_account_number(),
                balance=self._starting_balance,
                initial_balance=self._starting_balance,
                created_at=now,
                referral_code=self._unique_referral_code(),
                referred_by=referral_code,
            )
            self._add(AccountBook(account=account))

        return CommandResult.success(account, "Account created")

    def login(self, username: str, password: str) -> CommandResult[Account]:
        """Authenticate by username (case-insensitive) and password."""
        with self._lock:
            account_id = self._usernames.get((username or "").casefold())
            book = self._books.get(account_id) if account_id else None

        if book is not None:
            with book.lock:
                account = book.account
            if verify_password(password or "", account.password_hash):
                return CommandResult.success(account, "Logged in")

        return CommandResult.failure(ErrorCode.INVALID_CREDENTIALS, "Invalid username or password")

    def _add(self, book: AccountBook) -> None:
        account = book.account
        self._books[account.id] = book
        self._usernames[account.username.casefold()] = account.id
        self._referral_codes.add(account.referral_code)

    def get(self, account_id: str) -> Optional[AccountBook]:
        with self._lock:
            return self._books.get(account_id)

    def books(self) -> list[AccountBook]:
        """Return the account books in sign-up order."""
        with self._lock:
            return list(self._books.values())

    def replace(self, books: Iterable[AccountBook]) -> None:
        """Replace every account book, used when restoring a snapshot."""
        with self._lock:
            self._books.clear()
            self._usernames.clear()
            self._referral_codes.clear()
            for book in books:
                self._add(book)


def deposit(book: AccountBook, amount: float) -> CommandResult[Account]:
    """Credit a positive amount to the available balance."""
    if not is_positive_number(amount):
        return CommandResult.failure(ErrorCode.INVALID_AMOUNT, "Amount must be a positive number")

    account = book.account
    book.account = account.model_copy(
        update={
            "balance": account.balance + amount,
            "net_deposits": account.net_deposits + amount,
        }
    )
    return CommandResult.success(book.account, f"Deposited {amount:.2f}")


def withdraw(book: AccountBook, amount: float) -> CommandResult[Account]:
    """Debit a positive amount if the available balance covers it."""
    if not is_positive_number(amount):
        return CommandResult.failure(ErrorCode.INVALID_AMOUNT, "Amount must be a positive number")

    account = book.account
    if amount > account.balance:
        return CommandResult.failure(
            ErrorCode.INSUFFICIENT_BALANCE,
            f"Insufficient balance. Requested: {amount:.2f}, Available: {account.balance:.2f}",
        )

    book.account = account.model_copy(
        update={
            "balance": account.balance - amount,
            "net_deposits": account.net_deposits - amount,
        }
    )
    return CommandResult.success(book.account, f"Withdrew {amount:.2f}")


def set_margin_mode(book: AccountBook, margin_mode: str) -> CommandResult[Account]:
    """Set the margin mode used when an order does not name one."""
    if margin_mode not in MARGIN_MODES:
        return CommandResult.failure(
            ErrorCode.INVALID_ORDER_PARAMETERS,
            f"Margin mode must be one of {', '.join(MARGIN_MODES)}",
        )
    book.account = book.account.model_copy(update={"margin_mode": margin_mode})
    return CommandResult.success(book.account, f"Margin mode set to {margin_mode}")


def record_trade_outcome(account: Account, pnl: float) -> Account:
    """Fold a realized P&L into the account's trade statistics.

    The previous win count is recovered from the stored win rate, so the
    account does not need to keep its trades to update the rate.

    Args:
        account: Account before the trade.
        pnl: Realized P&L of the closed trade.

    Returns:
        Account with updated trades_count, total_pnl and win_rate.
    """
    previous_wins = round_half_up(account.win_rate * account.trades_count / 100)
    trades_count = account.trades_count + 1
    wins = previous_wins + (1 if pnl > 0 else 0)
    return account.model_copy(
        update={
            "trades_count": trades_count,
            "total_pnl": account.total_pnl + pnl,
            "win_rate": wins / trades_count * 100,
        }
    )
