"""Shared helpers for PerpLedger CLI commands."""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

console = Console()


def _root_obj() -> dict:
    ctx = click.get_current_context()
    root = ctx.find_root()
    root.ensure_object(dict)
    return root.obj


def get_config():
    """Get the configuration loaded by the root command."""
    from perpledger.config import load_config

    obj = _root_obj()
    if "config" not in obj:
        obj["config"] = load_config(obj.get("config_path"))
    return obj["config"]


def get_ledger():
    """Get the ledger instance, backed by the configured SQLite database.

    Saves run inline so a command's changes are on disk before it exits.
    """
    from perpledger.db.store import LedgerStore
    from perpledger.ledger.paper import PaperLedger

    obj = _root_obj()
    if "ledger" not in obj:
        config = get_config()
        store = LedgerStore(config.db_path)
        obj["ledger"] = PaperLedger.from_config(config, store=store, async_persist=False)
    return obj["ledger"]


def get_price_feed():
    """Get a static price feed seeded from the ``[prices]`` config table."""
    from perpledger.feeds.static import StaticPriceFeed

    obj = _root_obj()
    if "feed" not in obj:
        obj["feed"] = StaticPriceFeed(get_config().prices)
    return obj["feed"]


def resolve_price(symbol: str, price: Optional[float]) -> float:
    """Use an explicit price, else the feed's price for the symbol."""
    if price is not None:
        return price
    try:
        return get_price_feed().get_price(symbol).price
    except KeyError:
        fail(f"No price known for {symbol.upper()}. Pass one with --price.")


# ==================== Session ====================

def get_session_path() -> Path:
    """Session file lives beside the config file."""
    from perpledger.config import get_config_path

    config_path = _root_obj().get("config_path") or get_config_path()
    return Path(config_path).parent / "session.json"


def save_session(account_id: str, username: str) -> None:
    path = get_session_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            {
                "account_id": account_id,
                "username": username,
                "timestamp": datetime.now().isoformat(),
            }
        )
    )


def load_session() -> Optional[dict]:
    path = get_session_path()
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def clear_session() -> None:
    path = get_session_path()
    if path.exists():
        path.unlink()


def require_account():
    """Get the logged-in account or exit with an error panel."""
    session = load_session()
    account = None
    if session:
        account = get_ledger().get_account(session.get("account_id", ""))
    if account is None:
        fail(
            "Not logged in.\n\n"
            "Run [cyan]perpledger signup[/cyan] or [cyan]perpledger login[/cyan] first."
        )
    return account


# ==================== Output ====================

def fail(message: str) -> None:
    """Print an error panel and exit with status 1."""
    console.print(Panel(
        f"[red]{message}[/red]",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))
    raise SystemExit(1)


def check(result):
    """Exit with an error panel if a command result failed, else return its value."""
    if not result.ok:
        fail(f"{result.message}\n\n[dim]{result.error.value}[/dim]")
    return result.value


def signed(value: float, prefix: str = "$", suffix: str = "") -> str:
    """Format a signed amount with rich colour markup."""
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else "-"
    return f"[{color}]{sign}{prefix}{abs(value):,.2f}{suffix}[/{color}]"


def format_price(price: float) -> str:
    """Two decimals above 1000, four below."""
    if price >= 1000:
        return f"{price:,.2f}"
    return f"{price:,.4f}"
