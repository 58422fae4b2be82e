"""Trading commands for PerpLedger CLI.

Handles opening and closing positions, limit orders and their
listings. Prices come from --price or from the configured price table.
"""

from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from perpledger.cli.common import (
    check,
    console,
    format_price,
    get_ledger,
    get_price_feed,
    require_account,
    resolve_price,
    signed,
)
from perpledger.feeds import price_map

SIDE = click.Choice(["long", "short"], case_sensitive=False)
MARGIN_MODE = click.Choice(["cross", "isolated"])


def _order_options(func):
    """Options shared by open and limit."""
    func = click.option(
        "-s", "--sl", "stop_loss", type=float, default=None,
        help="Stop-loss price (recorded, not triggered automatically).",
    )(func)
    func = click.option(
        "-t", "--tp", "take_profit", type=float, default=None,
        help="Take-profit price (recorded, not triggered automatically).",
    )(func)
    func = click.option(
        "-m", "--margin-mode", type=MARGIN_MODE, default=None,
        help="Margin mode. Defaults to the account setting.",
    )(func)
    func = click.option(
        "-l", "--leverage", type=int, default=10, show_default=True,
        help="Leverage multiplier.",
    )(func)
    return func


@click.command(name="open")
@click.argument("symbol")
@click.argument("side", type=SIDE)
@click.argument("size", type=float)
@click.option(
    "-p", "--price", type=float, default=None,
    help="Entry price. Defaults to the configured price for the symbol.",
)
@_order_options
def open_position(
    symbol: str,
    side: str,
    size: float,
    price: Optional[float],
    leverage: int,
    margin_mode: Optional[str],
    take_profit: Optional[float],
    stop_loss: Optional[float],
) -> None:
    """Open a leveraged position at the market.

    SYMBOL is the market (e.g., BTCUSDT). SIDE is long or short.
    SIZE is the notional size in USDT; size / leverage is reserved as margin.

    \b
    Examples:
      perpledger open BTCUSDT long 1000 -l 10
      perpledger open ETHUSDT short 500 -l 5 --price 2100 --sl 2200
    """
    account = require_account()
    entry_price = resolve_price(symbol, price)

    position = check(get_ledger().open_position(
        account.id, symbol, side.lower(), entry_price, size, leverage,
        margin_mode, take_profit, stop_loss,
    ))

    side_color = "green" if position.side == "long" else "red"
    console.print(Panel(
        f"[bold]{position.symbol}[/bold] [{side_color}]{position.side.upper()}[/{side_color}] "
        f"{position.leverage}x\n\n"
        f"Position ID:  {position.id}\n"
        f"Entry:        ${format_price(position.entry_price)}\n"
        f"Size:         ${position.size:,.2f}\n"
        f"Margin:       ${position.margin:,.2f} ({position.margin_mode})\n"
        f"Liquidation:  ${format_price(position.liquidation_price)}",
        title="[bold green]Position Opened[/bold green]",
        border_style="green",
    ))


@click.command()
@click.argument("position_id")
@click.option(
    "-p", "--price", type=float, default=None,
    help="Exit price. Defaults to the configured price for the symbol.",
)
def close(position_id: str, price: Optional[float]) -> None:
    """Close an open position and realize its P&L.

    \b
    Examples:
      perpledger close pos_1a2b3c4d5e6f
      perpledger close pos_1a2b3c4d5e6f --price 71000
    """
    account = require_account()
    ledger = get_ledger()

    position = next((p for p in ledger.get_positions(account.id) if p.id == position_id), None)
    exit_price = price
    if exit_price is None and position is not None:
        exit_price = resolve_price(position.symbol, None)

    trade = check(ledger.close_position(account.id, position_id, exit_price))
    balance = ledger.get_account(account.id).balance

    console.print(Panel(
        f"[bold]{trade.symbol}[/bold] {trade.side.upper()} {trade.leverage}x\n\n"
        f"Entry:    ${format_price(trade.entry_price)}\n"
        f"Exit:     ${format_price(trade.exit_price)}\n"
        f"P&L:      {signed(trade.pnl)} ({signed(trade.pnl_percent, prefix='', suffix='%')})\n"
        f"Balance:  ${balance:,.2f}",
        title="[bold]Position Closed[/bold]",
        border_style="cyan",
    ))


@click.command()
@click.argument("symbol")
@click.argument("side", type=SIDE)
@click.argument("size", type=float)
@click.argument("price", type=float)
@_order_options
def limit(
    symbol: str,
    side: str,
    size: float,
    price: float,
    leverage: int,
    margin_mode: Optional[str],
    take_profit: Optional[float],
    stop_loss: Optional[float],
) -> None:
    """Place a limit order; its margin stays reserved until cancelled.

    \b
    Examples:
      perpledger limit BTCUSDT long 1000 65000 -l 10
    """
    account = require_account()
    order = check(get_ledger().place_limit_order(
        account.id, symbol, side.lower(), price, size, leverage,
        margin_mode, take_profit, stop_loss,
    ))
    console.print(
        f"[green]Limit order placed:[/green] {order.id} "
        f"{order.side.upper()} {order.symbol} @ ${format_price(order.price)} "
        f"(margin ${order.margin:,.2f})"
    )


@click.command()
@click.argument("order_id")
def cancel(order_id: str) -> None:
    """Cancel a limit order and release its margin."""
    account = require_account()
    order = check(get_ledger().cancel_limit_order(account.id, order_id))
    console.print(f"[green]Cancelled {order.id}.[/green] Released ${order.margin:,.2f} margin.")


@click.command()
def positions() -> None:
    """Display open positions with unrealized P&L."""
    account = require_account()
    ledger = get_ledger()
    prices = price_map(get_price_feed())
    marks = ledger.mark_positions(account.id, prices)

    if not marks:
        console.print("[dim]No open positions.[/dim]")
        return

    table = Table(title="Open Positions", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Size", justify="right")
    table.add_column("Lev", justify="right")
    table.add_column("Entry", justify="right")
    table.add_column("Mark", justify="right")
    table.add_column("Liq.", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("ROI", justify="right")

    for mark in marks:
        pos = mark.position
        side_color = "green" if pos.side == "long" else "red"
        table.add_row(
            pos.id,
            pos.symbol,
            f"[{side_color}]{pos.side.upper()}[/{side_color}]",
            f"${pos.size:,.2f}",
            f"{pos.leverage}x",
            format_price(pos.entry_price),
            format_price(mark.current_price),
            format_price(pos.liquidation_price),
            signed(mark.pnl),
            signed(mark.pnl_percent, prefix="", suffix="%"),
        )

    console.print(table)


@click.command()
def orders() -> None:
    """Display pending limit orders."""
    account = require_account()
    pending = get_ledger().get_limit_orders(account.id)

    if not pending:
        console.print("[dim]No pending limit orders.[/dim]")
        return

    table = Table(title="Limit Orders", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Price", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Lev", justify="right")
    table.add_column("Margin", justify="right")

    for order in pending:
        table.add_row(
            order.id,
            order.symbol,
            order.side.upper(),
            format_price(order.price),
            f"${order.size:,.2f}",
            f"{order.leverage}x",
            f"${order.margin:,.2f}",
        )

    console.print(table)
