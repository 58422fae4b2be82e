"""Portfolio commands for PerpLedger CLI.

Handles account status, trade history, CSV export and the leaderboard.
"""

from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from perpledger.cli.common import (
    console,
    format_price,
    get_ledger,
    get_price_feed,
    require_account,
    signed,
)
from perpledger.feeds import price_map

BADGE_STYLES = {
    "diamond": "bold cyan",
    "platinum": "bold white",
    "gold": "bold yellow",
    "silver": "white",
    "bronze": "dark_orange",
}


@click.command()
def status() -> None:
    """View balance, reserved margin and P&L.

    Unrealized P&L is marked against the configured price table.

    \b
    Examples:
      perpledger status
    """
    account = require_account()
    summary = get_ledger().portfolio_summary(account.id, price_map(get_price_feed()))

    summary_text = (
        f"[bold]{account.username}[/bold] ({account.paper_account_id})\n\n"
        f"Available Balance:  ${summary.balance:,.2f}\n"
        f"Position Margin:    ${summary.position_margin:,.2f}\n"
        f"Order Margin:       ${summary.order_margin:,.2f}\n"
        f"Unrealized P&L:     {signed(summary.unrealized_pnl)}\n"
        f"Total Equity:       ${summary.total_equity:,.2f}\n"
        f"{'─' * 35}\n"
        f"Realized P&L:       {signed(account.total_pnl)}\n"
        f"Trades:             {account.trades_count}\n"
        f"Win Rate:           {account.win_rate:.1f}%\n"
        f"Open Positions:     {summary.open_positions}\n"
        f"Open Orders:        {summary.open_orders}"
    )

    console.print(Panel(summary_text, title="[bold]Account[/bold]", border_style="cyan"))


@click.command()
@click.option("-n", "--limit", type=int, default=20, show_default=True, help="Trades to show.")
def history(limit: int) -> None:
    """Display closed trades, most recent first."""
    account = require_account()
    trades = get_ledger().get_trade_history(account.id)[:limit]

    if not trades:
        console.print("[dim]No closed trades yet.[/dim]")
        return

    table = Table(title="Trade History", show_header=True, header_style="bold")
    table.add_column("Closed")
    table.add_column("Symbol", style="bold")
    table.add_column("Side")
    table.add_column("Entry", justify="right")
    table.add_column("Exit", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Lev", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")

    for trade in trades:
        table.add_row(
            trade.closed_at.strftime("%Y-%m-%d %H:%M"),
            trade.symbol,
            trade.side.upper(),
            format_price(trade.entry_price),
            format_price(trade.exit_price),
            f"${trade.size:,.2f}",
            f"{trade.leverage}x",
            signed(trade.pnl),
            signed(trade.pnl_percent, prefix="", suffix="%"),
        )

    console.print(table)


@click.command()
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to a file instead of stdout.",
)
def export(output: Optional[Path]) -> None:
    """Export trade history as CSV.

    \b
    Examples:
      perpledger export
      perpledger export -o trades.csv
    """
    account = require_account()
    csv_text = get_ledger().export_trade_history_csv(account.id)

    if output is None:
        click.echo(csv_text)
        return

    output.write_text(csv_text + "\n")
    console.print(f"[green]Exported trade history to {output}[/green]")


@click.command()
def leaderboard() -> None:
    """Display the top accounts by realized P&L."""
    entries = get_ledger().get_leaderboard()

    if not entries:
        console.print("[dim]No accounts yet.[/dim]")
        return

    table = Table(title="Leaderboard", show_header=True, header_style="bold")
    table.add_column("Rank", justify="right")
    table.add_column("Trader", style="bold")
    table.add_column("P&L", justify="right")
    table.add_column("Trades", justify="right")
    table.add_column("Win Rate", justify="right")
    table.add_column("Badge")

    for entry in entries:
        badge = ""
        if entry.badge:
            style = BADGE_STYLES[entry.badge]
            badge = f"[{style}]{entry.badge.title()}[/{style}]"
        table.add_row(
            f"#{entry.rank}",
            entry.username,
            signed(entry.total_pnl),
            str(entry.trades_count),
            f"{entry.win_rate:.1f}%",
            badge,
        )

    console.print(table)
