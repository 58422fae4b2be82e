"""Account commands for PerpLedger CLI.

Handles sign-up, login/logout, deposits, withdrawals and the default
margin mode.
"""

from typing import Optional

import click
from rich.panel import Panel

from perpledger.cli.common import (
    check,
    clear_session,
    console,
    get_ledger,
    load_session,
    require_account,
    save_session,
)


def _account_panel(account, title: str) -> Panel:
    text = (
        f"[bold]{account.username}[/bold]\n\n"
        f"Account ID:     {account.id}\n"
        f"Paper Account:  {account.paper_account_id}\n"
        f"Balance:        ${account.balance:,.2f}\n"
        f"Referral Code:  [cyan]{account.referral_code}[/cyan]\n"
        f"Margin Mode:    {account.margin_mode}"
    )
    return Panel(text, title=f"[bold green]{title}[/bold green]", border_style="green")


@click.command()
@click.argument("username")
@click.password_option("--password", "-p", help="Account password.")
@click.option("-r", "--referral", default=None, help="Referral code of the account that invited you.")
def signup(username: str, password: str, referral: Optional[str]) -> None:
    """Create a paper trading account and log in.

    \b
    Examples:
      perpledger signup alice
      perpledger signup bob --referral ARK1X2Y3Z
    """
    account = check(get_ledger().sign_up(username, password, referral))
    save_session(account.id, account.username)
    console.print(_account_panel(account, "Account Created"))


@click.command()
@click.argument("username")
@click.option("-p", "--password", prompt=True, hide_input=True, help="Account password.")
def login(username: str, password: str) -> None:
    """Log in to an existing account.

    \b
    Examples:
      perpledger login alice
    """
    account = check(get_ledger().login(username, password))
    save_session(account.id, account.username)
    console.print(_account_panel(account, "Logged In"))


@click.command()
def logout() -> None:
    """Log out of the current account."""
    session = load_session()
    clear_session()
    if session:
        console.print(f"[green]Logged out {session.get('username', '')}.[/green]")
    else:
        console.print("[dim]Not logged in.[/dim]")


@click.command()
def whoami() -> None:
    """Show the logged-in account."""
    account = require_account()
    console.print(_account_panel(account, "Current Account"))


@click.command()
@click.argument("amount", type=float)
def deposit(amount: float) -> None:
    """Deposit paper funds.

    \b
    Examples:
      perpledger deposit 5000
    """
    account = require_account()
    updated = check(get_ledger().deposit(account.id, amount))
    console.print(f"[green]Deposited ${amount:,.2f}.[/green] Balance: ${updated.balance:,.2f}")


@click.command()
@click.argument("amount", type=float)
def withdraw(amount: float) -> None:
    """Withdraw paper funds from the available balance.

    \b
    Examples:
      perpledger withdraw 2500
    """
    account = require_account()
    updated = check(get_ledger().withdraw(account.id, amount))
    console.print(f"[green]Withdrew ${amount:,.2f}.[/green] Balance: ${updated.balance:,.2f}")


@click.command(name="margin-mode")
@click.argument("mode", type=click.Choice(["cross", "isolated"]))
def margin_mode(mode: str) -> None:
    """Set the default margin mode for new orders."""
    account = require_account()
    check(get_ledger().set_margin_mode(account.id, mode))
    console.print(f"[green]Default margin mode set to {mode}.[/green]")
