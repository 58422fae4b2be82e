"""Waitlist command for PerpLedger CLI."""

from typing import Optional

import click

from perpledger.cli.common import check, console, get_ledger


@click.command()
@click.argument("name")
@click.argument("email")
@click.option("--telegram", default=None, help="Telegram handle.")
@click.option("-r", "--referral", default=None, help="Referral code.")
def waitlist(name: str, email: str, telegram: Optional[str], referral: Optional[str]) -> None:
    """Join the live trading waitlist.

    \b
    Examples:
      perpledger waitlist "Alice Doe" alice@example.com --telegram @alice
    """
    entry = check(get_ledger().add_to_waitlist(name, email, telegram, referral))
    console.print(f"[green]Added {entry.name} to the waitlist.[/green]")
