"""Main CLI entry point for PerpLedger.

This module provides the main click group and lazy loading
for command modules to keep startup fast.
"""

from pathlib import Path
from typing import Optional

import click


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    Command modules are only imported when they are invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        """List all available commands."""
        base = super().list_commands(ctx)
        lazy = list(self._lazy_subcommands.keys())
        return sorted(set(base + lazy))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        """Get a command by name, lazily loading if needed."""
        if cmd_name in self.commands:
            return self.commands[cmd_name]

        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)

        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Lazily load a command from its module path."""
        import importlib

        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        # Look for a command registered under cmd_name
        cmd = None
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if isinstance(attr, click.Command) and attr.name == cmd_name:
                cmd = attr
                break

        if cmd is None:
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd)
        return cmd


# Define lazy subcommands mapping
LAZY_SUBCOMMANDS = {
    # Accounts
    "signup": "perpledger.cli.account",
    "login": "perpledger.cli.account",
    "logout": "perpledger.cli.account",
    "whoami": "perpledger.cli.account",
    "deposit": "perpledger.cli.account",
    "withdraw": "perpledger.cli.account",
    "margin-mode": "perpledger.cli.account",
    # Trading
    "open": "perpledger.cli.trade",
    "close": "perpledger.cli.trade",
    "limit": "perpledger.cli.trade",
    "cancel": "perpledger.cli.trade",
    "positions": "perpledger.cli.trade",
    "orders": "perpledger.cli.trade",
    # Portfolio and reporting
    "status": "perpledger.cli.portfolio",
    "history": "perpledger.cli.portfolio",
    "export": "perpledger.cli.portfolio",
    "leaderboard": "perpledger.cli.portfolio",
    # Waitlist
    "waitlist": "perpledger.cli.waitlist",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.config/perpledger/config.toml).",
)
@click.version_option(package_name="perpledger")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """PerpLedger - paper trading for perpetual futures.

    Open leveraged long and short positions against a simulated
    balance, track P&L and compete on the leaderboard.

    \b
    Quick Start:
      perpledger signup alice                       # Create an account
      perpledger open BTCUSDT long 1000 -l 10       # Open a position
      perpledger status                             # Balance and P&L
    """
    from perpledger.config import ConfigError, load_config
    from perpledger.logging_config import setup_logging

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))

    ctx.obj["config"] = config
    setup_logging(config.logging.level)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
