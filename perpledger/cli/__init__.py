"""CLI commands for PerpLedger.

This package provides the command-line interface for PerpLedger,
including account management, trading and reporting commands.
"""

from perpledger.cli.main import cli, main

__all__ = ["cli", "main"]
