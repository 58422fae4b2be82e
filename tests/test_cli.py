"""Tests for the PerpLedger command line interface."""

import json
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from perpledger.cli.main import LAZY_SUBCOMMANDS, cli
from perpledger.db.store import LedgerStore


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config pointing the ledger database into a temp directory."""
    path = tmp_path / "config.toml"
    path.write_text(
        "[ledger]\n"
        f'db_path = "{tmp_path / "ledger.db"}"\n'
        "\n"
        "[prices]\n"
        "BTCUSDT = 50000.0\n"
    )
    return path


@pytest.fixture
def invoke(config_file: Path):
    runner = CliRunner()

    def run(*args, **kwargs):
        return runner.invoke(cli, ["-c", str(config_file), *args], **kwargs)

    return run


def load_state(config_file: Path):
    return LedgerStore(config_file.parent / "ledger.db").load()


class TestCommandRegistry:
    def test_every_lazy_command_loads(self):
        ctx = click.Context(cli)
        for name in LAZY_SUBCOMMANDS:
            command = cli.get_command(ctx, name)
            assert command is not None
            assert command.name == name

    def test_help_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for name in ("signup", "open", "close", "leaderboard", "export"):
            assert name in result.output


class TestAccountCommands:
    def test_signup_creates_account_and_session(self, invoke, config_file: Path):
        result = invoke("signup", "alice", "-p", "secret1")

        assert result.exit_code == 0, result.output
        assert "Account Created" in result.output
        session = json.loads((config_file.parent / "session.json").read_text())
        assert session["username"] == "alice"
        state = load_state(config_file)
        assert [a.username for a in state.accounts] == ["alice"]

    def test_duplicate_signup_fails(self, invoke):
        invoke("signup", "alice", "-p", "secret1")

        result = invoke("signup", "ALICE", "-p", "other")

        assert result.exit_code == 1
        assert "USERNAME_TAKEN" in result.output

    def test_login_logout_whoami(self, invoke):
        invoke("signup", "alice", "-p", "secret1")
        invoke("logout")

        assert invoke("whoami").exit_code == 1
        assert invoke("login", "alice", "-p", "wrong").exit_code == 1

        result = invoke("login", "alice", "-p", "secret1")
        assert result.exit_code == 0
        assert "Logged In" in result.output
        assert invoke("whoami").exit_code == 0

    def test_login_prompts_for_password(self, invoke):
        invoke("signup", "alice", "-p", "secret1")

        result = invoke("login", "alice", input="secret1\n")

        assert result.exit_code == 0

    def test_deposit_and_withdraw(self, invoke, config_file: Path):
        invoke("signup", "alice", "-p", "secret1")

        assert invoke("deposit", "500").exit_code == 0
        assert invoke("withdraw", "200").exit_code == 0
        result = invoke("withdraw", "1000000")

        assert result.exit_code == 1
        assert "INSUFFICIENT_BALANCE" in result.output
        account = load_state(config_file).accounts[0]
        assert account.balance == 10300
        assert account.net_deposits == 300

    def test_commands_require_login(self, invoke):
        result = invoke("deposit", "100")

        assert result.exit_code == 1
        assert "Not logged in" in result.output

    def test_margin_mode(self, invoke, config_file: Path):
        invoke("signup", "alice", "-p", "secret1")

        assert invoke("margin-mode", "isolated").exit_code == 0
        assert load_state(config_file).accounts[0].margin_mode == "isolated"


class TestTradingCommands:
    def test_open_and_close_with_configured_price(self, invoke, config_file: Path):
        invoke("signup", "alice", "-p", "secret1")

        result = invoke("open", "BTCUSDT", "long", "1000", "-l", "10")
        assert result.exit_code == 0, result.output
        assert "Position Opened" in result.output

        position = load_state(config_file).positions[0]
        assert position.entry_price == 50000
        assert position.margin == 100

        result = invoke("close", position.id, "--price", "55000")
        assert result.exit_code == 0, result.output
        assert "Position Closed" in result.output

        state = load_state(config_file)
        assert state.positions == []
        assert state.accounts[0].total_pnl == pytest.approx(1000)
        assert state.accounts[0].balance == pytest.approx(11000)

    def test_open_unknown_symbol_needs_price(self, invoke):
        invoke("signup", "alice", "-p", "secret1")

        result = invoke("open", "FOOUSDT", "long", "100")

        assert result.exit_code == 1
        assert "--price" in result.output

    def test_open_insufficient_margin(self, invoke):
        invoke("signup", "alice", "-p", "secret1")

        result = invoke("open", "BTCUSDT", "long", "1000000", "-l", "1")

        assert result.exit_code == 1
        assert "INSUFFICIENT_MARGIN" in result.output

    def test_close_unknown_position(self, invoke):
        invoke("signup", "alice", "-p", "secret1")

        result = invoke("close", "pos_missing")

        assert result.exit_code == 1
        assert "POSITION_NOT_FOUND" in result.output

    def test_limit_and_cancel(self, invoke, config_file: Path):
        invoke("signup", "alice", "-p", "secret1")

        assert invoke("limit", "ETHUSDT", "short", "1000", "2100", "-l", "5").exit_code == 0
        order = load_state(config_file).limit_orders[0]
        assert order.margin == 200
        assert invoke("orders").exit_code == 0

        assert invoke("cancel", order.id).exit_code == 0
        state = load_state(config_file)
        assert state.limit_orders == []
        assert state.accounts[0].balance == 10000

        assert invoke("cancel", order.id).exit_code == 1

    def test_positions_listing(self, invoke):
        invoke("signup", "alice", "-p", "secret1")
        assert "No open positions" in invoke("positions").output

        invoke("open", "BTCUSDT", "long", "1000")
        result = invoke("positions")

        assert result.exit_code == 0
        assert "Open Positions" in result.output


class TestPortfolioCommands:
    def _trade(self, invoke, config_file: Path) -> None:
        invoke("signup", "alice", "-p", "secret1")
        invoke("open", "BTCUSDT", "long", "1000", "-l", "10")
        position = load_state(config_file).positions[0]
        invoke("close", position.id, "--price", "55000")

    def test_status(self, invoke, config_file: Path):
        self._trade(invoke, config_file)

        result = invoke("status")

        assert result.exit_code == 0
        assert "Total Equity" in result.output

    def test_history(self, invoke, config_file: Path):
        self._trade(invoke, config_file)

        result = invoke("history")

        assert result.exit_code == 0
        assert "Trade History" in result.output

    def test_export_to_stdout(self, invoke, config_file: Path):
        self._trade(invoke, config_file)

        result = invoke("export")

        assert result.exit_code == 0
        lines = result.output.strip().split("\n")
        assert lines[0] == "Date,Symbol,Side,Entry,Exit,Size,Leverage,PnL,PnL%"
        assert lines[1].split(",")[1:] == [
            "BTCUSDT", "long", "50000.00", "55000.00", "1000.00", "10", "1000.00", "1000.00",
        ]

    def test_export_to_file(self, invoke, config_file: Path, tmp_path: Path):
        self._trade(invoke, config_file)
        output = tmp_path / "trades.csv"

        result = invoke("export", "-o", str(output))

        assert result.exit_code == 0
        assert output.read_text().startswith("Date,Symbol,Side")

    def test_leaderboard(self, invoke, config_file: Path):
        self._trade(invoke, config_file)

        result = invoke("leaderboard")

        assert result.exit_code == 0
        assert "Leaderboard" in result.output


class TestWaitlistCommand:
    def test_join_waitlist(self, invoke, config_file: Path):
        result = invoke("waitlist", "Bob", "bob@example.com", "--telegram", "@bob")

        assert result.exit_code == 0
        assert [e.email for e in load_state(config_file).waitlist] == ["bob@example.com"]

    def test_invalid_email(self, invoke):
        result = invoke("waitlist", "Bob", "nope")

        assert result.exit_code == 1
        assert "INVALID_WAITLIST_ENTRY" in result.output
