"""Property-based tests for positions and limit orders.

**Feature: perpledger**
"""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from perpledger.ledger.accounts import STARTING_BALANCE
from perpledger.ledger.book import MAINTENANCE_MARGIN_RATE, MAX_LEVERAGE, liquidation_price
from perpledger.ledger.paper import PaperLedger
from perpledger.models import ErrorCode

prices = st.floats(min_value=0.01, max_value=1e6, allow_nan=False, allow_infinity=False)
leverages = st.integers(min_value=1, max_value=125)


@pytest.fixture
def ledger():
    return PaperLedger()


@pytest.fixture
def account(ledger):
    return ledger.sign_up("alice", "secret1").unwrap()


class TestLiquidationPrice:
    """
    **Feature: perpledger, Property 7: Liquidation Price Formula**

    *For any* entry price and leverage, the liquidation price sits on the
    losing side of the entry by 1/leverage less the maintenance rate.
    """

    def test_known_values(self):
        assert liquidation_price(50000, "long", 10) == pytest.approx(45250)
        assert liquidation_price(50000, "short", 10) == pytest.approx(54750)

    @given(entry=prices, leverage=leverages)
    @settings(max_examples=100)
    def test_long_formula(self, entry: float, leverage: int):
        expected = entry * (1 - 1 / leverage + MAINTENANCE_MARGIN_RATE)

        assert math.isclose(liquidation_price(entry, "long", leverage), expected)

    @given(entry=prices, leverage=leverages)
    @settings(max_examples=100)
    def test_short_formula(self, entry: float, leverage: int):
        expected = entry * (1 + 1 / leverage - MAINTENANCE_MARGIN_RATE)

        assert math.isclose(liquidation_price(entry, "short", leverage), expected)

    @given(entry=prices, leverage=st.integers(min_value=2, max_value=125))
    @settings(max_examples=100)
    def test_liquidation_on_losing_side(self, entry: float, leverage: int):
        assert liquidation_price(entry, "long", leverage) < entry
        assert liquidation_price(entry, "short", leverage) > entry


class TestOpenPosition:
    """
    **Feature: perpledger, Property 8: Opening Reserves Margin**

    *For any* affordable order, opening a position moves size / leverage
    from the balance into the position.
    """

    def test_open_reserves_margin(self, ledger: PaperLedger, account):
        position = ledger.open_position(account.id, "BTCUSDT", "long", 50000, 10000, 10).unwrap()

        assert position.margin == 1000
        assert position.liquidation_price == pytest.approx(45250)
        assert position.margin_mode == "cross"
        assert ledger.get_account(account.id).balance == STARTING_BALANCE - 1000
        assert ledger.get_positions(account.id) == [position]

    def test_symbol_normalized(self, ledger: PaperLedger, account):
        position = ledger.open_position(account.id, " ethusdt ", "short", 2000, 100, 2).unwrap()

        assert position.symbol == "ETHUSDT"

    def test_take_profit_and_stop_loss_recorded(self, ledger: PaperLedger, account):
        position = ledger.open_position(
            account.id, "SOLUSDT", "long", 100, 500, 5, take_profit=120, stop_loss=90
        ).unwrap()

        assert position.take_profit == 120
        assert position.stop_loss == 90

    def test_margin_equal_to_balance_allowed(self, ledger: PaperLedger, account):
        assert ledger.open_position(account.id, "BTCUSDT", "long", 50000, 100000, 10).ok
        assert ledger.get_account(account.id).balance == 0

    def test_insufficient_margin(self, ledger: PaperLedger, account):
        result = ledger.open_position(account.id, "BTCUSDT", "long", 50000, 100010, 10)

        assert result.error == ErrorCode.INSUFFICIENT_MARGIN
        assert "Required: 10001.00" in result.message
        assert "Available: 10000.00" in result.message
        assert ledger.get_account(account.id).balance == STARTING_BALANCE
        assert ledger.get_positions(account.id) == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"symbol": ""},
            {"side": "sideways"},
            {"entry_price": 0},
            {"entry_price": -1},
            {"entry_price": float("nan")},
            {"size": 0},
            {"leverage": 0},
            {"leverage": 2.5},
            {"leverage": True},
            {"margin_mode": "portfolio"},
            {"take_profit": 0},
            {"stop_loss": -3},
        ],
    )
    def test_invalid_parameters_rejected(self, ledger: PaperLedger, account, kwargs):
        params = dict(symbol="BTCUSDT", side="long", entry_price=50000, size=1000, leverage=10)
        params.update(kwargs)

        result = ledger.open_position(account.id, **params)

        assert result.error == ErrorCode.INVALID_ORDER_PARAMETERS
        assert ledger.get_account(account.id).balance == STARTING_BALANCE

    def test_integral_float_leverage_accepted(self, ledger: PaperLedger, account):
        position = ledger.open_position(account.id, "BTCUSDT", "long", 50000, 1000, 10.0).unwrap()

        assert position.leverage == 10
        assert isinstance(position.leverage, int)

    def test_unknown_account(self, ledger: PaperLedger):
        result = ledger.open_position("user_missing", "BTCUSDT", "long", 50000, 1000, 10)

        assert result.error == ErrorCode.ACCOUNT_NOT_FOUND

    @given(
        size=st.floats(min_value=1, max_value=1e5, allow_nan=False, allow_infinity=False),
        leverage=leverages,
    )
    @settings(max_examples=50)
    def test_margin_moves_out_of_balance(self, size: float, leverage: int):
        ledger = PaperLedger()
        account = ledger.sign_up("bob", "pw").unwrap()

        result = ledger.open_position(account.id, "BTCUSDT", "long", 50000, size, leverage)
        margin = size / leverage

        if margin > STARTING_BALANCE:
            assert result.error == ErrorCode.INSUFFICIENT_MARGIN
            assert ledger.get_account(account.id).balance == STARTING_BALANCE
        else:
            assert result.ok
            assert math.isclose(
                ledger.get_account(account.id).balance + result.value.margin, STARTING_BALANCE
            )


class TestLimitOrders:
    """
    **Feature: perpledger, Property 9: Limit Orders Hold Margin Until Cancelled**

    *For any* placed order, cancelling releases exactly the margin it held.
    """

    def test_place_reserves_margin(self, ledger: PaperLedger, account):
        order = ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 1000, 5).unwrap()

        assert order.margin == 200
        assert ledger.get_account(account.id).balance == STARTING_BALANCE - 200
        assert ledger.get_limit_orders(account.id) == [order]

    def test_cancel_releases_margin(self, ledger: PaperLedger, account):
        order = ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 1000, 5).unwrap()

        cancelled = ledger.cancel_limit_order(account.id, order.id)

        assert cancelled.ok
        assert cancelled.value.id == order.id
        assert ledger.get_account(account.id).balance == STARTING_BALANCE
        assert ledger.get_limit_orders(account.id) == []

    def test_cancel_twice_fails_second_time(self, ledger: PaperLedger, account):
        order = ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 1000, 5).unwrap()
        ledger.cancel_limit_order(account.id, order.id)

        result = ledger.cancel_limit_order(account.id, order.id)

        assert result.error == ErrorCode.ORDER_NOT_FOUND
        assert ledger.get_account(account.id).balance == STARTING_BALANCE

    def test_cannot_cancel_another_accounts_order(self, ledger: PaperLedger, account):
        other = ledger.sign_up("bob", "pw").unwrap()
        order = ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 1000, 5).unwrap()

        result = ledger.cancel_limit_order(other.id, order.id)

        assert result.error == ErrorCode.ORDER_NOT_FOUND
        assert ledger.get_limit_orders(account.id) == [order]

    def test_limit_order_insufficient_margin(self, ledger: PaperLedger, account):
        result = ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 60000, 5)

        assert result.error == ErrorCode.INSUFFICIENT_MARGIN
        assert ledger.get_limit_orders(account.id) == []

    def test_order_margin_counts_against_positions(self, ledger: PaperLedger, account):
        ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 90000, 10)

        result = ledger.open_position(account.id, "BTCUSDT", "long", 50000, 20000, 10)

        assert result.error == ErrorCode.INSUFFICIENT_MARGIN


class TestAdmissionControl:
    """
    **Feature: perpledger, Property 27: Rejected Orders Leave No Trace**

    *For any* order that fails validation or the margin check, the command
    returns a failed result instead of raising and the account is unchanged.
    """

    def test_oversized_position_rejected(self, ledger: PaperLedger, account):
        result = ledger.open_position(account.id, "BTCUSDT", "long", 100, 20000, 1)

        assert not result.ok
        assert result.error == ErrorCode.INSUFFICIENT_MARGIN
        assert ledger.get_account(account.id).balance == STARTING_BALANCE
        assert ledger.get_positions(account.id) == []

    def test_oversized_limit_order_rejected(self, ledger: PaperLedger, account):
        result = ledger.place_limit_order(account.id, "BTCUSDT", "long", 100, 20000, 1)

        assert result.error == ErrorCode.INSUFFICIENT_MARGIN
        assert ledger.get_account(account.id).balance == STARTING_BALANCE
        assert ledger.get_limit_orders(account.id) == []

    @pytest.mark.parametrize("leverage", [0, -1, 2.5, True, None, "10", MAX_LEVERAGE + 1, 10**400])
    def test_limit_order_bad_leverage(self, ledger: PaperLedger, account, leverage):
        result = ledger.place_limit_order(account.id, "ETHUSDT", "long", 1800, 1000, leverage)

        assert result.error == ErrorCode.INVALID_ORDER_PARAMETERS
        assert ledger.get_limit_orders(account.id) == []

    def test_huge_leverage_rejected(self, ledger: PaperLedger, account):
        result = ledger.open_position(account.id, "BTCUSDT", "long", 100, 1000.0, 10**400)

        assert result.error == ErrorCode.INVALID_ORDER_PARAMETERS
        assert ledger.get_account(account.id).balance == STARTING_BALANCE

    def test_margin_underflow_rejected(self, ledger: PaperLedger, account):
        result = ledger.open_position(account.id, "BTCUSDT", "long", 100, 5e-324, MAX_LEVERAGE)

        assert result.error == ErrorCode.INVALID_ORDER_PARAMETERS
        assert ledger.get_positions(account.id) == []

    def test_max_leverage_accepted(self, ledger: PaperLedger, account):
        position = ledger.open_position(
            account.id, "BTCUSDT", "long", 100, 1250, MAX_LEVERAGE
        ).unwrap()

        assert position.margin == 10
