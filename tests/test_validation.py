"""
Unit tests for input validation and request payloads.

Tests: exchange and symbol parsing, per-order-type requirements,
       enum parsing, order/GTT payload shapes.
"""

import json

import pytest

from kitecli.broker.errors import ValidationError
from kitecli.models.enums import GTTType, OrderType, Product, TransactionType, Validity
from kitecli.models.types import GTTLeg, ModifyOrder, PlaceGTT, PlaceOrder
from kitecli.validation import (
    parse_order_type,
    parse_product,
    parse_transaction_type,
    parse_validity,
    validate_exchange,
    validate_order,
    validate_symbol,
)


class TestExchange:
    def test_normalises_case(self):
        assert validate_exchange(" nse ") == "NSE"

    def test_invalid_lists_choices(self):
        with pytest.raises(ValidationError, match="Valid exchanges: NSE, BSE"):
            validate_exchange("NASDAQ")


class TestSymbol:
    def test_valid(self):
        assert validate_symbol("nse:infy") == ("NSE", "INFY")

    @pytest.mark.parametrize("symbol", ["INFY", "NSE:INFY:EQ", ""])
    def test_bad_format(self, symbol):
        with pytest.raises(ValidationError, match="EXCHANGE:SYMBOL"):
            validate_symbol(symbol)

    def test_empty_symbol(self):
        with pytest.raises(ValidationError, match="Symbol cannot be empty"):
            validate_symbol("NSE: ")

    def test_bad_exchange(self):
        with pytest.raises(ValidationError, match="Invalid exchange"):
            validate_symbol("LSE:VOD")


class TestOrder:
    def test_market_needs_only_quantity(self):
        validate_order(OrderType.MARKET, 1)

    def test_zero_quantity(self):
        with pytest.raises(ValidationError, match="Quantity must be greater than 0"):
            validate_order(OrderType.MARKET, 0)

    def test_limit_requires_price(self):
        with pytest.raises(ValidationError, match="price"):
            validate_order(OrderType.LIMIT, 10)
        validate_order(OrderType.LIMIT, 10, price=1500.0)

    def test_sl_requires_price_and_trigger(self):
        with pytest.raises(ValidationError, match="trigger price"):
            validate_order(OrderType.SL, 10, price=1500.0)
        validate_order(OrderType.SL, 10, price=1500.0, trigger_price=1495.0)

    def test_slm_requires_trigger_only(self):
        with pytest.raises(ValidationError, match="SL-M"):
            validate_order(OrderType.SLM, 10)
        validate_order(OrderType.SLM, 10, trigger_price=1495.0)


class TestEnumParsing:
    def test_case_insensitive(self):
        assert parse_transaction_type("buy") == TransactionType.BUY
        assert parse_order_type("sl-m") == OrderType.SLM
        assert parse_product("mis") == Product.MIS
        assert parse_validity("ioc") == Validity.IOC

    def test_invalid_lists_choices(self):
        with pytest.raises(ValidationError, match="MARKET, LIMIT, SL, SL-M"):
            parse_order_type("STOP")


class TestPayloads:
    def test_place_order_drops_empty_fields(self):
        order = PlaceOrder(
            exchange="NSE",
            tradingsymbol="INFY",
            transaction_type=TransactionType.BUY,
            quantity=10,
        )
        assert order.to_payload() == {
            "exchange": "NSE",
            "tradingsymbol": "INFY",
            "transaction_type": "BUY",
            "quantity": 10,
            "order_type": "MARKET",
            "product": "CNC",
            "validity": "DAY",
        }

    def test_modify_order_only_changed_fields(self):
        assert ModifyOrder(price=1510.0).to_payload() == {"price": 1510.0}

    def test_two_leg_gtt(self):
        gtt = PlaceGTT(
            exchange="NSE",
            tradingsymbol="INFY",
            transaction_type=TransactionType.SELL,
            last_price=1500.0,
            legs=[GTTLeg(1400.0, 1399.0, 10), GTTLeg(1600.0, 1601.0, 10)],
        )
        payload = gtt.to_payload()

        assert gtt.trigger_type == GTTType.TWO_LEG
        assert payload["type"] == "two-leg"
        assert json.loads(payload["condition"])["trigger_values"] == [1400.0, 1600.0]
        orders = json.loads(payload["orders"])
        assert [o["price"] for o in orders] == [1399.0, 1601.0]
        assert all(o["transaction_type"] == "SELL" for o in orders)
