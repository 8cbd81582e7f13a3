"""
Input validation for symbols, exchanges and orders.

Everything here runs before any network call and raises
``ValidationError`` with a message that names the accepted values.
"""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

from kitecli.broker.errors import ValidationError
from kitecli.models.enums import (
    Exchange,
    OrderType,
    Product,
    TransactionType,
    Validity,
)

_E = TypeVar("_E", bound=Enum)

VALID_EXCHANGES = tuple(e.value for e in Exchange)


def validate_exchange(exchange: str) -> str:
    """Return the upper-cased exchange code or raise ``ValidationError``."""
    code = (exchange or "").strip().upper()
    if code not in VALID_EXCHANGES:
        raise ValidationError(
            f"Invalid exchange '{exchange}'. Valid exchanges: {', '.join(VALID_EXCHANGES)}"
        )
    return code


def validate_symbol(symbol: str) -> tuple[str, str]:
    """Split ``EXCHANGE:SYMBOL`` into its validated parts."""
    parts = (symbol or "").split(":")
    if len(parts) != 2:
        raise ValidationError(
            "Invalid symbol format. Expected: EXCHANGE:SYMBOL (e.g., NSE:INFY)"
        )
    exchange = validate_exchange(parts[0])
    tradingsymbol = parts[1].strip().upper()
    if not tradingsymbol:
        raise ValidationError("Symbol cannot be empty")
    return exchange, tradingsymbol


def validate_order(
    order_type: OrderType,
    quantity: int,
    price: float | None = None,
    trigger_price: float | None = None,
) -> None:
    """Check the fields each order type requires."""
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")

    needs_price = order_type in (OrderType.LIMIT, OrderType.SL)
    needs_trigger = order_type in (OrderType.SL, OrderType.SLM)

    if needs_price and (price is None or price <= 0):
        raise ValidationError(f"{order_type.value} orders require a valid price (> 0)")
    if needs_trigger and (trigger_price is None or trigger_price <= 0):
        raise ValidationError(
            f"{order_type.value} orders require a valid trigger price (> 0)"
        )


def _parse_enum(enum_cls: type[_E], value: str, label: str) -> _E:
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'. Expected one of: {choices}") from None


def parse_transaction_type(value: str) -> TransactionType:
    return _parse_enum(TransactionType, value, "transaction type")


def parse_order_type(value: str) -> OrderType:
    return _parse_enum(OrderType, value, "order type")


def parse_product(value: str) -> Product:
    return _parse_enum(Product, value, "product")


def parse_validity(value: str) -> Validity:
    return _parse_enum(Validity, value, "validity")
