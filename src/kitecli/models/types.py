"""Request shapes for the order, portfolio and GTT endpoint families."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from kitecli.models.enums import (
    GTTType,
    OrderType,
    Product,
    TransactionType,
    Validity,
    Variety,
)


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values and unwrap enums for a form-encoded body."""
    return {
        k: (v.value if isinstance(v, Enum) else v)
        for k, v in payload.items()
        if v is not None
    }


# ─── Orders ────────────────────────────────────────────────────────────────────


@dataclass
class PlaceOrder:
    """Order to be placed through ``POST /orders/{variety}``."""

    exchange: str
    tradingsymbol: str
    transaction_type: TransactionType
    quantity: int
    order_type: OrderType = OrderType.MARKET
    product: Product = Product.CNC
    price: float | None = None  # Required for LIMIT / SL
    trigger_price: float | None = None  # Required for SL / SL-M
    validity: Validity = Validity.DAY
    disclosed_quantity: int | None = None
    variety: Variety = Variety.REGULAR
    tag: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return _compact(
            {
                "exchange": self.exchange,
                "tradingsymbol": self.tradingsymbol,
                "transaction_type": self.transaction_type,
                "quantity": self.quantity,
                "order_type": self.order_type,
                "product": self.product,
                "price": self.price,
                "trigger_price": self.trigger_price,
                "validity": self.validity,
                "disclosed_quantity": self.disclosed_quantity,
                "tag": self.tag,
            }
        )


@dataclass
class ModifyOrder:
    quantity: int | None = None
    price: float | None = None
    trigger_price: float | None = None
    order_type: OrderType | None = None
    validity: Validity | None = None
    disclosed_quantity: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return _compact(
            {
                "quantity": self.quantity,
                "price": self.price,
                "trigger_price": self.trigger_price,
                "order_type": self.order_type,
                "validity": self.validity,
                "disclosed_quantity": self.disclosed_quantity,
            }
        )


# ─── Portfolio ─────────────────────────────────────────────────────────────────


@dataclass
class ConvertPosition:
    exchange: str
    tradingsymbol: str
    transaction_type: TransactionType
    quantity: int
    old_product: Product
    new_product: Product
    position_type: str = "day"

    def to_payload(self) -> dict[str, Any]:
        return _compact(
            {
                "exchange": self.exchange,
                "tradingsymbol": self.tradingsymbol,
                "transaction_type": self.transaction_type,
                "quantity": self.quantity,
                "old_product": self.old_product,
                "new_product": self.new_product,
                "position_type": self.position_type,
            }
        )


# ─── GTT ───────────────────────────────────────────────────────────────────────


@dataclass
class GTTLeg:
    """One trigger value and the limit order placed when it fires."""

    trigger_price: float
    price: float
    quantity: int
    order_type: OrderType = OrderType.LIMIT


@dataclass
class PlaceGTT:
    """Good-till-triggered order.

    One leg makes a ``single`` trigger; two legs (stop-loss first, target
    second) make a ``two-leg`` OCO trigger.
    """

    exchange: str
    tradingsymbol: str
    transaction_type: TransactionType
    last_price: float
    legs: list[GTTLeg] = field(default_factory=list)
    product: Product = Product.CNC

    @property
    def trigger_type(self) -> GTTType:
        return GTTType.TWO_LEG if len(self.legs) == 2 else GTTType.SINGLE

    def to_payload(self) -> dict[str, Any]:
        condition = {
            "exchange": self.exchange,
            "tradingsymbol": self.tradingsymbol,
            "trigger_values": [leg.trigger_price for leg in self.legs],
            "last_price": self.last_price,
        }
        orders = [
            {
                "exchange": self.exchange,
                "tradingsymbol": self.tradingsymbol,
                "transaction_type": self.transaction_type.value,
                "quantity": leg.quantity,
                "order_type": leg.order_type.value,
                "product": self.product.value,
                "price": leg.price,
            }
            for leg in self.legs
        ]
        return {
            "type": self.trigger_type.value,
            "condition": json.dumps(condition),
            "orders": json.dumps(orders),
        }
