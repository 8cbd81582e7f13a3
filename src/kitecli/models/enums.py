"""Kite Connect enums used by the order, portfolio and GTT calls."""

from __future__ import annotations

from enum import Enum


# ─── Orders ────────────────────────────────────────────────────────────────────


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    SL = "SL"  # Stop-loss limit
    SLM = "SL-M"  # Stop-loss market


class Product(str, Enum):
    CNC = "CNC"  # Delivery
    MIS = "MIS"  # Intraday
    NRML = "NRML"  # Carry-forward F&O
    MTF = "MTF"  # Margin trading facility


class Validity(str, Enum):
    DAY = "DAY"
    IOC = "IOC"
    TTL = "TTL"


class Variety(str, Enum):
    """URL segment under ``/orders/{variety}``."""

    REGULAR = "regular"
    AMO = "amo"
    CO = "co"
    ICEBERG = "iceberg"


# ─── Markets ───────────────────────────────────────────────────────────────────


class Exchange(str, Enum):
    NSE = "NSE"
    BSE = "BSE"
    NFO = "NFO"
    BFO = "BFO"
    MCX = "MCX"
    CDS = "CDS"


class MarginSegment(str, Enum):
    EQUITY = "equity"
    COMMODITY = "commodity"


class GTTType(str, Enum):
    SINGLE = "single"
    TWO_LEG = "two-leg"
