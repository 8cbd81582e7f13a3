"""
CSV mapping for ``Instrument`` records.

Used both for the ``/instruments`` API response and for the on-disk cache.
Columns follow a fixed field order and rows end in CRLF, so a CR or LF
inside a text cell is always quoted. Optional columns (``last_price``,
``expiry``, ``strike``) are written as empty cells when absent, and floats
use ``repr`` so a write/read cycle reproduces every value exactly.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from kitecli.broker.errors import ParseError
from kitecli.broker.types import Instrument

INSTRUMENT_FIELDS: tuple[str, ...] = (
    "instrument_token",
    "exchange_token",
    "tradingsymbol",
    "name",
    "last_price",
    "expiry",
    "strike",
    "tick_size",
    "lot_size",
    "instrument_type",
    "segment",
    "exchange",
)


def _fmt_float(value: float | None) -> str:
    return "" if value is None else repr(float(value))


def _to_row(inst: Instrument) -> list[str]:
    return [
        str(inst.instrument_token),
        str(inst.exchange_token),
        inst.tradingsymbol,
        inst.name,
        _fmt_float(inst.last_price),
        inst.expiry or "",
        _fmt_float(inst.strike),
        repr(float(inst.tick_size)),
        str(inst.lot_size),
        inst.instrument_type,
        inst.segment,
        inst.exchange,
    ]


def _opt_float(raw: str) -> float | None:
    raw = raw.strip()
    return float(raw) if raw else None


def _from_row(row: dict[str, str]) -> Instrument:
    return Instrument(
        instrument_token=int(row["instrument_token"]),
        exchange_token=int(row["exchange_token"]),
        tradingsymbol=row["tradingsymbol"],
        name=row["name"],
        last_price=_opt_float(row["last_price"]),
        expiry=row["expiry"] or None,
        strike=_opt_float(row["strike"]),
        tick_size=float(row["tick_size"]),
        lot_size=int(row["lot_size"]),
        instrument_type=row["instrument_type"],
        segment=row["segment"],
        exchange=row["exchange"],
    )


def dump_instruments(instruments: Iterable[Instrument]) -> str:
    """Render records as CSV text with a header row."""
    buf = io.StringIO(newline="")
    writer = csv.writer(buf, lineterminator="\r\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(INSTRUMENT_FIELDS)
    for inst in instruments:
        writer.writerow(_to_row(inst))
    return buf.getvalue()


def parse_instruments(text: str, source: str = "instrument CSV") -> list[Instrument]:
    """Parse CSV text into records.

    Raises:
        ParseError: missing columns or a malformed row.
    """
    reader = csv.DictReader(io.StringIO(text, newline=""))
    header = reader.fieldnames or []
    missing = [f for f in INSTRUMENT_FIELDS if f not in header]
    if missing:
        raise ParseError(f"Malformed {source}: missing columns {', '.join(missing)}")

    instruments: list[Instrument] = []
    try:
        for row in reader:
            if None in row.values() or None in row:
                raise ParseError(
                    f"Malformed {source}: wrong number of columns on line {reader.line_num}"
                )
            instruments.append(_from_row(row))
    except (ValueError, csv.Error) as e:
        raise ParseError(f"Malformed {source} on line {reader.line_num}: {e}") from e
    return instruments
