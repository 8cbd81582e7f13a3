"""
Unit tests for the instrument CSV mapping.

Tests: upstream dump parsing, optional columns, malformed input.
"""

from dataclasses import replace

import pytest

from kitecli.broker.errors import ParseError
from kitecli.cache.instrument_csv import INSTRUMENT_FIELDS, dump_instruments, parse_instruments

UPSTREAM_DUMP = (
    "instrument_token,exchange_token,tradingsymbol,name,last_price,expiry,strike,"
    "tick_size,lot_size,instrument_type,segment,exchange\n"
    "408065,1594,INFY,INFOSYS,0,,,0.05,1,EQ,NSE,NSE\n"
    "13110530,51213,NIFTY24JAN21500CE,NIFTY,12.5,2024-01-25,21500,0.05,50,CE,NFO-OPT,NFO\n"
)


class TestParse:
    def test_upstream_dump(self):
        infy, option = parse_instruments(UPSTREAM_DUMP)

        assert infy.instrument_token == 408065
        assert infy.tradingsymbol == "INFY"
        assert infy.last_price == 0.0
        assert infy.expiry is None
        assert infy.strike is None
        assert infy.key == "NSE:INFY"

        assert option.expiry == "2024-01-25"
        assert option.strike == 21500.0
        assert option.lot_size == 50
        assert option.segment == "NFO-OPT"

    def test_header_only(self):
        assert parse_instruments(",".join(INSTRUMENT_FIELDS) + "\n") == []

    def test_name_with_comma_survives(self):
        text = UPSTREAM_DUMP.replace("INFOSYS", '"INFOSYS, LTD"')
        infy = parse_instruments(text)[0]
        assert infy.name == "INFOSYS, LTD"
        assert parse_instruments(dump_instruments([infy]))[0] == infy


class TestDump:
    def test_header_and_line_endings(self):
        text = dump_instruments(parse_instruments(UPSTREAM_DUMP))
        lines = text.split("\r\n")
        assert lines[0] == ",".join(INSTRUMENT_FIELDS)
        assert len(lines) == 4
        assert text.endswith("\r\n")

    def test_absent_optionals_are_empty_cells(self):
        infy = parse_instruments(UPSTREAM_DUMP)[0]
        row = dump_instruments([infy]).split("\r\n")[1]
        assert row == "408065,1594,INFY,INFOSYS,0.0,,,0.05,1,EQ,NSE,NSE"


class TestMalformed:
    def test_missing_column(self):
        text = UPSTREAM_DUMP.replace("tick_size,", "")
        with pytest.raises(ParseError, match="tick_size"):
            parse_instruments(text)

    def test_short_row(self):
        text = UPSTREAM_DUMP + "1,2,X\n"
        with pytest.raises(ParseError, match="line 4"):
            parse_instruments(text)

    def test_bad_number(self):
        text = UPSTREAM_DUMP.replace("408065", "not-a-token")
        with pytest.raises(ParseError):
            parse_instruments(text)

    def test_source_named_in_error(self):
        with pytest.raises(ParseError, match="cache file nse.csv"):
            parse_instruments("garbage\n", source="cache file nse.csv")


class TestLineBreaksInCells:
    def test_cr_and_lf_in_text_cells_are_quoted(self):
        infy = parse_instruments(UPSTREAM_DUMP)[0]
        text = dump_instruments([replace(infy, name="INFOSYS\rLTD"), replace(infy, name="A\nB")])
        assert '"INFOSYS\rLTD"' in text
        assert [i.name for i in parse_instruments(text)] == ["INFOSYS\rLTD", "A\nB"]

    def test_expiry_kept_verbatim(self):
        option = parse_instruments(UPSTREAM_DUMP)[1]
        padded = replace(option, expiry=" 2024-01-25 ")
        assert parse_instruments(dump_instruments([padded]))[0].expiry == " 2024-01-25 "
