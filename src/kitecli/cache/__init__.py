"""Local instrument cache."""

from kitecli.cache.instruments import InstrumentCache  # noqa: F401
