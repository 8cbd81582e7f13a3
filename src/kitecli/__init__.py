"""kitecli — authenticated, rate-limited Kite Connect API access layer."""

from kitecli.broker.kite_client import KiteClient  # noqa: F401

__version__ = "0.1.0"
