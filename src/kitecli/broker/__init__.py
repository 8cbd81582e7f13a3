"""Broker package — transport, session and error handling for Kite Connect."""

from kitecli.broker.credential_store import CredentialStore  # noqa: F401
from kitecli.broker.errors import ErrorKind, KiteError, redact_secrets  # noqa: F401
from kitecli.broker.rate_limiter import RateLimiter  # noqa: F401
from kitecli.broker.session import SessionManager  # noqa: F401
from kitecli.broker.transport import TransportClient  # noqa: F401
from kitecli.broker.types import AccessToken, AuthState, AuthStatus, Instrument  # noqa: F401
