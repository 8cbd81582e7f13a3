"""
Common types for the Kite Connect access layer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AccessToken:
    """Access token with a locally fabricated expiry.

    Kite does not return an expiry with the session; ``expires_at`` is set
    to exchange time + 24h and is an approximation, not a server guarantee.
    Instances are immutable so readers can never observe a partial update.
    """

    value: str
    expires_at: float  # Unix timestamp
    user_id: str = ""

    def is_expired(self, now: float | None = None) -> bool:
        return (time.time() if now is None else now) >= self.expires_at

    @property
    def expiry(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)


class AuthState(str, Enum):
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    AUTHENTICATED = "AUTHENTICATED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True, slots=True)
class AuthStatus:
    """Result of ``SessionManager.status()``."""

    state: AuthState
    expiry: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == AuthState.AUTHENTICATED


@dataclass
class Credentials:
    """Credential record exchanged with the credential store."""

    api_key: str = ""
    api_secret: str = ""
    access_token: str | None = None
    token_expiry: datetime | None = None
    user_id: str = ""

    @property
    def has_api_keys(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def is_token_valid(self, now: datetime | None = None) -> bool:
        if not self.access_token or self.token_expiry is None:
            return False
        return self.token_expiry > (now or datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class Instrument:
    """One row of the bulk instrument dump.

    Field order matches the upstream CSV header and the cache file.
    """

    instrument_token: int
    exchange_token: int
    tradingsymbol: str
    name: str
    last_price: float | None
    expiry: str | None
    strike: float | None
    tick_size: float
    lot_size: int
    instrument_type: str
    segment: str
    exchange: str

    def __post_init__(self) -> None:
        # An empty expiry cell and a missing expiry are the same thing
        if self.expiry == "":
            object.__setattr__(self, "expiry", None)

    @property
    def key(self) -> str:
        return f"{self.exchange}:{self.tradingsymbol}"


@dataclass(frozen=True, slots=True)
class CacheFile:
    exchange: str
    path: Path
    size: int
    modified: datetime


@dataclass
class CacheInfo:
    cache_dir: Path
    files: list[CacheFile]

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)
