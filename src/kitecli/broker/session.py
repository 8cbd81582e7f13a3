"""
Kite Connect session lifecycle.

Handles:
- Login URL generation
- request_token → access_token exchange (SHA-256 checksum)
- Local expiry tracking and status
- Logout (best-effort remote invalidation, unconditional local clear)
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from urllib.parse import urlencode

from kitecli.broker.credential_store import CredentialStore
from kitecli.broker.errors import (
    InvalidCredentials,
    KiteError,
    NotAuthenticated,
    ParseError,
    TokenExpired,
    ValidationError,
)
from kitecli.broker.transport import TransportClient
from kitecli.broker.types import AccessToken, AuthState, AuthStatus, Credentials
from kitecli.config import settings

logger = logging.getLogger(__name__)

SESSION_PATH = "/session/token"


class SessionManager:
    """Owns the access token end to end.

    The current token is an immutable ``AccessToken`` held in a single
    attribute. Writers (``exchange``/``logout``) build a complete new value
    and swap the reference, so concurrent readers see either the old token
    or the new one, never a mix.

    Usage::

        session = SessionManager(transport, store)
        url = session.login_url()
        # User logs in -> redirect carries request_token
        token = await session.exchange(request_token)
        session.status()  # AuthStatus(AUTHENTICATED, expiry)
        await session.logout()
    """

    def __init__(
        self,
        transport: TransportClient,
        store: CredentialStore | None = None,
        *,
        credentials: Credentials | None = None,
        token_lifetime: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport = transport
        self._store = store
        creds = credentials or (store.load() if store is not None else Credentials())
        self.api_key = creds.api_key
        self.api_secret = creds.api_secret
        self._token_lifetime = (
            settings.token_lifetime_hours * 3600 if token_lifetime is None else token_lifetime
        )
        self._clock = clock
        self._token: AccessToken | None = None
        if creds.access_token and creds.token_expiry is not None:
            self._token = AccessToken(
                value=creds.access_token,
                expires_at=creds.token_expiry.timestamp(),
                user_id=creds.user_id,
            )

    # ── Login ──────────────────────────────────────────────────────────────

    def login_url(self) -> str:
        """Browser-facing login URL. Pure: no I/O, no state change."""
        query = urlencode({"v": settings.kite_api_version, "api_key": self.api_key})
        return f"{settings.kite_login_url}?{query}"

    def checksum(self, request_token: str) -> str:
        """SHA-256 checksum for token exchange.

        Checksum = SHA256(api_key + request_token + api_secret)
        """
        data = f"{self.api_key}{request_token}{self.api_secret}"
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    async def exchange(self, request_token: str) -> AccessToken:
        """Exchange a request_token for an access token.

        Using: POST /session/token (unauthenticated)

        On failure the previously stored token, if any, is left untouched.
        """
        request_token = (request_token or "").strip()
        if not request_token:
            raise ValidationError("Request token cannot be empty")
        if not (self.api_key and self.api_secret):
            raise InvalidCredentials("API key and secret are required for token exchange")

        payload = {
            "api_key": self.api_key,
            "request_token": request_token,
            "checksum": self.checksum(request_token),
        }
        response = await self._transport.request(
            "POST", SESSION_PATH, authenticated=False, data=payload
        )

        data = response.get("data")
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token or not isinstance(access_token, str):
            raise ParseError("Session response did not contain an access_token")

        # Kite does not report an expiry; assume a fixed window from now
        token = AccessToken(
            value=access_token,
            expires_at=self._clock() + self._token_lifetime,
            user_id=str(data.get("user_id") or ""),
        )
        # Persist before swapping so a failed write leaves the old session in place
        self._persist(token)
        self._token = token

        logger.info("Kite token exchange successful for user=%s", token.user_id or "?")
        return token

    # ── State ──────────────────────────────────────────────────────────────

    @property
    def token(self) -> AccessToken | None:
        return self._token

    def status(self) -> AuthStatus:
        """Tri-state auth status from local state and the clock only."""
        token = self._token
        if token is None or not token.value:
            return AuthStatus(AuthState.NOT_AUTHENTICATED)
        if token.is_expired(self._clock()):
            return AuthStatus(AuthState.EXPIRED, token.expiry)
        return AuthStatus(AuthState.AUTHENTICATED, token.expiry)

    def is_authenticated(self) -> bool:
        return self.status().is_authenticated

    def current_token(self) -> str:
        """Token provider for authenticated transport calls.

        Raises:
            NotAuthenticated: No token is stored.
            TokenExpired: The local expiry window has elapsed.
        """
        token = self._token
        if token is None or not token.value:
            raise NotAuthenticated()
        if token.is_expired(self._clock()):
            raise TokenExpired(
                f"Access token expired at {token.expiry:%Y-%m-%d %H:%M:%S} UTC"
            )
        return token.value

    # ── Logout ─────────────────────────────────────────────────────────────

    async def logout(self) -> None:
        """Invalidate the session remotely if possible, then clear it locally.

        Using: DELETE /session/token
        """
        token = self._token
        try:
            if token is not None and token.value:
                try:
                    await self._transport.request(
                        "DELETE",
                        SESSION_PATH,
                        authenticated=False,
                        params={"api_key": self.api_key, "access_token": token.value},
                    )
                    logger.info("Kite session invalidated remotely")
                except KiteError as e:
                    logger.warning("Remote logout failed, clearing local session anyway: %s", e)
        finally:
            self._token = None
            self._persist(None)
            logger.info("Local session cleared")

    # ── Persistence ────────────────────────────────────────────────────────

    def _persist(self, token: AccessToken | None) -> None:
        if self._store is None:
            return
        self._store.save(
            Credentials(
                api_key=self.api_key,
                api_secret=self.api_secret,
                access_token=token.value if token else None,
                token_expiry=(
                    datetime.fromtimestamp(token.expires_at, tz=timezone.utc) if token else None
                ),
                user_id=token.user_id if token else "",
            )
        )
