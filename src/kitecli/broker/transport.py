"""
HTTP transport for the Kite Connect REST API.

This is the only code path that talks to the upstream host. Each call:

1. waits on the shared ``RateLimiter``
2. sends the fixed headers (API version, user agent) and, for
   authenticated calls, ``Authorization: token <api_key>:<access_token>``
3. retries connection failures and timeouts with linear backoff
4. classifies non-2xx responses into typed errors with secrets redacted
5. decodes the JSON envelope (or returns text for the CSV endpoints)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from kitecli.broker.errors import (
    NotAuthenticated,
    ParseError,
    TransportError,
    classify_status,
    redact_secrets,
)
from kitecli.broker.rate_limiter import RateLimiter
from kitecli.config import settings

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str]


class TransportClient:
    """Rate-limited, retrying ``httpx.AsyncClient`` wrapper.

    Usage::

        transport = TransportClient(api_key, token_provider=session.current_token)
        payload = await transport.request("GET", "/user/profile")
        csv_text = await transport.request_text("GET", "/instruments/nse")
    """

    def __init__(
        self,
        api_key: str,
        *,
        token_provider: TokenProvider | None = None,
        rate_limiter: RateLimiter | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
        retry_methods: list[str] | None = None,
        secrets: tuple[str, ...] = (),
        http: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.token_provider = token_provider
        self.rate_limiter = rate_limiter or RateLimiter()
        self._base_url = (base_url or settings.kite_base_url).rstrip("/")
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_backoff = (
            settings.retry_backoff_seconds if retry_backoff is None else retry_backoff
        )
        self.retry_methods = {
            m.upper() for m in (retry_methods if retry_methods is not None else settings.retry_methods)
        }
        self._secrets = secrets
        self._sleep = sleep
        self._http = http or httpx.AsyncClient(
            timeout=settings.request_timeout_seconds if timeout is None else timeout
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> TransportClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Headers ────────────────────────────────────────────────────────────

    def _headers(self, authenticated: bool) -> tuple[dict[str, str], str | None]:
        headers = {
            "X-Kite-Version": settings.kite_api_version,
            "User-Agent": settings.user_agent,
        }
        if not authenticated:
            return headers, None
        if self.token_provider is None:
            raise NotAuthenticated("No session is attached to the transport")
        token = self.token_provider()
        if not token:
            raise NotAuthenticated()
        headers["Authorization"] = f"token {self.api_key}:{token}"
        return headers, token

    # ── Core request loop ──────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool,
        params: Any = None,
        data: dict[str, Any] | None = None,
    ) -> tuple[httpx.Response, str | None]:
        method = method.upper()
        headers, token = self._headers(authenticated)
        url = f"{self._base_url}{path}"
        retryable = method in self.retry_methods
        attempt = 0

        while True:
            await self.rate_limiter.acquire()
            try:
                resp = await self._http.request(
                    method, url, headers=headers, params=params, data=data
                )
                break
            except httpx.TransportError as e:
                if not retryable or attempt >= self.max_retries:
                    logger.error(
                        "Kite %s %s failed after %d attempt(s): %s",
                        method,
                        path,
                        attempt + 1,
                        redact_secrets(str(e), token, *self._secrets),
                    )
                    raise TransportError(
                        f"Network error on {method} {path}: {e}"
                    ) from e
                attempt += 1
                delay = attempt * self.retry_backoff
                logger.warning(
                    "Kite %s %s transport failure (%s), retry %d/%d in %.1fs",
                    method,
                    path,
                    type(e).__name__,
                    attempt,
                    self.max_retries,
                    delay,
                )
                await self._sleep(delay)
            except httpx.DecodingError as e:
                logger.error("Kite %s %s returned an undecodable body: %s", method, path, e)
                raise ParseError(f"Failed to decode response body from {path}: {e}") from e
            except httpx.RequestError as e:
                # Redirect loops and the like fail the same way on every attempt
                logger.error(
                    "Kite %s %s failed: %s",
                    method,
                    path,
                    redact_secrets(str(e), token, *self._secrets),
                )
                raise TransportError(f"Request error on {method} {path}: {e}") from e

        if not resp.is_success:
            error = classify_status(resp.status_code, resp.text, token, *self._secrets)
            logger.error("Kite %s %s -> %s", method, path, error.message)
            raise error
        return resp, token

    async def request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        params: Any = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform a JSON call and return the decoded envelope.

        Raises:
            KiteError: one of the classified error kinds.
        """
        resp, token = await self._send(
            method, path, authenticated=authenticated, params=params, data=data
        )
        try:
            payload = resp.json()
        except ValueError as e:
            raise ParseError(
                f"Failed to parse JSON response from {path}: {e}"
            ) from e
        if not isinstance(payload, dict):
            raise ParseError(f"Unexpected JSON payload from {path}: expected an object")

        # Kite occasionally reports failures inside a 2xx envelope
        if payload.get("status") == "error":
            raise classify_status(400, resp.text, token, *self._secrets)
        return payload

    async def request_text(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        params: Any = None,
    ) -> str:
        """Perform a call whose body is not JSON (the instrument CSV dump)."""
        resp, _ = await self._send(method, path, authenticated=authenticated, params=params)
        # resp.text would substitute U+FFFD for bad bytes; decode strictly instead
        try:
            return resp.content.decode(resp.charset_encoding or "utf-8")
        except (UnicodeDecodeError, LookupError) as e:
            raise ParseError(f"Failed to decode response body from {path}: {e}") from e
