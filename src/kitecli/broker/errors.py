"""
Error taxonomy for the Kite Connect access layer.

Every failure surfaced by the transport, the session manager or the
instrument cache is exactly one of the ``ErrorKind`` values below,
independent of which endpoint family triggered it.

Redaction is best-effort text substitution anchored on field names
(``access_token``, ``api_secret`` ...). It does not parse the payload, so a
secret carried under an unexpected key or shape can still leak.
"""

from __future__ import annotations

import json
import re
from enum import Enum

MASK = "***"

_SECRET_FIELDS = (
    "access_token",
    "api_secret",
    "request_token",
    "refresh_token",
    "checksum",
    "enctoken",
)
_FIELD_ALT = "|".join(_SECRET_FIELDS)

# "access_token": "abc"   /   'access_token': 'abc'
_JSON_FIELD = re.compile(
    rf"""(["']?(?:{_FIELD_ALT})["']?\s*:\s*)(["'])(?:\\.|(?!\2).)*\2""",
    re.IGNORECASE,
)
# access_token=abc&...   (form bodies, query strings)
_FORM_FIELD = re.compile(rf"((?:{_FIELD_ALT})=)[^&\s\"']+", re.IGNORECASE)
# Authorization: token api_key:access_token
_AUTH_HEADER = re.compile(r"(\btoken\s+[^\s:\"']+:)[^\s\"',}]+", re.IGNORECASE)


def redact_secrets(text: str, *secrets: str | None) -> str:
    """Mask secret values in *text*.

    Field-anchored patterns are applied first; any explicitly passed
    ``secrets`` (e.g. the live access token) are then replaced verbatim.
    """
    if not text:
        return text
    redacted = _JSON_FIELD.sub(lambda m: f"{m.group(1)}{m.group(2)}{MASK}{m.group(2)}", text)
    redacted = _FORM_FIELD.sub(lambda m: f"{m.group(1)}{MASK}", redacted)
    redacted = _AUTH_HEADER.sub(lambda m: f"{m.group(1)}{MASK}", redacted)
    for secret in secrets:
        if secret and len(secret) >= 4:
            redacted = redacted.replace(secret, MASK)
    return redacted


class ErrorKind(str, Enum):
    NOT_AUTHENTICATED = "NotAuthenticated"
    INVALID_CREDENTIALS = "InvalidCredentials"
    RATE_LIMIT_TIMEOUT = "RateLimitTimeout"
    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    UNAUTHORIZED = "Unauthorized"
    FORBIDDEN = "Forbidden"
    CLIENT_ERROR = "ClientError"
    SERVER_ERROR = "ServerError"
    TRANSPORT = "Transport"
    PARSE_ERROR = "ParseError"
    CACHE_MISS = "CacheMiss"
    VALIDATION = "Validation"


class KiteError(Exception):
    """Base class for every error raised by the access layer.

    ``message`` is always redacted. ``hint`` names the corrective action
    where one is known and is appended to ``str(error)``.
    """

    kind: ErrorKind = ErrorKind.CLIENT_ERROR
    hint: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        status_code: int | None = None,
        error_type: str = "",
        hint: str | None = None,
    ) -> None:
        self.message = redact_secrets(message)
        self.status_code = status_code
        self.error_type = error_type
        if hint is not None:
            self.hint = hint
        super().__init__(self.message)

    def __str__(self) -> str:
        text = self.message or self.kind.value
        if self.hint:
            return f"{text}. {self.hint}"
        return text


class NotAuthenticated(KiteError):
    """No access token is available for an authenticated call."""

    kind = ErrorKind.NOT_AUTHENTICATED
    hint = "Re-authenticate with 'kite auth login'"

    def __init__(self, message: str = "Authentication required", **kwargs) -> None:
        super().__init__(message, **kwargs)


class TokenExpired(NotAuthenticated):
    """The locally tracked token lifetime has elapsed."""

    def __init__(self, message: str = "Access token expired", **kwargs) -> None:
        super().__init__(message, **kwargs)


class InvalidCredentials(KiteError):
    kind = ErrorKind.INVALID_CREDENTIALS
    hint = "Set KITE_API_KEY and KITE_API_SECRET or update the credentials file"

    def __init__(self, message: str = "Invalid API credentials", **kwargs) -> None:
        super().__init__(message, **kwargs)


class RateLimitTimeout(KiteError):
    """No rate-limit credit freed up within the local wait bound."""

    kind = ErrorKind.RATE_LIMIT_TIMEOUT
    hint = "Too many requests are queued locally, retry later"


class RateLimitExceeded(KiteError):
    """Upstream answered 429."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    hint = "Slow down and retry later"


class Unauthorized(KiteError):
    kind = ErrorKind.UNAUTHORIZED
    hint = "Re-authenticate with 'kite auth login'"


class Forbidden(KiteError):
    kind = ErrorKind.FORBIDDEN
    hint = "Check the session and API permissions, re-authenticate if the token was invalidated"


class ClientError(KiteError):
    kind = ErrorKind.CLIENT_ERROR


class ServerError(KiteError):
    kind = ErrorKind.SERVER_ERROR
    hint = "Please try again later"


class TransportError(KiteError):
    """Connection failure or timeout before any HTTP status was received."""

    kind = ErrorKind.TRANSPORT
    hint = "Check network connectivity"


class ParseError(KiteError):
    kind = ErrorKind.PARSE_ERROR


class CacheMiss(KiteError):
    kind = ErrorKind.CACHE_MISS
    hint = "Refresh the instrument cache"


class ValidationError(KiteError):
    """Caller input rejected before any network call."""

    kind = ErrorKind.VALIDATION


def _extract_message(body: str) -> tuple[str, str]:
    """Pull ``message`` and ``error_type`` out of a Kite error envelope."""
    try:
        payload = json.loads(body)
    except ValueError:
        return body.strip(), ""
    if not isinstance(payload, dict):
        return body.strip(), ""
    message = str(payload.get("message") or body.strip())
    return message, str(payload.get("error_type") or "")


def classify_status(status_code: int, body: str, *secrets: str | None) -> KiteError:
    """Map a non-2xx HTTP response to a typed error with a redacted message."""
    message, error_type = _extract_message(redact_secrets(body, *secrets))
    message = redact_secrets(message, *secrets)
    kwargs = {"status_code": status_code, "error_type": error_type}

    if status_code == 401:
        return Unauthorized(f"Authentication failed: {message}", **kwargs)
    if status_code == 403:
        return Forbidden(f"Forbidden: {message}", **kwargs)
    if status_code == 429:
        return RateLimitExceeded(f"Rate limit exceeded: {message}", **kwargs)
    if 400 <= status_code < 500:
        return ClientError(f"Client error ({status_code}): {message}", **kwargs)
    if 500 <= status_code < 600:
        return ServerError(f"Server error ({status_code}): {message}", **kwargs)
    return ServerError(f"Unexpected response ({status_code}): {message}", **kwargs)
