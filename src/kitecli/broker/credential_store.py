"""
Credential storage backed by a local JSON file.

Holds the API key pair plus the current access token and its locally
computed expiry. The file is written with ``0600`` permissions and
replaced whole on every save.

API key and secret set through the environment (``KITE_API_KEY`` /
``KITE_API_SECRET``) take precedence over the values in the file.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from kitecli.broker.types import Credentials
from kitecli.config import settings

logger = logging.getLogger(__name__)


def _credentials_to_dict(creds: Credentials) -> dict:
    """Serialize Credentials to a JSON-safe dict."""
    return {
        "api_key": creds.api_key,
        "api_secret": creds.api_secret,
        "access_token": creds.access_token,
        "token_expiry": creds.token_expiry.isoformat() if creds.token_expiry else None,
        "user_id": creds.user_id,
    }


def _parse_expiry(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        expiry = datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("Ignoring unparseable token_expiry %r in credentials file", raw)
        return None
    if expiry.tzinfo is None:
        return None
    return expiry


def _dict_to_credentials(data: dict) -> Credentials:
    """Deserialize a dict to Credentials."""
    return Credentials(
        api_key=data.get("api_key") or "",
        api_secret=data.get("api_secret") or "",
        access_token=data.get("access_token") or None,
        token_expiry=_parse_expiry(data.get("token_expiry")),
        user_id=data.get("user_id") or "",
    )


class CredentialStore:
    """Loads and saves the credential record.

    Usage::

        store = CredentialStore()
        creds = store.load()
        creds.access_token = "..."
        store.save(creds)
    """

    def __init__(
        self,
        path: Path | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
    ) -> None:
        self._path = path or settings.credentials_path
        self._api_key = settings.kite_api_key if api_key is None else api_key
        self._api_secret = settings.kite_api_secret if api_secret is None else api_secret

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Credentials:
        """Read the credential file, applying environment overrides.

        A missing file yields empty credentials. A corrupt file is logged
        and treated the same way so the user can simply log in again.
        """
        creds = Credentials()
        if self._path.exists():
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    creds = _dict_to_credentials(data)
                else:
                    logger.warning("Credentials file %s is not a JSON object", self._path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to read credentials from %s: %s", self._path, e)

        if self._api_key:
            creds.api_key = self._api_key
        if self._api_secret:
            creds.api_secret = self._api_secret
        return creds

    def save(self, creds: Credentials) -> None:
        """Persist the credential record, replacing the previous file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(_credentials_to_dict(creds), indent=2), encoding="utf-8")
        os.chmod(tmp, 0o600)
        os.replace(tmp, self._path)
        logger.info("Credentials saved to %s", self._path)
