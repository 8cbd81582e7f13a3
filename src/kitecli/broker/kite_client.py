"""
Kite Connect client facade.

Wires the shared rate limiter, transport, session manager and instrument
cache together and exposes the endpoint families (auth, instruments,
quotes, orders, portfolio, margins, GTT) as thin calls. Every call returns
the ``data`` member of the JSON envelope; errors are the typed errors from
``kitecli.broker.errors`` whichever family raised them.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from kitecli.broker.credential_store import CredentialStore
from kitecli.broker.errors import ValidationError
from kitecli.broker.rate_limiter import RateLimiter
from kitecli.broker.session import SessionManager
from kitecli.broker.transport import TransportClient
from kitecli.broker.types import AccessToken, AuthStatus, Credentials, Instrument
from kitecli.cache.instrument_csv import parse_instruments
from kitecli.cache.instruments import InstrumentCache
from kitecli.models.enums import MarginSegment, Variety
from kitecli.models.types import ConvertPosition, ModifyOrder, PlaceGTT, PlaceOrder
from kitecli.validation import validate_exchange, validate_order, validate_symbol

logger = logging.getLogger(__name__)

# Cache key for the full multi-exchange dump (stored as all.csv)
ALL_EXCHANGES = "ALL"


class KiteClient:
    """Kite Connect API access for command handlers.

    Usage::

        async with KiteClient() as kite:
            if not kite.is_authenticated():
                print(kite.login_url())
                await kite.exchange(input("request_token: "))
            instruments = await kite.list_instruments("NSE")
            quotes = await kite.get_quote(["NSE:INFY"])
    """

    def __init__(
        self,
        store: CredentialStore | None = None,
        *,
        credentials: Credentials | None = None,
        rate_limiter: RateLimiter | None = None,
        cache: InstrumentCache | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        if credentials is None:
            store = store or CredentialStore()
            credentials = store.load()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.transport = TransportClient(
            credentials.api_key,
            token_provider=self._current_token,
            rate_limiter=self.rate_limiter,
            secrets=(credentials.api_secret,) if credentials.api_secret else (),
            http=http,
        )
        self.session = SessionManager(self.transport, store, credentials=credentials)
        self.cache = cache or InstrumentCache()

    def _current_token(self) -> str:
        return self.session.current_token()

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> KiteClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @staticmethod
    def _data(payload: dict[str, Any]) -> Any:
        return payload.get("data")

    async def request(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        params: Any = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await self.transport.request(
            method, path, authenticated=authenticated, params=params, data=data
        )

    # ── Auth ───────────────────────────────────────────────────────────────

    def login_url(self) -> str:
        return self.session.login_url()

    async def exchange(self, request_token: str) -> AccessToken:
        return await self.session.exchange(request_token)

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    def status(self) -> AuthStatus:
        return self.session.status()

    async def logout(self) -> None:
        await self.session.logout()

    async def get_profile(self) -> dict[str, Any]:
        return self._data(await self.request("GET", "/user/profile"))

    # ── Instruments ────────────────────────────────────────────────────────

    async def fetch_instruments(self, exchange: str | None = None) -> list[Instrument]:
        """Download the instrument dump (bypasses the cache).

        With no *exchange* the full catalog across every exchange is fetched.
        """
        code = validate_exchange(exchange) if exchange is not None else None
        path = f"/instruments/{code}" if code else "/instruments"
        text = await self.transport.request_text("GET", path)
        instruments = parse_instruments(text, source=f"{code or 'full'} instrument dump")
        logger.info("Fetched %d instruments for %s", len(instruments), code or "all exchanges")
        return instruments

    async def list_instruments(
        self, exchange: str | None = None, force_refresh: bool = False
    ) -> list[Instrument]:
        """Instruments for *exchange* (or every exchange), served from the cache while fresh."""
        if exchange is None:

            async def fetch_all(_: str) -> list[Instrument]:
                return await self.fetch_instruments(None)

            return await self.cache.load_or_refresh(ALL_EXCHANGES, fetch_all, force_refresh)
        code = validate_exchange(exchange)
        return await self.cache.load_or_refresh(code, self.fetch_instruments, force_refresh)

    async def get_instrument(self, exchange: str, symbol: str) -> Instrument:
        instruments = await self.list_instruments(exchange)
        wanted = symbol.strip().upper()
        for inst in instruments:
            if inst.tradingsymbol.upper() == wanted:
                return inst
        raise ValidationError(f"Instrument not found: {exchange.upper()}:{wanted}")

    # ── Quotes ─────────────────────────────────────────────────────────────

    async def _quote_call(self, path: str, symbols: list[str]) -> dict[str, Any]:
        if not symbols:
            return {}
        keys = [":".join(validate_symbol(s)) for s in symbols]
        return self._data(await self.request("GET", path, params=[("i", k) for k in keys])) or {}

    async def get_quote(self, symbols: list[str]) -> dict[str, Any]:
        """Full market quotes keyed by ``EXCHANGE:SYMBOL``."""
        return await self._quote_call("/quote", symbols)

    async def get_ohlc(self, symbols: list[str]) -> dict[str, Any]:
        return await self._quote_call("/quote/ohlc", symbols)

    async def get_ltp(self, symbols: list[str]) -> dict[str, Any]:
        return await self._quote_call("/quote/ltp", symbols)

    # ── Orders ─────────────────────────────────────────────────────────────

    async def list_orders(self) -> list[dict[str, Any]]:
        return self._data(await self.request("GET", "/orders")) or []

    async def get_order_history(self, order_id: str) -> list[dict[str, Any]]:
        return self._data(await self.request("GET", f"/orders/{order_id}")) or []

    async def place_order(self, order: PlaceOrder) -> str:
        """Place an order and return its ``order_id``."""
        validate_order(order.order_type, order.quantity, order.price, order.trigger_price)
        exchange = validate_exchange(order.exchange)
        payload = order.to_payload()
        payload["exchange"] = exchange
        payload["tradingsymbol"] = order.tradingsymbol.upper()

        data = self._data(
            await self.request("POST", f"/orders/{order.variety.value}", data=payload)
        )
        order_id = (data or {}).get("order_id", "")
        logger.info(
            "Order placed: %s %s %s:%s qty=%d id=%s",
            order.transaction_type.value,
            order.order_type.value,
            exchange,
            payload["tradingsymbol"],
            order.quantity,
            order_id,
        )
        return order_id

    async def modify_order(
        self,
        order_id: str,
        changes: ModifyOrder,
        variety: Variety = Variety.REGULAR,
    ) -> str:
        payload = changes.to_payload()
        if not payload:
            raise ValidationError("Nothing to modify: supply quantity, price or trigger price")
        if changes.quantity is not None and changes.quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        data = self._data(
            await self.request("PUT", f"/orders/{variety.value}/{order_id}", data=payload)
        )
        return (data or {}).get("order_id", order_id)

    async def cancel_order(self, order_id: str, variety: Variety = Variety.REGULAR) -> str:
        data = self._data(await self.request("DELETE", f"/orders/{variety.value}/{order_id}"))
        return (data or {}).get("order_id", order_id)

    async def list_trades(self, order_id: str | None = None) -> list[dict[str, Any]]:
        path = f"/orders/{order_id}/trades" if order_id else "/trades"
        return self._data(await self.request("GET", path)) or []

    # ── Portfolio ──────────────────────────────────────────────────────────

    async def get_holdings(self) -> list[dict[str, Any]]:
        return self._data(await self.request("GET", "/portfolio/holdings")) or []

    async def get_positions(self) -> dict[str, Any]:
        """Net and day positions: ``{"net": [...], "day": [...]}``."""
        return self._data(await self.request("GET", "/portfolio/positions")) or {}

    async def convert_position(self, conversion: ConvertPosition) -> bool:
        if conversion.quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        payload = conversion.to_payload()
        payload["exchange"] = validate_exchange(conversion.exchange)
        return bool(self._data(await self.request("PUT", "/portfolio/positions", data=payload)))

    # ── Margins ────────────────────────────────────────────────────────────

    async def get_margins(self, segment: MarginSegment | None = None) -> dict[str, Any]:
        path = f"/user/margins/{segment.value}" if segment else "/user/margins"
        return self._data(await self.request("GET", path)) or {}

    # ── GTT ────────────────────────────────────────────────────────────────

    @staticmethod
    def _check_gtt(gtt: PlaceGTT) -> None:
        validate_exchange(gtt.exchange)
        if len(gtt.legs) not in (1, 2):
            raise ValidationError("A GTT needs one leg (single) or two legs (OCO)")
        for leg in gtt.legs:
            validate_order(leg.order_type, leg.quantity, leg.price, leg.trigger_price)

    async def list_gtt(self) -> list[dict[str, Any]]:
        return self._data(await self.request("GET", "/gtt/triggers")) or []

    async def get_gtt(self, trigger_id: int) -> dict[str, Any]:
        return self._data(await self.request("GET", f"/gtt/triggers/{trigger_id}")) or {}

    async def create_gtt(self, gtt: PlaceGTT) -> int:
        """Create a GTT trigger and return its ``trigger_id``."""
        self._check_gtt(gtt)
        data = self._data(await self.request("POST", "/gtt/triggers", data=gtt.to_payload()))
        return int((data or {}).get("trigger_id", 0))

    async def modify_gtt(self, trigger_id: int, gtt: PlaceGTT) -> int:
        self._check_gtt(gtt)
        data = self._data(
            await self.request("PUT", f"/gtt/triggers/{trigger_id}", data=gtt.to_payload())
        )
        return int((data or {}).get("trigger_id", trigger_id))

    async def delete_gtt(self, trigger_id: int) -> int:
        data = self._data(await self.request("DELETE", f"/gtt/triggers/{trigger_id}"))
        return int((data or {}).get("trigger_id", trigger_id))
