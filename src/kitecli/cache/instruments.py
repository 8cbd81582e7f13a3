"""
Instrument cache: one CSV file per exchange with a 24h TTL.

The bulk instrument dump is several megabytes per exchange; this cache
avoids downloading it on every invocation.

Usage::

    cache = InstrumentCache()
    instruments = await cache.load_or_refresh("NSE", client.fetch_instruments)
    cache.info().files          # [CacheFile(exchange="nse", size=..., ...)]
    cache.clear_all()

Validity is evaluated from the file's modification time on every query;
no "is valid" flag is kept in memory. A corrupt file surfaces as
``ParseError`` and is never repaired automatically; pass
``force_refresh=True`` to overwrite it.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from pathlib import Path

from kitecli.broker.errors import CacheMiss, ParseError
from kitecli.broker.types import CacheFile, CacheInfo, Instrument
from kitecli.cache.instrument_csv import dump_instruments, parse_instruments
from kitecli.config import settings

logger = logging.getLogger(__name__)

_SUFFIX = ".csv"

InstrumentFetcher = Callable[[str], Awaitable[list[Instrument]]]


class InstrumentCache:
    """File-backed, per-exchange instrument cache."""

    def __init__(
        self,
        cache_dir: Path | None = None,
        ttl: float | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_dir = cache_dir or settings.cache_dir
        self.ttl = settings.instrument_cache_ttl_hours * 3600 if ttl is None else ttl
        self._clock = clock

    def path_for(self, exchange: str) -> Path:
        return self.cache_dir / f"{exchange.strip().lower()}{_SUFFIX}"

    # ── Validity ───────────────────────────────────────────────────────────

    def age_seconds(self, exchange: str) -> float | None:
        """Seconds since the exchange file was written, ``None`` if absent."""
        try:
            mtime = self.path_for(exchange).stat().st_mtime
        except FileNotFoundError:
            return None
        return self._clock() - mtime

    def is_valid(self, exchange: str) -> bool:
        age = self.age_seconds(exchange)
        return age is not None and age < self.ttl

    # ── Load / save ────────────────────────────────────────────────────────

    def load(self, exchange: str) -> list[Instrument]:
        """Read the cached records for *exchange*.

        Raises:
            CacheMiss: No cache file exists.
            ParseError: The file is malformed.
        """
        path = self.path_for(exchange)
        try:
            with path.open(encoding="utf-8", newline="") as fh:
                text = fh.read()
        except FileNotFoundError:
            raise CacheMiss(f"Cache file not found for exchange: {exchange}") from None
        except UnicodeDecodeError as e:
            raise ParseError(f"Cache file {path} is not valid UTF-8: {e}") from e
        return parse_instruments(text, source=f"cache file {path.name}")

    def save(self, exchange: str, instruments: list[Instrument]) -> Path:
        """Overwrite the cache file for *exchange* with *instruments*."""
        path = self.path_for(exchange)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8", newline="") as fh:
            fh.write(dump_instruments(instruments))
        os.replace(tmp, path)
        logger.info("Cached %d instruments for %s at %s", len(instruments), exchange, path)
        return path

    async def load_or_refresh(
        self,
        exchange: str,
        fetcher: InstrumentFetcher,
        force_refresh: bool = False,
    ) -> list[Instrument]:
        """Return cached records, fetching through *fetcher* when stale.

        This is the only path that couples the cache to the network.
        """
        if force_refresh or not await asyncio.to_thread(self.is_valid, exchange):
            logger.info(
                "Instrument cache for %s %s, fetching",
                exchange,
                "refresh requested" if force_refresh else "is missing or expired",
            )
            instruments = await fetcher(exchange)
            await asyncio.to_thread(self.save, exchange, instruments)
            return instruments

        logger.debug("Loading %s instruments from cache", exchange)
        return await asyncio.to_thread(self.load, exchange)

    # ── Maintenance ────────────────────────────────────────────────────────

    def _cache_files(self) -> list[Path]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(p for p in self.cache_dir.iterdir() if p.is_file() and p.suffix == _SUFFIX)

    def info(self) -> CacheInfo:
        """List cached exchange files with size and modification time."""
        files = []
        for path in self._cache_files():
            stat = path.stat()
            files.append(
                CacheFile(
                    exchange=path.stem,
                    path=path,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return CacheInfo(cache_dir=self.cache_dir, files=files)

    def clear_all(self) -> int:
        """Delete every cached exchange file. Returns the number removed."""
        removed = 0
        for path in self._cache_files():
            path.unlink()
            removed += 1
            logger.info("Removed cache file %s", path.name)
        logger.info("Cleared %d cache file(s)", removed)
        return removed
