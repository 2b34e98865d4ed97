"""Merge analytics and pair search data into one TokenAPIData snapshot."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, NamedTuple

import structlog

from ..core.interfaces import AnalyticsProvider, MarketDataSource, PairSearchProvider
from ..core.types import (
    DexPair,
    PricePoint,
    SupportedChain,
    TokenAPIData,
    TokenOverview,
    TokenPrice,
    TokenSecurity,
    TradeActivity,
)
from .http import AsyncLRUCache

logger = structlog.get_logger(__name__)

# DexScreener priceChange window -> minutes ago
PAIR_CHANGE_WINDOWS = {"h24": 1440, "h6": 360, "h1": 60, "m5": 5}


class PriceCandidate(NamedTuple):
    source: str
    price: float
    liquidity: float
    ts: datetime


class ProviderResults(NamedTuple):
    overview: TokenOverview | None
    price: TokenPrice | None
    security: TokenSecurity | None
    trade: TradeActivity | None
    pair: DexPair | None


def choose_price(candidates: Iterable[PriceCandidate]) -> PriceCandidate | None:
    """Prefer the most liquid quote, then the most recent one."""
    usable = [c for c in candidates if c.price > 0]
    if not usable:
        return None
    return max(usable, key=lambda c: (c.liquidity, c.ts))


def build_price_history(
    current_price: float,
    now: datetime,
    trade: TradeActivity | None,
    pair: DexPair | None,
) -> list[PricePoint]:
    """Reconstruct a chronological price series ending at the current price."""
    points: dict[int, float] = {}

    if trade is not None and trade.historical_prices:
        points.update(trade.historical_prices)
    elif pair is not None:
        for window, minutes in PAIR_CHANGE_WINDOWS.items():
            pct = pair.price_change.get(window)
            if pct is None or pct <= -100:
                continue
            points[minutes] = current_price / (1 + pct / 100)

    history = [
        PricePoint(timestamp=now - timedelta(minutes=minutes), price=price)
        for minutes, price in points.items()
        if price > 0
    ]
    history.sort(key=lambda p: p.timestamp)
    history.append(PricePoint(timestamp=now, price=current_price))
    return history


def merge_liquidity(*reported: float | None) -> float | None:
    """First positive reported liquidity, 0 if sources only reported zero.

    None means no source reported liquidity at all, which is distinct from
    a pool that has been drained.
    """
    known = [value for value in reported if value is not None]
    if not known:
        return None
    return next((value for value in known if value > 0), 0.0)


def merge_token_data(
    results: ProviderResults,
    token_address: str,
    now: datetime,
    denylist: set[str] | None = None,
) -> TokenAPIData | None:
    """Merge provider responses; None when no source produced a usable price."""
    overview, price, security, trade, pair = results

    overview_liquidity = (overview.liquidity if overview else None) or 0.0
    candidates = []
    if price is not None:
        candidates.append(
            PriceCandidate(
                "birdeye:price",
                price.value,
                price.liquidity or overview_liquidity,
                price.ts,
            )
        )
    if trade is not None and trade.price is not None:
        candidates.append(
            PriceCandidate(
                "birdeye:trade",
                trade.price,
                overview_liquidity,
                trade.last_trade_at or now,
            )
        )
    if overview is not None and overview.price is not None:
        # overview carries no timestamp of its own
        candidates.append(
            PriceCandidate(
                "birdeye:overview",
                overview.price,
                overview_liquidity,
                datetime.min.replace(tzinfo=UTC),
            )
        )
    if pair is not None:
        candidates.append(
            PriceCandidate(
                "dexscreener", pair.price_usd, pair.liquidity_usd or 0.0, now
            )
        )

    chosen = choose_price(candidates)
    if chosen is None:
        return None

    liquidity = merge_liquidity(
        overview.liquidity if overview else None,
        price.liquidity if price else None,
        pair.liquidity_usd if pair else None,
    )

    market_cap = overview.market_cap if overview else 0.0
    if not market_cap and pair is not None:
        market_cap = pair.market_cap or pair.fdv

    name = (overview.name if overview else None) or (
        pair.base_name if pair else None
    )
    symbol = (overview.symbol if overview else None) or (
        pair.base_symbol if pair else None
    )

    is_known_scam = bool(security and security.fake_token) or (
        token_address in (denylist or set())
    )

    sources = []
    if any(r is not None for r in (overview, price, security, trade)):
        sources.append("birdeye")
    if pair is not None:
        sources.append("dexscreener")

    return TokenAPIData(
        current_price=chosen.price,
        name=name or "Unknown",
        symbol=symbol or "",
        price_history=build_price_history(chosen.price, now, trade, pair),
        liquidity=liquidity,
        market_cap=market_cap,
        is_known_scam=is_known_scam,
        sources=sources,
    )


class MarketDataAggregator(MarketDataSource):
    """Fan out to analytics and pair search providers and merge the results."""

    def __init__(
        self,
        analytics: AnalyticsProvider | None,
        pair_search: PairSearchProvider | None,
        timeout_seconds: float = 15.0,
        cache_ttl: float = 300,
        denylist: Iterable[str] = (),
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize aggregator.

        Args:
            analytics: Analytics provider, or None if unavailable
            pair_search: DEX pair search provider, or None if unavailable
            timeout_seconds: Bound on each provider call
            cache_ttl: Snapshot cache TTL in seconds, 0 disables caching
            denylist: Token addresses always treated as known scams
            now_fn: Optional clock (for testing)
        """
        self.analytics = analytics
        self.pair_search = pair_search
        self.timeout_seconds = timeout_seconds
        self.denylist = set(denylist)
        self.cache = AsyncLRUCache(maxsize=1000, ttl=cache_ttl) if cache_ttl else None
        self._now_fn = now_fn or (lambda: datetime.now(UTC))
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = {}

    async def _safe_call(
        self, source: str, call: Callable[[], Awaitable[Any]], token_address: str
    ) -> Any | None:
        """Run one provider call with a timeout; failures become None."""
        try:
            return await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except TimeoutError:
            logger.warning(
                "Market data source timed out",
                source=source,
                token_address=token_address,
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "Market data source failed",
                source=source,
                token_address=token_address,
                error=str(e),
            )
        return None

    async def _fetch(
        self, token_address: str, chain: SupportedChain
    ) -> ProviderResults:
        async def none() -> None:
            return None

        analytics = self.analytics
        pair_search = self.pair_search

        calls = [
            (
                "birdeye.overview",
                (lambda: analytics.fetch_token_overview(token_address, chain))
                if analytics
                else none,
            ),
            (
                "birdeye.price",
                (lambda: analytics.fetch_price(token_address, chain))
                if analytics
                else none,
            ),
            (
                "birdeye.security",
                (lambda: analytics.fetch_token_security(token_address, chain))
                if analytics
                else none,
            ),
            (
                "birdeye.trade_data",
                (lambda: analytics.fetch_token_trade_data(token_address, chain))
                if analytics
                else none,
            ),
            (
                "dexscreener.best_pair",
                (
                    lambda: pair_search.search_for_highest_liquidity_pair(
                        token_address, chain
                    )
                )
                if pair_search
                else none,
            ),
        ]

        results = await asyncio.gather(
            *(self._safe_call(source, call, token_address) for source, call in calls)
        )
        return ProviderResults(*results)

    async def _lookup(
        self, cache_key: str, token_address: str, chain: SupportedChain
    ) -> TokenAPIData | None:
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("Cache hit for token", token_address=token_address)
                return cached

        results = await self._fetch(token_address, chain)
        token_data = merge_token_data(
            results, token_address, self._now_fn(), self.denylist
        )

        if token_data is None:
            logger.warning(
                "No usable market data from any source",
                token_address=token_address,
                chain=chain.value,
            )
            return None

        if self.cache is not None:
            self.cache.set(cache_key, token_data)

        logger.debug(
            "Merged market data",
            token_address=token_address,
            price=token_data.current_price,
            liquidity=token_data.liquidity,
            sources=token_data.sources,
        )
        return token_data

    async def get_token_market_data(
        self, token_address: str, chain: SupportedChain = SupportedChain.SOLANA
    ) -> TokenAPIData | None:
        """Return merged market data, or None if no source recognizes the token.

        Concurrent lookups of one token share a lock so only the first one
        fetches; the lock is dropped once no lookup holds or awaits it.
        """
        cache_key = f"{chain.value}:{token_address}"
        lock = self._locks.setdefault(cache_key, asyncio.Lock())
        self._lock_holders[cache_key] = self._lock_holders.get(cache_key, 0) + 1

        try:
            async with lock:
                return await self._lookup(cache_key, token_address, chain)
        finally:
            self._lock_holders[cache_key] -= 1
            if self._lock_holders[cache_key] == 0:
                del self._lock_holders[cache_key]
                del self._locks[cache_key]
