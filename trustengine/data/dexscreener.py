"""DexScreener pair search client."""

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from ..core.interfaces import PairSearchProvider
from ..core.types import DexPair, SupportedChain
from .http import AsyncLRUCache, JsonApiClient

logger = structlog.get_logger(__name__)


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def map_dexscreener_pair(data: dict[str, Any]) -> DexPair:
    """Map a DexScreener pair payload to DexPair.

    Args:
        data: Raw pair object from the search endpoint

    Returns:
        DexPair with normalized numeric fields
    """
    base_token = data.get("baseToken") or {}
    liquidity = data.get("liquidity") or {}
    volume = data.get("volume") or {}
    price_change = {
        window: _as_float(pct)
        for window, pct in (data.get("priceChange") or {}).items()
        if pct is not None
    }

    created_at = None
    if data.get("pairCreatedAt"):
        try:
            created_at = datetime.fromtimestamp(
                int(data["pairCreatedAt"]) / 1000, tz=UTC
            )
        except (ValueError, TypeError, OverflowError, OSError):
            created_at = None

    return DexPair(
        chain_id=data.get("chainId", ""),
        dex_id=data.get("dexId", "unknown"),
        pair_address=data.get("pairAddress", ""),
        base_address=base_token.get("address", ""),
        base_name=base_token.get("name"),
        base_symbol=base_token.get("symbol"),
        price_usd=_as_float(data.get("priceUsd")),
        liquidity_usd=(
            _as_float(liquidity["usd"]) if liquidity.get("usd") is not None else None
        ),
        market_cap=_as_float(data.get("marketCap")),
        fdv=_as_float(data.get("fdv")),
        volume_24h=_as_float(volume.get("h24")),
        price_change=price_change,
        pair_created_at=created_at,
    )


def select_highest_liquidity_pair(
    pairs: list[DexPair], address: str, chain: SupportedChain
) -> DexPair | None:
    """Pick the most liquid pair trading `address` as base token on `chain`."""
    best = None
    for pair in pairs:
        if pair.chain_id and pair.chain_id.lower() != chain.value:
            continue
        if pair.base_address and pair.base_address.lower() != address.lower():
            continue
        if best is None or (pair.liquidity_usd or 0.0) > (best.liquidity_usd or 0.0):
            best = pair
    return best


class DexScreenerClient(JsonApiClient, PairSearchProvider):
    """DexScreener API client for pair lookups."""

    name = "DexScreener"

    def __init__(
        self,
        base_url: str = "https://api.dexscreener.com",
        session: httpx.AsyncClient | None = None,
        cache_ttl: int = 300,
        retry_attempts: int = 3,
    ) -> None:
        """Initialize DexScreener client.

        Args:
            base_url: DexScreener API base URL
            session: Optional httpx client session
            cache_ttl: Search cache TTL in seconds
            retry_attempts: Attempts per request for retryable errors
        """
        # 30 requests per minute (conservative)
        super().__init__(
            base_url,
            session=session,
            rate_capacity=30,
            rate_per_minute=30,
            retry_attempts=retry_attempts,
        )
        self.cache = AsyncLRUCache(maxsize=1000, ttl=cache_ttl)

    async def search(self, query: str) -> list[DexPair]:
        """Search pairs by token address, symbol or name.

        Returns:
            Parsed pairs; empty on failure or no match
        """
        cache_key = f"search:{query}"
        cached_result = self.cache.get(cache_key)
        if cached_result is not None:
            logger.debug("Cache hit for search", query=query)
            return cached_result

        try:
            response_data = await self._make_request(
                "latest/dex/search", params={"q": query}
            )
        except httpx.HTTPStatusError as e:
            logger.error(
                "HTTP error in DexScreener search", query=query, error=str(e)
            )
            return []
        except Exception as e:
            logger.error("Failed DexScreener search", query=query, error=str(e))
            return []

        pairs = []
        for pair_data in response_data.get("pairs") or []:
            try:
                pairs.append(map_dexscreener_pair(pair_data))
            except Exception as e:
                logger.warning(
                    "Failed to map pair data",
                    pair_address=pair_data.get("pairAddress"),
                    error=str(e),
                )
                continue

        self.cache.set(cache_key, pairs)
        logger.debug("DexScreener search completed", query=query, count=len(pairs))
        return pairs

    async def search_for_highest_liquidity_pair(
        self, address: str, chain: SupportedChain = SupportedChain.SOLANA
    ) -> DexPair | None:
        """Return the most liquid pair for a token on a chain."""
        pairs = await self.search(address)
        best = select_highest_liquidity_pair(pairs, address, chain)
        if best is None:
            logger.info("No pair found", token_address=address, chain=chain.value)
        return best
