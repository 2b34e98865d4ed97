"""Birdeye analytics API client."""

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from ..core.interfaces import AnalyticsProvider
from ..core.types import (
    SupportedChain,
    TokenOverview,
    TokenPrice,
    TokenSecurity,
    TradeActivity,
)
from .http import JsonApiClient

logger = structlog.get_logger(__name__)

# trade-data field suffix -> minutes ago
HISTORY_WINDOWS = {
    "30m": 30,
    "1h": 60,
    "2h": 120,
    "4h": 240,
    "6h": 360,
    "8h": 480,
    "12h": 720,
    "24h": 1440,
}


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _from_unix(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def map_birdeye_overview(data: dict[str, Any]) -> TokenOverview:
    """Map a Birdeye token_overview payload to TokenOverview."""
    market_cap = data.get("marketCap")
    if market_cap is None:
        market_cap = data.get("mc")

    price = data.get("price")
    liquidity = data.get("liquidity")

    return TokenOverview(
        address=data.get("address", ""),
        name=data.get("name"),
        symbol=data.get("symbol"),
        decimals=data.get("decimals"),
        price=_as_float(price) if price is not None else None,
        liquidity=_as_float(liquidity) if liquidity is not None else None,
        market_cap=_as_float(market_cap),
    )


def map_birdeye_price(data: dict[str, Any]) -> TokenPrice:
    """Map a Birdeye price payload to TokenPrice."""
    ts = _from_unix(data.get("updateUnixTime")) or datetime.now(UTC)
    liquidity = data.get("liquidity")
    return TokenPrice(
        value=_as_float(data.get("value")),
        liquidity=_as_float(liquidity) if liquidity is not None else None,
        ts=ts,
    )


def map_birdeye_security(data: dict[str, Any]) -> TokenSecurity:
    """Map a Birdeye token_security payload to TokenSecurity."""
    owner = data.get("ownerPercentage")
    creator = data.get("creatorPercentage")
    top10 = data.get("top10HolderPercent")
    return TokenSecurity(
        owner_percentage=_as_float(owner) if owner is not None else None,
        creator_percentage=_as_float(creator) if creator is not None else None,
        top10_holder_percent=_as_float(top10) if top10 is not None else None,
        freezeable=data.get("freezeable"),
        # fakeToken is null for genuine tokens and an object/true otherwise
        fake_token=bool(data.get("fakeToken")),
    )


def map_birdeye_trade_data(data: dict[str, Any]) -> TradeActivity:
    """Map a Birdeye trade-data payload to TradeActivity."""
    historical_prices = {}
    for suffix, minutes in HISTORY_WINDOWS.items():
        price = data.get(f"history_{suffix}_price")
        if price is not None and _as_float(price) > 0:
            historical_prices[minutes] = _as_float(price)

    price = data.get("price")
    holders = data.get("holder")

    return TradeActivity(
        price=_as_float(price) if price is not None else None,
        holders=int(holders) if holders is not None else None,
        volume_24h_usd=_as_float(data.get("volume_24h_usd")),
        last_trade_at=_from_unix(data.get("last_trade_unix_time")),
        historical_prices=historical_prices,
    )


class BirdeyeClient(JsonApiClient, AnalyticsProvider):
    """Birdeye API client for token analytics."""

    name = "Birdeye"

    def __init__(
        self,
        base_url: str = "https://public-api.birdeye.so",
        api_key: str | None = None,
        session: httpx.AsyncClient | None = None,
        retry_attempts: int = 3,
    ) -> None:
        """Initialize Birdeye client.

        Args:
            base_url: Birdeye API base URL
            api_key: Optional API key
            session: Optional httpx client session
            retry_attempts: Attempts per request for retryable errors
        """
        # 60 requests per minute
        super().__init__(
            base_url,
            session=session,
            rate_capacity=60,
            rate_per_minute=60,
            retry_attempts=retry_attempts,
        )
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        return headers

    async def _fetch_data(
        self,
        endpoint: str,
        address: str,
        chain: SupportedChain,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch the `data` object of a Birdeye envelope, or None on failure."""
        try:
            response_data = await self._make_request(
                endpoint,
                params={"address": address, **(params or {})},
                headers={"x-chain": chain.value},
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info("Token not found", endpoint=endpoint, token_address=address)
                return None
            logger.error(
                "HTTP error in Birdeye lookup",
                endpoint=endpoint,
                token_address=address,
                error=str(e),
            )
            return None
        except Exception as e:
            logger.error(
                "Failed Birdeye lookup",
                endpoint=endpoint,
                token_address=address,
                error=str(e),
            )
            return None

        if not isinstance(response_data, dict):
            return None
        data = response_data.get("data")
        if not response_data.get("success", True) or not isinstance(data, dict):
            logger.info(
                "Birdeye returned no data", endpoint=endpoint, token_address=address
            )
            return None
        return data

    async def fetch_token_overview(
        self, address: str, chain: SupportedChain = SupportedChain.SOLANA
    ) -> TokenOverview | None:
        """Fetch token overview (name, symbol, liquidity, market cap)."""
        data = await self._fetch_data("defi/token_overview", address, chain)
        if data is None:
            return None
        overview = map_birdeye_overview({"address": address, **data})
        logger.debug("Fetched token overview", token_address=address)
        return overview

    async def fetch_price(
        self, address: str, chain: SupportedChain = SupportedChain.SOLANA
    ) -> TokenPrice | None:
        """Fetch current price."""
        data = await self._fetch_data(
            "defi/price", address, chain, params={"include_liquidity": "true"}
        )
        if data is None or data.get("value") is None:
            return None
        return map_birdeye_price(data)

    async def fetch_token_security(
        self, address: str, chain: SupportedChain = SupportedChain.SOLANA
    ) -> TokenSecurity | None:
        """Fetch security and holder concentration metadata."""
        data = await self._fetch_data("defi/token_security", address, chain)
        if data is None:
            return None
        return map_birdeye_security(data)

    async def fetch_token_trade_data(
        self, address: str, chain: SupportedChain = SupportedChain.SOLANA
    ) -> TradeActivity | None:
        """Fetch trade activity and historical prices."""
        data = await self._fetch_data(
            "defi/v3/token/trade-data/single", address, chain
        )
        if data is None:
            return None
        return map_birdeye_trade_data(data)
