"""Core interfaces for the trust scoring engine."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from .types import (
    DexPair,
    PerformanceResult,
    Recommendation,
    SupportedChain,
    TokenAPIData,
    TokenOverview,
    TokenPrice,
    TokenSecurity,
    TradeActivity,
    UserTrustProfile,
)


class AnalyticsProvider(Protocol):
    """Token analytics API (overview, price, security, trade activity)."""

    async def fetch_token_overview(
        self, address: str, chain: SupportedChain
    ) -> TokenOverview | None:
        """Fetch token overview."""
        ...

    async def fetch_price(
        self, address: str, chain: SupportedChain
    ) -> TokenPrice | None:
        """Fetch current price."""
        ...

    async def fetch_token_security(
        self, address: str, chain: SupportedChain
    ) -> TokenSecurity | None:
        """Fetch security and holder metadata."""
        ...

    async def fetch_token_trade_data(
        self, address: str, chain: SupportedChain
    ) -> TradeActivity | None:
        """Fetch trade and volume activity."""
        ...


class PairSearchProvider(Protocol):
    """DEX pair search API."""

    async def search(self, query: str) -> list[DexPair]:
        """Search pairs matching a token address or symbol."""
        ...

    async def search_for_highest_liquidity_pair(
        self, address: str, chain: SupportedChain
    ) -> DexPair | None:
        """Return the most liquid pair of a token on a chain."""
        ...


@runtime_checkable
class MarketDataSource(Protocol):
    """Merged market data lookup."""

    async def get_token_market_data(
        self, token_address: str, chain: SupportedChain
    ) -> TokenAPIData | None:
        """Return a normalized snapshot or None if no usable data exists."""
        ...


class ScamDetector(Protocol):
    """Scam/rug classifier."""

    def is_likely_scam_or_rug(
        self,
        token_data: TokenAPIData,
        recommendation_timestamp: datetime,
        reference_price: float | None = None,
    ) -> bool:
        """Classify a token snapshot relative to a recommendation time and price."""
        ...


class Evaluator(Protocol):
    """Recommendation performance evaluator."""

    def evaluate(
        self, recommendation: Recommendation, token_data: TokenAPIData
    ) -> PerformanceResult:
        """Evaluate one recommendation against market data."""
        ...


class ProfileStore(Protocol):
    """Persistence for user trust profiles."""

    async def get(self, user_id: str) -> UserTrustProfile | None:
        """Load a profile, or None if the user has none."""
        ...

    async def create(
        self, profile: UserTrustProfile, world_id: str | None = None
    ) -> str:
        """Create a profile and return its component ID."""
        ...

    async def update(self, profile: UserTrustProfile) -> None:
        """Overwrite an existing profile."""
        ...

    async def list_all_user_ids(self, world_id: str | None = None) -> list[str]:
        """List users that have a profile."""
        ...
