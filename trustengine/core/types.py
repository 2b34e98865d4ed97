"""Core data types for the trust scoring engine."""

import math
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SupportedChain(str, Enum):
    """Chains a recommendation can reference."""

    SOLANA = "solana"
    ETHEREUM = "ethereum"
    BASE = "base"
    BSC = "bsc"
    ARBITRUM = "arbitrum"
    POLYGON = "polygon"


class RecommendationType(str, Enum):
    """Direction of a recommendation."""

    BUY = "BUY"
    SELL = "SELL"


class Conviction(str, Enum):
    """User-asserted confidence attached to a recommendation."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Recommendation(BaseModel):
    """A single recorded BUY/SELL call."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()), description="Recommendation ID"
    )
    user_id: str = Field(description="User who made the call")
    message_id: str | None = Field(default=None, description="Originating message")
    timestamp: datetime = Field(
        default_factory=utc_now, description="When the call was made"
    )
    token_address: str = Field(description="Token mint or contract address")
    token_ticker: str | None = Field(default=None, description="Token ticker")
    chain: SupportedChain = Field(
        default=SupportedChain.SOLANA, description="Chain of the token"
    )
    recommendation_type: RecommendationType = Field(description="BUY or SELL")
    conviction: Conviction = Field(description="Conviction level")
    raw_message_quote: str = Field(default="", description="Quote for audit")
    price_at_recommendation: float | None = Field(
        default=None, description="Reference price in USD at call time"
    )
    processed_for_trade_decision: bool = Field(
        default=False, description="Whether a trade decision consumed this call"
    )

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def scoring_anomaly(self) -> str | None:
        """Return why this recommendation cannot be scored, or None."""
        if not self.token_address or not self.token_address.strip():
            return "missing token address"
        price = self.price_at_recommendation
        if price is None:
            return "missing reference price"
        if not math.isfinite(price) or price <= 0:
            return f"non-positive reference price: {price}"
        return None


class UserTrustProfile(BaseModel):
    """Per-user reputation record."""

    version: str = Field(default="1.0.0", description="Profile schema version")
    user_id: str = Field(description="User identifier")
    trust_score: float = Field(default=0.0, description="Current trust score")
    last_trust_score_calculation_timestamp: datetime = Field(
        default_factory=utc_now, description="Last recalculation time"
    )
    recommendations: list[Recommendation] = Field(
        default_factory=list, description="Recommendations, newest first"
    )

    @field_validator("last_trust_score_calculation_timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class PricePoint(BaseModel):
    """Single point of a price series."""

    timestamp: datetime = Field(description="Point timestamp")
    price: float = Field(description="Price in USD")

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TokenAPIData(BaseModel):
    """Normalized market snapshot for one token."""

    current_price: float = Field(description="Current price in USD")
    name: str = Field(default="Unknown", description="Token name")
    symbol: str = Field(default="", description="Token symbol")
    price_history: list[PricePoint] = Field(
        default_factory=list, description="Chronological price history"
    )
    liquidity: float | None = Field(
        default=None, description="Liquidity in USD, None when no source reported it"
    )
    market_cap: float = Field(default=0.0, description="Market cap in USD")
    is_known_scam: bool = Field(
        default=False, description="Flagged by a provider or denylist"
    )
    sources: list[str] = Field(
        default_factory=list, description="Providers that contributed"
    )


class PerformanceResult(BaseModel):
    """Outcome of evaluating one recommendation."""

    potential_profit_percent: float | None = Field(
        default=None, description="Profit since a BUY call"
    )
    avoided_loss_percent: float | None = Field(
        default=None, description="Loss avoided by a SELL call"
    )
    is_scam_or_rug: bool = Field(description="Token looks like a scam or rug")


class RugAssessment(BaseModel):
    """Scam/rug detector decision."""

    is_scam_or_rug: bool = Field(description="Whether the token is flagged")
    reasons: list[str] = Field(default_factory=list, description="Why")
    drawdown_percent: float = Field(
        default=0.0, description="Drop from post-call peak to current price"
    )


class LeaderboardEntry(BaseModel):
    """Ranked leaderboard row."""

    user_id: str = Field(description="User identifier")
    trust_score: float = Field(description="Persisted trust score")
    rank: int = Field(description="1-based rank")


# Provider records


class TokenOverview(BaseModel):
    """Token overview from the analytics provider."""

    address: str = Field(description="Token address")
    name: str | None = Field(default=None, description="Token name")
    symbol: str | None = Field(default=None, description="Token symbol")
    decimals: int | None = Field(default=None, description="Token decimals")
    price: float | None = Field(default=None, description="Price in USD")
    liquidity: float | None = Field(default=None, description="Liquidity in USD")
    market_cap: float = Field(default=0.0, description="Market cap in USD")


class TokenPrice(BaseModel):
    """Spot price from the analytics provider."""

    value: float = Field(description="Price in USD")
    liquidity: float | None = Field(default=None, description="Liquidity in USD")
    ts: datetime = Field(default_factory=utc_now, description="Price timestamp")


class TokenSecurity(BaseModel):
    """Security / holder metadata from the analytics provider."""

    owner_percentage: float | None = Field(default=None, description="Owner share")
    creator_percentage: float | None = Field(
        default=None, description="Creator share"
    )
    top10_holder_percent: float | None = Field(
        default=None, description="Top 10 holders share"
    )
    freezeable: bool | None = Field(default=None, description="Freeze authority")
    fake_token: bool = Field(default=False, description="Provider fake-token flag")


class TradeActivity(BaseModel):
    """Trade / volume activity from the analytics provider."""

    price: float | None = Field(default=None, description="Last trade price")
    holders: int | None = Field(default=None, description="Holder count")
    volume_24h_usd: float = Field(default=0.0, description="24h volume in USD")
    last_trade_at: datetime | None = Field(
        default=None, description="Last trade timestamp"
    )
    historical_prices: dict[int, float] = Field(
        default_factory=dict, description="Price N minutes ago, keyed by N"
    )


class DexPair(BaseModel):
    """Trading pair from the DEX pair search provider."""

    chain_id: str = Field(description="Chain identifier")
    dex_id: str = Field(default="unknown", description="DEX identifier")
    pair_address: str = Field(description="Pair address")
    base_address: str = Field(description="Base token address")
    base_name: str | None = Field(default=None, description="Base token name")
    base_symbol: str | None = Field(default=None, description="Base token symbol")
    price_usd: float = Field(default=0.0, description="Price in USD")
    liquidity_usd: float | None = Field(default=None, description="Liquidity in USD")
    market_cap: float = Field(default=0.0, description="Market cap in USD")
    fdv: float = Field(default=0.0, description="Fully diluted valuation")
    volume_24h: float = Field(default=0.0, description="24h volume in USD")
    price_change: dict[str, float] = Field(
        default_factory=dict, description="Percent change keyed by window (m5, h1...)"
    )
    pair_created_at: datetime | None = Field(
        default=None, description="Pair creation time"
    )
