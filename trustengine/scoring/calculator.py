"""Trust score calculation from a user's recommendation history."""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from ..config.settings import ScoringConfig
from ..core.errors import TrustScoreCalculationError
from ..core.interfaces import Evaluator, MarketDataSource, ProfileStore
from ..core.types import (
    PerformanceResult,
    Recommendation,
    RecommendationType,
    UserTrustProfile,
)
from ..filters.rug_heuristics import ScamRugDetector
from .performance import PerformanceEvaluator

logger = structlog.get_logger(__name__)


def clamp(value: float, bound: float) -> float:
    return max(-bound, min(bound, value))


def score_delta(
    recommendation: Recommendation,
    performance: PerformanceResult,
    config: ScoringConfig,
) -> float:
    """Convert one evaluated recommendation into a signed score contribution.

    A scam/rug outcome overrides the percentage: promoting the token costs
    `scam_penalty`, warning against it earns `scam_bonus`. Otherwise the
    profit (BUY) or avoided loss (SELL) is clamped to `profit_clamp_percent`
    and scaled by the conviction weight.
    """
    is_buy = recommendation.recommendation_type is RecommendationType.BUY

    if performance.is_scam_or_rug:
        return -config.scam_penalty if is_buy else config.scam_bonus

    if is_buy:
        pct = performance.potential_profit_percent
    else:
        pct = performance.avoided_loss_percent
    if pct is None:
        return 0.0

    weight = config.conviction_weight.for_conviction(recommendation.conviction)
    return clamp(pct, config.profit_clamp_percent) * weight


class TrustScoreCalculator:
    """Recompute and persist a user's trust score from their full history."""

    def __init__(
        self,
        market_data: MarketDataSource,
        store: ProfileStore,
        config: ScoringConfig | None = None,
        evaluator: Evaluator | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize calculator.

        Args:
            market_data: Source of merged token market data
            store: Profile persistence
            config: Scoring thresholds and weights
            evaluator: Optional evaluator (defaults to one using `config`)
            now_fn: Optional clock for the calculation timestamp (for testing)
        """
        self.market_data = market_data
        self.store = store
        self.config = config or ScoringConfig()
        self.evaluator = evaluator or PerformanceEvaluator(
            ScamRugDetector(self.config)
        )
        self._now_fn = now_fn or (lambda: datetime.now(UTC))

    async def _load_profile(self, user_id: str) -> UserTrustProfile | None:
        try:
            return await self.store.get(user_id)
        except Exception as e:
            logger.error("Failed to load trust profile", user_id=user_id, error=str(e))
            raise TrustScoreCalculationError(user_id, f"profile read failed: {e}") from e

    async def _score_recommendation(self, recommendation: Recommendation) -> float:
        """Score contribution of one recommendation; 0 when it cannot be scored."""
        anomaly = recommendation.scoring_anomaly()
        if anomaly is not None:
            logger.warning(
                "Skipping invalid recommendation",
                recommendation_id=recommendation.id,
                user_id=recommendation.user_id,
                reason=anomaly,
            )
            return 0.0

        try:
            token_data = await self.market_data.get_token_market_data(
                recommendation.token_address, recommendation.chain
            )
        except Exception as e:
            logger.warning(
                "Market data lookup failed",
                recommendation_id=recommendation.id,
                token_address=recommendation.token_address,
                error=str(e),
            )
            token_data = None

        if token_data is None:
            logger.info(
                "No market data, recommendation unscored",
                recommendation_id=recommendation.id,
                token_address=recommendation.token_address,
            )
            return 0.0

        try:
            performance = self.evaluator.evaluate(recommendation, token_data)
        except Exception as e:
            logger.warning(
                "Recommendation evaluation failed",
                recommendation_id=recommendation.id,
                token_address=recommendation.token_address,
                error=str(e),
            )
            return 0.0

        delta = score_delta(recommendation, performance, self.config)

        logger.debug(
            "Recommendation scored",
            recommendation_id=recommendation.id,
            token_address=recommendation.token_address,
            delta=delta,
            is_scam_or_rug=performance.is_scam_or_rug,
        )
        return delta

    async def compute_trust_score(self, profile: UserTrustProfile) -> float:
        """Sum score contributions over the profile's whole history."""
        total = 0.0
        # sequential so a shared market data cache sees one request per token
        for recommendation in profile.recommendations:
            total += await self._score_recommendation(recommendation)
        return total

    async def calculate_user_trust_score(
        self, user_id: str, world_id: str | None = None
    ) -> None:
        """Recalculate a user's trust score and persist it.

        Creates an empty profile (score 0) for unknown users.

        Args:
            user_id: User to recalculate
            world_id: Scope recorded on a newly created profile

        Raises:
            TrustScoreCalculationError: If the profile store fails
        """
        profile = await self._load_profile(user_id)

        if profile is None:
            profile = UserTrustProfile(
                user_id=user_id,
                trust_score=0.0,
                last_trust_score_calculation_timestamp=self._now_fn(),
                recommendations=[],
            )
            try:
                component_id = await self.store.create(profile, world_id)
            except Exception as e:
                logger.error(
                    "Failed to create trust profile", user_id=user_id, error=str(e)
                )
                raise TrustScoreCalculationError(
                    user_id, f"profile create failed: {e}"
                ) from e
            logger.info(
                "Created trust profile", user_id=user_id, component_id=component_id
            )
            return

        trust_score = await self.compute_trust_score(profile)

        updated = profile.model_copy(
            update={
                "trust_score": trust_score,
                "last_trust_score_calculation_timestamp": self._now_fn(),
            }
        )
        try:
            await self.store.update(updated)
        except Exception as e:
            logger.error("Failed to persist trust score", user_id=user_id, error=str(e))
            raise TrustScoreCalculationError(
                user_id, f"profile update failed: {e}"
            ) from e

        logger.info(
            "Trust score updated",
            user_id=user_id,
            trust_score=trust_score,
            previous_score=profile.trust_score,
            recommendations=len(profile.recommendations),
        )
