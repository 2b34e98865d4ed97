"""Recommendation performance evaluation."""

import structlog

from ..core.interfaces import Evaluator, ScamDetector
from ..core.types import (
    PerformanceResult,
    Recommendation,
    RecommendationType,
    TokenAPIData,
)
from ..filters.rug_heuristics import ScamRugDetector

logger = structlog.get_logger(__name__)


def percent_change(reference: float, current: float) -> float:
    """Percent move from reference to current."""
    if reference <= 0:
        raise ValueError(f"Reference price must be positive, got {reference}")
    return (current - reference) / reference * 100


class PerformanceEvaluator(Evaluator):
    """Compute profit or avoided loss and attach the scam flag."""

    def __init__(self, detector: ScamDetector | None = None) -> None:
        self.detector = detector or ScamRugDetector()

    def evaluate(
        self, recommendation: Recommendation, token_data: TokenAPIData
    ) -> PerformanceResult:
        """Evaluate one recommendation against current market data.

        Args:
            recommendation: A scorable recommendation
            token_data: Market snapshot for the recommended token

        Returns:
            PerformanceResult with the direction-specific percentage set

        Raises:
            ValueError: If the reference price is missing or non-positive
        """
        reference = recommendation.price_at_recommendation
        if reference is None:
            raise ValueError("Recommendation has no reference price")

        move = percent_change(reference, token_data.current_price)
        is_scam = self.detector.is_likely_scam_or_rug(
            token_data, recommendation.timestamp, reference
        )

        if recommendation.recommendation_type is RecommendationType.BUY:
            result = PerformanceResult(
                potential_profit_percent=move, is_scam_or_rug=is_scam
            )
        else:
            result = PerformanceResult(avoided_loss_percent=-move, is_scam_or_rug=is_scam)

        logger.debug(
            "Evaluated recommendation",
            recommendation_id=recommendation.id,
            token_address=recommendation.token_address,
            recommendation_type=recommendation.recommendation_type.value,
            potential_profit_percent=result.potential_profit_percent,
            avoided_loss_percent=result.avoided_loss_percent,
            is_scam_or_rug=is_scam,
        )
        return result
