"""Rug pull / scam detection heuristics."""

from datetime import datetime

import structlog

from ..config.settings import ScoringConfig
from ..core.interfaces import ScamDetector
from ..core.types import RugAssessment, TokenAPIData

logger = structlog.get_logger(__name__)


def drawdown_since(
    token_data: TokenAPIData, since: datetime, reference_price: float | None = None
) -> float:
    """Percent drop from the peak price at/after `since` to the current price.

    Provider history only reaches about 24 hours back, so for older calls
    the price at the call (`reference_price`) is the only earlier peak
    candidate. A spike and collapse entirely between the call and the
    start of the history window goes unseen.
    """
    window = [p.price for p in token_data.price_history if p.timestamp >= since]
    window.append(token_data.current_price)
    if reference_price is not None and reference_price > 0:
        window.append(reference_price)

    peak = max(window)
    if peak <= 0:
        return 0.0
    return max(0.0, (peak - token_data.current_price) / peak * 100)


class ScamRugDetector(ScamDetector):
    """Flag tokens that collapsed, lost their liquidity, or are denylisted."""

    def __init__(self, config: ScoringConfig | None = None) -> None:
        """Initialize detector with thresholds from the scoring config."""
        self.config = config or ScoringConfig()

    def assess(
        self,
        token_data: TokenAPIData,
        recommendation_timestamp: datetime,
        reference_price: float | None = None,
    ) -> RugAssessment:
        """Evaluate a token snapshot for scam or rug indicators.

        Unknown liquidity (no source reported it) never trips the
        liquidity floor.
        """
        reasons = []

        if token_data.is_known_scam:
            reasons.append("Token is on a known scam list")

        drawdown = drawdown_since(token_data, recommendation_timestamp, reference_price)
        if drawdown >= self.config.severe_drawdown_percent:
            reasons.append(
                f"Severe drawdown: {drawdown:.1f}% >= "
                f"{self.config.severe_drawdown_percent}% from peak"
            )

        liquidity = token_data.liquidity
        if liquidity is not None and liquidity < self.config.critical_liquidity_floor:
            reasons.append(
                f"Critical liquidity: ${liquidity:.2f} < "
                f"${self.config.critical_liquidity_floor:.2f}"
            )

        assessment = RugAssessment(
            is_scam_or_rug=bool(reasons),
            reasons=reasons,
            drawdown_percent=drawdown,
        )

        logger.debug(
            "Rug heuristics evaluation",
            symbol=token_data.symbol,
            is_scam_or_rug=assessment.is_scam_or_rug,
            drawdown_percent=drawdown,
            liquidity_known=liquidity is not None,
            reasons=reasons,
        )

        return assessment

    def is_likely_scam_or_rug(
        self,
        token_data: TokenAPIData,
        recommendation_timestamp: datetime,
        reference_price: float | None = None,
    ) -> bool:
        """Return True if the token looks like a scam or rug."""
        return self.assess(
            token_data, recommendation_timestamp, reference_price
        ).is_scam_or_rug
