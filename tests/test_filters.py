"""Tests for scam/rug detection heuristics."""

from datetime import UTC, datetime, timedelta

import pytest

from trustengine.config.settings import ScoringConfig
from trustengine.core.types import PricePoint, TokenAPIData
from trustengine.filters.rug_heuristics import ScamRugDetector, drawdown_since

CALL_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def token_data(
    current_price: float = 1.0,
    history: list[tuple[int, float]] | None = None,
    liquidity: float | None = 100000.0,
    is_known_scam: bool = False,
) -> TokenAPIData:
    """Build a snapshot; history is (minutes after the call, price)."""
    return TokenAPIData(
        current_price=current_price,
        symbol="TEST",
        price_history=[
            PricePoint(timestamp=CALL_TIME + timedelta(minutes=m), price=p)
            for m, p in history or []
        ],
        liquidity=liquidity,
        is_known_scam=is_known_scam,
    )


class TestDrawdownSince:
    """Test drawdown from the post-call peak."""

    def test_no_history(self):
        """Test the current price alone means no drawdown."""
        assert drawdown_since(token_data(), CALL_TIME) == 0.0

    def test_drop_from_peak(self):
        """Test drawdown measured from the highest point after the call."""
        data = token_data(current_price=2.0, history=[(10, 4.0), (20, 8.0)])

        assert drawdown_since(data, CALL_TIME) == pytest.approx(75.0)

    def test_ignores_peak_before_call(self):
        """Test prices before the call do not count."""
        data = token_data(current_price=1.0, history=[(-60, 100.0), (30, 1.2)])

        assert drawdown_since(data, CALL_TIME) == pytest.approx(100 * 0.2 / 1.2)

    def test_rising_price(self):
        """Test a price at its peak has no drawdown."""
        data = token_data(current_price=5.0, history=[(10, 2.0), (20, 3.0)])

        assert drawdown_since(data, CALL_TIME) == 0.0

    def test_reference_price_is_peak_candidate(self):
        """Test the price at the call counts when history starts later."""
        data = token_data(current_price=0.5)

        drawdown = drawdown_since(data, CALL_TIME, reference_price=10.0)

        assert drawdown == pytest.approx(95.0)

    def test_reference_price_below_history_peak(self):
        """Test a higher post-call peak still wins over the call price."""
        data = token_data(current_price=2.0, history=[(10, 8.0)])

        drawdown = drawdown_since(data, CALL_TIME, reference_price=4.0)

        assert drawdown == pytest.approx(75.0)

    def test_non_positive_reference_price_ignored(self):
        """Test a zero reference price does not distort the window."""
        assert drawdown_since(token_data(), CALL_TIME, reference_price=0.0) == 0.0


class TestScamRugDetector:
    """Test scam/rug detector."""

    @pytest.fixture
    def detector(self):
        return ScamRugDetector(ScoringConfig())

    def test_healthy_token(self, detector):
        """Test a liquid, stable token is not flagged."""
        assessment = detector.assess(token_data(), CALL_TIME)

        assert assessment.is_scam_or_rug is False
        assert assessment.reasons == []
        assert detector.is_likely_scam_or_rug(token_data(), CALL_TIME) is False

    def test_known_scam(self, detector):
        """Test provider or denylist flags are always a scam."""
        assessment = detector.assess(token_data(is_known_scam=True), CALL_TIME)

        assert assessment.is_scam_or_rug is True
        assert "known scam" in assessment.reasons[0]

    def test_severe_drawdown(self, detector):
        """Test a collapse after the call is a rug."""
        data = token_data(current_price=0.05, history=[(5, 1.0), (60, 0.5)])

        assessment = detector.assess(data, CALL_TIME)

        assert assessment.is_scam_or_rug is True
        assert assessment.drawdown_percent == pytest.approx(95.0)
        assert any("Severe drawdown" in r for r in assessment.reasons)

    def test_drawdown_at_threshold_flags(self):
        """Test the drawdown threshold is inclusive."""
        detector = ScamRugDetector(ScoringConfig(severe_drawdown_percent=75))
        data = token_data(current_price=1.0, history=[(5, 4.0)])

        assert detector.is_likely_scam_or_rug(data, CALL_TIME) is True

    def test_moderate_drawdown_not_flagged(self, detector):
        """Test an ordinary loss is not a rug."""
        data = token_data(current_price=0.2, history=[(5, 1.0)])

        assert detector.is_likely_scam_or_rug(data, CALL_TIME) is False

    def test_collapse_before_call_not_flagged(self, detector):
        """Test a token that crashed before the call is judged from the call on."""
        data = token_data(current_price=0.05, history=[(-120, 1.0), (10, 0.05)])

        assert detector.is_likely_scam_or_rug(data, CALL_TIME) is False

    def test_critical_liquidity(self, detector):
        """Test liquidity below the floor is flagged."""
        assessment = detector.assess(token_data(liquidity=500.0), CALL_TIME)

        assert assessment.is_scam_or_rug is True
        assert any("Critical liquidity" in r for r in assessment.reasons)

    def test_liquidity_at_floor_not_flagged(self, detector):
        """Test liquidity exactly at the floor is acceptable."""
        assert (
            detector.is_likely_scam_or_rug(token_data(liquidity=1000.0), CALL_TIME)
            is False
        )

    def test_unknown_liquidity_not_flagged(self, detector):
        """Test a snapshot without liquidity data is not treated as drained."""
        assessment = detector.assess(token_data(liquidity=None), CALL_TIME)

        assert assessment.is_scam_or_rug is False
        assert assessment.reasons == []

    def test_zero_liquidity_flagged(self, detector):
        """Test a reported empty pool is still flagged."""
        assert detector.is_likely_scam_or_rug(token_data(liquidity=0.0), CALL_TIME)

    def test_collapse_since_call_without_history(self, detector):
        """Test a collapse from the call price is caught with no history in range."""
        data = token_data(current_price=0.5, history=[(-60, 0.6)])

        assert detector.is_likely_scam_or_rug(data, CALL_TIME, reference_price=10.0)
        assert not detector.is_likely_scam_or_rug(data, CALL_TIME)

    def test_multiple_reasons(self, detector):
        """Test every triggered heuristic is reported."""
        data = token_data(
            current_price=0.01,
            history=[(5, 1.0)],
            liquidity=10.0,
            is_known_scam=True,
        )

        assert len(detector.assess(data, CALL_TIME).reasons) == 3

    def test_custom_thresholds(self):
        """Test thresholds come from the scoring config."""
        detector = ScamRugDetector(
            ScoringConfig(severe_drawdown_percent=50, critical_liquidity_floor=0)
        )
        data = token_data(current_price=0.4, history=[(5, 1.0)], liquidity=10.0)

        assessment = detector.assess(data, CALL_TIME)

        assert assessment.is_scam_or_rug is True
        assert len(assessment.reasons) == 1
