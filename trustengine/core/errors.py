"""Exceptions raised by the trust scoring engine."""


class ProfileStoreError(Exception):
    """Profile store rejected or could not complete an operation."""


class TrustScoreCalculationError(Exception):
    """A user's trust score could not be recalculated and persisted."""

    def __init__(self, user_id: str, message: str) -> None:
        self.user_id = user_id
        super().__init__(f"Trust score calculation failed for {user_id}: {message}")
