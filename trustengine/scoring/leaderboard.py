"""Leaderboard over persisted trust scores."""

import structlog

from ..core.interfaces import ProfileStore
from ..core.types import LeaderboardEntry

logger = structlog.get_logger(__name__)


class LeaderboardBuilder:
    """Rank users by their last persisted trust score."""

    def __init__(self, store: ProfileStore) -> None:
        self.store = store

    async def get_leaderboard_data(
        self, world_id: str | None = None, limit: int | None = None
    ) -> list[LeaderboardEntry]:
        """Build the ranked leaderboard.

        Users without a profile are left out. Equal scores keep the order in
        which the store listed the users.

        Args:
            world_id: Optional scope for the user listing
            limit: Optional maximum number of entries

        Returns:
            Entries sorted by descending trust score with ranks 1..N
        """
        user_ids = await self.store.list_all_user_ids(world_id)

        scored = []
        for user_id in user_ids:
            profile = await self.store.get(user_id)
            if profile is None:
                logger.debug("User has no trust profile", user_id=user_id)
                continue
            scored.append((user_id, profile.trust_score))

        scored.sort(key=lambda item: item[1], reverse=True)
        if limit is not None:
            scored = scored[:limit]

        entries = [
            LeaderboardEntry(user_id=user_id, trust_score=score, rank=index + 1)
            for index, (user_id, score) in enumerate(scored)
        ]

        logger.info("Leaderboard built", users=len(user_ids), entries=len(entries))
        return entries
