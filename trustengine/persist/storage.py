"""Trust profile persistence using SQLite."""

from datetime import datetime, timedelta
from uuid import uuid4

import aiosqlite
import structlog
from pydantic import ValidationError

from ..core.errors import ProfileStoreError
from ..core.interfaces import ProfileStore
from ..core.types import Recommendation, UserTrustProfile

logger = structlog.get_logger(__name__)

MAX_RECOMMENDATIONS_IN_PROFILE = 50
DUPLICATE_WINDOW = timedelta(minutes=30)


class SQLiteProfileStore(ProfileStore):
    """SQLite-backed store of user trust profiles."""

    def __init__(self, db_path: str = "trust.sqlite") -> None:
        """Initialize SQLite profile store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        logger.info("SQLite profile store initialized", db_path=db_path)

    async def initialize(self) -> None:
        """Initialize database tables."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS trust_profiles (
                    user_id TEXT PRIMARY KEY,
                    component_id TEXT NOT NULL,
                    world_id TEXT,
                    data TEXT NOT NULL,
                    created_ts REAL NOT NULL,
                    updated_ts REAL NOT NULL
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_trust_profiles_world_id
                ON trust_profiles(world_id)
            """)

            await db.commit()

        logger.info("Database tables initialized")

    async def get(self, user_id: str) -> UserTrustProfile | None:
        """Load a user's profile.

        Args:
            user_id: User identifier

        Returns:
            Profile or None if the user has none

        Raises:
            ProfileStoreError: If the stored data cannot be decoded
        """
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT data FROM trust_profiles WHERE user_id = ?", (user_id,)
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            logger.debug("Profile not found", user_id=user_id)
            return None

        try:
            return UserTrustProfile.model_validate_json(row[0])
        except ValidationError as e:
            logger.error("Failed to decode stored profile", user_id=user_id, error=str(e))
            raise ProfileStoreError(f"Corrupt profile for {user_id}") from e

    async def create(
        self, profile: UserTrustProfile, world_id: str | None = None
    ) -> str:
        """Create a profile.

        Args:
            profile: Profile to store
            world_id: Optional scope the profile belongs to

        Returns:
            Component ID of the stored profile

        Raises:
            ProfileStoreError: If the user already has a profile
        """
        component_id = str(uuid4())
        now_ts = datetime.now().timestamp()

        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO trust_profiles
                        (user_id, component_id, world_id, data, created_ts, updated_ts)
                    VALUES (?, ?, ?, ?, ?, ?)
                """,
                    (
                        profile.user_id,
                        component_id,
                        world_id,
                        profile.model_dump_json(),
                        now_ts,
                        now_ts,
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            raise ProfileStoreError(
                f"Profile already exists for {profile.user_id}"
            ) from e

        logger.debug(
            "Profile created",
            user_id=profile.user_id,
            component_id=component_id,
            world_id=world_id,
        )
        return component_id

    async def update(self, profile: UserTrustProfile) -> None:
        """Overwrite an existing profile.

        Raises:
            ProfileStoreError: If the user has no profile
        """
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                UPDATE trust_profiles
                SET data = ?, updated_ts = ?
                WHERE user_id = ?
            """,
                (profile.model_dump_json(), datetime.now().timestamp(), profile.user_id),
            )
            updated = cursor.rowcount
            await db.commit()

        if updated == 0:
            raise ProfileStoreError(f"No profile to update for {profile.user_id}")

        logger.debug(
            "Profile updated", user_id=profile.user_id, trust_score=profile.trust_score
        )

    async def list_all_user_ids(self, world_id: str | None = None) -> list[str]:
        """List users with a profile, oldest profile first.

        Args:
            world_id: Only list users whose profile was created in this scope
        """
        query = "SELECT user_id FROM trust_profiles"
        params: tuple = ()
        if world_id is not None:
            query += " WHERE world_id = ?"
            params = (world_id,)
        query += " ORDER BY created_ts, rowid"

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(query, params) as cursor:
                rows = await cursor.fetchall()

        user_ids = [row[0] for row in rows]
        logger.debug("Listed profiles", count=len(user_ids), world_id=world_id)
        return user_ids

    async def add_recommendation(
        self, recommendation: Recommendation, world_id: str | None = None
    ) -> bool:
        """Append a recorded recommendation to its user's profile.

        Ignores a call on the same token in the same direction made within
        30 minutes of an existing one. Keeps the newest 50 recommendations.

        Returns:
            True if the recommendation was added
        """
        profile = await self.get(recommendation.user_id)
        is_new = profile is None
        if profile is None:
            profile = UserTrustProfile(user_id=recommendation.user_id)

        for existing in profile.recommendations:
            if (
                existing.token_address == recommendation.token_address
                and existing.recommendation_type == recommendation.recommendation_type
                and abs(recommendation.timestamp - existing.timestamp)
                < DUPLICATE_WINDOW
            ):
                logger.debug(
                    "Skipping duplicate recommendation",
                    user_id=recommendation.user_id,
                    token_address=recommendation.token_address,
                )
                return False

        recommendations = [recommendation, *profile.recommendations]
        profile = profile.model_copy(
            update={"recommendations": recommendations[:MAX_RECOMMENDATIONS_IN_PROFILE]}
        )

        if is_new:
            await self.create(profile, world_id)
        else:
            await self.update(profile)

        logger.info(
            "Recommendation recorded",
            user_id=recommendation.user_id,
            token_address=recommendation.token_address,
            recommendation_type=recommendation.recommendation_type.value,
        )
        return True

    async def close(self) -> None:
        """Close storage (cleanup if needed)."""
        logger.info("Storage closed")

    async def __aenter__(self):
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
