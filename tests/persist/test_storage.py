"""Tests for SQLite profile storage."""

import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from trustengine.core.errors import ProfileStoreError
from trustengine.core.types import (
    Conviction,
    Recommendation,
    RecommendationType,
    UserTrustProfile,
)
from trustengine.persist.storage import (
    MAX_RECOMMENDATIONS_IN_PROFILE,
    SQLiteProfileStore,
)

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def recommendation(
    user_id: str = "user-1",
    token_address: str = "Mint111",
    rec_type: RecommendationType = RecommendationType.BUY,
    timestamp: datetime = T0,
) -> Recommendation:
    return Recommendation(
        user_id=user_id,
        token_address=token_address,
        recommendation_type=rec_type,
        conviction=Conviction.MEDIUM,
        price_at_recommendation=0.25,
        timestamp=timestamp,
        raw_message_quote="aping into this one",
    )


class TestSQLiteProfileStore:
    """Test SQLite profile store functionality."""

    @pytest_asyncio.fixture
    async def store(self):
        """Create a temporary SQLite profile store."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            store = SQLiteProfileStore(db_path=str(Path(tmp_dir) / "trust.sqlite"))
            await store.initialize()

            yield store

            await store.close()

    @pytest.mark.asyncio
    async def test_initialization(self):
        """Test storage initialization creates the database."""
        with tempfile.TemporaryDirectory() as tmp_dir:
            db_path = Path(tmp_dir) / "trust.sqlite"

            async with SQLiteProfileStore(db_path=str(db_path)):
                pass

            assert db_path.exists()

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """Test unknown users have no profile."""
        assert await store.get("nobody") is None

    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        """Test a created profile is returned intact."""
        profile = UserTrustProfile(
            user_id="user-1",
            trust_score=17.5,
            recommendations=[recommendation()],
        )

        component_id = await store.create(profile, world_id="world-1")
        loaded = await store.get("user-1")

        assert component_id
        assert loaded == profile

    @pytest.mark.asyncio
    async def test_create_duplicate_fails(self, store):
        """Test a user can only have one profile."""
        await store.create(UserTrustProfile(user_id="user-1"))

        with pytest.raises(ProfileStoreError):
            await store.create(UserTrustProfile(user_id="user-1"))

    @pytest.mark.asyncio
    async def test_update(self, store):
        """Test updates overwrite the stored profile."""
        await store.create(UserTrustProfile(user_id="user-1"))

        await store.update(UserTrustProfile(user_id="user-1", trust_score=-12.0))

        assert (await store.get("user-1")).trust_score == -12.0

    @pytest.mark.asyncio
    async def test_update_missing_fails(self, store):
        """Test updating a user without a profile fails."""
        with pytest.raises(ProfileStoreError):
            await store.update(UserTrustProfile(user_id="ghost"))

    @pytest.mark.asyncio
    async def test_corrupt_profile(self, store):
        """Test undecodable stored data raises a store error."""
        await store.create(UserTrustProfile(user_id="user-1"))
        async with aiosqlite.connect(store.db_path) as db:
            await db.execute(
                "UPDATE trust_profiles SET data = ? WHERE user_id = ?",
                ('{"user_id": 5, "trust_score": "lots"}', "user-1"),
            )
            await db.commit()

        with pytest.raises(ProfileStoreError):
            await store.get("user-1")

    @pytest.mark.asyncio
    async def test_list_all_user_ids(self, store):
        """Test listing is in creation order and scoped by world."""
        await store.create(UserTrustProfile(user_id="carol"), world_id="world-1")
        await store.create(UserTrustProfile(user_id="alice"), world_id="world-2")
        await store.create(UserTrustProfile(user_id="bob"), world_id="world-1")

        assert await store.list_all_user_ids() == ["carol", "alice", "bob"]
        assert await store.list_all_user_ids("world-1") == ["carol", "bob"]
        assert await store.list_all_user_ids("world-3") == []

    @pytest.mark.asyncio
    async def test_add_recommendation_creates_profile(self, store):
        """Test the first recommendation creates the profile in its world."""
        added = await store.add_recommendation(recommendation(), world_id="world-1")

        profile = await store.get("user-1")
        assert added is True
        assert profile.trust_score == 0.0
        assert len(profile.recommendations) == 1
        assert await store.list_all_user_ids("world-1") == ["user-1"]

    @pytest.mark.asyncio
    async def test_add_recommendation_newest_first(self, store):
        """Test recommendations are kept newest first."""
        first = recommendation(token_address="MintA")
        second = recommendation(token_address="MintB", timestamp=T0 + timedelta(hours=1))

        await store.add_recommendation(first)
        await store.add_recommendation(second)

        profile = await store.get("user-1")
        assert [r.id for r in profile.recommendations] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_add_recommendation_skips_duplicate(self, store):
        """Test a repeat call on the same token and side within 30 minutes is ignored."""
        await store.add_recommendation(recommendation())

        repeat = recommendation(timestamp=T0 + timedelta(minutes=10))
        opposite = recommendation(
            rec_type=RecommendationType.SELL, timestamp=T0 + timedelta(minutes=10)
        )
        later = recommendation(timestamp=T0 + timedelta(minutes=45))

        assert await store.add_recommendation(repeat) is False
        assert await store.add_recommendation(opposite) is True
        assert await store.add_recommendation(later) is True

        profile = await store.get("user-1")
        assert len(profile.recommendations) == 3

    @pytest.mark.asyncio
    async def test_add_recommendation_naive_timestamp(self, store):
        """Test a call without a zone is compared to stored calls as UTC."""
        await store.add_recommendation(recommendation())

        repeat = recommendation(timestamp=datetime(2024, 6, 1, 12, 10))
        later = recommendation(timestamp=datetime(2024, 6, 1, 13, 0))

        assert await store.add_recommendation(repeat) is False
        assert await store.add_recommendation(later) is True

        profile = await store.get("user-1")
        assert profile.recommendations[0].timestamp == T0 + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_add_recommendation_caps_history(self, store):
        """Test only the newest recommendations are kept."""
        for i in range(MAX_RECOMMENDATIONS_IN_PROFILE + 5):
            await store.add_recommendation(
                recommendation(
                    token_address=f"Mint{i}", timestamp=T0 + timedelta(minutes=i)
                )
            )

        profile = await store.get("user-1")
        assert len(profile.recommendations) == MAX_RECOMMENDATIONS_IN_PROFILE
        assert profile.recommendations[0].token_address == (
            f"Mint{MAX_RECOMMENDATIONS_IN_PROFILE + 4}"
        )

    @pytest.mark.asyncio
    async def test_add_recommendation_keeps_score(self, store):
        """Test recording a call does not touch the persisted score."""
        await store.create(UserTrustProfile(user_id="user-1", trust_score=33.0))

        await store.add_recommendation(recommendation())

        assert (await store.get("user-1")).trust_score == 33.0
