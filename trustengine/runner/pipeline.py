"""Batch trust score recalculation runner."""

import argparse
import asyncio
import sys
from typing import Any

import structlog
from pydantic import BaseModel, Field

from ..config.settings import AppSettings, load_settings
from ..core.types import LeaderboardEntry
from ..data.aggregator import MarketDataAggregator
from ..data.birdeye import BirdeyeClient
from ..data.dexscreener import DexScreenerClient
from ..persist.storage import SQLiteProfileStore
from ..scoring.calculator import TrustScoreCalculator
from ..scoring.leaderboard import LeaderboardBuilder

logger = structlog.get_logger(__name__)


class BatchResult(BaseModel):
    """Outcome of a batch recalculation."""

    succeeded: list[str] = Field(default_factory=list, description="Users updated")
    failed: dict[str, str] = Field(
        default_factory=dict, description="Failed users and their errors"
    )


class TrustScoringPipeline:
    """Assemble the scoring components and recalculate all users."""

    def __init__(self, settings: AppSettings) -> None:
        """Initialize pipeline with assembled components."""
        self.settings = settings
        self.components = self._assemble(settings)

        logger.info(
            "Trust scoring pipeline initialized",
            database_path=settings.database_path,
            max_concurrent_users=settings.max_concurrent_users,
        )

    def _assemble(self, settings: AppSettings) -> dict[str, Any]:
        """Assemble scoring components from settings.

        Args:
            settings: Application settings

        Returns:
            Dictionary of assembled components
        """
        components: dict[str, Any] = {}

        if settings.birdeye_api_key:
            components["analytics"] = BirdeyeClient(
                base_url=settings.birdeye_base, api_key=settings.birdeye_api_key
            )
            logger.info("Added Birdeye analytics source")
        else:
            components["analytics"] = None
            logger.warning("Birdeye API key not provided, skipping Birdeye source")

        components["pair_search"] = DexScreenerClient(
            base_url=settings.dexscreener_base,
            cache_ttl=settings.market_data_cache_ttl,
        )
        logger.info("Added DexScreener pair search source")

        components["market_data"] = MarketDataAggregator(
            analytics=components["analytics"],
            pair_search=components["pair_search"],
            timeout_seconds=settings.provider_timeout_seconds,
            cache_ttl=settings.market_data_cache_ttl,
            denylist=settings.scam_denylist,
        )

        components["storage"] = SQLiteProfileStore(db_path=settings.database_path)

        components["calculator"] = TrustScoreCalculator(
            market_data=components["market_data"],
            store=components["storage"],
            config=settings.scoring,
        )
        components["leaderboard"] = LeaderboardBuilder(components["storage"])

        return components

    async def start(self) -> None:
        """Prepare storage."""
        await self.components["storage"].initialize()

    async def recalculate_all(self, world_id: str | None = None) -> BatchResult:
        """Recalculate every known user's trust score in parallel.

        A failure for one user is recorded and does not affect the others.
        """
        storage = self.components["storage"]
        calculator = self.components["calculator"]
        user_ids = await storage.list_all_user_ids(world_id)

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_users)

        async def recalculate(user_id: str) -> None:
            async with semaphore:
                await calculator.calculate_user_trust_score(user_id, world_id)

        outcomes = await asyncio.gather(
            *(recalculate(user_id) for user_id in user_ids), return_exceptions=True
        )

        result = BatchResult()
        for user_id, outcome in zip(user_ids, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Trust score recalculation failed",
                    user_id=user_id,
                    error=str(outcome),
                )
                result.failed[user_id] = str(outcome)
            else:
                result.succeeded.append(user_id)

        logger.info(
            "Batch recalculation completed",
            users=len(user_ids),
            succeeded=len(result.succeeded),
            failed=len(result.failed),
        )
        return result

    async def run_once(
        self, world_id: str | None = None, top: int | None = None
    ) -> list[LeaderboardEntry]:
        """Recalculate all scores and return the resulting leaderboard."""
        await self.recalculate_all(world_id)
        leaderboard = await self.components["leaderboard"].get_leaderboard_data(
            world_id=world_id, limit=top
        )

        for entry in leaderboard:
            logger.info(
                "Leaderboard entry",
                rank=entry.rank,
                user_id=entry.user_id,
                trust_score=round(entry.trust_score, 2),
            )
        return leaderboard

    async def stop(self) -> None:
        """Release HTTP sessions and storage."""
        logger.info("Stopping trust scoring pipeline")
        for name in ("analytics", "pair_search"):
            client = self.components.get(name)
            if client is not None:
                await client.close()
        await self.components["storage"].close()


async def main() -> None:
    """Main entry point for batch trust scoring."""
    parser = argparse.ArgumentParser(description="Community trust score recalculation")
    parser.add_argument(
        "--config", default="configs/dev.yaml", help="Configuration file path"
    )
    parser.add_argument(
        "--profile",
        default="dev",
        choices=["dev", "prod"],
        help="Configuration profile",
    )
    parser.add_argument("--world-id", default=None, help="Only score this world")
    parser.add_argument(
        "--top", type=int, default=None, help="Number of leaderboard entries to show"
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.profile, args.config)
        logger.info("Settings loaded", profile=args.profile, config=args.config)

        pipeline = TrustScoringPipeline(settings)
        await pipeline.start()
        try:
            await pipeline.run_once(world_id=args.world_id, top=args.top)
        finally:
            await pipeline.stop()

    except Exception as e:
        logger.error("Fatal error", error=str(e))
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
