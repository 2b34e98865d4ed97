"""Application settings and configuration management."""

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings

from ..core.types import Conviction

logger = structlog.get_logger(__name__)

PROFILES = ("dev", "prod")


class ConvictionWeights(BaseModel):
    """Multipliers applied to ordinary score contributions per conviction."""

    low: float = Field(default=0.2, gt=0, description="LOW conviction weight")
    medium: float = Field(default=0.8, gt=0, description="MEDIUM conviction weight")
    high: float = Field(default=1.0, gt=0, description="HIGH conviction weight")

    @model_validator(mode="after")
    def _check_order(self) -> "ConvictionWeights":
        if not self.low <= self.medium <= self.high:
            raise ValueError("Conviction weights must satisfy low <= medium <= high")
        return self

    def for_conviction(self, conviction: Conviction) -> float:
        """Return the weight for a conviction level."""
        return {
            Conviction.LOW: self.low,
            Conviction.MEDIUM: self.medium,
            Conviction.HIGH: self.high,
        }[conviction]


class ScoringConfig(BaseModel):
    """Thresholds and weights used by scam detection and trust scoring."""

    severe_drawdown_percent: float = Field(
        default=90.0,
        gt=0,
        le=100,
        description="Drop from post-call peak that marks a rug",
    )
    critical_liquidity_floor: float = Field(
        default=1000.0, ge=0, description="Liquidity in USD below which a token is dead"
    )
    profit_clamp_percent: float = Field(
        default=50.0, gt=0, description="Bound on a single call's percentage"
    )
    conviction_weight: ConvictionWeights = Field(
        default_factory=ConvictionWeights, description="Conviction multipliers"
    )
    scam_bonus: float = Field(
        default=60.0, ge=0, description="Reward for a SELL call on a scam"
    )
    scam_penalty: float = Field(
        default=100.0, ge=0, description="Penalty for a BUY call on a scam"
    )


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    env: Literal["dev", "prod"] = Field(description="Environment: dev, prod")

    # Market data providers
    birdeye_api_key: str | None = Field(default=None, description="Birdeye API key")
    birdeye_base: str = Field(
        default="https://public-api.birdeye.so", description="Birdeye API base URL"
    )
    dexscreener_base: str = Field(
        default="https://api.dexscreener.com", description="DexScreener API base URL"
    )
    provider_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Upper bound on a single provider call"
    )
    market_data_cache_ttl: int = Field(
        default=300, ge=0, description="Market data cache TTL in seconds (0 disables)"
    )
    scam_denylist: list[str] = Field(
        default_factory=list, description="Token addresses known to be scams"
    )

    # Storage
    database_path: str = Field(
        default="./trust.sqlite", description="SQLite database file"
    )

    # Batch recalculation
    max_concurrent_users: int = Field(
        default=8, gt=0, description="Users recalculated in parallel"
    )

    scoring: ScoringConfig = Field(
        default_factory=ScoringConfig, description="Scoring thresholds and weights"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings(profile: str, yaml_path: str) -> AppSettings:
    """Load settings from YAML file and environment variables.

    Args:
        profile: Configuration profile name (dev, prod)
        yaml_path: Path to YAML configuration file

    Returns:
        AppSettings instance with loaded configuration

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValidationError: If configuration is invalid
        ValueError: If profile is invalid
    """
    if profile not in PROFILES:
        raise ValueError(
            f"Invalid profile: {profile}. Must be one of: {', '.join(PROFILES)}"
        )

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    try:
        with open(yaml_file, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ValueError("Invalid YAML configuration: expected a mapping")

        yaml_config["env"] = profile

        logger.info("Loading configuration", profile=profile, yaml_path=yaml_path)

        settings = AppSettings(**yaml_config)

        logger.info(
            "Configuration loaded successfully",
            profile=profile,
            database_path=settings.database_path,
            birdeye_configured=settings.birdeye_api_key is not None,
            scoring=settings.scoring.model_dump(),
        )

        return settings

    except yaml.YAMLError as e:
        logger.error("Failed to parse YAML configuration", error=str(e))
        raise ValueError(f"Invalid YAML configuration: {e}") from e
    except ValidationError as e:
        logger.error("Configuration validation failed", error=str(e))
        raise
