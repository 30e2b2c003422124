"""
Configuration and environment handling for SuiteMatch.
"""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables
load_dotenv()

PLACEHOLDER_API_KEYS = {"your-api-key-here", "your-actual-api-key-here"}


class DatafinitiConfig(BaseModel):
    """Datafiniti property search API configuration."""
    api_key: str = Field(default_factory=lambda: os.getenv("DATAFINITI_API_KEY", ""))
    base_url: str = Field(
        default_factory=lambda: os.getenv("DATAFINITI_BASE_URL", "https://api.datafiniti.co/v4")
    )
    request_timeout: float = Field(default=15.0, description="Seconds before one upstream call is abandoned")
    max_attempts: int = Field(default=2, ge=1, description="Attempts per call on transient network errors")

    @property
    def has_credentials(self) -> bool:
        key = (self.api_key or "").strip()
        return bool(key) and key not in PLACEHOLDER_API_KEYS


class NormalizationConfig(BaseModel):
    """Acceptance rules for provider records."""
    jurisdiction: str = Field(default="CA")
    jurisdiction_synonyms: list[str] = Field(default_factory=lambda: ["CA", "California"])

    # Bay Area bounding box
    min_latitude: float = Field(default=37.0)
    max_latitude: float = Field(default=38.0)
    min_longitude: float = Field(default=-123.0)
    max_longitude: float = Field(default=-121.0)

    max_monthly_rent: int = Field(default=8000, description="Rent ceiling per month")
    fallback_price_ceiling: int = Field(
        default=8000,
        description="Untyped price entries at or above this are treated as sale prices",
    )
    sale_price_threshold: int = Field(default=50000, description="Anything above is clearly a sale price")
    description_max_chars: int = Field(default=500)


class IngestionConfig(BaseModel):
    """Fan-out plan for one ingestion cycle."""
    # Primary locality first; values are calls per locality
    partition: dict[str, int] = Field(
        default_factory=lambda: {
            "San Francisco": 4,
            "Berkeley": 2,
            "Palo Alto": 2,
            "San Jose": 2,
        }
    )
    records_per_call: int = Field(default=1, ge=1)
    max_workers: Optional[int] = Field(default=None, description="Defaults to one worker per call")

    @property
    def total_calls(self) -> int:
        return sum(self.partition.values())


class RankingConfig(BaseModel):
    """Recommendation thresholds and locality adjustments."""
    default_threshold: float = Field(default=0.3)
    same_city_bonus: float = Field(default=0.1)
    cross_city_penalty: float = Field(default=0.2)
    cross_city_floor: float = Field(default=0.3)
    top_n: Optional[int] = Field(default=None, ge=1, description="Keep only this many matches; None keeps all")
    max_distance_km: Optional[float] = Field(
        default=None,
        gt=0,
        description="Drop listings farther than this from the subject's preferred point",
    )


class Config(BaseModel):
    """Main configuration."""
    datafiniti: DatafinitiConfig = Field(default_factory=DatafinitiConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None
