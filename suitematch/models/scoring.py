"""
Scoring models - compatibility breakdowns and ranked match results.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CompatibilityBreakdown(BaseModel):
    """Every component of a profile-to-profile score, each in [0, 1]."""
    budget_overlap: float
    space_type: float
    roommate_type: float
    roommate_count: float
    age: float
    background: float
    cleanliness: float
    sociability: float
    sleep_schedule: float
    guests: float
    smoking: float
    pets: float


class CompatibilityScore(BaseModel):
    """Weighted profile-to-profile compatibility."""
    model_config = ConfigDict(frozen=True)

    total: float = Field(ge=0, le=1, description="Final weighted score")
    housing_core: float = Field(ge=0, le=1)
    demographics: float = Field(ge=0, le=1)
    lifestyle: float = Field(ge=0, le=1)
    breakdown: CompatibilityBreakdown
    reasons: list[str] = Field(default_factory=list)


class Incompatible(BaseModel):
    """A pair excluded by a hard filter. Not a score, and never a zero score."""
    model_config = ConfigDict(frozen=True)

    reason: str


class ListingScore(BaseModel):
    """Profile-to-listing score before any locality adjustment."""
    model_config = ConfigDict(frozen=True)

    total: float = Field(ge=0, le=1)
    distance_score: float = Field(ge=0, le=1)
    price_score: float = Field(ge=0, le=1)
    distance_km: Optional[float] = None
    reasons: list[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    """A ranked candidate with the reasons behind its score."""
    model_config = ConfigDict(frozen=True)

    candidate_id: str
    kind: Literal["profile", "listing"]
    score: float = Field(ge=0, le=1)
    reasons: tuple[str, ...] = Field(default_factory=tuple)
