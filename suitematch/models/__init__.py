"""
Pydantic models for SuiteMatch.
All data contracts are defined here for strict validation.
"""

from .listing import Listing, RawProviderRecord, SearchResponse
from .profile import Profile, ProfilePrompt
from .scoring import (
    CompatibilityBreakdown,
    CompatibilityScore,
    Incompatible,
    ListingScore,
    MatchResult,
)
from .ingestion import CallOutcome, CallSpec, IngestionResult, IngestionStatus
from .export import RunMetadata, RecommendationRun

__all__ = [
    # Listing
    "Listing",
    "RawProviderRecord",
    "SearchResponse",
    # Profile
    "Profile",
    "ProfilePrompt",
    # Scoring
    "CompatibilityBreakdown",
    "CompatibilityScore",
    "Incompatible",
    "ListingScore",
    "MatchResult",
    # Ingestion
    "CallOutcome",
    "CallSpec",
    "IngestionResult",
    "IngestionStatus",
    # Export
    "RunMetadata",
    "RecommendationRun",
]
