"""Pipeline modules for ingestion and recommendations."""

from .normalizer import RecordNormalizer
from .ingestion import IngestionOrchestrator, ListingCache, deduplicate_listings
from .scoring import CompatibilityScorer
from .ranking import RecommendationRanker
from .orchestrator import run_recommendations

__all__ = [
    "RecordNormalizer",
    "IngestionOrchestrator",
    "ListingCache",
    "deduplicate_listings",
    "CompatibilityScorer",
    "RecommendationRanker",
    "run_recommendations",
]
