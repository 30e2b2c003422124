"""
Export models - run metadata and the full recommendation run.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from .ingestion import CallOutcome, IngestionStatus
from .scoring import MatchResult


class RunMetadata(BaseModel):
    """Metadata for a recommendation run."""
    run_id: str = Field(description="Unique run identifier")
    started_at: datetime
    completed_at: Optional[datetime] = None

    subject_id: str
    user_query: str = ""
    ingestion_status: Optional[IngestionStatus] = None

    # Processing stats
    listings_ingested: int = 0
    user_listings: int = 0
    profiles_considered: int = 0

    # Error tracking
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class RecommendationRun(BaseModel):
    """
    Complete output of one recommendation run.
    Keeps the per-call ingestion outcomes for debugging.
    """
    metadata: RunMetadata
    ingestion_outcomes: list[CallOutcome] = Field(default_factory=list)

    roommate_matches: list[MatchResult] = Field(default_factory=list)
    listing_matches: list[MatchResult] = Field(default_factory=list)

    market_summary: dict[str, Any] = Field(
        default_factory=dict,
        description="Price statistics over the listings that were ranked",
    )

    def to_minimal_export(self) -> dict[str, Any]:
        """Export ids, scores and reasons without ingestion traces."""
        return {
            "metadata": {
                "run_id": self.metadata.run_id,
                "subject_id": self.metadata.subject_id,
                "query": self.metadata.user_query,
                "exported_at": datetime.now().isoformat(),
            },
            "roommates": [
                {"id": m.candidate_id, "score": round(m.score, 3), "reasons": list(m.reasons)}
                for m in self.roommate_matches
            ],
            "listings": [
                {"id": m.candidate_id, "score": round(m.score, 3), "reasons": list(m.reasons)}
                for m in self.listing_matches
            ],
        }
