"""
Recommendation orchestrator - builds the roommate deck and listing deck for
one subject.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Iterable, Optional

import numpy as np

from ..models.export import RecommendationRun, RunMetadata
from ..models.ingestion import IngestionStatus
from ..models.listing import Listing
from ..models.profile import Profile
from .ingestion import IngestionOrchestrator, deduplicate_listings
from .ranking import RecommendationRanker


logger = logging.getLogger(__name__)


def summarize_market(listings: list[Listing]) -> dict[str, Any]:
    """Price statistics over a listing set. Empty dict when nothing is priced."""
    prices = [l.price for l in listings if l.price and l.price > 0]
    if not prices:
        return {}
    cities = sorted({l.city for l in listings if l.city})
    return {
        "total_listings": len(listings),
        "with_price": len(prices),
        "median_price": float(np.median(prices)),
        "min_price": float(np.min(prices)),
        "max_price": float(np.max(prices)),
        "cities": cities,
    }


def run_recommendations(
    subject: Profile,
    profiles: Iterable[Profile],
    ingestion: Optional[IngestionOrchestrator] = None,
    user_listings: Iterable[Listing] = (),
    user_query: str = "",
    threshold: Optional[float] = None,
    ranker: Optional[RecommendationRanker] = None,
    top_n: Optional[int] = None,
    max_distance_km: Optional[float] = None,
) -> RecommendationRun:
    """
    Run one recommendation cycle for a subject.

    Steps:
    1. Ingest listings (when an ingestion orchestrator is given)
    2. Merge host-authored listings after ingested ones
    3. Rank roommates, if the subject is looking for roommates
    4. Rank listings, if the subject is looking for housing

    Args:
        subject: The profile asking for recommendations
        profiles: Every known profile; the subject is skipped
        ingestion: Orchestrator used to fetch provider listings
        user_listings: Listings authored by hosts in the app
        user_query: Free-text filter passed to ingestion
        threshold: Minimum score; the ranking config default when None
        ranker: Ranker to use; a default one when None
        top_n: Size cap for each deck; the ranking config default when None
        max_distance_km: Listing cutoff from the subject's preferred point

    Returns:
        RecommendationRun with both decks and metadata
    """
    run_id = str(uuid.uuid4())[:8]
    started_at = datetime.now()
    ranker = ranker or RecommendationRanker()
    profiles = list(profiles)
    user_listings = list(user_listings)

    logger.info(f"Starting recommendation run {run_id} for {subject.profile_id}")

    errors: list[str] = []
    warnings: list[str] = []

    # Step 1: Ingest
    ingested: list[Listing] = []
    outcomes = []
    status = None
    if ingestion is not None:
        logger.info("Step 1: Ingesting listings")
        result = ingestion.run_cycle(user_query)
        status = result.status
        ingested = result.listings
        outcomes = result.outcomes

        if status == IngestionStatus.NOT_CONFIGURED:
            warnings.append("Listing search is not configured; showing in-app listings only")
        elif result.failed_calls:
            failed = ", ".join(o.spec.label for o in result.failed_calls)
            warnings.append(f"{len(result.failed_calls)} listing searches failed: {failed}")
            errors.extend(o.error for o in result.failed_calls if o.error)

    # Step 2: Merge
    listings = deduplicate_listings(ingested + user_listings)
    logger.info(f"Step 2: {len(ingested)} ingested + {len(user_listings)} in-app listings -> {len(listings)}")

    # Step 3: Roommates
    roommate_matches = []
    if subject.seeks_roommates:
        logger.info("Step 3: Ranking roommates")
        roommate_matches = ranker.rank_roommates(subject, profiles, threshold, top_n=top_n)

    # Step 4: Listings
    listing_matches = []
    if subject.seeks_housing:
        logger.info("Step 4: Ranking listings")
        listing_matches = ranker.rank_listings(
            subject, listings, threshold, top_n=top_n, max_distance_km=max_distance_km
        )

    metadata = RunMetadata(
        run_id=run_id,
        started_at=started_at,
        completed_at=datetime.now(),
        subject_id=subject.profile_id,
        user_query=user_query,
        ingestion_status=status,
        listings_ingested=len(ingested),
        user_listings=len(user_listings),
        profiles_considered=len(profiles),
        errors=errors,
        warnings=warnings,
    )

    run = RecommendationRun(
        metadata=metadata,
        ingestion_outcomes=outcomes,
        roommate_matches=roommate_matches,
        listing_matches=listing_matches,
        market_summary=summarize_market(listings),
    )

    logger.info(
        f"Run {run_id} completed: {len(roommate_matches)} roommates, "
        f"{len(listing_matches)} listings"
    )
    return run
