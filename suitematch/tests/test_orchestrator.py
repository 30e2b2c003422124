"""
Tests for the recommendation run.
"""
from unittest.mock import MagicMock

import pytest

from suitematch.config import RankingConfig
from suitematch.models.ingestion import (
    CallOutcome,
    CallSpec,
    IngestionResult,
    IngestionStatus,
)
from suitematch.models.listing import Listing
from suitematch.models.profile import Profile
from suitematch.pipeline.ingestion import IngestionOrchestrator
from suitematch.pipeline.orchestrator import run_recommendations, summarize_market
from suitematch.pipeline.ranking import RecommendationRanker


def make_listing(listing_id: str, price: int, source: str = "datafiniti") -> Listing:
    return Listing(
        listing_id=listing_id,
        address=f"{listing_id} Main St",
        city="Berkeley",
        state="CA",
        latitude=37.8715,
        longitude=-122.2730,
        price=price,
        source=source,
    )


def fake_ingestion(result: IngestionResult) -> MagicMock:
    ingestion = MagicMock(spec=IngestionOrchestrator)
    ingestion.run_cycle.return_value = result
    return ingestion


class TestRunRecommendations:
    """Tests for run_recommendations."""

    @pytest.fixture
    def ranker(self) -> RecommendationRanker:
        return RecommendationRanker(config=RankingConfig())

    @pytest.fixture
    def subject(self) -> Profile:
        return Profile(
            profile_id="me",
            looking_for="both",
            min_budget=1500,
            max_budget=2500,
            preferred_city="Berkeley",
        )

    def test_builds_both_decks(self, subject, ranker):
        ingestion = fake_ingestion(IngestionResult(
            status=IngestionStatus.SUCCEEDED,
            listings=[make_listing("d1", 2000)],
        ))
        profiles = [subject, Profile(profile_id="r1", looking_for="roommates", preferred_city="Berkeley")]

        run = run_recommendations(
            subject,
            profiles,
            ingestion=ingestion,
            user_listings=[make_listing("u1", 1800, source="user")],
            user_query="numBedroom:2",
            ranker=ranker,
        )

        ingestion.run_cycle.assert_called_once_with("numBedroom:2")
        assert [m.candidate_id for m in run.roommate_matches] == ["r1"]
        assert {m.candidate_id for m in run.listing_matches} == {"d1", "u1"}
        assert run.metadata.ingestion_status == IngestionStatus.SUCCEEDED
        assert run.metadata.listings_ingested == 1
        assert run.metadata.user_listings == 1
        assert run.metadata.warnings == []
        assert len(run.metadata.run_id) == 8

    def test_user_listing_duplicate_dropped(self, subject, ranker):
        ingestion = fake_ingestion(IngestionResult(
            status=IngestionStatus.CACHED,
            listings=[make_listing("same", 2000)],
        ))
        run = run_recommendations(
            subject,
            [],
            ingestion=ingestion,
            user_listings=[make_listing("same", 1900, source="user")],
            ranker=ranker,
        )
        assert run.market_summary["total_listings"] == 1
        assert run.market_summary["median_price"] == 2000.0

    def test_not_configured_is_a_warning(self, subject, ranker):
        ingestion = fake_ingestion(IngestionResult(status=IngestionStatus.NOT_CONFIGURED))
        run = run_recommendations(
            subject,
            [],
            ingestion=ingestion,
            user_listings=[make_listing("u1", 1800, source="user")],
            ranker=ranker,
        )
        assert [m.candidate_id for m in run.listing_matches] == ["u1"]
        assert len(run.metadata.warnings) == 1
        assert run.metadata.errors == []

    def test_partial_failure_reported(self, subject, ranker):
        spec = CallSpec(locality="San Jose", ordinal=1, query="q")
        ingestion = fake_ingestion(IngestionResult(
            status=IngestionStatus.PARTIALLY_FAILED,
            listings=[make_listing("d1", 2000)],
            outcomes=[CallOutcome(spec=spec, succeeded=False, error="Request failed")],
        ))
        run = run_recommendations(subject, [], ingestion=ingestion, ranker=ranker)

        assert "San Jose (Call 1)" in run.metadata.warnings[0]
        assert run.metadata.errors == ["Request failed"]
        assert len(run.ingestion_outcomes) == 1

    def test_roommates_only_subject(self, ranker):
        subject = Profile(profile_id="me", looking_for="roommates")
        run = run_recommendations(
            subject,
            [Profile(profile_id="r1", looking_for="both")],
            user_listings=[make_listing("u1", 1800)],
            ranker=ranker,
        )
        assert [m.candidate_id for m in run.roommate_matches] == ["r1"]
        assert run.listing_matches == []

    def test_housing_only_subject(self, ranker):
        subject = Profile(profile_id="me", looking_for="housing", preferred_city="Berkeley")
        run = run_recommendations(
            subject,
            [Profile(profile_id="r1", looking_for="roommates")],
            user_listings=[make_listing("u1", 1800)],
            ranker=ranker,
        )
        assert run.roommate_matches == []
        assert [m.candidate_id for m in run.listing_matches] == ["u1"]

    def test_top_n_and_max_distance_forwarded(self, subject):
        ranker = MagicMock(spec=RecommendationRanker)
        ranker.rank_roommates.return_value = []
        ranker.rank_listings.return_value = []

        run_recommendations(subject, [], ranker=ranker, top_n=5, max_distance_km=12.5)

        ranker.rank_roommates.assert_called_once_with(subject, [], None, top_n=5)
        ranker.rank_listings.assert_called_once_with(subject, [], None, top_n=5, max_distance_km=12.5)


class TestSummarizeMarket:
    """Tests for the market summary."""

    def test_summary(self):
        listings = [make_listing("a", 1000), make_listing("b", 2000), make_listing("c", 4000)]
        summary = summarize_market(listings)

        assert summary["total_listings"] == 3
        assert summary["median_price"] == 2000.0
        assert summary["min_price"] == 1000.0
        assert summary["max_price"] == 4000.0
        assert summary["cities"] == ["Berkeley"]

    def test_empty(self):
        assert summarize_market([]) == {}
