"""
Recommendation ranker - turns scores into ordered, thresholded match lists.
"""
import logging
from typing import Iterable, Optional

from ..config import RankingConfig, get_config
from ..models.listing import Listing
from ..models.profile import Profile
from ..models.scoring import Incompatible, MatchResult
from .geo import haversine_km, is_recognized_locality, normalize_city
from .scoring import CompatibilityScorer


logger = logging.getLogger(__name__)


class RecommendationRanker:
    """
    Ranks roommate candidates and listings for one subject.

    Roommates go through the scorer's locality hard filter. Listings get a
    softer policy: same city earns a bonus, another recognized city a penalty
    with a visibility floor, anything else is excluded.
    """

    def __init__(
        self,
        scorer: Optional[CompatibilityScorer] = None,
        config: Optional[RankingConfig] = None,
    ):
        self.scorer = scorer or CompatibilityScorer()
        self.config = config or get_config().ranking

    def _threshold(self, threshold: Optional[float]) -> float:
        return self.config.default_threshold if threshold is None else threshold

    def _top_n(self, results: list[MatchResult], top_n: Optional[int]) -> list[MatchResult]:
        limit = self.config.top_n if top_n is None else top_n
        if limit is None:
            return results
        return results[:max(0, limit)]

    def rank_roommates(
        self,
        subject: Profile,
        candidates: Iterable[Profile],
        threshold: Optional[float] = None,
        top_n: Optional[int] = None,
    ) -> list[MatchResult]:
        """
        Rank other searchers as potential roommates.

        Args:
            subject: The profile asking for recommendations
            candidates: All known profiles; the subject itself is skipped
            threshold: Scores strictly below this are dropped
            top_n: Keep only the best this many; defaults to config.top_n

        Returns:
            MatchResults sorted by score, ties in input order
        """
        threshold = self._threshold(threshold)
        results = []
        skipped_incompatible = 0

        for candidate in candidates:
            if candidate.profile_id == subject.profile_id:
                continue
            if not candidate.seeks_roommates:
                continue

            score = self.scorer.score_profiles(subject, candidate)
            if isinstance(score, Incompatible):
                skipped_incompatible += 1
                continue
            if score.total < threshold:
                continue

            results.append(MatchResult(
                candidate_id=candidate.profile_id,
                kind="profile",
                score=score.total,
                reasons=tuple(score.reasons),
            ))

        results.sort(key=lambda r: r.score, reverse=True)
        results = self._top_n(results, top_n)
        logger.info(
            f"Ranked {len(results)} roommates for {subject.profile_id} "
            f"({skipped_incompatible} excluded by city)"
        )
        return results

    def rank_listings(
        self,
        subject: Profile,
        listings: Iterable[Listing],
        threshold: Optional[float] = None,
        top_n: Optional[int] = None,
        max_distance_km: Optional[float] = None,
    ) -> list[MatchResult]:
        """
        Rank listings for a subject looking for housing.

        Args:
            subject: The profile asking for recommendations
            listings: Candidate listings
            threshold: Adjusted scores strictly below this are dropped
            top_n: Keep only the best this many; defaults to config.top_n
            max_distance_km: Drop listings farther than this from the subject's
                preferred point; ignored when the subject has none. Defaults
                to config.max_distance_km

        Returns:
            MatchResults sorted by adjusted score, ties in input order
        """
        threshold = self._threshold(threshold)
        if max_distance_km is None:
            max_distance_km = self.config.max_distance_km
        origin = None
        if subject.preferred_latitude is not None and subject.preferred_longitude is not None:
            origin = (subject.preferred_latitude, subject.preferred_longitude)

        results = []
        subject_city = subject.locality

        for listing in listings:
            adjustment = 0.0
            cross_city = False
            locality_reason = None

            if subject_city and listing.city:
                subject_norm = normalize_city(subject_city)
                listing_norm = normalize_city(listing.city)
                if subject_norm == listing_norm:
                    adjustment = self.config.same_city_bonus
                    locality_reason = f"in your city (+{adjustment:.1f})"
                elif is_recognized_locality(subject_norm) and is_recognized_locality(listing_norm):
                    adjustment = -self.config.cross_city_penalty
                    cross_city = True
                    locality_reason = f"nearby city: {listing.city} (-{self.config.cross_city_penalty:.1f})"
                else:
                    logger.debug(f"Skipping listing {listing.listing_id} outside the served cities")
                    continue

            if max_distance_km is not None and origin is not None:
                distance = haversine_km(origin[0], origin[1], listing.latitude, listing.longitude)
                if distance > max_distance_km:
                    logger.debug(
                        f"Skipping listing {listing.listing_id}: {distance:.1f} km is outside "
                        f"max distance {max_distance_km:g} km"
                    )
                    continue

            listing_score = self.scorer.score_listing(subject, listing)
            score = max(0.0, min(1.0, listing_score.total + adjustment))
            if cross_city and score < self.config.cross_city_floor:
                score = self.config.cross_city_floor

            if score < threshold:
                continue

            reasons = list(listing_score.reasons)
            if locality_reason:
                reasons.insert(0, locality_reason)

            results.append(MatchResult(
                candidate_id=listing.listing_id,
                kind="listing",
                score=score,
                reasons=tuple(reasons),
            ))

        results.sort(key=lambda r: r.score, reverse=True)
        results = self._top_n(results, top_n)
        logger.info(f"Ranked {len(results)} listings for {subject.profile_id}")
        return results
