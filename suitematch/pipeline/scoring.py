"""
Compatibility scorer - deterministic profile-to-profile and profile-to-listing
scoring with a transparent breakdown.
"""
import logging
import math
import re
from typing import Any, Optional, Union

from ..models.listing import Listing
from ..models.profile import Profile
from ..models.scoring import (
    CompatibilityBreakdown,
    CompatibilityScore,
    Incompatible,
    ListingScore,
)
from .geo import (
    canonical_locality,
    haversine_km,
    locality_center,
    normalize_city,
    parse_number,
)


logger = logging.getLogger(__name__)


NEUTRAL = 0.5

# Demographics
AGE_GRACE_YEARS = 3
AGE_DECAY_PER_YEAR = 0.1
BACKGROUND_MATCH_SCORE = 0.7

# Housing core
ROOMMATE_COUNT_DECAY = 0.2
MAX_ROOMMATE_COUNT = 6

# Lifestyle
SCALE_SPAN = 9  # 1-10 scales
GUESTS_CONFLICT_SCORE = 0.2
SMOKING_CONFLICT_SCORE = 0.1
FLEXIBLE_SCHEDULES = {"both", "flexible"}
GUESTS_NEVER = "never"
GUESTS_ALWAYS = {"always okay", "always"}

# Listings
DISTANCE_DECAY_KM = 10.0
MAX_DISTANCE_KM = 30.0
BELOW_BUDGET_DECAY = 0.5
BELOW_BUDGET_FLOOR = 0.3
ABOVE_BUDGET_DECAY = 2.0

# Reason thresholds
STRONG_MATCH = 1.0
CONFLICT = 0.2

# Free-text keywords; rationale only, never scored
KEYWORD_SPLIT = re.compile(r"\W+")
MIN_KEYWORD_LENGTH = 4
MAX_SHARED_KEYWORDS = 3


def _norm(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def budget_overlap_score(
    min_a: Optional[int],
    max_a: Optional[int],
    min_b: Optional[int],
    max_b: Optional[int],
) -> float:
    """Length of the budget intersection over the length of the union."""
    if not min_a or not max_a or not min_b or not max_b:
        return NEUTRAL

    overlap_min = max(min_a, min_b)
    overlap_max = min(max_a, max_b)
    if overlap_max < overlap_min:
        return 0.0

    union = max(max_a, max_b) - min(min_a, min_b)
    if union == 0:
        return 1.0
    return (overlap_max - overlap_min) / union


def space_type_score(types_a: list[str], types_b: list[str]) -> float:
    a = {_norm(t) for t in types_a if _norm(t)}
    b = {_norm(t) for t in types_b if _norm(t)}
    if not a or not b:
        return NEUTRAL
    return 1.0 if a & b else 0.0


def roommate_type_score(type_a: Optional[str], type_b: Optional[str]) -> float:
    a, b = _norm(type_a), _norm(type_b)
    if not a or not b:
        return NEUTRAL
    if a == b or "both" in (a, b):
        return 1.0
    return 0.0


def normalize_roommate_count(count: Any) -> Optional[int]:
    """Collapse "None" to 0 and "6+" to 6; other text keeps its leading number."""
    if count is None or isinstance(count, bool):
        return None
    if isinstance(count, (int, float)):
        return int(count)
    text = _norm(count)
    if text == "none":
        return 0
    if text.startswith(f"{MAX_ROOMMATE_COUNT}+"):
        return MAX_ROOMMATE_COUNT
    match = re.match(r"\d+", text)
    return int(match.group()) if match else None


def roommate_count_score(count_a: Any, count_b: Any) -> float:
    a = normalize_roommate_count(count_a)
    b = normalize_roommate_count(count_b)
    if a is None or b is None:
        return NEUTRAL
    return max(0.0, 1 - ROOMMATE_COUNT_DECAY * abs(a - b))


def age_score(age_a: Optional[int], age_b: Optional[int]) -> float:
    """Full marks within a few years, then a linear decline."""
    if not age_a or not age_b:
        return NEUTRAL
    gap = abs(age_a - age_b)
    if gap <= AGE_GRACE_YEARS:
        return 1.0
    return max(0.0, 1 - (gap - AGE_GRACE_YEARS) * AGE_DECAY_PER_YEAR)


def background_score(background_a: Optional[str], background_b: Optional[str]) -> float:
    """Soft affinity: a small boost on a match, never a penalty."""
    a, b = _norm(background_a), _norm(background_b)
    if a and b and a == b:
        return BACKGROUND_MATCH_SCORE
    return NEUTRAL


def scale_similarity_score(value_a: Any, value_b: Any) -> float:
    a, b = parse_number(value_a), parse_number(value_b)
    if a is None or b is None:
        return NEUTRAL
    return max(0.0, 1 - abs(a - b) / SCALE_SPAN)


def sleep_schedule_score(schedule_a: Optional[str], schedule_b: Optional[str]) -> float:
    a, b = _norm(schedule_a), _norm(schedule_b)
    if not a or not b:
        return NEUTRAL
    if a == b or a in FLEXIBLE_SCHEDULES or b in FLEXIBLE_SCHEDULES:
        return 1.0
    return 0.0


def guests_score(guests_a: Optional[str], guests_b: Optional[str]) -> float:
    a, b = _norm(guests_a), _norm(guests_b)
    if not a or not b:
        return NEUTRAL
    if (a == GUESTS_NEVER and b in GUESTS_ALWAYS) or (b == GUESTS_NEVER and a in GUESTS_ALWAYS):
        return GUESTS_CONFLICT_SCORE
    return 1.0


def smoking_score(smoking_a: Optional[str], smoking_b: Optional[str]) -> float:
    a, b = _norm(smoking_a), _norm(smoking_b)
    if not a or not b:
        return NEUTRAL
    if a == b:
        return 1.0
    if {a, b} == {"never", "often"}:
        return SMOKING_CONFLICT_SCORE
    return NEUTRAL


def pets_score(pets_a: Optional[str], pets_b: Optional[str]) -> float:
    a, b = _norm(pets_a), _norm(pets_b)
    if not a or not b:
        return NEUTRAL
    if a == b:
        return 1.0
    if {a, b} == {"yes", "no"}:
        return 0.0
    return NEUTRAL


def distance_score(distance_km: Optional[float]) -> float:
    """Exponential decay from the locality center, zero past the cutoff."""
    if distance_km is None:
        return NEUTRAL
    if distance_km >= MAX_DISTANCE_KM:
        return 0.0
    return max(0.0, min(1.0, math.exp(-distance_km / DISTANCE_DECAY_KM)))


def price_proximity_score(
    price: Optional[int],
    min_budget: Optional[int],
    max_budget: Optional[int],
) -> float:
    """1.0 inside the budget; slow decay below it, fast decay above it."""
    if not price or not min_budget or not max_budget:
        return NEUTRAL
    if min_budget <= price <= max_budget:
        return 1.0

    budget_range = max_budget - min_budget
    if price < min_budget:
        if budget_range == 0:
            return NEUTRAL
        shortfall = min_budget - price
        return max(BELOW_BUDGET_FLOOR, 1 - (shortfall / budget_range) * BELOW_BUDGET_DECAY)

    if budget_range == 0:
        return 0.0
    excess = price - max_budget
    return max(0.0, 1 - (excess / budget_range) * ABOVE_BUDGET_DECAY)


def profile_keywords(profile: Profile) -> list[str]:
    """
    Distinct lowercase words from a profile's free text, in first-seen order.

    Questions, prompt answers and the bio are read in that order. Words
    shorter than MIN_KEYWORD_LENGTH are dropped.
    """
    parts = list(profile.questions)
    parts.extend(prompt.answer for prompt in profile.prompts)
    parts.append(profile.bio)

    keywords = []
    seen = set()
    for word in KEYWORD_SPLIT.split(" ".join(parts).lower()):
        if len(word) < MIN_KEYWORD_LENGTH or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
    return keywords


def shared_keywords(profile: Profile, text: str) -> list[str]:
    """Profile keywords that appear anywhere in the given text."""
    haystack = (text or "").lower()
    return [word for word in profile_keywords(profile) if word in haystack]


def bedroom_fit_reason(profile: Profile, listing: Listing) -> Optional[str]:
    """Compare listing bedrooms with the household size the profile wants."""
    max_roommates = normalize_roommate_count(profile.max_roommates)
    if listing.bedrooms is None or max_roommates is None:
        return None
    bedrooms = int(listing.bedrooms)
    if bedrooms >= max_roommates:
        return f"bedrooms {bedrooms} >= max roommates {max_roommates}"
    return f"not enough bedrooms: {bedrooms}"


def _keyword_reason(words: list[str]) -> Optional[str]:
    if not words:
        return None
    return f"shared keywords: {', '.join(words[:MAX_SHARED_KEYWORDS])}"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else NEUTRAL


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class CompatibilityScorer:
    """
    Deterministic compatibility scoring.
    All scores are 0-1, higher is better. Missing data scores 0.5.
    """

    def __init__(
        self,
        housing_weight: float = 0.50,
        demographics_weight: float = 0.20,
        lifestyle_weight: float = 0.30,
        listing_distance_weight: float = 0.60,
        listing_price_weight: float = 0.40,
    ):
        self.housing_weight = housing_weight
        self.demographics_weight = demographics_weight
        self.lifestyle_weight = lifestyle_weight
        self.listing_distance_weight = listing_distance_weight
        self.listing_price_weight = listing_price_weight

    def score_profiles(
        self,
        subject: Profile,
        candidate: Profile,
    ) -> Union[CompatibilityScore, Incompatible]:
        """
        Score two profiles against each other.

        Returns Incompatible when both declare a locality and they differ.
        """
        city_a, city_b = subject.locality, candidate.locality
        if city_a and city_b and normalize_city(city_a) != normalize_city(city_b):
            logger.debug(f"{subject.profile_id} and {candidate.profile_id} are in different cities")
            return Incompatible(reason=f"different cities ({city_a} / {city_b})")

        breakdown = CompatibilityBreakdown(
            budget_overlap=budget_overlap_score(
                subject.min_budget, subject.max_budget, candidate.min_budget, candidate.max_budget
            ),
            space_type=space_type_score(subject.space_types, candidate.space_types),
            roommate_type=roommate_type_score(subject.roommate_type, candidate.roommate_type),
            roommate_count=roommate_count_score(subject.max_roommates, candidate.max_roommates),
            age=age_score(subject.age, candidate.age),
            background=background_score(subject.background, candidate.background),
            cleanliness=scale_similarity_score(subject.cleanliness, candidate.cleanliness),
            sociability=scale_similarity_score(subject.sociability, candidate.sociability),
            sleep_schedule=sleep_schedule_score(subject.sleep_schedule, candidate.sleep_schedule),
            guests=guests_score(subject.guests_allowed, candidate.guests_allowed),
            smoking=smoking_score(subject.smoking, candidate.smoking),
            pets=pets_score(subject.pets, candidate.pets),
        )

        housing_core = _mean([
            breakdown.budget_overlap,
            breakdown.space_type,
            breakdown.roommate_type,
            breakdown.roommate_count,
        ])
        demographics = _mean([breakdown.age, breakdown.background])
        lifestyle = _mean([
            breakdown.cleanliness,
            breakdown.sleep_schedule,
            breakdown.guests,
            breakdown.smoking,
            breakdown.pets,
            breakdown.sociability,
        ])

        total = (
            housing_core * self.housing_weight
            + demographics * self.demographics_weight
            + lifestyle * self.lifestyle_weight
        )

        return CompatibilityScore(
            total=_clamp(total),
            housing_core=_clamp(housing_core),
            demographics=_clamp(demographics),
            lifestyle=_clamp(lifestyle),
            breakdown=breakdown,
            reasons=self._explain_profiles(subject, candidate, breakdown),
        )

    def score_listing(self, subject: Profile, listing: Listing) -> ListingScore:
        """Score a listing by distance from the relevant city center and by price fit."""
        distance_km, center_name = self._distance_from_center(subject, listing)
        dist_score = distance_score(distance_km)
        price_score = price_proximity_score(listing.price, subject.min_budget, subject.max_budget)

        total = dist_score * self.listing_distance_weight + price_score * self.listing_price_weight

        reasons = []
        if distance_km is not None:
            reasons.append(f"{distance_km:.1f} km from {center_name} center")
        if price_score == 1.0:
            reasons.append(f"price within budget: ${listing.price}")
        elif subject.min_budget and subject.max_budget:
            reasons.append(f"price outside budget: ${listing.price}")

        bedrooms = bedroom_fit_reason(subject, listing)
        if bedrooms:
            reasons.append(bedrooms)
        keywords = _keyword_reason(
            shared_keywords(subject, f"{listing.title or ''} {listing.description or ''}")
        )
        if keywords:
            reasons.append(keywords)

        return ListingScore(
            total=_clamp(total),
            distance_score=dist_score,
            price_score=price_score,
            distance_km=distance_km,
            reasons=reasons,
        )

    @staticmethod
    def _distance_from_center(
        subject: Profile,
        listing: Listing,
    ) -> tuple[Optional[float], Optional[str]]:
        """
        Distance from the subject's city center, or from the listing's own
        city center when the listing sits in another recognized city.
        """
        subject_city = subject.locality
        if not subject_city or not listing.latitude or not listing.longitude:
            return None, None

        center_name = canonical_locality(subject_city)
        center = locality_center(subject_city)

        listing_center = locality_center(listing.city)
        if listing_center is not None:
            center_name = canonical_locality(listing.city)
            center = listing_center

        if center is None:
            return None, None

        distance = haversine_km(center[0], center[1], listing.latitude, listing.longitude)
        return distance, center_name

    @staticmethod
    def _explain_profiles(
        subject: Profile,
        candidate: Profile,
        breakdown: CompatibilityBreakdown,
    ) -> list[str]:
        """Readable reasons for strong agreements and clear conflicts."""
        reasons = []

        if subject.locality and candidate.locality:
            reasons.append(f"same city: {canonical_locality(subject.locality) or subject.locality}")

        if breakdown.budget_overlap != NEUTRAL:
            if breakdown.budget_overlap > 0:
                reasons.append(f"budget overlap {breakdown.budget_overlap:.0%}")
            else:
                reasons.append("budget mismatch")

        labelled = [
            ("space_type", "wants the same kind of space", "different kinds of space"),
            ("roommate_type", "same roommate arrangement", "different roommate arrangement"),
            ("roommate_count", "same number of roommates", "very different household sizes"),
            ("age", "similar age", "large age gap"),
            ("cleanliness", "same cleanliness level", "very different cleanliness"),
            ("sociability", "same sociability", "very different sociability"),
            ("sleep_schedule", "compatible sleep schedules", "sleep schedule mismatch"),
            ("guests", None, "guest policy conflict"),
            ("smoking", "same smoking habits", None),
            ("pets", "same stance on pets", "pets mismatch"),
        ]
        for field, agree, conflict in labelled:
            value = getattr(breakdown, field)
            if agree and value >= STRONG_MATCH:
                reasons.append(agree)
            elif conflict and value <= CONFLICT:
                reasons.append(conflict)

        if breakdown.smoking == SMOKING_CONFLICT_SCORE:
            reasons.append(f"smoking conflict ({_norm(subject.smoking)}/{_norm(candidate.smoking)})")

        candidate_words = set(profile_keywords(candidate))
        keywords = _keyword_reason([w for w in profile_keywords(subject) if w in candidate_words])
        if keywords:
            reasons.append(keywords)

        return reasons
