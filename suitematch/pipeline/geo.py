"""
Geographic helpers - coordinate parsing, bounding box checks, distances and
the fixed locality allow-list.
"""
import math
from dataclasses import dataclass
from typing import Any, Optional


EARTH_RADIUS_KM = 6371.0

# Normalized names; "sf" is kept so raw city text like "SF" is recognized
RECOGNIZED_LOCALITIES = ("san francisco", "sf", "berkeley", "palo alto", "san jose")

CANONICAL_LOCALITIES = {
    "san francisco": "San Francisco",
    "sf": "San Francisco",
    "berkeley": "Berkeley",
    "palo alto": "Palo Alto",
    "san jose": "San Jose",
}

LOCALITY_CENTERS: dict[str, tuple[float, float]] = {
    "San Francisco": (37.7749, -122.4194),
    "Berkeley": (37.8715, -122.2730),
    "Palo Alto": (37.4419, -122.1430),
    "San Jose": (37.3382, -121.8863),
}


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive latitude/longitude rectangle."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def contains(self, lat: float, lon: float) -> bool:
        if math.isnan(lat) or math.isnan(lon):
            return False
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometers."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def parse_number(value: Any) -> Optional[float]:
    """Parse a finite number given as a number or numeric-looking text."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(result):
        return None
    return result


def normalize_city(city: Optional[str]) -> str:
    """Lowercase, trimmed city name with "SF" folded into "san francisco"."""
    normalized = (city or "").strip().lower()
    if normalized == "sf":
        return "san francisco"
    return normalized


def is_recognized_locality(city: Optional[str]) -> bool:
    """Exact membership in the locality allow-list, after normalization."""
    return normalize_city(city) in RECOGNIZED_LOCALITIES


def canonical_locality(city: Optional[str]) -> Optional[str]:
    """Display name of a recognized locality, or None."""
    return CANONICAL_LOCALITIES.get(normalize_city(city))


def locality_center(city: Optional[str]) -> Optional[tuple[float, float]]:
    """Center coordinates of a recognized locality."""
    name = canonical_locality(city)
    if name is None:
        return None
    return LOCALITY_CENTERS.get(name)


def resolve_locality(city: Optional[str]) -> Optional[str]:
    """
    Display name of the allow-listed locality matching raw provider city text.
    Either string may contain the other, so "San Francisco, CA" and "Palo"
    both resolve.
    """
    city_lower = (city or "").strip().lower()
    if not city_lower:
        return None
    for allowed in RECOGNIZED_LOCALITIES:
        if allowed in city_lower or city_lower in allowed:
            return CANONICAL_LOCALITIES[allowed]
    return None


def matches_locality_allow_list(city: Optional[str]) -> bool:
    """Lenient allow-list check for raw provider city text."""
    return resolve_locality(city) is not None
