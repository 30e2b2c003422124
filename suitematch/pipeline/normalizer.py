"""
Record normalizer - turn raw provider records into canonical rental listings.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ..config import NormalizationConfig, get_config
from ..models.listing import Listing, RawProviderRecord
from .geo import BoundingBox, parse_number, resolve_locality


logger = logging.getLogger(__name__)


RENTAL_ESTIMATE_KEY = "Redfin Rental Estimate"
RENT_PRICE_TYPES = {"rent", "rental"}
SALE_PRICE_TYPES = {"sale list", "sale price"}
SALE_STATUSES = {"for sale", "sold"}
RENT_STATUSES = {"for rent", "rent"}

# First dollar figure in "$1,647 - $1,678 / month" or "2 bd: $2,950 / month"
PRICE_FIGURE = re.compile(r"\$\s*(\d[\d,]*)")

ELLIPSIS = "..."


def _flag(value: Any) -> Optional[bool]:
    """Read a boolean that may arrive as text."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return None


def _amount(value: Any) -> float:
    """Numeric amount from a number or "1,650"-style text; 0 when unreadable."""
    if isinstance(value, str):
        value = value.replace(",", "")
    parsed = parse_number(value)
    return parsed if parsed is not None else 0.0


def _entry_amount(entry: dict[str, Any]) -> float:
    """Prefer the top of a quoted range, then its bottom, then the plain amount."""
    for key in ("amountMax", "amountMin", "amount"):
        amount = _amount(entry.get(key))
        if amount:
            return amount
    return 0.0


def _dicts(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_seen_date(value: Any) -> float:
    """Timestamp for sorting descriptions; undated entries sort oldest."""
    if not isinstance(value, str) or not value.strip():
        return 0.0
    # Datafiniti may send a comma-separated list of sightings; the first is enough
    first = value.split(",")[0].strip()
    try:
        parsed = datetime.fromisoformat(first.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class RecordNormalizer:
    """
    Validates provider records and maps them to Listing.

    Checks run in a fixed order and the first failure rejects the record:
    required fields, jurisdiction, coordinates, locality allow-list, then
    rental price. Rejection is signalled by returning None, never by raising.
    """

    def __init__(self, config: Optional[NormalizationConfig] = None):
        self.config = config or get_config().normalization
        self.bounds = BoundingBox(
            min_lat=self.config.min_latitude,
            max_lat=self.config.max_latitude,
            min_lon=self.config.min_longitude,
            max_lon=self.config.max_longitude,
        )
        self._synonyms = {s.strip().lower() for s in self.config.jurisdiction_synonyms}

    def normalize(self, raw: Any) -> Optional[Listing]:
        """Normalize one raw record, or return None if it is not a valid rental."""
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object record of type {type(raw).__name__}")
            return None
        try:
            return self._normalize(raw)
        except Exception as e:
            logger.warning(f"Failed to normalize record {raw.get('id')!r}: {e}")
            return None

    def normalize_batch(self, raws: Iterable[Any]) -> list[Listing]:
        """Normalize many records, dropping the invalid ones."""
        listings = []
        for index, raw in enumerate(raws):
            listing = self.normalize(raw)
            if listing is None:
                logger.info(f"Record {index} failed normalization")
                continue
            listings.append(listing)
        return listings

    def _normalize(self, raw: RawProviderRecord) -> Optional[Listing]:
        record_id = _text(raw.get("id"))
        address = _text(raw.get("address"))
        city = _text(raw.get("city"))
        # Datafiniti uses "province" instead of "state"
        region = _text(raw.get("province")) or _text(raw.get("state"))

        if not record_id:
            logger.warning("Record missing id")
            return None
        if not address or not city or not region:
            logger.warning(f"Record {record_id} missing address, city or province")
            return None

        if region.lower() not in self._synonyms:
            logger.warning(f"Record {record_id} is outside {self.config.jurisdiction} (province: {region})")
            return None

        latitude = parse_number(raw.get("latitude"))
        longitude = parse_number(raw.get("longitude"))
        if latitude is None or longitude is None:
            logger.warning(f"Record {record_id} has missing or invalid coordinates")
            return None
        if not self.bounds.contains(latitude, longitude):
            logger.warning(
                f"Record {record_id} is outside the allowed area (lat: {latitude}, lng: {longitude})"
            )
            return None

        locality = resolve_locality(city)
        if locality is None:
            logger.warning(f"Record {record_id} is not in an allowed city (city: {city})")
            return None

        price = self._extract_rent(raw)
        if price <= 0:
            logger.warning(f"Record {record_id} has no valid rental price")
            return None
        if price > self.config.max_monthly_rent:
            logger.warning(
                f"Record {record_id} price ${price} exceeds the ${self.config.max_monthly_rent}/month limit"
            )
            return None
        if price > self.config.sale_price_threshold:
            logger.warning(f"Record {record_id} price ${price} looks like a sale price")
            return None

        if self._marked_for_sale(raw):
            # Price evidence wins over status text
            logger.info(f"Record {record_id} is marked for sale but has a rental price, accepting it")

        return Listing(
            listing_id=record_id,
            address=address,
            # Stored as the display name so the ranker sees "Berkeley", not "Berkeley, CA"
            city=locality,
            state=self.config.jurisdiction,
            latitude=latitude,
            longitude=longitude,
            price=price,
            bedrooms=self._first_number(raw, "numBedrooms", "numBedroom"),
            bathrooms=self._first_number(raw, "numBathrooms", "numBathroom"),
            description=self._latest_description(raw),
        )

    def _extract_rent(self, raw: RawProviderRecord) -> int:
        """Resolve the monthly rent, or 0 when there is no rental price evidence."""
        price = self._rental_estimate(raw)
        if price <= 0:
            price = self._price_quote(raw)
        return int(round(price))

    def _rental_estimate(self, raw: RawProviderRecord) -> float:
        for feature in _dicts(raw.get("features")):
            key = _text(feature.get("key"))
            if key != RENTAL_ESTIMATE_KEY and "rental estimate" not in key.lower():
                continue
            value = feature.get("value")
            if isinstance(value, list):
                value = value[0] if value else None
            if value is None:
                return 0.0
            match = PRICE_FIGURE.search(str(value))
            if not match:
                logger.warning(f"Rental estimate without a readable price: {value!r}")
                return 0.0
            return float(match.group(1).replace(",", ""))
        return 0.0

    def _price_quote(self, raw: RawProviderRecord) -> float:
        prices = _dicts(raw.get("prices"))
        if not prices:
            return 0.0

        for entry in prices:
            if self._is_rent_quote(entry):
                return _entry_amount(entry)

        for entry in prices:
            if _flag(entry.get("isSale")) is True or _flag(entry.get("isSold")) is True:
                continue
            if _text(entry.get("type")).lower() in SALE_PRICE_TYPES:
                continue
            amount = _entry_amount(entry)
            if 0 < amount < self.config.fallback_price_ceiling:
                return amount
        return 0.0

    @staticmethod
    def _is_rent_quote(entry: dict[str, Any]) -> bool:
        if _text(entry.get("type")).lower() in RENT_PRICE_TYPES:
            return True
        return (
            _flag(entry.get("isSale")) is False
            and _flag(entry.get("isSold")) is False
            and _flag(entry.get("availability")) is True
        )

    @staticmethod
    def _marked_for_sale(raw: RawProviderRecord) -> bool:
        types = {_text(s.get("type")).lower() for s in _dicts(raw.get("statuses"))}
        return bool(types & SALE_STATUSES) and not types & RENT_STATUSES

    @staticmethod
    def _first_number(raw: RawProviderRecord, *keys: str) -> Optional[float]:
        """Bedroom/bathroom counts arrive under singular or plural names."""
        for key in keys:
            value = _amount(raw.get(key))
            if value:
                return value
        return None

    def _latest_description(self, raw: RawProviderRecord) -> Optional[str]:
        descriptions = _dicts(raw.get("descriptions"))
        if not descriptions:
            return None
        # sorted() is stable with reverse=True, so equal dates keep array order
        latest = sorted(
            descriptions,
            key=lambda d: _parse_seen_date(d.get("dateSeen")),
            reverse=True,
        )[0]
        text = latest.get("value")
        if not isinstance(text, str) or not text:
            return None
        cap = self.config.description_max_chars
        if len(text) > cap:
            text = text[:cap] + ELLIPSIS
        return text
