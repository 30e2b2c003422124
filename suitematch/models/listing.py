"""
Listing models - canonical listing and the upstream search envelope.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# Raw provider records are untrusted dicts; nothing about their shape is assumed.
RawProviderRecord = dict[str, Any]


class Listing(BaseModel):
    """
    Canonical rental listing.
    Produced by normalization of provider records, or supplied by the
    application for listings authored by hosts.
    """
    model_config = ConfigDict(frozen=True)

    listing_id: str
    address: str
    city: str
    state: str
    latitude: float
    longitude: float
    price: int = Field(gt=0, description="Monthly rent")
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    description: Optional[str] = None

    # Fields carried by host-authored listings
    title: Optional[str] = None
    owner_id: Optional[str] = None
    zip_code: Optional[str] = None
    square_feet: Optional[int] = None
    photos: tuple[str, ...] = Field(default_factory=tuple)
    source: Literal["datafiniti", "user"] = "datafiniti"


class SearchResponse(BaseModel):
    """Envelope returned by the property search endpoint."""
    model_config = ConfigDict(extra="ignore")

    records: Optional[list[RawProviderRecord]] = None
    num_found: Optional[int] = None

    @property
    def record_list(self) -> list[RawProviderRecord]:
        """Records as a list; a missing field means zero results."""
        return list(self.records or [])
