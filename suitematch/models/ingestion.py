"""
Ingestion models - the call plan and per-call outcomes of one cycle.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .listing import Listing


class IngestionStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    CACHED = "cached"
    NOT_CONFIGURED = "not_configured"


class CallSpec(BaseModel):
    """One upstream call of the fan-out plan."""
    model_config = ConfigDict(frozen=True)

    locality: str
    ordinal: int = Field(ge=1, description="Position within the locality's share of calls")
    query: str

    @property
    def cache_key(self) -> str:
        slug = self.locality.lower().replace(" ", "")
        return f"{slug}{self.ordinal}_{self.query}"

    @property
    def label(self) -> str:
        return f"{self.locality} (Call {self.ordinal})"


class CallOutcome(BaseModel):
    """What one call produced. Failures carry an error instead of raising."""
    spec: CallSpec
    succeeded: bool
    listings: list[Listing] = Field(default_factory=list)
    error: Optional[str] = None
    from_cache: bool = False
    records_received: int = 0


class IngestionResult(BaseModel):
    """Merged outcome of one ingestion cycle."""
    status: IngestionStatus
    listings: list[Listing] = Field(default_factory=list)
    outcomes: list[CallOutcome] = Field(default_factory=list)

    @property
    def failed_calls(self) -> list[CallOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def succeeded_calls(self) -> list[CallOutcome]:
        return [o for o in self.outcomes if o.succeeded]
