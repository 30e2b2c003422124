"""
Profile models - user profiles used for roommate and listing matching.
"""
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProfilePrompt(BaseModel):
    """A prompt the user chose to answer on their profile."""
    prompt_id: str
    prompt_text: str
    answer: str = ""


class Profile(BaseModel):
    """
    A seeker (searcher) or host (homeowner) profile.
    Every preference field is optional; missing values score as neutral.
    """
    model_config = ConfigDict(frozen=True)

    profile_id: str
    role: Literal["searcher", "homeowner"] = "searcher"
    looking_for: Optional[Literal["roommates", "housing", "both"]] = None
    name: Optional[str] = None

    # Demographics
    age: Optional[int] = Field(default=None, ge=0)
    background: Optional[str] = Field(
        default=None,
        description="Self-described background; matching only ever gives a soft boost",
    )

    # Housing
    min_budget: Optional[int] = Field(default=None, ge=0)
    max_budget: Optional[int] = Field(default=None, ge=0)
    space_types: list[str] = Field(default_factory=list)
    roommate_type: Optional[Literal["roommates", "suitemates", "both"]] = None
    max_roommates: Optional[Union[int, str]] = None
    lease_duration: Optional[Union[int, str]] = None
    preferred_city: Optional[str] = None
    location: Optional[str] = None
    preferred_latitude: Optional[float] = None
    preferred_longitude: Optional[float] = None

    # Lifestyle
    smoking: Optional[str] = None
    pets: Optional[str] = None
    sleep_schedule: Optional[str] = None
    guests_allowed: Optional[str] = None
    cleanliness: Optional[int] = Field(default=None, ge=1, le=10)
    sociability: Optional[int] = Field(default=None, ge=1, le=10)

    # Free text
    bio: str = ""
    questions: list[str] = Field(default_factory=list)
    prompts: list[ProfilePrompt] = Field(default_factory=list, max_length=3)

    @field_validator("space_types", mode="before")
    @classmethod
    def parse_space_types(cls, v: Any) -> list[str]:
        """Accept a single space type or a list of them."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return list(v)

    @model_validator(mode="after")
    def check_budget_range(self) -> "Profile":
        if (
            self.min_budget is not None
            and self.max_budget is not None
            and self.min_budget > self.max_budget
        ):
            raise ValueError("min_budget must not exceed max_budget")
        return self

    @property
    def locality(self) -> Optional[str]:
        """Preferred city, falling back to where the user lives."""
        return self.preferred_city or self.location

    @property
    def seeks_roommates(self) -> bool:
        return self.role == "searcher" and self.looking_for in ("roommates", "both")

    @property
    def seeks_housing(self) -> bool:
        return self.role == "searcher" and self.looking_for in ("housing", "both")
