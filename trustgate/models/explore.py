from datetime import datetime

from pydantic import BaseModel, Field

from trustgate.models.credibility import Tier


class CreatorProfile(BaseModel):
    """A creator row as read by the explore composer."""

    uid: str
    display_name: str | None = Field(default=None, alias="displayName")
    roles: list[str] = Field(default_factory=list)
    status: str = "approved"
    tier: Tier = Tier.STANDARD
    credibility_score: float = Field(default=0.0, alias="credibilityScore")
    rank_score: float = Field(default=0.0, alias="rankScore")
    badge_ids: list[str] = Field(default_factory=list, alias="badgeIds")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    genres: list[str] = Field(default_factory=list)
    location: str | None = None
    availability: list[str] = Field(default_factory=list)
    rating: float | None = None
    media_count: int = Field(default=0, alias="mediaCount")
    completed_bookings: int = Field(default=0, alias="completedBookings")
    avg_response_time_hours: float | None = Field(default=None, alias="avgResponseTimeHours")
    room_count: int = Field(default=0, alias="roomCount")

    # Lane nudge applied for this response only. Never persisted.
    nudge: float = 0.0

    model_config = {"populate_by_name": True}

    @property
    def nudged_score(self) -> float:
        return self.credibility_score + self.nudge


class Offer(BaseModel):
    id: str
    owner_id: str = Field(alias="userId")
    role: str
    price: float = 0.0
    turnaround_days: int | None = Field(default=None, alias="turnaroundDays")
    active: bool = True
    license_options: list[str] = Field(default_factory=list, alias="licenseOptions")
    bpm: float | None = None
    service: str | None = None
    stem_tier: str | None = Field(default=None, alias="stemTier")
    category: str | None = None
    drone: bool | None = None
    room_type: str | None = Field(default=None, alias="roomType")
    engineer_included: bool | None = Field(default=None, alias="engineerIncluded")

    model_config = {"populate_by_name": True}


class ExploreFilters(BaseModel):
    role: str | None = None
    tier: Tier | None = None
    location: str | None = None
    genres: list[str] | None = None
    min_rating: float | None = Field(default=None, alias="minRating")
    only_available: bool = Field(default=False, alias="onlyAvailable")

    has_offers: bool = Field(default=False, alias="hasOffers")
    price_range: tuple[float, float] | None = Field(default=None, alias="priceRange")
    max_turnaround: int | None = Field(default=None, alias="maxTurnaround")

    license_options: list[str] | None = Field(default=None, alias="licenseOptions")
    bpm_range: tuple[float, float] | None = Field(default=None, alias="bpmRange")
    service: str | None = None
    stem_tier: str | None = Field(default=None, alias="stemTier")
    category: str | None = None
    drone: bool | None = None
    room_type: str | None = Field(default=None, alias="roomType")
    engineer_included: bool | None = Field(default=None, alias="engineerIncluded")

    model_config = {"populate_by_name": True}

    @property
    def has_offer_filters(self) -> bool:
        return bool(
            self.has_offers
            or self.price_range
            or self.max_turnaround is not None
            or self.license_options
            or self.bpm_range
            or self.service
            or self.stem_tier
            or self.category
            or self.drone is not None
            or self.room_type
            or self.engineer_included is not None
        )


class ExploreOptions(BaseModel):
    first_screen_mix: bool = True
    lane_nudges: bool = True
    tier_precedence: bool = True
    limit: int = Field(default=30, ge=1, le=100)


class MixRatios(BaseModel):
    top: float
    rising: float
    new_this_week: float = Field(alias="newThisWeek")

    model_config = {"populate_by_name": True}


class ExploreMetadata(BaseModel):
    total_results: int = Field(alias="totalResults")
    filters: ExploreFilters
    timestamp: datetime
    mix_ratios: MixRatios = Field(alias="mixRatios")
    offer_lookup_truncated: bool = Field(default=False, alias="offerLookupTruncated")
    failed_buckets: list[str] = Field(default_factory=list, exclude=True)

    model_config = {"populate_by_name": True}


class ExploreResult(BaseModel):
    top: list[CreatorProfile]
    rising: list[CreatorProfile]
    new_this_week: list[CreatorProfile] = Field(alias="newThisWeek")
    metadata: ExploreMetadata

    model_config = {"populate_by_name": True}
