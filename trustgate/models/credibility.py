from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class Tier(str, Enum):
    STANDARD = "standard"
    VERIFIED = "verified"
    SIGNATURE = "signature"


class BadgeCategory(str, Enum):
    ACHIEVEMENT = "achievement"
    PERFORMANCE = "performance"
    DYNAMIC = "dynamic"


class BadgeDefinition(BaseModel):
    """A badge attached to a creator. Expired badges score nothing."""

    id: str
    name: str
    description: str = ""
    category: BadgeCategory
    score_impact: float | None = Field(default=None, alias="scoreImpact")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")
    role: str | None = None

    model_config = {"populate_by_name": True, "frozen": True}


class CredibilityFactors(BaseModel):
    """Immutable per-creator snapshot fed to the scoring engine.

    Optional numeric fields are None when there is no data; 0 is a real value.
    """

    tier: Tier
    ax_verified_credits: int = Field(default=0, alias="axVerifiedCredits")
    client_confirmed_credits: int = Field(default=0, alias="clientConfirmedCredits")
    distinct_clients_90d: int = Field(default=0, alias="distinctClients90d")
    positive_review_count: int = Field(default=0, alias="positiveReviewCount")
    completed_bookings: int = Field(default=0, alias="completedBookings")
    response_rate: float | None = Field(default=None, alias="responseRate")
    avg_response_time_hours: float | None = Field(default=None, alias="avgResponseTimeHours")
    last_completed_at: datetime | None = Field(default=None, alias="lastCompletedAt")
    active_badges: list[BadgeDefinition] | None = Field(default=None, alias="activeBadges")
    account_age_days: int | None = Field(default=None, alias="accountAgeDays")
    days_since_last_activity: int | None = Field(default=None, alias="daysSinceLastActivity")

    model_config = {"populate_by_name": True, "frozen": True}


# --- Configuration sections ---


class CreditMultipliers(BaseModel):
    ax_verified: float = Field(default=3.0, alias="axVerified")
    client_confirmed: float = Field(default=2.0, alias="clientConfirmed")
    self_reported: float = Field(default=1.0, alias="selfReported")

    model_config = {"populate_by_name": True}


class DistinctClientCaps(BaseModel):
    max_impact: float = Field(default=100, alias="maxImpact")
    per_client_score: float = Field(default=5, alias="perClientScore")
    window_days: int = Field(default=90, alias="windowDays")

    model_config = {"populate_by_name": True}


class RecencyWindows(BaseModel):
    """Day thresholds. Boost windows ascend; penalty thresholds follow them."""

    very_recent: int = Field(default=7, alias="veryRecent")
    recent: int = Field(default=30, alias="recent")
    somewhat_recent: int = Field(default=90, alias="somewhatRecent")
    inactivity_threshold: int = Field(default=90, alias="inactivityThreshold")
    heavy_penalty_threshold: int = Field(default=180, alias="heavyPenaltyThreshold")

    model_config = {"populate_by_name": True}


class RecencyBoosts(BaseModel):
    very_recent: float = Field(default=50, alias="veryRecent")
    recent: float = Field(default=25, alias="recent")
    somewhat_recent: float = Field(default=10, alias="somewhatRecent")

    model_config = {"populate_by_name": True}


class InactivityPenalties(BaseModel):
    moderate: float = -50
    heavy: float = -100


class DiminishingReturnsConfig(BaseModel):
    threshold: float = 50
    log_scaling: float = Field(default=10, alias="logScaling")

    model_config = {"populate_by_name": True}


class ResponseBonuses(BaseModel):
    excellent_response: float = Field(default=30, alias="excellentResponse")
    good_response: float = Field(default=20, alias="goodResponse")
    decent_response: float = Field(default=10, alias="decentResponse")
    fast_time: float = Field(default=25, alias="fastTime")
    good_time: float = Field(default=15, alias="goodTime")
    ok_time: float = Field(default=5, alias="okTime")

    model_config = {"populate_by_name": True}


class ResponseMetrics(BaseModel):
    excellent_response_rate: float = Field(default=95, alias="excellentResponseRate")
    good_response_rate: float = Field(default=90, alias="goodResponseRate")
    decent_response_rate: float = Field(default=80, alias="decentResponseRate")
    fast_response_time: float = Field(default=1, alias="fastResponseTime")
    good_response_time: float = Field(default=4, alias="goodResponseTime")
    ok_response_time: float = Field(default=12, alias="okResponseTime")
    bonuses: ResponseBonuses = Field(default_factory=ResponseBonuses)

    model_config = {"populate_by_name": True}


def _default_tier_weights() -> dict[Tier, float]:
    return {Tier.SIGNATURE: 1000, Tier.VERIFIED: 500, Tier.STANDARD: 100}


class CredibilityConfig(BaseModel):
    """Tunable weights for the credibility engine.

    Construction fails on configuration errors: negative weights, positive
    inactivity penalties, a non-positive log scale, missing tiers, or boost
    windows that overlap the inactivity penalty windows.
    """

    tier_weights: dict[Tier, float] = Field(default_factory=_default_tier_weights, alias="tierWeights")
    credit_multipliers: CreditMultipliers = Field(default_factory=CreditMultipliers, alias="creditMultipliers")
    distinct_client_caps: DistinctClientCaps = Field(default_factory=DistinctClientCaps, alias="distinctClientCaps")
    recency_windows: RecencyWindows = Field(default_factory=RecencyWindows, alias="recencyWindows")
    recency_boosts: RecencyBoosts = Field(default_factory=RecencyBoosts, alias="recencyBoosts")
    inactivity_penalties: InactivityPenalties = Field(
        default_factory=InactivityPenalties, alias="inactivityPenalties"
    )
    diminishing_returns: DiminishingReturnsConfig = Field(
        default_factory=DiminishingReturnsConfig, alias="diminishingReturns"
    )
    response_metrics: ResponseMetrics = Field(default_factory=ResponseMetrics, alias="responseMetrics")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _check_invariants(self) -> "CredibilityConfig":
        missing = [t.value for t in Tier if t not in self.tier_weights]
        if missing:
            raise ValueError(f"tierWeights missing tiers: {', '.join(missing)}")

        sections = [
            self.credit_multipliers,
            self.distinct_client_caps,
            self.recency_windows,
            self.recency_boosts,
            self.diminishing_returns,
            self.response_metrics,
            self.response_metrics.bonuses,
        ]
        for section in sections:
            for name, value in section:
                if isinstance(value, (int, float)) and value < 0:
                    raise ValueError(f"{type(section).__name__}.{name} must be non-negative")
        for tier, weight in self.tier_weights.items():
            if weight < 0:
                raise ValueError(f"tier weight for {tier.value} must be non-negative")

        if self.inactivity_penalties.moderate > 0 or self.inactivity_penalties.heavy > 0:
            raise ValueError("inactivity penalties must be zero or negative")
        if self.diminishing_returns.log_scaling <= 0:
            raise ValueError("diminishingReturns.logScaling must be positive")

        w = self.recency_windows
        if not (w.very_recent <= w.recent <= w.somewhat_recent):
            raise ValueError("recency windows must ascend: veryRecent <= recent <= somewhatRecent")
        if w.somewhat_recent > w.inactivity_threshold:
            raise ValueError("somewhatRecent must not exceed inactivityThreshold")
        if w.inactivity_threshold > w.heavy_penalty_threshold:
            raise ValueError("inactivityThreshold must not exceed heavyPenaltyThreshold")
        return self


def default_credibility_config() -> CredibilityConfig:
    """The documented default weights.

    Tiers 1000/500/100; credit multipliers 3/2/1; distinct clients 5 points
    each capped at 100 over 90 days; recency boosts 50/25/10 within 7/30/90
    days; inactivity penalties -50 after 90 days and -100 after 180 days;
    diminishing returns above 50 points with a log scale of 10; response
    bonuses 30/20/10 at 95/90/80 percent and 25/15/5 at 1/4/12 hours.
    """
    return CredibilityConfig()


# --- API payloads ---


class ScoreRequest(BaseModel):
    """API request body for a credibility score computation."""

    factors: CredibilityFactors
    config: CredibilityConfig | None = None


class ScoreResponse(BaseModel):
    score: float
    breakdown: dict[str, float]
