"""Core badge catalog and dynamic badge lifecycle.

Static badges (achievement, performance) never expire. Dynamic badges are
time-limited: when resolved for scoring they always carry an expiry, and
the badge worker removes them once their activity criteria lapse.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from trustgate.models.credibility import BadgeCategory, BadgeDefinition

FIRST_BOOKING = "first-booking"
MILESTONE_10_BOOKINGS = "milestone-10-bookings"
MILESTONE_50_BOOKINGS = "milestone-50-bookings"
MILESTONE_100_BOOKINGS = "milestone-100-bookings"
FIVE_STAR_STREAK = "five-star-streak"
FAST_RESPONDER = "fast-responder"
HIGH_COMPLETION_RATE = "high-completion-rate"
CLIENT_FAVORITE = "client-favorite"
RISING_TALENT = "rising-talent"
TRENDING_NOW = "trending-now"
NEW_THIS_WEEK = "new-this-week"

# Days a dynamic badge stays valid after assignment.
DYNAMIC_BADGE_TTL_DAYS = {
    TRENDING_NOW: 7,
    NEW_THIS_WEEK: 14,
    RISING_TALENT: 30,
}

# Dynamic badge eligibility thresholds.
NEW_ACCOUNT_MAX_DAYS = 7
TRENDING_MIN_BOOKINGS_7D = 2
RISING_MIN_BOOKINGS_30D = 3
RISING_MAX_ACCOUNT_DAYS = 90

_A = BadgeCategory.ACHIEVEMENT
_P = BadgeCategory.PERFORMANCE
_D = BadgeCategory.DYNAMIC

CORE_BADGES: tuple[BadgeDefinition, ...] = (
    BadgeDefinition(id=FIRST_BOOKING, name="First Booking", description="Completed a first booking", category=_A, score_impact=10),
    BadgeDefinition(id=MILESTONE_10_BOOKINGS, name="10 Bookings", description="Completed 10 bookings", category=_A, score_impact=25),
    BadgeDefinition(id=MILESTONE_50_BOOKINGS, name="50 Bookings", description="Completed 50 bookings", category=_A, score_impact=50),
    BadgeDefinition(id=MILESTONE_100_BOOKINGS, name="100 Bookings", description="Completed 100 bookings", category=_A, score_impact=100),
    BadgeDefinition(id=FIVE_STAR_STREAK, name="5-Star Streak", description="Five consecutive 5-star reviews", category=_P, score_impact=30),
    BadgeDefinition(id=FAST_RESPONDER, name="Fast Responder", description="Averages under 2 hours response time", category=_P, score_impact=20),
    BadgeDefinition(id=HIGH_COMPLETION_RATE, name="High Completion Rate", description="95%+ booking completion rate", category=_P, score_impact=25),
    BadgeDefinition(id=CLIENT_FAVORITE, name="Client Favorite", description="High repeat client rate", category=_P, score_impact=35),
    BadgeDefinition(id=RISING_TALENT, name="Rising Talent", description="Rapidly growing in bookings and ratings", category=_D, score_impact=40),
    BadgeDefinition(id=TRENDING_NOW, name="Trending Now", description="High booking activity this week", category=_D, score_impact=25),
    BadgeDefinition(id=NEW_THIS_WEEK, name="New This Week", description="Recently joined the marketplace", category=_D, score_impact=15),
    BadgeDefinition(id="beat-store-active", name="Beat Store Active", description="Active beat store with regular uploads", category=_A, score_impact=20, role="producer"),
    BadgeDefinition(id="fifty-plus-leases", name="50+ Leases", description="Achieved 50+ beat leases", category=_A, score_impact=40, role="producer"),
    BadgeDefinition(id="exclusive-sale", name="Exclusive Sale", description="First exclusive beat sale", category=_A, score_impact=30, role="producer"),
    BadgeDefinition(id="delivered-media-attached", name="Media Master", description="Delivers final video with all assets", category=_P, score_impact=25, role="videographer"),
    BadgeDefinition(id="on-time-streak-10", name="On-Time Streak", description="10+ consecutive on-time deliveries", category=_P, score_impact=35, role="engineer"),
    BadgeDefinition(id="twenty-mix-master-60d", name="Mix & Master Pro", description="20+ mix/master projects in 60 days", category=_P, score_impact=45, role="engineer"),
    BadgeDefinition(id="five-verified-features", name="Feature Artist", description="5+ verified feature collaborations", category=_A, score_impact=40, role="artist"),
    BadgeDefinition(id="high-end-gear-verified", name="High-End Gear", description="Studio verified with professional equipment", category=_A, score_impact=50, role="studio"),
    BadgeDefinition(id="verified-pro", name="Verified Pro", description="Verified professional with outstanding track record", category=_A, score_impact=75),
    BadgeDefinition(id="signature-artist", name="Signature Artist", description="Top-tier talent", category=_A, score_impact=100),
    BadgeDefinition(id="platform-pioneer", name="Platform Pioneer", description="Early adopter", category=_A, score_impact=50),
    BadgeDefinition(id="community-leader", name="Community Leader", description="Exceptional community contributor", category=_A, score_impact=60),
)

CORE_BADGES_BY_ID: dict[str, BadgeDefinition] = {b.id: b for b in CORE_BADGES}


def resolve_badges(
    badge_ids: Iterable[str],
    assigned_at: Mapping[str, datetime] | None = None,
    now: datetime | None = None,
) -> list[BadgeDefinition]:
    """Map stored badge ids to definitions. Unknown ids are skipped.

    Dynamic badges get expires_at = assignment time + TTL; when the
    assignment time is unknown the badge is treated as assigned at `now`.
    """
    now = now or datetime.now(timezone.utc)
    assigned_at = assigned_at or {}
    resolved: list[BadgeDefinition] = []
    for badge_id in badge_ids:
        badge = CORE_BADGES_BY_ID.get(badge_id)
        if badge is None:
            continue
        if badge.category == BadgeCategory.DYNAMIC:
            since = assigned_at.get(badge_id, now)
            ttl = timedelta(days=DYNAMIC_BADGE_TTL_DAYS[badge_id])
            badge = badge.model_copy(update={"expires_at": since + ttl})
        resolved.append(badge)
    return resolved


@dataclass
class BadgeRefresh:
    badge_ids: list[str]
    expired: list[str] = field(default_factory=list)
    assigned: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.expired or self.assigned)


def _should_expire(badge_id: str, account_age_days: int | None, bookings_7d: int, bookings_30d: int) -> bool:
    if badge_id == TRENDING_NOW:
        return bookings_7d == 0
    if badge_id == RISING_TALENT:
        return bookings_30d == 0
    if badge_id == NEW_THIS_WEEK:
        return account_age_days is None or account_age_days > DYNAMIC_BADGE_TTL_DAYS[NEW_THIS_WEEK]
    return False


def refresh_dynamic_badges(
    badge_ids: Iterable[str],
    account_age_days: int | None,
    bookings_last_7d: int,
    bookings_last_30d: int,
) -> BadgeRefresh:
    """Expire lapsed dynamic badges, then assign newly earned ones.

    An unknown account age counts as an old account.
    """
    current = list(dict.fromkeys(badge_ids))
    expired = [
        b for b in current
        if b in DYNAMIC_BADGE_TTL_DAYS
        and _should_expire(b, account_age_days, bookings_last_7d, bookings_last_30d)
    ]
    kept = [b for b in current if b not in expired]

    assigned: list[str] = []
    is_new = account_age_days is not None and account_age_days <= NEW_ACCOUNT_MAX_DAYS
    is_recent = account_age_days is not None and account_age_days < RISING_MAX_ACCOUNT_DAYS
    if NEW_THIS_WEEK not in kept and is_new:
        assigned.append(NEW_THIS_WEEK)
    if TRENDING_NOW not in kept and bookings_last_7d >= TRENDING_MIN_BOOKINGS_7D:
        assigned.append(TRENDING_NOW)
    if RISING_TALENT not in kept and bookings_last_30d >= RISING_MIN_BOOKINGS_30D and is_recent:
        assigned.append(RISING_TALENT)

    return BadgeRefresh(badge_ids=kept + assigned, expired=expired, assigned=assigned)
