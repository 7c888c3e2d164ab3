"""Credibility score: tier precedence + curved credits + client diversity +
reviews + badges + response metrics + recency boost + inactivity decay.

Every term is computed independently and summed; the total is floored at 0.
The engine is deterministic given `now` and never reaches for a default
configuration on its own.
"""

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from trustgate.models.credibility import (
    BadgeDefinition,
    CredibilityConfig,
    CredibilityFactors,
    ResponseMetrics,
    Tier,
)
from trustgate.services.curves import capped_linear, diminishing_returns

REVIEW_POINTS_PER_REVIEW = 3
REVIEW_SCORE_CAP = 150

SECONDS_PER_DAY = 86400


class UnknownTierError(ValueError):
    """The factor snapshot names a tier the configuration does not weigh."""


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed since moment; never negative."""
    elapsed = (_as_utc(now) - _as_utc(moment)).total_seconds()
    return max(int(math.floor(elapsed / SECONDS_PER_DAY)), 0)


def days_since_last_activity(factors: CredibilityFactors, now: datetime) -> int | None:
    if factors.days_since_last_activity is not None:
        return max(factors.days_since_last_activity, 0)
    if factors.last_completed_at is not None:
        return days_since(factors.last_completed_at, now)
    return None


def tier_score(tier: Tier | str, config: CredibilityConfig) -> float:
    try:
        return config.tier_weights[Tier(tier)]
    except (KeyError, ValueError):
        raise UnknownTierError(f"no tier weight configured for {tier!r}") from None


def credit_score(credits: int, multiplier: float, config: CredibilityConfig) -> float:
    """Credits times multiplier, curved above the diminishing-returns threshold."""
    curve = config.diminishing_returns
    return diminishing_returns(max(credits, 0) * multiplier, curve.threshold, curve.log_scaling)


def diversity_score(distinct_clients: int, config: CredibilityConfig) -> float:
    caps = config.distinct_client_caps
    return capped_linear(distinct_clients, caps.per_client_score, caps.max_impact)


def review_score(positive_reviews: int) -> float:
    return capped_linear(positive_reviews, REVIEW_POINTS_PER_REVIEW, REVIEW_SCORE_CAP)


def badge_score(badges: list[BadgeDefinition] | None, now: datetime) -> float:
    """Sum of score impacts of badges that have not expired at `now`."""
    if not badges:
        return 0
    now = _as_utc(now)
    total = 0.0
    for badge in badges:
        if badge.expires_at is not None and _as_utc(badge.expires_at) <= now:
            continue
        total += badge.score_impact or 0
    return total


def response_bonus(
    response_rate: float | None,
    avg_response_time_hours: float | None,
    metrics: ResponseMetrics,
) -> float:
    """Rate bonus (first match, high to low) plus time bonus (first match, fast to ok)."""
    bonuses = metrics.bonuses
    bonus = 0.0

    if response_rate is not None:
        if response_rate >= metrics.excellent_response_rate:
            bonus += bonuses.excellent_response
        elif response_rate >= metrics.good_response_rate:
            bonus += bonuses.good_response
        elif response_rate >= metrics.decent_response_rate:
            bonus += bonuses.decent_response

    if avg_response_time_hours is not None and avg_response_time_hours >= 0:
        if avg_response_time_hours <= metrics.fast_response_time:
            bonus += bonuses.fast_time
        elif avg_response_time_hours <= metrics.good_response_time:
            bonus += bonuses.good_time
        elif avg_response_time_hours <= metrics.ok_response_time:
            bonus += bonuses.ok_time

    return bonus


def recency_boost(days: int | None, config: CredibilityConfig) -> float:
    if days is None:
        return 0
    windows = config.recency_windows
    boosts = config.recency_boosts
    if days <= windows.very_recent:
        return boosts.very_recent
    if days <= windows.recent:
        return boosts.recent
    if days <= windows.somewhat_recent:
        return boosts.somewhat_recent
    return 0


def inactivity_penalty(days: int | None, config: CredibilityConfig) -> float:
    if days is None:
        return 0
    windows = config.recency_windows
    penalties = config.inactivity_penalties
    if days > windows.heavy_penalty_threshold:
        return penalties.heavy
    if days > windows.inactivity_threshold:
        return penalties.moderate
    return 0


def credibility_breakdown(
    factors: CredibilityFactors,
    config: CredibilityConfig,
    now: datetime | None = None,
) -> dict[str, float]:
    """All nine score terms, keyed by name, before summing."""
    now = now or datetime.now(timezone.utc)
    multipliers = config.credit_multipliers
    days = days_since_last_activity(factors, now)

    return {
        "tier": tier_score(factors.tier, config),
        "axVerifiedCredits": credit_score(factors.ax_verified_credits, multipliers.ax_verified, config),
        "clientConfirmedCredits": credit_score(
            factors.client_confirmed_credits, multipliers.client_confirmed, config
        ),
        "clientDiversity": diversity_score(factors.distinct_clients_90d, config),
        "reviews": review_score(factors.positive_review_count),
        "badges": badge_score(factors.active_badges, now),
        "response": response_bonus(
            factors.response_rate, factors.avg_response_time_hours, config.response_metrics
        ),
        "recencyBoost": recency_boost(days, config),
        "inactivityPenalty": inactivity_penalty(days, config),
    }


def compute_credibility_score(
    factors: CredibilityFactors,
    config: CredibilityConfig,
    now: datetime | None = None,
) -> float:
    """Sum of all terms, never below 0."""
    return max(sum(credibility_breakdown(factors, config, now).values()), 0.0)


def extract_credibility_factors(
    profile: Mapping[str, Any],
    badges: list[BadgeDefinition] | None = None,
    now: datetime | None = None,
) -> CredibilityFactors:
    """Build a factor snapshot from a stored creator profile row.

    Missing counters read as 0; missing optional metrics stay None.
    """
    now = now or datetime.now(timezone.utc)
    last_completed = profile.get("last_completed_at")
    created_at = profile.get("created_at")

    return CredibilityFactors(
        tier=profile["tier"],
        ax_verified_credits=profile.get("ax_verified_credits") or 0,
        client_confirmed_credits=profile.get("client_confirmed_credits") or 0,
        distinct_clients_90d=profile.get("distinct_clients_90d") or 0,
        positive_review_count=profile.get("positive_review_count") or 0,
        completed_bookings=profile.get("completed_bookings") or 0,
        response_rate=profile.get("response_rate"),
        avg_response_time_hours=profile.get("avg_response_time_hours"),
        last_completed_at=last_completed,
        active_badges=badges,
        account_age_days=days_since(created_at, now) if created_at else None,
        days_since_last_activity=days_since(last_completed, now) if last_completed else None,
    )
