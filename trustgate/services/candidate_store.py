"""Creator and offer stores read by the explore composer."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

import asyncpg

from trustgate.models.credibility import Tier
from trustgate.models.explore import CreatorProfile, Offer

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "creator"

# Lower sorts first.
TIER_PRECEDENCE = {Tier.SIGNATURE: 0, Tier.VERIFIED: 1, Tier.STANDARD: 2}


class CandidateOrder(str, Enum):
    TIER_THEN_CREDIBILITY = "tier_then_credibility"
    CREDIBILITY = "credibility"
    RANK_SCORE = "rank_score"
    CREATED_AT = "created_at"


@dataclass
class CandidateQuery:
    """Approved creators with a role, optionally narrowed by tier and badges.

    badge_ids_any and created_after are OR-ed: a creator matches with any of
    the badges or with a creation time at or after created_after.
    """

    role: str = DEFAULT_ROLE
    tier: Tier | None = None
    badge_ids_any: list[str] = field(default_factory=list)
    created_after: datetime | None = None
    order: CandidateOrder = CandidateOrder.CREDIBILITY
    limit: int = 30


class CandidateStore(Protocol):
    async def fetch_candidates(self, query: CandidateQuery) -> list[CreatorProfile]: ...


class OfferStore(Protocol):
    async def fetch_active_offers(self, owner_ids: list[str]) -> list[Offer]: ...


def sort_candidates(profiles: list[CreatorProfile], order: CandidateOrder) -> list[CreatorProfile]:
    """Python equivalent of the store's ORDER BY. Used on nudged buckets."""
    if order == CandidateOrder.TIER_THEN_CREDIBILITY:
        return sorted(profiles, key=lambda p: (TIER_PRECEDENCE[p.tier], -p.nudged_score))
    if order == CandidateOrder.RANK_SCORE:
        return sorted(profiles, key=lambda p: p.rank_score + p.nudge, reverse=True)
    if order == CandidateOrder.CREATED_AT:
        return sorted(
            profiles,
            key=lambda p: p.created_at.timestamp() if p.created_at else float("-inf"),
            reverse=True,
        )
    return sorted(profiles, key=lambda p: p.nudged_score, reverse=True)


# --- Postgres ---

_CREATOR_COLUMNS = """
    uid, display_name, roles, status, tier, credibility_score, rank_score,
    badge_ids, created_at, genres, location, availability, rating,
    media_count, completed_bookings, avg_response_time_hours, room_count
"""

_ORDER_BY = {
    CandidateOrder.TIER_THEN_CREDIBILITY: (
        "CASE tier WHEN 'signature' THEN 0 WHEN 'verified' THEN 1 ELSE 2 END ASC, "
        "credibility_score DESC"
    ),
    CandidateOrder.CREDIBILITY: "credibility_score DESC",
    CandidateOrder.RANK_SCORE: "rank_score DESC",
    CandidateOrder.CREATED_AT: "created_at DESC NULLS LAST",
}

_FETCH_OFFERS = """
    SELECT id, user_id, role, price, turnaround_days, active, license_options,
           bpm, service, stem_tier, category, drone, room_type, engineer_included
    FROM offers
    WHERE user_id = ANY($1::text[]) AND active = true
"""


def build_candidate_sql(query: CandidateQuery) -> tuple[str, list]:
    args: list = [query.role or DEFAULT_ROLE]
    where = ["$1 = ANY(roles)", "status = 'approved'"]

    if query.tier is not None:
        args.append(query.tier.value)
        where.append(f"tier = ${len(args)}")

    alternatives = []
    if query.badge_ids_any:
        args.append(list(query.badge_ids_any))
        alternatives.append(f"badge_ids && ${len(args)}::text[]")
    if query.created_after is not None:
        args.append(query.created_after)
        alternatives.append(f"created_at >= ${len(args)}")
    if alternatives:
        where.append("(" + " OR ".join(alternatives) + ")")

    args.append(query.limit)
    sql = (
        f"SELECT {_CREATOR_COLUMNS} FROM creators "
        f"WHERE {' AND '.join(where)} "
        f"ORDER BY {_ORDER_BY[query.order]} "
        f"LIMIT ${len(args)}"
    )
    return sql, args


def _row_to_profile(row: asyncpg.Record) -> CreatorProfile:
    return CreatorProfile(
        uid=row["uid"],
        display_name=row["display_name"],
        roles=list(row["roles"] or []),
        status=row["status"],
        tier=Tier(row["tier"]),
        credibility_score=row["credibility_score"] or 0.0,
        rank_score=row["rank_score"] or 0.0,
        badge_ids=list(row["badge_ids"] or []),
        created_at=row["created_at"],
        genres=list(row["genres"] or []),
        location=row["location"],
        availability=list(row["availability"] or []),
        rating=row["rating"],
        media_count=row["media_count"] or 0,
        completed_bookings=row["completed_bookings"] or 0,
        avg_response_time_hours=row["avg_response_time_hours"],
        room_count=row["room_count"] or 0,
    )


def _row_to_offer(row: asyncpg.Record) -> Offer:
    return Offer(
        id=str(row["id"]),
        owner_id=row["user_id"],
        role=row["role"],
        price=row["price"] or 0.0,
        turnaround_days=row["turnaround_days"],
        active=row["active"],
        license_options=list(row["license_options"] or []),
        bpm=row["bpm"],
        service=row["service"],
        stem_tier=row["stem_tier"],
        category=row["category"],
        drone=row["drone"],
        room_type=row["room_type"],
        engineer_included=row["engineer_included"],
    )


class PostgresCandidateStore:
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def fetch_candidates(self, query: CandidateQuery) -> list[CreatorProfile]:
        sql, args = build_candidate_sql(query)
        rows = await self._pool.fetch(sql, *args)
        return [_row_to_profile(row) for row in rows]


class PostgresOfferStore:
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def fetch_active_offers(self, owner_ids: list[str]) -> list[Offer]:
        if not owner_ids:
            return []
        rows = await self._pool.fetch(_FETCH_OFFERS, list(owner_ids))
        return [_row_to_offer(row) for row in rows]
