"""Badge and credibility background worker.

Runs daily: expires lapsed dynamic badges, assigns newly earned ones and
recomputes each approved creator's credibility score from the refreshed
badge set.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

import asyncpg

from trustgate.models.credibility import CredibilityConfig
from trustgate.routers.metrics import credibility_recomputations
from trustgate.services.badge_service import BadgeRefresh, refresh_dynamic_badges, resolve_badges
from trustgate.services.credibility_service import (
    compute_credibility_score,
    days_since,
    extract_credibility_factors,
)

logger = logging.getLogger(__name__)

FETCH_CREATORS = """
    SELECT
        c.uid, c.tier, c.badge_ids, c.created_at,
        c.ax_verified_credits, c.client_confirmed_credits, c.positive_review_count,
        c.completed_bookings, c.response_rate, c.avg_response_time_hours,
        c.last_completed_at,
        COUNT(b.id) FILTER (WHERE b.completed_at >= NOW() - INTERVAL '7 days')  AS bookings_7d,
        COUNT(b.id) FILTER (WHERE b.completed_at >= NOW() - INTERVAL '30 days') AS bookings_30d,
        COUNT(DISTINCT b.client_uid)
            FILTER (WHERE b.completed_at >= NOW() - INTERVAL '90 days')         AS distinct_clients_90d
    FROM creators c
    LEFT JOIN bookings b ON b.provider_uid = c.uid AND b.status = 'completed'
    WHERE c.status = 'approved'
    GROUP BY c.uid
"""

UPDATE_CREATOR = """
    UPDATE creators
    SET badge_ids = $1, credibility_score = $2, credibility_updated_at = NOW()
    WHERE uid = $3
"""


@dataclass
class CreatorUpdate:
    uid: str
    badge_ids: list[str]
    credibility_score: float
    refresh: BadgeRefresh


def recompute_creator(
    row: Mapping[str, Any], config: CredibilityConfig, now: datetime
) -> CreatorUpdate:
    """Refresh dynamic badges for one creator row and score the result."""
    created_at = row.get("created_at")
    refresh = refresh_dynamic_badges(
        row.get("badge_ids") or [],
        account_age_days=days_since(created_at, now) if created_at else None,
        bookings_last_7d=row.get("bookings_7d") or 0,
        bookings_last_30d=row.get("bookings_30d") or 0,
    )
    badges = resolve_badges(refresh.badge_ids, now=now)
    factors = extract_credibility_factors(row, badges=badges, now=now)
    score = compute_credibility_score(factors, config, now)
    return CreatorUpdate(
        uid=row["uid"],
        badge_ids=refresh.badge_ids,
        credibility_score=round(score, 2),
        refresh=refresh,
    )


async def tick(pool: asyncpg.Pool, config: CredibilityConfig) -> None:
    """Run one cycle over every approved creator."""
    start = time.time()
    now = datetime.now(timezone.utc)
    rows = await pool.fetch(FETCH_CREATORS)

    updated = 0
    expired = 0
    assigned = 0
    for row in rows:
        uid = row["uid"]
        try:
            update = recompute_creator(dict(row), config, now)
            await pool.execute(UPDATE_CREATOR, update.badge_ids, update.credibility_score, uid)
            credibility_recomputations.inc()
            updated += 1
            expired += len(update.refresh.expired)
            assigned += len(update.refresh.assigned)
        except Exception:
            logger.exception("badge-worker: error recomputing %s", uid)

    elapsed = time.time() - start
    logger.info(
        "badge-worker: tick complete, %d creators rescored, %d badges expired, "
        "%d assigned (%.0fms)",
        updated,
        expired,
        assigned,
        elapsed * 1000,
    )


async def run(pool: asyncpg.Pool, config: CredibilityConfig, interval_seconds: int = 86400) -> None:
    """Run the badge worker loop until cancelled."""
    logger.info("badge-worker: starting (interval=%ds)", interval_seconds)

    try:
        await tick(pool, config)
    except Exception:
        logger.exception("badge-worker: error on initial tick")

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await tick(pool, config)
        except asyncio.CancelledError:
            logger.info("badge-worker: stopping (cancelled)")
            return
        except Exception:
            logger.exception("badge-worker: error during tick")
