"""Explore composition: merit-first buckets blended into the first screen.

With the first-screen mix enabled a page of L results is split into
roughly 70% top, 20% rising and 10% new creators. The three buckets are
fetched concurrently; a failing bucket comes back empty instead of failing
the request.
"""

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from trustgate.models.explore import (
    CreatorProfile,
    ExploreFilters,
    ExploreMetadata,
    ExploreOptions,
    ExploreResult,
    MixRatios,
    Offer,
)
from trustgate.services.badge_service import NEW_THIS_WEEK, RISING_TALENT, TRENDING_NOW
from trustgate.services.candidate_store import (
    CandidateOrder,
    CandidateQuery,
    CandidateStore,
    OfferStore,
    sort_candidates,
)

logger = logging.getLogger(__name__)

TOP_RATIO = 0.7
RISING_RATIO = 0.2
NEW_RATIO = 0.1
OVERFETCH_FACTOR = 2
NEW_CREATOR_DAYS = 7
MAX_SHUFFLE_SWAPS = 3

OFFER_LOOKUP_BATCH_LIMIT = 10
MAX_OFFER_LOOKUP_BATCHES = 6

RISING_BADGES = [RISING_TALENT, TRENDING_NOW]

# (role, bonus, predicate)
LANE_NUDGES: list[tuple[str, float, Callable[[CreatorProfile], bool]]] = [
    ("videographer", 10, lambda p: p.media_count > 3),
    ("producer", 15, lambda p: p.completed_bookings > 10),
    (
        "engineer",
        12,
        lambda p: p.avg_response_time_hours is not None and p.avg_response_time_hours < 4,
    ),
    ("studio", 8, lambda p: p.room_count > 1),
]


@dataclass
class BucketResult:
    profiles: list[CreatorProfile]
    offers_truncated: bool = False


def bucket_size(limit: int, ratio: float) -> int:
    # 30 * 0.1 must give 3, not 4
    return math.ceil(round(limit * ratio, 6))


def lane_nudge(profile: CreatorProfile, role: str) -> float:
    for lane, bonus, qualifies in LANE_NUDGES:
        if lane == role and qualifies(profile):
            return bonus
    return 0.0


def apply_lane_nudges(
    profiles: list[CreatorProfile], role: str, order: CandidateOrder
) -> list[CreatorProfile]:
    """Attach transient nudges and re-sort. Tier precedence is kept when active."""
    nudged = [p.model_copy(update={"nudge": lane_nudge(p, role)}) for p in profiles]
    return sort_candidates(nudged, order)


def light_shuffle(items: list, rng: random.Random) -> list:
    """Swap min(3, n // 4) random index pairs."""
    result = list(items)
    n = len(result)
    for _ in range(min(MAX_SHUFFLE_SWAPS, n // 4)):
        i = rng.randrange(n)
        j = rng.randrange(n)
        result[i], result[j] = result[j], result[i]
    return result


def matches_profile_filters(profile: CreatorProfile, filters: ExploreFilters) -> bool:
    if filters.location:
        if not profile.location or filters.location.lower() not in profile.location.lower():
            return False

    if filters.genres:
        wanted = [g.lower() for g in filters.genres]
        if not any(w in genre.lower() for genre in profile.genres for w in wanted):
            return False

    if filters.min_rating is not None:
        if profile.rating is None or profile.rating < filters.min_rating:
            return False

    if filters.only_available and not profile.availability:
        return False

    return True


def matches_offer_filters(offers: list[Offer], filters: ExploreFilters) -> bool:
    """True if the creator's active offers satisfy every requested offer filter."""
    if not offers:
        return False

    if filters.role:
        offers = [o for o in offers if o.role == filters.role]
        if not offers:
            return False

    if filters.price_range:
        low, high = filters.price_range
        if not any(low <= o.price <= high for o in offers):
            return False

    if filters.max_turnaround is not None:
        if not any(
            o.turnaround_days is not None and o.turnaround_days <= filters.max_turnaround
            for o in offers
        ):
            return False

    if filters.role == "producer":
        if filters.license_options:
            if not any(set(o.license_options) & set(filters.license_options) for o in offers):
                return False
        if filters.bpm_range:
            low, high = filters.bpm_range
            if not any(o.bpm is not None and low <= o.bpm <= high for o in offers):
                return False

    elif filters.role == "engineer":
        if filters.service and not any(o.service == filters.service for o in offers):
            return False
        if filters.stem_tier and not any(o.stem_tier == filters.stem_tier for o in offers):
            return False

    elif filters.role == "videographer":
        if filters.category and not any(o.category == filters.category for o in offers):
            return False
        if filters.drone is not None and not any(o.drone == filters.drone for o in offers):
            return False

    elif filters.role == "studio":
        if filters.room_type and not any(o.room_type == filters.room_type for o in offers):
            return False
        if filters.engineer_included is not None and not any(
            o.engineer_included == filters.engineer_included for o in offers
        ):
            return False

    return True


class ExploreComposer:
    def __init__(
        self,
        candidates: CandidateStore,
        offers: OfferStore,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._candidates = candidates
        self._offers = offers
        self._rng = rng or random.Random()
        self._clock = clock

    async def compose(self, filters: ExploreFilters, options: ExploreOptions) -> ExploreResult:
        limit = options.limit
        now = self._clock()

        if not options.first_screen_mix:
            (top,), failed = await self._gather_buckets({"top": self._top(filters, options, limit)})
            return ExploreResult(
                top=top.profiles,
                rising=[],
                new_this_week=[],
                metadata=ExploreMetadata(
                    total_results=len(top.profiles),
                    filters=filters,
                    timestamp=now,
                    mix_ratios=MixRatios(top=1.0, rising=0.0, new_this_week=0.0),
                    offer_lookup_truncated=top.offers_truncated,
                    failed_buckets=failed,
                ),
            )

        buckets, failed = await self._gather_buckets({
            "top": self._top(filters, options, bucket_size(limit, TOP_RATIO)),
            "rising": self._rising(filters, options, bucket_size(limit, RISING_RATIO)),
            "newThisWeek": self._new(filters, options, bucket_size(limit, NEW_RATIO), now),
        })

        top, rising, new = (light_shuffle(b.profiles, self._rng) for b in buckets)
        return ExploreResult(
            top=top,
            rising=rising,
            new_this_week=new,
            metadata=ExploreMetadata(
                total_results=len(top) + len(rising) + len(new),
                filters=filters,
                timestamp=now,
                mix_ratios=MixRatios(
                    top=len(top) / limit,
                    rising=len(rising) / limit,
                    new_this_week=len(new) / limit,
                ),
                offer_lookup_truncated=any(b.offers_truncated for b in buckets),
                failed_buckets=failed,
            ),
        )

    # --- buckets ---

    async def _gather_buckets(
        self, fetches: dict[str, Awaitable[BucketResult]]
    ) -> tuple[list[BucketResult], list[str]]:
        """Run bucket fetches concurrently. A failed fetch yields an empty bucket."""
        results = await asyncio.gather(*fetches.values(), return_exceptions=True)
        buckets: list[BucketResult] = []
        failed: list[str] = []
        for name, result in zip(fetches, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("explore: %s bucket failed: %s", name, result, exc_info=result)
                failed.append(name)
                buckets.append(BucketResult(profiles=[]))
            else:
                buckets.append(result)
        return buckets, failed

    async def _top(self, filters: ExploreFilters, options: ExploreOptions, limit: int) -> BucketResult:
        order = (
            CandidateOrder.TIER_THEN_CREDIBILITY
            if options.tier_precedence
            else CandidateOrder.RANK_SCORE
        )
        profiles = await self._candidates.fetch_candidates(
            CandidateQuery(
                role=filters.role or "creator",
                tier=filters.tier,
                order=order,
                limit=limit * OVERFETCH_FACTOR,
            )
        )
        return await self._finish(profiles, filters, options, order, limit, nudge=True)

    async def _rising(self, filters: ExploreFilters, options: ExploreOptions, limit: int) -> BucketResult:
        order = CandidateOrder.CREDIBILITY if options.tier_precedence else CandidateOrder.RANK_SCORE
        profiles = await self._candidates.fetch_candidates(
            CandidateQuery(
                role=filters.role or "creator",
                tier=filters.tier,
                badge_ids_any=list(RISING_BADGES),
                order=order,
                limit=limit * OVERFETCH_FACTOR,
            )
        )
        return await self._finish(profiles, filters, options, order, limit, nudge=True)

    async def _new(
        self, filters: ExploreFilters, options: ExploreOptions, limit: int, now: datetime
    ) -> BucketResult:
        order = CandidateOrder.CREDIBILITY if options.tier_precedence else CandidateOrder.CREATED_AT
        profiles = await self._candidates.fetch_candidates(
            CandidateQuery(
                role=filters.role or "creator",
                tier=filters.tier,
                badge_ids_any=[NEW_THIS_WEEK],
                created_after=now - timedelta(days=NEW_CREATOR_DAYS),
                order=order,
                limit=limit,
            )
        )
        return await self._finish(profiles, filters, options, order, limit, nudge=False)

    async def _finish(
        self,
        profiles: list[CreatorProfile],
        filters: ExploreFilters,
        options: ExploreOptions,
        order: CandidateOrder,
        limit: int,
        nudge: bool,
    ) -> BucketResult:
        bucket = await self._apply_filters(profiles, filters)
        if nudge and options.lane_nudges and filters.role:
            bucket.profiles = apply_lane_nudges(bucket.profiles, filters.role, order)
        bucket.profiles = bucket.profiles[:limit]
        return bucket

    # --- filtering ---

    async def _apply_filters(self, profiles: list[CreatorProfile], filters: ExploreFilters) -> BucketResult:
        kept = [p for p in profiles if matches_profile_filters(p, filters)]
        if not filters.has_offer_filters or not kept:
            return BucketResult(profiles=kept)

        max_lookups = OFFER_LOOKUP_BATCH_LIMIT * MAX_OFFER_LOOKUP_BATCHES
        truncated = len(kept) > max_lookups
        if truncated:
            logger.warning(
                "explore: offer lookup capped at %d of %d candidates", max_lookups, len(kept)
            )
            kept = kept[:max_lookups]

        by_owner = await self._lookup_offers([p.uid for p in kept])
        matched = [p for p in kept if matches_offer_filters(by_owner.get(p.uid, []), filters)]
        return BucketResult(profiles=matched, offers_truncated=truncated)

    async def _lookup_offers(self, owner_ids: list[str]) -> dict[str, list[Offer]]:
        by_owner: dict[str, list[Offer]] = {}
        for start in range(0, len(owner_ids), OFFER_LOOKUP_BATCH_LIMIT):
            batch = owner_ids[start:start + OFFER_LOOKUP_BATCH_LIMIT]
            for offer in await self._offers.fetch_active_offers(batch):
                if offer.active:
                    by_owner.setdefault(offer.owner_id, []).append(offer)
        return by_owner
