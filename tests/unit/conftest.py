"""In-memory collaborators shared by the unit tests."""

from datetime import datetime, timezone

import pytest

from trustgate.models.explore import CreatorProfile, Offer
from trustgate.services.candidate_store import CandidateQuery, sort_candidates

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

class FakeCandidateStore:
    """Applies CandidateQuery the way the Postgres store's SQL does."""

    def __init__(self, profiles: list[CreatorProfile]):
        self.profiles = profiles
        self.queries: list[CandidateQuery] = []

    async def fetch_candidates(self, query: CandidateQuery) -> list[CreatorProfile]:
        self.queries.append(query)
        matched = []
        for p in self.profiles:
            if query.role not in p.roles or p.status != "approved":
                continue
            if query.tier is not None and p.tier != query.tier:
                continue
            if query.badge_ids_any or query.created_after is not None:
                has_badge = bool(set(query.badge_ids_any) & set(p.badge_ids))
                is_recent = (
                    query.created_after is not None
                    and p.created_at is not None
                    and p.created_at >= query.created_after
                )
                if not (has_badge or is_recent):
                    continue
            matched.append(p)
        return sort_candidates(matched, query.order)[: query.limit]

class FailingCandidateStore(FakeCandidateStore):
    """Fails queries that ask for any of the given badges."""

    def __init__(self, profiles: list[CreatorProfile], fail_on_badge: str):
        super().__init__(profiles)
        self.fail_on_badge = fail_on_badge

    async def fetch_candidates(self, query: CandidateQuery) -> list[CreatorProfile]:
        if self.fail_on_badge in query.badge_ids_any:
            raise ConnectionError("candidate store unavailable")
        return await super().fetch_candidates(query)

class UnavailableCandidateStore(FakeCandidateStore):
    """Fails every query."""

    async def fetch_candidates(self, query: CandidateQuery) -> list[CreatorProfile]:
        self.queries.append(query)
        raise ConnectionError("candidate store unavailable")

class FakeOfferStore:
    def __init__(self, offers: list[Offer] | None = None):
        self.offers = offers or []
        self.calls: list[list[str]] = []

    async def fetch_active_offers(self, owner_ids: list[str]) -> list[Offer]:
        self.calls.append(list(owner_ids))
        return [o for o in self.offers if o.owner_id in owner_ids and o.active]

def make_creator(uid: str, **kwargs) -> CreatorProfile:
    kwargs.setdefault("roles", ["creator"])
    kwargs.setdefault("created_at", datetime(2025, 1, 1, tzinfo=timezone.utc))
    return CreatorProfile(uid=uid, **kwargs)

@pytest.fixture
def now() -> datetime:
    return NOW
