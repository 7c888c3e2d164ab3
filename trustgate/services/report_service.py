"""Anti-gaming summary report for moderators."""

import logging
from datetime import datetime, timedelta, timezone

from trustgate.models.game import (
    AntiGamingReport,
    LeaderboardPeriod,
    PenaltyType,
    ReportSummary,
    UserGameBehavior,
    ViolatorSummary,
)
from trustgate.services.antigaming_service import profile_risk
from trustgate.services.behavior_store import BehaviorStore

logger = logging.getLogger(__name__)

TOP_VIOLATORS = 10

_WINDOWS = {
    LeaderboardPeriod.DAILY: timedelta(days=1),
    LeaderboardPeriod.WEEKLY: timedelta(days=7),
    LeaderboardPeriod.MONTHLY: timedelta(days=30),
}


def _active_since(behavior: UserGameBehavior, cutoff: datetime | None) -> bool:
    if cutoff is None:
        return True
    if behavior.last_activity is None:
        return False
    last = behavior.last_activity
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return last >= cutoff


def _recommendations(summary: ReportSummary, profiles: list[UserGameBehavior]) -> list[str]:
    recs = []
    if summary.total_actions and summary.suspicious_actions / summary.total_actions > 0.05:
        recs.append("Implement additional verification for rapid completions")
    if any(p.type == PenaltyType.SCORE_REDUCTION for b in profiles for p in b.penalties):
        recs.append("Review challenge difficulty balancing")
    if any(b.escalation.temporary_bans > 0 for b in profiles):
        recs.append("Consider stricter rate limiting for new users")
    if summary.users_affected:
        recs.append("Monitor top leaderboard positions more closely")
    if not recs:
        recs.append("No action needed - suspicious activity within normal levels")
    return recs


async def generate_report(
    store: BehaviorStore,
    timeframe: LeaderboardPeriod,
    now: datetime | None = None,
) -> AntiGamingReport:
    now = now or datetime.now(timezone.utc)
    window = _WINDOWS.get(timeframe)
    cutoff = now - window if window is not None else None

    profiles = [b async for b in store.iter_profiles() if _active_since(b, cutoff)]

    summary = ReportSummary(
        total_actions=sum(b.total_actions for b in profiles),
        suspicious_actions=sum(b.suspicious_actions for b in profiles),
        penalties_issued=sum(len(b.penalties) for b in profiles),
        users_affected=sum(1 for b in profiles if b.penalties),
    )

    violators = sorted(
        (b for b in profiles if b.suspicious_actions or b.penalties),
        key=lambda b: (b.suspicious_actions, len(b.penalties)),
        reverse=True,
    )[:TOP_VIOLATORS]

    logger.info(
        "report: %s window, %d profiles, %d users affected",
        timeframe.value, len(profiles), summary.users_affected,
    )
    return AntiGamingReport(
        timeframe=timeframe,
        generated_at=now,
        summary=summary,
        top_violators=[
            ViolatorSummary(
                user_id=b.user_id,
                violation_count=b.suspicious_actions,
                risk_score=round(profile_risk(b), 4),
                penalties=b.penalties,
            )
            for b in violators
        ],
        recommendations=_recommendations(summary, profiles),
    )
