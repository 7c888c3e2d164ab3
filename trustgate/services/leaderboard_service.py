"""Leaderboard integrity verification."""

import logging

from trustgate.models.game import (
    AntiGamingConfig,
    LeaderboardEntry,
    LeaderboardPeriod,
)
from trustgate.services.antigaming_service import profile_risk
from trustgate.services.behavior_store import BehaviorStore
from trustgate.services.score_history import PERIOD_HOURS, ScoreHistory

logger = logging.getLogger(__name__)


def max_possible_score(period: LeaderboardPeriod, config: AntiGamingConfig) -> float | None:
    """Theoretical ceiling for a period. All-time boards have none."""
    hours = PERIOD_HOURS.get(period)
    if hours is None:
        return None
    return hours * config.max_actions_per_hour * config.max_score_per_action


def _flag(entry: LeaderboardEntry, reason: str) -> None:
    parts = [p for p in (entry.flag_reason or "").split("; ") if p]
    if reason not in parts:
        parts.append(reason)
    entry.flagged = True
    entry.flag_reason = "; ".join(parts)


class LeaderboardVerifier:
    def __init__(
        self,
        config: AntiGamingConfig,
        store: BehaviorStore,
        history: ScoreHistory | None = None,
    ):
        self.config = config
        self._store = store
        self._history = history

    async def verify(
        self, entries: list[LeaderboardEntry], period: LeaderboardPeriod
    ) -> list[LeaderboardEntry]:
        """Verify, clamp and re-rank entries. Input rank values are ignored.

        Applying verify() to its own output returns the same list. The
        verified board is recorded as this period's scores, which the next
        period's growth check compares against.
        """
        cfg = self.config
        board = [e.model_copy(deep=True) for e in entries]

        ceiling = max_possible_score(period, cfg)
        if ceiling is not None:
            for entry in board:
                if entry.score > ceiling:
                    _flag(
                        entry,
                        f"Score {entry.score:g} exceeds maximum possible {ceiling:g} for time period",
                    )
                    entry.score = ceiling

        board.sort(key=lambda e: e.score, reverse=True)

        kept: list[LeaderboardEntry] = []
        for entry in board:
            if len(kept) >= cfg.top_rank_verification_count:
                kept.append(entry)
                continue
            if await self._verify_top_rank(entry, period):
                kept.append(entry)

        for rank, entry in enumerate(kept, start=1):
            entry.rank = rank

        if self._history is not None:
            await self._history.record(kept, period)
        return kept

    async def _verify_top_rank(self, entry: LeaderboardEntry, period: LeaderboardPeriod) -> bool:
        """Checks a top-ranked entry in place. Returns False if it must be removed."""
        cfg = self.config
        behavior = await self._store.get(entry.user_id)
        entry.verified = True
        if behavior is None:
            return True

        risk = profile_risk(behavior)
        if risk > cfg.leaderboard_risk_threshold:
            logger.warning(
                "leaderboard: removing %s from %s board (risk %.2f)", entry.user_id, period.value, risk
            )
            entry.verified = False
            _flag(entry, "High risk user - under review")
            return False

        if behavior.suspicious_ratio > cfg.leaderboard_suspicious_ratio:
            entry.verified = False
            _flag(entry, "High suspicious activity ratio")

        if self._history is not None:
            previous = await self._history.previous_score(entry.user_id, period)
            if previous and previous > 0 and entry.score / previous > cfg.leaderboard_growth_rate:
                entry.verified = False
                _flag(entry, "Unusual score growth pattern")

        return True
