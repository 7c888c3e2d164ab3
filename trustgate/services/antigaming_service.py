"""Anti-gaming validation for gamified actions.

Pipeline per action:
    1. rate limit      atomic hourly counter per (user, action type)
    2. score bounds    per-action ceiling, then daily accumulation ceiling
    3. pattern risk    interval, cadence and history heuristics
    4. challenge time  plausibility of time-to-complete vs. reported score
    5. escalation      warnings -> temporary ban -> permanent ban

Abuse outcomes are results (valid=False + penalties), never exceptions.
"""

import logging
import math
import statistics
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from trustgate.models.game import (
    ActionType,
    AntiGamingConfig,
    GameAction,
    GameActionValidation,
    GamePenalty,
    PenaltyType,
    Severity,
    UserGameBehavior,
)
from trustgate.services import escalation
from trustgate.services.action_counter import ActionCounter, action_key
from trustgate.services.behavior_store import BehaviorStore

logger = logging.getLogger(__name__)

RATE_WINDOW_SECONDS = 3600

# Pattern heuristics
AUTOMATION_RISK = 0.5
RAPID_ACTION_RISK = 0.3
UNIFORM_CADENCE_RISK = 0.3
SUSPICIOUS_HISTORY_RISK = 0.2
UNIFORM_CADENCE_MAX_CV = 0.1  # stdev / mean of recent intervals
MIN_INTERVALS_FOR_CADENCE = 5
MIN_ACTIONS_FOR_HISTORY = 10
RECENT_INTERVALS_KEPT = 10

# Weight of the newest action's risk in the profile's smoothed risk score.
RISK_SMOOTHING = 0.3
PATTERN_FLAG_RISK = 0.2

DAILY_LIMIT_REDUCTION = 0.5

MANUAL_REVIEW_REASON = "Validation system error - manual review required"


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class PatternAnalysis:
    risk_score: float
    patterns: list[str] = field(default_factory=list)
    interval: float | None = None


def analyze_pattern(
    behavior: UserGameBehavior,
    timestamp: datetime,
    config: AntiGamingConfig,
) -> PatternAnalysis:
    """Risk in [0, 1] that this action is automated or abusive."""
    risk = 0.0
    patterns: list[str] = []
    interval: float | None = None

    if behavior.last_activity is not None:
        interval = max((timestamp - _as_utc(behavior.last_activity)).total_seconds(), 0.0)
        if interval < config.rapid_action_threshold_seconds:
            patterns.append("Automated behavior detected")
            risk += AUTOMATION_RISK
        elif interval < config.min_action_interval_seconds:
            patterns.append("Rapid sequential actions")
            risk += RAPID_ACTION_RISK

    recent = list(behavior.recent_intervals)
    if interval is not None:
        recent.append(interval)
    recent = recent[-RECENT_INTERVALS_KEPT:]
    if len(recent) >= MIN_INTERVALS_FOR_CADENCE:
        mean = statistics.fmean(recent)
        if mean > 0 and statistics.pstdev(recent) / mean < UNIFORM_CADENCE_MAX_CV:
            patterns.append("Uniform action cadence")
            risk += UNIFORM_CADENCE_RISK

    if (
        behavior.total_actions >= MIN_ACTIONS_FOR_HISTORY
        and behavior.suspicious_ratio > config.leaderboard_suspicious_ratio
    ):
        patterns.append("History of suspicious actions")
        risk += SUSPICIOUS_HISTORY_RISK

    return PatternAnalysis(risk_score=round(min(risk, 1.0), 4), patterns=patterns, interval=interval)


def profile_risk(behavior: UserGameBehavior) -> float:
    """Risk of a stored profile, used when re-verifying rankings."""
    flag = PATTERN_FLAG_RISK if behavior.pattern_detected else 0.0
    return min(1.0, max(behavior.risk_score, behavior.suspicious_ratio + flag))


def expected_challenge_score(time_to_complete: float, config: AntiGamingConfig) -> float:
    """Base score plus a bonus for finishing inside the bonus window."""
    bonus = max(0.0, config.challenge_time_bonus_window_seconds - time_to_complete)
    return config.challenge_base_score + bonus


@dataclass
class ChallengeCheck:
    valid: bool
    score: float
    reason: str | None = None
    penalties: list[GamePenalty] = field(default_factory=list)


def validate_challenge_completion(
    time_to_complete: float,
    score: float,
    config: AntiGamingConfig,
) -> ChallengeCheck:
    if time_to_complete < config.min_challenge_seconds:
        return ChallengeCheck(
            valid=False,
            score=0,
            reason=(
                f"Challenge completed too quickly ({time_to_complete:g}s < "
                f"{config.min_challenge_seconds:g}s minimum)"
            ),
            penalties=[
                GamePenalty(
                    type=PenaltyType.WARNING,
                    severity=Severity.HIGH,
                    description="Suspiciously fast challenge completion",
                )
            ],
        )

    if time_to_complete > config.max_challenge_seconds:
        return ChallengeCheck(
            valid=False,
            score=0,
            reason="Challenge completion time exceeded maximum allowed duration",
            penalties=[
                GamePenalty(
                    type=PenaltyType.WARNING,
                    severity=Severity.LOW,
                    description="Challenge took too long to complete",
                )
            ],
        )

    expected = expected_challenge_score(time_to_complete, config)
    if score > expected * config.challenge_score_tolerance:
        return ChallengeCheck(
            valid=True,
            score=expected,
            reason="Score adjusted based on completion time",
            penalties=[
                GamePenalty(
                    type=PenaltyType.SCORE_REDUCTION,
                    severity=Severity.MEDIUM,
                    description="Score too high for completion time",
                    score_impact=score - expected,
                )
            ],
        )

    return ChallengeCheck(valid=True, score=score)


class AntiGamingValidator:
    """Validates actions against a behavior store and an atomic action counter."""

    def __init__(
        self,
        config: AntiGamingConfig,
        store: BehaviorStore,
        counter: ActionCounter,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config
        self._store = store
        self._counter = counter
        self._clock = clock

    async def validate_action(self, user_id: str, action: GameAction) -> GameActionValidation:
        try:
            return await self._validate(user_id, action)
        except Exception:
            logger.exception("anti-gaming: validation failed for %s", user_id)
            return GameActionValidation(
                valid=False,
                score=0,
                reason=MANUAL_REVIEW_REASON,
                penalties=[
                    GamePenalty(
                        type=PenaltyType.WARNING,
                        severity=Severity.LOW,
                        description="Unable to validate action - manual review required",
                    )
                ],
            )

    async def behavior(self, user_id: str) -> UserGameBehavior | None:
        return await self._store.get(user_id)

    async def reset_behavior(self, user_id: str) -> None:
        """Administrative reset: clears history and escalation counters."""
        await self._store.delete(user_id)
        logger.info("anti-gaming: behavior profile reset for %s", user_id)

    async def _validate(self, user_id: str, action: GameAction) -> GameActionValidation:
        cfg = self.config
        now = _as_utc(action.timestamp or self._clock())
        behavior = await self._store.get(user_id) or UserGameBehavior(user_id=user_id)

        # 1. Rate limit
        count = await self._counter.hit(action_key(user_id, action.type.value), RATE_WINDOW_SECONDS)
        if count > cfg.max_actions_per_hour:
            result = GameActionValidation(
                valid=False,
                score=0,
                reason="Action rate limit exceeded",
                suspicious=True,
                penalties=[
                    GamePenalty(
                        type=PenaltyType.WARNING,
                        severity=Severity.MEDIUM,
                        description=f"Too many {action.type.value} actions in short time period",
                    )
                ],
            )
            await self._store.save(self._updated_behavior(behavior, now, result, None))
            return result

        score = max(action.score, 0.0)
        valid = True
        suspicious = False
        reason: str | None = None
        penalties: list[GamePenalty] = []

        # 2. Score bounds
        if score > cfg.max_score_per_action:
            trimmed = score - cfg.max_score_per_action
            reason = f"Score increase {score:g} exceeds maximum allowed {cfg.max_score_per_action:g}"
            score = cfg.max_score_per_action
            valid = False
            penalties.append(
                GamePenalty(
                    type=PenaltyType.SCORE_REDUCTION,
                    severity=Severity.HIGH,
                    description="Excessive score increase detected",
                    score_impact=trimmed,
                )
            )
        elif _credited_today(behavior, now) + score > cfg.daily_score_limit:
            adjusted = float(math.floor(score * DAILY_LIMIT_REDUCTION))
            penalties.append(
                GamePenalty(
                    type=PenaltyType.SCORE_REDUCTION,
                    severity=Severity.HIGH,
                    description="Daily score limit would be exceeded",
                    score_impact=score - adjusted,
                )
            )
            score = adjusted
            valid = False
            reason = "Daily score limit would be exceeded"

        # 3. Behavioral pattern
        analysis = analyze_pattern(behavior, now, cfg)
        if analysis.risk_score >= cfg.high_risk_threshold:
            suspicious = True
            valid = False
            score = 0
            reason = "Suspicious gaming pattern detected"
            penalties.append(
                GamePenalty(
                    type=PenaltyType.TEMPORARY_BAN,
                    severity=Severity.HIGH,
                    description="Automated gaming behavior detected",
                    duration_hours=cfg.temporary_ban_hours,
                )
            )
        elif analysis.risk_score >= cfg.elevated_risk_threshold:
            suspicious = True
            penalties.append(
                GamePenalty(
                    type=PenaltyType.WARNING,
                    severity=Severity.MEDIUM,
                    description="Potentially suspicious gaming behavior",
                )
            )

        # 4. Challenge timing
        if action.type == ActionType.CHALLENGE_COMPLETE and action.metadata:
            time_to_complete = action.metadata.get("timeToComplete")
            if time_to_complete is not None:
                check = validate_challenge_completion(float(time_to_complete), score, cfg)
                penalties.extend(check.penalties)
                score = min(score, check.score)
                if check.reason:
                    reason = check.reason
                if not check.valid:
                    valid = False

        # 5. Escalation from prior history
        escalated = escalation.escalation_for(behavior.escalation, cfg)
        if escalated is not None:
            penalties.append(escalated)
            valid = False
            score = 0
            reason = "User has been banned for repeated violations"

        result = GameActionValidation(
            valid=valid,
            score=score,
            reason=reason,
            penalties=penalties,
            suspicious=suspicious,
        )
        await self._store.save(self._updated_behavior(behavior, now, result, analysis))
        return result

    def _updated_behavior(
        self,
        behavior: UserGameBehavior,
        now: datetime,
        result: GameActionValidation,
        analysis: PatternAnalysis | None,
    ) -> UserGameBehavior:
        total = behavior.total_actions + 1
        flagged = result.suspicious or not result.valid

        interval = analysis.interval if analysis is not None else None
        if interval is None and analysis is None and behavior.last_activity is not None:
            interval = max((now - _as_utc(behavior.last_activity)).total_seconds(), 0.0)

        average = behavior.average_action_time
        intervals = list(behavior.recent_intervals)
        if interval is not None:
            average += (interval - average) / max(total - 1, 1)
            intervals = (intervals + [interval])[-RECENT_INTERVALS_KEPT:]

        risk = behavior.risk_score
        patterns_seen = behavior.pattern_detected
        if analysis is not None:
            risk = round((1 - RISK_SMOOTHING) * risk + RISK_SMOOTHING * analysis.risk_score, 4)
            patterns_seen = patterns_seen or bool(analysis.patterns)

        issued = result.penalties
        if behavior.escalation.permanently_banned:
            # the ban is already on record
            issued = [p for p in issued if p.type != PenaltyType.PERMANENT_BAN]

        day = now.date().isoformat()
        return behavior.model_copy(
            update={
                "total_actions": total,
                "suspicious_actions": behavior.suspicious_actions + (1 if flagged else 0),
                "average_action_time": average,
                "recent_intervals": intervals,
                "risk_score": min(max(risk, 0.0), 1.0),
                "pattern_detected": patterns_seen,
                "last_activity": now,
                "score_day": day,
                "score_today": _credited_today(behavior, now) + result.score,
                "penalties": behavior.penalties + issued,
                "escalation": escalation.record(behavior.escalation, issued),
            }
        )


def _credited_today(behavior: UserGameBehavior, now: datetime) -> float:
    if behavior.score_day == now.date().isoformat():
        return behavior.score_today
    return 0.0
