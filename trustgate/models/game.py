from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ActionType(str, Enum):
    CHALLENGE_COMPLETE = "challenge_complete"
    BADGE_EARNED = "badge_earned"
    STREAK_EXTENDED = "streak_extended"
    SOCIAL_ACTION = "social_action"


class PenaltyType(str, Enum):
    WARNING = "warning"
    SCORE_REDUCTION = "score_reduction"
    TEMPORARY_BAN = "temporary_ban"
    PERMANENT_BAN = "permanent_ban"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LeaderboardPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all-time"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class GamePenalty(BaseModel):
    type: PenaltyType
    severity: Severity
    description: str
    duration_hours: float | None = Field(default=None, alias="duration")
    score_impact: float | None = Field(default=None, alias="scoreImpact")

    model_config = {"populate_by_name": True}


class GameAction(BaseModel):
    """A reported gamified action awaiting validation."""

    type: ActionType
    score: float
    metadata: dict[str, Any] | None = None
    timestamp: datetime | None = None


class GameActionValidation(BaseModel):
    valid: bool
    score: float
    reason: str | None = None
    penalties: list[GamePenalty] = Field(default_factory=list)
    suspicious: bool = False


class EscalationState(BaseModel):
    """Per-user penalty escalation counters.

    Transitions: each warning increments `warnings`; a temporary ban
    increments `temporary_bans` and clears `warnings`; a permanent ban is
    terminal until an administrative reset.
    """

    warnings: int = 0
    temporary_bans: int = Field(default=0, alias="temporaryBans")
    permanently_banned: bool = Field(default=False, alias="permanentlyBanned")

    model_config = {"populate_by_name": True}


class UserGameBehavior(BaseModel):
    """Rolling anti-gaming profile for one user."""

    user_id: str = Field(alias="userId")
    total_actions: int = Field(default=0, alias="totalActions")
    suspicious_actions: int = Field(default=0, alias="suspiciousActions")
    average_action_time: float = Field(default=0.0, alias="averageActionTime")
    pattern_detected: bool = Field(default=False, alias="patternDetected")
    risk_score: float = Field(default=0.0, ge=0.0, le=1.0, alias="riskScore")
    last_activity: datetime | None = Field(default=None, alias="lastActivity")
    penalties: list[GamePenalty] = Field(default_factory=list)
    escalation: EscalationState = Field(default_factory=EscalationState)
    recent_intervals: list[float] = Field(default_factory=list, alias="recentIntervals")
    score_day: str | None = Field(default=None, alias="scoreDay")
    score_today: float = Field(default=0.0, alias="scoreToday")

    model_config = {"populate_by_name": True}

    @property
    def suspicious_ratio(self) -> float:
        if self.total_actions <= 0:
            return 0.0
        return self.suspicious_actions / self.total_actions


class LeaderboardEntry(BaseModel):
    user_id: str = Field(alias="userId")
    score: float
    rank: int = 0
    verified: bool = False
    last_updated: datetime = Field(alias="lastUpdated")
    flagged: bool | None = None
    flag_reason: str | None = Field(default=None, alias="flagReason")

    model_config = {"populate_by_name": True}


class ChallengeAttempt(BaseModel):
    user_id: str = Field(alias="userId")
    challenge_id: str = Field(alias="challengeId")
    completed: bool
    time_to_complete: float = Field(alias="timeToComplete")
    score: float
    suspicious: bool = False
    timestamp: datetime

    model_config = {"populate_by_name": True}


class ChallengeStats(BaseModel):
    """Aggregate completion statistics for one challenge."""

    id: str
    difficulty: Difficulty
    completion_rate: float = Field(alias="completionRate")
    average_time: float = Field(alias="averageTime")
    suspicious_attempts: int = Field(default=0, alias="suspiciousAttempts")
    total_attempts: int = Field(default=0, alias="totalAttempts")

    model_config = {"populate_by_name": True}


class ChallengeAttemptLog(BaseModel):
    """Raw attempts for one challenge, summarised into ChallengeStats."""

    id: str
    difficulty: Difficulty
    attempts: list[ChallengeAttempt]


class BalanceVerdict(str, Enum):
    TOO_EASY = "too_easy"
    BEING_GAMED = "being_gamed"
    TOO_HARD = "too_hard"
    BALANCED = "balanced"
    INCONCLUSIVE = "inconclusive"


class DifficultyAdjustment(BaseModel):
    id: str
    verdict: BalanceVerdict
    suggested_difficulty: Difficulty = Field(serialization_alias="suggestedDifficulty")
    adjustments: list[str] = Field(default_factory=list)
    reasoning: str = ""

    model_config = {"populate_by_name": True}


class AntiGamingConfig(BaseModel):
    """Thresholds for action validation, leaderboard checks and escalation."""

    min_action_interval_seconds: float = 2
    rapid_action_threshold_seconds: float = 1
    max_actions_per_hour: int = 100
    max_score_per_action: float = 100
    daily_score_limit: float = 5000

    high_risk_threshold: float = 0.8
    elevated_risk_threshold: float = 0.6
    temporary_ban_hours: float = 24

    min_challenge_seconds: float = 5
    max_challenge_seconds: float = 3600
    challenge_base_score: float = 100
    challenge_time_bonus_window_seconds: float = 300
    challenge_score_tolerance: float = 1.5

    warnings_before_temporary_ban: int = 5
    temporary_bans_before_permanent_ban: int = 10
    escalated_ban_hours: float = 72

    top_rank_verification_count: int = 10
    leaderboard_risk_threshold: float = 0.7
    leaderboard_suspicious_ratio: float = 0.3
    leaderboard_growth_rate: float = 10


# --- API payloads ---


class ValidateActionRequest(BaseModel):
    user_id: str = Field(alias="userId")
    action: GameAction

    model_config = {"populate_by_name": True}


class VerifyLeaderboardRequest(BaseModel):
    entries: list[LeaderboardEntry]
    period: LeaderboardPeriod


class BalanceChallengesRequest(BaseModel):
    challenges: list[ChallengeStats] = Field(default_factory=list)
    attempt_logs: list[ChallengeAttemptLog] = Field(default_factory=list, alias="attemptLogs")

    model_config = {"populate_by_name": True}


class ViolatorSummary(BaseModel):
    user_id: str = Field(serialization_alias="userId")
    violation_count: int = Field(serialization_alias="violationCount")
    risk_score: float = Field(serialization_alias="riskScore")
    penalties: list[GamePenalty]

    model_config = {"populate_by_name": True}


class ReportSummary(BaseModel):
    total_actions: int = Field(serialization_alias="totalActions")
    suspicious_actions: int = Field(serialization_alias="suspiciousActions")
    penalties_issued: int = Field(serialization_alias="penaltiesIssued")
    users_affected: int = Field(serialization_alias="usersAffected")

    model_config = {"populate_by_name": True}


class AntiGamingReport(BaseModel):
    timeframe: LeaderboardPeriod
    generated_at: datetime = Field(serialization_alias="generatedAt")
    summary: ReportSummary
    top_violators: list[ViolatorSummary] = Field(serialization_alias="topViolators")
    recommendations: list[str]

    model_config = {"populate_by_name": True}
