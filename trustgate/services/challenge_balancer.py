"""Suggests challenge difficulty changes from completion statistics."""

from trustgate.models.game import (
    BalanceVerdict,
    ChallengeAttemptLog,
    ChallengeStats,
    Difficulty,
    DifficultyAdjustment,
)

_TIERS = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD, Difficulty.EXPERT]

TOO_EASY_COMPLETION = 0.9
TOO_EASY_SECONDS = 30
GAMED_SUSPICIOUS_RATIO = 0.3
TOO_HARD_COMPLETION = 0.1
TOO_HARD_SECONDS = 1800
BALANCED_COMPLETION = (0.3, 0.7)
BALANCED_SUSPICIOUS_RATIO = 0.1


def harder(difficulty: Difficulty) -> Difficulty:
    i = _TIERS.index(difficulty)
    return _TIERS[min(i + 1, len(_TIERS) - 1)]


def easier(difficulty: Difficulty) -> Difficulty:
    i = _TIERS.index(difficulty)
    return _TIERS[max(i - 1, 0)]


def summarize_attempts(log: ChallengeAttemptLog) -> ChallengeStats:
    """Completion rate over all attempts; average time over completed ones only.

    Attempts recorded against another challenge id are ignored.
    """
    attempts = [a for a in log.attempts if a.challenge_id == log.id]
    completed = [a.time_to_complete for a in attempts if a.completed]
    return ChallengeStats(
        id=log.id,
        difficulty=log.difficulty,
        completion_rate=len(completed) / len(attempts) if attempts else 0.0,
        average_time=sum(completed) / len(completed) if completed else 0.0,
        suspicious_attempts=sum(1 for a in attempts if a.suspicious),
        total_attempts=len(attempts),
    )


def suspicious_ratio(stats: ChallengeStats) -> float:
    if stats.total_attempts <= 0:
        return 0.0
    return stats.suspicious_attempts / stats.total_attempts


def balance_challenge(stats: ChallengeStats) -> DifficultyAdjustment:
    ratio = suspicious_ratio(stats)

    if stats.completion_rate > TOO_EASY_COMPLETION and stats.average_time < TOO_EASY_SECONDS:
        return DifficultyAdjustment(
            id=stats.id,
            verdict=BalanceVerdict.TOO_EASY,
            suggested_difficulty=harder(stats.difficulty),
            adjustments=["Increase complexity", "Add time constraints"],
            reasoning="Challenge completed too quickly by most users",
        )

    if ratio > GAMED_SUSPICIOUS_RATIO:
        return DifficultyAdjustment(
            id=stats.id,
            verdict=BalanceVerdict.BEING_GAMED,
            suggested_difficulty=stats.difficulty,
            adjustments=[
                "Add verification steps",
                "Implement time-based validation",
                "Add randomization elements",
            ],
            reasoning="High rate of suspicious completion attempts detected",
        )

    if stats.completion_rate < TOO_HARD_COMPLETION and stats.average_time > TOO_HARD_SECONDS:
        return DifficultyAdjustment(
            id=stats.id,
            verdict=BalanceVerdict.TOO_HARD,
            suggested_difficulty=easier(stats.difficulty),
            adjustments=["Simplify requirements", "Provide more hints"],
            reasoning="Challenge too difficult for most users",
        )

    low, high = BALANCED_COMPLETION
    if low <= stats.completion_rate <= high and ratio < BALANCED_SUSPICIOUS_RATIO:
        return DifficultyAdjustment(
            id=stats.id,
            verdict=BalanceVerdict.BALANCED,
            suggested_difficulty=stats.difficulty,
            reasoning="Challenge appears well-balanced",
        )

    notes = []
    if stats.completion_rate > high:
        notes.append(f"completion rate {stats.completion_rate:.0%} is high")
    elif stats.completion_rate < low:
        notes.append(f"completion rate {stats.completion_rate:.0%} is low")
    if ratio >= BALANCED_SUSPICIOUS_RATIO:
        notes.append(f"suspicious ratio {ratio:.0%} is elevated")
    reasoning = "Insufficient signal to rebalance"
    if notes:
        reasoning += ": " + ", ".join(notes)
    return DifficultyAdjustment(
        id=stats.id,
        verdict=BalanceVerdict.INCONCLUSIVE,
        suggested_difficulty=stats.difficulty,
        reasoning=reasoning,
    )


def balance_challenges(challenges: list[ChallengeStats]) -> list[DifficultyAdjustment]:
    return [balance_challenge(c) for c in challenges]
