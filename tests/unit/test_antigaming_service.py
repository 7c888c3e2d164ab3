import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from trustgate.models.game import (
    ActionType,
    AntiGamingConfig,
    EscalationState,
    GameAction,
    PenaltyType,
    Severity,
    UserGameBehavior,
)
from trustgate.services.action_counter import InMemoryActionCounter
from trustgate.services.antigaming_service import (
    MANUAL_REVIEW_REASON,
    AntiGamingValidator,
    analyze_pattern,
    profile_risk,
    validate_challenge_completion,
)
from trustgate.services.behavior_store import InMemoryBehaviorStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _validator(config: AntiGamingConfig | None = None, store=None) -> AntiGamingValidator:
    return AntiGamingValidator(
        config or AntiGamingConfig(),
        store or InMemoryBehaviorStore(),
        InMemoryActionCounter(clock=lambda: NOW.timestamp()),
        clock=lambda: NOW,
    )


def _action(score: float = 50, kind: ActionType = ActionType.SOCIAL_ACTION, at: datetime = NOW, **metadata) -> GameAction:
    return GameAction(type=kind, score=score, timestamp=at, metadata=metadata or None)


def _seed(store: InMemoryBehaviorStore, behavior: UserGameBehavior) -> None:
    asyncio.run(store.save(behavior))


# ---------- full pipeline ----------


class TestValidateAction:
    def test_accepts_normal_action(self):
        result = asyncio.run(_validator().validate_action("u1", _action(50)))
        assert result.valid
        assert result.score == 50
        assert result.penalties == []
        assert not result.suspicious

    def test_excessive_score_clamped(self):
        result = asyncio.run(_validator().validate_action("u1", _action(150)))
        assert not result.valid
        assert result.score == 100
        (penalty,) = result.penalties
        assert penalty.type == PenaltyType.SCORE_REDUCTION
        assert penalty.severity == Severity.HIGH
        assert penalty.score_impact == 50

    def test_negative_score_treated_as_zero(self):
        result = asyncio.run(_validator().validate_action("u1", _action(-20)))
        assert result.valid
        assert result.score == 0

    def test_daily_limit_halves_score(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            total_actions=50,
            last_activity=NOW - timedelta(hours=1),
            score_day=NOW.date().isoformat(),
            score_today=4990,
        ))
        result = asyncio.run(_validator(store=store).validate_action("u1", _action(21)))
        assert not result.valid
        assert result.score == 10
        assert result.reason == "Daily score limit would be exceeded"

    def test_daily_total_resets_on_new_day(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            total_actions=50,
            last_activity=NOW - timedelta(hours=13),
            score_day=(NOW - timedelta(days=1)).date().isoformat(),
            score_today=4990,
        ))
        result = asyncio.run(_validator(store=store).validate_action("u1", _action(21)))
        assert result.valid
        assert result.score == 21

    def test_too_fast_challenge_rejected(self):
        result = asyncio.run(
            _validator().validate_action("u1", _action(80, ActionType.CHALLENGE_COMPLETE, timeToComplete=2))
        )
        assert not result.valid
        assert result.score == 0
        assert any(p.severity == Severity.HIGH for p in result.penalties)

    def test_too_fast_challenge_rejected_with_huge_score(self):
        result = asyncio.run(
            _validator().validate_action("u1", _action(10_000, ActionType.CHALLENGE_COMPLETE, timeToComplete=1))
        )
        assert not result.valid
        assert result.score == 0

    def test_too_slow_challenge_rejected(self):
        result = asyncio.run(
            _validator().validate_action("u1", _action(80, ActionType.CHALLENGE_COMPLETE, timeToComplete=4000))
        )
        assert not result.valid
        assert result.score == 0
        assert result.penalties[-1].severity == Severity.LOW

    def test_challenge_score_adjusted_to_expected(self):
        config = AntiGamingConfig(max_score_per_action=1000)
        result = asyncio.run(
            _validator(config).validate_action("u1", _action(200, ActionType.CHALLENGE_COMPLETE, timeToComplete=3000))
        )
        assert result.valid
        assert result.score == 100
        (penalty,) = result.penalties
        assert penalty.type == PenaltyType.SCORE_REDUCTION
        assert penalty.score_impact == 100

    def test_automated_pattern_banned(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            total_actions=6,
            last_activity=NOW - timedelta(seconds=0.5),
            recent_intervals=[0.5] * 5,
        ))
        result = asyncio.run(_validator(store=store).validate_action("u1", _action(50)))
        assert not result.valid
        assert result.suspicious
        assert result.score == 0
        ban = result.penalties[-1]
        assert ban.type == PenaltyType.TEMPORARY_BAN
        assert ban.duration_hours == 24

    def test_elevated_risk_warns(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            total_actions=6,
            last_activity=NOW - timedelta(seconds=1.5),
            recent_intervals=[1.5] * 5,
        ))
        result = asyncio.run(_validator(store=store).validate_action("u1", _action(50)))
        assert result.valid
        assert result.suspicious
        assert result.score == 50
        (warning,) = result.penalties
        assert warning.type == PenaltyType.WARNING
        assert warning.severity == Severity.MEDIUM

    def test_warnings_escalate_to_temporary_ban(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            last_activity=NOW - timedelta(hours=1),
            escalation=EscalationState(warnings=5),
        ))
        validator = _validator(store=store)
        result = asyncio.run(validator.validate_action("u1", _action(50)))
        assert not result.valid
        assert result.score == 0
        assert result.penalties[-1].type == PenaltyType.TEMPORARY_BAN
        assert result.penalties[-1].duration_hours == 72

        saved = asyncio.run(validator.behavior("u1"))
        assert saved.escalation.warnings == 0
        assert saved.escalation.temporary_bans == 1

    def test_repeated_bans_escalate_to_permanent(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            last_activity=NOW - timedelta(hours=1),
            escalation=EscalationState(temporary_bans=10),
        ))
        validator = _validator(store=store)
        result = asyncio.run(validator.validate_action("u1", _action(50)))
        assert result.penalties[-1].type == PenaltyType.PERMANENT_BAN
        assert asyncio.run(validator.behavior("u1")).escalation.permanently_banned

    def test_permanent_ban_recorded_once(self):
        store = InMemoryBehaviorStore()
        _seed(store, UserGameBehavior(
            user_id="u1",
            last_activity=NOW - timedelta(hours=1),
            escalation=EscalationState(temporary_bans=10),
        ))
        validator = _validator(store=store)

        async def run():
            results = []
            for minutes in (0, 10, 20):
                at = NOW + timedelta(minutes=minutes)
                results.append(await validator.validate_action("u1", _action(50, at=at)))
            return results, await validator.behavior("u1")

        results, saved = asyncio.run(run())
        assert all(r.penalties[-1].type == PenaltyType.PERMANENT_BAN for r in results)
        assert all(not r.valid and r.score == 0 for r in results)
        bans = [p for p in saved.penalties if p.type == PenaltyType.PERMANENT_BAN]
        assert len(bans) == 1
        assert saved.escalation.permanently_banned
        assert saved.total_actions == 3

    def test_store_failure_degrades_to_manual_review(self):
        class BrokenStore(InMemoryBehaviorStore):
            async def get(self, user_id):
                raise ConnectionError("redis down")

        result = asyncio.run(_validator(store=BrokenStore()).validate_action("u1", _action(50)))
        assert not result.valid
        assert result.score == 0
        assert result.reason == MANUAL_REVIEW_REASON
        assert result.penalties[0].severity == Severity.LOW


# ---------- rate limit ----------


class TestRateLimit:
    def test_overflow_rejected_exactly(self):
        validator = _validator(AntiGamingConfig(max_actions_per_hour=3))

        async def run():
            results = []
            for i in range(5):
                action = _action(10, at=NOW + timedelta(minutes=i))
                results.append(await validator.validate_action("u1", action))
            return results

        results = asyncio.run(run())
        limited = [r for r in results if r.reason == "Action rate limit exceeded"]
        assert len(limited) == 2
        assert all(not r.valid and r.score == 0 for r in limited)
        assert [r.valid for r in results[:3]] == [True, True, True]

    def test_overflow_rejected_exactly_under_concurrency(self):
        validator = _validator(AntiGamingConfig(max_actions_per_hour=3))

        async def run():
            return await asyncio.gather(
                *(validator.validate_action("u1", _action(10)) for _ in range(10))
            )

        results = asyncio.run(run())
        limited = [r for r in results if r.reason == "Action rate limit exceeded"]
        assert len(limited) == 7

    def test_limit_is_per_action_type(self):
        validator = _validator(AntiGamingConfig(max_actions_per_hour=1))

        async def run():
            await validator.validate_action("u1", _action(10, ActionType.SOCIAL_ACTION))
            return await validator.validate_action(
                "u1", _action(10, ActionType.BADGE_EARNED, at=NOW + timedelta(minutes=1))
            )

        assert asyncio.run(run()).valid


# ---------- profile bookkeeping ----------


class TestBehaviorProfile:
    def test_profile_updated(self):
        validator = _validator()

        async def run():
            await validator.validate_action("u1", _action(30))
            await validator.validate_action("u1", _action(20, at=NOW + timedelta(seconds=60)))
            return await validator.behavior("u1")

        behavior = asyncio.run(run())
        assert behavior.total_actions == 2
        assert behavior.suspicious_actions == 0
        assert behavior.average_action_time == 60
        assert behavior.recent_intervals == [60]
        assert behavior.score_today == 50
        assert behavior.last_activity == NOW + timedelta(seconds=60)

    def test_reset_clears_profile(self):
        validator = _validator()

        async def run():
            await validator.validate_action("u1", _action(30))
            await validator.reset_behavior("u1")
            return await validator.behavior("u1")

        assert asyncio.run(run()) is None


# ---------- pure helpers ----------


class TestAnalyzePattern:
    def test_first_action_has_no_risk(self):
        analysis = analyze_pattern(UserGameBehavior(user_id="u1"), NOW, AntiGamingConfig())
        assert analysis.risk_score == 0
        assert analysis.interval is None

    def test_sub_second_interval(self):
        behavior = UserGameBehavior(user_id="u1", last_activity=NOW - timedelta(seconds=0.2))
        analysis = analyze_pattern(behavior, NOW, AntiGamingConfig())
        assert analysis.risk_score == 0.5
        assert "Automated behavior detected" in analysis.patterns

    def test_irregular_cadence_not_flagged(self):
        behavior = UserGameBehavior(
            user_id="u1",
            last_activity=NOW - timedelta(seconds=40),
            recent_intervals=[5, 300, 12, 90, 1000],
        )
        assert analyze_pattern(behavior, NOW, AntiGamingConfig()).risk_score == 0

    def test_suspicious_history(self):
        behavior = UserGameBehavior(user_id="u1", total_actions=20, suspicious_actions=10)
        assert analyze_pattern(behavior, NOW, AntiGamingConfig()).risk_score == 0.2


class TestChallengeCompletion:
    def test_expected_score_with_time_bonus(self):
        check = validate_challenge_completion(100, 250, AntiGamingConfig())
        assert check.valid
        assert check.score == 250

    def test_boundary_minimum_allowed(self):
        assert validate_challenge_completion(5, 50, AntiGamingConfig()).valid


class TestProfileRisk:
    def test_max_of_risk_and_ratio(self):
        behavior = UserGameBehavior(user_id="u1", total_actions=10, suspicious_actions=4, risk_score=0.1)
        assert profile_risk(behavior) == 0.4

    def test_pattern_flag_adds(self):
        behavior = UserGameBehavior(
            user_id="u1", total_actions=10, suspicious_actions=6, pattern_detected=True
        )
        assert profile_risk(behavior) == pytest.approx(0.8)
