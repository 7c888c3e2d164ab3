from trustgate.models.game import (
    AntiGamingConfig,
    EscalationState,
    GamePenalty,
    PenaltyType,
    Severity,
)
from trustgate.services.escalation import escalation_for, record

CONFIG = AntiGamingConfig()


def _penalty(kind: PenaltyType) -> GamePenalty:
    return GamePenalty(type=kind, severity=Severity.MEDIUM, description=kind.value)


class TestEscalationFor:
    def test_clean_state(self):
        assert escalation_for(EscalationState(), CONFIG) is None

    def test_warnings_escalate_to_temporary_ban(self):
        penalty = escalation_for(EscalationState(warnings=5), CONFIG)
        assert penalty.type == PenaltyType.TEMPORARY_BAN
        assert penalty.severity == Severity.HIGH
        assert penalty.duration_hours == 72

    def test_four_warnings_not_enough(self):
        assert escalation_for(EscalationState(warnings=4), CONFIG) is None

    def test_temporary_bans_escalate_to_permanent(self):
        penalty = escalation_for(EscalationState(temporary_bans=10), CONFIG)
        assert penalty.type == PenaltyType.PERMANENT_BAN
        assert penalty.severity == Severity.CRITICAL

    def test_permanent_ban_is_terminal(self):
        penalty = escalation_for(EscalationState(permanently_banned=True), CONFIG)
        assert penalty.type == PenaltyType.PERMANENT_BAN


class TestRecord:
    def test_warning_increments(self):
        state = record(EscalationState(warnings=2), [_penalty(PenaltyType.WARNING)])
        assert state.warnings == 3

    def test_temporary_ban_clears_warnings(self):
        state = record(EscalationState(warnings=5), [_penalty(PenaltyType.TEMPORARY_BAN)])
        assert state.warnings == 0
        assert state.temporary_bans == 1

    def test_score_reduction_does_not_count(self):
        state = record(EscalationState(), [_penalty(PenaltyType.SCORE_REDUCTION)])
        assert state == EscalationState()

    def test_permanent_ban_sets_flag(self):
        state = record(EscalationState(), [_penalty(PenaltyType.PERMANENT_BAN)])
        assert state.permanently_banned

    def test_input_not_mutated(self):
        original = EscalationState(warnings=1)
        record(original, [_penalty(PenaltyType.WARNING)])
        assert original.warnings == 1
