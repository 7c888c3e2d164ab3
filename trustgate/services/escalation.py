"""Penalty escalation as a counter state machine.

    clear --warning--> warnings += 1
    warnings >= W           --> issue temporary_ban (warnings cleared on record)
    temporary_bans >= T     --> issue permanent_ban (terminal)

W and T come from AntiGamingConfig. The state is updated only by record();
escalation_for() is a pure read of the counters.
"""

from trustgate.models.game import (
    AntiGamingConfig,
    EscalationState,
    GamePenalty,
    PenaltyType,
    Severity,
)


def escalation_for(state: EscalationState, config: AntiGamingConfig) -> GamePenalty | None:
    """The penalty the user's history calls for, if any."""
    if state.permanently_banned or state.temporary_bans >= config.temporary_bans_before_permanent_ban:
        return GamePenalty(
            type=PenaltyType.PERMANENT_BAN,
            severity=Severity.CRITICAL,
            description="Repeated violations - permanent ban applied",
        )
    if state.warnings >= config.warnings_before_temporary_ban:
        return GamePenalty(
            type=PenaltyType.TEMPORARY_BAN,
            severity=Severity.HIGH,
            description="Multiple warnings - temporary ban applied",
            duration_hours=config.escalated_ban_hours,
        )
    return None


def record(state: EscalationState, penalties: list[GamePenalty]) -> EscalationState:
    """Return the state after applying penalties in order."""
    warnings = state.warnings
    temporary_bans = state.temporary_bans
    banned = state.permanently_banned
    for penalty in penalties:
        if penalty.type == PenaltyType.WARNING:
            warnings += 1
        elif penalty.type == PenaltyType.TEMPORARY_BAN:
            temporary_bans += 1
            warnings = 0
        elif penalty.type == PenaltyType.PERMANENT_BAN:
            banned = True
    return EscalationState(warnings=warnings, temporary_bans=temporary_bans, permanently_banned=banned)
