"""Application status state machine.

The transition table is fixed. `transition` is pure: it validates the move
and returns the new state together with the log entry the caller has to
persist next to the status update.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from .errors import InvalidTransition
from .models import ApplicationStatus, Role

S = ApplicationStatus

TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.NOT_STARTED: frozenset({S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.SUBMITTED, S.ACCEPTED, S.REJECTED, S.WAITLISTED}),
    S.SUBMITTED: frozenset({S.UNDER_REVIEW, S.ACCEPTED, S.REJECTED, S.WAITLISTED}),
    S.UNDER_REVIEW: frozenset({S.ACCEPTED, S.REJECTED, S.WAITLISTED}),
    S.WAITLISTED: frozenset({S.ACCEPTED, S.REJECTED}),
    S.ACCEPTED: frozenset(),
    S.REJECTED: frozenset(),
}


@dataclass(frozen=True)
class StatusChange:
    """Immutable description of one accepted status change."""
    old_status: ApplicationStatus
    new_status: ApplicationStatus
    changed_by: int
    changed_by_role: Role
    reason: Optional[str] = None


def _coerce(value) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise InvalidTransition(value, value)


def allowed_transitions(current) -> FrozenSet[ApplicationStatus]:
    return TRANSITIONS[_coerce(current)]


def is_terminal(status) -> bool:
    return not allowed_transitions(status)


def transition(current, requested, actor_id: int, actor_role: Role,
               reason: Optional[str] = None) -> Tuple[ApplicationStatus, StatusChange]:
    """Validate ``current -> requested`` and describe the change.

    Raises `InvalidTransition` when `requested` is not in the allowed set
    for `current` (staying in the same state included). Blank reasons are
    stored as ``None``.
    """
    cur = _coerce(current)
    try:
        req = ApplicationStatus(requested)
    except ValueError:
        raise InvalidTransition(cur, requested)
    if req not in TRANSITIONS[cur]:
        raise InvalidTransition(cur, req)
    change = StatusChange(
        old_status=cur,
        new_status=req,
        changed_by=actor_id,
        changed_by_role=Role(actor_role),
        reason=(reason.strip() or None) if reason else None,
    )
    return req, change
