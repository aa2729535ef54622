from itertools import product

import pytest

from apptracker import status_machine
from apptracker.errors import InvalidTransition, ValidationError
from apptracker.models import ApplicationStatus as S, Role


def test_allowed_moves_produce_log_entry():
    new, change = status_machine.transition(S.IN_PROGRESS, 'SUBMITTED', 7, Role.STUDENT, reason='  sent  ')
    assert new == S.SUBMITTED
    assert change.old_status == S.IN_PROGRESS
    assert change.new_status == S.SUBMITTED
    assert change.changed_by == 7
    assert change.changed_by_role == Role.STUDENT
    assert change.reason == 'sent'


def test_every_pair_outside_table_is_rejected():
    for current, requested in product(S, S):
        if requested in status_machine.TRANSITIONS[current]:
            new, _ = status_machine.transition(current, requested, 1, Role.PARENT)
            assert new == requested
            continue
        with pytest.raises(InvalidTransition):
            status_machine.transition(current, requested, 1, Role.PARENT)


def test_not_started_cannot_jump_to_submitted():
    with pytest.raises(ValidationError) as exc:
        status_machine.transition('NOT_STARTED', 'SUBMITTED', 1, Role.STUDENT)
    assert 'NOT_STARTED -> SUBMITTED' in str(exc.value)
    assert status_machine.allowed_transitions('NOT_STARTED') == {S.IN_PROGRESS}


@pytest.mark.parametrize('terminal', [S.ACCEPTED, S.REJECTED])
def test_terminal_states_are_absorbing(terminal):
    assert status_machine.is_terminal(terminal)
    for target in S:
        with pytest.raises(InvalidTransition):
            status_machine.transition(terminal, target, 1, Role.STUDENT)


def test_unknown_status_is_invalid_transition():
    with pytest.raises(InvalidTransition):
        status_machine.transition(S.IN_PROGRESS, 'DEFERRED', 1, Role.STUDENT)


def test_blank_reason_stored_as_none():
    _, change = status_machine.transition(S.WAITLISTED, S.ACCEPTED, 1, Role.STUDENT, reason='   ')
    assert change.reason is None
    assert not status_machine.is_terminal(S.WAITLISTED)
