from apptracker.access import Decision, check_access
from apptracker.models import Role


LINKS = {(10, 1)}


def has_link(parent_id, student_id):
    return (parent_id, student_id) in LINKS


def test_student_only_reaches_own_resources():
    assert check_access(Role.STUDENT, 1, 1, has_link) == Decision.ALLOWED
    assert check_access(Role.STUDENT, 1, 2, has_link) == Decision.FORBIDDEN


def test_parent_needs_link():
    assert check_access(Role.PARENT, 10, 1, has_link) == Decision.ALLOWED
    assert check_access(Role.PARENT, 10, 2, has_link) == Decision.FORBIDDEN
    assert check_access(Role.PARENT, 11, 1, has_link) == Decision.FORBIDDEN


def test_other_roles_forbidden_even_with_matching_id():
    assert check_access(Role.TEACHER, 1, 1, has_link) == Decision.FORBIDDEN
    assert check_access(Role.ADMIN, 1, 1, has_link) == Decision.FORBIDDEN
    assert check_access('JANITOR', 1, 1, has_link) == Decision.FORBIDDEN


def test_parent_link_lookup_is_not_consulted_for_students():
    calls = []

    def tracking(p, s):
        calls.append((p, s))
        return True

    check_access(Role.STUDENT, 1, 2, tracking)
    assert calls == []
