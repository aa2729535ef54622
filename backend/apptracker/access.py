"""Access control between an actor and a student-owned resource.

`check_access` is a pure predicate; the parent/student link lookup is
passed in as a callable so the rule can be evaluated without a database.
`AccessControl` binds it to the persisted links.
"""

from enum import Enum
from typing import Callable

from sqlmodel import Session

from . import repositories
from .errors import Forbidden
from .models import Role


class Decision(str, Enum):
    ALLOWED = "ALLOWED"
    FORBIDDEN = "FORBIDDEN"


LinkLookup = Callable[[int, int], bool]


def check_access(actor_role, actor_id: int, owner_student_id: int, has_link: LinkLookup) -> Decision:
    """Decide whether the actor may read/write the student's resource.

    - STUDENT: only their own resources
    - PARENT: only students they are linked to
    - anything else: forbidden
    """
    try:
        role = Role(actor_role)
    except ValueError:
        return Decision.FORBIDDEN
    if role == Role.STUDENT:
        return Decision.ALLOWED if actor_id == owner_student_id else Decision.FORBIDDEN
    if role == Role.PARENT:
        return Decision.ALLOWED if has_link(actor_id, owner_student_id) else Decision.FORBIDDEN
    return Decision.FORBIDDEN


class AccessControl:
    """`check_access` backed by the `ParentStudent` table."""
    def __init__(self, session: Session):
        self.links = repositories.ParentStudentRepository(session)

    def decide(self, actor_role, actor_id: int, owner_student_id: int) -> Decision:
        return check_access(actor_role, actor_id, owner_student_id, self.links.exists)

    def require(self, actor_role, actor_id: int, owner_student_id: int, message: str = 'forbidden'):
        """Raise `Forbidden` unless the actor may access the student's data."""
        if self.decide(actor_role, actor_id, owner_student_id) != Decision.ALLOWED:
            raise Forbidden(message)
