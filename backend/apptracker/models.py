"""SQLModel data models.

This module defines the application's database tables using SQLModel,
plus the enumerations shared by schemas, services and the status
state machine.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime, date, timezone
from typing import List


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    STUDENT = "STUDENT"
    PARENT = "PARENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class ApplicationType(str, Enum):
    REGULAR_DECISION = "REGULAR_DECISION"
    EARLY_ACTION = "EARLY_ACTION"
    EARLY_DECISION = "EARLY_DECISION"
    ROLLING_ADMISSION = "ROLLING_ADMISSION"


class ApplicationStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WAITLISTED = "WAITLISTED"


class RequirementType(str, Enum):
    ESSAY = "ESSAY"
    TRANSCRIPT = "TRANSCRIPT"
    RECOMMENDATION = "RECOMMENDATION"
    TEST_SCORES = "TEST_SCORES"


class RequirementStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class User(SQLModel, table=True):
    """A registered account.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: decides which endpoints and resources the account can reach

    The academic profile fields are only meaningful for students.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    name: str
    role: Role = Field(default=Role.STUDENT, index=True)
    graduation_year: Optional[int] = None
    gpa: Optional[float] = None
    sat_score: Optional[int] = None
    act_score: Optional[int] = None
    target_countries: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    intended_majors: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_utcnow)


class ParentStudent(SQLModel, table=True):
    """Link granting a parent visibility into a student's applications."""
    __table_args__ = (UniqueConstraint("parent_id", "student_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: int = Field(foreign_key='user.id', index=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class University(SQLModel, table=True):
    """Reference data for a university.

    `deadlines` and `requirements` are stored as JSON but always written
    through the typed `UniversityDeadlines` / `UniversityRequirements`
    schemas.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    country: str = Field(index=True)
    state: Optional[str] = None
    city: Optional[str] = None
    us_news_ranking: Optional[int] = Field(default=None, index=True)
    acceptance_rate: Optional[float] = None
    application_system: Optional[str] = None
    tuition_in_state: Optional[float] = None
    tuition_out_state: Optional[float] = None
    application_fee: Optional[float] = None
    deadlines: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    requirements: Optional[dict] = Field(default=None, sa_column=Column(JSON))


class Application(SQLModel, table=True):
    """A student's application to one university."""
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    university_id: int = Field(foreign_key='university.id')
    application_type: ApplicationType
    deadline: date
    status: ApplicationStatus = Field(default=ApplicationStatus.NOT_STARTED)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    university: Optional[University] = Relationship()
    requirements: List['ApplicationRequirement'] = Relationship(
        back_populates='application',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan'},
    )
    status_logs: List['ApplicationStatusLog'] = Relationship(
        back_populates='application',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan'},
    )
    financial_plans: List['FinancialPlan'] = Relationship(
        back_populates='application',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan'},
    )


class ApplicationStatusLog(SQLModel, table=True):
    """Append-only record of one status change."""
    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key='application.id', index=True)
    old_status: ApplicationStatus
    new_status: ApplicationStatus
    changed_by: int = Field(foreign_key='user.id')
    changed_by_role: Role
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    application: Optional[Application] = Relationship(back_populates='status_logs')
    changed_by_user: Optional[User] = Relationship()


class ApplicationRequirement(SQLModel, table=True):
    """A checklist item (essay, transcript, ...) for an `Application`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key='application.id', index=True)
    requirement_type: RequirementType
    status: RequirementStatus = Field(default=RequirementStatus.NOT_STARTED)
    notes: Optional[str] = None
    application: Optional[Application] = Relationship(back_populates='requirements')


COST_FIELDS = (
    'tuition',
    'room_and_board',
    'books_and_supplies',
    'personal_expenses',
    'transportation',
    'other_fees',
)


class FinancialPlan(SQLModel, table=True):
    """A parent's cost breakdown for one application.

    The total is derived from the individual cost fields and never stored.
    """
    __table_args__ = (UniqueConstraint("application_id", "parent_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key='application.id', index=True)
    parent_id: int = Field(foreign_key='user.id', index=True)
    tuition: Optional[float] = None
    room_and_board: Optional[float] = None
    books_and_supplies: Optional[float] = None
    personal_expenses: Optional[float] = None
    transportation: Optional[float] = None
    other_fees: Optional[float] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    application: Optional[Application] = Relationship(back_populates='financial_plans')
    parent: Optional[User] = Relationship()

    @property
    def total_cost(self) -> float:
        return sum(getattr(self, f) or 0 for f in COST_FIELDS)
