"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Registration only accepts the fields
listed on `RegisterIn`; anything else in the payload is dropped.
"""

from datetime import date
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional

from .models import ApplicationType, RequirementStatus, Role


class RegisterIn(BaseModel):
    """Payload for account registration."""
    email: EmailStr
    password: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: Role = Role.STUDENT
    student_email: Optional[EmailStr] = None
    graduation_year: Optional[int] = None
    gpa: Optional[float] = None
    sat_score: Optional[int] = None
    act_score: Optional[int] = None
    target_countries: List[str] = []
    intended_majors: List[str] = []


PROFILE_FIELDS = ('graduation_year', 'gpa', 'sat_score', 'act_score', 'target_countries', 'intended_majors')


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ProfileIn(BaseModel):
    """Student academic profile update."""
    graduation_year: Optional[int] = None
    gpa: Optional[float] = None
    sat_score: Optional[int] = None
    act_score: Optional[int] = None
    target_countries: Optional[List[str]] = None
    intended_majors: Optional[List[str]] = None


class ApplicationCreate(BaseModel):
    """Request body for a new application.

    `deadline` stays a string so the service can report unparsable dates
    as a validation error with its own message.
    """
    university_id: int
    application_type: ApplicationType
    deadline: str
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


class ApplicationUpdate(BaseModel):
    """Editable non-status fields; `None` leaves a field unchanged."""
    notes: Optional[str] = None
    application_type: Optional[ApplicationType] = None


class RequirementUpdate(BaseModel):
    status: Optional[RequirementStatus] = None
    notes: Optional[str] = None


class FinancialPlanIn(BaseModel):
    application_id: int
    tuition: Optional[float] = Field(default=None, ge=0)
    room_and_board: Optional[float] = Field(default=None, ge=0)
    books_and_supplies: Optional[float] = Field(default=None, ge=0)
    personal_expenses: Optional[float] = Field(default=None, ge=0)
    transportation: Optional[float] = Field(default=None, ge=0)
    other_fees: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class ScoreRange(BaseModel):
    model_config = ConfigDict(extra='forbid')
    min: Optional[float] = None
    max: Optional[float] = None


class UniversityDeadlines(BaseModel):
    """Published deadlines per application round."""
    model_config = ConfigDict(extra='forbid')
    early_decision: Optional[date] = None
    early_action: Optional[date] = None
    regular: Optional[date] = None
    rolling: Optional[date] = None


class UniversityRequirements(BaseModel):
    """Typical admission requirements of a university."""
    model_config = ConfigDict(extra='forbid')
    gpa: Optional[float] = None
    sat: Optional[ScoreRange] = None
    act: Optional[ScoreRange] = None
    toefl: Optional[int] = None
    ielts: Optional[float] = None
    essays: List[str] = []
    recommendations: Optional[int] = None
    portfolio: bool = False
    interview: bool = False
    extracurriculars: List[str] = []


class UniversityIn(BaseModel):
    """Catalog entry used by the seed script and tests."""
    name: str
    country: str
    state: Optional[str] = None
    city: Optional[str] = None
    us_news_ranking: Optional[int] = None
    acceptance_rate: Optional[float] = None
    application_system: Optional[str] = None
    tuition_in_state: Optional[float] = None
    tuition_out_state: Optional[float] = None
    application_fee: Optional[float] = None
    deadlines: Optional[UniversityDeadlines] = None
    requirements: Optional[UniversityRequirements] = None
