"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the status state machine and access control. Services perform
validation, execute domain logic and persist aggregates via
repositories; they raise `apptracker.errors` exceptions which the HTTP
layer turns into responses.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from . import models, repositories, status_machine
from .access import AccessControl
from .auth import create_token, hash_password, verify_password
from .errors import ConflictError, Forbidden, InternalError, NotFound, ValidationError
from .schemas import (
    PROFILE_FIELDS,
    ApplicationCreate,
    ApplicationUpdate,
    FinancialPlanIn,
    ProfileIn,
    RegisterIn,
    RequirementUpdate,
    UniversityIn,
)
from .utils.dates import parse_deadline, validate_deadline_window

logger = logging.getLogger(__name__)

Role = models.Role

DEFAULT_REQUIREMENTS = (
    models.RequirementType.ESSAY,
    models.RequirementType.TRANSCRIPT,
    models.RequirementType.RECOMMENDATION,
    models.RequirementType.TEST_SCORES,
)

SELF_REGISTER_ROLES = (Role.STUDENT, Role.PARENT, Role.TEACHER)


def _check_profile_ranges(graduation_year=None, gpa=None, sat_score=None, act_score=None, **_):
    if graduation_year is not None and not 2020 <= graduation_year <= 2030:
        raise ValidationError('graduation_year must be between 2020 and 2030')
    if gpa is not None and not 0 <= gpa <= 4.0:
        raise ValidationError('gpa must be between 0 and 4.0')
    if sat_score is not None and not 400 <= sat_score <= 1600:
        raise ValidationError('sat_score must be between 400 and 1600')
    if act_score is not None and not 1 <= act_score <= 36:
        raise ValidationError('act_score must be between 1 and 36')


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.link_repo = repositories.ParentStudentRepository(session)

    def register(self, payload: RegisterIn) -> models.User:
        """Create a new account with a hashed password.

        Only the allow-listed profile fields are copied onto the user. A
        parent registering with `student_email` gets linked to that student;
        the student must already exist, otherwise nothing is created.
        """
        if payload.role not in SELF_REGISTER_ROLES:
            raise ValidationError(f'role {payload.role.value} cannot self-register')
        if self.user_repo.get_by_email(payload.email):
            raise ConflictError('user already exists')
        profile = {f: getattr(payload, f) for f in PROFILE_FIELDS}
        if payload.role == Role.STUDENT:
            _check_profile_ranges(**profile)
        else:
            profile = {}
        student = None
        if payload.role == Role.PARENT and payload.student_email:
            student = self.user_repo.get_by_email(payload.student_email)
            if not student or student.role != Role.STUDENT:
                raise ValidationError('student_email does not belong to a student account')
        user = models.User(
            email=payload.email,
            password_hash=hash_password(payload.password),
            name=payload.name,
            role=payload.role,
            **profile,
        )
        try:
            user = self.user_repo.create(user)
        except IntegrityError:
            self.session.rollback()
            raise ConflictError('user already exists')
        if student is not None:
            self.link_repo.link(user.id, student.id)
            logger.info("linked parent %s to student %s", user.id, student.id)
        return user

    def authenticate(self, email: str, password: str, settings) -> Optional[tuple]:
        """Verify credentials and return ``(user, token)`` on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            return None
        token = create_token(user, settings.JWT_SECRET, settings.JWT_ALGORITHM, settings.JWT_EXPIRE_DAYS)
        return user, token

    def describe(self, user: models.User) -> dict:
        """Profile plus linked parents/students for `/auth/me`."""
        out = user_out(user)
        out['students'] = [_contact(u) for u in self.link_repo.students_of(user.id)]
        out['parents'] = [_contact(u) for u in self.link_repo.parents_of(user.id)]
        return out


class ProfileService:
    """Student academic profile reads and updates."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def update(self, user: models.User, payload: ProfileIn) -> models.User:
        if user.role != Role.STUDENT:
            raise Forbidden('only students can edit a profile')
        data = payload.model_dump()
        _check_profile_ranges(**data)
        user.graduation_year = data['graduation_year']
        user.gpa = data['gpa']
        user.sat_score = data['sat_score']
        user.act_score = data['act_score']
        user.target_countries = data['target_countries'] or []
        user.intended_majors = data['intended_majors'] or []
        return self.user_repo.save(user)


class UniversityService:
    """Catalog search and seeding."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.UniversityRepository(session)

    def search(self, **filters) -> List[models.University]:
        return self.repo.search(**filters)

    def get(self, university_id: int) -> models.University:
        u = self.repo.get(university_id)
        if not u:
            raise NotFound('university not found')
        return u

    def create(self, payload: UniversityIn) -> models.University:
        """Insert a catalog entry, serializing the typed sub-structures."""
        data = payload.model_dump(exclude={'deadlines', 'requirements'})
        u = models.University(**data)
        if payload.deadlines is not None:
            u.deadlines = payload.deadlines.model_dump(mode='json', exclude_none=True)
        if payload.requirements is not None:
            u.requirements = payload.requirements.model_dump(mode='json', exclude_none=True)
        return self.repo.create(u)


class ApplicationService:
    """Application lifecycle: create, read, edit, transition, delete."""
    def __init__(self, session: Session):
        self.session = session
        self.apps = repositories.ApplicationRepository(session)
        self.logs = repositories.StatusLogRepository(session)
        self.requirements = repositories.RequirementRepository(session)
        self.universities = repositories.UniversityRepository(session)
        self.access = AccessControl(session)

    def _check_early_decision(self, student_id: int, exclude_id: Optional[int] = None):
        """At most one EARLY_DECISION application per student."""
        if self.apps.find_early_decision(student_id, exclude_id=exclude_id):
            raise ConflictError('student already has an EARLY_DECISION application')

    def resolve_student(self, user: models.User, student_id: Optional[int]) -> int:
        """Pick whose applications `user` is asking for.

        Students default to themselves; parents must name a student.
        """
        if user.role == Role.PARENT and student_id is None:
            raise ValidationError('student_id is required for parents')
        target = student_id if student_id is not None else user.id
        self.access.require(user.role, user.id, target, 'not allowed to view these applications')
        return target

    def list_for(self, user: models.User, student_id: Optional[int] = None) -> List[models.Application]:
        return self.apps.list_for_student(self.resolve_student(user, student_id))

    def get_for(self, user: models.User, application_id: int) -> models.Application:
        """Fetch an application and check the actor may access it."""
        application = self.apps.get(application_id)
        if not application:
            raise NotFound('application not found')
        self.access.require(user.role, user.id, application.student_id)
        return application

    def create(self, user: models.User, payload: ApplicationCreate, today: Optional[date] = None) -> models.Application:
        """Create an application for the authenticated student.

        Validates the deadline window, the university reference and the
        early-decision invariant, then stores the application together
        with its default requirement checklist.
        """
        if user.role != Role.STUDENT:
            raise Forbidden('only students can create applications')
        deadline = parse_deadline(payload.deadline)
        validate_deadline_window(deadline, today=today)
        if not self.universities.get(payload.university_id):
            raise NotFound('university not found')
        if payload.application_type == models.ApplicationType.EARLY_DECISION:
            self._check_early_decision(user.id)
        application = models.Application(
            student_id=user.id,
            university_id=payload.university_id,
            application_type=payload.application_type,
            deadline=deadline,
            status=models.ApplicationStatus.NOT_STARTED,
            notes=payload.notes,
        )
        reqs = [models.ApplicationRequirement(requirement_type=t) for t in DEFAULT_REQUIREMENTS]
        application = self.apps.create(application, reqs)
        logger.info("application %s created by student %s", application.id, user.id)
        return application

    def update_fields(self, user: models.User, application_id: int, payload: ApplicationUpdate) -> models.Application:
        """Edit notes/application type; status is never touched here."""
        application = self.get_for(user, application_id)
        if payload.application_type == models.ApplicationType.EARLY_DECISION:
            self._check_early_decision(application.student_id, exclude_id=application.id)
        if payload.notes is not None:
            application.notes = payload.notes
        if payload.application_type is not None:
            application.application_type = payload.application_type
        return self.apps.save(application)

    def update_status(self, user: models.User, application_id: int, requested: str,
                      reason: Optional[str] = None) -> models.Application:
        """Move the application to `requested` and record the change.

        The status update and its log row are committed together. If that
        transaction fails, the writes are retried as two separate commits
        (status first, then log). Both writes failing raises
        `InternalError`. Only a failed commit falls back; once it succeeded
        the change is never written a second time.
        """
        application = self.get_for(user, application_id)
        new_status, change = status_machine.transition(
            application.status, requested, user.id, user.role, reason
        )
        app_id = application.id
        try:
            self.apps.apply_status_change(application, self._log_row(app_id, change))
        except SQLAlchemyError:
            logger.warning("status transaction failed for application %s; falling back to sequential writes",
                           app_id, exc_info=True)
        else:
            # committed: a failed reload must not replay the writes
            try:
                return self.apps.reload(application)
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.exception("status of application %s committed but reload failed", app_id)
                raise InternalError('status updated but the application could not be reloaded') from exc
        try:
            application = self.apps.set_status(app_id, new_status)
            self.logs.append(self._log_row(app_id, change))
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("fallback status update failed for application %s", app_id)
            raise InternalError('failed to update application status') from exc
        return application

    @staticmethod
    def _log_row(application_id: int, change: status_machine.StatusChange) -> models.ApplicationStatusLog:
        return models.ApplicationStatusLog(
            application_id=application_id,
            old_status=change.old_status,
            new_status=change.new_status,
            changed_by=change.changed_by,
            changed_by_role=change.changed_by_role,
            reason=change.reason,
        )

    def update_requirement(self, user: models.User, application_id: int, requirement_id: int,
                           payload: RequirementUpdate) -> models.ApplicationRequirement:
        application = self.get_for(user, application_id)
        req = self.requirements.get(requirement_id)
        if not req or req.application_id != application.id:
            raise NotFound('requirement not found')
        if payload.status is not None:
            req.status = payload.status
        if payload.notes is not None:
            req.notes = payload.notes
        return self.requirements.save(req)

    def delete(self, user: models.User, application_id: int):
        """Delete an application owned by the authenticated student.

        Other students' applications are reported as missing.
        """
        if user.role != Role.STUDENT:
            raise Forbidden('only students can delete applications')
        application = self.apps.get(application_id)
        if not application or application.student_id != user.id:
            raise NotFound('application not found')
        self.apps.delete(application)
        logger.info("application %s deleted by student %s", application_id, user.id)


class FinancialPlanService:
    """Parent-maintained cost breakdowns per application."""
    def __init__(self, session: Session):
        self.session = session
        self.plans = repositories.FinancialPlanRepository(session)
        self.apps = repositories.ApplicationRepository(session)
        self.access = AccessControl(session)

    def list_for(self, user: models.User, student_id: int) -> List[models.FinancialPlan]:
        """Plans for a student; parents only see the plans they wrote."""
        self.access.require(user.role, user.id, student_id)
        parent_id = user.id if user.role == Role.PARENT else None
        return self.plans.list_for_student(student_id, parent_id=parent_id)

    def upsert(self, user: models.User, payload: FinancialPlanIn) -> models.FinancialPlan:
        if user.role != Role.PARENT:
            raise Forbidden('only parents can manage financial plans')
        application = self.apps.get(payload.application_id)
        if not application:
            raise NotFound('application not found')
        self.access.require(user.role, user.id, application.student_id)
        plan = models.FinancialPlan(parent_id=user.id, **payload.model_dump())
        return self.plans.upsert(plan)


def _contact(u: models.User) -> dict:
    return {'id': u.id, 'name': u.name, 'email': u.email}


def user_out(u: models.User) -> dict:
    return {
        'id': u.id,
        'email': u.email,
        'name': u.name,
        'role': u.role,
        'graduation_year': u.graduation_year,
        'gpa': u.gpa,
        'sat_score': u.sat_score,
        'act_score': u.act_score,
        'target_countries': u.target_countries or [],
        'intended_majors': u.intended_majors or [],
    }
