"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
parent links, universities, applications, status logs, requirements,
financial plans). Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import func
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None`."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user


class ParentStudentRepository:
    """Parent/student link lookups."""
    def __init__(self, session: Session):
        self.session = session

    def link(self, parent_id: int, student_id: int) -> models.ParentStudent:
        """Create the link unless it already exists (idempotent)."""
        existing = self.get(parent_id, student_id)
        if existing:
            return existing
        row = models.ParentStudent(parent_id=parent_id, student_id=student_id)
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def get(self, parent_id: int, student_id: int) -> Optional[models.ParentStudent]:
        stmt = select(models.ParentStudent).where(
            models.ParentStudent.parent_id == parent_id,
            models.ParentStudent.student_id == student_id
        )
        return self.session.exec(stmt).first()

    def exists(self, parent_id: int, student_id: int) -> bool:
        return self.get(parent_id, student_id) is not None

    def students_of(self, parent_id: int) -> List[models.User]:
        """Return the students linked to `parent_id`."""
        stmt = select(models.User).join(
            models.ParentStudent, models.ParentStudent.student_id == models.User.id
        ).where(models.ParentStudent.parent_id == parent_id).order_by(models.User.id)
        return self.session.exec(stmt).all()

    def parents_of(self, student_id: int) -> List[models.User]:
        """Return the parents linked to `student_id`."""
        stmt = select(models.User).join(
            models.ParentStudent, models.ParentStudent.parent_id == models.User.id
        ).where(models.ParentStudent.student_id == student_id).order_by(models.User.id)
        return self.session.exec(stmt).all()


class UniversityRepository:
    """Catalog queries for `University` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, university: models.University) -> models.University:
        self.session.add(university)
        self.session.commit()
        self.session.refresh(university)
        return university

    def get(self, university_id: int) -> Optional[models.University]:
        return self.session.get(models.University, university_id)

    def get_by_name(self, name: str) -> Optional[models.University]:
        stmt = select(models.University).where(models.University.name == name)
        return self.session.exec(stmt).first()

    def search(self, search: Optional[str] = None, country: Optional[str] = None,
               min_ranking: Optional[int] = None, max_ranking: Optional[int] = None,
               min_acceptance_rate: Optional[float] = None,
               max_acceptance_rate: Optional[float] = None) -> List[models.University]:
        """Filter the catalog; every argument left as `None` is ignored.

        Results are ordered by ranking (unranked last), then name.
        """
        U = models.University
        stmt = select(U)
        if search:
            stmt = stmt.where(func.lower(U.name).contains(search.lower()))
        if country:
            stmt = stmt.where(U.country == country)
        if min_ranking is not None:
            stmt = stmt.where(U.us_news_ranking >= min_ranking)
        if max_ranking is not None:
            stmt = stmt.where(U.us_news_ranking <= max_ranking)
        if min_acceptance_rate is not None:
            stmt = stmt.where(U.acceptance_rate >= min_acceptance_rate)
        if max_acceptance_rate is not None:
            stmt = stmt.where(U.acceptance_rate <= max_acceptance_rate)
        stmt = stmt.order_by(U.us_news_ranking.is_(None), U.us_news_ranking, U.name)
        return self.session.exec(stmt).all()


class ApplicationRepository:
    """Persistence for `Application` aggregates and their checklist."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, application: models.Application,
               requirements: List[models.ApplicationRequirement]) -> models.Application:
        """Store an application and its default requirements in one commit."""
        self.session.add(application)
        self.session.flush()
        for r in requirements:
            r.application_id = application.id
            self.session.add(r)
        self.session.commit()
        self.session.refresh(application)
        return application

    def get(self, application_id: int) -> Optional[models.Application]:
        return self.session.get(models.Application, application_id)

    def list_for_student(self, student_id: int) -> List[models.Application]:
        """Return a student's applications, nearest deadline first."""
        stmt = select(models.Application).where(
            models.Application.student_id == student_id
        ).order_by(models.Application.deadline, models.Application.id)
        return self.session.exec(stmt).all()

    def find_early_decision(self, student_id: int,
                            exclude_id: Optional[int] = None) -> Optional[models.Application]:
        """Return another EARLY_DECISION application of the student, if any."""
        stmt = select(models.Application).where(
            models.Application.student_id == student_id,
            models.Application.application_type == models.ApplicationType.EARLY_DECISION
        )
        if exclude_id is not None:
            stmt = stmt.where(models.Application.id != exclude_id)
        return self.session.exec(stmt).first()

    def save(self, application: models.Application) -> models.Application:
        application.updated_at = datetime.now(timezone.utc)
        self.session.add(application)
        self.session.commit()
        self.session.refresh(application)
        return application

    def apply_status_change(self, application: models.Application,
                            log: models.ApplicationStatusLog) -> models.Application:
        """Update the status and append its log row in a single transaction.

        The instance is left expired; callers reload it once the commit is
        known to have succeeded.
        """
        try:
            application.status = log.new_status
            application.updated_at = datetime.now(timezone.utc)
            self.session.add(application)
            self.session.add(log)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return application

    def reload(self, application: models.Application) -> models.Application:
        self.session.refresh(application)
        return application

    def set_status(self, application_id: int, status: models.ApplicationStatus) -> models.Application:
        """Non-transactional status write used by the fallback path."""
        application = self.session.get(models.Application, application_id)
        application.status = status
        return self.save(application)

    def delete(self, application: models.Application):
        """Delete the application; requirements, logs and plans cascade."""
        self.session.delete(application)
        self.session.commit()


class StatusLogRepository:
    """Append-only access to `ApplicationStatusLog` rows."""
    def __init__(self, session: Session):
        self.session = session

    def append(self, log: models.ApplicationStatusLog) -> models.ApplicationStatusLog:
        self.session.add(log)
        self.session.commit()
        self.session.refresh(log)
        return log

    def list_for_application(self, application_id: int) -> List[models.ApplicationStatusLog]:
        """Newest entries first."""
        stmt = select(models.ApplicationStatusLog).where(
            models.ApplicationStatusLog.application_id == application_id
        ).order_by(models.ApplicationStatusLog.created_at.desc(), models.ApplicationStatusLog.id.desc())
        return self.session.exec(stmt).all()


class RequirementRepository:
    """Checklist items of an application."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, requirement_id: int) -> Optional[models.ApplicationRequirement]:
        return self.session.get(models.ApplicationRequirement, requirement_id)

    def list_for_application(self, application_id: int) -> List[models.ApplicationRequirement]:
        stmt = select(models.ApplicationRequirement).where(
            models.ApplicationRequirement.application_id == application_id
        ).order_by(models.ApplicationRequirement.id)
        return self.session.exec(stmt).all()

    def save(self, requirement: models.ApplicationRequirement) -> models.ApplicationRequirement:
        self.session.add(requirement)
        self.session.commit()
        self.session.refresh(requirement)
        return requirement


class FinancialPlanRepository:
    """Repository for financial plan upserts and queries."""
    def __init__(self, session: Session):
        self.session = session

    def get_for(self, application_id: int, parent_id: int) -> Optional[models.FinancialPlan]:
        stmt = select(models.FinancialPlan).where(
            models.FinancialPlan.application_id == application_id,
            models.FinancialPlan.parent_id == parent_id
        )
        return self.session.exec(stmt).first()

    def upsert(self, plan: models.FinancialPlan) -> models.FinancialPlan:
        """Upsert a plan for its application/parent pair."""
        existing = self.get_for(plan.application_id, plan.parent_id)
        if existing:
            for f in models.COST_FIELDS + ('notes',):
                setattr(existing, f, getattr(plan, f))
            existing.updated_at = datetime.now(timezone.utc)
            plan = existing
        self.session.add(plan)
        self.session.commit()
        self.session.refresh(plan)
        return plan

    def list_for_student(self, student_id: int, parent_id: Optional[int] = None) -> List[models.FinancialPlan]:
        """Plans on the student's applications, optionally for one parent only."""
        stmt = select(models.FinancialPlan).join(
            models.Application, models.Application.id == models.FinancialPlan.application_id
        ).where(models.Application.student_id == student_id)
        if parent_id is not None:
            stmt = stmt.where(models.FinancialPlan.parent_id == parent_id)
        stmt = stmt.order_by(models.FinancialPlan.id)
        return self.session.exec(stmt).all()
