"""FastAPI application factory and HTTP controllers.

This module defines the HTTP endpoints of the college application
tracker. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses. Domain errors raised by
services are rendered by a single exception handler.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- POST /auth/logout
- GET /auth/me
- GET/PUT /student/profile
- GET/POST /student/applications
- GET/PATCH/PUT/DELETE /student/applications/{id}
- PATCH /student/applications/{id}/requirements/{requirement_id}
- GET/POST /financial-plans
- GET /universities
- GET /universities/{id}
- GET /health
"""

from fastapi import FastAPI, Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from sqlmodel import Session
from typing import Optional
import os
import json
import logging
import time
import uuid
from .database import build_engine, create_db_and_tables, get_session
from . import services, models
from .auth import SESSION_COOKIE, get_current_user
from .config import Settings, settings as default_settings
from .errors import AppError, Forbidden, Unauthorized, ValidationError
from .schemas import (
    ApplicationCreate,
    ApplicationUpdate,
    FinancialPlanIn,
    LoginIn,
    ProfileIn,
    RegisterIn,
    RequirementUpdate,
    StatusUpdate,
)
from .utils.rate_limit import LoginThrottle

logger = logging.getLogger("apptracker.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))


def _university_summary(u: Optional[models.University]) -> Optional[dict]:
    if u is None:
        return None
    return {'id': u.id, 'name': u.name, 'country': u.country, 'us_news_ranking': u.us_news_ranking}


def university_out(u: models.University) -> dict:
    return {
        'id': u.id,
        'name': u.name,
        'country': u.country,
        'state': u.state,
        'city': u.city,
        'us_news_ranking': u.us_news_ranking,
        'acceptance_rate': u.acceptance_rate,
        'application_system': u.application_system,
        'tuition_in_state': u.tuition_in_state,
        'tuition_out_state': u.tuition_out_state,
        'application_fee': u.application_fee,
        'deadlines': u.deadlines or {},
        'requirements': u.requirements or {},
    }


def status_log_out(log: models.ApplicationStatusLog) -> dict:
    who = log.changed_by_user
    return {
        'id': log.id,
        'old_status': log.old_status,
        'new_status': log.new_status,
        'changed_by': log.changed_by,
        'changed_by_name': who.name if who else None,
        'changed_by_role': log.changed_by_role,
        'reason': log.reason,
        'created_at': log.created_at,
    }


def requirement_out(r: models.ApplicationRequirement) -> dict:
    return {'id': r.id, 'requirement_type': r.requirement_type, 'status': r.status, 'notes': r.notes}


def financial_plan_out(p: models.FinancialPlan, with_application: bool = False) -> dict:
    out = {
        'id': p.id,
        'application_id': p.application_id,
        'parent_id': p.parent_id,
        'notes': p.notes,
        'total_cost': p.total_cost,
        'updated_at': p.updated_at,
    }
    for f in models.COST_FIELDS:
        out[f] = getattr(p, f)
    if p.parent is not None:
        out['parent'] = {'id': p.parent.id, 'name': p.parent.name, 'email': p.parent.email}
    if with_application and p.application is not None:
        out['university'] = _university_summary(p.application.university)
    return out


def application_out(a: models.Application, viewer: Optional[models.User] = None) -> dict:
    plans = a.financial_plans
    if viewer is not None and viewer.role == models.Role.PARENT:
        plans = [p for p in plans if p.parent_id == viewer.id]
    return {
        'id': a.id,
        'student_id': a.student_id,
        'university_id': a.university_id,
        'university': _university_summary(a.university),
        'application_type': a.application_type,
        'deadline': a.deadline,
        'status': a.status,
        'notes': a.notes,
        'created_at': a.created_at,
        'updated_at': a.updated_at,
        'requirements': [requirement_out(r) for r in sorted(a.requirements, key=lambda r: r.id)],
        'status_logs': [status_log_out(l) for l in sorted(a.status_logs, key=lambda l: l.id, reverse=True)],
        'financial_plans': [financial_plan_out(p) for p in plans],
    }


def create_app(app_settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """Build the FastAPI app around an explicitly constructed engine.

    Tests pass their own in-memory engine; production uses the engine
    built from ``DATABASE_URL``.
    """
    cfg = app_settings or default_settings
    if engine is None:
        engine = build_engine(cfg.DATABASE_URL, timeout_seconds=cfg.TRANSACTION_TIMEOUT_SECONDS)
    create_db_and_tables(engine)

    app = FastAPI(title="College Application Tracker API")
    app.state.settings = cfg
    app.state.engine = engine
    app.state.login_throttle = LoginThrottle()

    if cfg.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": request.client.host if request.client else "unknown",
                    },
                    ensure_ascii=True,
                ),
            )
            raise
        response.headers["X-Request-ID"] = req_id
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        return response

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("internal error on %s: %s", request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)

    @app.post('/auth/register')
    def register(payload: RegisterIn, db: Session = Depends(get_session)):
        """Register a new account.

        Parents may pass `student_email` to link themselves to an existing
        student. Unknown payload fields are ignored.
        """
        user = services.AuthService(db).register(payload)
        return {'user': {'id': user.id, 'email': user.email, 'name': user.name, 'role': user.role}}

    @app.post('/auth/login')
    def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_session)):
        """Authenticate and set the HTTP-only session cookie.

        The cookie holds a signed token with `user_id`, `email` and `role`
        and expires after `JWT_EXPIRE_DAYS` (7 by default).
        """
        key = f"{request.client.host if request.client else 'unknown'}:{payload.email.lower()}"
        throttle = request.app.state.login_throttle
        allowed, retry_after = throttle.hit(key, cfg.LOGIN_RATE_LIMIT_PER_MIN)
        if not allowed:
            return JSONResponse(
                status_code=429,
                content={'detail': f'too many login attempts; retry after {retry_after}s'},
                headers={'Retry-After': str(retry_after)},
            )
        result = services.AuthService(db).authenticate(payload.email, payload.password, cfg)
        if not result:
            raise Unauthorized('invalid credentials')
        throttle.reset(key)
        user, token = result
        response.set_cookie(
            SESSION_COOKIE,
            token,
            max_age=cfg.JWT_EXPIRE_DAYS * 24 * 60 * 60,
            httponly=True,
            secure=cfg.cookie_secure,
            samesite='lax',
        )
        return {'user': {'id': user.id, 'email': user.email, 'name': user.name, 'role': user.role}}

    @app.post('/auth/logout')
    def logout(response: Response):
        """Clear the session cookie."""
        response.delete_cookie(SESSION_COOKIE, httponly=True, samesite='lax', secure=cfg.cookie_secure)
        return {'status': 'ok'}

    @app.get('/auth/me')
    def me(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """Current account plus linked parents/students."""
        return services.AuthService(db).describe(user)

    @app.get('/student/profile')
    def get_profile(user: models.User = Depends(get_current_user)):
        """Return the authenticated student's academic profile."""
        if user.role != models.Role.STUDENT:
            raise Forbidden('only students have a profile')
        return services.user_out(user)

    @app.put('/student/profile')
    def update_profile(payload: ProfileIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        """Replace the academic profile; ranges are validated by the service."""
        updated = services.ProfileService(db).update(user, payload)
        return services.user_out(updated)

    @app.get('/student/applications')
    def list_applications(student_id: Optional[int] = None, db: Session = Depends(get_session),
                          user: models.User = Depends(get_current_user)):
        """List applications, nearest deadline first.

        Students see their own; parents must pass a linked `student_id`.
        """
        apps = services.ApplicationService(db).list_for(user, student_id)
        return {'applications': [application_out(a, user) for a in apps]}

    @app.post('/student/applications')
    def create_application(payload: ApplicationCreate, db: Session = Depends(get_session),
                           user: models.User = Depends(get_current_user)):
        """Create an application for the authenticated student."""
        application = services.ApplicationService(db).create(user, payload)
        return {'application': application_out(application, user)}

    @app.get('/student/applications/{application_id}')
    def get_application(application_id: int, db: Session = Depends(get_session),
                        user: models.User = Depends(get_current_user)):
        application = services.ApplicationService(db).get_for(user, application_id)
        return {'application': application_out(application, user)}

    @app.patch('/student/applications/{application_id}')
    def update_application_status(application_id: int, payload: StatusUpdate, db: Session = Depends(get_session),
                                  user: models.User = Depends(get_current_user)):
        """Apply a status transition and record it in the status log."""
        if not payload.status:
            raise ValidationError('status is required')
        application = services.ApplicationService(db).update_status(user, application_id, payload.status, payload.reason)
        return {'application': application_out(application, user)}

    @app.put('/student/applications/{application_id}')
    def update_application(application_id: int, payload: ApplicationUpdate, db: Session = Depends(get_session),
                           user: models.User = Depends(get_current_user)):
        """Edit notes and/or application type."""
        application = services.ApplicationService(db).update_fields(user, application_id, payload)
        return {'application': application_out(application, user)}

    @app.delete('/student/applications/{application_id}')
    def delete_application(application_id: int, db: Session = Depends(get_session),
                           user: models.User = Depends(get_current_user)):
        services.ApplicationService(db).delete(user, application_id)
        return {'status': 'deleted', 'id': application_id}

    @app.patch('/student/applications/{application_id}/requirements/{requirement_id}')
    def update_requirement(application_id: int, requirement_id: int, payload: RequirementUpdate,
                           db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
        req = services.ApplicationService(db).update_requirement(user, application_id, requirement_id, payload)
        return {'requirement': requirement_out(req)}

    @app.get('/financial-plans')
    def list_financial_plans(student_id: Optional[int] = None, db: Session = Depends(get_session),
                             user: models.User = Depends(get_current_user)):
        """Financial plans for one student's applications."""
        if student_id is None:
            raise ValidationError('student_id is required')
        plans = services.FinancialPlanService(db).list_for(user, student_id)
        return {'financial_plans': [financial_plan_out(p, with_application=True) for p in plans]}

    @app.post('/financial-plans')
    def upsert_financial_plan(payload: FinancialPlanIn, db: Session = Depends(get_session),
                              user: models.User = Depends(get_current_user)):
        """Create or replace the parent's plan for an application."""
        plan = services.FinancialPlanService(db).upsert(user, payload)
        return {'financial_plan': financial_plan_out(plan, with_application=True)}

    @app.get('/universities')
    def list_universities(search: Optional[str] = None, country: Optional[str] = None,
                          min_ranking: Optional[int] = None, max_ranking: Optional[int] = None,
                          min_acceptance_rate: Optional[float] = None,
                          max_acceptance_rate: Optional[float] = None,
                          db: Session = Depends(get_session)):
        """Filterable university catalog ordered by ranking."""
        found = services.UniversityService(db).search(
            search=search,
            country=country,
            min_ranking=min_ranking,
            max_ranking=max_ranking,
            min_acceptance_rate=min_acceptance_rate,
            max_acceptance_rate=max_acceptance_rate,
        )
        return {'universities': [university_out(u) for u in found]}

    @app.get('/universities/{university_id}')
    def get_university(university_id: int, db: Session = Depends(get_session)):
        return {'university': university_out(services.UniversityService(db).get(university_id))}

    @app.get("/health")
    def health():
        """Lightweight health check for uptime monitoring."""
        return {"status": "ok"}

    return app


# Importing this module opens DATABASE_URL (backend/app.db by default) and
# creates the tables. Tests point DATABASE_URL at sqlite:// before import.
app = create_app()


def run(app_settings: Optional[Settings] = None):
    """Serve the module-level app with uvicorn."""
    import uvicorn

    cfg = app_settings or default_settings
    uvicorn.run(app, host=cfg.HOST, port=cfg.PORT)


if __name__ == "__main__":
    run()
