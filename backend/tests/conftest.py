import os

os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from apptracker.database import build_engine
from apptracker.main import create_app
from apptracker import services
from apptracker.schemas import UniversityIn


@pytest.fixture()
def engine():
    """Fresh in-memory database per test."""
    eng = build_engine("sqlite://")
    yield eng
    eng.dispose()


@pytest.fixture()
def app(engine):
    return create_app(engine=engine)


@pytest.fixture()
def make_client(app):
    """Return a factory of independent clients (one cookie jar per actor)."""
    def _make():
        return TestClient(app)
    return _make


def register(client, email, role='STUDENT', password='pw123456', name=None, **extra):
    payload = {'email': email, 'password': password, 'name': name or email.split('@')[0], 'role': role}
    payload.update(extra)
    return client.post('/auth/register', json=payload)


def login(client, email, password='pw123456'):
    r = client.post('/auth/login', json={'email': email, 'password': password})
    assert r.status_code == 200, r.text
    return r.json()['user']


@pytest.fixture()
def student(make_client):
    c = make_client()
    register(c, 'alice@gmail.com')
    user = login(c, 'alice@gmail.com')
    c.user = user
    return c


@pytest.fixture()
def other_student(make_client):
    c = make_client()
    register(c, 'bob@gmail.com')
    c.user = login(c, 'bob@gmail.com')
    return c


@pytest.fixture()
def parent(make_client, student):
    """Parent linked to `student` at registration."""
    c = make_client()
    r = register(c, 'carol@gmail.com', role='PARENT', student_email='alice@gmail.com')
    assert r.status_code == 200, r.text
    c.user = login(c, 'carol@gmail.com')
    return c


@pytest.fixture()
def stranger_parent(make_client):
    c = make_client()
    register(c, 'dave@gmail.com', role='PARENT')
    c.user = login(c, 'dave@gmail.com')
    return c


@pytest.fixture()
def universities(app, engine):
    """Three catalog entries; returns their ids by short name."""
    entries = {
        'mit': UniversityIn(
            name='Massachusetts Institute of Technology', country='United States', us_news_ranking=2,
            acceptance_rate=4.0, deadlines={'early_action': '2026-11-01'},
            requirements={'sat': {'min': 1500, 'max': 1600}, 'essays': ['Personal statement']},
        ),
        'berkeley': UniversityIn(
            name='University of California, Berkeley', country='United States', us_news_ranking=15,
            acceptance_rate=11.4,
        ),
        'toronto': UniversityIn(
            name='University of Toronto', country='Canada', us_news_ranking=21, acceptance_rate=43.0,
        ),
    }
    ids = {}
    with Session(engine) as session:
        svc = services.UniversityService(session)
        for key, payload in entries.items():
            ids[key] = svc.create(payload).id
    return ids


def future(days=30):
    return (date.today() + timedelta(days=days)).isoformat()


def create_application(client, university_id, application_type='REGULAR_DECISION', deadline=None):
    return client.post('/student/applications', json={
        'university_id': university_id,
        'application_type': application_type,
        'deadline': deadline or future(),
    })
