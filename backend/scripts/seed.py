"""CLI script to populate the backend DB with demo accounts and universities.
Usage: python scripts/seed.py [--password PASSWORD]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `apptracker` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from apptracker.config import settings
from apptracker.database import build_engine, create_db_and_tables
from apptracker import repositories, services
from apptracker.errors import ConflictError
from apptracker.schemas import RegisterIn, UniversityIn

UNIVERSITIES = [
    {
        'name': 'Massachusetts Institute of Technology', 'country': 'United States',
        'state': 'Massachusetts', 'city': 'Cambridge', 'us_news_ranking': 2, 'acceptance_rate': 4.0,
        'application_system': 'Direct', 'tuition_in_state': 57000, 'tuition_out_state': 57000,
        'application_fee': 75,
        'deadlines': {'early_action': '2025-11-01', 'regular': '2026-01-05'},
        'requirements': {
            'gpa': 4.0, 'sat': {'min': 1500, 'max': 1600}, 'act': {'min': 34, 'max': 36}, 'toefl': 100,
            'essays': ['Personal statement', 'Community essay'], 'recommendations': 2, 'interview': True,
        },
    },
    {
        'name': 'Stanford University', 'country': 'United States', 'state': 'California',
        'city': 'Stanford', 'us_news_ranking': 3, 'acceptance_rate': 3.9,
        'application_system': 'Common App', 'tuition_in_state': 56000, 'tuition_out_state': 56000,
        'application_fee': 90,
        'deadlines': {'early_action': '2025-11-01', 'regular': '2026-01-05'},
        'requirements': {
            'gpa': 3.9, 'sat': {'min': 1450, 'max': 1600}, 'act': {'min': 32, 'max': 36}, 'toefl': 100,
            'ielts': 7.0, 'essays': ['Personal statement', 'Stanford short essays'], 'recommendations': 2,
        },
    },
    {
        'name': 'University of California, Berkeley', 'country': 'United States', 'state': 'California',
        'city': 'Berkeley', 'us_news_ranking': 15, 'acceptance_rate': 11.4,
        'application_system': 'UC Application', 'tuition_in_state': 15000, 'tuition_out_state': 45000,
        'application_fee': 70,
        'deadlines': {'regular': '2025-11-30'},
        'requirements': {'gpa': 3.7, 'toefl': 80, 'ielts': 6.5, 'essays': ['Personal insight questions'], 'recommendations': 0},
    },
    {
        'name': 'University of Toronto', 'country': 'Canada', 'state': 'Ontario', 'city': 'Toronto',
        'us_news_ranking': 21, 'acceptance_rate': 43.0, 'application_system': 'OUAC',
        'tuition_in_state': 6100, 'tuition_out_state': 45000, 'application_fee': 180,
        'deadlines': {'regular': '2026-01-15'},
        'requirements': {'toefl': 100, 'ielts': 6.5, 'essays': ['Personal profile']},
    },
]


def main(password: str = 'password'):
    """Create demo users (student, parent linked to student) and universities.

    Existing rows are left untouched so the script can be re-run safely.
    """
    engine = build_engine(settings.DATABASE_URL, timeout_seconds=settings.TRANSACTION_TIMEOUT_SECONDS)
    create_db_and_tables(engine)
    with Session(engine) as session:
        auth = services.AuthService(session)
        accounts = [
            RegisterIn(email='student@gmail.com', password=password, name='Demo Student', role='STUDENT',
                       graduation_year=2026, gpa=3.8, sat_score=1450, act_score=32,
                       target_countries=['United States', 'Canada'], intended_majors=['Computer Science']),
            RegisterIn(email='parent@gmail.com', password=password, name='Demo Parent', role='PARENT',
                       student_email='student@gmail.com'),
        ]
        for acc in accounts:
            try:
                user = auth.register(acc)
                print(f'Created {user.role.value.lower()} {user.email}')
            except ConflictError:
                print(f'Skipped existing user {acc.email}')
        uni_svc = services.UniversityService(session)
        uni_repo = repositories.UniversityRepository(session)
        created = 0
        for u in UNIVERSITIES:
            if uni_repo.get_by_name(u['name']):
                continue
            uni_svc.create(UniversityIn(**u))
            created += 1
        print(f'Universities created: {created}, skipped {len(UNIVERSITIES) - created}')

if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--password', default='password', help='Password for the demo accounts')
    args = parser.parse_args()
    main(password=args.password)
