"""Deadline parsing and sanity checks for application writes."""

import re
from datetime import date, datetime
from typing import Optional

from ..errors import ValidationError

MAX_YEARS_AHEAD = 2

_DATE_ONLY = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def parse_deadline(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` date or an ISO-8601 datetime into a date.

    A trailing ``Z`` is accepted for UTC timestamps. Raises
    `ValidationError` for anything else.
    """
    if not value or not isinstance(value, str):
        raise ValidationError('deadline is required')
    value = value.strip()
    try:
        if _DATE_ONLY.match(value):
            return date.fromisoformat(value)
        return datetime.fromisoformat(value.replace('Z', '+00:00')).date()
    except ValueError:
        raise ValidationError(f'invalid deadline format: {value}')


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return d.replace(year=d.year + years, day=28)


def validate_deadline_window(deadline: date, today: Optional[date] = None) -> date:
    """Reject deadlines in the past or more than two years ahead."""
    today = today or date.today()
    if deadline < today:
        raise ValidationError('deadline cannot be earlier than today')
    if deadline > _add_years(today, MAX_YEARS_AHEAD):
        raise ValidationError('deadline is too far in the future')
    return deadline
