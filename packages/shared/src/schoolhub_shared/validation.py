"""Validation helpers for profile fields.

Dates of birth are checked against an age window (students can be as young
as 4). Helpers return an error message instead of raising so forms and
activities can surface it directly.
"""

from __future__ import annotations

from datetime import date

DEFAULT_MIN_AGE = 4
DEFAULT_MAX_AGE = 120


def calculate_age(dob: date, today: date | None = None) -> int:
    """Whole years elapsed since dob, not counting a birthday still to come this year."""
    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def age_validation_error(
    dob: date | str | None,
    min_age: int = DEFAULT_MIN_AGE,
    max_age: int = DEFAULT_MAX_AGE,
    today: date | None = None,
) -> str | None:
    """Return a human-readable error for an out-of-range date of birth, or None."""
    if not dob:
        return None
    if isinstance(dob, str):
        try:
            dob = date.fromisoformat(dob)
        except ValueError:
            return "Invalid date of birth"

    age = calculate_age(dob, today)
    if age < min_age:
        return f"Age must be at least {min_age} years"
    if age > max_age:
        return f"Age must not exceed {max_age} years"
    return None


def date_of_birth_bounds(
    min_age: int = DEFAULT_MIN_AGE,
    max_age: int = DEFAULT_MAX_AGE,
    today: date | None = None,
) -> tuple[date, date]:
    """(earliest, latest) acceptable dates of birth for a date picker."""
    today = today or date.today()
    return _years_before(today, max_age), _years_before(today, min_age)


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:  # Feb 29 in a non-leap target year
        return day.replace(year=day.year - years, day=28)
