"""Test fixtures for Data Access activities.

Provides a MockEngine/MockConnection that mimics SQLAlchemy async engine behavior,
recording executed statements and returning canned results in order. Activities
use `get_engine().begin()`, so tests patch `get_engine` in the module under test
to return the MockEngine.

Fixture rows describe one small school: roles, a school, a class, a teacher
and a student.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

import pytest
from schoolhub_data_access.leave_policy import set_policy
from sqlalchemy.dialects import postgresql

# ============================================================================
# Mock SQLAlchemy async engine/connection
# ============================================================================


class MockCursorResult:
    """Mimics SQLAlchemy CursorResult for SELECT and DML ... RETURNING."""

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self._rows = rows or []
        self.rowcount = len(self._rows)

    def fetchone(self) -> Any | None:
        if self._rows:
            return MappingRow(self._rows[0])
        return None

    def fetchall(self) -> list[Any]:
        return [MappingRow(r) for r in self._rows]

    def scalar(self) -> Any | None:
        if self._rows:
            return next(iter(self._rows[0].values()))
        return None

    def mappings(self) -> MockMappings:
        return MockMappings(self._rows)


class MockMappings:
    """Mimics result.mappings() for dict-like row access."""

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    def fetchall(self) -> list[dict[str, Any]]:
        return self._rows

    def fetchone(self) -> dict[str, Any] | None:
        return self._rows[0] if self._rows else None


class MappingRow:
    """Mimics a SQLAlchemy Row with attribute and positional access."""

    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._data.get(name)

    def __getitem__(self, key: Any) -> Any:
        if isinstance(key, int):
            return list(self._data.values())[key]
        return self._data[key]


class MockConnection:
    """Mimics AsyncConnection with execute() recording."""

    def __init__(self) -> None:
        self.executed: list[Any] = []
        self._responses: list[MockCursorResult | Exception] = []
        self._default_response = MockCursorResult()

    def queue_response(self, rows: list[dict[str, Any]]) -> None:
        """Queue a response for the next execute() call."""
        self._responses.append(MockCursorResult(rows))

    def queue_error(self, error: Exception) -> None:
        """Make the next execute() call raise."""
        self._responses.append(error)

    async def execute(self, stmt: Any, parameters: Any = None) -> MockCursorResult:
        self.executed.append(stmt)
        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return self._default_response

    def compiled(self, index: int) -> Any:
        """The index-th executed statement compiled for Postgres (.string, .params)."""
        return self.executed[index].compile(dialect=postgresql.dialect())

    async def __aenter__(self) -> MockConnection:
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


class MockEngine:
    """Mimics AsyncEngine with begin() context manager."""

    def __init__(self) -> None:
        self.connection = MockConnection()

    def begin(self) -> MockEngine:
        return self

    async def __aenter__(self) -> MockConnection:
        return self.connection

    async def __aexit__(self, *args: Any) -> None:
        pass


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def engine() -> MockEngine:
    """Provide a MockEngine that records SQL calls."""
    return MockEngine()


@pytest.fixture
def conn(engine: MockEngine) -> MockConnection:
    """Shortcut to the connection for queueing responses."""
    return engine.connection


@pytest.fixture(autouse=True)
def default_leave_policy(monkeypatch):
    """Every test starts from the built-in leave policy."""
    for name in ("LEAVE_AUTO_APPROVE_ROLES", "LEAVE_REVIEWER_ROLES", "LEAVE_HOLIDAY_ROLES"):
        monkeypatch.delenv(name, raising=False)
    set_policy(None)
    yield
    set_policy(None)


# -- Realistic IDs --

ROLE_SUPERADMIN_ID = "11111111-0000-4000-8000-000000000001"
ROLE_ADMIN_ID = "11111111-0000-4000-8000-000000000002"
ROLE_TEACHER_ID = "11111111-0000-4000-8000-000000000003"
ROLE_STUDENT_ID = "11111111-0000-4000-8000-000000000004"

SCHOOL_ID = "9a8b7c6d-0000-4111-8222-333344445555"
CLASS_ID = "c1a55000-0000-4000-8000-00000000004b"
TEACHER_ID = "0b7c1f7e-2f4a-4c43-9d2e-1a1f8f2b7a01"
STUDENT_ID = "5d0e2c1a-8b9f-4e77-b3c4-6f2d9e0a1b02"


@pytest.fixture
def ids() -> dict[str, str]:
    return {
        "superadmin_role": ROLE_SUPERADMIN_ID,
        "admin_role": ROLE_ADMIN_ID,
        "teacher_role": ROLE_TEACHER_ID,
        "student_role": ROLE_STUDENT_ID,
        "school": SCHOOL_ID,
        "class": CLASS_ID,
        "teacher": TEACHER_ID,
        "student": STUDENT_ID,
    }


@pytest.fixture
def teacher_row() -> dict[str, Any]:
    """profiles row joined with roles.role_name."""
    return {
        "id": TEACHER_ID,
        "role_id": ROLE_TEACHER_ID,
        "school_id": SCHOOL_ID,
        "full_name": "Edna Krabappel",
        "email": "Teacher@X.edu",
        "phone": "555-0142",
        "current_address": "82 Evergreen Terrace",
        "dob": date(1970, 4, 2),
        "is_deleted": False,
        "created_at": datetime(2026, 8, 1, 9, 0, tzinfo=UTC),
        "updated_at": None,
        "role_name": "Teacher",
    }


@pytest.fixture
def student_row() -> dict[str, Any]:
    return {
        "id": STUDENT_ID,
        "full_name": "Lisa Simpson",
        "email": "student@x.edu",
        "phone": None,
        "school_id": SCHOOL_ID,
        "created_at": datetime(2026, 9, 1, 8, 30, tzinfo=UTC),
        "school_name": "Springfield Elementary",
    }


@pytest.fixture
def school_row() -> dict[str, Any]:
    return {
        "id": SCHOOL_ID,
        "school_name": "Springfield Elementary",
        "address": "19 Plympton St",
        "phone": "555-0100",
        "email": "office@springfield.edu",
        "created_at": datetime(2026, 1, 5, tzinfo=UTC),
    }


@pytest.fixture
def leave_row() -> dict[str, Any]:
    return {
        "id": "1ea7e000-0000-4000-8000-000000000001",
        "profile_id": TEACHER_ID,
        "school_id": SCHOOL_ID,
        "leave_type": "sl",
        "leave_date_from": date(2026, 10, 20),
        "leave_date_to": date(2026, 10, 21),
        "leave_comment": "Flu",
        "status": "pending",
        "created_time": datetime(2026, 10, 18, 7, 45, tzinfo=UTC),
        "edited_time": None,
        "full_name": "Edna Krabappel",
    }
