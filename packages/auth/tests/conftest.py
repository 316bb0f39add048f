"""Test fixtures for the session layer.

FakeAuthProvider mirrors the AuthProvider protocol over a real
AuthEventChannel, so tests publish events exactly the way GoTrueAuthProvider
does. FakeProfileLookup can hold a lookup open on an asyncio.Event, which is
how the race tests park a lookup "in flight" while events arrive.

Fixtures provide a small school: one teacher and one student profile.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import pytest
from schoolhub_auth.events import AuthEventChannel, SignedOut, Subscription
from schoolhub_shared.auth_models import AuthUser, Profile, Role, Session

TEACHER_ID = "0b7c1f7e-2f4a-4c43-9d2e-1a1f8f2b7a01"
STUDENT_ID = "5d0e2c1a-8b9f-4e77-b3c4-6f2d9e0a1b02"
TEACHER_EMAIL = "teacher@x.edu"
STUDENT_EMAIL = "student@x.edu"
SCHOOL_ID = "9a8b7c6d-0000-4111-8222-333344445555"


def make_user(user_id: str, email: str) -> AuthUser:
    return AuthUser(user_id=user_id, email=email)


def make_session(user: AuthUser | None, token: str = "access-1") -> Session:
    return Session(
        access_token=token,
        refresh_token=f"refresh-for-{token}",
        expires_at=int(time.time()) + 3600,
        user=user,
    )


class FakeAuthProvider:
    """In-memory auth source. sign_out() publishes SignedOut like the real one."""

    def __init__(
        self,
        session: Session | None = None,
        user: AuthUser | None = None,
        user_error: Exception | None = None,
    ) -> None:
        self.channel = AuthEventChannel()
        self.session = session
        self.user = user
        self.user_error = user_error
        self.sign_out_error: Exception | None = None
        self.sign_out_calls: list[str] = []
        self.get_user_calls = 0

    async def get_session(self) -> Session | None:
        return self.session

    async def get_user(self, session: Session) -> AuthUser:
        self.get_user_calls += 1
        if self.user_error is not None:
            raise self.user_error
        assert self.user is not None
        return self.user

    async def sign_out(self, scope: str = "global") -> None:
        self.sign_out_calls.append(scope)
        self.session = None
        self.channel.publish(SignedOut())
        if self.sign_out_error is not None:
            raise self.sign_out_error

    def subscribe(self) -> Subscription:
        return self.channel.subscribe()


class FakeProfileLookup:
    """Profile lookup by email with optional per-email gates and a forced error."""

    def __init__(self, profiles: dict[str, Profile]) -> None:
        self.profiles = profiles
        self.calls: list[str] = []
        self.error: Exception | None = None
        self._gates: dict[str, asyncio.Event] = {}

    def hold(self, email: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[email] = gate
        return gate

    async def __call__(self, email: str) -> Profile | None:
        self.calls.append(email)
        gate = self._gates.get(email)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.profiles.get(email)


class RedirectRecorder:
    def __init__(self) -> None:
        self.paths: list[str] = []

    async def __call__(self, path: str) -> None:
        self.paths.append(path)


async def drain(rounds: int = 20) -> None:
    """Give queued tasks (event consumer, background lookups) a chance to run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_until(condition: Callable[[], bool], rounds: int = 200) -> None:
    for _ in range(rounds):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def teacher_user() -> AuthUser:
    return make_user(TEACHER_ID, TEACHER_EMAIL)


@pytest.fixture
def student_user() -> AuthUser:
    return make_user(STUDENT_ID, STUDENT_EMAIL)


@pytest.fixture
def teacher_profile() -> Profile:
    return Profile(
        id=TEACHER_ID,
        full_name="Edna Krabappel",
        email=TEACHER_EMAIL,
        phone="555-0142",
        role=Role.TEACHER,
        school_id=SCHOOL_ID,
    )


@pytest.fixture
def student_profile() -> Profile:
    return Profile(
        id=STUDENT_ID,
        full_name="Lisa Simpson",
        email=STUDENT_EMAIL,
        role=Role.STUDENT,
        school_id=SCHOOL_ID,
    )


@pytest.fixture
def lookup(teacher_profile: Profile, student_profile: Profile) -> FakeProfileLookup:
    return FakeProfileLookup({TEACHER_EMAIL: teacher_profile, STUDENT_EMAIL: student_profile})


@pytest.fixture
def redirect() -> RedirectRecorder:
    return RedirectRecorder()


# Helpers exposed as fixtures so test modules never import conftest directly.


@pytest.fixture
def provider_factory() -> type[FakeAuthProvider]:
    return FakeAuthProvider


@pytest.fixture
def session_for() -> Callable[..., Session]:
    return make_session


@pytest.fixture
def settle() -> Callable[..., object]:
    return drain


@pytest.fixture
def until() -> Callable[..., object]:
    return wait_until
