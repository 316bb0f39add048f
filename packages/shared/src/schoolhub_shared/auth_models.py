"""Auth domain models shared between the session layer and the workers.

AuthUser and Session describe what GoTrue hands out. Profile is the
application-side record keyed by the same user id. AuthSnapshot is the
read-only view the SessionSynchronizer exposes to the rest of the app.
"""

from __future__ import annotations

import time
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class Role(StrEnum):
    """The four application roles. Values match roles.role_name in the database."""

    SUPERADMIN = "Superadmin"
    ADMIN = "Admin"
    TEACHER = "Teacher"
    STUDENT = "Student"


class AuthUser(BaseModel):
    """Auth-provider identity (decoded JWT claims or a GoTrue /user payload)."""

    user_id: str
    email: str = ""
    role: str = "authenticated"
    exp: int | None = None

    @classmethod
    def from_gotrue(cls, payload: dict[str, Any]) -> AuthUser:
        return cls(
            user_id=payload["id"],
            email=payload.get("email") or "",
            role=payload.get("role") or "authenticated",
        )


class Session(BaseModel):
    """Token bundle issued by GoTrue, cached locally between runs."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_at: int | None = None
    user: AuthUser | None = None

    def is_expired(self, now: float | None = None, leeway: int = 10) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return self.expires_at <= current + leeway

    @classmethod
    def from_gotrue(cls, payload: dict[str, Any]) -> Session:
        """Build a Session from a GoTrue token response."""
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            expires_at = int(time.time()) + int(payload["expires_in"])
        user = payload.get("user")
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type") or "bearer",
            expires_at=expires_at,
            user=AuthUser.from_gotrue(user) if user else None,
        )


class Profile(BaseModel):
    """Application record for a person. Soft-deleted via is_deleted, never removed."""

    model_config = ConfigDict(frozen=True)

    id: str
    full_name: str
    email: str
    phone: str | None = None
    address: str | None = None
    dob: date | None = None
    role: Role | None = None
    school_id: str | None = None
    is_deleted: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Profile:
        """Build a Profile from a profiles row joined with roles.role_name."""
        role_name = row.get("role_name")
        return cls(
            id=str(row["id"]),
            full_name=row.get("full_name") or "",
            email=row.get("email") or "",
            phone=row.get("phone"),
            address=row.get("current_address"),
            dob=row.get("dob"),
            role=Role(role_name) if role_name in Role._value2member_map_ else None,
            school_id=str(row["school_id"]) if row.get("school_id") else None,
            is_deleted=bool(row.get("is_deleted") or False),
        )


class SyncPhase(StrEnum):
    """Lifecycle phase of the SessionSynchronizer."""

    UNINITIALIZED = "uninitialized"
    VALIDATING = "validating"
    PROFILE_LOADING = "profile_loading"
    READY = "ready"
    SIGNED_OUT = "signed_out"


class AuthSnapshot(BaseModel):
    """Immutable view of who is signed in and what they may see."""

    model_config = ConfigDict(frozen=True)

    user: AuthUser | None = None
    session: Session | None = None
    profile: Profile | None = None
    role: Role | None = None
    is_loading: bool = True
    phase: SyncPhase = SyncPhase.UNINITIALIZED

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None
