"""Leave status policy.

Who gets a leave approved on submission, who may review pending leaves, and
who may declare a school-wide holiday. The default auto-approves leaves filed
by Admins and Superadmins and leaves everyone else pending. That default is
inferred product intent, so deployments can override it with environment
variables instead of code changes:

    LEAVE_AUTO_APPROVE_ROLES=Admin,Superadmin
    LEAVE_REVIEWER_ROLES=Admin,Superadmin
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from schoolhub_shared.auth_models import Role
from schoolhub_shared.leave_models import LeaveStatus, LeaveType

_ADMINS = frozenset({Role.ADMIN, Role.SUPERADMIN})


@dataclass(frozen=True)
class LeavePolicy:
    auto_approve_roles: frozenset[Role] = _ADMINS
    reviewer_roles: frozenset[Role] = _ADMINS
    holiday_roles: frozenset[Role] = _ADMINS

    def initial_status(self, role: Role | None) -> LeaveStatus:
        if role in self.auto_approve_roles:
            return LeaveStatus.APPROVED
        return LeaveStatus.PENDING

    def can_review(self, role: Role | None) -> bool:
        return role in self.reviewer_roles

    def can_file(self, role: Role | None, leave_type: LeaveType) -> bool:
        if leave_type is LeaveType.GLOBAL:
            return role in self.holiday_roles
        return role is not None

    @classmethod
    def from_env(cls) -> LeavePolicy:
        default = cls()
        return cls(
            auto_approve_roles=_roles_from_env(
                "LEAVE_AUTO_APPROVE_ROLES", default.auto_approve_roles
            ),
            reviewer_roles=_roles_from_env("LEAVE_REVIEWER_ROLES", default.reviewer_roles),
            holiday_roles=_roles_from_env("LEAVE_HOLIDAY_ROLES", default.holiday_roles),
        )


def _roles_from_env(name: str, default: frozenset[Role]) -> frozenset[Role]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return frozenset(Role(part.strip()) for part in raw.split(",") if part.strip())
    except ValueError as e:
        raise ValueError(f"{name} contains an unknown role: {e}") from e


_policy: LeavePolicy | None = None


def get_policy() -> LeavePolicy:
    global _policy
    if _policy is None:
        _policy = LeavePolicy.from_env()
    return _policy


def set_policy(policy: LeavePolicy | None) -> None:
    """Inject a policy (or None to re-read the environment). Used in tests."""
    global _policy
    _policy = policy
