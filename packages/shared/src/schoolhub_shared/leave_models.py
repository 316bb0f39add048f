"""Leave boundary models: the contract for leave applications.

Status values match the CHECK constraint on leave_details.status. The
"global" leave type marks a school-wide holiday: it is read through the holiday
calendar, never through the leave lists.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel

from schoolhub_shared.auth_models import Role
from schoolhub_shared.models import PlatformResult


class LeaveStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LeaveType(StrEnum):
    LEAVE_WITHOUT_PAY = "lwp"
    SICK = "sl"
    CASUAL = "cl"
    EARNED = "el"
    GLOBAL = "global"  # school-wide holiday, admins only


class LeaveApplication(BaseModel):
    id: str
    profile_id: str
    school_id: str
    leave_type: LeaveType
    leave_date_from: date
    leave_date_to: date
    leave_comment: str | None = None
    status: LeaveStatus = LeaveStatus.PENDING
    applicant_name: str | None = None
    created_time: datetime | None = None
    edited_time: datetime | None = None


# ============================================================================
# apply_leave
# ============================================================================


class ApplyLeaveRequest(BaseModel):
    profile_id: str
    school_id: str | None
    role: Role | None
    leave_type: LeaveType
    leave_date_from: date
    leave_date_to: date
    leave_comment: str | None = None


class ApplyLeaveResult(PlatformResult):
    leave_id: str = ""
    status: LeaveStatus | None = None


# ============================================================================
# review_leave
# ============================================================================


class ReviewLeaveRequest(BaseModel):
    leave_id: str
    status: LeaveStatus
    reviewer_role: Role | None


class ReviewLeaveResult(PlatformResult):
    leave_id: str = ""
    status: LeaveStatus | None = None


# ============================================================================
# list_leaves
# ============================================================================


class ListLeavesRequest(BaseModel):
    """Reviewers see their whole school; everyone else sees their own leaves."""

    profile_id: str
    school_id: str | None
    role: Role | None


class ListLeavesResult(PlatformResult):
    leaves: list[LeaveApplication] = []


# ============================================================================
# list_holidays
# ============================================================================


class ListHolidaysRequest(BaseModel):
    school_id: str | None


class ListHolidaysResult(PlatformResult):
    """School-wide holidays in calendar order."""

    holidays: list[LeaveApplication] = []
