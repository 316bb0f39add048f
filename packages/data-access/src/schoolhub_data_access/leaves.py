"""Leave activities: apply, review, and list leave applications and holidays.

Run on LEAVE_ACCESS_QUEUE. The initial status of a new leave and the right to
review one come from the LeavePolicy, not from branches in this module.
"""

from __future__ import annotations

from datetime import UTC, datetime

from schoolhub_shared.leave_models import (
    ApplyLeaveRequest,
    ApplyLeaveResult,
    LeaveApplication,
    LeaveStatus,
    LeaveType,
    ListHolidaysRequest,
    ListHolidaysResult,
    ListLeavesRequest,
    ListLeavesResult,
    ReviewLeaveRequest,
    ReviewLeaveResult,
)
from sqlalchemy import insert, select, update
from temporalio import activity

from schoolhub_data_access.client import get_engine
from schoolhub_data_access.leave_policy import get_policy
from schoolhub_data_access.tables import leave_details, profiles


@activity.defn
async def apply_leave(request: ApplyLeaveRequest) -> ApplyLeaveResult:
    """File a leave application with the status the policy assigns to the applicant's role."""
    if not request.profile_id or not request.school_id:
        return ApplyLeaveResult(success=False, message="User profile or school ID missing.")
    if request.leave_date_to < request.leave_date_from:
        return ApplyLeaveResult(success=False, message="Leave cannot end before it starts.")

    policy = get_policy()
    if not policy.can_file(request.role, request.leave_type):
        return ApplyLeaveResult(
            success=False,
            message=f"Role '{request.role}' may not file '{request.leave_type.value}' leave.",
        )

    status = policy.initial_status(request.role)
    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                insert(leave_details)
                .values(
                    profile_id=request.profile_id,
                    school_id=request.school_id,
                    leave_type=request.leave_type.value,
                    leave_date_from=request.leave_date_from,
                    leave_date_to=request.leave_date_to,
                    leave_comment=request.leave_comment,
                    status=status.value,
                )
                .returning(leave_details.c.id)
            )
            leave_id = result.scalar()

        activity.logger.info(f"Leave {leave_id} filed by {request.profile_id} as {status.value}")
        return ApplyLeaveResult(
            success=True,
            message=f"Leave application submitted ({status.value})",
            leave_id=str(leave_id),
            status=status,
        )
    except Exception as e:
        return ApplyLeaveResult(success=False, message=f"apply_leave failed: {e}")


@activity.defn
async def review_leave(request: ReviewLeaveRequest) -> ReviewLeaveResult:
    """Approve or reject a pending leave. Already-reviewed leaves are left alone."""
    if request.status is LeaveStatus.PENDING:
        return ReviewLeaveResult(success=False, message="A review must approve or reject.")
    if not get_policy().can_review(request.reviewer_role):
        return ReviewLeaveResult(
            success=False, message=f"Role '{request.reviewer_role}' may not review leaves."
        )

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                update(leave_details)
                .where(
                    leave_details.c.id == request.leave_id,
                    leave_details.c.status == LeaveStatus.PENDING.value,
                )
                .values(status=request.status.value, edited_time=datetime.now(UTC))
                .returning(leave_details.c.id)
            )
            row = result.fetchone()

        if row is None:
            return ReviewLeaveResult(
                success=False,
                message=f"Leave {request.leave_id} not found or already reviewed",
            )
        return ReviewLeaveResult(
            success=True,
            message=f"Leave {request.status.value} successfully.",
            leave_id=request.leave_id,
            status=request.status,
        )
    except Exception as e:
        return ReviewLeaveResult(success=False, message=f"review_leave failed: {e}")


def _application(r) -> LeaveApplication:
    return LeaveApplication(
        id=str(r["id"]),
        profile_id=str(r["profile_id"]),
        school_id=str(r["school_id"]),
        leave_type=r["leave_type"],
        leave_date_from=r["leave_date_from"],
        leave_date_to=r["leave_date_to"],
        leave_comment=r.get("leave_comment"),
        status=r["status"],
        applicant_name=r.get("full_name"),
        created_time=r.get("created_time"),
        edited_time=r.get("edited_time"),
    )


@activity.defn
async def list_leaves(request: ListLeavesRequest) -> ListLeavesResult:
    """Leaves visible to the caller, newest first. Global holidays are excluded."""
    if not request.school_id:
        return ListLeavesResult(success=False, message="User profile or school ID missing.")

    if get_policy().can_review(request.role):
        scope = leave_details.c.school_id == request.school_id
    else:
        scope = leave_details.c.profile_id == request.profile_id

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                select(leave_details, profiles.c.full_name)
                .select_from(
                    leave_details.outerjoin(profiles, leave_details.c.profile_id == profiles.c.id)
                )
                .where(scope, leave_details.c.leave_type != LeaveType.GLOBAL.value)
                .order_by(leave_details.c.created_time.desc())
            )
            rows = result.mappings().fetchall()

        leaves = [_application(r) for r in rows]
        return ListLeavesResult(
            success=True, message=f"{len(leaves)} leave applications", leaves=leaves
        )
    except Exception as e:
        return ListLeavesResult(success=False, message=f"list_leaves failed: {e}")


@activity.defn
async def list_holidays(request: ListHolidaysRequest) -> ListHolidaysResult:
    """The school's holiday calendar, earliest first."""
    if not request.school_id:
        return ListHolidaysResult(success=False, message="School ID missing.")

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                select(leave_details)
                .where(
                    leave_details.c.leave_type == LeaveType.GLOBAL.value,
                    leave_details.c.school_id == request.school_id,
                )
                .order_by(leave_details.c.leave_date_from.asc())
            )
            rows = result.mappings().fetchall()

        holidays = [_application(r) for r in rows]
        return ListHolidaysResult(
            success=True, message=f"{len(holidays)} holidays", holidays=holidays
        )
    except Exception as e:
        return ListHolidaysResult(success=False, message=f"list_holidays failed: {e}")
