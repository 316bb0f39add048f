"""Identity activities: account provisioning.

Run on IDENTITY_ACCESS_QUEUE. Creating an account touches two systems: the
GoTrue admin API (auth user) and the database (profile plus role row). If the
profile half fails, the freshly created auth user is deleted again so a
dangling login without a profile never survives.
"""

from __future__ import annotations

import secrets

from schoolhub_data_access.activities import register_profile
from schoolhub_shared.directory_models import (
    ProvisionAccountRequest,
    ProvisionAccountResult,
    RegisterProfileRequest,
)
from schoolhub_shared.validation import age_validation_error
from temporalio import activity

from schoolhub_auth.gotrue import GoTrueAdmin

_admin: GoTrueAdmin | None = None


def get_admin() -> GoTrueAdmin:
    """Lazily build the admin client from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY."""
    global _admin
    if _admin is None:
        _admin = GoTrueAdmin.from_env()
    return _admin


def set_admin(admin: GoTrueAdmin | None) -> None:
    """Inject (or clear) the admin client. Used in tests."""
    global _admin
    _admin = admin


@activity.defn
async def provision_account(request: ProvisionAccountRequest) -> ProvisionAccountResult:
    """Create an auth user with a role, then its profile records.

    Without a supplied password the account gets a random one nobody knows,
    and GoTrue emails the owner a recovery link to choose their own.
    """
    age_error = age_validation_error(request.dob)
    if age_error:
        return ProvisionAccountResult(success=False, message=age_error)

    admin = get_admin()
    try:
        user = await admin.create_user(
            request.email,
            request.password or secrets.token_urlsafe(24),
            user_metadata={
                "full_name": request.full_name,
                "school_id": request.school_id,
                "role": request.role.value,
            },
            app_metadata={"role": request.role.value},
        )
    except Exception as e:
        return ProvisionAccountResult(success=False, message=f"Auth user creation failed: {e}")

    registered = await register_profile(
        RegisterProfileRequest(
            user_id=user.user_id,
            email=request.email,
            full_name=request.full_name,
            role=request.role,
            school_id=request.school_id,
            phone=request.phone,
            address=request.address,
            dob=request.dob,
            class_id=request.class_id,
            subject_name=request.subject_name,
        )
    )
    if not registered.success:
        try:
            await admin.delete_user(user.user_id)
        except Exception as e:
            activity.logger.warning(f"Rollback of auth user {user.user_id} failed: {e}")
        return ProvisionAccountResult(
            success=False, message=f"Profile creation failed: {registered.message}"
        )

    activity.logger.info(f"Provisioned {request.role.value} account {user.user_id}")
    message = f"{request.role.value} account created for {request.email}"
    if request.password:
        return ProvisionAccountResult(success=True, message=message, user_id=user.user_id)

    try:
        await admin.send_password_reset(request.email, request.password_reset_redirect)
    except Exception as e:
        activity.logger.warning(f"Password reset email to {request.email} failed: {e}")
        return ProvisionAccountResult(
            success=True,
            message=f"{message}; password reset email failed: {e}",
            user_id=user.user_id,
        )
    return ProvisionAccountResult(
        success=True,
        message=f"{message}; password reset email sent",
        user_id=user.user_id,
        password_reset_sent=True,
    )
