"""Directory boundary models: the contract for profile, school, and class activities.

These types cross the Temporal activity boundary. Dashboards (through a
worker client) create requests; activities in Data Access receive and return
them. Every Result extends PlatformResult, so callers check `success` instead
of catching exceptions for expected failures like an unknown role.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from schoolhub_shared.auth_models import Profile, Role
from schoolhub_shared.models import PlatformResult

# ============================================================================
# Row summaries rendered by list screens
# ============================================================================


class PersonSummary(BaseModel):
    """One row of an Admin/Teacher/Student roster."""

    id: str
    full_name: str
    email: str
    phone: str | None = None
    school_id: str | None = None
    school_name: str | None = None
    created_at: datetime | None = None


class SchoolSummary(BaseModel):
    id: str
    school_name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    created_at: datetime | None = None


class ClassSummary(BaseModel):
    id: str
    class_name: str
    academic_year: str | None = None
    school_id: str | None = None
    school_name: str | None = None
    created_at: datetime | None = None


# ============================================================================
# find_profile
# ============================================================================


class FindProfileRequest(BaseModel):
    email: str


class FindProfileResult(PlatformResult):
    profile: Profile | None = None


# ============================================================================
# list_people / list_schools / list_classes
# ============================================================================


class ListPeopleRequest(BaseModel):
    """Paginated roster of one role, filtered by a case-insensitive name search."""

    role: Role
    page: int = 1
    per_page: int = 10
    search: str = ""
    school_id: str | None = None


class ListPeopleResult(PlatformResult):
    people: list[PersonSummary] = []
    total_count: int = 0


class ListSchoolsRequest(BaseModel):
    page: int = 1
    per_page: int = 10
    search: str = ""


class ListSchoolsResult(PlatformResult):
    schools: list[SchoolSummary] = []
    total_count: int = 0


class ListClassesRequest(BaseModel):
    page: int = 1
    per_page: int = 10
    search: str = ""
    school_id: str | None = None


class ListClassesResult(PlatformResult):
    classes: list[ClassSummary] = []
    total_count: int = 0


# ============================================================================
# survey_stats
# ============================================================================


class SurveyStatsRequest(BaseModel):
    school_id: str | None = None


class SurveyStatsResult(PlatformResult):
    schools: int = 0
    students: int = 0
    teachers: int = 0
    classes: int = 0


# ============================================================================
# register_profile / retire_profile / provision_account
# ============================================================================


class RegisterProfileRequest(BaseModel):
    """Create the application-side records for an existing auth user."""

    user_id: str
    email: str
    full_name: str
    role: Role
    school_id: str | None = None
    phone: str | None = None
    address: str | None = None
    dob: date | None = None
    class_id: str | None = None  # teachers_data / students_data
    subject_name: str | None = None  # teachers_data only


class RegisterProfileResult(PlatformResult):
    profile_id: str = ""


class RetireProfileRequest(BaseModel):
    profile_id: str


class RetireProfileResult(PlatformResult):
    profile_id: str = ""


class ProvisionAccountRequest(BaseModel):
    """Create an auth user and its profile in one step (admin screens)."""

    email: str
    full_name: str
    role: Role
    password: str | None = None
    school_id: str | None = None
    phone: str | None = None
    address: str | None = None
    dob: date | None = None
    class_id: str | None = None
    subject_name: str | None = None
    password_reset_redirect: str | None = None  # only used without a password


class ProvisionAccountResult(PlatformResult):
    user_id: str = ""
    password_reset_sent: bool = False


# ============================================================================
# Schools: create_school / get_school / retire_school
# ============================================================================


class CreateSchoolRequest(BaseModel):
    school_name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None


class CreateSchoolResult(PlatformResult):
    school_id: str = ""


class GetSchoolRequest(BaseModel):
    school_id: str


class GetSchoolResult(PlatformResult):
    """A school's detail page: the school, its classes, and its staff and pupils."""

    school: SchoolSummary | None = None
    classes: list[ClassSummary] = []
    teachers: list[PersonSummary] = []
    students: list[PersonSummary] = []


class RetireSchoolRequest(BaseModel):
    school_id: str


class RetireSchoolResult(PlatformResult):
    school_id: str = ""


# ============================================================================
# Classes: create_class / assign_to_class / unassign_from_class
# ============================================================================


class CreateClassRequest(BaseModel):
    school_id: str | None
    class_name: str
    academic_year: str | None = None


class CreateClassResult(PlatformResult):
    class_id: str = ""


class ClassMembershipRequest(BaseModel):
    """Put a student or teacher into a class, or take them out again."""

    profile_id: str
    class_id: str
    role: Role


class ClassMembershipResult(PlatformResult):
    profile_id: str = ""
    class_id: str | None = None


# ============================================================================
# update_profile
# ============================================================================


class UpdateProfileRequest(BaseModel):
    """Edit contact details. Fields left as None are not touched."""

    profile_id: str
    full_name: str | None = None
    phone: str | None = None
    address: str | None = None
    subject_name: str | None = None  # teachers_data, teachers only


class UpdateProfileResult(PlatformResult):
    profile_id: str = ""
