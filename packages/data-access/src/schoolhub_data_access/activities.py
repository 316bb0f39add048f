"""Directory activities: profiles, schools, classes, and dashboard counts.

Run on DIRECTORY_ACCESS_QUEUE. Each activity builds parameterized SQL with
SQLAlchemy Core and returns a PlatformResult subclass. Expected failures
(unknown role, profile not found) come back as success=False; the session
layer's profile lookup is the one helper that raises, so its caller can tell
"no profile" from "lookup failed".

List screens share one shape: optional case-insensitive search, newest first,
1-based pages, and a total count for the pager.
"""

from __future__ import annotations

from datetime import UTC, datetime

from schoolhub_shared.auth_models import Profile, Role
from schoolhub_shared.directory_models import (
    ClassMembershipRequest,
    ClassMembershipResult,
    ClassSummary,
    CreateClassRequest,
    CreateClassResult,
    CreateSchoolRequest,
    CreateSchoolResult,
    FindProfileRequest,
    FindProfileResult,
    GetSchoolRequest,
    GetSchoolResult,
    ListClassesRequest,
    ListClassesResult,
    ListPeopleRequest,
    ListPeopleResult,
    ListSchoolsRequest,
    ListSchoolsResult,
    PersonSummary,
    RegisterProfileRequest,
    RegisterProfileResult,
    RetireProfileRequest,
    RetireProfileResult,
    RetireSchoolRequest,
    RetireSchoolResult,
    SchoolSummary,
    SurveyStatsRequest,
    SurveyStatsResult,
    UpdateProfileRequest,
    UpdateProfileResult,
)
from schoolhub_shared.models import Page
from schoolhub_shared.validation import age_validation_error
from sqlalchemy import func, insert, select, update
from temporalio import activity

from schoolhub_data_access.client import get_engine
from schoolhub_data_access.tables import (
    classes,
    profiles,
    roles,
    schools,
    students_data,
    teachers_data,
)

# ============================================================================
# Helpers
# ============================================================================


async def _resolve_role(conn, role: Role):
    """Look up a role's UUID by name. Returns the id or None."""
    result = await conn.execute(select(roles.c.id).where(roles.c.role_name == role.value))
    row = result.fetchone()
    return row[0] if row else None


async def _count(conn, table, *conditions) -> int:
    result = await conn.execute(select(func.count()).select_from(table).where(*conditions))
    return result.scalar() or 0


def _str_or_none(value) -> str | None:
    return str(value) if value is not None else None


def _person(r) -> PersonSummary:
    return PersonSummary(
        id=str(r["id"]),
        full_name=r["full_name"],
        email=r["email"],
        phone=r.get("phone"),
        school_id=_str_or_none(r.get("school_id")),
        school_name=r.get("school_name"),
        created_at=r.get("created_at"),
    )


def _class(r, school_name: str | None = None) -> ClassSummary:
    return ClassSummary(
        id=str(r["id"]),
        class_name=r["class_name"],
        academic_year=r.get("academic_year"),
        school_id=_str_or_none(r.get("school_id")),
        school_name=r.get("school_name", school_name),
        created_at=r.get("created_at"),
    )


# ============================================================================
# Profile lookup (session layer)
# ============================================================================


async def lookup_profile_by_email(email: str) -> Profile | None:
    """Fetch the live profile for an email, joined with its role name.

    Raises on database errors. Returns None when no row matches.
    """
    async with get_engine().begin() as conn:
        result = await conn.execute(
            select(profiles, roles.c.role_name)
            .select_from(profiles.outerjoin(roles, profiles.c.role_id == roles.c.id))
            .where(
                func.lower(profiles.c.email) == email.lower(),
                profiles.c.is_deleted.is_(False),
            )
        )
        row = result.mappings().fetchone()
    return Profile.from_row(dict(row)) if row else None


@activity.defn
async def find_profile(request: FindProfileRequest) -> FindProfileResult:
    """Resolve a signed-in email to its profile and role."""
    try:
        profile = await lookup_profile_by_email(request.email)
    except Exception as e:
        return FindProfileResult(success=False, message=f"find_profile failed: {e}")
    if profile is None:
        return FindProfileResult(success=True, message=f"No profile for {request.email}")
    return FindProfileResult(success=True, message="Profile found", profile=profile)


# ============================================================================
# list_people
# ============================================================================


@activity.defn
async def list_people(request: ListPeopleRequest) -> ListPeopleResult:
    """One page of a role's roster, skipping soft-deleted profiles."""
    try:
        page = Page(page=request.page, per_page=request.per_page)
        async with get_engine().begin() as conn:
            role_id = await _resolve_role(conn, request.role)
            if role_id is None:
                return ListPeopleResult(
                    success=True, message=f"Role '{request.role}' is not configured"
                )

            conditions = [profiles.c.role_id == role_id, profiles.c.is_deleted.is_(False)]
            if request.search:
                conditions.append(profiles.c.full_name.icontains(request.search, autoescape=True))
            if request.school_id:
                conditions.append(profiles.c.school_id == request.school_id)

            total = await _count(conn, profiles, *conditions)
            result = await conn.execute(
                select(
                    profiles.c.id,
                    profiles.c.full_name,
                    profiles.c.email,
                    profiles.c.phone,
                    profiles.c.school_id,
                    profiles.c.created_at,
                    schools.c.school_name,
                )
                .select_from(profiles.outerjoin(schools, profiles.c.school_id == schools.c.id))
                .where(*conditions)
                .order_by(profiles.c.created_at.desc())
                .offset(page.offset)
                .limit(page.limit)
            )
            rows = result.mappings().fetchall()

        people = [_person(r) for r in rows]
        return ListPeopleResult(
            success=True,
            message=f"{len(people)} of {total} {request.role.value.lower()}s",
            people=people,
            total_count=total,
        )
    except Exception as e:
        return ListPeopleResult(success=False, message=f"list_people failed: {e}")


# ============================================================================
# list_schools / list_classes
# ============================================================================


@activity.defn
async def list_schools(request: ListSchoolsRequest) -> ListSchoolsResult:
    try:
        page = Page(page=request.page, per_page=request.per_page)
        conditions = [schools.c.is_deleted.is_(False)]
        if request.search:
            conditions.append(schools.c.school_name.icontains(request.search, autoescape=True))

        async with get_engine().begin() as conn:
            total = await _count(conn, schools, *conditions)
            result = await conn.execute(
                select(schools)
                .where(*conditions)
                .order_by(schools.c.created_at.desc())
                .offset(page.offset)
                .limit(page.limit)
            )
            rows = result.mappings().fetchall()

        return ListSchoolsResult(
            success=True,
            message=f"{len(rows)} of {total} schools",
            schools=[
                SchoolSummary(**{**dict(r), "id": str(r["id"])}) for r in rows
            ],
            total_count=total,
        )
    except Exception as e:
        return ListSchoolsResult(success=False, message=f"list_schools failed: {e}")


@activity.defn
async def list_classes(request: ListClassesRequest) -> ListClassesResult:
    try:
        page = Page(page=request.page, per_page=request.per_page)
        conditions = []
        if request.search:
            conditions.append(classes.c.class_name.icontains(request.search, autoescape=True))
        if request.school_id:
            conditions.append(classes.c.school_id == request.school_id)

        async with get_engine().begin() as conn:
            total = await _count(conn, classes, *conditions)
            result = await conn.execute(
                select(
                    classes.c.id,
                    classes.c.class_name,
                    classes.c.academic_year,
                    classes.c.school_id,
                    classes.c.created_at,
                    schools.c.school_name,
                )
                .select_from(classes.outerjoin(schools, classes.c.school_id == schools.c.id))
                .where(*conditions)
                .order_by(classes.c.created_at.desc())
                .offset(page.offset)
                .limit(page.limit)
            )
            rows = result.mappings().fetchall()

        return ListClassesResult(
            success=True,
            message=f"{len(rows)} of {total} classes",
            classes=[_class(r) for r in rows],
            total_count=total,
        )
    except Exception as e:
        return ListClassesResult(success=False, message=f"list_classes failed: {e}")


# ============================================================================
# survey_stats
# ============================================================================


@activity.defn
async def survey_stats(request: SurveyStatsRequest) -> SurveyStatsResult:
    """Headline counts for a dashboard, optionally scoped to one school."""
    try:
        async with get_engine().begin() as conn:
            student_role = await _resolve_role(conn, Role.STUDENT)
            teacher_role = await _resolve_role(conn, Role.TEACHER)

            school_scope = [schools.c.is_deleted.is_(False)]
            class_scope = []
            if request.school_id:
                school_scope.append(schools.c.id == request.school_id)
                class_scope.append(classes.c.school_id == request.school_id)

            def people_of(role_id):
                conditions = [profiles.c.role_id == role_id, profiles.c.is_deleted.is_(False)]
                if request.school_id:
                    conditions.append(profiles.c.school_id == request.school_id)
                return conditions

            school_count = await _count(conn, schools, *school_scope)
            students = await _count(conn, profiles, *people_of(student_role)) if student_role else 0
            teachers = await _count(conn, profiles, *people_of(teacher_role)) if teacher_role else 0
            class_count = await _count(conn, classes, *class_scope)

        return SurveyStatsResult(
            success=True,
            message="Stats collected",
            schools=school_count,
            students=students,
            teachers=teachers,
            classes=class_count,
        )
    except Exception as e:
        return SurveyStatsResult(success=False, message=f"survey_stats failed: {e}")


# ============================================================================
# register_profile / retire_profile
# ============================================================================


@activity.defn
async def register_profile(request: RegisterProfileRequest) -> RegisterProfileResult:
    """Insert the profile plus its role-specific row in one transaction."""
    age_error = age_validation_error(request.dob)
    if age_error:
        return RegisterProfileResult(success=False, message=age_error)

    try:
        async with get_engine().begin() as conn:
            role_id = await _resolve_role(conn, request.role)
            if role_id is None:
                return RegisterProfileResult(
                    success=False, message=f"Invalid role: {request.role}"
                )

            await conn.execute(
                insert(profiles).values(
                    id=request.user_id,
                    role_id=role_id,
                    school_id=request.school_id,
                    full_name=request.full_name,
                    email=request.email,
                    phone=request.phone,
                    current_address=request.address,
                    dob=request.dob,
                )
            )

            if request.role is Role.TEACHER:
                await conn.execute(
                    insert(teachers_data).values(
                        id=request.user_id,
                        class_id=request.class_id,
                        subject_name=request.subject_name,
                    )
                )
            elif request.role is Role.STUDENT:
                await conn.execute(
                    insert(students_data).values(id=request.user_id, class_id=request.class_id)
                )

        activity.logger.info(f"Registered {request.role.value} profile {request.user_id}")
        return RegisterProfileResult(
            success=True,
            message=f"{request.role.value} profile created for {request.email}",
            profile_id=request.user_id,
        )
    except Exception as e:
        return RegisterProfileResult(success=False, message=f"register_profile failed: {e}")


@activity.defn
async def retire_profile(request: RetireProfileRequest) -> RetireProfileResult:
    """Soft-delete a profile. The row and its history stay in place."""
    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                update(profiles)
                .where(profiles.c.id == request.profile_id, profiles.c.is_deleted.is_(False))
                .values(is_deleted=True, updated_at=datetime.now(UTC))
            )
        if not result.rowcount:
            return RetireProfileResult(
                success=False, message=f"Profile not found: {request.profile_id}"
            )
        return RetireProfileResult(
            success=True, message="Profile retired", profile_id=request.profile_id
        )
    except Exception as e:
        return RetireProfileResult(success=False, message=f"retire_profile failed: {e}")


# ============================================================================
# Schools: create_school / get_school / retire_school
# ============================================================================


@activity.defn
async def create_school(request: CreateSchoolRequest) -> CreateSchoolResult:
    name = request.school_name.strip()
    if not name:
        return CreateSchoolResult(success=False, message="School name is required.")

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                insert(schools)
                .values(
                    school_name=name,
                    address=request.address,
                    phone=request.phone,
                    email=request.email,
                )
                .returning(schools.c.id)
            )
            school_id = result.scalar()

        activity.logger.info(f"Created school {school_id} ({name})")
        return CreateSchoolResult(
            success=True, message=f"School '{name}' created", school_id=str(school_id)
        )
    except Exception as e:
        return CreateSchoolResult(success=False, message=f"create_school failed: {e}")


@activity.defn
async def get_school(request: GetSchoolRequest) -> GetSchoolResult:
    """A live school with its classes, teachers and students, each sorted by name."""
    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                select(schools).where(
                    schools.c.id == request.school_id, schools.c.is_deleted.is_(False)
                )
            )
            school_row = result.mappings().fetchone()
            if school_row is None:
                return GetSchoolResult(
                    success=False, message=f"School not found: {request.school_id}"
                )

            result = await conn.execute(
                select(classes)
                .where(classes.c.school_id == request.school_id)
                .order_by(classes.c.class_name)
            )
            class_rows = result.mappings().fetchall()

            members = {}
            for role in (Role.TEACHER, Role.STUDENT):
                role_id = await _resolve_role(conn, role)
                if role_id is None:
                    members[role] = []
                    continue
                result = await conn.execute(
                    select(profiles)
                    .where(
                        profiles.c.school_id == request.school_id,
                        profiles.c.role_id == role_id,
                        profiles.c.is_deleted.is_(False),
                    )
                    .order_by(profiles.c.full_name)
                )
                members[role] = result.mappings().fetchall()

        school = SchoolSummary(**{**dict(school_row), "id": str(school_row["id"])})
        return GetSchoolResult(
            success=True,
            message=f"School {school.school_name}",
            school=school,
            classes=[_class(r, school.school_name) for r in class_rows],
            teachers=[_person(r) for r in members[Role.TEACHER]],
            students=[_person(r) for r in members[Role.STUDENT]],
        )
    except Exception as e:
        return GetSchoolResult(success=False, message=f"get_school failed: {e}")


@activity.defn
async def retire_school(request: RetireSchoolRequest) -> RetireSchoolResult:
    """Soft-delete a school. Its classes, people and leave history are kept."""
    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                update(schools)
                .where(schools.c.id == request.school_id, schools.c.is_deleted.is_(False))
                .values(is_deleted=True)
                .returning(schools.c.id)
            )
            row = result.fetchone()

        if row is None:
            return RetireSchoolResult(
                success=False, message=f"School not found: {request.school_id}"
            )
        activity.logger.info(f"Retired school {request.school_id}")
        return RetireSchoolResult(
            success=True, message="School retired", school_id=request.school_id
        )
    except Exception as e:
        return RetireSchoolResult(success=False, message=f"retire_school failed: {e}")


# ============================================================================
# Classes: create_class / assign_to_class / unassign_from_class
# ============================================================================

# Which table records a member's class, per role.
_MEMBERSHIP_TABLES = {Role.STUDENT: students_data, Role.TEACHER: teachers_data}


@activity.defn
async def create_class(request: CreateClassRequest) -> CreateClassResult:
    if not request.school_id:
        return CreateClassResult(success=False, message="Please select a school")
    name = request.class_name.strip()
    if not name:
        return CreateClassResult(success=False, message="Class name is required.")

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                insert(classes)
                .values(
                    school_id=request.school_id,
                    class_name=name,
                    academic_year=request.academic_year,
                )
                .returning(classes.c.id)
            )
            class_id = result.scalar()

        return CreateClassResult(
            success=True, message="Class created successfully!", class_id=str(class_id)
        )
    except Exception as e:
        return CreateClassResult(success=False, message=f"create_class failed: {e}")


@activity.defn
async def assign_to_class(request: ClassMembershipRequest) -> ClassMembershipResult:
    """Move a student or teacher into a class, replacing any previous class."""
    table = _MEMBERSHIP_TABLES.get(request.role)
    if table is None:
        return ClassMembershipResult(
            success=False, message=f"Role '{request.role}' cannot belong to a class."
        )

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                update(table)
                .where(table.c.id == request.profile_id)
                .values(class_id=request.class_id)
                .returning(table.c.id)
            )
            row = result.fetchone()

        if row is None:
            return ClassMembershipResult(
                success=False,
                message=f"No {request.role.value.lower()} record for {request.profile_id}",
            )
        return ClassMembershipResult(
            success=True,
            message=f"{request.role.value} added to class",
            profile_id=request.profile_id,
            class_id=request.class_id,
        )
    except Exception as e:
        return ClassMembershipResult(success=False, message=f"assign_to_class failed: {e}")


@activity.defn
async def unassign_from_class(request: ClassMembershipRequest) -> ClassMembershipResult:
    """Take a member out of a class. A member of some other class is left alone."""
    table = _MEMBERSHIP_TABLES.get(request.role)
    if table is None:
        return ClassMembershipResult(
            success=False, message=f"Role '{request.role}' cannot belong to a class."
        )

    try:
        async with get_engine().begin() as conn:
            result = await conn.execute(
                update(table)
                .where(table.c.id == request.profile_id, table.c.class_id == request.class_id)
                .values(class_id=None)
                .returning(table.c.id)
            )
            row = result.fetchone()

        if row is None:
            return ClassMembershipResult(
                success=False,
                message=f"{request.profile_id} is not in class {request.class_id}",
            )
        return ClassMembershipResult(
            success=True,
            message=f"{request.role.value} removed",
            profile_id=request.profile_id,
            class_id=None,
        )
    except Exception as e:
        return ClassMembershipResult(success=False, message=f"unassign_from_class failed: {e}")


# ============================================================================
# update_profile
# ============================================================================


@activity.defn
async def update_profile(request: UpdateProfileRequest) -> UpdateProfileResult:
    """Edit a live profile's contact details and, for teachers, their subject.

    Both updates share one transaction: a missing teacher record rolls back
    the profile change too.
    """
    changes = {
        column: value
        for column, value in (
            ("full_name", request.full_name),
            ("phone", request.phone),
            ("current_address", request.address),
        )
        if value is not None
    }
    if not changes and request.subject_name is None:
        return UpdateProfileResult(success=False, message="Nothing to update.")
    if "full_name" in changes and not changes["full_name"].strip():
        return UpdateProfileResult(success=False, message="Full name cannot be empty.")

    try:
        async with get_engine().begin() as conn:
            if changes:
                result = await conn.execute(
                    update(profiles)
                    .where(profiles.c.id == request.profile_id, profiles.c.is_deleted.is_(False))
                    .values(**changes, updated_at=datetime.now(UTC))
                    .returning(profiles.c.id)
                )
                if result.fetchone() is None:
                    raise LookupError(f"Profile not found: {request.profile_id}")

            if request.subject_name is not None:
                result = await conn.execute(
                    update(teachers_data)
                    .where(teachers_data.c.id == request.profile_id)
                    .values(subject_name=request.subject_name)
                    .returning(teachers_data.c.id)
                )
                if result.fetchone() is None:
                    raise LookupError(f"No teacher record for {request.profile_id}")
    except LookupError as e:
        return UpdateProfileResult(success=False, message=str(e))
    except Exception as e:
        return UpdateProfileResult(success=False, message=f"update_profile failed: {e}")

    return UpdateProfileResult(
        success=True, message="Profile updated", profile_id=request.profile_id
    )
