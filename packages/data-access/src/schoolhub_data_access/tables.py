"""SQLAlchemy Core table definitions: Python-side mirror of the Supabase schema.

Typed column references for the query builder, not an ORM. Row-level security
policies live in the database; these definitions only name what exists.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    MetaData,
    Table,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

# ============================================================================
# Tenancy and roles
# ============================================================================

roles = Table(
    "roles",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("role_name", Text, unique=True, nullable=False),
)

schools = Table(
    "schools",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("school_name", Text, nullable=False),
    Column("address", Text),
    Column("phone", Text),
    Column("email", Text),
    Column("is_deleted", Boolean, server_default="false", nullable=False),
    Column("created_at", DateTime(timezone=True), server_default="now()"),
)

classes = Table(
    "classes",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("class_name", Text, nullable=False),
    Column("school_id", UUID, ForeignKey("schools.id")),
    Column("academic_year", Text),  # e.g. "2026-2027"
    Column("created_at", DateTime(timezone=True), server_default="now()"),
)

# ============================================================================
# People
# ============================================================================

# id is the auth user id; profiles are matched to sessions by email.
profiles = Table(
    "profiles",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("role_id", UUID, ForeignKey("roles.id"), nullable=False),
    Column("school_id", UUID, ForeignKey("schools.id")),
    Column("full_name", Text, nullable=False),
    Column("email", Text, unique=True, nullable=False),
    Column("phone", Text),
    Column("current_address", Text),
    Column("dob", Date),
    Column("is_deleted", Boolean, server_default="false", nullable=False),
    Column("created_at", DateTime(timezone=True), server_default="now()"),
    Column("updated_at", DateTime(timezone=True), server_default="now()"),
)

teachers_data = Table(
    "teachers_data",
    metadata,
    Column("id", UUID, ForeignKey("profiles.id"), primary_key=True),
    Column("class_id", UUID, ForeignKey("classes.id")),
    Column("subject_name", Text),
)

students_data = Table(
    "students_data",
    metadata,
    Column("id", UUID, ForeignKey("profiles.id"), primary_key=True),
    Column("class_id", UUID, ForeignKey("classes.id")),
)

# ============================================================================
# Leave
# ============================================================================

leave_details = Table(
    "leave_details",
    metadata,
    Column("id", UUID, primary_key=True, server_default="gen_random_uuid()"),
    Column("profile_id", UUID, ForeignKey("profiles.id"), nullable=False),
    Column("school_id", UUID, ForeignKey("schools.id"), nullable=False),
    Column("leave_type", Text, nullable=False),
    Column("leave_date_from", Date, nullable=False),
    Column("leave_date_to", Date, nullable=False),
    Column("leave_comment", Text),
    Column("status", Text, nullable=False, server_default="pending"),
    Column("created_time", DateTime(timezone=True), server_default="now()"),
    Column("edited_time", DateTime(timezone=True), server_default="now()"),
    CheckConstraint("status in ('pending', 'approved', 'rejected')", name="leave_status_check"),
)
