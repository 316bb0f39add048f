"""Role-scoped dashboard navigation.

Which sections a role may open. The same table drives menu rendering and
route guards, so a section hidden from the menu is also refused on direct
navigation.
"""

from __future__ import annotations

from dataclasses import dataclass

from schoolhub_shared.auth_models import Role

_EVERYONE = frozenset(Role)


@dataclass(frozen=True)
class Section:
    name: str
    path: str
    roles: frozenset[Role]


SECTIONS: tuple[Section, ...] = (
    Section("Dashboard", "/dashboard", _EVERYONE),
    Section("Schools", "/dashboard/schools", frozenset({Role.SUPERADMIN})),
    Section("Admins", "/dashboard/admins", frozenset({Role.SUPERADMIN})),
    Section(
        "Classes",
        "/dashboard/classes",
        frozenset({Role.SUPERADMIN, Role.ADMIN, Role.TEACHER}),
    ),
    Section("Teachers", "/dashboard/teachers", frozenset({Role.SUPERADMIN, Role.ADMIN})),
    Section(
        "Students",
        "/dashboard/students",
        frozenset({Role.SUPERADMIN, Role.ADMIN, Role.TEACHER}),
    ),
    Section("Leaves", "/dashboard/leaves", _EVERYONE),
)


def visible_sections(role: Role | None) -> list[Section]:
    """Sections shown to a role, in menu order. No role sees nothing."""
    if role is None:
        return []
    return [section for section in SECTIONS if role in section.roles]


def section_for(path: str) -> Section | None:
    """The most specific section containing path."""
    matches = [s for s in SECTIONS if path == s.path or path.startswith(s.path + "/")]
    return max(matches, key=lambda s: len(s.path), default=None)


def can_open(role: Role | None, path: str) -> bool:
    section = section_for(path)
    return role is not None and section is not None and role in section.roles
