"""Pydantic base models shared across components.

These are the contract types that flow between workers, activities, and the
session layer. Pydantic validates at every component boundary, so a malformed
request fails fast with a clear error instead of reaching the database.
"""

from pydantic import BaseModel, Field


class PlatformResult(BaseModel):
    """Standard result envelope returned by activities.

    Expected business failures (unknown role, missing school, leave already
    reviewed) come back as success=False with a message. Only infrastructure
    failures propagate as exceptions.
    """

    success: bool
    message: str
    data: dict[str, str | int | float | bool | None] | None = None


class Page(BaseModel):
    """1-based pagination window, translated to OFFSET/LIMIT."""

    page: int = Field(1, ge=1)
    per_page: int = Field(10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def limit(self) -> int:
        return self.per_page
