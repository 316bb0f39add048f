"""Shared infrastructure for the SchoolHub platform.

Provides the Temporal client connection factory, task queue constants,
field validation helpers, and the Pydantic contract models used across
auth, data access, and the workers.
"""
