"""Database infrastructure: declarative base, engine, sessions."""

from payroll_kernel.db.base import Base, TrackedBase, UUIDString

__all__ = ["Base", "TrackedBase", "UUIDString"]
