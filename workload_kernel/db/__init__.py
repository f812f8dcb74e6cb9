"""Database layer: engine, declarative base, numeric helpers."""

from workload_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from workload_kernel.db.engine import (
    build_engine,
    create_tables,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from workload_kernel.db.types import ZERO, round2

__all__ = [
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "build_engine",
    "create_tables",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
    "ZERO",
    "round2",
]
