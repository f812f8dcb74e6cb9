"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  Services receive a SQLAlchemy
    ``Session`` and an injected ``Clock``; they persist with
    ``session.flush()`` and never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope()``, the orchestrator, or the test harness) owns
      commit/rollback.
    - Time is read only from the injected Clock.

Failure modes:
    - A subclass that calls ``session.commit()`` breaks the per-item
      SAVEPOINT isolation that bulk operations rely on.
"""

from abc import ABC
from enum import Enum
from typing import TypeVar

from sqlalchemy.orm import Session

from workload_kernel.domain.clock import Clock, SystemClock
from workload_kernel.exceptions import ValidationError

EnumType = TypeVar("EnumType", bound=Enum)


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read methods -- those belong in
          ``workload_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()


def coerce_enum(enum_cls: type[EnumType], value: object, field: str) -> EnumType:
    """Accept an enum member or its value; anything else is a ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            field, value, f"must be one of {[m.value for m in enum_cls]}",
        ) from None


def coerce_year(value: object) -> str:
    """Academic years are stored as text ("2024", "2024/25")."""
    if value is None or isinstance(value, bool) or not str(value).strip():
        raise ValidationError("academic_year", value, "must not be blank")
    return str(value).strip()
