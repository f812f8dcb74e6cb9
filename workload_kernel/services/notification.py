"""
Transition notifications.

Delivery (email in production) is an external collaborator.  The kernel
only builds a ``TransitionNotice`` after a transition has been flushed and
hands it to a ``NotificationDispatcher``.  Dispatch is fire-and-forget: a
failing dispatcher is logged at WARNING and never fails the transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from workload_kernel.domain.workflow import (
    ActorRole,
    CourseStatus,
    WorkflowAction,
)
from workload_kernel.logging_config import get_logger

logger = get_logger("services.notification")


@dataclass(frozen=True)
class TransitionNotice:
    course_id: UUID
    course_code: str
    instructor_id: UUID | None
    action: WorkflowAction
    from_status: CourseStatus
    to_status: CourseStatus
    outcome: CourseStatus
    actor_role: ActorRole
    actor_id: UUID
    occurred_at: datetime
    remarks: str | None = None


@runtime_checkable
class NotificationDispatcher(Protocol):
    def notify(self, notice: TransitionNotice) -> None: ...


class NullNotificationDispatcher:
    """Discards every notice."""

    def notify(self, notice: TransitionNotice) -> None:
        return None


class LoggingNotificationDispatcher:
    """Writes each notice to the structured log instead of sending it."""

    def notify(self, notice: TransitionNotice) -> None:
        logger.info(
            "transition_notice",
            extra={
                "course_id": str(notice.course_id),
                "course_code": notice.course_code,
                "instructor_id": str(notice.instructor_id) if notice.instructor_id else None,
                "action": notice.action.value,
                "outcome": notice.outcome.value,
                "actor_role": notice.actor_role.value,
            },
        )


class RecordingNotificationDispatcher:
    """Keeps notices in memory; used by tests and dry runs."""

    def __init__(self) -> None:
        self.notices: list[TransitionNotice] = []

    def notify(self, notice: TransitionNotice) -> None:
        self.notices.append(notice)


def dispatch(dispatcher: NotificationDispatcher | None, notice: TransitionNotice) -> bool:
    """Deliver ``notice``; returns False (after logging) if the dispatcher fails."""
    if dispatcher is None:
        return True
    try:
        dispatcher.notify(notice)
    except Exception as exc:
        logger.warning(
            "notification_failed",
            extra={
                "course_id": str(notice.course_id),
                "outcome": notice.outcome.value,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return False
    return True
