"""
workload_kernel.services.transition_service -- Single-course transitions.

Responsibility:
    Applies one workflow action to one course: optimistic status check,
    edge lookup in the transition table, history append, flush, and
    fire-and-forget notification.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - The caller names the status it believes the course is in; if the
      stored status differs the request fails with StaleStatusError and
      nothing changes.
    - Only edges of the transition table are ever applied; role and
      remark rules come from the same table.
    - Every stored status change appends exactly one ApprovalHistoryModel
      row.  Existing rows are never touched.
    - A lost version race (two sessions flushing the same course) surfaces
      as OptimisticLockError.
    - Notification failure never fails the transition.

Failure modes:
    - CourseNotFoundError, StaleStatusError, AuthorizationError,
      IllegalTransitionError, ValidationError, OptimisticLockError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from workload_kernel.domain.clock import Clock
from workload_kernel.domain.dtos import Course
from workload_kernel.domain.workflow import (
    ActorRole,
    CourseStatus,
    Transition,
    WorkflowAction,
    resolve,
)
from workload_kernel.exceptions import (
    CourseNotFoundError,
    OptimisticLockError,
    StaleStatusError,
    ValidationError,
)
from workload_kernel.logging_config import LogContext, get_logger
from workload_kernel.models.course import ApprovalHistoryModel, CourseModel
from workload_kernel.services.base import BaseService, coerce_enum
from workload_kernel.services.notification import (
    NotificationDispatcher,
    TransitionNotice,
    dispatch,
)

logger = get_logger("services.transition")

SEMESTER_RESET_REMARK = "semester-reset"


class TransitionService(BaseService):
    """Moves courses along the approval chain."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: NotificationDispatcher | None = None,
    ):
        super().__init__(session, clock)
        self._notifier = notifier

    def transition(
        self,
        course_id: UUID,
        expected_status: CourseStatus | str,
        action: WorkflowAction | str,
        actor_role: ActorRole | str,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> Course:
        """
        Apply ``action`` to a course currently in ``expected_status``.

        Returns the updated Course DTO.  The change is flushed, not
        committed.
        """
        expected = coerce_enum(CourseStatus, expected_status, "expected_status")
        action = coerce_enum(WorkflowAction, action, "action")
        role = coerce_enum(ActorRole, actor_role, "actor_role")

        with LogContext.bind(course_id=course_id, actor_id=actor_id):
            course = self.load_course(course_id)
            current = CourseStatus(course.status)
            if current != expected:
                logger.info(
                    "transition_stale_status",
                    extra={"expected": expected.value, "actual": current.value},
                )
                raise StaleStatusError(str(course_id), expected.value, current.value)

            edge = resolve(current, action, role, str(course_id))
            remarks = self._check_preconditions(course, edge, remarks)

            self._apply(course, edge, actor_id, remarks)
            self._flush(course)

            logger.info(
                "course_transitioned",
                extra={
                    "action": action.value,
                    "from_status": current.value,
                    "to_status": edge.to_state.value,
                    "outcome": edge.outcome.value,
                    "actor_role": role.value,
                },
            )
            self._notify(course, edge.action, current, edge.outcome, role, actor_id, remarks)
            return course.to_dto()

    def reset_course(
        self,
        course: CourseModel,
        actor_id: UUID,
        remarks: str = SEMESTER_RESET_REMARK,
    ) -> CourseModel:
        """
        Rewind ``course`` to ``unassigned`` outside the transition table.

        Used only by the semester reset.  Appends one history row and leaves
        prior rows alone.
        """
        previous = CourseStatus(course.status)
        course.status = CourseStatus.UNASSIGNED.value
        course.history.append(
            ApprovalHistoryModel(
                sequence=course.next_sequence,
                role=ActorRole.ADMIN.value,
                action=WorkflowAction.RESET.value,
                from_status=previous.value,
                to_status=CourseStatus.UNASSIGNED.value,
                outcome=CourseStatus.UNASSIGNED.value,
                actor_id=actor_id,
                remarks=remarks,
                created_at=self.clock.now(),
            )
        )
        self._flush(course)
        self._notify(
            course, WorkflowAction.RESET, previous, CourseStatus.UNASSIGNED,
            ActorRole.ADMIN, actor_id, remarks,
        )
        return course

    def load_course(self, course_id: UUID) -> CourseModel:
        course = self.session.get(CourseModel, course_id)
        if course is None:
            raise CourseNotFoundError(str(course_id))
        return course

    # ------------------------------------------------------------------

    def _check_preconditions(
        self,
        course: CourseModel,
        edge: Transition,
        remarks: str | None,
    ) -> str | None:
        remarks = remarks.strip() if remarks else None
        if edge.requires_remarks and not remarks:
            raise ValidationError("remarks", remarks, "a rejection requires remarks")
        if edge.from_state == CourseStatus.UNASSIGNED and course.instructor_id is None:
            raise ValidationError(
                "instructor_id", None, "course has no assigned instructor",
            )
        return remarks

    def _apply(
        self,
        course: CourseModel,
        edge: Transition,
        actor_id: UUID,
        remarks: str | None,
    ) -> None:
        course.status = edge.to_state.value
        course.history.append(
            ApprovalHistoryModel(
                sequence=course.next_sequence,
                role=edge.role.value,
                action=edge.action.value,
                from_status=edge.from_state.value,
                to_status=edge.to_state.value,
                outcome=edge.outcome.value,
                actor_id=actor_id,
                remarks=remarks,
                created_at=self.clock.now(),
            )
        )

    def _flush(self, course: CourseModel) -> None:
        try:
            self.session.flush()
        except StaleDataError:
            logger.warning("course_version_conflict", extra={"course_id": str(course.id)})
            raise OptimisticLockError("Course", str(course.id)) from None

    def _notify(
        self,
        course: CourseModel,
        action: WorkflowAction,
        previous: CourseStatus,
        outcome: CourseStatus,
        role: ActorRole,
        actor_id: UUID,
        remarks: str | None,
    ) -> None:
        dispatch(
            self._notifier,
            TransitionNotice(
                course_id=course.id,
                course_code=course.code,
                instructor_id=course.instructor_id,
                action=action,
                from_status=previous,
                to_status=CourseStatus(course.status),
                outcome=outcome,
                actor_role=role,
                actor_id=actor_id,
                occurred_at=self.clock.now(),
                remarks=remarks,
            ),
        )
