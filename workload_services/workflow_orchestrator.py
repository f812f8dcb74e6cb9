"""
workload_services.workflow_orchestrator -- Multi-course workflow operations.

Responsibility:
    Applies one action to many courses of an instructor, drives the finance
    hand-off (approve the instructor's courses, then price and save the
    payment), and performs the two-step semester reset.

Architecture position:
    Services -- orchestration over TransitionService, PaymentService,
    FinanceRunService and the kernel selectors.

Invariants enforced:
    - Each course of a bulk operation runs in its own SAVEPOINT.  A failing
      course rolls back only itself; the others stay transitioned.  Every
      failure is returned with its error code, never dropped.
    - A finance approval checks the rate before any course moves.
    - Semester reset is admin-only and needs a token from preview_reset()
      bound to the term and its course count.  It appends one history row
      per course and leaves existing history and payments alone.

Failure modes:
    - ValidationError for malformed requests (unknown role/action/semester).
    - AuthorizationError when a non-admin asks for a reset.
    - RateInconsistencyError from finance_approve_instructor().
    - InvalidConfirmationTokenError / ConfirmationExpiredError on reset.
    - Per-course failures are reported in the result, not raised.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workload_engines.payment import RATE_TOLERANCE
from workload_kernel.domain.clock import Clock, SystemClock
from workload_kernel.domain.dtos import (
    BulkItemFailure,
    BulkTransitionResult,
    Course,
    FinanceApprovalResult,
    ResetPreview,
    ResetResult,
)
from workload_kernel.domain.workflow import (
    ActorRole,
    CourseStatus,
    Semester,
    WorkflowAction,
)
from workload_kernel.exceptions import AuthorizationError, CourseNotOwnedError
from workload_kernel.logging_config import LogContext, get_logger
from workload_kernel.models.course import CourseModel
from workload_kernel.selectors.course_selector import CourseSelector
from workload_kernel.services.base import coerce_enum, coerce_year
from workload_kernel.services.notification import NotificationDispatcher
from workload_kernel.services.transition_service import TransitionService
from workload_kernel.utils.confirmation import ConfirmationIssuer
from workload_services.dashboard_selector import DashboardSelector
from workload_services.finance_run_service import FinanceRunService
from workload_services.payment_service import PaymentService

logger = get_logger("services.workflow_orchestrator")

SEMESTER_RESET_OPERATION = "semester-reset"


def _failure(course_id: UUID, exc: Exception) -> BulkItemFailure:
    return BulkItemFailure(
        course_id=course_id,
        error_code=getattr(exc, "code", "UNHANDLED_EXCEPTION"),
        error_message=str(exc),
    )


class WorkflowOrchestrator:
    """Entry point for bulk transitions, finance approval and semester reset."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: NotificationDispatcher | None = None,
        confirmations: ConfirmationIssuer | None = None,
        currency: str = "ETB",
        rate_tolerance: Decimal = RATE_TOLERANCE,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._confirmations = confirmations
        self._transitions = TransitionService(session, self._clock, notifier)
        self._courses = CourseSelector(session)
        self._runs = FinanceRunService(session, self._clock, confirmations, rate_tolerance)
        self._payments = PaymentService(session, self._runs, self._clock, currency)
        self._dashboard = DashboardSelector(session)

    @property
    def finance_runs(self) -> FinanceRunService:
        return self._runs

    @property
    def payments(self) -> PaymentService:
        return self._payments

    def transition(
        self,
        course_id: UUID,
        expected_status: CourseStatus | str,
        action: WorkflowAction | str,
        actor_role: ActorRole | str,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> Course:
        return self._transitions.transition(
            course_id, expected_status, action, actor_role, actor_id, remarks,
        )

    # ------------------------------------------------------------------
    # Bulk transitions
    # ------------------------------------------------------------------

    def bulk_transition(
        self,
        instructor_id: UUID,
        course_ids: Iterable[UUID] | None,
        action: WorkflowAction | str,
        actor_role: ActorRole | str,
        actor_id: UUID,
        remarks: str | None = None,
        academic_year: str | None = None,
        semester: Semester | str | None = None,
    ) -> BulkTransitionResult:
        """
        Apply ``action`` to several of one instructor's courses.

        Each course is transitioned from its current stored status.
        ``course_ids=None`` selects every course of the instructor (in the
        term, when given) whose status ``actor_role`` owns.
        """
        action = coerce_enum(WorkflowAction, action, "action")
        role = coerce_enum(ActorRole, actor_role, "actor_role")
        if academic_year is not None:
            academic_year = coerce_year(academic_year)
        if semester is not None:
            semester = coerce_enum(Semester, semester, "semester")

        if course_ids is None:
            course_ids = [
                c.course_id
                for c in self._courses.actionable_for(
                    instructor_id, role, academic_year, semester,
                )
            ]

        succeeded: list[Course] = []
        failed: list[BulkItemFailure] = []

        with LogContext.bind(instructor_id=instructor_id, actor_id=actor_id):
            for course_id in course_ids:
                savepoint = self._session.begin_nested()
                try:
                    course = self._transitions.load_course(course_id)
                    if course.instructor_id != instructor_id:
                        raise CourseNotOwnedError(str(course_id), str(instructor_id))
                    updated = self._transitions.transition(
                        course_id, course.status, action, role, actor_id, remarks,
                    )
                    savepoint.commit()
                    succeeded.append(updated)
                except Exception as exc:
                    savepoint.rollback()
                    failed.append(_failure(course_id, exc))
                    logger.warning(
                        "bulk_item_failed",
                        extra={
                            "course_id": str(course_id),
                            "error_code": failed[-1].error_code,
                            "error": str(exc),
                        },
                    )

            result = BulkTransitionResult(
                succeeded=tuple(succeeded), failed=tuple(failed),
            )
            logger.info(
                "bulk_transition_completed",
                extra={
                    "action": action.value,
                    "actor_role": role.value,
                    "succeeded": len(succeeded),
                    "failed": len(failed),
                    "status": result.status.value,
                },
            )
        return result

    # ------------------------------------------------------------------
    # Finance hand-off
    # ------------------------------------------------------------------

    def finance_approve_instructor(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester | str,
        rate_per_load: object,
        actor_id: UUID,
        remarks: str | None = None,
    ) -> FinanceApprovalResult:
        """
        Approve every finance-stage course of the instructor and save the
        resulting payment at the run rate.

        The rate is checked before any course moves, so a mismatched rate
        leaves the courses where they were.  The payment is saved only when
        the instructor has load-bearing courses.
        """
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        self._courses.get_instructor(instructor_id)
        self._runs.ensure_rate(academic_year, semester, rate_per_load, actor_id)

        transitions = self.bulk_transition(
            instructor_id,
            None,
            WorkflowAction.APPROVE,
            ActorRole.FINANCE,
            actor_id,
            remarks=remarks,
            academic_year=academic_year,
            semester=semester,
        )

        load = self._dashboard.instructor_load(
            instructor_id, academic_year, semester,
        )
        payment = None
        if load.load_bearing_course_ids:
            payment = self._payments.save_payment(
                instructor_id, academic_year, semester, rate_per_load, actor_id,
            )
        else:
            logger.info(
                "finance_approval_without_load",
                extra={"instructor_id": str(instructor_id)},
            )
        return FinanceApprovalResult(transitions=transitions, payment=payment)

    # ------------------------------------------------------------------
    # Semester reset
    # ------------------------------------------------------------------

    def preview_reset(
        self,
        academic_year: str,
        semester: Semester | str,
        actor_role: ActorRole | str = ActorRole.ADMIN,
    ) -> ResetPreview:
        """First step of the reset: count the term's courses and issue a token."""
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        self._require_admin(actor_role, academic_year, semester)

        count = self._courses.count_for_term(academic_year, semester)
        token = self._issuer().issue(
            SEMESTER_RESET_OPERATION,
            self._reset_scope(academic_year, semester, count),
        )
        logger.info(
            "semester_reset_previewed",
            extra={
                "academic_year": academic_year,
                "semester": semester.value,
                "course_count": count,
            },
        )
        return ResetPreview(
            academic_year=academic_year,
            semester=semester,
            course_count=count,
            token=token,
        )

    def reset_semester(
        self,
        academic_year: str,
        semester: Semester | str,
        token: str,
        actor_id: UUID,
        actor_role: ActorRole | str = ActorRole.ADMIN,
    ) -> ResetResult:
        """
        Rewind every course of the term to ``unassigned``.

        ``token`` must come from preview_reset() for the same term while the
        term still has the same number of courses.
        """
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        self._require_admin(actor_role, academic_year, semester)

        courses = self._session.scalars(
            select(CourseModel)
            .where(
                CourseModel.academic_year == academic_year,
                CourseModel.semester == semester.value,
            )
            .order_by(CourseModel.code, CourseModel.id)
        ).all()
        self._issuer().verify(
            SEMESTER_RESET_OPERATION,
            self._reset_scope(academic_year, semester, len(courses)),
            token,
        )

        reset_count = 0
        failed: list[BulkItemFailure] = []
        with LogContext.bind(actor_id=actor_id):
            for course in courses:
                course_id = course.id
                savepoint = self._session.begin_nested()
                try:
                    self._transitions.reset_course(course, actor_id)
                    savepoint.commit()
                    reset_count += 1
                except Exception as exc:
                    savepoint.rollback()
                    failed.append(_failure(course_id, exc))
                    logger.warning(
                        "semester_reset_item_failed",
                        extra={"course_id": str(course_id), "error": str(exc)},
                    )

            logger.warning(
                "semester_reset_completed",
                extra={
                    "academic_year": academic_year,
                    "semester": semester.value,
                    "reset_count": reset_count,
                    "failed": len(failed),
                },
            )
        return ResetResult(
            academic_year=academic_year,
            semester=semester,
            reset_count=reset_count,
            failed=tuple(failed),
        )

    # ------------------------------------------------------------------

    def _issuer(self) -> ConfirmationIssuer:
        if self._confirmations is None:
            raise RuntimeError("WorkflowOrchestrator was built without a ConfirmationIssuer")
        return self._confirmations

    @staticmethod
    def _require_admin(
        actor_role: ActorRole | str, academic_year: str, semester: Semester,
    ) -> None:
        role = coerce_enum(ActorRole, actor_role, "actor_role")
        if role != ActorRole.ADMIN:
            raise AuthorizationError(
                "*", f"{semester.value} {academic_year}", role.value, ActorRole.ADMIN.value,
            )

    @staticmethod
    def _reset_scope(academic_year: str, semester: Semester, count: int) -> dict:
        return {
            "academic_year": academic_year,
            "semester": semester.value,
            "course_count": count,
        }
