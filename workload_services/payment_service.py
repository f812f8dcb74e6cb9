"""
workload_services.payment_service -- Overload payments.

Responsibility:
    Quotes, saves and disburses formula payments for (instructor, academic
    year, semester), and records itemized manual payments for single
    courses.

Architecture position:
    Services -- composes the Payment Engine, FinanceRunService and
    DashboardSelector over kernel models.

Invariants enforced:
    - Every formula calculation or save goes through the term's rate
      context first (RateInconsistencyError on a mismatched rate).
    - Saving is an idempotent upsert per (instructor, year, semester).  The
      amount is always recomputed from the load and the rate; a stored
      amount is never reused.
    - The load is recomputed from the stored courses on save.  A load
      supplied by the caller that disagrees is logged and replaced.
    - A zero payment for an instructor who still has courses in the
      approval chain is saved with ``incomplete_load`` set and logged.
    - Saving an unchanged payment appends no history row.
    - A paid payment is final (PaymentFinalizedError).
    - Manual payments: total is the literal sum of the entered components
      and the rate context does not apply.

Failure modes:
    - ValidationError, InstructorNotFoundError, CourseNotFoundError,
      PaymentNotFoundError, RateInconsistencyError, PaymentFinalizedError.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from workload_engines.load import compute_overload
from workload_engines.payment import (
    formula_components,
    manual_components,
    validate_rate,
    validate_total_load,
)
from workload_kernel.db.types import round2
from workload_kernel.domain.clock import Clock
from workload_kernel.domain.dtos import (
    CoursePayment,
    Payment,
    PaymentQuote,
    PaymentStatus,
)
from workload_kernel.domain.workflow import Semester, completed_stages
from workload_kernel.exceptions import (
    CourseNotFoundError,
    PaymentFinalizedError,
    PaymentNotFoundError,
    ValidationError,
)
from workload_kernel.logging_config import LogContext, get_logger
from workload_kernel.models.course import CourseModel
from workload_kernel.models.payment import (
    CoursePaymentModel,
    PaymentHistoryModel,
    PaymentModel,
)
from workload_kernel.selectors.course_selector import CourseSelector
from workload_kernel.services.base import BaseService, coerce_enum, coerce_year
from workload_services.dashboard_selector import (
    LOAD_BEARING_STAGES,
    DashboardSelector,
    InstructorLoad,
)
from workload_services.finance_run_service import FinanceRunService

logger = get_logger("services.payment")

DEFAULT_CURRENCY = "ETB"


def new_tx_ref(instructor_id: UUID) -> str:
    return f"PAY-{str(instructor_id)[:8]}-{uuid4().hex[:12].upper()}"


class PaymentService(BaseService):
    """Formula and manual payments for instructors."""

    def __init__(
        self,
        session: Session,
        finance_runs: FinanceRunService,
        clock: Clock | None = None,
        currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session, clock)
        self._runs = finance_runs
        self._dashboard = DashboardSelector(session)
        self._courses = CourseSelector(session)
        self._currency = currency

    # ------------------------------------------------------------------
    # Formula path
    # ------------------------------------------------------------------

    def calculate_payment(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester | str,
        rate_per_load: object,
        actor_id: UUID,
        total_load: object = None,
    ) -> PaymentQuote:
        """
        Price an instructor's overload under the term's rate.

        ``total_load`` defaults to the load recomputed from stored courses.
        Only the rate context is persisted (on first use in the term).
        """
        rate = validate_rate(rate_per_load)
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        if total_load is None:
            load = self._dashboard.instructor_load(
                instructor_id, academic_year, semester,
            ).total_load
        else:
            load = validate_total_load(total_load)
            self._courses.get_instructor(instructor_id)

        self._runs.ensure_rate(academic_year, semester, rate, actor_id)
        components = formula_components(load, rate)
        quote = PaymentQuote(
            instructor_id=instructor_id,
            academic_year=academic_year,
            semester=semester,
            total_load=round2(load),
            overload=compute_overload(load),
            rate_per_load=rate,
            amount=components.total,
        )
        logger.info(
            "payment_calculated",
            extra={
                "instructor_id": str(instructor_id),
                "total_load": str(quote.total_load),
                "rate_per_load": str(rate),
                "amount": str(quote.amount),
            },
        )
        return quote

    def save_payment(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester | str,
        rate_per_load: object,
        actor_id: UUID,
        total_load: object = None,
        remarks: str | None = None,
    ) -> Payment:
        """Create or update the formula payment for the instructor and term."""
        rate = validate_rate(rate_per_load)
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        supplied = validate_total_load(total_load) if total_load is not None else None

        with LogContext.bind(instructor_id=instructor_id, actor_id=actor_id):
            load = self._dashboard.instructor_load(instructor_id, academic_year, semester)
            self._runs.ensure_rate(academic_year, semester, rate, actor_id)

            if supplied is not None and round2(supplied) != load.total_load:
                logger.warning(
                    "stale_total_load_recomputed",
                    extra={
                        "supplied_load": str(supplied),
                        "recomputed_load": str(load.total_load),
                    },
                )

            components = formula_components(load.total_load, rate)
            amount = components.total
            incomplete = self._is_incomplete(load, amount)

            payment = self._find(instructor_id, academic_year, semester)
            if payment is None:
                payment = self._create(
                    instructor_id, academic_year, semester, load.total_load,
                    rate, components, actor_id, remarks, incomplete,
                )
            else:
                self._update(
                    payment, load.total_load, rate, components, actor_id,
                    remarks, incomplete,
                )
            self.session.flush()
            return payment.to_dto()

    def save_batch(
        self,
        academic_year: str,
        semester: Semester | str,
        rate_per_load: object,
        actor_id: UUID,
        instructor_ids: Iterable[UUID] | None = None,
        total_loads: Mapping[UUID, object] | None = None,
    ) -> list[Payment]:
        """
        Save payments for many instructors at one shared rate.

        ``instructor_ids`` defaults to every instructor teaching in the term.
        The rate is checked once before any payment is written.
        """
        rate = validate_rate(rate_per_load)
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        self._runs.ensure_rate(academic_year, semester, rate, actor_id)

        if instructor_ids is None:
            instructor_ids = [
                i.instructor_id
                for i in self._courses.instructors_for_term(
                    academic_year, semester,
                )
            ]
        total_loads = total_loads or {}

        saved = [
            self.save_payment(
                instructor_id, academic_year, semester, rate, actor_id,
                total_load=total_loads.get(instructor_id),
            )
            for instructor_id in instructor_ids
        ]
        logger.info(
            "payment_batch_saved",
            extra={
                "academic_year": academic_year,
                "semester": semester.value,
                "count": len(saved),
                "rate_per_load": str(rate),
            },
        )
        return saved

    def get_payment(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester | str,
    ) -> Payment:
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        payment = self._find(instructor_id, academic_year, semester)
        if payment is None:
            raise PaymentNotFoundError(
                f"{instructor_id}/{academic_year}/{semester.value}"
            )
        return payment.to_dto()

    def mark_paid(self, payment_id: UUID, actor_id: UUID) -> Payment:
        """Finalize a payment.  Paid payments can no longer change."""
        payment = self.session.get(PaymentModel, payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        if payment.status == PaymentStatus.PAID.value:
            raise PaymentFinalizedError(str(payment_id))

        payment.status = PaymentStatus.PAID.value
        payment.paid_at = self.clock.now()
        self._append_history(
            payment, actor_id,
            f"Payment disbursed: {payment.total_amount:.2f} {payment.currency}",
        )
        self.session.flush()
        logger.info(
            "payment_marked_paid",
            extra={"payment_id": str(payment_id), "tx_ref": payment.tx_ref},
        )
        return payment.to_dto()

    # ------------------------------------------------------------------
    # Manual path
    # ------------------------------------------------------------------

    def save_manual_course_payment(
        self,
        course_id: UUID,
        actor_id: UUID,
        base_amount: object = None,
        hdp_allowance: object = None,
        position_allowance: object = None,
        branch_advisor_allowance: object = None,
        overload_amount: object = None,
        remarks: str | None = None,
    ) -> CoursePayment:
        """Record (or replace) an itemized payment against one course."""
        components = manual_components(
            base_amount=base_amount,
            hdp_allowance=hdp_allowance,
            position_allowance=position_allowance,
            branch_advisor_allowance=branch_advisor_allowance,
            overload_amount=overload_amount,
        )
        course = self.session.get(CourseModel, course_id)
        if course is None:
            raise CourseNotFoundError(str(course_id))
        if completed_stages(course.status) < LOAD_BEARING_STAGES:
            raise ValidationError(
                "course_id", str(course_id), "course has not reached finance review",
            )

        record = self.session.scalars(
            select(CoursePaymentModel).where(CoursePaymentModel.course_id == course_id)
        ).one_or_none()
        if record is not None and record.status == PaymentStatus.PAID.value:
            raise PaymentFinalizedError(str(record.id))
        if record is None:
            record = CoursePaymentModel(
                course_id=course_id,
                instructor_id=course.instructor_id,
                currency=self._currency,
                status=PaymentStatus.PENDING.value,
                entered_by=actor_id,
            )
            self.session.add(record)

        record.apply_components(components)
        record.total_amount = components.total
        record.remarks = remarks
        record.entered_by = actor_id
        self.session.flush()

        logger.info(
            "manual_payment_saved",
            extra={
                "course_id": str(course_id),
                "amount": str(components.total),
            },
        )
        return record.to_dto()

    # ------------------------------------------------------------------

    def _find(
        self, instructor_id: UUID, academic_year: str, semester: Semester,
    ) -> PaymentModel | None:
        return self.session.scalars(
            select(PaymentModel).where(
                PaymentModel.instructor_id == instructor_id,
                PaymentModel.academic_year == academic_year,
                PaymentModel.semester == semester.value,
            )
        ).one_or_none()

    def _is_incomplete(self, load: InstructorLoad, amount: Decimal) -> bool:
        if amount != 0 or not load.has_pending_courses:
            return False
        logger.warning(
            "incomplete_load_flagged",
            extra={
                "total_load": str(load.total_load),
                "pending_courses": len(load.pending_course_ids),
            },
        )
        return True

    def _create(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester,
        total_load: Decimal,
        rate: Decimal,
        components,
        actor_id: UUID,
        remarks: str | None,
        incomplete: bool,
    ) -> PaymentModel:
        payment = PaymentModel(
            instructor_id=instructor_id,
            academic_year=academic_year,
            semester=semester.value,
            total_load=total_load,
            rate_per_load=rate,
            total_amount=components.total,
            currency=self._currency,
            status=PaymentStatus.PENDING.value,
            tx_ref=new_tx_ref(instructor_id),
            remarks=remarks,
            incomplete_load=incomplete,
        )
        payment.apply_components(components)
        self.session.add(payment)
        self._append_history(
            payment, actor_id,
            f"Initial payment: {components.total:.2f} {self._currency} "
            f"({rate:.2f} {self._currency} per load)",
        )
        logger.info(
            "payment_saved",
            extra={
                "tx_ref": payment.tx_ref,
                "amount": str(components.total),
                "is_new": True,
            },
        )
        return payment

    def _update(
        self,
        payment: PaymentModel,
        total_load: Decimal,
        rate: Decimal,
        components,
        actor_id: UUID,
        remarks: str | None,
        incomplete: bool,
    ) -> None:
        if payment.status == PaymentStatus.PAID.value:
            raise PaymentFinalizedError(str(payment.id))

        payment.incomplete_load = incomplete
        unchanged = (
            payment.total_amount == components.total
            and payment.rate_per_load == rate
            and payment.total_load == total_load
        )
        if unchanged:
            logger.info("payment_unchanged", extra={"tx_ref": payment.tx_ref})
            return

        previous = payment.total_amount
        payment.total_load = total_load
        payment.rate_per_load = rate
        payment.total_amount = components.total
        payment.apply_components(components)
        if remarks is not None:
            payment.remarks = remarks
        self._append_history(
            payment, actor_id,
            f"Updated payment: {components.total:.2f} {payment.currency} "
            f"({rate:.2f} {payment.currency} per load)",
        )
        logger.info(
            "payment_saved",
            extra={
                "tx_ref": payment.tx_ref,
                "amount": str(components.total),
                "previous_amount": str(previous),
                "is_new": False,
            },
        )

    def _append_history(
        self, payment: PaymentModel, actor_id: UUID, remarks: str,
    ) -> None:
        payment.history.append(
            PaymentHistoryModel(
                sequence=len(payment.history) + 1,
                amount=payment.total_amount,
                rate_per_load=payment.rate_per_load,
                status=payment.status,
                actor_id=actor_id,
                remarks=remarks,
                created_at=self.clock.now(),
            )
        )
