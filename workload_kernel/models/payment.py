"""
Module: workload_kernel.models.payment
Responsibility: ORM persistence for formula payments (one per instructor and
    term), their append-only history, and itemized per-course manual
    payments.

Architecture position: Kernel > Models.

Invariants enforced:
    - UNIQUE(instructor_id, academic_year, semester) on payments: saving a
      payment twice for the same key updates rather than duplicates.
    - UNIQUE(course_id) on course_payments.
    - ``tx_ref`` is unique and write-once.
    - Amounts are non-negative (DB check constraints).
    - Payment history is append-only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workload_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from workload_kernel.db.types import ZERO
from workload_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from workload_kernel.domain.dtos import (
        CoursePayment,
        Payment,
        PaymentComponents,
        PaymentHistoryEntry,
    )


class _ComponentsMixin:
    base_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    hdp_allowance: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    position_allowance: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    branch_advisor_allowance: Mapped[Decimal] = mapped_column(
        default=ZERO, nullable=False,
    )
    overload_amount: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    def components_dto(self) -> PaymentComponents:
        from workload_kernel.domain.dtos import PaymentComponents

        return PaymentComponents(
            base_amount=self.base_amount,
            hdp_allowance=self.hdp_allowance,
            position_allowance=self.position_allowance,
            branch_advisor_allowance=self.branch_advisor_allowance,
            overload_amount=self.overload_amount,
        )

    def apply_components(self, components: PaymentComponents) -> None:
        self.base_amount = components.base_amount
        self.hdp_allowance = components.hdp_allowance
        self.position_allowance = components.position_allowance
        self.branch_advisor_allowance = components.branch_advisor_allowance
        self.overload_amount = components.overload_amount


class PaymentModel(_ComponentsMixin, TrackedBase):
    """Formula-path payment for one (instructor, academic year, semester)."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint(
            "instructor_id", "academic_year", "semester",
            name="uq_payments_instructor_term",
        ),
        CheckConstraint("total_amount >= 0", name="ck_payments_amount_non_negative"),
        CheckConstraint("total_load >= 0", name="ck_payments_load_non_negative"),
        CheckConstraint("rate_per_load >= 0", name="ck_payments_rate_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'paid')", name="ck_payments_valid_status",
        ),
        Index("ix_payments_term", "academic_year", "semester"),
    )

    instructor_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("instructors.id"), nullable=False,
    )
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[str] = mapped_column(String(10), nullable=False)
    total_load: Mapped[Decimal] = mapped_column(nullable=False)
    rate_per_load: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ETB", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    tx_ref: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    incomplete_load: Mapped[bool] = mapped_column(default=False, nullable=False)
    paid_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True,
    )

    history: Mapped[list["PaymentHistoryModel"]] = relationship(
        "PaymentHistoryModel",
        back_populates="payment",
        order_by="PaymentHistoryModel.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Payment {self.tx_ref} {self.academic_year}/{self.semester} "
            f"amount={self.total_amount} status={self.status}>"
        )

    def to_dto(self) -> Payment:
        from workload_kernel.domain.dtos import Payment as PaymentDTO
        from workload_kernel.domain.dtos import PaymentStatus
        from workload_kernel.domain.workflow import Semester

        return PaymentDTO(
            payment_id=self.id,
            instructor_id=self.instructor_id,
            academic_year=self.academic_year,
            semester=Semester(self.semester),
            total_load=self.total_load,
            rate_per_load=self.rate_per_load,
            components=self.components_dto(),
            total_amount=self.total_amount,
            status=PaymentStatus(self.status),
            tx_ref=self.tx_ref,
            currency=self.currency,
            remarks=self.remarks,
            incomplete_load=self.incomplete_load,
            history=tuple(h.to_dto() for h in self.history),
        )


class PaymentHistoryModel(Base):
    """Amount/status change on a payment.  Append-only."""

    __tablename__ = "payment_history"

    __table_args__ = (
        UniqueConstraint("payment_id", "sequence", name="uq_payment_history_sequence"),
        Index("ix_payment_history_payment", "payment_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payments.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    rate_per_load: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False,
    )

    payment: Mapped["PaymentModel"] = relationship(
        "PaymentModel", back_populates="history",
    )

    def to_dto(self) -> PaymentHistoryEntry:
        from workload_kernel.domain.dtos import PaymentHistoryEntry as EntryDTO
        from workload_kernel.domain.dtos import PaymentStatus

        return EntryDTO(
            amount=self.amount,
            status=PaymentStatus(self.status),
            actor_id=self.actor_id,
            created_at=self.created_at,
            rate_per_load=self.rate_per_load,
            remarks=self.remarks,
        )


class CoursePaymentModel(_ComponentsMixin, TrackedBase):
    """Itemized manual payment recorded against one course."""

    __tablename__ = "course_payments"

    __table_args__ = (
        UniqueConstraint("course_id", name="uq_course_payments_course"),
        CheckConstraint(
            "total_amount >= 0", name="ck_course_payments_amount_non_negative",
        ),
        CheckConstraint(
            "status IN ('pending', 'paid')", name="ck_course_payments_valid_status",
        ),
    )

    course_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("courses.id"), nullable=False,
    )
    instructor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("instructors.id"), nullable=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ETB", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    entered_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def to_dto(self) -> CoursePayment:
        from workload_kernel.domain.dtos import CoursePayment as CoursePaymentDTO
        from workload_kernel.domain.dtos import PaymentStatus

        return CoursePaymentDTO(
            payment_id=self.id,
            course_id=self.course_id,
            instructor_id=self.instructor_id,
            components=self.components_dto(),
            total_amount=self.total_amount,
            status=PaymentStatus(self.status),
            currency=self.currency,
            remarks=self.remarks,
        )


@event.listens_for(PaymentHistoryModel, "before_update")
def prevent_payment_history_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="PaymentHistory",
        entity_id=str(target.id),
        reason="Payment history is append-only -- cannot modify",
    )


@event.listens_for(PaymentHistoryModel, "before_delete")
def prevent_payment_history_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="PaymentHistory",
        entity_id=str(target.id),
        reason="Payment history is append-only -- cannot delete",
    )
