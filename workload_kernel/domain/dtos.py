"""
Data transfer objects returned by services and selectors.

All DTOs are frozen dataclasses built from ORM rows via ``to_dto()``.
Callers never receive live ORM instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from workload_kernel.domain.values import HourConfig, SectionCounts, SupplementalHours
from workload_kernel.domain.workflow import (
    ActorRole,
    CourseStatus,
    Semester,
    WorkflowAction,
)


# =========================================================================
# Courses
# =========================================================================


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """One append-only row of a course's approval history."""

    sequence: int
    role: ActorRole
    action: WorkflowAction
    from_status: CourseStatus
    to_status: CourseStatus
    outcome: CourseStatus
    actor_id: UUID
    created_at: datetime
    remarks: str | None = None


@dataclass(frozen=True)
class Course:
    course_id: UUID
    code: str
    title: str
    school: str
    department: str
    academic_year: str
    semester: Semester
    hours: HourConfig
    sections: SectionCounts
    status: CourseStatus
    instructor_id: UUID | None = None
    class_year: str | None = None
    credit_hours: Decimal | None = None
    version: int = 1
    history: tuple[ApprovalHistoryEntry, ...] = ()


@dataclass(frozen=True)
class Instructor:
    instructor_id: UUID
    name: str
    school: str
    department: str
    supplemental: SupplementalHours = field(default_factory=SupplementalHours)
    email: str | None = None


# =========================================================================
# Payments
# =========================================================================


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


@dataclass(frozen=True)
class PaymentComponents:
    """Itemized breakdown; ``total`` is always the literal sum."""

    base_amount: Decimal = Decimal("0")
    hdp_allowance: Decimal = Decimal("0")
    position_allowance: Decimal = Decimal("0")
    branch_advisor_allowance: Decimal = Decimal("0")
    overload_amount: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return (
            self.base_amount
            + self.hdp_allowance
            + self.position_allowance
            + self.branch_advisor_allowance
            + self.overload_amount
        )


@dataclass(frozen=True)
class PaymentHistoryEntry:
    amount: Decimal
    status: PaymentStatus
    actor_id: UUID
    created_at: datetime
    rate_per_load: Decimal | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class Payment:
    """Formula-path payment for one (instructor, academic year, semester)."""

    payment_id: UUID
    instructor_id: UUID
    academic_year: str
    semester: Semester
    total_load: Decimal
    rate_per_load: Decimal
    components: PaymentComponents
    total_amount: Decimal
    status: PaymentStatus
    tx_ref: str
    currency: str = "ETB"
    remarks: str | None = None
    incomplete_load: bool = False
    history: tuple[PaymentHistoryEntry, ...] = ()


@dataclass(frozen=True)
class CoursePayment:
    """Manual itemized payment recorded against a single course."""

    payment_id: UUID
    course_id: UUID
    instructor_id: UUID | None
    components: PaymentComponents
    total_amount: Decimal
    status: PaymentStatus
    currency: str = "ETB"
    remarks: str | None = None


@dataclass(frozen=True)
class PaymentQuote:
    """Result of calculate_payment(): nothing is persisted except the run rate."""

    instructor_id: UUID
    academic_year: str
    semester: Semester
    total_load: Decimal
    overload: Decimal
    rate_per_load: Decimal
    amount: Decimal


@dataclass(frozen=True)
class FinanceRun:
    """The rate context of one term's finance run."""

    run_id: UUID
    academic_year: str
    semester: Semester
    rate_per_load: Decimal
    established_by: UUID
    established_at: datetime


@dataclass(frozen=True)
class RateOverrideResult:
    previous_rate: Decimal
    new_rate: Decimal
    stale_payment_ids: tuple[UUID, ...] = ()


# =========================================================================
# Bulk and reset results
# =========================================================================


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    PARTIALLY_COMPLETED = "partially_completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BulkItemFailure:
    course_id: UUID
    error_code: str
    error_message: str


@dataclass(frozen=True)
class BulkTransitionResult:
    succeeded: tuple[Course, ...] = ()
    failed: tuple[BulkItemFailure, ...] = ()

    @property
    def status(self) -> BatchStatus:
        if not self.failed:
            return BatchStatus.COMPLETED
        if self.succeeded:
            return BatchStatus.PARTIALLY_COMPLETED
        return BatchStatus.FAILED

    def raise_for_failures(self) -> None:
        from workload_kernel.exceptions import PartialBatchFailureError

        if self.failed:
            raise PartialBatchFailureError(
                len(self.succeeded),
                [
                    {
                        "course_id": str(f.course_id),
                        "error_code": f.error_code,
                        "error_message": f.error_message,
                    }
                    for f in self.failed
                ],
            )


@dataclass(frozen=True)
class ResetPreview:
    academic_year: str
    semester: Semester
    course_count: int
    token: str


@dataclass(frozen=True)
class ResetResult:
    academic_year: str
    semester: Semester
    reset_count: int
    failed: tuple[BulkItemFailure, ...] = ()


@dataclass(frozen=True)
class FinanceApprovalResult:
    transitions: BulkTransitionResult
    payment: Payment | None
