"""
Pure domain layer.

Contains the course workflow table, value objects and DTOs, with NO
dependencies on the ORM, the database, or I/O.  All domain objects are
immutable.
"""

from workload_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workload_kernel.domain.dtos import (
    ApprovalHistoryEntry,
    BatchStatus,
    BulkItemFailure,
    BulkTransitionResult,
    Course,
    CoursePayment,
    FinanceApprovalResult,
    FinanceRun,
    Instructor,
    Payment,
    PaymentComponents,
    PaymentHistoryEntry,
    PaymentQuote,
    PaymentStatus,
    RateOverrideResult,
    ResetPreview,
    ResetResult,
)
from workload_kernel.domain.values import HourConfig, SectionCounts, SupplementalHours
from workload_kernel.domain.workflow import (
    COURSE_APPROVAL_WORKFLOW,
    ActorRole,
    CourseStatus,
    Semester,
    Stage,
    Transition,
    WorkflowAction,
)

__all__ = [
    "COURSE_APPROVAL_WORKFLOW",
    "ActorRole",
    "ApprovalHistoryEntry",
    "BatchStatus",
    "BulkItemFailure",
    "BulkTransitionResult",
    "Clock",
    "Course",
    "CoursePayment",
    "CourseStatus",
    "DeterministicClock",
    "FinanceApprovalResult",
    "FinanceRun",
    "HourConfig",
    "Instructor",
    "Payment",
    "PaymentComponents",
    "PaymentHistoryEntry",
    "PaymentQuote",
    "PaymentStatus",
    "RateOverrideResult",
    "ResetPreview",
    "ResetResult",
    "SectionCounts",
    "Semester",
    "Stage",
    "SupplementalHours",
    "SystemClock",
    "Transition",
    "WorkflowAction",
]
