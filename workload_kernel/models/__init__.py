"""ORM models for the workload kernel."""

from workload_kernel.models.course import ApprovalHistoryModel, CourseModel
from workload_kernel.models.finance_run import FinanceRunModel
from workload_kernel.models.instructor import InstructorModel
from workload_kernel.models.payment import (
    CoursePaymentModel,
    PaymentHistoryModel,
    PaymentModel,
)


def import_all_models() -> tuple[type, ...]:
    """Return every mapped class so Base.metadata is fully populated."""
    return (
        InstructorModel,
        CourseModel,
        ApprovalHistoryModel,
        PaymentModel,
        PaymentHistoryModel,
        CoursePaymentModel,
        FinanceRunModel,
    )


__all__ = [
    "ApprovalHistoryModel",
    "CourseModel",
    "CoursePaymentModel",
    "FinanceRunModel",
    "InstructorModel",
    "PaymentHistoryModel",
    "PaymentModel",
    "import_all_models",
]
