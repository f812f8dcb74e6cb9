"""
Workflow services: orchestration over the kernel and the pure engines.

    WorkflowOrchestrator  -- bulk transitions, finance approval, semester reset
    PaymentService        -- formula and manual payments
    FinanceRunService     -- per-term rate context and overrides
    DashboardSelector     -- recomputed load and roll-up views
"""

from workload_services.dashboard_selector import (
    DashboardSelector,
    InstructorLoad,
    InstructorWorkload,
    StageSummary,
)
from workload_services.finance_run_service import FinanceRunService
from workload_services.payment_service import PaymentService
from workload_services.workflow_orchestrator import WorkflowOrchestrator

__all__ = [
    "DashboardSelector",
    "FinanceRunService",
    "InstructorLoad",
    "InstructorWorkload",
    "PaymentService",
    "StageSummary",
    "WorkflowOrchestrator",
]
