"""
Pure calculation engines: teaching load, overload payment, status roll-up.

Engines perform no I/O and never touch the database or the clock.
"""

from workload_engines.load import (
    CONTACT_DISCOUNT_FACTOR,
    STANDARD_FULL_LOAD,
    LoadSummary,
    compute_course_load,
    compute_instructor_total_load,
    compute_overload,
)
from workload_engines.payment import (
    RATE_TOLERANCE,
    calculate_overload_payment,
    check_rate_consistency,
    formula_components,
    manual_components,
    validate_rate,
)
from workload_engines.rollup import (
    RollupStatus,
    furthest_approved_stage,
    rollup,
    rollup_by_stage,
)

__all__ = [
    "CONTACT_DISCOUNT_FACTOR",
    "STANDARD_FULL_LOAD",
    "RATE_TOLERANCE",
    "LoadSummary",
    "RollupStatus",
    "calculate_overload_payment",
    "check_rate_consistency",
    "compute_course_load",
    "compute_instructor_total_load",
    "compute_overload",
    "formula_components",
    "furthest_approved_stage",
    "manual_components",
    "rollup",
    "rollup_by_stage",
    "validate_rate",
]
