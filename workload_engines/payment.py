"""
workload_engines.payment -- Pure overload payment calculation.

Responsibility:
    Convert a total load into an overload payment under a per-unit rate,
    validate rates, enforce rate consistency within a finance run, and
    total itemized manual payments.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - amount = round2(max(0, total_load - 12) * rate).
    - A rate is a finite, non-negative number; anything else is rejected
      before any calculation.
    - Within one run every rate must be within ``tolerance`` (0.01) of the
      run's established rate.
    - Manual payments: total is the literal sum of the entered components.
"""

from __future__ import annotations

from decimal import Decimal

from workload_kernel.db.types import ZERO, round2, strip_scale, to_decimal, to_non_negative
from workload_kernel.domain.dtos import PaymentComponents
from workload_kernel.exceptions import RateInconsistencyError, ValidationError

from workload_engines.load import STANDARD_FULL_LOAD

RATE_TOLERANCE = Decimal("0.01")


def validate_rate(rate: object) -> Decimal:
    """Coerce a rate per load unit, rejecting negative and non-numeric input."""
    value = to_decimal(rate, "rate_per_load")
    if value < 0:
        raise ValidationError("rate_per_load", rate, "must not be negative")
    return value


def validate_total_load(total_load: object) -> Decimal:
    return to_non_negative(total_load, "total_load")


def calculate_overload_payment(total_load: object, rate_per_load: object) -> Decimal:
    """
    Overload payment for ``total_load`` at ``rate_per_load``.

    The overload is multiplied unrounded; the product is rounded once.
    """
    rate = validate_rate(rate_per_load)
    load = validate_total_load(total_load)
    return round2(max(ZERO, load - STANDARD_FULL_LOAD) * rate)


def back_compute_rate(amount: Decimal, total_load: Decimal) -> Decimal:
    """Rate implied by an amount; used to audit stored payments."""
    overload = max(Decimal("0.0001"), total_load - STANDARD_FULL_LOAD)
    return amount / overload


def check_rate_consistency(
    established_rate: Decimal | None,
    requested_rate: Decimal,
    *,
    academic_year: str,
    semester: str,
    tolerance: Decimal = RATE_TOLERANCE,
) -> None:
    """
    Raise RateInconsistencyError when ``requested_rate`` strays from the run rate.

    No established rate means the requested rate will become the run rate.
    """
    if established_rate is None:
        return
    if abs(requested_rate - established_rate) > tolerance:
        raise RateInconsistencyError(
            academic_year,
            semester,
            str(strip_scale(established_rate)),
            str(strip_scale(requested_rate)),
        )


def formula_components(total_load: object, rate_per_load: object) -> PaymentComponents:
    """Breakdown of a formula-path payment: everything is overload."""
    return PaymentComponents(
        overload_amount=calculate_overload_payment(total_load, rate_per_load),
    )


def manual_components(
    base_amount: object = None,
    hdp_allowance: object = None,
    position_allowance: object = None,
    branch_advisor_allowance: object = None,
    overload_amount: object = None,
) -> PaymentComponents:
    """Validate an itemized manual payment entered by finance."""
    return PaymentComponents(
        base_amount=round2(to_non_negative(base_amount, "base_amount", default=ZERO)),
        hdp_allowance=round2(
            to_non_negative(hdp_allowance, "hdp_allowance", default=ZERO)
        ),
        position_allowance=round2(
            to_non_negative(position_allowance, "position_allowance", default=ZERO)
        ),
        branch_advisor_allowance=round2(
            to_non_negative(
                branch_advisor_allowance, "branch_advisor_allowance", default=ZERO,
            )
        ),
        overload_amount=round2(
            to_non_negative(overload_amount, "overload_amount", default=ZERO)
        ),
    )
