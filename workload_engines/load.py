"""
workload_engines.load -- Pure teaching load calculation.

Responsibility:
    Turn a course's hour/section configuration into load units and
    aggregate an instructor's course loads with supplemental hours.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import workload_kernel domain types, db.types and exceptions.

Invariants enforced:
    - Course load = lecture_h * lecture_s + lab_h * 0.67 * lab_s
      + tutorial_h * 0.67 * tutorial_s.  0.67 is a fixed domain constant.
    - Per-course loads are summed unrounded; only the aggregate is rounded
      (two places, half away from zero).
    - Overload = max(0, total - 12).  Never negative.
    - Missing hour/section fields read as 0.

Failure modes:
    - ValidationError for negative or non-numeric inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from workload_kernel.db.types import ZERO, round2, to_non_negative
from workload_kernel.domain.values import HourConfig, SectionCounts, SupplementalHours

STANDARD_FULL_LOAD = Decimal("12")
CONTACT_DISCOUNT_FACTOR = Decimal("0.67")


@dataclass(frozen=True)
class LoadSummary:
    course_load: Decimal
    supplemental_load: Decimal
    total_load: Decimal
    overload: Decimal
    course_count: int


def compute_course_load(
    hours: HourConfig | None,
    sections: SectionCounts | None,
) -> Decimal:
    """Unrounded load units for one course."""
    hours = hours or HourConfig()
    sections = sections or SectionCounts()

    lecture = (
        to_non_negative(hours.lecture, "lecture_hours", default=ZERO)
        * to_non_negative(sections.lecture, "lecture_sections", default=ZERO)
    )
    lab = (
        to_non_negative(hours.lab, "lab_hours", default=ZERO)
        * CONTACT_DISCOUNT_FACTOR
        * to_non_negative(sections.lab, "lab_sections", default=ZERO)
    )
    tutorial = (
        to_non_negative(hours.tutorial, "tutorial_hours", default=ZERO)
        * CONTACT_DISCOUNT_FACTOR
        * to_non_negative(sections.tutorial, "tutorial_sections", default=ZERO)
    )
    return lecture + lab + tutorial


def compute_overload(total_load: Decimal) -> Decimal:
    """Load above the standard full load, floored at zero."""
    total = to_non_negative(total_load, "total_load")
    return round2(max(ZERO, total - STANDARD_FULL_LOAD))


def compute_instructor_total_load(
    courses: Iterable[tuple[HourConfig | None, SectionCounts | None]],
    supplemental: SupplementalHours | None = None,
) -> LoadSummary:
    """
    Aggregate load for one instructor and term.

    ``courses`` must already be filtered to the load-bearing (approved)
    courses; this function does not look at statuses.
    """
    supplemental = supplemental or SupplementalHours()

    course_load = ZERO
    count = 0
    for hours, sections in courses:
        course_load += compute_course_load(hours, sections)
        count += 1

    supplemental_load = (
        to_non_negative(supplemental.hdp, "hdp_hours", default=ZERO)
        + to_non_negative(supplemental.position, "position_hours", default=ZERO)
        + to_non_negative(supplemental.batch_advisor, "batch_advisor_hours", default=ZERO)
    )
    total = round2(course_load + supplemental_load)

    return LoadSummary(
        course_load=round2(course_load),
        supplemental_load=round2(supplemental_load),
        total_load=total,
        overload=compute_overload(total),
        course_count=count,
    )
