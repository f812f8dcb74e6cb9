"""
workload_engines.rollup -- Instructor-level status roll-up.

Roll-ups are reporting views computed from course statuses on every call;
they are never stored.

Rules, per stage:
    approved  -- every course is at the stage's approved state or later.
    rejected  -- every course sits in the stage's rejected state.
    pending   -- anything else, including no courses at all.

``finance-rejected`` never rolls up to rejected: it signals a payment
problem and the course is back with the scientific director.

A department-head rejection stores ``unassigned`` and keeps
``dept-head-rejected`` only as the outcome of its history row.
``reported_status()`` reads that outcome back so the department-head
roll-up can report the rejection.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence

from workload_kernel.domain.dtos import ApprovalHistoryEntry
from workload_kernel.domain.workflow import (
    CourseStatus,
    Stage,
    is_approved_at,
)


class RollupStatus(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"


# Rejected labels that count as "rejected" for reporting.
_REPORTED_REJECTIONS: dict[Stage, CourseStatus] = {
    stage: stage.definition.rejected
    for stage in Stage
    if stage is not Stage.FINANCE
}


def reported_status(
    status: CourseStatus,
    history: Sequence[ApprovalHistoryEntry] = (),
) -> CourseStatus:
    if (
        status == CourseStatus.UNASSIGNED
        and history
        and history[-1].outcome == CourseStatus.DEPT_HEAD_REJECTED
    ):
        return CourseStatus.DEPT_HEAD_REJECTED
    return status


def rollup(statuses: Iterable[CourseStatus], stage: Stage) -> RollupStatus:
    statuses = tuple(statuses)
    if not statuses:
        return RollupStatus.PENDING

    if all(is_approved_at(s, stage) for s in statuses):
        return RollupStatus.APPROVED

    rejected = _REPORTED_REJECTIONS.get(stage)
    if rejected is not None and all(s == rejected for s in statuses):
        return RollupStatus.REJECTED

    return RollupStatus.PENDING


def rollup_by_stage(statuses: Iterable[CourseStatus]) -> dict[Stage, RollupStatus]:
    statuses = tuple(statuses)
    return {stage: rollup(statuses, stage) for stage in Stage.ordered()}


def furthest_approved_stage(statuses: Iterable[CourseStatus]) -> Stage | None:
    """Last stage at which the instructor's courses are all approved."""
    statuses = tuple(statuses)
    furthest = None
    for stage in Stage.ordered():
        if rollup(statuses, stage) is RollupStatus.APPROVED:
            furthest = stage
        else:
            break
    return furthest
