"""
workload_services.dashboard_selector -- Recomputed dashboard views.

Responsibility:
    Instructor load, stage roll-ups and saved payments for a term, computed
    on every call from the stored courses through the Load Calculator and
    the roll-up rules.

Architecture position:
    Services -- read-only composition of kernel selectors and engines.

Invariants enforced:
    - Nothing here is cached or stored.  Two calls over the same data give
      the same answer; a changed course changes the next answer.
    - Only load-bearing courses count toward load: those whose
      scientific-director approval stands (``scientific-director-approved``,
      ``finance-review``, ``finance-approved``).
    - An empty term yields zero load and no payment.  There is no default
      rate and no sample data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select

from workload_engines.load import LoadSummary, compute_instructor_total_load
from workload_engines.rollup import RollupStatus, reported_status, rollup, rollup_by_stage
from workload_kernel.domain.dtos import Course, Instructor, Payment
from workload_kernel.domain.workflow import Semester, Stage, completed_stages
from workload_kernel.models.payment import PaymentModel
from workload_kernel.selectors.base import BaseSelector
from workload_kernel.selectors.course_selector import CourseSelector

LOAD_BEARING_STAGES = Stage.FINANCE.index


def is_load_bearing(course: Course) -> bool:
    return completed_stages(course.status) >= LOAD_BEARING_STAGES


@dataclass(frozen=True)
class InstructorLoad:
    instructor_id: UUID
    academic_year: str
    semester: Semester
    summary: LoadSummary
    load_bearing_course_ids: tuple[UUID, ...] = ()
    pending_course_ids: tuple[UUID, ...] = ()

    @property
    def total_load(self):
        return self.summary.total_load

    @property
    def overload(self):
        return self.summary.overload

    @property
    def has_pending_courses(self) -> bool:
        return bool(self.pending_course_ids)


@dataclass(frozen=True)
class StageSummary:
    stage: Stage
    approved: int = 0
    rejected: int = 0
    pending: int = 0

    @property
    def total(self) -> int:
        return self.approved + self.rejected + self.pending


@dataclass(frozen=True)
class InstructorWorkload:
    instructor: Instructor
    load: InstructorLoad
    rollups: dict[Stage, RollupStatus] = field(default_factory=dict)
    payment: Payment | None = None


class DashboardSelector(BaseSelector):

    def __init__(self, session):
        super().__init__(session)
        self._courses = CourseSelector(session)

    def instructor_load(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester,
    ) -> InstructorLoad:
        instructor = self._courses.get_instructor(instructor_id)
        courses = self._courses.list_for_instructor(instructor_id, academic_year, semester)
        return self._load_for(instructor, courses, academic_year, semester)

    def stage_summary(
        self,
        academic_year: str,
        semester: Semester,
        stage: Stage,
    ) -> StageSummary:
        counts = {status: 0 for status in RollupStatus}
        for statuses in self._statuses_by_instructor(academic_year, semester).values():
            counts[rollup(statuses, stage)] += 1
        return StageSummary(
            stage=stage,
            approved=counts[RollupStatus.APPROVED],
            rejected=counts[RollupStatus.REJECTED],
            pending=counts[RollupStatus.PENDING],
        )

    def instructor_rollups(
        self,
        instructor_id: UUID,
        academic_year: str,
        semester: Semester,
    ) -> dict[Stage, RollupStatus]:
        courses = self._courses.list_for_instructor(instructor_id, academic_year, semester)
        return rollup_by_stage(reported_status(c.status, c.history) for c in courses)

    def instructor_workloads(
        self,
        academic_year: str,
        semester: Semester,
    ) -> list[InstructorWorkload]:
        payments = {
            p.instructor_id: p.to_dto()
            for p in self.session.scalars(
                select(PaymentModel).where(
                    PaymentModel.academic_year == academic_year,
                    PaymentModel.semester == Semester(semester).value,
                )
            )
        }

        result = []
        for instructor in self._courses.instructors_for_term(academic_year, semester):
            courses = self._courses.list_for_instructor(
                instructor.instructor_id, academic_year, semester,
            )
            result.append(
                InstructorWorkload(
                    instructor=instructor,
                    load=self._load_for(instructor, courses, academic_year, semester),
                    rollups=rollup_by_stage(reported_status(c.status, c.history) for c in courses),
                    payment=payments.get(instructor.instructor_id),
                )
            )
        return result

    # ------------------------------------------------------------------

    def _statuses_by_instructor(self, academic_year: str, semester: Semester):
        grouped: dict[UUID, list] = {}
        for course in self._courses.list_for_term(academic_year, semester):
            if course.instructor_id is None:
                continue
            grouped.setdefault(course.instructor_id, []).append(
                reported_status(course.status, course.history),
            )
        return grouped

    @staticmethod
    def _load_for(
        instructor: Instructor,
        courses: list[Course],
        academic_year: str,
        semester: Semester,
    ) -> InstructorLoad:
        bearing = [c for c in courses if is_load_bearing(c)]
        pending = [c for c in courses if not is_load_bearing(c)]
        summary = compute_instructor_total_load(
            ((c.hours, c.sections) for c in bearing),
            instructor.supplemental,
        )
        return InstructorLoad(
            instructor_id=instructor.instructor_id,
            academic_year=academic_year,
            semester=Semester(semester),
            summary=summary,
            load_bearing_course_ids=tuple(c.course_id for c in bearing),
            pending_course_ids=tuple(c.course_id for c in pending),
        )
