"""
Module: workload_kernel.selectors.course_selector
Responsibility: Read access to courses, instructors and approval history.

Ordering is deterministic everywhere (code, then id) so that bulk operations
driven from these lists process courses in a stable order.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select

from workload_kernel.domain.dtos import ApprovalHistoryEntry, Course, Instructor
from workload_kernel.domain.workflow import (
    ActorRole,
    CourseStatus,
    Semester,
    owner_of,
)
from workload_kernel.exceptions import CourseNotFoundError, InstructorNotFoundError
from workload_kernel.models.course import CourseModel
from workload_kernel.models.instructor import InstructorModel
from workload_kernel.selectors.base import BaseSelector


def _status_values(statuses: Iterable[CourseStatus]) -> list[str]:
    return [CourseStatus(s).value for s in statuses]


class CourseSelector(BaseSelector):

    def get(self, course_id: UUID) -> Course:
        course = self.session.get(CourseModel, course_id)
        if course is None:
            raise CourseNotFoundError(str(course_id))
        return course.to_dto()

    def get_instructor(self, instructor_id: UUID) -> Instructor:
        instructor = self.session.get(InstructorModel, instructor_id)
        if instructor is None:
            raise InstructorNotFoundError(str(instructor_id))
        return instructor.to_dto()

    def history(self, course_id: UUID) -> tuple[ApprovalHistoryEntry, ...]:
        """Approval history of a course, oldest first."""
        return self.get(course_id).history

    def list_for_term(
        self,
        academic_year: str,
        semester: Semester,
        statuses: Iterable[CourseStatus] | None = None,
    ) -> list[Course]:
        stmt = select(CourseModel).where(
            CourseModel.academic_year == academic_year,
            CourseModel.semester == Semester(semester).value,
        )
        if statuses is not None:
            stmt = stmt.where(CourseModel.status.in_(_status_values(statuses)))
        stmt = stmt.order_by(CourseModel.code, CourseModel.id)
        return [c.to_dto() for c in self.session.scalars(stmt)]

    def count_for_term(self, academic_year: str, semester: Semester) -> int:
        return self.session.scalar(
            select(func.count(CourseModel.id)).where(
                CourseModel.academic_year == academic_year,
                CourseModel.semester == Semester(semester).value,
            )
        ) or 0

    def list_for_instructor(
        self,
        instructor_id: UUID,
        academic_year: str | None = None,
        semester: Semester | None = None,
    ) -> list[Course]:
        stmt = select(CourseModel).where(CourseModel.instructor_id == instructor_id)
        if academic_year is not None:
            stmt = stmt.where(CourseModel.academic_year == academic_year)
        if semester is not None:
            stmt = stmt.where(CourseModel.semester == Semester(semester).value)
        stmt = stmt.order_by(CourseModel.code, CourseModel.id)
        return [c.to_dto() for c in self.session.scalars(stmt)]

    def actionable_for(
        self,
        instructor_id: UUID,
        role: ActorRole,
        academic_year: str | None = None,
        semester: Semester | None = None,
    ) -> list[Course]:
        """The instructor's courses whose current status ``role`` owns."""
        return [
            c for c in self.list_for_instructor(instructor_id, academic_year, semester)
            if owner_of(c.status) == role
        ]

    def instructors_for_term(
        self, academic_year: str, semester: Semester,
    ) -> list[Instructor]:
        """Instructors with at least one course in the term, by name."""
        stmt = (
            select(InstructorModel)
            .where(
                InstructorModel.id.in_(
                    select(CourseModel.instructor_id).where(
                        CourseModel.academic_year == academic_year,
                        CourseModel.semester == Semester(semester).value,
                        CourseModel.instructor_id.is_not(None),
                    )
                )
            )
            .order_by(InstructorModel.name, InstructorModel.id)
        )
        return [i.to_dto() for i in self.session.scalars(stmt)]
