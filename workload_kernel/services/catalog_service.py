"""
workload_kernel.services.catalog_service -- Instructors and course offerings.

Thin persistence glue for the records the workflow acts on.  Hour and
section inputs go through the same validation as the Load Calculator, so a
course that was accepted here can always be costed.

Invariants enforced:
    - New courses start ``unassigned`` with a single version.
    - An instructor can be (re)assigned only while the course is
      ``unassigned``; later stages have already reviewed the assignment.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from workload_kernel.db.types import to_non_negative
from workload_kernel.domain.dtos import Course, Instructor
from workload_kernel.domain.values import HourConfig, SectionCounts, SupplementalHours
from workload_kernel.domain.workflow import CourseStatus, Semester
from workload_kernel.exceptions import (
    CourseNotFoundError,
    IllegalTransitionError,
    InstructorNotFoundError,
    ValidationError,
)
from workload_kernel.logging_config import get_logger
from workload_kernel.models.course import CourseModel
from workload_kernel.models.instructor import InstructorModel
from workload_kernel.services.base import BaseService, coerce_enum, coerce_year

logger = get_logger("services.catalog")


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, value, "must not be blank")
    return str(value).strip()


class CatalogService(BaseService):

    def add_instructor(
        self,
        name: str,
        school: str,
        department: str,
        supplemental: SupplementalHours | Mapping[str, Any] | None = None,
        email: str | None = None,
    ) -> Instructor:
        if not isinstance(supplemental, SupplementalHours):
            supplemental = SupplementalHours.from_mapping(supplemental)

        instructor = InstructorModel(
            name=_require_text(name, "name"),
            school=_require_text(school, "school"),
            department=_require_text(department, "department"),
            email=email,
            hdp_hours=to_non_negative(supplemental.hdp, "hdp_hours"),
            position_hours=to_non_negative(supplemental.position, "position_hours"),
            batch_advisor_hours=to_non_negative(
                supplemental.batch_advisor, "batch_advisor_hours",
            ),
        )
        self.session.add(instructor)
        self.session.flush()
        logger.info("instructor_added", extra={"instructor_id": str(instructor.id)})
        return instructor.to_dto()

    def update_supplemental_hours(
        self,
        instructor_id: UUID,
        supplemental: SupplementalHours | Mapping[str, Any],
    ) -> Instructor:
        if not isinstance(supplemental, SupplementalHours):
            supplemental = SupplementalHours.from_mapping(supplemental)
        instructor = self.load_instructor(instructor_id)
        instructor.hdp_hours = to_non_negative(supplemental.hdp, "hdp_hours")
        instructor.position_hours = to_non_negative(supplemental.position, "position_hours")
        instructor.batch_advisor_hours = to_non_negative(
            supplemental.batch_advisor, "batch_advisor_hours",
        )
        self.session.flush()
        return instructor.to_dto()

    def add_course(
        self,
        code: str,
        title: str,
        school: str,
        department: str,
        academic_year: str | int,
        semester: Semester | str,
        hours: HourConfig | Mapping[str, Any] | None = None,
        sections: SectionCounts | Mapping[str, Any] | None = None,
        instructor_id: UUID | None = None,
        class_year: str | None = None,
        credit_hours: Decimal | int | None = None,
    ) -> Course:
        if not isinstance(hours, HourConfig):
            hours = HourConfig.from_mapping(hours)
        if not isinstance(sections, SectionCounts):
            sections = SectionCounts.from_mapping(sections)
        semester = coerce_enum(Semester, semester, "semester")

        if instructor_id is not None:
            self.load_instructor(instructor_id)

        course = CourseModel(
            code=_require_text(code, "code"),
            title=_require_text(title, "title"),
            school=_require_text(school, "school"),
            department=_require_text(department, "department"),
            academic_year=coerce_year(academic_year),
            semester=semester.value,
            class_year=class_year,
            credit_hours=(
                to_non_negative(credit_hours, "credit_hours")
                if credit_hours is not None else None
            ),
            lecture_hours=hours.lecture,
            lab_hours=hours.lab,
            tutorial_hours=hours.tutorial,
            lecture_sections=sections.lecture,
            lab_sections=sections.lab,
            tutorial_sections=sections.tutorial,
            status=CourseStatus.UNASSIGNED.value,
            instructor_id=instructor_id,
        )
        self.session.add(course)
        self.session.flush()
        logger.info(
            "course_added",
            extra={
                "course_id": str(course.id),
                "code": course.code,
                "academic_year": course.academic_year,
                "semester": course.semester,
            },
        )
        return course.to_dto()

    def assign_instructor(self, course_id: UUID, instructor_id: UUID) -> Course:
        course = self.session.get(CourseModel, course_id)
        if course is None:
            raise CourseNotFoundError(str(course_id))
        if course.status != CourseStatus.UNASSIGNED.value:
            raise IllegalTransitionError(str(course_id), course.status, "assign")
        self.load_instructor(instructor_id)

        course.instructor_id = instructor_id
        self.session.flush()
        logger.info(
            "instructor_assigned",
            extra={"course_id": str(course_id), "instructor_id": str(instructor_id)},
        )
        return course.to_dto()

    def load_instructor(self, instructor_id: UUID) -> InstructorModel:
        instructor = self.session.get(InstructorModel, instructor_id)
        if instructor is None:
            raise InstructorNotFoundError(str(instructor_id))
        return instructor
