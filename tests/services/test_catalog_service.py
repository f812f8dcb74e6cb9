"""
Tests for CatalogService -- instructors and course offerings.

Covers:
- add_instructor(): supplemental hours from a mapping, blank name
- add_course(): defaults, hour validation, unknown instructor, duplicate code
- assign_instructor(): only while unassigned
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from workload_kernel.domain.workflow import CourseStatus, Semester
from workload_kernel.exceptions import (
    IllegalTransitionError,
    InstructorNotFoundError,
    ValidationError,
)


class TestInstructors:

    def test_supplemental_hours_from_mapping(self, catalog):
        instructor = catalog.add_instructor(
            "Hana Tesfaye", "Engineering", "Computing",
            supplemental={"hdp": 2, "position": "1.5"},
        )
        assert instructor.supplemental.hdp == Decimal("2")
        assert instructor.supplemental.position == Decimal("1.5")
        assert instructor.supplemental.batch_advisor == Decimal("0")
        assert instructor.supplemental.total == Decimal("3.5")

    def test_blank_name_rejected(self, catalog):
        with pytest.raises(ValidationError):
            catalog.add_instructor("  ", "Engineering", "Computing")

    def test_negative_supplemental_rejected(self, catalog):
        with pytest.raises(ValidationError):
            catalog.add_instructor("A", "Engineering", "Computing", supplemental={"hdp": -1})

    def test_update_supplemental_hours(self, catalog, make_instructor):
        instructor = make_instructor()
        updated = catalog.update_supplemental_hours(
            instructor.instructor_id, {"batch_advisor": 1},
        )
        assert updated.supplemental.batch_advisor == Decimal("1")


class TestCourses:

    def test_new_course_is_unassigned(self, catalog):
        course = catalog.add_course(
            "CS101", "Intro", "Engineering", "Computing", 2024, "First",
            hours={"lecture": 3}, sections={"lecture": 2},
        )
        assert course.status == CourseStatus.UNASSIGNED
        assert course.academic_year == "2024"
        assert course.semester == Semester.FIRST
        assert course.hours.lab == Decimal("0")
        assert course.history == ()

    def test_unknown_instructor_rejected(self, catalog):
        with pytest.raises(InstructorNotFoundError):
            catalog.add_course(
                "CS101", "Intro", "Engineering", "Computing", "2024", "First",
                instructor_id=uuid4(),
            )

    def test_bad_semester_rejected(self, catalog):
        with pytest.raises(ValidationError):
            catalog.add_course("CS101", "Intro", "Engineering", "Computing", "2024", "Third")

    def test_duplicate_offering_rejected(self, catalog):
        catalog.add_course("CS101", "Intro", "Engineering", "Computing", "2024", "First")
        with pytest.raises(IntegrityError):
            catalog.add_course("CS101", "Intro", "Engineering", "Computing", "2024", "First")


class TestAssignment:

    def test_assign_while_unassigned(self, catalog, make_instructor, make_course):
        instructor = make_instructor()
        course = make_course()
        updated = catalog.assign_instructor(course.course_id, instructor.instructor_id)
        assert updated.instructor_id == instructor.instructor_id

    def test_assign_after_review_started(self, catalog, make_instructor, make_course):
        first = make_instructor()
        second = make_instructor()
        course = make_course(
            instructor_id=first.instructor_id, status=CourseStatus.DEPT_HEAD_REVIEW,
        )
        with pytest.raises(IllegalTransitionError):
            catalog.assign_instructor(course.course_id, second.instructor_id)
