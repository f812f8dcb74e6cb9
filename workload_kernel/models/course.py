"""
Module: workload_kernel.models.course
Responsibility: ORM persistence for courses and their append-only approval
    history.

Architecture position: Kernel > Models.  May import from db/base.py,
    db/types.py and exceptions.py.

Invariants enforced:
    - Status is one of the closed CourseStatus values (DB check constraint).
      ``dept-head-rejected`` is never stored.
    - Optimistic concurrency: ``version`` is SQLAlchemy's version_id_col, so
      two writers that both read version N cannot both commit N+1.
    - Approval history is append-only: UPDATE or DELETE of a history row
      raises ImmutabilityViolationError at the ORM level.
    - UNIQUE(course_id, sequence) keeps history ordering total.

Failure modes:
    - StaleDataError (translated to OptimisticLockError by services) on a
      lost version race.
    - ImmutabilityViolationError on history mutation.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workload_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from workload_kernel.db.types import ZERO
from workload_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from workload_kernel.domain.dtos import ApprovalHistoryEntry, Course

_STORED_STATUSES = (
    "unassigned",
    "dept-head-review", "dept-head-approved",
    "dean-review", "dean-approved", "dean-rejected",
    "vice-director-review", "vice-director-approved", "vice-director-rejected",
    "scientific-director-review", "scientific-director-approved",
    "scientific-director-rejected",
    "finance-review", "finance-approved", "finance-rejected",
)

_HISTORY_OUTCOMES = _STORED_STATUSES + ("dept-head-rejected",)


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class CourseModel(TrackedBase):
    """
    A course offering for one academic year and semester.

    Contract:
        ``status`` changes only through TransitionService (or the semester
        reset); every change appends an ApprovalHistoryModel row.
    """

    __tablename__ = "courses"

    __table_args__ = (
        CheckConstraint(
            _in_list("status", _STORED_STATUSES),
            name="ck_courses_valid_status",
        ),
        CheckConstraint(
            "semester IN ('First', 'Second')",
            name="ck_courses_valid_semester",
        ),
        UniqueConstraint(
            "code", "academic_year", "semester", "school", "department",
            name="uq_courses_code_term",
        ),
        Index("ix_courses_term_status", "academic_year", "semester", "status"),
        Index(
            "ix_courses_instructor_term",
            "instructor_id", "academic_year", "semester",
        ),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    school: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[str] = mapped_column(String(10), nullable=False)
    class_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    credit_hours: Mapped[Decimal | None] = mapped_column(nullable=True)

    lecture_hours: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    lab_hours: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    tutorial_hours: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    lecture_sections: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    lab_sections: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    tutorial_sections: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default="unassigned",
    )
    instructor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("instructors.id"), nullable=True,
    )
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    history: Mapped[list["ApprovalHistoryModel"]] = relationship(
        "ApprovalHistoryModel",
        back_populates="course",
        order_by="ApprovalHistoryModel.sequence",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Course {self.code} {self.academic_year}/{self.semester} status={self.status}>"

    @property
    def next_sequence(self) -> int:
        return len(self.history) + 1

    def to_dto(self) -> Course:
        """Convert ORM model to frozen domain DTO."""
        from workload_kernel.domain.dtos import Course as CourseDTO
        from workload_kernel.domain.values import HourConfig, SectionCounts
        from workload_kernel.domain.workflow import CourseStatus, Semester

        return CourseDTO(
            course_id=self.id,
            code=self.code,
            title=self.title,
            school=self.school,
            department=self.department,
            academic_year=self.academic_year,
            semester=Semester(self.semester),
            hours=HourConfig(
                lecture=self.lecture_hours,
                lab=self.lab_hours,
                tutorial=self.tutorial_hours,
            ),
            sections=SectionCounts(
                lecture=self.lecture_sections,
                lab=self.lab_sections,
                tutorial=self.tutorial_sections,
            ),
            status=CourseStatus(self.status),
            instructor_id=self.instructor_id,
            class_year=self.class_year,
            credit_hours=self.credit_hours,
            version=self.version,
            history=tuple(h.to_dto() for h in self.history),
        )


class ApprovalHistoryModel(Base):
    """One approval-chain event for a course.  Append-only."""

    __tablename__ = "approval_history"

    __table_args__ = (
        UniqueConstraint("course_id", "sequence", name="uq_approval_history_sequence"),
        CheckConstraint(
            "action IN ('submit', 'approve', 'reject', 'reset')",
            name="ck_approval_history_valid_action",
        ),
        CheckConstraint(
            _in_list("outcome", _HISTORY_OUTCOMES),
            name="ck_approval_history_valid_outcome",
        ),
        Index("ix_approval_history_course", "course_id"),
    )

    course_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("courses.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    from_status: Mapped[str] = mapped_column(String(50), nullable=False)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    outcome: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False,
    )

    course: Mapped["CourseModel"] = relationship(
        "CourseModel", back_populates="history",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalHistory course={self.course_id} #{self.sequence} "
            f"{self.from_status}->{self.to_status}>"
        )

    def to_dto(self) -> ApprovalHistoryEntry:
        from workload_kernel.domain.dtos import ApprovalHistoryEntry as EntryDTO
        from workload_kernel.domain.workflow import (
            ActorRole,
            CourseStatus,
            WorkflowAction,
        )

        return EntryDTO(
            sequence=self.sequence,
            role=ActorRole(self.role),
            action=WorkflowAction(self.action),
            from_status=CourseStatus(self.from_status),
            to_status=CourseStatus(self.to_status),
            outcome=CourseStatus(self.outcome),
            actor_id=self.actor_id,
            created_at=self.created_at,
            remarks=self.remarks,
        )


# =============================================================================
# ORM-Level Immutability for History (Append-Only)
# =============================================================================


@event.listens_for(ApprovalHistoryModel, "before_update")
def prevent_history_update(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalHistory",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot modify",
    )


@event.listens_for(ApprovalHistoryModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    raise ImmutabilityViolationError(
        entity_type="ApprovalHistory",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot delete",
    )
