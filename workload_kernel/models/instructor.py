"""
Module: workload_kernel.models.instructor
Responsibility: ORM persistence for instructors and their per-term
    supplemental hours (HDP, position, batch advisor).
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only (DTO imports are deferred into to_dto()).

Invariants enforced:
    - Supplemental hours are non-negative (DB check constraints).
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from workload_kernel.db.base import TrackedBase
from workload_kernel.db.types import ZERO

if TYPE_CHECKING:
    from workload_kernel.domain.dtos import Instructor


class InstructorModel(TrackedBase):
    """An instructor who can be assigned courses and receive payments."""

    __tablename__ = "instructors"

    __table_args__ = (
        CheckConstraint("hdp_hours >= 0", name="ck_instructors_hdp_non_negative"),
        CheckConstraint(
            "position_hours >= 0", name="ck_instructors_position_non_negative",
        ),
        CheckConstraint(
            "batch_advisor_hours >= 0",
            name="ck_instructors_batch_advisor_non_negative",
        ),
        Index("ix_instructors_school_department", "school", "department"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    school: Mapped[str] = mapped_column(String(200), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    hdp_hours: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    position_hours: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)
    batch_advisor_hours: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    def __repr__(self) -> str:
        return f"<Instructor {self.id} {self.name!r}>"

    def to_dto(self) -> Instructor:
        from workload_kernel.domain.dtos import Instructor as InstructorDTO
        from workload_kernel.domain.values import SupplementalHours

        return InstructorDTO(
            instructor_id=self.id,
            name=self.name,
            school=self.school,
            department=self.department,
            supplemental=SupplementalHours(
                hdp=self.hdp_hours or ZERO,
                position=self.position_hours or ZERO,
                batch_advisor=self.batch_advisor_hours or ZERO,
            ),
            email=self.email,
        )
