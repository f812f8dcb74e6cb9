"""
Module: workload_kernel.models.finance_run
Responsibility: The established rate per load unit for one term's finance
    run.

Invariants enforced:
    - UNIQUE(academic_year, semester): one run, one rate per term.
    - The rate changes only through FinanceRunService.override_rate(), which
      records who changed it and when.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workload_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from workload_kernel.db.types import strip_scale

if TYPE_CHECKING:
    from workload_kernel.domain.dtos import FinanceRun


class FinanceRunModel(TrackedBase):
    __tablename__ = "finance_runs"

    __table_args__ = (
        UniqueConstraint("academic_year", "semester", name="uq_finance_runs_term"),
        CheckConstraint("rate_per_load >= 0", name="ck_finance_runs_rate_non_negative"),
    )

    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[str] = mapped_column(String(10), nullable=False)
    rate_per_load: Mapped[Decimal] = mapped_column(nullable=False)
    established_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    established_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False,
    )
    overridden_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    overridden_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True,
    )

    def __repr__(self) -> str:
        return f"<FinanceRun {self.academic_year}/{self.semester} rate={self.rate_per_load}>"

    def to_dto(self) -> FinanceRun:
        from workload_kernel.domain.dtos import FinanceRun as FinanceRunDTO
        from workload_kernel.domain.workflow import Semester

        return FinanceRunDTO(
            run_id=self.id,
            academic_year=self.academic_year,
            semester=Semester(self.semester),
            rate_per_load=strip_scale(self.rate_per_load),
            established_by=self.established_by,
            established_at=self.established_at,
        )
