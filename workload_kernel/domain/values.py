"""
Hour and section value objects.

All fields default to zero: a course with no lab simply has lab hours and
lab sections of 0.  Construction through ``from_mapping`` tolerates missing
keys and ``None`` values (both read as 0).  Negative or non-numeric values
are rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from workload_kernel.db.types import ZERO, to_non_negative


@dataclass(frozen=True)
class HourConfig:
    """Contact hours per section."""

    lecture: Decimal = ZERO
    lab: Decimal = ZERO
    tutorial: Decimal = ZERO

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> HourConfig:
        data = data or {}
        return cls(
            lecture=to_non_negative(data.get("lecture"), "lecture_hours", default=ZERO),
            lab=to_non_negative(data.get("lab"), "lab_hours", default=ZERO),
            tutorial=to_non_negative(data.get("tutorial"), "tutorial_hours", default=ZERO),
        )


@dataclass(frozen=True)
class SectionCounts:
    """Number of sections taught per contact type."""

    lecture: Decimal = ZERO
    lab: Decimal = ZERO
    tutorial: Decimal = ZERO

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> SectionCounts:
        data = data or {}
        return cls(
            lecture=to_non_negative(data.get("lecture"), "lecture_sections", default=ZERO),
            lab=to_non_negative(data.get("lab"), "lab_sections", default=ZERO),
            tutorial=to_non_negative(data.get("tutorial"), "tutorial_sections", default=ZERO),
        )


@dataclass(frozen=True)
class SupplementalHours:
    """Per-term hours an instructor carries independent of courses."""

    hdp: Decimal = ZERO
    position: Decimal = ZERO
    batch_advisor: Decimal = ZERO

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> SupplementalHours:
        data = data or {}
        return cls(
            hdp=to_non_negative(data.get("hdp"), "hdp_hours", default=ZERO),
            position=to_non_negative(data.get("position"), "position_hours", default=ZERO),
            batch_advisor=to_non_negative(
                data.get("batch_advisor"), "batch_advisor_hours", default=ZERO,
            ),
        )

    @property
    def total(self) -> Decimal:
        return self.hdp + self.position + self.batch_advisor
