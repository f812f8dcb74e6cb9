"""
workload_services.finance_run_service -- The per-term rate context.

Responsibility:
    Owns the single rate per load unit that every formula payment of a term
    is priced at.  The first calculation or save of the term establishes
    it; later requests must match it within the tolerance; changing it goes
    through a two-step override.

Architecture position:
    Services -- may import kernel and engines.

Invariants enforced:
    - One FinanceRunModel per (academic_year, semester).
    - A requested rate more than ``tolerance`` away from the established
      rate raises RateInconsistencyError and changes nothing.
    - An override needs a confirmation token bound to the exact old and new
      rate.  Payments already priced at the old rate are reported, not
      silently repriced.

Failure modes:
    - ValidationError for negative or non-numeric rates.
    - RateInconsistencyError, FinanceRunNotFoundError.
    - InvalidConfirmationTokenError / ConfirmationExpiredError on override.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workload_engines.payment import (
    RATE_TOLERANCE,
    check_rate_consistency,
    validate_rate,
)
from workload_kernel.db.types import round2, strip_scale
from workload_kernel.domain.clock import Clock
from workload_kernel.domain.dtos import FinanceRun, PaymentStatus, RateOverrideResult
from workload_kernel.domain.workflow import Semester
from workload_kernel.exceptions import FinanceRunNotFoundError, RateInconsistencyError
from workload_kernel.logging_config import LogContext, get_logger
from workload_kernel.models.finance_run import FinanceRunModel
from workload_kernel.models.payment import PaymentModel
from workload_kernel.services.base import BaseService, coerce_enum, coerce_year
from workload_kernel.utils.confirmation import ConfirmationIssuer

logger = get_logger("services.finance_run")

RATE_OVERRIDE_OPERATION = "finance-rate-override"


def _rate_key(rate: Decimal) -> str:
    return str(round2(rate))


class FinanceRunService(BaseService):
    """Establishes, checks and overrides a term's rate per load unit."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        confirmations: ConfirmationIssuer | None = None,
        tolerance: Decimal = RATE_TOLERANCE,
    ):
        super().__init__(session, clock)
        self._confirmations = confirmations
        self._tolerance = tolerance

    def get_run(self, academic_year: str, semester: Semester | str) -> FinanceRun | None:
        run = self._find(coerce_year(academic_year), coerce_enum(Semester, semester, "semester"))
        return run.to_dto() if run else None

    def established_rate(
        self, academic_year: str, semester: Semester | str,
    ) -> Decimal | None:
        run = self._find(coerce_year(academic_year), coerce_enum(Semester, semester, "semester"))
        return strip_scale(run.rate_per_load) if run else None

    def ensure_rate(
        self,
        academic_year: str,
        semester: Semester | str,
        rate_per_load: object,
        actor_id: UUID,
    ) -> FinanceRunModel:
        """
        Check ``rate_per_load`` against the term's run, establishing the run
        if this is the first rate seen for the term.
        """
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        rate = validate_rate(rate_per_load)
        run = self._find(academic_year, semester)

        if run is None:
            run = FinanceRunModel(
                academic_year=academic_year,
                semester=semester.value,
                rate_per_load=rate,
                established_by=actor_id,
                established_at=self.clock.now(),
            )
            self.session.add(run)
            self.session.flush()
            with LogContext.bind(run_id=run.id, actor_id=actor_id):
                logger.info(
                    "rate_established",
                    extra={
                        "academic_year": academic_year,
                        "semester": semester.value,
                        "rate_per_load": str(rate),
                    },
                )
            return run

        try:
            check_rate_consistency(
                run.rate_per_load,
                rate,
                academic_year=academic_year,
                semester=semester.value,
                tolerance=self._tolerance,
            )
        except RateInconsistencyError:
            logger.warning(
                "rate_inconsistent",
                extra={
                    "academic_year": academic_year,
                    "semester": semester.value,
                    "established_rate": str(strip_scale(run.rate_per_load)),
                    "requested_rate": str(strip_scale(rate)),
                },
            )
            raise
        return run

    def request_rate_override(
        self,
        academic_year: str,
        semester: Semester | str,
        new_rate: object,
    ) -> str:
        """First step of an override: returns the token ``override_rate`` needs."""
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        rate = validate_rate(new_rate)
        run = self._require(academic_year, semester)
        return self._issuer().issue(
            RATE_OVERRIDE_OPERATION,
            self._override_scope(academic_year, semester, run.rate_per_load, rate),
        )

    def override_rate(
        self,
        academic_year: str,
        semester: Semester | str,
        new_rate: object,
        token: str,
        actor_id: UUID,
    ) -> RateOverrideResult:
        semester = coerce_enum(Semester, semester, "semester")
        academic_year = coerce_year(academic_year)
        rate = validate_rate(new_rate)
        run = self._require(academic_year, semester)
        previous = strip_scale(run.rate_per_load)

        self._issuer().verify(
            RATE_OVERRIDE_OPERATION,
            self._override_scope(academic_year, semester, previous, rate),
            token,
        )

        run.rate_per_load = rate
        run.overridden_by = actor_id
        run.overridden_at = self.clock.now()
        self.session.flush()

        pending = self.session.scalars(
            select(PaymentModel)
            .where(
                PaymentModel.academic_year == academic_year,
                PaymentModel.semester == semester.value,
                PaymentModel.status == PaymentStatus.PENDING.value,
            )
            .order_by(PaymentModel.created_at, PaymentModel.id)
        ).all()
        stale_ids = tuple(
            p.id for p in pending
            if abs(p.rate_per_load - rate) > self._tolerance
        )

        with LogContext.bind(run_id=run.id, actor_id=actor_id):
            logger.warning(
                "rate_overridden",
                extra={
                    "academic_year": academic_year,
                    "semester": semester.value,
                    "previous_rate": str(previous),
                    "new_rate": str(rate),
                    "stale_payments": len(stale_ids),
                },
            )
        return RateOverrideResult(
            previous_rate=previous, new_rate=rate, stale_payment_ids=stale_ids,
        )

    # ------------------------------------------------------------------

    def _find(self, academic_year: str, semester: Semester) -> FinanceRunModel | None:
        return self.session.scalars(
            select(FinanceRunModel).where(
                FinanceRunModel.academic_year == academic_year,
                FinanceRunModel.semester == semester.value,
            )
        ).one_or_none()

    def _require(self, academic_year: str, semester: Semester) -> FinanceRunModel:
        run = self._find(academic_year, semester)
        if run is None:
            raise FinanceRunNotFoundError(academic_year, semester.value)
        return run

    def _issuer(self) -> ConfirmationIssuer:
        if self._confirmations is None:
            raise RuntimeError("FinanceRunService was built without a ConfirmationIssuer")
        return self._confirmations

    @staticmethod
    def _override_scope(
        academic_year: str,
        semester: Semester,
        previous: Decimal,
        new: Decimal,
    ) -> dict[str, str]:
        return {
            "academic_year": academic_year,
            "semester": semester.value,
            "previous_rate": _rate_key(previous),
            "new_rate": _rate_key(new),
        }
