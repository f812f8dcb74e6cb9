"""
Tests for FinanceRunService -- the per-term rate context.

Covers:
- ensure_rate(): establishes once, accepts matching rate, rejects drift
- Inconsistency logged with both rates
- Two-step override: token required, bound to old and new rate, expiry
- Pending payments priced at the old rate reported as stale
"""

from decimal import Decimal

import pytest

from workload_kernel.domain.workflow import Semester
from workload_kernel.exceptions import (
    ConfirmationExpiredError,
    FinanceRunNotFoundError,
    InvalidConfirmationTokenError,
    RateInconsistencyError,
)
from workload_services.finance_run_service import FinanceRunService
from workload_services.payment_service import PaymentService

YEAR = "2024"


@pytest.fixture
def finance_runs(session, deterministic_clock, confirmation_issuer):
    return FinanceRunService(session, deterministic_clock, confirmation_issuer)


class TestEnsureRate:

    def test_first_rate_establishes_run(self, finance_runs, actor_id, deterministic_clock, captured_logs):
        run = finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)

        assert run.rate_per_load == Decimal("800")
        dto = finance_runs.get_run(YEAR, "First")
        assert dto.established_by == actor_id
        assert any(r["message"] == "rate_established" for r in captured_logs())

    def test_matching_rate_reuses_run(self, finance_runs, actor_id):
        first = finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        second = finance_runs.ensure_rate(YEAR, Semester.FIRST, "800.00", actor_id)
        assert second.id == first.id

    def test_drifting_rate_rejected_and_logged(self, finance_runs, session, actor_id, captured_logs):
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        # Reload the run so the rate comes back at storage scale
        session.expire_all()

        with pytest.raises(RateInconsistencyError) as exc:
            finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("810"), actor_id)

        assert exc.value.established_rate == "800"
        assert exc.value.requested_rate == "810"

        assert finance_runs.established_rate(YEAR, Semester.FIRST) == Decimal("800")
        record = next(r for r in captured_logs() if r["message"] == "rate_inconsistent")
        assert record["level"] == "WARNING"
        assert record["established_rate"] == "800"
        assert record["requested_rate"] == "810"

    def test_terms_are_independent(self, finance_runs, actor_id):
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        finance_runs.ensure_rate(YEAR, Semester.SECOND, Decimal("950"), actor_id)
        assert finance_runs.established_rate(YEAR, Semester.SECOND) == Decimal("950")

    def test_no_run_means_no_rate(self, finance_runs):
        assert finance_runs.established_rate(YEAR, Semester.FIRST) is None


class TestOverride:

    def test_override_with_token(self, finance_runs, actor_id):
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        token = finance_runs.request_rate_override(YEAR, Semester.FIRST, Decimal("810"))

        result = finance_runs.override_rate(
            YEAR, Semester.FIRST, Decimal("810"), token, actor_id,
        )

        assert result.previous_rate == Decimal("800")
        assert result.new_rate == Decimal("810")
        assert finance_runs.established_rate(YEAR, Semester.FIRST) == Decimal("810")
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("810"), actor_id)

    def test_token_bound_to_new_rate(self, finance_runs, actor_id):
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        token = finance_runs.request_rate_override(YEAR, Semester.FIRST, Decimal("810"))

        with pytest.raises(InvalidConfirmationTokenError):
            finance_runs.override_rate(YEAR, Semester.FIRST, Decimal("900"), token, actor_id)
        assert finance_runs.established_rate(YEAR, Semester.FIRST) == Decimal("800")

    def test_garbage_token(self, finance_runs, actor_id):
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        with pytest.raises(InvalidConfirmationTokenError):
            finance_runs.override_rate(YEAR, Semester.FIRST, Decimal("810"), "nope", actor_id)

    def test_expired_token(self, finance_runs, actor_id, deterministic_clock):
        finance_runs.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        token = finance_runs.request_rate_override(YEAR, Semester.FIRST, Decimal("810"))
        deterministic_clock.advance(901)

        with pytest.raises(ConfirmationExpiredError):
            finance_runs.override_rate(YEAR, Semester.FIRST, Decimal("810"), token, actor_id)

    def test_override_without_run(self, finance_runs):
        with pytest.raises(FinanceRunNotFoundError):
            finance_runs.request_rate_override(YEAR, Semester.FIRST, Decimal("810"))

    def test_override_without_issuer(self, session, deterministic_clock, actor_id):
        service = FinanceRunService(session, deterministic_clock)
        service.ensure_rate(YEAR, Semester.FIRST, Decimal("800"), actor_id)
        with pytest.raises(RuntimeError):
            service.request_rate_override(YEAR, Semester.FIRST, Decimal("810"))

    def test_pending_payments_reported_stale(
        self, session, finance_runs, deterministic_clock, make_instructor, load_bearing_course, actor_id,
    ):
        payments = PaymentService(session, finance_runs, deterministic_clock)
        instructor = make_instructor()
        load_bearing_course(instructor.instructor_id, lecture_sections=5)
        saved = payments.save_payment(
            instructor.instructor_id, YEAR, Semester.FIRST, Decimal("800"), actor_id,
        )

        token = finance_runs.request_rate_override(YEAR, Semester.FIRST, Decimal("850"))
        result = finance_runs.override_rate(
            YEAR, Semester.FIRST, Decimal("850"), token, actor_id,
        )

        assert result.stale_payment_ids == (saved.payment_id,)
        # Not repriced until saved again
        assert payments.get_payment(
            instructor.instructor_id, YEAR, Semester.FIRST,
        ).total_amount == Decimal("2400.00")

        repriced = payments.save_payment(
            instructor.instructor_id, YEAR, Semester.FIRST, Decimal("850"), actor_id,
        )
        assert repriced.total_amount == Decimal("2550.00")
