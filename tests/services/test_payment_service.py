"""
Tests for PaymentService -- formula and manual payments.

Covers:
- calculate_payment(): load recomputed from courses, rate established
- save_payment(): create, idempotent re-save, update with history,
  supplied load recomputed, incomplete-load flag, paid payments final
- Rate consistency across instructors of one term
- save_batch(), get_payment(), mark_paid()
- save_manual_course_payment(): literal sum, stage guard, no rate context
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from workload_kernel.domain.dtos import PaymentStatus
from workload_kernel.domain.workflow import CourseStatus, Semester
from workload_kernel.exceptions import (
    InstructorNotFoundError,
    PaymentFinalizedError,
    PaymentNotFoundError,
    RateInconsistencyError,
    ValidationError,
)
from workload_services.finance_run_service import FinanceRunService
from workload_services.payment_service import PaymentService

YEAR = "2024"
SEMESTER = Semester.FIRST


@pytest.fixture
def finance_runs(session, deterministic_clock, confirmation_issuer):
    return FinanceRunService(session, deterministic_clock, confirmation_issuer)


@pytest.fixture
def payment_service(session, finance_runs, deterministic_clock):
    return PaymentService(session, finance_runs, deterministic_clock)


@pytest.fixture
def overloaded_instructor(make_instructor, load_bearing_course):
    """Instructor with 15 load units: one course of 3 hours x 5 sections."""
    instructor = make_instructor()
    load_bearing_course(instructor.instructor_id, lecture_hours=3, lecture_sections=5)
    return instructor


class TestCalculatePayment:

    def test_overload_priced_at_rate(self, payment_service, overloaded_instructor, actor_id):
        quote = payment_service.calculate_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert quote.total_load == Decimal("15.00")
        assert quote.overload == Decimal("3.00")
        assert quote.amount == Decimal("3000.00")

    def test_full_load_pays_zero(self, payment_service, make_instructor, load_bearing_course, actor_id):
        instructor = make_instructor()
        load_bearing_course(instructor.instructor_id, lecture_hours=4, lecture_sections=3)
        quote = payment_service.calculate_payment(
            instructor.instructor_id, YEAR, SEMESTER, Decimal("500"), actor_id,
        )
        assert quote.total_load == Decimal("12.00")
        assert quote.amount == Decimal("0.00")

    def test_supplemental_hours_count(self, payment_service, make_instructor, load_bearing_course, actor_id):
        instructor = make_instructor(supplemental={"hdp": 2, "batch_advisor": 1})
        load_bearing_course(instructor.instructor_id, lecture_hours=3, lecture_sections=4)
        quote = payment_service.calculate_payment(
            instructor.instructor_id, YEAR, SEMESTER, Decimal("100"), actor_id,
        )
        assert quote.total_load == Decimal("15.00")
        assert quote.amount == Decimal("300.00")

    def test_courses_below_finance_do_not_count(self, payment_service, make_instructor, make_course, actor_id):
        instructor = make_instructor()
        make_course(
            instructor_id=instructor.instructor_id,
            status=CourseStatus.DEAN_APPROVED,
            hours={"lecture": 20},
        )
        quote = payment_service.calculate_payment(
            instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert quote.total_load == Decimal("0.00")

    def test_explicit_load(self, payment_service, make_instructor, actor_id):
        instructor = make_instructor()
        quote = payment_service.calculate_payment(
            instructor.instructor_id, YEAR, SEMESTER, 1000, actor_id, total_load="15",
        )
        assert quote.amount == Decimal("3000.00")

    def test_establishes_run_rate(self, payment_service, finance_runs, overloaded_instructor, actor_id):
        payment_service.calculate_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("800"), actor_id,
        )
        assert finance_runs.established_rate(YEAR, SEMESTER) == Decimal("800")

    def test_negative_rate_rejected_before_run_exists(
        self, payment_service, finance_runs, overloaded_instructor, actor_id,
    ):
        with pytest.raises(ValidationError):
            payment_service.calculate_payment(
                overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("-5"), actor_id,
            )
        assert finance_runs.get_run(YEAR, SEMESTER) is None

    def test_unknown_instructor(self, payment_service, actor_id):
        with pytest.raises(InstructorNotFoundError):
            payment_service.calculate_payment(uuid4(), YEAR, SEMESTER, 100, actor_id)


class TestRateConsistencyAcrossInstructors:

    def test_second_instructor_at_different_rate_rejected(
        self, payment_service, make_instructor, load_bearing_course, actor_id,
    ):
        a = make_instructor()
        b = make_instructor()
        load_bearing_course(a.instructor_id, lecture_sections=5)
        load_bearing_course(b.instructor_id, lecture_sections=5)

        payment_service.save_payment(a.instructor_id, YEAR, SEMESTER, Decimal("800"), actor_id)

        with pytest.raises(RateInconsistencyError):
            payment_service.calculate_payment(
                b.instructor_id, YEAR, SEMESTER, Decimal("810"), actor_id,
            )

    def test_rate_within_tolerance_accepted(
        self, payment_service, make_instructor, load_bearing_course, actor_id,
    ):
        a = make_instructor()
        b = make_instructor()
        load_bearing_course(a.instructor_id, lecture_sections=5)
        load_bearing_course(b.instructor_id, lecture_sections=5)

        payment_service.save_payment(a.instructor_id, YEAR, SEMESTER, Decimal("800"), actor_id)
        quote = payment_service.calculate_payment(
            b.instructor_id, YEAR, SEMESTER, Decimal("800.01"), actor_id,
        )
        assert quote.amount == Decimal("2400.03")

    def test_other_term_has_its_own_rate(
        self, payment_service, make_instructor, load_bearing_course, actor_id,
    ):
        a = make_instructor()
        load_bearing_course(a.instructor_id, lecture_sections=5)
        load_bearing_course(a.instructor_id, lecture_sections=5, semester=Semester.SECOND)

        payment_service.save_payment(a.instructor_id, YEAR, SEMESTER, Decimal("800"), actor_id)
        payment = payment_service.save_payment(
            a.instructor_id, YEAR, Semester.SECOND, Decimal("900"), actor_id,
        )
        assert payment.rate_per_load == Decimal("900")


class TestSavePayment:

    def test_creates_pending_payment_with_history(self, payment_service, overloaded_instructor, actor_id):
        payment = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert payment.status == PaymentStatus.PENDING
        assert payment.total_amount == Decimal("3000.00")
        assert payment.components.overload_amount == Decimal("3000.00")
        assert payment.currency == "ETB"
        assert payment.tx_ref.startswith(f"PAY-{str(overloaded_instructor.instructor_id)[:8]}-")
        assert len(payment.history) == 1
        assert payment.history[0].remarks == "Initial payment: 3000.00 ETB (1000.00 ETB per load)"

    def test_resave_is_idempotent(self, payment_service, overloaded_instructor, actor_id, captured_logs):
        first = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        second = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert second.payment_id == first.payment_id
        assert second.tx_ref == first.tx_ref
        assert len(second.history) == 1
        assert any(r["message"] == "payment_unchanged" for r in captured_logs())

    def test_changed_load_updates_payment(
        self, payment_service, overloaded_instructor, load_bearing_course, actor_id,
    ):
        first = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        load_bearing_course(overloaded_instructor.instructor_id, lecture_hours=2, lecture_sections=1)

        second = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert second.payment_id == first.payment_id
        assert second.total_load == Decimal("17.00")
        assert second.total_amount == Decimal("5000.00")
        assert len(second.history) == 2
        assert second.history[-1].remarks.startswith("Updated payment: 5000.00 ETB")

    def test_supplied_load_is_recomputed(self, payment_service, overloaded_instructor, actor_id, captured_logs):
        payment = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
            total_load=Decimal("20"),
        )
        assert payment.total_load == Decimal("15.00")
        assert payment.total_amount == Decimal("3000.00")
        warnings = [r for r in captured_logs() if r["message"] == "stale_total_load_recomputed"]
        assert warnings and warnings[0]["supplied_load"] == "20"

    def test_zero_payment_with_pending_courses_is_flagged(
        self, payment_service, make_instructor, make_course, actor_id, captured_logs,
    ):
        instructor = make_instructor()
        make_course(instructor_id=instructor.instructor_id, status=CourseStatus.DEAN_REVIEW)

        payment = payment_service.save_payment(
            instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert payment.total_amount == Decimal("0.00")
        assert payment.incomplete_load is True
        assert any(r["message"] == "incomplete_load_flagged" for r in captured_logs())

    def test_legitimate_zero_is_not_flagged(
        self, payment_service, make_instructor, load_bearing_course, actor_id,
    ):
        instructor = make_instructor()
        load_bearing_course(instructor.instructor_id, lecture_sections=2)
        payment = payment_service.save_payment(
            instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        assert payment.total_amount == Decimal("0.00")
        assert payment.incomplete_load is False

    def test_paid_payment_is_final(self, payment_service, overloaded_instructor, load_bearing_course, actor_id):
        payment = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        payment_service.mark_paid(payment.payment_id, actor_id)
        load_bearing_course(overloaded_instructor.instructor_id)

        with pytest.raises(PaymentFinalizedError):
            payment_service.save_payment(
                overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
            )


class TestMarkPaid:

    def test_mark_paid(self, payment_service, overloaded_instructor, actor_id):
        payment = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        paid = payment_service.mark_paid(payment.payment_id, actor_id)
        assert paid.status == PaymentStatus.PAID
        assert paid.history[-1].status == PaymentStatus.PAID
        assert paid.history[-1].remarks == "Payment disbursed: 3000.00 ETB"

    def test_mark_paid_twice(self, payment_service, overloaded_instructor, actor_id):
        payment = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        payment_service.mark_paid(payment.payment_id, actor_id)
        with pytest.raises(PaymentFinalizedError):
            payment_service.mark_paid(payment.payment_id, actor_id)

    def test_unknown_payment(self, payment_service, actor_id):
        with pytest.raises(PaymentNotFoundError):
            payment_service.mark_paid(uuid4(), actor_id)


class TestBatchAndLookup:

    def test_save_batch_covers_term_instructors(
        self, payment_service, make_instructor, load_bearing_course, actor_id,
    ):
        a = make_instructor()
        b = make_instructor()
        load_bearing_course(a.instructor_id, lecture_sections=5)
        load_bearing_course(b.instructor_id, lecture_sections=6)

        saved = payment_service.save_batch(YEAR, SEMESTER, Decimal("100"), actor_id)

        amounts = {p.instructor_id: p.total_amount for p in saved}
        assert amounts == {
            a.instructor_id: Decimal("300.00"),
            b.instructor_id: Decimal("600.00"),
        }

    def test_get_payment(self, payment_service, overloaded_instructor, actor_id):
        saved = payment_service.save_payment(
            overloaded_instructor.instructor_id, YEAR, SEMESTER, Decimal("1000"), actor_id,
        )
        found = payment_service.get_payment(overloaded_instructor.instructor_id, YEAR, "First")
        assert found.payment_id == saved.payment_id

    def test_get_missing_payment(self, payment_service, overloaded_instructor):
        with pytest.raises(PaymentNotFoundError):
            payment_service.get_payment(overloaded_instructor.instructor_id, YEAR, SEMESTER)


class TestManualCoursePayment:

    def test_total_is_literal_sum(self, payment_service, finance_runs, make_instructor, load_bearing_course, actor_id):
        instructor = make_instructor()
        course = load_bearing_course(instructor.instructor_id)

        record = payment_service.save_manual_course_payment(
            course.course_id, actor_id,
            base_amount="1000", hdp_allowance="200", overload_amount="150.50",
        )
        assert record.total_amount == Decimal("1350.50")
        assert record.instructor_id == instructor.instructor_id
        assert finance_runs.get_run(YEAR, SEMESTER) is None

    def test_resave_replaces_components(self, payment_service, make_instructor, load_bearing_course, actor_id):
        instructor = make_instructor()
        course = load_bearing_course(instructor.instructor_id)
        first = payment_service.save_manual_course_payment(
            course.course_id, actor_id, base_amount="1000",
        )
        second = payment_service.save_manual_course_payment(
            course.course_id, actor_id, position_allowance="300",
        )
        assert second.payment_id == first.payment_id
        assert second.components.base_amount == Decimal("0.00")
        assert second.total_amount == Decimal("300.00")

    def test_course_below_finance_rejected(self, payment_service, make_instructor, make_course, actor_id):
        instructor = make_instructor()
        course = make_course(
            instructor_id=instructor.instructor_id, status=CourseStatus.VICE_DIRECTOR_APPROVED,
        )
        with pytest.raises(ValidationError):
            payment_service.save_manual_course_payment(course.course_id, actor_id, base_amount="1")

    def test_negative_component_rejected(self, payment_service, make_instructor, load_bearing_course, actor_id):
        instructor = make_instructor()
        course = load_bearing_course(instructor.instructor_id)
        with pytest.raises(ValidationError):
            payment_service.save_manual_course_payment(
                course.course_id, actor_id, hdp_allowance="-10",
            )
