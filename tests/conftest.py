"""
Pytest fixtures for the workload engine test suite.

Provides:
- An in-memory SQLite session per test (SAVEPOINT-capable, see db.engine)
- Structured log capture
- A deterministic clock and confirmation issuer
- Factories for instructors and for courses at any stored workflow status

Every test gets a fresh database; nothing is shared between tests.
"""

import itertools
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest
from sqlalchemy.orm import sessionmaker

from workload_kernel.db.engine import build_engine, create_tables
from workload_kernel.domain.clock import DeterministicClock
from workload_kernel.domain.workflow import (
    ActorRole,
    CourseStatus,
    Semester,
    Stage,
    WorkflowAction,
)
from workload_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workload_kernel.services.catalog_service import CatalogService
from workload_kernel.services.notification import RecordingNotificationDispatcher
from workload_kernel.services.transition_service import TransitionService
from workload_kernel.utils.confirmation import ConfirmationIssuer
from workload_services.workflow_orchestrator import WorkflowOrchestrator

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

YEAR = "2024"
SEMESTER = Semester.FIRST


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workload_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.bulk_transition(...)
            logs = captured_logs()
            assert any(r["message"] == "bulk_transition_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workload_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = build_engine("sqlite:///:memory:")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Session bound to a fresh in-memory database.  Never committed."""
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    session = factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(
        start=datetime(2024, 9, 2, 8, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def confirmation_issuer(deterministic_clock):
    return ConfirmationIssuer("test-secret", ttl_seconds=900, clock=deterministic_clock)


@pytest.fixture
def notifier():
    return RecordingNotificationDispatcher()


@pytest.fixture
def actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def catalog(session, deterministic_clock):
    return CatalogService(session, deterministic_clock)


@pytest.fixture
def transition_service(session, deterministic_clock, notifier):
    return TransitionService(session, deterministic_clock, notifier)


@pytest.fixture
def orchestrator(session, deterministic_clock, notifier, confirmation_issuer):
    return WorkflowOrchestrator(
        session,
        clock=deterministic_clock,
        notifier=notifier,
        confirmations=confirmation_issuer,
    )


# =============================================================================
# Factories
# =============================================================================


def path_to(target: CourseStatus) -> list[tuple[WorkflowAction, ActorRole]]:
    """
    Shortest sequence of (action, role) steps from ``unassigned`` to ``target``.

    Approves stage by stage; a review status adds a submit, a rejected
    status adds a reject by that stage's role.
    """
    steps: list[tuple[WorkflowAction, ActorRole]] = []
    for stage in Stage.ordered():
        d = stage.definition
        if target == d.entry:
            return steps
        if target == d.review:
            return steps + [(WorkflowAction.SUBMIT, d.role)]
        if target == d.rejected:
            return steps + [(WorkflowAction.REJECT, d.role)]
        steps.append((WorkflowAction.APPROVE, d.role))
        if target == d.approved:
            return steps
    raise ValueError(f"no path to {target}")


@pytest.fixture
def make_instructor(catalog):
    """Create an instructor; supplemental hours default to zero."""
    names = itertools.count(1)

    def _make(name=None, supplemental=None, school="Engineering", department="Computing"):
        return catalog.add_instructor(
            name=name or f"Instructor {next(names):03d}",
            school=school,
            department=department,
            supplemental=supplemental,
        )

    return _make


@pytest.fixture
def make_course(catalog, transition_service):
    """
    Create a course and walk it through the workflow to ``status``.

    Default shape is 3 lecture hours x 1 section (3 load units).
    """
    codes = itertools.count(1)

    def _make(
        instructor_id=None,
        status=CourseStatus.UNASSIGNED,
        hours=None,
        sections=None,
        code=None,
        academic_year=YEAR,
        semester=SEMESTER,
    ):
        course = catalog.add_course(
            code=code or f"CS{next(codes):03d}",
            title="Course under test",
            school="Engineering",
            department="Computing",
            academic_year=academic_year,
            semester=semester,
            hours=hours if hours is not None else {"lecture": 3},
            sections=sections if sections is not None else {"lecture": 1},
            instructor_id=instructor_id,
        )
        current = CourseStatus.UNASSIGNED
        for action, role in path_to(CourseStatus(status)):
            course = transition_service.transition(
                course.course_id,
                current,
                action,
                role,
                TEST_ACTOR_ID,
                remarks="Needs revision" if action == WorkflowAction.REJECT else None,
            )
            current = course.status
        return course

    return _make


@pytest.fixture
def load_bearing_course(make_course):
    """A course whose scientific-director approval stands."""

    def _make(instructor_id, lecture_hours=3, lecture_sections=1, **kwargs):
        return make_course(
            instructor_id=instructor_id,
            status=CourseStatus.SCIENTIFIC_DIRECTOR_APPROVED,
            hours={"lecture": Decimal(str(lecture_hours))},
            sections={"lecture": Decimal(str(lecture_sections))},
            **kwargs,
        )

    return _make
