"""
Typed Exception Hierarchy for the Workload Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval and payment errors are surfaced to several callers (API layer,
dashboards, the reset CLI).  Each caller needs to decide on messaging
without parsing strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.transition(course_id, expected, WorkflowAction.APPROVE, role, actor)
    except StaleStatusError as e:
        refetch_and_retry(e.course_id, e.actual_status)
    except AuthorizationError as e:
        api_response(code=e.code, required_role=e.required_role)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkloadKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- CourseNotFoundError
    |   +-- InstructorNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- FinanceRunNotFoundError
    |
    +-- WorkflowError
    |   +-- AuthorizationError
    |   +-- CourseNotOwnedError
    |   +-- ConflictError
    |       +-- StaleStatusError
    |       +-- IllegalTransitionError
    |       +-- OptimisticLockError
    |
    +-- PaymentError
    |   +-- RateInconsistencyError
    |   +-- PaymentFinalizedError
    |
    +-- ConfirmationError
    |   +-- InvalidConfirmationTokenError
    |   +-- ConfirmationExpiredError
    |
    +-- BatchError
    |   +-- PartialBatchFailureError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                       | When Raised
--------------|----------------------------|-------------------------------------------
Validation    | VALIDATION_ERROR           | Malformed numeric input, missing remarks
Not found     | COURSE_NOT_FOUND           | Course id doesn't exist
              | INSTRUCTOR_NOT_FOUND       | Instructor id doesn't exist
              | PAYMENT_NOT_FOUND          | No payment for the id / term
              | FINANCE_RUN_NOT_FOUND      | No rate established for the term
Workflow      | UNAUTHORIZED_ACTOR         | Role does not own the current stage
              | COURSE_NOT_OWNED           | Bulk item not assigned to the instructor
              | STALE_STATUS               | Expected status no longer matches
              | ILLEGAL_TRANSITION         | No edge for (status, action)
              | OPTIMISTIC_LOCK_CONFLICT   | Concurrent flush on the same course
Payment       | RATE_INCONSISTENT          | Rate differs from the run rate
              | PAYMENT_FINALIZED          | Saving over a paid payment
Confirmation  | INVALID_CONFIRMATION_TOKEN | Token digest/scope mismatch
              | CONFIRMATION_EXPIRED       | Token older than its TTL
Batch         | PARTIAL_BATCH_FAILURE      | raise_for_failures() on a bulk result
Immutability  | IMMUTABILITY_VIOLATION     | Update/delete of an append-only row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFLICTS ARE NEVER AUTO-RESOLVED.  ConflictError means the caller must
   re-fetch the course and decide again.

2. RATE INCONSISTENCY carries the established rate so finance staff can
   either match it or go through the explicit override step:

    except RateInconsistencyError as e:
        prompt_override(current=e.established_rate, requested=e.requested_rate)

3. BULK OPERATIONS do not raise for per-item failures.  They return a
   result with ``failed`` entries.  ``raise_for_failures()`` converts a
   partial result into PartialBatchFailureError for callers that prefer it.
"""


class WorkloadKernelError(Exception):
    """
    Base exception for all workload kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "WORKLOAD_KERNEL_ERROR"


# Validation


class ValidationError(WorkloadKernelError):
    """Input rejected before any state change."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} ({value!r}): {reason}")


# Not found


class NotFoundError(WorkloadKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class CourseNotFoundError(NotFoundError):
    """Course with given ID was not found."""

    code: str = "COURSE_NOT_FOUND"

    def __init__(self, course_id: str):
        self.course_id = course_id
        super().__init__(f"Course not found: {course_id}")


class InstructorNotFoundError(NotFoundError):
    """Instructor with given ID was not found."""

    code: str = "INSTRUCTOR_NOT_FOUND"

    def __init__(self, instructor_id: str):
        self.instructor_id = instructor_id
        super().__init__(f"Instructor not found: {instructor_id}")


class PaymentNotFoundError(NotFoundError):
    """No payment exists for the given key."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Payment not found: {key}")


class FinanceRunNotFoundError(NotFoundError):
    """No finance run (and so no rate) exists for the term."""

    code: str = "FINANCE_RUN_NOT_FOUND"

    def __init__(self, academic_year: str, semester: str):
        self.academic_year = academic_year
        self.semester = semester
        super().__init__(
            f"No finance run established for {semester} semester {academic_year}"
        )


# Workflow


class WorkflowError(WorkloadKernelError):
    """Base exception for approval workflow errors."""

    code: str = "WORKFLOW_ERROR"


class AuthorizationError(WorkflowError):
    """Actor's role does not own the course's current stage."""

    code: str = "UNAUTHORIZED_ACTOR"

    def __init__(
        self,
        course_id: str,
        status: str,
        actor_role: str,
        required_role: str | None,
    ):
        self.course_id = course_id
        self.status = status
        self.actor_role = actor_role
        self.required_role = required_role
        super().__init__(
            f"Role '{actor_role}' may not act on course {course_id} "
            f"in status '{status}' (requires '{required_role}')"
        )


class CourseNotOwnedError(WorkflowError):
    """Course in a bulk request is not assigned to the named instructor."""

    code: str = "COURSE_NOT_OWNED"

    def __init__(self, course_id: str, instructor_id: str):
        self.course_id = course_id
        self.instructor_id = instructor_id
        super().__init__(
            f"Course {course_id} is not assigned to instructor {instructor_id}"
        )


class ConflictError(WorkflowError):
    """Request conflicts with the course's current state."""

    code: str = "CONFLICT"


class StaleStatusError(ConflictError):
    """Expected current status no longer matches the stored status."""

    code: str = "STALE_STATUS"

    def __init__(self, course_id: str, expected_status: str, actual_status: str):
        self.course_id = course_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Course {course_id} is '{actual_status}', "
            f"request expected '{expected_status}'"
        )


class IllegalTransitionError(ConflictError):
    """No edge exists for the (status, action) pair."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, course_id: str, status: str, action: str):
        self.course_id = course_id
        self.status = status
        self.action = action
        super().__init__(
            f"Action '{action}' is not allowed on course {course_id} "
            f"in status '{status}'"
        )


class OptimisticLockError(ConflictError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Payment


class PaymentError(WorkloadKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class RateInconsistencyError(PaymentError):
    """Rate differs from the rate already established for the finance run."""

    code: str = "RATE_INCONSISTENT"

    def __init__(
        self,
        academic_year: str,
        semester: str,
        established_rate: str,
        requested_rate: str,
    ):
        self.academic_year = academic_year
        self.semester = semester
        self.established_rate = established_rate
        self.requested_rate = requested_rate
        super().__init__(
            f"Rate {requested_rate} does not match the rate {established_rate} "
            f"already used for {semester} semester {academic_year}"
        )


class PaymentFinalizedError(PaymentError):
    """Payment has been disbursed and can no longer change."""

    code: str = "PAYMENT_FINALIZED"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} is paid and cannot be modified")


# Confirmation


class ConfirmationError(WorkloadKernelError):
    """Base exception for two-step confirmation failures."""

    code: str = "CONFIRMATION_ERROR"


class InvalidConfirmationTokenError(ConfirmationError):
    """Token is malformed or was issued for a different operation."""

    code: str = "INVALID_CONFIRMATION_TOKEN"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Invalid confirmation token for {operation}")


class ConfirmationExpiredError(ConfirmationError):
    """Token is older than the configured TTL."""

    code: str = "CONFIRMATION_EXPIRED"

    def __init__(self, operation: str, age_seconds: int, ttl_seconds: int):
        self.operation = operation
        self.age_seconds = age_seconds
        self.ttl_seconds = ttl_seconds
        super().__init__(
            f"Confirmation token for {operation} expired "
            f"({age_seconds}s old, ttl {ttl_seconds}s)"
        )


# Batch


class BatchError(WorkloadKernelError):
    """Base exception for bulk operation errors."""

    code: str = "BATCH_ERROR"


class PartialBatchFailureError(BatchError):
    """Some items of a bulk operation failed."""

    code: str = "PARTIAL_BATCH_FAILURE"

    def __init__(self, succeeded: int, failed: list[dict]):
        self.succeeded = succeeded
        self.failed = failed
        super().__init__(
            f"Bulk operation partially failed: {succeeded} succeeded, "
            f"{len(failed)} failed"
        )


# Immutability


class ImmutabilityViolationError(WorkloadKernelError):
    """Attempted to modify an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
