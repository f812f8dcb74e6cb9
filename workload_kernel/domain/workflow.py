"""
Course approval workflow (``workload_kernel.domain.workflow``).

Responsibility
--------------
The closed set of course statuses, the five approval stages, and the
transition table that is the only source of legal edges.  ``resolve``
answers "what happens if this role takes this action on a course in this
status" without touching storage.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only members of ``CourseStatus``.
* Every status with outgoing edges has exactly one owning role; only that
  role may act on it.
* Skipping a stage is impossible: an ``approved(k)`` status is reachable
  only from ``entry(k)``, ``review(k)`` or (as a correction) ``rejected(k+1)``.
* ``finance-approved`` is terminal.
* ``dept-head-rejected`` is an outcome label: a department-head rejection
  stores ``unassigned``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from workload_kernel.exceptions import AuthorizationError, IllegalTransitionError


class ActorRole(str, Enum):
    """Roles known to the approval chain."""

    INSTRUCTOR = "instructor"
    DEPARTMENT_HEAD = "department-head"
    SCHOOL_DEAN = "school-dean"
    VICE_DIRECTOR = "vice-scientific-director"
    SCIENTIFIC_DIRECTOR = "scientific-director"
    FINANCE = "finance"
    ADMIN = "admin"


class Semester(str, Enum):
    FIRST = "First"
    SECOND = "Second"


class WorkflowAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    # Only the semester reset writes this; it has no edge in the table.
    RESET = "reset"


class CourseStatus(str, Enum):
    UNASSIGNED = "unassigned"
    DEPT_HEAD_REVIEW = "dept-head-review"
    DEPT_HEAD_APPROVED = "dept-head-approved"
    DEPT_HEAD_REJECTED = "dept-head-rejected"
    DEAN_REVIEW = "dean-review"
    DEAN_APPROVED = "dean-approved"
    DEAN_REJECTED = "dean-rejected"
    VICE_DIRECTOR_REVIEW = "vice-director-review"
    VICE_DIRECTOR_APPROVED = "vice-director-approved"
    VICE_DIRECTOR_REJECTED = "vice-director-rejected"
    SCIENTIFIC_DIRECTOR_REVIEW = "scientific-director-review"
    SCIENTIFIC_DIRECTOR_APPROVED = "scientific-director-approved"
    SCIENTIFIC_DIRECTOR_REJECTED = "scientific-director-rejected"
    FINANCE_REVIEW = "finance-review"
    FINANCE_APPROVED = "finance-approved"
    FINANCE_REJECTED = "finance-rejected"


@dataclass(frozen=True)
class StageDefinition:
    """One step of the review chain."""

    name: str
    index: int
    role: ActorRole
    entry: CourseStatus
    review: CourseStatus
    approved: CourseStatus
    rejected: CourseStatus


class Stage(Enum):
    DEPARTMENT_HEAD = StageDefinition(
        "department-head", 0, ActorRole.DEPARTMENT_HEAD,
        CourseStatus.UNASSIGNED,
        CourseStatus.DEPT_HEAD_REVIEW,
        CourseStatus.DEPT_HEAD_APPROVED,
        CourseStatus.DEPT_HEAD_REJECTED,
    )
    DEAN = StageDefinition(
        "dean", 1, ActorRole.SCHOOL_DEAN,
        CourseStatus.DEPT_HEAD_APPROVED,
        CourseStatus.DEAN_REVIEW,
        CourseStatus.DEAN_APPROVED,
        CourseStatus.DEAN_REJECTED,
    )
    VICE_DIRECTOR = StageDefinition(
        "vice-director", 2, ActorRole.VICE_DIRECTOR,
        CourseStatus.DEAN_APPROVED,
        CourseStatus.VICE_DIRECTOR_REVIEW,
        CourseStatus.VICE_DIRECTOR_APPROVED,
        CourseStatus.VICE_DIRECTOR_REJECTED,
    )
    SCIENTIFIC_DIRECTOR = StageDefinition(
        "scientific-director", 3, ActorRole.SCIENTIFIC_DIRECTOR,
        CourseStatus.VICE_DIRECTOR_APPROVED,
        CourseStatus.SCIENTIFIC_DIRECTOR_REVIEW,
        CourseStatus.SCIENTIFIC_DIRECTOR_APPROVED,
        CourseStatus.SCIENTIFIC_DIRECTOR_REJECTED,
    )
    FINANCE = StageDefinition(
        "finance", 4, ActorRole.FINANCE,
        CourseStatus.SCIENTIFIC_DIRECTOR_APPROVED,
        CourseStatus.FINANCE_REVIEW,
        CourseStatus.FINANCE_APPROVED,
        CourseStatus.FINANCE_REJECTED,
    )

    @property
    def definition(self) -> StageDefinition:
        return self.value

    @property
    def role(self) -> ActorRole:
        return self.value.role

    @property
    def index(self) -> int:
        return self.value.index

    @classmethod
    def ordered(cls) -> tuple[Stage, ...]:
        return tuple(sorted(cls, key=lambda s: s.index))


@dataclass(frozen=True)
class Transition:
    """
    A legal edge of the course workflow.

    ``to_state`` is what gets stored; ``outcome`` is the label written to
    the approval history (they differ only for department-head rejections).
    """

    from_state: CourseStatus
    action: WorkflowAction
    to_state: CourseStatus
    role: ActorRole
    outcome: CourseStatus
    requires_remarks: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a course lifecycle."""

    name: str
    description: str
    initial_state: CourseStatus
    states: tuple[CourseStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[CourseStatus, ...] = ()


def _edge(
    from_state: CourseStatus,
    action: WorkflowAction,
    to_state: CourseStatus,
    role: ActorRole,
    outcome: CourseStatus | None = None,
) -> Transition:
    return Transition(
        from_state=from_state,
        action=action,
        to_state=to_state,
        role=role,
        outcome=outcome or to_state,
        requires_remarks=action == WorkflowAction.REJECT,
    )


def _build_transitions() -> tuple[Transition, ...]:
    edges: list[Transition] = []
    stages = Stage.ordered()
    for stage in stages:
        d = stage.definition
        edges.append(_edge(d.entry, WorkflowAction.SUBMIT, d.review, d.role))
        edges.append(_edge(d.entry, WorkflowAction.APPROVE, d.approved, d.role))
        edges.append(_edge(d.review, WorkflowAction.APPROVE, d.approved, d.role))

        if d.index == 0:
            edges.append(_edge(
                d.review, WorkflowAction.REJECT, CourseStatus.UNASSIGNED,
                d.role, outcome=d.rejected,
            ))
            continue

        edges.append(_edge(d.entry, WorkflowAction.REJECT, d.rejected, d.role))
        edges.append(_edge(d.review, WorkflowAction.REJECT, d.rejected, d.role))

        # A rejection hands the course back to the previous stage's role,
        # which either re-approves it or pushes it further back.
        prev = stages[d.index - 1].definition
        edges.append(_edge(d.rejected, WorkflowAction.APPROVE, prev.approved, prev.role))
        if prev.index == 0:
            edges.append(_edge(
                d.rejected, WorkflowAction.REJECT, CourseStatus.UNASSIGNED,
                prev.role, outcome=prev.rejected,
            ))
        else:
            edges.append(_edge(d.rejected, WorkflowAction.REJECT, prev.rejected, prev.role))
    return tuple(edges)


COURSE_APPROVAL_WORKFLOW = Workflow(
    name="course_approval",
    description="Course load approval: department head to finance",
    initial_state=CourseStatus.UNASSIGNED,
    states=tuple(s for s in CourseStatus if s != CourseStatus.DEPT_HEAD_REJECTED),
    transitions=_build_transitions(),
    terminal_states=(CourseStatus.FINANCE_APPROVED,),
)

TRANSITIONS: dict[tuple[CourseStatus, WorkflowAction], Transition] = {
    (t.from_state, t.action): t for t in COURSE_APPROVAL_WORKFLOW.transitions
}

STATUS_OWNER: dict[CourseStatus, ActorRole] = {
    t.from_state: t.role for t in COURSE_APPROVAL_WORKFLOW.transitions
}


def owner_of(status: CourseStatus) -> ActorRole | None:
    """Role allowed to act on ``status`` (None for terminal states)."""
    return STATUS_OWNER.get(status)


def allowed_actions(status: CourseStatus, role: ActorRole) -> tuple[WorkflowAction, ...]:
    return tuple(
        action for (state, action), t in TRANSITIONS.items()
        if state == status and t.role == role
    )


def resolve(
    status: CourseStatus,
    action: WorkflowAction,
    role: ActorRole,
    course_id: str = "",
) -> Transition:
    """
    Look up the edge for ``role`` taking ``action`` on ``status``.

    Raises:
        AuthorizationError: ``role`` does not own ``status``.
        IllegalTransitionError: ``status`` is terminal, or the owner has no
            such action from it.
    """
    owner = owner_of(status)
    if owner is None:
        raise IllegalTransitionError(course_id, status.value, action.value)
    if role != owner:
        raise AuthorizationError(course_id, status.value, role.value, owner.value)

    transition = TRANSITIONS.get((status, action))
    if transition is None:
        raise IllegalTransitionError(course_id, status.value, action.value)
    return transition


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------

_STATUS_STAGE: dict[CourseStatus, tuple[Stage, str]] = {}
for _stage in Stage:
    _d = _stage.definition
    _STATUS_STAGE[_d.review] = (_stage, "review")
    _STATUS_STAGE[_d.approved] = (_stage, "approved")
    _STATUS_STAGE[_d.rejected] = (_stage, "rejected")


def completed_stages(status: CourseStatus) -> int:
    """
    Number of stages whose approval currently stands for a course.

    approved(k) completes k+1, review(k) completes k, and rejected(k)
    completes k-1 because the previous stage has to re-approve it.
    """
    if status == CourseStatus.UNASSIGNED:
        return 0
    stage, kind = _STATUS_STAGE[status]
    if kind == "approved":
        return stage.index + 1
    if kind == "review":
        return stage.index
    return max(stage.index - 1, 0)


def is_approved_at(status: CourseStatus, stage: Stage) -> bool:
    """True when ``status`` is ``stage``'s approved state or later."""
    return completed_stages(status) >= stage.index + 1


def stage_of(status: CourseStatus) -> Stage | None:
    """Stage whose review/approved/rejected family ``status`` belongs to."""
    entry = _STATUS_STAGE.get(status)
    return entry[0] if entry else None
