"""
Tests for the course workflow transition table.

Covers:
- Every edge references known statuses and has one owning role
- Skipping a stage is impossible
- Terminal finance-approved, rejection routing to the previous role
- resolve(): authorization vs illegal-action errors
- completed_stages() / is_approved_at() / stage_of()
"""

import pytest

from workload_kernel.domain.workflow import (
    COURSE_APPROVAL_WORKFLOW,
    TRANSITIONS,
    ActorRole,
    CourseStatus,
    Stage,
    WorkflowAction,
    allowed_actions,
    completed_stages,
    is_approved_at,
    owner_of,
    resolve,
    stage_of,
)
from workload_kernel.exceptions import (
    AuthorizationError,
    ConflictError,
    IllegalTransitionError,
)


class TestTableShape:

    def test_edges_use_known_statuses(self):
        for t in COURSE_APPROVAL_WORKFLOW.transitions:
            assert t.from_state in CourseStatus
            assert t.to_state in CourseStatus
            assert t.outcome in CourseStatus

    def test_no_duplicate_edges(self):
        assert len(TRANSITIONS) == len(COURSE_APPROVAL_WORKFLOW.transitions)

    def test_each_status_has_a_single_owner(self):
        owners: dict[CourseStatus, set[ActorRole]] = {}
        for t in COURSE_APPROVAL_WORKFLOW.transitions:
            owners.setdefault(t.from_state, set()).add(t.role)
        assert all(len(roles) == 1 for roles in owners.values())

    def test_finance_approved_is_terminal(self):
        assert owner_of(CourseStatus.FINANCE_APPROVED) is None
        assert not any(
            t.from_state == CourseStatus.FINANCE_APPROVED
            for t in COURSE_APPROVAL_WORKFLOW.transitions
        )

    def test_dept_head_rejected_is_never_stored(self):
        assert CourseStatus.DEPT_HEAD_REJECTED not in COURSE_APPROVAL_WORKFLOW.states
        assert all(
            t.to_state != CourseStatus.DEPT_HEAD_REJECTED
            for t in COURSE_APPROVAL_WORKFLOW.transitions
        )

    def test_only_rejections_require_remarks(self):
        for t in COURSE_APPROVAL_WORKFLOW.transitions:
            assert t.requires_remarks == (t.action == WorkflowAction.REJECT)

    def test_no_stage_can_be_skipped(self):
        """approved(k) is reachable only from entry(k), review(k) or rejected(k+1)."""
        stages = Stage.ordered()
        for stage in stages:
            d = stage.definition
            sources = {
                t.from_state for t in COURSE_APPROVAL_WORKFLOW.transitions
                if t.to_state == d.approved
            }
            allowed = {d.entry, d.review}
            if d.index + 1 < len(stages):
                allowed.add(stages[d.index + 1].definition.rejected)
            assert sources <= allowed, stage

    def test_reset_has_no_edge(self):
        assert all(t.action != WorkflowAction.RESET for t in COURSE_APPROVAL_WORKFLOW.transitions)


class TestRouting:

    def test_dept_head_rejection_stores_unassigned(self):
        edge = resolve(
            CourseStatus.DEPT_HEAD_REVIEW, WorkflowAction.REJECT, ActorRole.DEPARTMENT_HEAD,
        )
        assert edge.to_state == CourseStatus.UNASSIGNED
        assert edge.outcome == CourseStatus.DEPT_HEAD_REJECTED

    def test_rejection_belongs_to_previous_role(self):
        assert owner_of(CourseStatus.DEAN_REJECTED) == ActorRole.DEPARTMENT_HEAD
        assert owner_of(CourseStatus.FINANCE_REJECTED) == ActorRole.SCIENTIFIC_DIRECTOR

    def test_finance_rejected_reapproval_reenters_finance(self):
        edge = resolve(
            CourseStatus.FINANCE_REJECTED,
            WorkflowAction.APPROVE,
            ActorRole.SCIENTIFIC_DIRECTOR,
        )
        assert edge.to_state == CourseStatus.SCIENTIFIC_DIRECTOR_APPROVED
        assert owner_of(edge.to_state) == ActorRole.FINANCE

    def test_dean_rejected_pushed_back_to_unassigned(self):
        edge = resolve(
            CourseStatus.DEAN_REJECTED, WorkflowAction.REJECT, ActorRole.DEPARTMENT_HEAD,
        )
        assert edge.to_state == CourseStatus.UNASSIGNED
        assert edge.outcome == CourseStatus.DEPT_HEAD_REJECTED

    def test_direct_approval_from_entry(self):
        edge = resolve(
            CourseStatus.DEPT_HEAD_APPROVED, WorkflowAction.APPROVE, ActorRole.SCHOOL_DEAN,
        )
        assert edge.to_state == CourseStatus.DEAN_APPROVED

    def test_allowed_actions_for_owner_and_others(self):
        assert set(allowed_actions(CourseStatus.DEAN_REVIEW, ActorRole.SCHOOL_DEAN)) == {
            WorkflowAction.APPROVE,
            WorkflowAction.REJECT,
        }
        assert allowed_actions(CourseStatus.DEAN_REVIEW, ActorRole.FINANCE) == ()


class TestResolveErrors:

    def test_wrong_role_is_authorization_error(self):
        with pytest.raises(AuthorizationError) as exc:
            resolve(CourseStatus.DEAN_REVIEW, WorkflowAction.APPROVE, ActorRole.VICE_DIRECTOR)
        assert exc.value.required_role == ActorRole.SCHOOL_DEAN.value
        assert exc.value.code == "UNAUTHORIZED_ACTOR"

    def test_missing_edge_is_conflict(self):
        with pytest.raises(IllegalTransitionError) as exc:
            resolve(CourseStatus.DEAN_REVIEW, WorkflowAction.SUBMIT, ActorRole.SCHOOL_DEAN)
        assert isinstance(exc.value, ConflictError)

    def test_terminal_status_is_conflict(self):
        with pytest.raises(IllegalTransitionError):
            resolve(CourseStatus.FINANCE_APPROVED, WorkflowAction.REJECT, ActorRole.FINANCE)

    def test_admin_cannot_drive_the_chain(self):
        with pytest.raises(AuthorizationError):
            resolve(CourseStatus.UNASSIGNED, WorkflowAction.APPROVE, ActorRole.ADMIN)


class TestProgress:

    @pytest.mark.parametrize(
        "status, expected",
        [
            (CourseStatus.UNASSIGNED, 0),
            (CourseStatus.DEPT_HEAD_REVIEW, 0),
            (CourseStatus.DEPT_HEAD_APPROVED, 1),
            (CourseStatus.DEAN_REJECTED, 0),
            (CourseStatus.VICE_DIRECTOR_REJECTED, 1),
            (CourseStatus.SCIENTIFIC_DIRECTOR_APPROVED, 4),
            (CourseStatus.FINANCE_REVIEW, 4),
            (CourseStatus.FINANCE_REJECTED, 3),
            (CourseStatus.FINANCE_APPROVED, 5),
        ],
    )
    def test_completed_stages(self, status, expected):
        assert completed_stages(status) == expected

    def test_is_approved_at(self):
        assert is_approved_at(CourseStatus.DEAN_APPROVED, Stage.DEAN)
        assert not is_approved_at(CourseStatus.DEAN_REVIEW, Stage.DEAN)

    def test_stage_of(self):
        assert stage_of(CourseStatus.FINANCE_REJECTED) is Stage.FINANCE
        assert stage_of(CourseStatus.UNASSIGNED) is None
