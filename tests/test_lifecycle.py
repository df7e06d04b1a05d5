import pytest

from app.errors import InvalidTransition
from app.models.actor import ActorKind
from app.models.complaint import ComplaintStatus
from app.services.lifecycle import (
    ADVANCE_ON_HANDLER_REPLY,
    REOPENABLE,
    LifecycleEvent,
    coerce_status,
    next_state,
)

S = ComplaintStatus


class TestSetStatus:
    def test_handlers_may_set_any_status(self) -> None:
        for kind in (ActorKind.staff, ActorKind.agent):
            t = next_state(S.pending, kind, LifecycleEvent.set_status, "resolved")
            assert (t.old_status, t.new_status) == (S.pending, S.resolved)
            assert t.note == "Status updated from pending to resolved"

    def test_submitters_may_not(self) -> None:
        for kind in (ActorKind.citizen, ActorKind.anonymous):
            with pytest.raises(InvalidTransition):
                next_state(S.pending, kind, LifecycleEvent.set_status, "closed")

    def test_same_status_is_unchanged(self) -> None:
        t = next_state(S.in_progress, ActorKind.staff, LifecycleEvent.set_status, S.in_progress)
        assert not t.changed

    def test_unknown_or_missing_status(self) -> None:
        with pytest.raises(InvalidTransition):
            next_state(S.pending, ActorKind.staff, LifecycleEvent.set_status, "done")
        with pytest.raises(InvalidTransition):
            next_state(S.pending, ActorKind.staff, LifecycleEvent.set_status)


class TestAssignment:
    def test_assign_moves_to_assigned(self) -> None:
        t = next_state(S.under_review, ActorKind.agent, LifecycleEvent.assign)
        assert t.new_status == S.assigned

    def test_reassign_is_unchanged(self) -> None:
        assert not next_state(S.assigned, ActorKind.staff, LifecycleEvent.assign).changed

    def test_unassign(self) -> None:
        t = next_state(S.assigned, ActorKind.staff, LifecycleEvent.unassign)
        assert t.new_status == S.pending
        assert not next_state(S.in_progress, ActorKind.staff, LifecycleEvent.unassign).changed

    def test_submitters_cannot_assign(self) -> None:
        with pytest.raises(InvalidTransition):
            next_state(S.pending, ActorKind.citizen, LifecycleEvent.assign)
        with pytest.raises(InvalidTransition):
            next_state(S.assigned, ActorKind.anonymous, LifecycleEvent.unassign)


class TestResponses:
    def test_handler_reply_advances_early_states(self) -> None:
        for status in ADVANCE_ON_HANDLER_REPLY:
            t = next_state(status, ActorKind.agent, LifecycleEvent.respond)
            assert t.new_status == S.in_progress
            assert not t.is_reopen

    def test_handler_reply_leaves_later_states(self) -> None:
        for status in (S.in_progress, S.resolved, S.closed, S.rejected):
            assert not next_state(status, ActorKind.staff, LifecycleEvent.respond).changed

    def test_submitter_reply_reopens(self) -> None:
        for status in REOPENABLE:
            t = next_state(status, ActorKind.citizen, LifecycleEvent.respond)
            assert t.new_status == S.in_progress
            assert t.is_reopen
            assert t.note == "Complaint reopened due to new response from user"

    def test_anonymous_reopen_note(self) -> None:
        t = next_state(S.resolved, ActorKind.anonymous, LifecycleEvent.respond)
        assert t.note == "Complaint reopened due to new response from anonymous user"

    def test_submitter_reply_on_open_complaint(self) -> None:
        for status in (S.pending, S.under_review, S.assigned, S.in_progress):
            assert not next_state(status, ActorKind.citizen, LifecycleEvent.respond).changed


def test_coerce_status() -> None:
    assert coerce_status("closed") == S.closed
    assert coerce_status(S.closed) == S.closed
    with pytest.raises(InvalidTransition):
        coerce_status("archived")
