"""Complaint status rules.

Every entry point that can move a complaint between states asks
``next_state`` first, so implicit transitions (assignment, staff replies,
submitter reopen) are decided in one place:

    pending -> under_review -> assigned -> in_progress -> resolved/rejected -> closed
    resolved | closed | rejected -> in_progress      (submitter reply reopens)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from app.errors import InvalidTransition
from app.models.actor import ActorKind
from app.models.complaint import ComplaintStatus

HANDLER_KINDS = frozenset({ActorKind.staff, ActorKind.agent})
SUBMITTER_KINDS = frozenset({ActorKind.citizen, ActorKind.anonymous})

REOPENABLE = frozenset(
    {ComplaintStatus.resolved, ComplaintStatus.closed, ComplaintStatus.rejected}
)
ADVANCE_ON_HANDLER_REPLY = frozenset(
    {ComplaintStatus.pending, ComplaintStatus.under_review, ComplaintStatus.assigned}
)


class LifecycleEvent(enum.Enum):
    set_status = "set_status"
    assign = "assign"
    unassign = "unassign"
    respond = "respond"


@dataclass(frozen=True)
class Transition:
    old_status: ComplaintStatus
    new_status: ComplaintStatus
    note: str | None = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status

    @property
    def is_reopen(self) -> bool:
        return (
            self.old_status in REOPENABLE
            and self.new_status == ComplaintStatus.in_progress
        )


def _unchanged(current: ComplaintStatus) -> Transition:
    return Transition(current, current)


def _status_note(old: ComplaintStatus, new: ComplaintStatus) -> str:
    return f"Status updated from {old.value} to {new.value}"


def coerce_status(value) -> ComplaintStatus:
    if isinstance(value, ComplaintStatus):
        return value
    try:
        return ComplaintStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown status: {value}")


def next_state(
    current: ComplaintStatus,
    actor_kind: ActorKind,
    event: LifecycleEvent,
    requested=None,
) -> Transition:
    """Return the transition ``event`` causes from ``current``.

    Pure: no I/O. Raises ``InvalidTransition`` for requests the rules forbid.
    """
    current = coerce_status(current)
    actor_kind = ActorKind(actor_kind)

    if event == LifecycleEvent.set_status:
        if actor_kind not in HANDLER_KINDS:
            raise InvalidTransition("Only staff and agents can change complaint status")
        if requested is None:
            raise InvalidTransition("A target status is required")
        new = coerce_status(requested)
        if new == current:
            return _unchanged(current)
        return Transition(current, new, _status_note(current, new))

    if event == LifecycleEvent.assign:
        if actor_kind not in HANDLER_KINDS:
            raise InvalidTransition("Only staff and agents can assign complaints")
        if current == ComplaintStatus.assigned:
            return _unchanged(current)
        return Transition(
            current, ComplaintStatus.assigned, _status_note(current, ComplaintStatus.assigned)
        )

    if event == LifecycleEvent.unassign:
        if actor_kind not in HANDLER_KINDS:
            raise InvalidTransition("Only staff and agents can unassign complaints")
        if current != ComplaintStatus.assigned:
            return _unchanged(current)
        return Transition(
            current, ComplaintStatus.pending, _status_note(current, ComplaintStatus.pending)
        )

    if event == LifecycleEvent.respond:
        if actor_kind in HANDLER_KINDS:
            if current in ADVANCE_ON_HANDLER_REPLY:
                return Transition(
                    current,
                    ComplaintStatus.in_progress,
                    _status_note(current, ComplaintStatus.in_progress),
                )
            return _unchanged(current)
        # Reopen from a non-terminal state is a no-op.
        if current in REOPENABLE:
            who = "user" if actor_kind == ActorKind.citizen else "anonymous user"
            return Transition(
                current,
                ComplaintStatus.in_progress,
                f"Complaint reopened due to new response from {who}",
            )
        return _unchanged(current)

    raise InvalidTransition(f"Unsupported lifecycle event: {event}")
