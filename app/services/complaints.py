from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager
from datetime import datetime
from typing import List

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import (
    AgencyMismatch,
    ComplaintNotFound,
    Forbidden,
    InvalidAssignment,
    TransactionAborted,
)
from app.models.actor import ActorKind, Agent
from app.models.complaint import (
    AUTHOR_TYPE_BY_KIND,
    SUBMISSION_TYPE_BY_KIND,
    Complaint,
    ComplaintPriority,
    ComplaintResponse,
    ComplaintStatus,
    ResponseAuthorType,
    SubmissionType,
)
from app.observability import LIFECYCLE_TRANSITIONS
from app.schemas.complaint import ComplaintCreate
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    utcnow,
)
from app.services.directory import agencies, categories
from app.services.event import EventType, publish_event
from app.services.lifecycle import (
    HANDLER_KINDS,
    LifecycleEvent,
    Transition,
    coerce_status,
    next_state,
)
from app.services.notification import notifications
from app.services.notification_templates import TemplateKind
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

RECEIVED_NOTE = "Complaint received and pending review."
_MAX_TRACKING_ATTEMPTS = 10


def generate_tracking_id(now: datetime | None = None) -> str:
    year = (now or utcnow()).year
    return f"SAY-{year}-{secrets.randbelow(100000):05d}"


@contextmanager
def _lifecycle_write(db: Session, what: str):
    """Commit everything written inside the block, or nothing.

    Domain errors propagate unchanged; any other failure surfaces as
    ``TransactionAborted`` so the caller can retry.
    """
    try:
        yield
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Rolled back %s: %s", what, e)
        raise TransactionAborted() from e
    except Exception as e:
        db.rollback()
        logger.exception("Rolled back %s after unexpected error", what)
        raise TransactionAborted() from e


def _lock(db: Session, complaint_id) -> Complaint:
    complaint = (
        db.query(Complaint)
        .filter(Complaint.id == coerce_uuid(complaint_id))
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not complaint:
        raise ComplaintNotFound()
    return complaint


def _ensure_handler(complaint: Complaint, actor) -> None:
    if actor.kind not in HANDLER_KINDS:
        raise Forbidden()
    if actor.kind == ActorKind.agent and complaint.agency_id != actor.agency_id:
        raise AgencyMismatch()


def _status_context(complaint: Complaint, transition: Transition) -> dict:
    return {
        "complaint_id": complaint.id,
        "complaint_title": complaint.title,
        "old_status": transition.old_status.value,
        "new_status": transition.new_status.value,
    }


def _record_transition(
    db: Session,
    complaint: Complaint,
    transition: Transition,
    actor,
    note: str | None = None,
) -> ComplaintResponse | None:
    """Apply a status change with its audit entry and submitter notification."""
    if not transition.changed:
        return None
    now = utcnow()
    complaint.status = transition.new_status
    if transition.new_status == ComplaintStatus.resolved and not complaint.resolved_at:
        complaint.resolved_at = now
    if transition.new_status == ComplaintStatus.closed and not complaint.closed_at:
        complaint.closed_at = now

    audit = ComplaintResponse(
        complaint_id=complaint.id,
        author_type=ResponseAuthorType.system,
        content=note or transition.note,
        is_internal=False,
        old_status=transition.old_status,
        new_status=transition.new_status,
    )
    audit.set_author(actor.ref if actor is not None else None)
    db.add(audit)

    submitter = complaint.submitter
    if submitter is not None:
        notifications.notify(
            db,
            submitter,
            TemplateKind.status_changed,
            _status_context(complaint, transition),
        )
    db.flush()
    return audit


def _after_transition(complaint: Complaint, transition: Transition, actor) -> None:
    if not transition.changed:
        return
    LIFECYCLE_TRANSITIONS.labels(
        transition.old_status.value, transition.new_status.value
    ).inc()
    logger.info(
        "Complaint %s moved %s -> %s",
        complaint.id,
        transition.old_status.value,
        transition.new_status.value,
    )
    publish_event(
        EventType.complaint_status_changed,
        "complaint",
        complaint.id,
        actor_id=actor.id if actor is not None else None,
        complaint_id=complaint.id,
        payload={
            "old_status": transition.old_status.value,
            "new_status": transition.new_status.value,
        },
    )


class Complaints(ListResponseMixin):
    @staticmethod
    def submit(
        db: Session,
        actor,
        payload: ComplaintCreate,
        contact_info: dict | None = None,
    ) -> Complaint:
        """File a complaint for a citizen, an anonymous identity, or (actor None)
        an external reporter.

        The complaint, its "received" audit entry and the submitter's
        notification are committed together.
        """
        if actor is None:
            submission_type = SubmissionType.external
        elif actor.kind in SUBMISSION_TYPE_BY_KIND:
            submission_type = SUBMISSION_TYPE_BY_KIND[actor.kind]
        else:
            raise Forbidden("Only citizens and anonymous users can submit complaints")

        category = categories.get(db, payload.category_id)
        if not category.is_active:
            raise HTTPException(status_code=400, detail="Category is not active")
        agency = categories.resolve_agency(db, category, payload.agency_id)

        values = {
            "title": payload.title,
            "description": payload.description,
            "submission_type": submission_type,
            "category_id": category.id,
            "agency_id": agency.id if agency else None,
            "priority": payload.priority,
            "location": payload.location,
            "tags": list(payload.tags),
            "is_public": payload.is_public,
            "attachments": [a.model_dump() for a in payload.attachments],
            "contact_info": contact_info,
        }
        if submission_type == SubmissionType.standard:
            values["citizen_id"] = actor.id
        elif submission_type == SubmissionType.anonymous:
            values["anonymous_id"] = actor.id

        with _lifecycle_write(db, "complaint submission"):
            complaint = Complaints._insert_with_tracking_id(db, values)
            received = ComplaintResponse(
                complaint_id=complaint.id,
                author_type=ResponseAuthorType.system,
                content=RECEIVED_NOTE,
                is_internal=False,
            )
            received.set_author(actor.ref if actor is not None else None)
            db.add(received)
            if complaint.submitter is not None:
                notifications.notify(
                    db,
                    complaint.submitter,
                    TemplateKind.complaint_submitted,
                    {
                        "complaint_id": complaint.id,
                        "complaint_title": complaint.title,
                        "tracking_id": complaint.tracking_id,
                    },
                )
            db.flush()

        db.refresh(complaint)
        logger.info("Created complaint %s (%s)", complaint.id, complaint.tracking_id)
        publish_event(
            EventType.complaint_submitted,
            "complaint",
            complaint.id,
            actor_id=actor.id if actor is not None else None,
            complaint_id=complaint.id,
        )
        return complaint

    @staticmethod
    def _insert_with_tracking_id(db: Session, values: dict) -> Complaint:
        for _ in range(_MAX_TRACKING_ATTEMPTS):
            tracking_id = generate_tracking_id()
            taken = (
                db.query(Complaint.id)
                .filter(Complaint.tracking_id == tracking_id)
                .first()
            )
            if taken:
                continue
            complaint = Complaint(tracking_id=tracking_id, **values)
            try:
                with db.begin_nested():
                    db.add(complaint)
            except IntegrityError:
                logger.info("Tracking ID collision on %s, regenerating", tracking_id)
                continue
            return complaint
        raise TransactionAborted("Could not allocate a tracking ID, please retry")

    @staticmethod
    def get(db: Session, complaint_id: str) -> Complaint:
        complaint = db.get(Complaint, coerce_uuid(complaint_id))
        if not complaint:
            raise ComplaintNotFound()
        return complaint

    @staticmethod
    def get_for_actor(db: Session, complaint_id: str, actor) -> Complaint:
        complaint = Complaints.get(db, complaint_id)
        if actor.kind == ActorKind.staff:
            return complaint
        if actor.kind == ActorKind.agent:
            if complaint.agency_id != actor.agency_id:
                raise AgencyMismatch()
            return complaint
        if complaint.submitter != actor.ref:
            raise Forbidden()
        return complaint

    @staticmethod
    def track(db: Session, tracking_id: str) -> dict:
        complaint = (
            db.query(Complaint)
            .filter(Complaint.tracking_id == tracking_id.strip().upper())
            .first()
        )
        if not complaint:
            raise ComplaintNotFound("No complaint found with this tracking ID")
        return {
            "tracking_id": complaint.tracking_id,
            "title": complaint.title if complaint.is_public else None,
            "status": complaint.status,
            "category": complaint.category.name if complaint.category else None,
            "agency": complaint.agency.name if complaint.agency else None,
            "created_at": complaint.created_at,
            "updated_at": complaint.updated_at,
            "resolved_at": complaint.resolved_at,
            "closed_at": complaint.closed_at,
        }

    @staticmethod
    def list(
        db: Session,
        actor,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Complaint]:
        """Complaints visible to ``actor``: their own for submitters, their
        agency's for agents, all for staff."""
        query = db.query(Complaint)
        if actor.kind == ActorKind.citizen:
            query = query.filter(Complaint.citizen_id == actor.id)
        elif actor.kind == ActorKind.anonymous:
            query = query.filter(Complaint.anonymous_id == actor.id)
        elif actor.kind == ActorKind.agent:
            query = query.filter(Complaint.agency_id == actor.agency_id)
        if status is not None:
            query = query.filter(Complaint.status == coerce_status(status))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Complaint.created_at,
                "updated_at": Complaint.updated_at,
                "priority": Complaint.priority,
                "status": Complaint.status,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def list_responses(db: Session, complaint_id: str, actor) -> List[ComplaintResponse]:
        complaint = Complaints.get_for_actor(db, complaint_id, actor)
        query = db.query(ComplaintResponse).filter(
            ComplaintResponse.complaint_id == complaint.id
        )
        if actor.kind not in HANDLER_KINDS:
            query = query.filter(ComplaintResponse.is_internal.is_(False))
        return query.order_by(ComplaintResponse.created_at.asc()).all()

    @staticmethod
    def set_status(
        db: Session, complaint_id: str, new_status, actor, note: str | None = None
    ) -> Complaint:
        with _lifecycle_write(db, "status change"):
            complaint = _lock(db, complaint_id)
            if actor.kind in HANDLER_KINDS:
                _ensure_handler(complaint, actor)
            transition = next_state(
                complaint.status, actor.kind, LifecycleEvent.set_status, new_status
            )
            if transition.changed:
                _record_transition(db, complaint, transition, actor, note)
            elif note:
                Complaints._add_system_note(db, complaint, actor, note)
        _after_transition(complaint, transition, actor)
        db.refresh(complaint)
        return complaint

    @staticmethod
    def assign(db: Session, complaint_id: str, agent_id: str, actor) -> Complaint:
        with _lifecycle_write(db, "assignment"):
            complaint = _lock(db, complaint_id)
            _ensure_handler(complaint, actor)
            agent = db.get(Agent, coerce_uuid(agent_id))
            if agent is None or not agent.is_active:
                raise InvalidAssignment("Agent not found or inactive")
            if complaint.agency_id is None or agent.agency_id != complaint.agency_id:
                raise InvalidAssignment()
            transition = next_state(complaint.status, actor.kind, LifecycleEvent.assign)
            complaint.assigned_agent_id = agent.id
            _record_transition(db, complaint, transition, actor)
        _after_transition(complaint, transition, actor)
        publish_event(
            EventType.complaint_assigned,
            "complaint",
            complaint.id,
            actor_id=actor.id,
            complaint_id=complaint.id,
            payload={"agent_id": str(agent.id)},
        )
        logger.info("Assigned complaint %s to agent %s", complaint.id, agent.id)
        db.refresh(complaint)
        return complaint

    @staticmethod
    def unassign(db: Session, complaint_id: str, actor) -> Complaint:
        with _lifecycle_write(db, "unassignment"):
            complaint = _lock(db, complaint_id)
            _ensure_handler(complaint, actor)
            transition = next_state(
                complaint.status, actor.kind, LifecycleEvent.unassign
            )
            complaint.assigned_agent_id = None
            _record_transition(db, complaint, transition, actor)
        _after_transition(complaint, transition, actor)
        db.refresh(complaint)
        return complaint

    @staticmethod
    def route(db: Session, complaint_id: str, agency_id: str, actor) -> Complaint:
        """Re-route a complaint to another agency (staff only).

        An assignment to an agent outside the new agency is dropped.
        """
        if actor.kind != ActorKind.staff:
            raise Forbidden("Only staff can reassign complaints to another agency")
        with _lifecycle_write(db, "routing"):
            complaint = _lock(db, complaint_id)
            agency = agencies.get_active(db, agency_id)
            if agency is None:
                raise HTTPException(status_code=404, detail="Agency not found")
            complaint.agency_id = agency.id
            transition = Transition(complaint.status, complaint.status)
            if complaint.assigned_agent_id is not None:
                agent = db.get(Agent, complaint.assigned_agent_id)
                if agent is None or agent.agency_id != agency.id:
                    complaint.assigned_agent_id = None
                    transition = next_state(
                        complaint.status, actor.kind, LifecycleEvent.unassign
                    )
                    _record_transition(db, complaint, transition, actor)
            Complaints._add_system_note(
                db, complaint, actor, f"Complaint routed to {agency.name}", internal=True
            )
        _after_transition(complaint, transition, actor)
        publish_event(
            EventType.complaint_routed,
            "complaint",
            complaint.id,
            actor_id=actor.id,
            complaint_id=complaint.id,
            payload={"agency_id": str(agency.id)},
        )
        logger.info("Routed complaint %s to agency %s", complaint.id, agency.id)
        db.refresh(complaint)
        return complaint

    @staticmethod
    def set_priority(db: Session, complaint_id: str, priority, actor) -> Complaint:
        with _lifecycle_write(db, "priority change"):
            complaint = _lock(db, complaint_id)
            _ensure_handler(complaint, actor)
            complaint.priority = ComplaintPriority(priority)
        logger.info("Complaint %s priority set to %s", complaint.id, complaint.priority.value)
        db.refresh(complaint)
        return complaint

    @staticmethod
    def add_response(
        db: Session,
        complaint_id: str,
        actor,
        content: str,
        is_internal: bool = False,
        attachments: list[dict] | None = None,
    ) -> ComplaintResponse:
        """Append a reply and apply the implicit transition it causes.

        Staff or agent replies move early-stage complaints to in_progress;
        a submitter reply reopens a resolved, closed or rejected complaint.
        """
        with _lifecycle_write(db, "response"):
            complaint = _lock(db, complaint_id)
            is_handler = actor.kind in HANDLER_KINDS
            is_owner = complaint.submitter == actor.ref
            if is_internal and not is_handler:
                raise Forbidden("Only staff or agents can create internal responses")
            if not is_owner and not is_handler:
                raise Forbidden()
            if actor.kind == ActorKind.agent and complaint.agency_id != actor.agency_id:
                raise AgencyMismatch()

            response = ComplaintResponse(
                complaint_id=complaint.id,
                author_type=AUTHOR_TYPE_BY_KIND[actor.kind],
                content=content,
                is_internal=is_internal,
                attachments=list(attachments or []),
            )
            response.set_author(actor.ref)
            db.add(response)
            db.flush()

            transition = next_state(complaint.status, actor.kind, LifecycleEvent.respond)
            _record_transition(db, complaint, transition, actor)

            submitter = complaint.submitter
            if is_handler and not is_internal and submitter is not None:
                notifications.notify(
                    db,
                    submitter,
                    TemplateKind.response_received,
                    {
                        "complaint_id": complaint.id,
                        "complaint_title": complaint.title,
                        "response_id": response.id,
                        "responder_type": actor.kind.value,
                    },
                )
                db.flush()

        _after_transition(complaint, transition, actor)
        if not is_internal:
            publish_event(
                EventType.response_created,
                "response",
                response.id,
                actor_id=actor.id,
                complaint_id=complaint.id,
                payload={"author_type": response.author_type.value},
            )
        logger.info("Added response %s to complaint %s", response.id, complaint.id)
        db.refresh(response)
        return response

    @staticmethod
    def _add_system_note(
        db: Session, complaint: Complaint, actor, note: str, internal: bool = False
    ) -> ComplaintResponse:
        entry = ComplaintResponse(
            complaint_id=complaint.id,
            author_type=ResponseAuthorType.system,
            content=note,
            is_internal=internal,
        )
        entry.set_author(actor.ref if actor is not None else None)
        db.add(entry)
        db.flush()
        return entry


complaints = Complaints()
