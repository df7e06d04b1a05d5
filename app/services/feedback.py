import logging
from datetime import datetime
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import (
    AgencyMismatch,
    DuplicateFeedback,
    FeedbackNotAccepted,
    Forbidden,
    NotFoundOrForbidden,
    TransactionAborted,
)
from app.models.actor import ActorKind, StaffRole
from app.models.complaint import SUBMISSION_TYPE_BY_KIND, Complaint, ComplaintStatus
from app.models.feedback import RATING_FIELDS, Feedback
from app.schemas.feedback import FeedbackCreate
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    utcnow,
)
from app.services.complaints import complaints
from app.services.notification import notifications
from app.services.notification_templates import TemplateKind
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

FEEDBACK_STATUSES = frozenset({ComplaintStatus.resolved, ComplaintStatus.closed})
RESPONDING_ROLES = frozenset({StaffRole.admin, StaffRole.supervisor})
REPORTING_ROLES = frozenset(
    {StaffRole.admin, StaffRole.supervisor, StaffRole.analyst}
)


def _ensure_agency_access(actor, agency_id, staff_roles) -> None:
    if actor.kind == ActorKind.agent:
        if actor.agency_id != coerce_uuid(agency_id):
            raise AgencyMismatch()
        return
    if actor.kind == ActorKind.staff and actor.role in staff_roles:
        return
    raise Forbidden()


def _round(value) -> float | None:
    if value is None:
        return None
    return round(float(value), 2)


class Feedbacks(ListResponseMixin):
    @staticmethod
    def submit(db: Session, actor, payload: FeedbackCreate) -> Feedback:
        """Record the submitter's rating of a finished complaint.

        One feedback per complaint; only the submitter may give it.
        """
        complaint = complaints.get(db, str(payload.complaint_id))
        if complaint.submitter is None or complaint.submitter != actor.ref:
            raise Forbidden("Only the complaint's submitter can give feedback")
        if complaint.status not in FEEDBACK_STATUSES:
            raise FeedbackNotAccepted()
        existing = (
            db.query(Feedback).filter(Feedback.complaint_id == complaint.id).first()
        )
        if existing:
            raise DuplicateFeedback()

        data = payload.model_dump(exclude={"complaint_id"})
        feedback = Feedback(
            complaint_id=complaint.id,
            submission_type=SUBMISSION_TYPE_BY_KIND[actor.kind],
            citizen_id=actor.id if actor.kind == ActorKind.citizen else None,
            anonymous_id=actor.id if actor.kind == ActorKind.anonymous else None,
            **data,
        )
        db.add(feedback)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateFeedback() from e
        db.refresh(feedback)
        logger.info(
            "Feedback %s recorded for complaint %s", feedback.id, complaint.tracking_id
        )
        return feedback

    @staticmethod
    def get(db: Session, feedback_id: str) -> Feedback:
        feedback = db.get(Feedback, coerce_uuid(feedback_id))
        if not feedback:
            raise NotFoundOrForbidden("Feedback not found")
        return feedback

    @staticmethod
    def get_for_complaint(db: Session, complaint_id: str, actor) -> Feedback:
        complaint = complaints.get_for_actor(db, complaint_id, actor)
        feedback = (
            db.query(Feedback).filter(Feedback.complaint_id == complaint.id).first()
        )
        if not feedback:
            raise NotFoundOrForbidden("No feedback for this complaint")
        return feedback

    @staticmethod
    def respond(db: Session, feedback_id: str, actor, content: str) -> Feedback:
        """Attach the agency's reply to a feedback and notify its submitter.

        A later reply replaces the earlier one.
        """
        feedback = Feedbacks.get(db, feedback_id)
        complaint = feedback.complaint
        if actor.kind == ActorKind.agent:
            if complaint.agency_id != actor.agency_id:
                raise AgencyMismatch()
        elif actor.kind != ActorKind.staff or actor.role not in RESPONDING_ROLES:
            raise Forbidden()

        feedback.agency_response = content
        feedback.agency_responded_at = utcnow()
        feedback.responded_by_agent_id = (
            actor.id if actor.kind == ActorKind.agent else None
        )
        feedback.responded_by_staff_id = (
            actor.id if actor.kind == ActorKind.staff else None
        )
        recipient = feedback.submitter
        try:
            notifications.notify(
                db,
                recipient,
                TemplateKind.feedback_response,
                {
                    "complaint_id": complaint.id,
                    "complaint_title": complaint.title,
                    "anonymous": recipient.kind == ActorKind.anonymous,
                },
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Rolled back feedback response: %s", e)
            raise TransactionAborted() from e
        db.refresh(feedback)
        return feedback

    @staticmethod
    def list(
        db: Session,
        agency_id: str,
        actor,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Feedback]:
        _ensure_agency_access(actor, agency_id, REPORTING_ROLES)
        query = (
            db.query(Feedback)
            .join(Complaint, Feedback.complaint_id == Complaint.id)
            .filter(Complaint.agency_id == coerce_uuid(agency_id))
        )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Feedback.created_at,
                "satisfaction_level": Feedback.satisfaction_level,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def analytics(
        db: Session,
        agency_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        query = db.query(Feedback)
        if agency_id is not None:
            query = query.join(Complaint, Feedback.complaint_id == Complaint.id).filter(
                Complaint.agency_id == coerce_uuid(agency_id)
            )
        if start is not None:
            query = query.filter(Feedback.created_at >= start)
        if end is not None:
            query = query.filter(Feedback.created_at <= end)
        subquery = query.subquery()

        count = db.query(func.count()).select_from(subquery).scalar() or 0
        distribution = {level: 0 for level in range(1, 6)}
        for level, total in (
            db.query(subquery.c.satisfaction_level, func.count())
            .group_by(subquery.c.satisfaction_level)
            .all()
        ):
            distribution[level] = total

        columns = ("satisfaction_level",) + RATING_FIELDS
        row = db.query(*(func.avg(subquery.c[name]) for name in columns)).one()
        averages = {name: _round(value) for name, value in zip(columns, row)}

        recommendation = {"yes": 0, "no": 0, "not_specified": 0}
        for value, total in (
            db.query(subquery.c.would_recommend, func.count())
            .group_by(subquery.c.would_recommend)
            .all()
        ):
            if value is None:
                recommendation["not_specified"] += total
            elif value:
                recommendation["yes"] += total
            else:
                recommendation["no"] += total

        return {
            "count": count,
            "satisfaction_distribution": distribution,
            "averages": averages,
            "recommendation": recommendation,
        }


feedback = Feedbacks()
