from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import (
    DuplicateIdentity,
    InactiveAccount,
    InvalidCredentials,
    NotFoundOrForbidden,
)
from app.models.actor import (
    ACTOR_MODELS,
    PASSWORD_ACTOR_MODELS,
    ActorKind,
    ActorRef,
    Agent,
    StaffRole,
)
from app.models.directory import Agency
from app.observability import LOGIN_ATTEMPTS
from app.services import passwords
from app.services.common import coerce_uuid, normalize_email, utcnow

logger = logging.getLogger(__name__)

_CREATE_FIELDS = {
    ActorKind.citizen: {"name", "phone"},
    ActorKind.agent: {"name", "phone", "agency_id", "position", "department"},
    ActorKind.staff: {"name", "phone", "role"},
}


def _password_model(kind):
    kind = ActorKind(kind)
    model = PASSWORD_ACTOR_MODELS.get(kind)
    if model is None:
        raise ValueError(f"{kind.value} actors do not hold passwords")
    return kind, model


class Credentials:
    @staticmethod
    def create_actor(db: Session, kind, fields: dict):
        kind, model = _password_model(kind)
        email = normalize_email(fields["email"])
        password = fields["password"]
        passwords.check_strength(password)

        if db.query(model).filter(model.email == email).first():
            raise DuplicateIdentity()

        values = {k: v for k, v in fields.items() if k in _CREATE_FIELDS[kind]}
        if kind == ActorKind.agent:
            agency = db.get(Agency, coerce_uuid(values.get("agency_id")))
            if not agency or not agency.is_active:
                raise NotFoundOrForbidden("Agency not found")
            values["agency_id"] = agency.id
        if kind == ActorKind.staff and values.get("role") is not None:
            values["role"] = StaffRole(values["role"])

        actor = model(
            email=email,
            password_hash=passwords.hash_password(password),
            **values,
        )
        db.add(actor)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateIdentity()
        db.refresh(actor)
        logger.info("Created %s %s", kind.value, actor.id)
        return actor

    @staticmethod
    def verify_password(
        db: Session, kind, identifier: str, password: str, role: str | None = None
    ):
        """Return the actor owning ``identifier`` if ``password`` matches.

        Unknown emails still pay for one bcrypt comparison. The active flag and
        the optional expected role are only consulted after the password has
        matched, so failures are indistinguishable to the caller.
        """
        kind, model = _password_model(kind)
        actor = (
            db.query(model).filter(model.email == normalize_email(identifier)).first()
        )
        if actor is None:
            passwords.burn_comparison(password)
            LOGIN_ATTEMPTS.labels(kind.value, "failed").inc()
            raise InvalidCredentials()
        if not passwords.verify_password(password, actor.password_hash):
            LOGIN_ATTEMPTS.labels(kind.value, "failed").inc()
            raise InvalidCredentials()
        if role is not None and actor.token_role != role:
            LOGIN_ATTEMPTS.labels(kind.value, "failed").inc()
            raise InvalidCredentials()
        if not actor.is_active:
            LOGIN_ATTEMPTS.labels(kind.value, "inactive").inc()
            raise InactiveAccount()
        LOGIN_ATTEMPTS.labels(kind.value, "success").inc()
        return actor

    @staticmethod
    def get_actor(db: Session, ref: ActorRef):
        return db.get(ACTOR_MODELS[ref.kind], coerce_uuid(ref.id))

    @staticmethod
    def get_active_by_email(db: Session, kind, email: str):
        kind, model = _password_model(kind)
        return (
            db.query(model)
            .filter(model.email == normalize_email(email))
            .filter(model.is_active.is_(True))
            .first()
        )

    @staticmethod
    def set_password(db: Session, ref: ActorRef, new_password: str, commit: bool = True):
        """Re-hash and store a new password. Issued tokens stay valid."""
        _password_model(ref.kind)
        passwords.check_strength(new_password)
        actor = Credentials.get_actor(db, ref)
        if actor is None:
            raise NotFoundOrForbidden("Account not found")
        actor.password_hash = passwords.hash_password(new_password)
        if commit:
            db.commit()
            db.refresh(actor)
        logger.info("Password updated for %s", ref)
        return actor

    @staticmethod
    def change_password(
        db: Session, ref: ActorRef, current_password: str, new_password: str
    ):
        _password_model(ref.kind)
        actor = Credentials.get_actor(db, ref)
        if actor is None or not passwords.verify_password(
            current_password, actor.password_hash
        ):
            raise InvalidCredentials("Current password is incorrect")
        return Credentials.set_password(db, ref, new_password)

    @staticmethod
    def deactivate(db: Session, ref: ActorRef):
        actor = Credentials.get_actor(db, ref)
        if actor is None:
            raise NotFoundOrForbidden("Account not found")
        actor.is_active = False
        db.commit()
        db.refresh(actor)
        logger.info("Deactivated %s", ref)
        return actor

    @staticmethod
    def record_login(db: Session, actor) -> None:
        """Stamp last login; failures are logged and never fail the login."""
        ref = actor.ref
        try:
            actor.last_login_at = utcnow()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not record login for %s: %s", ref, e)

    @staticmethod
    def agents_for_agency(db: Session, agency_id) -> list[Agent]:
        return (
            db.query(Agent)
            .filter(Agent.agency_id == coerce_uuid(agency_id))
            .filter(Agent.is_active.is_(True))
            .order_by(Agent.name.asc())
            .all()
        )


credentials = Credentials()
