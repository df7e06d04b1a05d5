from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
import uuid
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import InvalidOrExpiredCode, NotFoundOrForbidden, TransactionAborted
from app.models.access_code import RecoveryCode
from app.models.actor import (
    ActorKind,
    AnonymousIdentity,
    clamp_identity_expiry,
)
from app.models.complaint import Complaint, ComplaintResponse
from app.observability import LOGIN_ATTEMPTS
from app.services import passwords
from app.services.common import as_utc, coerce_uuid, normalize_email, utcnow
from app.services.credentials import credentials
from app.services.email import queue_email, recovery_code_email
from app.services.event import EventType, publish_event

logger = logging.getLogger(__name__)

CODE_PREFIX = "SAY"
CODE_DIGITS = 9
_CODE_RE = re.compile(rf"^{CODE_PREFIX}\d{{{CODE_DIGITS}}}$")
_MAX_GENERATION_ATTEMPTS = 10

# Order in which accounts are searched when a recovery request names no kind.
RECOVERY_SEARCH_ORDER = (ActorKind.citizen, ActorKind.agent, ActorKind.staff)


def generate_access_code() -> str:
    return f"{CODE_PREFIX}{secrets.randbelow(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def normalize_access_code(code: str | None) -> str | None:
    """Uppercase and strip a typed code; ``None`` when it cannot be a code."""
    if not code:
        return None
    normalized = re.sub(r"[\s-]", "", code).upper()
    if not _CODE_RE.match(normalized):
        return None
    return normalized


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Identity codes (anonymous logins)
# ---------------------------------------------------------------------------


class IdentityCodes:
    @staticmethod
    def issue(
        db: Session,
        created_by_staff_id=None,
        notes: str | None = None,
        days: int | None = None,
    ) -> tuple[AnonymousIdentity, str]:
        """Create an anonymous identity and return it with its plaintext code.

        The code is only available here; the database keeps its digest.
        """
        now = utcnow()
        expires_at = clamp_identity_expiry(
            now + timedelta(days=days or settings.identity_code_days), now
        )
        for _ in range(_MAX_GENERATION_ATTEMPTS):
            code = generate_access_code()
            code_hash = hash_code(code)
            taken = (
                db.query(AnonymousIdentity.id)
                .filter(AnonymousIdentity.code_hash == code_hash)
                .first()
            )
            if taken:
                continue
            identity = AnonymousIdentity(
                code_hash=code_hash,
                expires_at=expires_at,
                notes=notes,
                created_by_staff_id=coerce_uuid(created_by_staff_id),
            )
            try:
                with db.begin_nested():
                    db.add(identity)
            except IntegrityError:
                logger.info("Access code collision, regenerating")
                continue
            db.commit()
            db.refresh(identity)
            logger.info("Issued anonymous identity %s", identity.id)
            return identity, code
        raise TransactionAborted("Could not generate an access code, please retry")

    @staticmethod
    def verify(db: Session, code: str) -> AnonymousIdentity:
        normalized = normalize_access_code(code)
        if normalized is None:
            LOGIN_ATTEMPTS.labels(ActorKind.anonymous.value, "failed").inc()
            raise InvalidOrExpiredCode()
        identity = (
            db.query(AnonymousIdentity)
            .filter(AnonymousIdentity.code_hash == hash_code(normalized))
            .filter(AnonymousIdentity.is_active.is_(True))
            .first()
        )
        if identity is None or identity.is_expired():
            LOGIN_ATTEMPTS.labels(ActorKind.anonymous.value, "failed").inc()
            raise InvalidOrExpiredCode()
        IdentityCodes._record_usage(db, identity)
        LOGIN_ATTEMPTS.labels(ActorKind.anonymous.value, "success").inc()
        return identity

    @staticmethod
    def _record_usage(db: Session, identity: AnonymousIdentity) -> None:
        identity_id = identity.id
        try:
            identity.usage_count = (identity.usage_count or 0) + 1
            identity.last_login_at = utcnow()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not record usage for identity %s: %s", identity_id, e)

    @staticmethod
    def get(db: Session, identity_id) -> AnonymousIdentity:
        identity = db.get(AnonymousIdentity, coerce_uuid(identity_id))
        if not identity:
            raise NotFoundOrForbidden("Anonymous identity not found")
        return identity

    @staticmethod
    def invalidate(db: Session, identity_id) -> AnonymousIdentity:
        identity = IdentityCodes.get(db, identity_id)
        identity.is_active = False
        db.commit()
        db.refresh(identity)
        logger.info("Invalidated anonymous identity %s", identity.id)
        return identity

    @staticmethod
    def extend(db: Session, identity_id, days: int | None = None) -> AnonymousIdentity:
        identity = IdentityCodes.get(db, identity_id)
        now = utcnow()
        base = max(as_utc(identity.expires_at), now)
        identity.expires_at = clamp_identity_expiry(
            base + timedelta(days=days or settings.identity_code_days), now
        )
        db.commit()
        db.refresh(identity)
        logger.info("Extended anonymous identity %s", identity.id)
        return identity

    @staticmethod
    def purge_expired(db: Session) -> int:
        """Delete expired identities that nothing references; deactivate the rest."""
        now = utcnow()
        with_complaints = select(Complaint.anonymous_id).where(
            Complaint.anonymous_id.is_not(None)
        )
        with_responses = select(ComplaintResponse.anonymous_id).where(
            ComplaintResponse.anonymous_id.is_not(None)
        )
        deleted = (
            db.query(AnonymousIdentity)
            .filter(AnonymousIdentity.expires_at <= now)
            .filter(AnonymousIdentity.id.not_in(with_complaints))
            .filter(AnonymousIdentity.id.not_in(with_responses))
            .delete(synchronize_session=False)
        )
        deactivated = (
            db.query(AnonymousIdentity)
            .filter(AnonymousIdentity.expires_at <= now)
            .filter(AnonymousIdentity.is_active.is_(True))
            .update({"is_active": False}, synchronize_session=False)
        )
        db.commit()
        logger.info(
            "Purged %d expired identities, deactivated %d", deleted, deactivated
        )
        return deleted


# ---------------------------------------------------------------------------
# Recovery codes (password resets)
# ---------------------------------------------------------------------------


# app.db.get_engine only accepts these backends.
_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _upsert(db: Session):
    return _UPSERT_INSERTS[db.get_bind().dialect.name]


class RecoveryCodes:
    @staticmethod
    def issue(db: Session, actor) -> str:
        """Bind a fresh code to the actor's email, replacing any outstanding one."""
        code = generate_access_code()
        now = utcnow()
        values = {
            "email": normalize_email(actor.email),
            "code_hash": hash_code(code),
            "actor_kind": actor.kind,
            "actor_id": actor.id,
            "expires_at": now + timedelta(hours=settings.recovery_code_hours),
            "updated_at": now,
        }
        insert = _upsert(db)
        stmt = insert(RecoveryCode).values(id=uuid.uuid4(), created_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RecoveryCode.email],
            set_={key: stmt.excluded[key] for key in values if key != "email"},
        )
        db.execute(stmt)
        db.commit()
        logger.info("Issued recovery code for %s", actor.ref)
        return code

    @staticmethod
    def request_recovery(db: Session, email: str, kind=None) -> None:
        """Issue and email a recovery code when an active account exists.

        Returns nothing either way so callers cannot discover which accounts exist.
        """
        if kind is None:
            kinds = RECOVERY_SEARCH_ORDER
        else:
            kinds = tuple(k for k in RECOVERY_SEARCH_ORDER if k == ActorKind(kind))
        actor = None
        for candidate in kinds:
            actor = credentials.get_active_by_email(db, candidate, email)
            if actor is not None:
                break
        if actor is None:
            logger.info("Recovery requested for unknown account")
            return
        code = RecoveryCodes.issue(db, actor)
        queue_email(recovery_code_email(actor.email, code))
        publish_event(
            EventType.recovery_code_issued,
            actor.kind.value,
            actor.id,
            actor_id=actor.id,
            payload={"email": actor.email},
        )

    @staticmethod
    def verify(db: Session, email: str, code: str) -> RecoveryCode:
        """Check a code without consuming it."""
        normalized = normalize_access_code(code)
        record = (
            db.query(RecoveryCode)
            .filter(RecoveryCode.email == normalize_email(email or ""))
            .first()
        )
        if (
            normalized is None
            or record is None
            or not hmac.compare_digest(record.code_hash, hash_code(normalized))
            or as_utc(record.expires_at) <= utcnow()
        ):
            raise InvalidOrExpiredCode()
        return record

    @staticmethod
    def reset_password(db: Session, email: str, code: str, new_password: str):
        passwords.check_strength(new_password)
        record = RecoveryCodes.verify(db, email, code)
        ref = record.actor_ref
        actor = credentials.set_password(db, ref, new_password, commit=False)
        db.delete(record)
        db.commit()
        logger.info("Password reset completed for %s", ref)
        publish_event(
            EventType.password_reset,
            ref.kind.value,
            ref.id,
            actor_id=ref.id,
            payload={"email": actor.email, "name": actor.name},
        )
        return actor

    @staticmethod
    def purge_expired(db: Session) -> int:
        count = (
            db.query(RecoveryCode)
            .filter(RecoveryCode.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info("Purged %d expired recovery codes", count)
        return count


identity_codes = IdentityCodes()
recovery_codes = RecoveryCodes()
