"""Bearer token issuance and verification.

Tokens are HS256 JWTs with a per-kind audience and issuer so a token minted
for one login surface is rejected on another:

    {
        "sub": <actor id>,
        "actor_kind": "citizen" | "anonymous" | "agent" | "staff",
        "role": <staff role or "agent">,      # omitted for citizens/anonymous
        "agency_id": <agency id>,             # agents only
        "aud": ..., "iss": ..., "iat": ..., "exp": ..., "jti": ...
    }

Revocation is held in memory by each ``TokenService`` instance. A token
revoked in one process is still accepted by another, and a restart forgets
every revocation.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import (
    Forbidden,
    TokenExpired,
    TokenMalformed,
    TokenRevoked,
    UnknownSubject,
)
from app.models.actor import ActorKind, ActorRef, StaffRole
from app.services.common import as_utc, utcnow
from app.services.credentials import credentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPolicy:
    audience: str
    issuer_suffix: str

    @property
    def issuer(self) -> str:
        return f"{settings.jwt_issuer}/{self.issuer_suffix}"


POLICIES = {
    ActorKind.citizen: TokenPolicy("sayit-platform", "citizen"),
    ActorKind.staff: TokenPolicy("sayit-platform-staff", "staff"),
    ActorKind.agent: TokenPolicy("sayit-platform-agency", "agency"),
    ActorKind.anonymous: TokenPolicy("sayit-platform-anonymous", "anonymous"),
}


@dataclass
class TokenClaims:
    actor_ref: ActorRef
    role: str | None
    agency_id: uuid.UUID | None
    jti: str
    issued_at: datetime
    expires_at: datetime
    actor: object = field(repr=False, compare=False, default=None)

    @property
    def kind(self) -> ActorKind:
        return self.actor_ref.kind


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationSet:
    """Thread-safe set of revoked token digests, pruned once past their expiry."""

    def __init__(self):
        self._entries: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def add(self, token: str, expires_at: datetime) -> None:
        with self._lock:
            self._entries[_digest(token)] = expires_at
            self._prune(utcnow())

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return _digest(token) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def prune(self, now: datetime | None = None) -> int:
        with self._lock:
            return self._prune(now or utcnow())

    def _prune(self, now: datetime) -> int:
        stale = [key for key, exp in self._entries.items() if exp <= now]
        for key in stale:
            del self._entries[key]
        return len(stale)


class TokenService:
    def __init__(
        self,
        revocations: RevocationSet | None = None,
        secret: str | None = None,
        algorithm: str | None = None,
    ):
        self.revocations = revocations if revocations is not None else RevocationSet()
        self._secret = secret or settings.jwt_secret
        self._algorithm = algorithm or settings.jwt_algorithm

    @staticmethod
    def lifetime_for(actor, now: datetime | None = None) -> timedelta:
        now = now or utcnow()
        if actor.kind == ActorKind.citizen:
            return timedelta(hours=settings.citizen_token_hours)
        if actor.kind == ActorKind.agent:
            return timedelta(hours=settings.agent_token_hours)
        if actor.kind == ActorKind.staff:
            if actor.role == StaffRole.admin:
                return timedelta(hours=settings.staff_admin_token_hours)
            return timedelta(hours=settings.staff_token_hours)
        # Anonymous tokens never outlive the identity itself.
        remaining = as_utc(actor.expires_at) - now
        return max(
            timedelta(0), min(timedelta(days=settings.anonymous_token_days), remaining)
        )

    def issue(self, actor, issued_at: datetime | None = None) -> str:
        now = issued_at or utcnow()
        policy = POLICIES[actor.kind]
        payload = {
            "sub": str(actor.id),
            "actor_kind": actor.kind.value,
            "aud": policy.audience,
            "iss": policy.issuer,
            "iat": now,
            "exp": now + self.lifetime_for(actor, now),
            "jti": uuid.uuid4().hex,
        }
        if actor.token_role is not None:
            payload["role"] = actor.token_role
        if actor.token_agency_id is not None:
            payload["agency_id"] = str(actor.token_agency_id)
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(
        self, db: Session, token: str, kinds: set[ActorKind] | None = None
    ) -> TokenClaims:
        """Decode ``token`` and re-load its subject.

        Raises ``TokenMalformed``, ``TokenRevoked``, ``TokenExpired``,
        ``UnknownSubject`` or, when ``kinds`` is given and the token belongs
        to another kind, ``Forbidden``.
        """
        if not token:
            raise TokenMalformed()
        try:
            unverified = jwt.decode(token, options={"verify_signature": False})
            kind = ActorKind(unverified.get("actor_kind"))
        except (jwt.InvalidTokenError, ValueError):
            raise TokenMalformed()

        if token in self.revocations:
            raise TokenRevoked()

        policy = POLICIES[kind]
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=policy.audience,
                issuer=policy.issuer,
                options={"require": ["exp", "iat", "sub", "jti"]},
            )
            subject = uuid.UUID(payload["sub"])
        except jwt.ExpiredSignatureError:
            raise TokenExpired()
        except (jwt.InvalidTokenError, ValueError):
            raise TokenMalformed()

        ref = ActorRef(kind, subject)
        actor = credentials.get_actor(db, ref)
        if actor is None or not actor.is_active:
            raise UnknownSubject()
        if kind == ActorKind.anonymous and actor.is_expired():
            raise UnknownSubject()

        if kinds is not None and kind not in kinds:
            raise Forbidden("This endpoint is not available to your account type")

        return TokenClaims(
            actor_ref=ref,
            role=actor.token_role,
            agency_id=actor.token_agency_id,
            jti=payload["jti"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            actor=actor,
        )

    def revoke(self, token: str) -> None:
        """Reject ``token`` on this instance until it would have expired anyway."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_aud": False},
            )
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (jwt.InvalidTokenError, KeyError):
            raise TokenMalformed()
        self.revocations.add(token, expires_at)
        logger.info("Revoked token %s", payload.get("jti"))


tokens = TokenService()
