from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import (
    get_bearer_token,
    get_current_claims,
    get_db,
    require_kinds,
    require_staff_role,
)
from app.models.actor import ActorKind, ActorRef, StaffRole
from app.schemas.auth import (
    AccessCodeLoginRequest,
    ActorRead,
    AgentCreate,
    ChangePasswordRequest,
    IdentityCodeRequest,
    IdentityCodeResponse,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    RecoveryRequest,
    RecoveryVerifyRequest,
    RegisterRequest,
    StaffCreate,
    StaffLoginRequest,
    TokenResponse,
)
from app.services.access_codes import identity_codes, recovery_codes
from app.services.credentials import credentials
from app.services.tokens import TokenClaims, tokens

router = APIRouter(prefix="/auth", tags=["auth"])

RECOVERY_MESSAGE = "If an account exists for this email, an access code has been sent."

_ADMIN = StaffRole.admin.value
_SUPERVISOR = StaffRole.supervisor.value


def _token_response(actor) -> dict:
    return {
        "access_token": tokens.issue(actor),
        "token_type": "bearer",
        "expires_in": int(tokens.lifetime_for(actor).total_seconds()),
        "actor_kind": actor.kind,
        "role": actor.token_role,
    }


def actor_payload(actor) -> dict:
    return {
        "id": actor.id,
        "kind": actor.kind,
        "name": getattr(actor, "name", None),
        "email": getattr(actor, "email", None),
        "role": actor.token_role,
        "agency_id": actor.token_agency_id,
        "is_active": actor.is_active,
        "last_login_at": actor.last_login_at,
        "expires_at": getattr(actor, "expires_at", None),
        "usage_count": getattr(actor, "usage_count", None),
    }


def _password_login(db: Session, kind: ActorKind, email: str, password: str, role=None):
    actor = credentials.verify_password(db, kind, email, password, role=role)
    credentials.record_login(db, actor)
    return _token_response(actor)


# ------------------------------------------------------------------
# Registration and login
# ------------------------------------------------------------------


@router.post(
    "/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    citizen = credentials.create_actor(db, ActorKind.citizen, payload.model_dump())
    return _token_response(citizen)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return _password_login(db, ActorKind.citizen, payload.email, payload.password)


@router.post("/agent/login", response_model=TokenResponse)
def agent_login(payload: LoginRequest, db: Session = Depends(get_db)):
    return _password_login(db, ActorKind.agent, payload.email, payload.password)


@router.post("/staff/login", response_model=TokenResponse)
def staff_login(payload: StaffLoginRequest, db: Session = Depends(get_db)):
    role = payload.role.value if payload.role else None
    return _password_login(db, ActorKind.staff, payload.email, payload.password, role)


@router.post(
    "/anonymous/code",
    response_model=IdentityCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_identity_code(db: Session = Depends(get_db)):
    identity, code = identity_codes.issue(db)
    return {
        **_token_response(identity),
        "access_code": code,
        "code_expires_at": identity.expires_at,
    }


@router.post("/anonymous/login", response_model=TokenResponse)
def anonymous_login(payload: AccessCodeLoginRequest, db: Session = Depends(get_db)):
    identity = identity_codes.verify(db, payload.access_code)
    return _token_response(identity)


@router.post("/logout", response_model=MessageResponse)
def logout(
    claims: TokenClaims = Depends(get_current_claims),
    token: str = Depends(get_bearer_token),
):
    tokens.revoke(token)
    return {"message": "Logged out"}


@router.get("/me", response_model=ActorRead)
def me(claims: TokenClaims = Depends(get_current_claims)):
    return actor_payload(claims.actor)


# ------------------------------------------------------------------
# Passwords and recovery
# ------------------------------------------------------------------


@router.post("/recovery/request", response_model=MessageResponse)
def request_recovery(payload: RecoveryRequest, db: Session = Depends(get_db)):
    recovery_codes.request_recovery(db, payload.email, payload.kind)
    return {"message": RECOVERY_MESSAGE}


@router.post("/recovery/verify", response_model=MessageResponse)
def verify_recovery(payload: RecoveryVerifyRequest, db: Session = Depends(get_db)):
    recovery_codes.verify(db, payload.email, payload.access_code)
    return {"message": "Access code is valid"}


@router.post("/recovery/reset", response_model=MessageResponse)
def reset_password(payload: PasswordResetRequest, db: Session = Depends(get_db)):
    recovery_codes.reset_password(
        db, payload.email, payload.access_code, payload.new_password
    )
    return {"message": "Password has been reset"}


@router.post("/password/change", response_model=MessageResponse)
def change_password(
    payload: ChangePasswordRequest,
    claims: TokenClaims = Depends(
        require_kinds(ActorKind.citizen, ActorKind.agent, ActorKind.staff)
    ),
    db: Session = Depends(get_db),
):
    credentials.change_password(
        db, claims.actor_ref, payload.current_password, payload.new_password
    )
    return {"message": "Password changed"}


# ------------------------------------------------------------------
# Account administration
# ------------------------------------------------------------------


@router.post("/staff", response_model=ActorRead, status_code=status.HTTP_201_CREATED)
def create_staff(
    payload: StaffCreate,
    claims: TokenClaims = Depends(require_staff_role(_ADMIN)),
    db: Session = Depends(get_db),
):
    staff = credentials.create_actor(db, ActorKind.staff, payload.model_dump())
    return actor_payload(staff)


@router.post("/agents", response_model=ActorRead, status_code=status.HTTP_201_CREATED)
def create_agent(
    payload: AgentCreate,
    claims: TokenClaims = Depends(require_staff_role(_ADMIN, _SUPERVISOR)),
    db: Session = Depends(get_db),
):
    agent = credentials.create_actor(db, ActorKind.agent, payload.model_dump())
    return actor_payload(agent)


@router.post(
    "/{kind}/{actor_id}/deactivate",
    response_model=ActorRead,
)
def deactivate_account(
    kind: ActorKind,
    actor_id: str,
    claims: TokenClaims = Depends(require_staff_role(_ADMIN)),
    db: Session = Depends(get_db),
):
    if kind == ActorKind.anonymous:
        return actor_payload(identity_codes.invalidate(db, actor_id))
    return actor_payload(credentials.deactivate(db, ActorRef(kind, actor_id)))


@router.post(
    "/anonymous/issue",
    response_model=IdentityCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
def issue_identity_code(
    payload: IdentityCodeRequest,
    claims: TokenClaims = Depends(require_kinds(ActorKind.staff)),
    db: Session = Depends(get_db),
):
    identity, code = identity_codes.issue(
        db, created_by_staff_id=claims.actor_ref.id, notes=payload.notes, days=payload.days
    )
    return {
        **_token_response(identity),
        "access_code": code,
        "code_expires_at": identity.expires_at,
    }


@router.post("/anonymous/{identity_id}/extend", response_model=ActorRead)
def extend_identity_code(
    identity_id: str,
    payload: IdentityCodeRequest,
    claims: TokenClaims = Depends(require_kinds(ActorKind.staff)),
    db: Session = Depends(get_db),
):
    return actor_payload(identity_codes.extend(db, identity_id, payload.days))
