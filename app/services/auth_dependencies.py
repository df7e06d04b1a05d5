from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import Forbidden, TokenMalformed
from app.models.actor import ActorKind
from app.services.tokens import TokenClaims, tokens


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise TokenMalformed("Missing bearer token")
    return token.strip()


def get_bearer_token(request: Request) -> str:
    return _bearer_token(request)


def get_current_claims(request: Request, db: Session = Depends(get_db)) -> TokenClaims:
    return tokens.verify(db, _bearer_token(request))


def require_kinds(*kinds: ActorKind):
    allowed = set(kinds)

    def _require_kinds(request: Request, db: Session = Depends(get_db)) -> TokenClaims:
        return tokens.verify(db, _bearer_token(request), kinds=allowed)

    return _require_kinds


def require_staff_role(*roles: str):
    allowed = set(roles)

    def _require_staff_role(
        claims: TokenClaims = Depends(require_kinds(ActorKind.staff)),
    ) -> TokenClaims:
        if claims.role not in allowed:
            raise Forbidden("Insufficient role")
        return claims

    return _require_staff_role
