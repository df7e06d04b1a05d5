from app.db import get_db
from app.services.auth_dependencies import (
    get_bearer_token,
    get_current_claims,
    require_kinds,
    require_staff_role,
)

__all__ = [
    "get_bearer_token",
    "get_current_claims",
    "get_db",
    "require_kinds",
    "require_staff_role",
]
