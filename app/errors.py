import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


class ServiceError(HTTPException):
    """Domain error raised by services and rendered by the HTTP layer."""

    status_code = 400
    code = "service_error"
    message = "Request failed"

    def __init__(self, message: str | None = None, details=None, headers=None):
        self.message = message or self.message
        self.details = details
        super().__init__(
            status_code=type(self).status_code,
            detail={"code": self.code, "message": self.message, "details": details},
            headers=headers,
        )


class _Unauthorized(ServiceError):
    status_code = 401

    def __init__(self, message: str | None = None, details=None):
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


# Credentials / access codes


class InvalidCredentials(_Unauthorized):
    code = "invalid_credentials"
    message = "Invalid credentials"


class InactiveAccount(ServiceError):
    status_code = 403
    code = "account_inactive"
    message = "Account is inactive"


class DuplicateIdentity(ServiceError):
    status_code = 409
    code = "duplicate_identity"
    message = "An account with this email already exists"


class WeakPassword(ServiceError):
    code = "weak_password"
    message = "Password does not meet the minimum requirements"


class InvalidOrExpiredCode(ServiceError):
    code = "invalid_or_expired_code"
    message = "Invalid or expired access code"


# Tokens


class TokenExpired(_Unauthorized):
    code = "token_expired"
    message = "Token expired"


class TokenRevoked(_Unauthorized):
    code = "token_revoked"
    message = "Token has been invalidated"


class TokenMalformed(_Unauthorized):
    code = "token_malformed"
    message = "Invalid token"


class UnknownSubject(_Unauthorized):
    code = "unknown_subject"
    message = "Token subject no longer exists or is inactive"


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"
    message = "Access denied"


# Complaint lifecycle


class AgencyMismatch(ServiceError):
    status_code = 403
    code = "agency_mismatch"
    message = "You can only act on complaints routed to your agency"


class InvalidAssignment(ServiceError):
    status_code = 409
    code = "invalid_assignment"
    message = "Agent does not belong to the complaint's agency"


class InvalidTransition(ServiceError):
    status_code = 409
    code = "invalid_transition"
    message = "Status transition not allowed"


class ComplaintNotFound(ServiceError):
    status_code = 404
    code = "complaint_not_found"
    message = "Complaint not found"


class NotFoundOrForbidden(ServiceError):
    status_code = 404
    code = "not_found"
    message = "Not found"


# Feedback


class DuplicateFeedback(ServiceError):
    status_code = 409
    code = "duplicate_feedback"
    message = "Feedback has already been submitted for this complaint"


class FeedbackNotAccepted(ServiceError):
    status_code = 409
    code = "feedback_not_accepted"
    message = "Feedback can only be given on resolved or closed complaints"


class TransactionAborted(ServiceError):
    status_code = 503
    code = "transaction_aborted"
    message = "The operation could not be completed, please retry"


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items() if k != "url"}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
