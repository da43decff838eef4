"""
Custom exception classes

Every error raised to a caller carries a machine-readable ``kind`` and a
human-readable ``message`` in its ``detail``.
"""
from fastapi import HTTPException, status


class LeadFlowError(HTTPException):
    """Base class for typed API errors"""
    kind = "internal"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        super().__init__(
            status_code=status_code or self.status_code_default,
            detail={"kind": self.kind, "message": message},
        )


class UnauthenticatedError(LeadFlowError):
    """Raised when the request carries no valid credentials"""
    kind = "unauthenticated"
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "User must be authenticated"):
        super().__init__(message)
        self.headers = {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(LeadFlowError):
    """Raised when the actor's role or team does not allow the action"""
    kind = "permission-denied"
    status_code_default = status.HTTP_403_FORBIDDEN


class InvalidArgumentError(LeadFlowError):
    """Raised for missing or malformed input"""
    kind = "invalid-argument"
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(LeadFlowError):
    """Raised when a lead, user, team or closer does not exist for the caller"""
    kind = "not-found"
    status_code_default = status.HTTP_404_NOT_FOUND


class ConflictError(LeadFlowError):
    """Raised when a conditional write lost a race; the caller must re-fetch"""
    kind = "conflict"
    status_code_default = status.HTTP_409_CONFLICT


class FailedPreconditionError(LeadFlowError):
    """Raised when the record is not in a state that permits the action"""
    kind = "failed-precondition"
    status_code_default = status.HTTP_400_BAD_REQUEST


class InternalError(LeadFlowError):
    """Raised for unexpected store failures; never leaks the underlying error"""
    kind = "internal"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
