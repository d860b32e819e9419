"""
Typed errors raised by the audit engine.

Each error carries the HTTP status the API layer should answer with.
"""


class AuditDeskError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFoundError(AuditDeskError):
    """Company, audit or user id does not resolve"""
    status_code = 404


class ValidationFailure(AuditDeskError):
    status_code = 422


class PermissionDeniedError(AuditDeskError):
    status_code = 403


class NoEligibleAssigneeError(AuditDeskError):
    """No user can be assigned to an audit"""
    status_code = 409


class InternalError(AuditDeskError):
    """Unexpected store or transport failure"""
    status_code = 500
