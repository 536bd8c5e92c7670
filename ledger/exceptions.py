# ledger/exceptions.py
# ==========================================================
#                  EXCEPTIONS
# ==========================================================
class LedgerException(Exception):
    """Base exception; status_code is the HTTP status the handlers answer with."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class UnauthenticatedError(LedgerException):
    status_code = 401
    default_message = "No authentication token provided"


class ForbiddenError(LedgerException):
    status_code = 403
    default_message = "Admin access required"


class NotFoundError(LedgerException):
    status_code = 404
    default_message = "Not found"


class ValidationError(LedgerException):
    status_code = 400
    default_message = "Invalid input"


class ConflictError(LedgerException):
    status_code = 400
    default_message = "Already processed"


class UpstreamError(LedgerException):
    status_code = 500
    default_message = "Upstream service failure"
