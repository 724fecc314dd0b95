"""
Domain error taxonomy for the Incident Report API.

Every error raised by the services derives from IncidentReportError and
carries the HTTP status and stable error code the API renders it with.
"""


class IncidentReportError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(IncidentReportError):
    """Missing or malformed fields, invalid status or role values."""
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(IncidentReportError):
    """Bad credentials, missing or invalid token."""
    status_code = 401
    code = "UNAUTHORIZED"


class AccountDisabledError(AuthenticationError):
    status_code = 403
    code = "ACCOUNT_DISABLED"


class Forbidden(IncidentReportError):
    """Role or ownership check failed."""
    status_code = 403
    code = "FORBIDDEN"


class NotFound(IncidentReportError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(IncidentReportError):
    status_code = 409
    code = "CONFLICT"


class PayloadTooLarge(IncidentReportError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


class UnsupportedMediaType(IncidentReportError):
    status_code = 415
    code = "UNSUPPORTED_MEDIA_TYPE"


class UpstreamFailure(IncidentReportError):
    """Database or blob-store call failed."""
    status_code = 502
    code = "UPSTREAM_FAILURE"
