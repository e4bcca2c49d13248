"""
Service-level error taxonomy.

Routes translate these into HTTP responses; services never raise HTTPException.
"""


class ServiceError(Exception):
    """Base class for errors surfaced by the service layer."""

    error_code = "service_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # Set by the SOS orchestrator: stages reached before the failure
        self.stage_history: list = []


class NotFoundError(ServiceError):
    """User (or a resolved record) does not exist."""

    error_code = "not_found"


class NoContactsError(ServiceError):
    """User has no emergency contacts to notify."""

    error_code = "no_contacts"


class RateLimitedError(ServiceError):
    """Origin exceeded the SOS request budget for the current window."""

    error_code = "rate_limited"

    def __init__(self, message: str, rate_limit_info: dict):
        super().__init__(message, details=rate_limit_info)
        self.rate_limit_info = rate_limit_info

    @property
    def retry_after(self) -> int:
        return int(self.rate_limit_info.get("retry_after") or 0)


class PersistenceError(ServiceError):
    """A store read or write failed; the caller must not assume it was saved."""

    error_code = "persistence_error"


class ConflictError(ServiceError):
    """Write rejected because it collides with an existing record (e.g. email)."""

    error_code = "conflict"
