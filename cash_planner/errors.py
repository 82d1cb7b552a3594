# cash_planner/errors.py
"""Error taxonomy shared by the store, the engine and the service boundaries.

Every error carries a stable ``kind`` string so the HTTP, CLI and MCP layers
can report it without inspecting the class hierarchy.
"""


class CashPlannerError(Exception):
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ValidationError(CashPlannerError, ValueError):
    """A record, window or request body is missing a field or is malformed."""

    kind = "validation_error"


class NotFound(CashPlannerError, LookupError):
    """The record does not exist for the requesting owner."""

    kind = "not_found"


class DuplicateId(CashPlannerError):
    """A record or account with the same identifier already exists."""

    kind = "duplicate_id"


class AuthError(CashPlannerError):
    """Bad credentials or an invalid/expired token."""

    kind = "auth_error"


class ServiceError(CashPlannerError):
    """The suggestion service failed, timed out or replied with garbage."""

    kind = "service_error"
