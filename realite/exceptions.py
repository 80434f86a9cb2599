"""
Domain error taxonomy shared by the matching and negotiation engine.

ValidationError     malformed input, rejected before anything is persisted
CollaboratorError   calendar/contacts/notification failure, never fatal
StateConflictError  transition not allowed from the observed state, a no-op
NotFoundError       unknown suggestion/plan id, surfaced as 404
"""


class RealiteError(Exception):
    """Base exception carrying an optional code and recoverability flag."""

    def __init__(self, message: str, error_code: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recoverable = recoverable


class ValidationError(RealiteError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, error_code="validation_error", recoverable=False)
        self.field = field


class CollaboratorError(RealiteError):
    def __init__(self, message: str, collaborator: str, user_id: str | None = None):
        super().__init__(message, error_code=f"{collaborator}_unavailable")
        self.collaborator = collaborator
        self.user_id = user_id


class CalendarCollaboratorError(CollaboratorError):
    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message, collaborator="calendar", user_id=user_id)


class StateConflictError(RealiteError):
    def __init__(self, message: str, current_state: str | None = None):
        super().__init__(message, error_code="state_conflict")
        self.current_state = current_state


class NotFoundError(RealiteError):
    def __init__(self, message: str, resource: str, resource_id: str):
        super().__init__(message, error_code="not_found", recoverable=False)
        self.resource = resource
        self.resource_id = resource_id
