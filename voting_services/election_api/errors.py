"""Election error taxonomy.

The service raises these; the HTTP layer maps each kind to a status code.
"""


class ElectionError(Exception):
    """Base class for all election errors."""

    def __init__(self, message: str = "Election error"):
        self.message = message
        super().__init__(self.message)


class ValidationError(ElectionError):
    """Malformed or missing input."""

    def __init__(self, message: str = "Validation error"):
        super().__init__(message)


class NotFoundError(ElectionError):
    """Referenced resource does not exist."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(ElectionError):
    """Request violates a voting rule (duplicate vote, delete with votes)."""

    def __init__(self, message: str = "Conflict"):
        super().__init__(message)


class AuthenticationError(ElectionError):
    """Caller is not authorized as admin."""

    def __init__(self, message: str = "Admin authentication required"):
        super().__init__(message)


class InternalError(ElectionError):
    """Storage or other unexpected failure. Message is never sent to clients."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
