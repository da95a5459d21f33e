"""Custom exceptions for the portal application."""


class PortalException(Exception):
    """Base class for portal exceptions with HTTP status code.

    Every subclass defines its status_code; the message is what the client
    sees in the ``{"error": ...}`` body, so it must never carry driver or SQL
    error text.
    """
    status_code: int = 500

    def __init__(self, message: str = "Internal server error."):
        self.message = message
        super().__init__(message)


class NotFoundError(PortalException):
    """Raised when a requested record does not exist.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class InvalidQueryError(PortalException):
    """Raised when the raw query payload is missing, not a string or blank.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, message: str = "Invalid query."):
        super().__init__(message)


class DatabaseError(PortalException):
    """Raised when a query against the store fails.

    The underlying driver exception is chained as ``__cause__`` and logged
    server-side only. Maps to HTTP 500.
    """
    status_code = 500

    def __init__(self, message: str = "Database error."):
        super().__init__(message)
