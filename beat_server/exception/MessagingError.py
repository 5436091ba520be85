class MessagingError(Exception):
    """Base class for errors raised by the messaging core.

    Each subclass carries the HTTP status and the short error code used in the
    JSON envelope ({"success": false, "message": ..., "error": <code>}).
    """
    status = 500
    code = 'INTERNAL'

    def __init__(self, message, status=None, code=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code


class AuthFailed(MessagingError):
    """Raised when a credential is missing, malformed, expired, or names an unknown user."""
    status = 401
    code = 'UNAUTHORIZED'


class Forbidden(MessagingError):
    """Raised when an authenticated user is not allowed to touch the target resource."""
    status = 403
    code = 'FORBIDDEN'


class NotFound(MessagingError):
    status = 404
    code = 'NOT_FOUND'


class InvalidInput(MessagingError):
    """Raised for malformed payloads: empty text, wrong variant shape, bad ids."""
    status = 400
    code = 'INVALID_DATA'


class Conflict(MessagingError):
    status = 409
    code = 'CONFLICT'


class Internal(MessagingError):
    status = 500
    code = 'INTERNAL'
