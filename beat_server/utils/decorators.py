"""Route decorators for error handling and authentication.

This module provides reusable decorators to reduce boilerplate in route handlers.
"""
import functools
import logging
from typing import Callable

from flask import request

from beat_server.exception.MessagingError import MessagingError
from beat_server.utils.helpers import respond_error
from beat_server.security.authentication import get_auth_payload, AuthSecurity

logger = logging.getLogger(__name__)


def handle_errors(func: Callable) -> Callable:
    """Decorator to turn exceptions raised by route handlers into JSON envelopes.

    Catches:
    - MessagingError subclasses -> their own status and error code
    - Other exceptions -> 500, logged with traceback

    Usage:
        @bp.route('/example')
        @handle_errors
        def example_route():
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except MessagingError as e:
            if e.status >= 500:
                logger.error("%s failed: %s", func.__name__, e)
            else:
                logger.warning("%s rejected (%s): %s", func.__name__, e.code, e)
            return respond_error(e.message, status=e.status, code=e.code)
        except Exception:
            logger.exception("Unexpected error in %s", func.__name__)
            return respond_error('Server error', status=500, code='INTERNAL')
    return wrapper


def require_auth(func: Callable) -> Callable:
    """Decorator to require a valid bearer token and inject the caller's user id.

    The decorated function receives `user_id` as a keyword argument.

    Usage:
        @bp.route('/protected')
        @handle_errors
        @require_auth
        def protected_route(user_id):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        payload = get_auth_payload(request)
        kwargs['user_id'] = AuthSecurity.user_id_from_payload(payload)
        return func(*args, **kwargs)
    return wrapper
