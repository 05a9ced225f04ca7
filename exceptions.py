"""
Application exception hierarchy.

Every failure a route can report is one of these. The handlers registered in
main.py turn them into a JSON body of the form
``{"error": <code>, "message": <text>, "request_id": <id>}`` with the status
code carried by the class, so each failure kind looks the same on every route.

    ApiError (base)                → 500
    ├── InvalidParameterError      → 400  malformed query or body input
    ├── UnauthorizedError          → 401  missing or invalid token
    ├── ForbiddenError             → 403  valid identity, insufficient role
    ├── NotFoundError              → 404  referenced record absent
    ├── ConflictError              → 409  record state forbids the change
    └── UpstreamUnavailableError   → 503  data store or payment gateway failed
"""

from typing import Any, Dict, Optional


class ApiError(Exception):
    """
    Base class for errors surfaced to API clients.

    Attributes:
        message:  Client-safe description, returned in the response body.
        context:  Extra debugging details, logged but never returned.
    """

    status_code = 500
    error = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class InvalidParameterError(ApiError):
    status_code = 400
    error = "invalid_parameter"

    def __init__(
        self,
        message: str = "Invalid parameter",
        parameter: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if parameter:
            ctx["parameter"] = parameter
        super().__init__(message=message, context=ctx)
        self.parameter = parameter


class UnauthorizedError(ApiError):
    status_code = 401
    error = "unauthorized"

    def __init__(self, message: str = "unauthorized access", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class ForbiddenError(ApiError):
    status_code = 403
    error = "forbidden"

    def __init__(self, message: str = "forbidden access", context: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, context=context)


class NotFoundError(ApiError):
    status_code = 404
    error = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(ApiError):
    status_code = 409
    error = "conflict"


class UpstreamUnavailableError(ApiError):
    """
    The data store or the payment gateway could not be reached or failed.

    Never retried automatically; the client decides whether to try again.
    """

    status_code = 503
    error = "upstream_unavailable"

    def __init__(
        self,
        message: str = "A backing service is temporarily unavailable. Please try again later.",
        service: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if service:
            ctx["service"] = service
        super().__init__(message=message, context=ctx)
        self.service = service
