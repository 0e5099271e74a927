from .base_router import BaseRouter
from .decorators import handle_route_errors, log_route_call
from .exceptions import (
    APIException,
    InternalServerError,
    NotFoundError,
    UnauthorizedError,
    handle_service_error,
)

__all__ = [
    "log_route_call",
    "handle_route_errors",
    "APIException",
    "NotFoundError",
    "UnauthorizedError",
    "InternalServerError",
    "handle_service_error",
    "BaseRouter",
]
