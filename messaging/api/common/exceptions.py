import logging
from typing import Any

from fastapi import HTTPException, status
from pydantic import BaseModel

from messaging.services import exceptions as service_exceptions

logger = logging.getLogger(__name__)

CONVERSATION_HIDDEN_MESSAGE = "Conversation not found or access denied"


class APIException(HTTPException):
    """Base class for API specific exceptions."""

    def __init__(
        self, status_code: int, detail: Any = None, headers: dict | None = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ErrorDetail(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    detail: ErrorDetail


def error_detail(kind: str, message: str) -> dict[str, str]:
    return ErrorDetail(kind=kind, message=message).model_dump()


# Documented on every route registered through BaseRouter
COMMON_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


class NotFoundError(APIException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail("not_found", message),
        )


class UnauthorizedError(APIException):
    def __init__(self, message: str = "Authentication required."):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_detail("unauthenticated", message),
        )


class InternalServerError(APIException):
    def __init__(self, message: str = "An unexpected server error occurred."):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail("internal_error", message),
        )


def handle_service_error(e: service_exceptions.ServiceError):
    """
    Maps ServiceError subclasses to an APIException carrying {"kind", "message"}.
    This function is expected to be called by the @handle_route_errors decorator.

    A caller who is not a participant gets exactly the response of a missing
    conversation, so membership checks never reveal that a conversation exists.
    """
    logger.warning(f"Handling service error: {e.__class__.__name__} - {e.message}")

    if isinstance(
        e,
        (
            service_exceptions.ForbiddenError,
            service_exceptions.ConversationNotFoundError,
        ),
    ):
        raise NotFoundError(message=CONVERSATION_HIDDEN_MESSAGE)
    if isinstance(e, service_exceptions.NotFoundError):
        raise NotFoundError(message=e.message)
    if isinstance(e, service_exceptions.UnauthenticatedError):
        raise UnauthorizedError(message=e.message)
    raise APIException(
        status_code=e.status_code,
        detail=error_detail(e.kind, e.message),
    )
