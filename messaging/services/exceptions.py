import logging

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for service layer errors."""

    kind = "service_error"

    def __init__(self, message="An internal service error occurred.", status_code=500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class UnauthenticatedError(ServiceError):
    kind = "unauthenticated"

    def __init__(self, message="Authentication required."):
        super().__init__(message, status_code=401)


class NotFoundError(ServiceError):
    kind = "not_found"

    def __init__(self, message="Resource not found."):
        super().__init__(message, status_code=404)


class ConversationNotFoundError(NotFoundError):
    def __init__(self, message="Conversation not found."):
        super().__init__(message)


class ForbiddenError(ServiceError):
    """Caller is not a participant of the target conversation.

    Clients see this exactly like a missing conversation so that membership
    checks do not confirm that a conversation exists.
    """

    kind = "forbidden"

    def __init__(self, message="User is not a participant in this conversation."):
        super().__init__(message, status_code=403)


class ValidationError(ServiceError):
    """Malformed input: file count/size/type, content length, bad ids, etc."""

    kind = "validation_error"

    def __init__(self, message="Invalid request."):
        super().__init__(message, status_code=400)


class StorageError(ServiceError):
    """The object store failed during the upload phase."""

    kind = "storage_error"

    def __init__(self, message="The file storage service is unavailable."):
        super().__init__(message, status_code=502)


class PersistenceError(ServiceError):
    """A relational transaction failed."""

    kind = "persistence_error"

    def __init__(self, message="A database error occurred."):
        super().__init__(message, status_code=500)
