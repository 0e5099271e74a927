import logging
from functools import wraps

from fastapi import HTTPException

from messaging.api.common.exceptions import InternalServerError, handle_service_error
from messaging.services.exceptions import PersistenceError, ServiceError

logger = logging.getLogger(__name__)


def log_route_call(func):
    """
    A decorator to log the entry and exit of a route function.
    Only argument names are logged; values may hold file contents or credentials.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        route_logger = logging.getLogger(func.__module__)
        route_logger.info(
            f"Entering route: {func.__name__} (params: {sorted(kwargs)})"
        )
        try:
            result = await func(*args, **kwargs)
            route_logger.info(f"Successfully exited route: {func.__name__}")
            return result
        except Exception as e:
            route_logger.error(
                f"Error during route: {func.__name__}. Exception: {type(e).__name__} - {e}",
                exc_info=False,
            )
            raise

    return wrapper


def handle_route_errors(func):
    """
    A decorator to standardize error handling in API routes.
    Service errors become HTTP errors with a stable kind; anything unexpected
    is logged and reported as a generic 500.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PersistenceError as e:
            logger.error(f"Persistence error in {func.__name__} route: {e}", exc_info=True)
            handle_service_error(e)
        except ServiceError as e:
            logger.info(f"Service error in {func.__name__} route: {e}")
            handle_service_error(e)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error in {func.__name__} route: {e}", exc_info=True
            )
            raise InternalServerError()

    return wrapper
