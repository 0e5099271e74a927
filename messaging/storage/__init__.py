from functools import lru_cache

from messaging.core.config import settings

from .base import StorageGateway, is_inline_reference
from .inline import InlineStorageGateway
from .local import LocalStorageGateway


@lru_cache
def get_storage_gateway() -> StorageGateway:
    """Dependency provider for the configured storage backend."""
    if settings.STORAGE_BACKEND == "inline":
        return InlineStorageGateway()
    if settings.STORAGE_BACKEND == "local":
        return LocalStorageGateway(
            root=settings.STORAGE_ROOT,
            secret=settings.SECRET,
            public_base_url=settings.PUBLIC_BASE_URL,
            algorithm=settings.ALGORITHM,
        )
    raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}'")


__all__ = [
    "StorageGateway",
    "LocalStorageGateway",
    "InlineStorageGateway",
    "get_storage_gateway",
    "is_inline_reference",
]
