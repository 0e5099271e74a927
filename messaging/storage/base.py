from abc import ABC, abstractmethod

INLINE_REFERENCE_PREFIX = "data:"


def is_inline_reference(path: str) -> bool:
    """Inline references carry their bytes in the path and own no stored object."""
    return path.startswith(INLINE_REFERENCE_PREFIX)


class StorageGateway(ABC):
    """Capability wrapper around an object store.

    Implementations raise ``StorageError`` when the backend is unavailable.
    """

    @abstractmethod
    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        """Stores ``data`` under ``key`` and returns the durable path to persist."""

    async def get_signed_url(
        self, path: str, ttl_seconds: int, file_name: str | None = None
    ) -> str | None:
        """Returns a time-boxed access URL, or None if the backend cannot sign.

        ``file_name`` is the name downloads should be saved under, when known.
        """
        return None

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Removes the object at ``path``. Missing objects are not an error."""
