import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
from starlette.concurrency import run_in_threadpool

from messaging.services.exceptions import StorageError

from .base import StorageGateway

logger = logging.getLogger(__name__)

DOWNLOAD_TOKEN_AUDIENCE = "messaging:download"


class LocalStorageGateway(StorageGateway):
    """Stores objects on the local filesystem under ``root``.

    Access URLs point at the ``/files/{token}`` route; the token is a JWT naming
    the stored path, so it expires and cannot be forged without the secret.
    """

    def __init__(
        self, root: str | Path, secret: str, public_base_url: str, algorithm="HS256"
    ):
        self.root = Path(root).resolve()
        self.secret = secret
        self.public_base_url = public_base_url.rstrip("/")
        self.algorithm = algorithm

    def resolve(self, path: str) -> Path:
        """Maps a stored path to a file under root, refusing anything outside it."""
        if not path or path.startswith(("/", "\\")) or ".." in Path(path).parts:
            raise StorageError(f"Invalid storage path '{path}'.")
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise StorageError(f"Invalid storage path '{path}'.")
        return target

    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        target = self.resolve(key)
        try:
            await run_in_threadpool(self._write, target, data)
        except OSError as e:
            logger.error(f"Failed to write object {key}: {e}", exc_info=True)
            raise StorageError(f"Failed to store file '{target.name}'.") from e
        logger.debug(f"Stored {len(data)} bytes at {key} ({content_type})")
        return key

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def get_signed_url(
        self, path: str, ttl_seconds: int, file_name: str | None = None
    ) -> str | None:
        token = self.create_download_token(path, ttl_seconds, file_name)
        return f"{self.public_base_url}/files/{token}"

    def create_download_token(
        self, path: str, ttl_seconds: int, file_name: str | None = None
    ) -> str:
        payload = {
            "sub": path,
            "aud": DOWNLOAD_TOKEN_AUDIENCE,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
        }
        if file_name:
            payload["name"] = file_name
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def read_download_token(self, token: str) -> tuple[str, str | None]:
        """Returns the stored path and download name carried by a valid token.

        Raises:
            jwt.InvalidTokenError: If the token is expired, tampered with or malformed.
        """
        payload = jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            audience=DOWNLOAD_TOKEN_AUDIENCE,
        )
        return payload["sub"], payload.get("name")

    async def delete(self, path: str) -> None:
        target = self.resolve(path)
        try:
            await run_in_threadpool(target.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete '{path}'.") from e
