import logging

import jwt
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from messaging.api.common import BaseRouter, NotFoundError
from messaging.services.exceptions import StorageError
from messaging.storage import LocalStorageGateway, StorageGateway, get_storage_gateway

logger = logging.getLogger(__name__)
files_router_instance = APIRouter(prefix="/files")
router = BaseRouter(router=files_router_instance, default_tags=["files"])


@router.get("/{token}")
async def download_file(
    token: str,
    storage: StorageGateway = Depends(get_storage_gateway),
):
    """Serves a stored attachment named by a signed, expiring download token."""
    if not isinstance(storage, LocalStorageGateway):
        raise NotFoundError(message="File not found")

    try:
        path, file_name = storage.read_download_token(token)
        target = storage.resolve(path)
    except (jwt.InvalidTokenError, StorageError) as e:
        logger.warning(f"Rejected download token: {e}")
        raise NotFoundError(message="File not found")

    if not target.is_file():
        raise NotFoundError(message="File not found")
    return FileResponse(target, filename=file_name or target.name)
