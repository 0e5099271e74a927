import base64

from .base import StorageGateway


class InlineStorageGateway(StorageGateway):
    """Development backend that keeps file bytes inside the stored path itself.

    Nothing is written anywhere, so there is nothing to sign or delete.
    """

    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{content_type};base64,{encoded}"

    async def delete(self, path: str) -> None:
        return None
