"""
Blob storage for uploaded databases.

Files live in the Supabase storage bucket under ``databases/{user_id}/``.
Requests carrying the caller's access token use a user client so storage
policies apply; background operations use the service client.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from supabase import Client

from .exceptions import DatabaseNotFoundError, StorageOperationError
from .models import DatabaseFile

logger = logging.getLogger(__name__)

PLACEHOLDER_FILE = ".emptyFolderPlaceholder"


def is_not_found(exc: BaseException) -> bool:
    """
    Whether a storage exception means "no such object".

    Storage errors arrive either with ``status``/``code`` attributes or with a
    dict payload as their first argument (``{"statusCode": 404, "error": ...}``).
    """
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if str(status) == "404":
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code.lower() in ("not_found", "nosuchkey", "404"):
        return True

    for arg in getattr(exc, "args", ()):
        if isinstance(arg, Mapping):
            if str(arg.get("statusCode")) == "404" or str(arg.get("status")) == "404":
                return True
            text = f"{arg.get('error', '')} {arg.get('message', '')}".lower()
            if "not found" in text or "not_found" in text:
                return True
        elif isinstance(arg, str) and "not found" in arg.lower():
            return True
    return False


def storage_path(owner_id: str, file_name: str = "") -> str:
    base = f"databases/{owner_id}"
    return f"{base}/{file_name}" if file_name else base


class DatabaseStorage:
    """Upload, download, list and delete a user's database files."""

    def __init__(
        self,
        service_client: Client,
        bucket: str = "cratematch-files",
        user_client_factory: Optional[Callable[[str], Client]] = None,
    ):
        self._service = service_client
        self._bucket = bucket
        self._user_client_factory = user_client_factory

    def _bucket_for(self, access_token: Optional[str]):
        client = self._service
        if access_token and self._user_client_factory is not None:
            client = self._user_client_factory(access_token)
        return client.storage.from_(self._bucket)

    async def upload(
        self,
        owner_id: str,
        file_name: str,
        data: bytes,
        access_token: Optional[str] = None,
    ) -> None:
        path = storage_path(owner_id, file_name)

        def _upload() -> Any:
            return self._bucket_for(access_token).upload(
                path,
                data,
                file_options={"content-type": "application/octet-stream", "upsert": "true"},
            )

        try:
            await asyncio.to_thread(_upload)
        except Exception as e:
            logger.error(f"Upload of {path} failed: {e}")
            raise StorageOperationError("upload") from e
        logger.info(f"Uploaded database {path} ({len(data)} bytes)")

    async def download(
        self,
        owner_id: str,
        file_name: str,
        access_token: Optional[str] = None,
    ) -> bytes:
        """
        Raises:
            DatabaseNotFoundError: The file does not exist
            StorageOperationError: Any other storage failure
        """
        path = storage_path(owner_id, file_name)
        try:
            return await asyncio.to_thread(lambda: self._bucket_for(access_token).download(path))
        except Exception as e:
            if is_not_found(e):
                raise DatabaseNotFoundError(file_name) from e
            logger.error(f"Download of {path} failed: {e}")
            raise StorageOperationError("download") from e

    async def list_files(self, owner_id: str, access_token: Optional[str] = None) -> list[DatabaseFile]:
        path = storage_path(owner_id)
        try:
            entries = await asyncio.to_thread(lambda: self._bucket_for(access_token).list(path))
        except Exception as e:
            if is_not_found(e):
                return []
            logger.error(f"Listing {path} failed: {e}")
            raise StorageOperationError("list") from e

        files = []
        for entry in entries or []:
            name = entry.get("name")
            if not name or name == PLACEHOLDER_FILE:
                continue
            metadata = entry.get("metadata") or {}
            files.append(
                DatabaseFile(
                    name=name,
                    size=metadata.get("size"),
                    created_at=entry.get("created_at"),
                    updated_at=entry.get("updated_at"),
                )
            )
        return files

    async def remove(self, owner_id: str, file_names: list[str]) -> None:
        if not file_names:
            return
        paths = [storage_path(owner_id, name) for name in file_names]
        try:
            await asyncio.to_thread(lambda: self._service.storage.from_(self._bucket).remove(paths))
        except Exception as e:
            logger.error(f"Removing {paths} failed: {e}")
            raise StorageOperationError("remove") from e

    async def replace(
        self,
        owner_id: str,
        file_name: str,
        data: bytes,
        access_token: Optional[str] = None,
    ) -> list[str]:
        """
        Store ``file_name`` as the owner's only database.

        The new file is uploaded before older ones are deleted, so a failed
        upload leaves the previous database in place. Returns the names removed.
        """
        previous = [f.name for f in await self.list_files(owner_id, access_token) if f.name != file_name]
        await self.upload(owner_id, file_name, data, access_token)
        try:
            await self.remove(owner_id, previous)
        except StorageOperationError:
            logger.warning(f"Could not remove previous databases for {owner_id}: {previous}")
            return []
        return previous
