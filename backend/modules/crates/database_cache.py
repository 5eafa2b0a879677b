"""
Local cache of uploaded databases.

The importer needs a database on local disk. Copies are kept under
``cache_dir/{user_id}/{file_name}`` and reused for 24 hours from when they
were fetched; after that they are deleted and fetched again on next use.
Concurrent fetches of the same file by the same user share one download.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional

from shared.exceptions import ValidationError

from .storage import DatabaseStorage

logger = logging.getLogger(__name__)


def safe_file_name(file_name: str) -> str:
    """Reject names that would escape their directory."""
    if not file_name or file_name in (".", "..") or Path(file_name).name != file_name:
        raise ValidationError("Invalid file name", code="INVALID_FILE_NAME")
    return file_name


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".partial-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class DatabaseFileCache:
    """Cache-or-fetch policy for database files, keyed by (user, file name)."""

    def __init__(
        self,
        storage: DatabaseStorage,
        cache_dir: Path,
        uploads_dir: Path,
        max_age_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._storage = storage
        self.cache_dir = Path(cache_dir)
        self.uploads_dir = Path(uploads_dir)
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def path_for(self, owner_id: str, file_name: str) -> Path:
        return self.cache_dir / safe_file_name(owner_id) / safe_file_name(file_name)

    def is_fresh(self, path: Path) -> bool:
        try:
            age = self._clock() - path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age < self.max_age_seconds

    def _lock(self, owner_id: str, file_name: str) -> asyncio.Lock:
        key = (owner_id, file_name)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def fetch(self, owner_id: str, file_name: str, access_token: Optional[str] = None) -> Path:
        """
        Return a fresh local copy, downloading it if needed.

        Raises:
            DatabaseNotFoundError: The file is not in storage
        """
        path = self.path_for(owner_id, file_name)
        async with self._lock(owner_id, file_name):
            if self.is_fresh(path):
                logger.debug(f"Using cached database {path}")
                return path
            if path.exists():
                logger.info(f"Cached database expired, removing {path}")
                path.unlink(missing_ok=True)

            data = await self._storage.download(owner_id, file_name, access_token)
            await asyncio.to_thread(_write_atomic, path, data)
            logger.info(f"Cached database {path} ({len(data)} bytes)")
            return path

    async def seed(self, owner_id: str, file_name: str, data: bytes) -> Path:
        """Cache freshly uploaded bytes so the first job skips the download."""
        path = self.path_for(owner_id, file_name)
        async with self._lock(owner_id, file_name):
            await asyncio.to_thread(_write_atomic, path, data)
        return path

    async def working_copy(
        self,
        owner_id: str,
        file_name: str,
        job_id: str,
        access_token: Optional[str] = None,
    ) -> Path:
        """Copy the cached database to a per-job path the importer may modify."""
        cached = await self.fetch(owner_id, file_name, access_token)
        destination = self.uploads_dir / f"{safe_file_name(job_id)}-{file_name}"
        destination.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, cached, destination)
        return destination

    def discard_working_copy(self, path: Optional[Path]) -> None:
        """Delete a working copy; failures are logged, never raised."""
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove working copy {path}: {e}")

    def evict(self, owner_id: str, file_name: str) -> bool:
        """Drop one cached file. Returns whether anything was removed."""
        path = self.path_for(owner_id, file_name)
        if not path.exists():
            return False
        path.unlink(missing_ok=True)
        logger.info(f"Evicted cached database {path}")
        return True

    def evict_owner(self, owner_id: str, keep: Optional[str] = None) -> int:
        """Drop every cached file for ``owner_id`` except ``keep``."""
        owner_dir = self.cache_dir / safe_file_name(owner_id)
        if not owner_dir.is_dir():
            return 0
        removed = 0
        for path in owner_dir.iterdir():
            if path.is_file() and path.name != keep:
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    def _remove_expired(self) -> int:
        if not self.cache_dir.is_dir():
            return 0
        removed = 0
        for owner_dir in self.cache_dir.iterdir():
            if not owner_dir.is_dir():
                continue
            for path in owner_dir.iterdir():
                if path.is_file() and not self.is_fresh(path):
                    try:
                        path.unlink()
                        removed += 1
                    except OSError as e:
                        logger.warning(f"Failed to remove expired cache file {path}: {e}")
            if not any(owner_dir.iterdir()):
                owner_dir.rmdir()
        return removed

    async def cleanup_expired(self) -> int:
        """Remove cached files past their freshness window. Returns the number removed."""
        removed = await asyncio.to_thread(self._remove_expired)

        for key, lock in list(self._locks.items()):
            if not lock.locked():
                self._locks.pop(key, None)

        if removed:
            logger.info(f"Removed {removed} expired cached databases")
        return removed
