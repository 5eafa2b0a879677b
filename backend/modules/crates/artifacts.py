"""
Crate artifact handoff.

The importer writes generated crates into one shared staging directory
that every job uses. A finished job claims its crate by moving it into the
owner's directory under a lock, so two jobs producing a crate with the same
name never pick up each other's file.
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Optional

from shared.exceptions import ValidationError

from .database_cache import safe_file_name
from .exceptions import CrateNotFoundError
from .models import ClaimedCrate

logger = logging.getLogger(__name__)

CRATE_SUFFIX = ".crate"
DEFAULT_PLAYLIST_NAME = "playlist"

_UNSAFE = re.compile(r"[^a-zA-Z0-9\s]")


def sanitize_playlist_name(name: str) -> str:
    """Crate file name for a playlist: letters, digits and spaces only."""
    cleaned = _UNSAFE.sub("", name or "").strip()
    return f"{cleaned or DEFAULT_PLAYLIST_NAME}{CRATE_SUFFIX}"


def find_staged_crate(staging_dir: Path, playlist_name: str) -> Optional[Path]:
    """Exact ``<playlist>.crate`` first, else the first crate whose name contains the playlist name."""
    if not staging_dir.is_dir():
        return None
    crates = sorted(p for p in staging_dir.iterdir() if p.is_file() and p.name.endswith(CRATE_SUFFIX))

    exact = f"{playlist_name}{CRATE_SUFFIX}"
    for path in crates:
        if path.name == exact:
            return path

    needle = playlist_name.lower()
    for path in crates:
        if needle in path.name.lower():
            return path
    return None


class CrateArtifactStore:
    """Claims staged crates for their owner and serves them for download."""

    def __init__(self, staging_dir: Path, crates_dir: Path):
        self.staging_dir = Path(staging_dir)
        self.crates_dir = Path(crates_dir)
        self._lock = asyncio.Lock()

    def owner_dir(self, owner_id: str) -> Path:
        return self.crates_dir / safe_file_name(owner_id)

    def _clear(self, directory: Path) -> None:
        for path in directory.iterdir():
            if path.is_file() and path.name.endswith(CRATE_SUFFIX):
                path.unlink(missing_ok=True)
                logger.debug(f"Removed old crate file {path}")

    def _claim(self, owner_id: str, playlist_name: str) -> Optional[ClaimedCrate]:
        source = find_staged_crate(self.staging_dir, playlist_name)
        if source is None:
            return None

        destination_dir = self.owner_dir(owner_id)
        destination_dir.mkdir(parents=True, exist_ok=True)
        self._clear(destination_dir)

        # Same filesystem, so the move is a single rename
        claimed = destination_dir / source.name
        os.replace(source, claimed)

        final = destination_dir / sanitize_playlist_name(playlist_name)
        if final != claimed:
            os.replace(claimed, final)
        return ClaimedCrate(owner_id=owner_id, file_name=final.name, path=final)

    async def claim(self, owner_id: str, playlist_name: Optional[str]) -> Optional[ClaimedCrate]:
        """
        Move the crate for ``playlist_name`` out of staging into the owner's directory.

        Returns None when the importer produced no crate (no matches found).
        """
        playlist_name = playlist_name or DEFAULT_PLAYLIST_NAME
        async with self._lock:
            crate = await asyncio.to_thread(self._claim, owner_id, playlist_name)
        if crate is None:
            logger.info(f"No crate produced for playlist {playlist_name!r}")
        else:
            logger.info(f"Claimed crate {crate.file_name} for user {owner_id}")
        return crate

    def resolve_download(self, owner_id: str, file_name: str) -> Path:
        """
        Path of a claimed crate belonging to ``owner_id``.

        Raises:
            CrateNotFoundError: No such crate for this owner
        """
        try:
            path = self.owner_dir(owner_id) / safe_file_name(file_name)
        except ValidationError as e:
            raise CrateNotFoundError(file_name) from e
        if not path.is_file():
            raise CrateNotFoundError(file_name)
        return path
