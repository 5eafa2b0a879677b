"""
Crates module.

Turns a playlist URL plus an uploaded DJ library database into a crate
file, through an external importer.

Public API:
- JobRunner, ImportJob: run an import plainly or as a progress stream
- ProgressNormalizer: raw importer progress -> ProgressUpdate
- JobRegistry, JobSession, CancellationToken: active stream bookkeeping
- DatabaseStorage, DatabaseFileCache: uploaded databases in storage and on disk
- CrateArtifactStore: claim and serve generated crates
"""

from .models import (
    ClaimedCrate,
    DatabaseFile,
    JobEvent,
    JobEventType,
    JobState,
    ProcessPlaylistRequest,
    ProcessPlaylistResult,
    ProgressUpdate,
)
from .progress import ProgressNormalizer
from .registry import CancellationToken, JobRegistry, JobSession
from .storage import DatabaseStorage, is_not_found
from .database_cache import DatabaseFileCache
from .artifacts import CrateArtifactStore, sanitize_playlist_name
from .importer import PlaylistImporter, load_importer
from .runner import ImportJob, JobRunner
from .exceptions import (
    CrateNotFoundError,
    DatabaseNotFoundError,
    ImporterNotConfiguredError,
    JobCancelledError,
    PlaylistImportError,
    StorageOperationError,
    TrackLimitExceededError,
)

__all__ = [
    # Models
    "ClaimedCrate",
    "DatabaseFile",
    "JobEvent",
    "JobEventType",
    "JobState",
    "ProcessPlaylistRequest",
    "ProcessPlaylistResult",
    "ProgressUpdate",
    # Services
    "ProgressNormalizer",
    "CancellationToken",
    "JobRegistry",
    "JobSession",
    "DatabaseStorage",
    "is_not_found",
    "DatabaseFileCache",
    "CrateArtifactStore",
    "sanitize_playlist_name",
    "PlaylistImporter",
    "load_importer",
    "ImportJob",
    "JobRunner",
    # Exceptions
    "CrateNotFoundError",
    "DatabaseNotFoundError",
    "ImporterNotConfiguredError",
    "JobCancelledError",
    "PlaylistImportError",
    "StorageOperationError",
    "TrackLimitExceededError",
]
