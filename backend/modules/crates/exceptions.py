"""
Crate module exceptions.
"""

from typing import Optional

from shared.exceptions import CrateMatchError, NotFoundError, ValidationError


class DatabaseNotFoundError(NotFoundError):
    """Raised when the requested uploaded database does not exist in storage."""

    def __init__(self, file_name: str):
        super().__init__(
            "Database file not found. Please upload a database first.",
            code="DATABASE_NOT_FOUND",
            details={"databaseFileName": file_name},
        )


class NoFileUploadedError(ValidationError):
    """Raised when an upload request carries no file."""

    def __init__(self):
        super().__init__("Please select a database file", code="NO_FILE_UPLOADED")


class UploadTooLargeError(ValidationError):
    """Raised when an uploaded file exceeds the configured size cap."""

    status_code = 413

    def __init__(self, limit_bytes: int):
        super().__init__(
            f"Database file is too large (limit {limit_bytes // (1024 * 1024)} MB)",
            code="FILE_TOO_LARGE",
            details={"limit": limit_bytes},
        )


class StorageOperationError(CrateMatchError):
    """Raised when the blob store fails for a reason other than a missing object."""

    def __init__(self, operation: str, message: str = "Please try again"):
        super().__init__(message, code="STORAGE_ERROR", details={"operation": operation})


class CrateNotFoundError(NotFoundError):
    """Raised when a requested crate file is not available for download."""

    def __init__(self, file_name: str):
        super().__init__(
            "The requested crate file could not be found",
            code="FILE_NOT_FOUND",
            details={"fileName": file_name},
        )


class PlaylistImportError(CrateMatchError):
    """Raised when the playlist importer fails."""

    def __init__(self, message: str, show_upgrade: bool = False):
        details = {"showUpgrade": True} if show_upgrade else None
        super().__init__(message, code="PROCESSING_FAILED", details=details)
        self.show_upgrade = show_upgrade


class TrackLimitExceededError(PlaylistImportError):
    """Raised when a free account submits a playlist over the free track limit."""

    def __init__(
        self,
        message: str = (
            "Free users can only process playlists with 50 tracks or fewer. "
            "Please upgrade to Premium for unlimited processing."
        ),
    ):
        super().__init__(message, show_upgrade=True)


class ImporterNotConfiguredError(PlaylistImportError):
    """Raised when no playlist importer is configured."""

    def __init__(self, path: Optional[str] = None):
        detail = f" ({path})" if path else ""
        super().__init__(f"Playlist importer is not available{detail}")


class JobCancelledError(Exception):
    """
    Raised from the progress callback once the client has disconnected.

    Unwinds the importer. Never rendered to a client.
    """

    def __init__(self, job_id: str = ""):
        super().__init__(f"Job {job_id} cancelled: client disconnected")
        self.job_id = job_id
