"""
Crate module data models.

Request/response shapes for database uploads and playlist processing, and
the events streamed while a playlist import runs.
"""

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field


class ProcessPlaylistRequest(BaseModel):
    """Body of POST /process-playlist (and query of the streaming variant)."""

    playlist_url: str = Field(..., min_length=1, alias="playlistUrl", description="Streaming-service playlist URL")
    threshold: int = Field(default=90, ge=0, le=100, description="Match threshold percentage")
    database_file_name: str = Field(
        ..., min_length=1, alias="databaseFileName", description="Name of a previously uploaded database"
    )

    model_config = {"populate_by_name": True}


class JobState(str, Enum):
    """Lifecycle of one playlist import."""

    INITIALIZING = "initializing"
    DOWNLOADING_RESOURCE = "downloading_resource"
    RUNNING = "running"
    COMPLETING = "completing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED})


@dataclass(frozen=True)
class ProgressUpdate:
    """A normalized progress reading: integer percentage and a message."""

    percent: int
    message: str


@dataclass(frozen=True)
class ClaimedCrate:
    """A crate file moved out of the shared staging directory for one owner."""

    owner_id: str
    file_name: str
    path: Path

    @property
    def download_url(self) -> str:
        return f"/download-crate/{quote(self.file_name)}"


class JobEventType(str, Enum):
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class JobEvent(BaseModel):
    """
    One event of the progress stream.

    Serialized as the JSON ``data`` of a server-sent event with no event
    name, so browsers receive it through ``EventSource.onmessage``.
    """

    type: JobEventType
    progress: Optional[int] = None
    message: Optional[str] = None

    # complete
    success: Optional[bool] = None
    results: Optional[dict[str, Any]] = None
    crate_file: Optional[str] = Field(None, serialization_alias="crateFile")
    download_url: Optional[str] = Field(None, serialization_alias="downloadUrl")
    has_crate_file: Optional[bool] = Field(None, serialization_alias="hasCrateFile")

    # error
    error: Optional[str] = None
    show_upgrade: Optional[bool] = Field(None, serialization_alias="showUpgrade")

    @classmethod
    def progress_event(cls, update: ProgressUpdate) -> "JobEvent":
        return cls(type=JobEventType.PROGRESS, progress=update.percent, message=update.message)

    @classmethod
    def complete_event(cls, result: "ProcessPlaylistResult") -> "JobEvent":
        return cls(
            type=JobEventType.COMPLETE,
            success=result.success,
            results=result.results,
            crate_file=result.crate_file,
            download_url=result.download_url,
            has_crate_file=result.has_crate_file,
        )

    @classmethod
    def error_event(cls, error: str, message: str, show_upgrade: bool = False) -> "JobEvent":
        return cls(
            type=JobEventType.ERROR,
            error=error,
            message=message,
            show_upgrade=True if show_upgrade else None,
        )

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if self.type == JobEventType.COMPLETE:
            # Clients test these keys even when empty
            payload.setdefault("crateFile", None)
            payload.setdefault("downloadUrl", None)
        return payload

    def to_sse_data(self) -> str:
        return json.dumps(self.to_payload())


class ProcessPlaylistResult(BaseModel):
    """Outcome of a playlist import, as returned to the client."""

    success: bool = True
    results: dict[str, Any] = Field(default_factory=dict, description="Importer summary")
    crate_file: Optional[str] = Field(None, serialization_alias="crateFile")
    download_url: Optional[str] = Field(None, serialization_alias="downloadUrl")
    has_crate_file: bool = Field(False, serialization_alias="hasCrateFile")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DatabaseFile(BaseModel):
    """A database file stored for one user."""

    name: str
    size: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {"extra": "ignore"}


class DatabaseListResponse(BaseModel):
    """Response of GET /databases."""

    success: bool = True
    databases: list[DatabaseFile] = Field(default_factory=list)


class UploadDatabaseResponse(BaseModel):
    """Response of POST /upload-database."""

    success: bool = True
    message: str = "Database uploaded successfully!"
    file_name: str = Field(..., serialization_alias="fileName")
    replaced: list[str] = Field(default_factory=list, description="Previously stored files removed")
