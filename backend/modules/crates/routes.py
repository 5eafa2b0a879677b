"""
Crate API endpoints.

Database upload and listing, playlist processing (plain and streamed),
crate download, and local cache housekeeping.
"""

import logging
import time
import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Query, Request, UploadFile
from fastapi.responses import FileResponse
from sse_starlette.sse import EventSourceResponse

from api.dependencies import (
    get_app_settings,
    get_artifact_store,
    get_database_cache,
    get_database_storage,
    get_job_runner,
)
from api.middleware.auth import get_current_identity, get_current_identity_from_query
from api.middleware.entitlements import get_entitlement, get_stream_entitlement, quota_gate
from modules.entitlements import Entitlement
from shared.config import Settings
from shared.exceptions import ValidationError
from shared.models import Identity

from .artifacts import CrateArtifactStore
from .database_cache import DatabaseFileCache
from .exceptions import NoFileUploadedError, UploadTooLargeError
from .models import (
    DatabaseListResponse,
    ProcessPlaylistRequest,
    UploadDatabaseResponse,
)
from .runner import ImportJob, JobRunner
from .storage import DatabaseStorage

logger = logging.getLogger(__name__)

router = APIRouter()


def new_database_name() -> str:
    return f"database-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@router.post("/upload-database", response_model=UploadDatabaseResponse, response_model_by_alias=True)
async def upload_database(
    request: Request,
    database: Optional[UploadFile] = File(default=None),
    identity: Identity = Depends(get_current_identity),
    entitlement: Entitlement = Depends(get_entitlement),
    storage: DatabaseStorage = Depends(get_database_storage),
    cache: DatabaseFileCache = Depends(get_database_cache),
    settings: Settings = Depends(get_app_settings),
) -> UploadDatabaseResponse:
    """
    Store the caller's database, replacing any previous upload.

    The bytes are also cached locally so the first import skips the download.
    """
    if database is None:
        raise NoFileUploadedError()

    limit = settings.max_upload_bytes
    data = await database.read(limit + 1)
    if len(data) > limit:
        raise UploadTooLargeError(limit)
    if not data:
        raise NoFileUploadedError()

    file_name = new_database_name()
    replaced = await storage.replace(identity.id, file_name, data, request.state.access_token)
    await cache.seed(identity.id, file_name, data)
    cache.evict_owner(identity.id, keep=file_name)

    logger.info(f"User {identity.id} uploaded {file_name} ({len(data)} bytes)")
    return UploadDatabaseResponse(file_name=file_name, replaced=replaced)


@router.get("/databases", response_model=DatabaseListResponse)
async def list_databases(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    entitlement: Entitlement = Depends(get_entitlement),
    storage: DatabaseStorage = Depends(get_database_storage),
) -> DatabaseListResponse:
    databases = await storage.list_files(identity.id, request.state.access_token)
    return DatabaseListResponse(databases=databases)


def _playlist_request(body: ProcessPlaylistRequest = Body(...)) -> ProcessPlaylistRequest:
    return body


require_export_quota = quota_gate(get_entitlement, _playlist_request)


@router.post("/process-playlist")
async def process_playlist(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    body: ProcessPlaylistRequest = Depends(_playlist_request),
    entitlement: Entitlement = Depends(require_export_quota),
    runner: JobRunner = Depends(get_job_runner),
) -> dict:
    """
    Match a playlist against the caller's database and build a crate.

    Free accounts are charged one export before the import starts.
    """
    job = ImportJob(
        owner_id=identity.id,
        request=body,
        is_free_user=entitlement.is_free,
        access_token=request.state.access_token,
    )
    result = await runner.run(job)
    return result.to_payload()


def _stream_request(
    playlist_url: Optional[str] = Query(default=None, alias="playlistUrl"),
    threshold: Optional[int] = Query(default=None, ge=0, le=100),
    database_file_name: Optional[str] = Query(default=None, alias="databaseFileName"),
    settings: Settings = Depends(get_app_settings),
) -> ProcessPlaylistRequest:
    if not playlist_url or not database_file_name:
        raise ValidationError(
            "Please provide playlist URL, threshold, and database file name",
            code="MISSING_FIELDS",
        )
    return ProcessPlaylistRequest(
        playlist_url=playlist_url,
        threshold=threshold if threshold is not None else settings.default_threshold,
        database_file_name=database_file_name,
    )


require_stream_export_quota = quota_gate(get_stream_entitlement, _stream_request)


@router.get("/process-playlist-progress")
async def process_playlist_progress(
    request: Request,
    identity: Identity = Depends(get_current_identity_from_query),
    body: ProcessPlaylistRequest = Depends(_stream_request),
    entitlement: Entitlement = Depends(require_stream_export_quota),
    runner: JobRunner = Depends(get_job_runner),
):
    """
    Stream a playlist import as server-sent events.

    The access token travels in ``?token=`` because EventSource cannot send
    headers. Each event is a ``data:`` line holding a JobEvent:

    - {"type": "progress", "progress": 0-100, "message": "..."}
    - {"type": "complete", "success": true, "results": {...}, "crateFile": ...,
      "downloadUrl": ..., "hasCrateFile": bool}
    - {"type": "error", "error": "...", "message": "...", "showUpgrade"?: true}
    """
    job = ImportJob(
        owner_id=identity.id,
        request=body,
        is_free_user=entitlement.is_free,
        access_token=request.state.access_token,
    )

    async def event_generator():
        async for event in runner.stream(job, is_disconnected=request.is_disconnected):
            yield {"data": event.to_sse_data()}

    return EventSourceResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.get("/download-crate/{filename}")
async def download_crate(
    filename: str,
    identity: Identity = Depends(get_current_identity),
    entitlement: Entitlement = Depends(get_entitlement),
    artifacts: CrateArtifactStore = Depends(get_artifact_store),
) -> FileResponse:
    path = artifacts.resolve_download(identity.id, filename)
    return FileResponse(path, filename=path.name, media_type="application/octet-stream")


@router.post("/cleanup-cache")
async def cleanup_cache(
    identity: Identity = Depends(get_current_identity),
    cache: DatabaseFileCache = Depends(get_database_cache),
) -> dict:
    """Run the expired-database sweep now."""
    removed = await cache.cleanup_expired()
    return {"success": True, "message": "Cache cleanup completed", "removed": removed}


@router.delete("/cleanup/{file_name}")
async def cleanup_database(
    file_name: str,
    identity: Identity = Depends(get_current_identity),
    cache: DatabaseFileCache = Depends(get_database_cache),
) -> dict:
    """Drop the caller's cached copy of one database."""
    removed = cache.evict(identity.id, file_name)
    return {"success": True, "removed": removed}
