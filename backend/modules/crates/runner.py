"""
Playlist import job runner.

Wraps one call of the external importer. ``stream`` drives the progress
stream: it registers a job session, prepares the user's database, relays
normalized progress (with a liveness heartbeat when the importer is quiet),
claims the generated crate and finishes with a single complete or error
event. A client disconnect cancels the session; the next progress callback
raises JobCancelledError, which unwinds the importer, and nothing more is
written. ``run`` is the request/response variant.
"""

import asyncio
import logging
from collections.abc import Mapping
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from shared.exceptions import CrateMatchError

from .artifacts import CrateArtifactStore
from .database_cache import DatabaseFileCache
from .exceptions import (
    ImporterNotConfiguredError,
    JobCancelledError,
    PlaylistImportError,
    TrackLimitExceededError,
)
from .importer import PlaylistImporter, ProgressCallback, is_async_importer
from .models import (
    ClaimedCrate,
    JobEvent,
    JobState,
    ProcessPlaylistRequest,
    ProcessPlaylistResult,
)
from .progress import ProgressNormalizer
from .registry import JobRegistry, JobSession

logger = logging.getLogger(__name__)

DEFAULT_TRACK_LIMIT_PATTERN = "Free users are limited to importing playlists with 50 tracks or fewer"

_DONE = object()

DisconnectCheck = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class ImportJob:
    """Everything the runner needs for one import."""

    owner_id: str
    request: ProcessPlaylistRequest
    is_free_user: bool
    access_token: Optional[str] = None


class JobRunner:
    """Runs playlist imports for the API."""

    def __init__(
        self,
        registry: JobRegistry,
        database_cache: DatabaseFileCache,
        artifacts: CrateArtifactStore,
        importer: Optional[PlaylistImporter] = None,
        heartbeat_seconds: float = 3.0,
        track_limit_pattern: str = DEFAULT_TRACK_LIMIT_PATTERN,
    ):
        self._registry = registry
        self._cache = database_cache
        self._artifacts = artifacts
        self._importer = importer
        self.heartbeat_seconds = heartbeat_seconds
        self.track_limit_pattern = track_limit_pattern

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    async def _invoke(self, job: ImportJob, on_progress: ProgressCallback, database_path: Path) -> dict[str, Any]:
        if self._importer is None:
            raise ImporterNotConfiguredError()
        args = (
            job.request.playlist_url,
            on_progress,
            job.request.threshold,
            str(database_path),
            job.is_free_user,
        )
        if is_async_importer(self._importer):
            results = await self._importer(*args)
        else:
            results = await asyncio.to_thread(self._importer, *args)
        if isinstance(results, Mapping):
            return dict(results)
        return {"result": results} if results is not None else {}

    def _failure(self, exc: BaseException) -> CrateMatchError:
        """Map an importer exception onto the error reported to the client."""
        if isinstance(exc, CrateMatchError):
            return exc
        message = str(exc) or "Please try again"
        if self.track_limit_pattern and self.track_limit_pattern in message:
            return TrackLimitExceededError()
        return PlaylistImportError(message)

    @staticmethod
    def _result(results: dict[str, Any], crate: Optional[ClaimedCrate]) -> ProcessPlaylistResult:
        return ProcessPlaylistResult(
            success=True,
            results=results,
            crate_file=crate.file_name if crate else None,
            download_url=crate.download_url if crate else None,
            has_crate_file=crate is not None,
        )

    def _discard_after(self, task: Optional[asyncio.Task], working: Optional[Path]) -> None:
        """Remove the working copy once the importer has let go of it."""
        if task is None or task.done():
            self._cache.discard_working_copy(working)
            return

        def _on_done(finished: asyncio.Task) -> None:
            if not finished.cancelled() and finished.exception() is not None:
                logger.info(f"Abandoned import ended with: {finished.exception()}")
            self._cache.discard_working_copy(working)

        task.add_done_callback(_on_done)

    async def run(self, job: ImportJob) -> ProcessPlaylistResult:
        """
        Run an import without progress events.

        Raises:
            DatabaseNotFoundError: The selected database is not in storage
            PlaylistImportError: The importer failed (TrackLimitExceededError
                for the free tier's playlist size limit)
        """
        session = self._registry.open(job.owner_id)
        working: Optional[Path] = None
        logger.info(f"Processing playlist {job.request.playlist_url} for user {job.owner_id}")

        def on_progress(payload: Any) -> None:
            logger.debug(f"Job {session.id} progress: {payload!r}")

        try:
            working = await self._cache.working_copy(
                job.owner_id, job.request.database_file_name, session.id, job.access_token
            )
            results = await self._invoke(job, on_progress, working)
        except CrateMatchError:
            raise
        except Exception as e:
            logger.error(f"Job {session.id} failed: {e}")
            raise self._failure(e) from e
        finally:
            self._cache.discard_working_copy(working)
            self._registry.release(session.id)

        crate = await self._artifacts.claim(job.owner_id, results.get("playlistName"))
        logger.info(f"Job {session.id} finished (crate: {crate.file_name if crate else 'none'})")
        return self._result(results, crate)

    async def stream(
        self,
        job: ImportJob,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> AsyncIterator[JobEvent]:
        """
        Run an import, yielding progress events and one terminal event.

        Closing or cancelling the iterator counts as a client disconnect.
        """
        session = self._registry.open(job.owner_id)
        normalizer = ProgressNormalizer()
        queue: asyncio.Queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        task: Optional[asyncio.Task] = None
        working: Optional[Path] = None
        state = JobState.INITIALIZING
        logger.info(f"Job {session.id} started for playlist {job.request.playlist_url}")

        def on_progress(payload: Any) -> None:
            session.token.raise_if_cancelled(session.id)
            loop.call_soon_threadsafe(queue.put_nowait, payload)

        try:
            yield JobEvent.progress_event(normalizer.stage(0, "Loading database..."))

            state = JobState.DOWNLOADING_RESOURCE
            try:
                working = await self._cache.working_copy(
                    job.owner_id, job.request.database_file_name, session.id, job.access_token
                )
            except CrateMatchError as e:
                state = JobState.FAILED
                logger.warning(f"Job {session.id} could not load database: {e.message}")
                yield JobEvent.error_event(e.code, e.message)
                return

            if session.token.cancelled:
                state = JobState.CANCELLED
                return
            yield JobEvent.progress_event(
                normalizer.stage(10, "Database loaded, starting playlist processing...")
            )

            state = JobState.RUNNING
            task = asyncio.create_task(self._invoke(job, on_progress, working))
            task.add_done_callback(lambda _: queue.put_nowait(_DONE))

            async with aclosing(self._relay(session, normalizer, queue, is_disconnected)) as events:
                async for event in events:
                    yield event

            if session.token.cancelled:
                state = JobState.CANCELLED
                return

            try:
                results = task.result()
            except JobCancelledError:
                state = JobState.CANCELLED
                return
            except Exception as e:
                state = JobState.FAILED
                failure = self._failure(e)
                logger.error(f"Job {session.id} failed: {e}")
                yield JobEvent.error_event(
                    failure.code,
                    failure.message,
                    show_upgrade=bool(failure.details.get("showUpgrade")),
                )
                return

            state = JobState.COMPLETING
            yield JobEvent.progress_event(
                normalizer.stage(90, "Processing complete, generating crate file...")
            )
            crate = await self._artifacts.claim(job.owner_id, results.get("playlistName"))
            result = self._result(results, crate)
            yield JobEvent.progress_event(normalizer.stage(100, "Complete!"))

            state = JobState.SUCCEEDED
            yield JobEvent.complete_event(result)
        except (asyncio.CancelledError, GeneratorExit):
            # The response is gone; stop the importer at its next progress report
            session.token.cancel()
            state = JobState.CANCELLED
            raise
        except Exception as e:
            state = JobState.FAILED
            logger.exception(f"Job {session.id} failed unexpectedly")
            if not session.token.cancelled:
                failure = self._failure(e)
                yield JobEvent.error_event(failure.code, failure.message)
        finally:
            self._registry.release(session.id)
            self._discard_after(task, working)
            logger.info(f"Job {session.id} ended: {state.value}")

    async def _relay(
        self,
        session: JobSession,
        normalizer: ProgressNormalizer,
        queue: asyncio.Queue,
        is_disconnected: Optional[DisconnectCheck],
    ) -> AsyncIterator[JobEvent]:
        """Relay importer progress until the importer finishes or the client leaves."""
        while True:
            try:
                item = await asyncio.wait_for(queue.get(), timeout=self.heartbeat_seconds)
            except asyncio.TimeoutError:
                if is_disconnected is not None and await is_disconnected():
                    session.token.cancel()
                if session.token.cancelled:
                    return
                yield JobEvent.progress_event(normalizer.heartbeat())
                continue

            if item is _DONE:
                return
            if is_disconnected is not None and await is_disconnected():
                session.token.cancel()
            if session.token.cancelled:
                return
            update = normalizer.normalize(item)
            logger.debug(f"Job {session.id} progress {update.percent}%: {update.message}")
            yield JobEvent.progress_event(update)
