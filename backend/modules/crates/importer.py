"""
Playlist importer adapter.

The importer is an external library call that matches a playlist against
the user's database and writes a crate into the shared staging directory.
It is configured by dotted path (``package.module:callable``) and may be a
coroutine function or a blocking callable; blocking importers run in a
worker thread.
"""

import importlib
import inspect
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from .exceptions import ImporterNotConfiguredError

ProgressCallback = Callable[[Any], None]


class PlaylistImporter(Protocol):
    """
    Signature of the external importer.

    Returns a summary dict; ``playlistName`` in it names the generated crate.
    Exceptions raised by ``on_progress`` must propagate out of the call.
    """

    def __call__(
        self,
        playlist_url: str,
        on_progress: ProgressCallback,
        threshold: int,
        database_path: str,
        is_free_user: bool,
    ) -> Union[dict[str, Any], Awaitable[dict[str, Any]]]:
        ...


def load_importer(path: Optional[str]) -> Optional[PlaylistImporter]:
    """
    Resolve ``package.module:callable`` to the importer.

    Returns None when no path is configured.

    Raises:
        ImporterNotConfiguredError: The path cannot be imported or is not callable
    """
    if not path:
        return None
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ImporterNotConfiguredError(path)
    try:
        module = importlib.import_module(module_name)
        target = module
        for part in attribute.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ImporterNotConfiguredError(path) from e
    if not callable(target):
        raise ImporterNotConfiguredError(path)
    return target


def is_async_importer(importer: PlaylistImporter) -> bool:
    if inspect.iscoroutinefunction(importer):
        return True
    call = getattr(importer, "__call__", None)
    return inspect.iscoroutinefunction(call)
