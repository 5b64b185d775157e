"""
Request-scoped temporary files.

Every file a request creates in the upload directory (original upload,
URL-fetched copy, resized derivative, downloaded artifact) is registered on a
TempFileScope and removed exactly once when the scope exits, whatever the
exit path. Deleting a file that is already gone is a no-op; a failed delete
is logged and never raised.
"""

import itertools
import logging
import os
import time
from pathlib import Path
from typing import Optional

from .errors import StorageError

logger = logging.getLogger(__name__)

_counter = itertools.count(1)


def unique_token() -> str:
    """Time-derived token with a process-wide counter so concurrent requests never collide."""
    return f"{time.time_ns()}_{os.getpid()}_{next(_counter)}"


class TempFileScope:
    """
    Owns the transient files of one request.

    Usage:
        with TempFileScope(upload_dir) as temp_files:
            path = temp_files.new_path("resized", ".png")
            ...
    """

    def __init__(self, directory):
        self.directory = Path(directory)
        self._paths: list[Path] = []

    def __enter__(self) -> "TempFileScope":
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create upload directory {self.directory}: {e}") from e
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def new_path(self, prefix: str, suffix: str = "", name: Optional[str] = None) -> Path:
        """Allocate (and register) a fresh path in the upload directory."""
        stem = f"{prefix}_{unique_token()}"
        if name:
            stem = f"{stem}_{Path(name).name}"
        path = self.directory / f"{stem}{suffix}"
        self.track(path)
        return path

    def track(self, path) -> Path:
        path = Path(path)
        if path not in self._paths:
            self._paths.append(path)
        return path

    def cleanup(self):
        while self._paths:
            path = self._paths.pop()
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete temp file {path}: {e}")
