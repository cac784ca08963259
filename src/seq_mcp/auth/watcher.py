"""Polling file watcher for the credential file."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable

logger = logging.getLogger(__name__)

# (mtime_ns, size, inode); None when the file is missing
FileSignature = tuple[int, int, int] | None


def file_signature(path: str) -> FileSignature:
    """Get a cheap change fingerprint for a file."""
    try:
        stat = os.stat(path)
    except FileNotFoundError:
        return None
    return (stat.st_mtime_ns, stat.st_size, stat.st_ino)


class CredentialFileWatcher:
    """Call a function whenever a file changes on disk.

    A daemon thread compares the file's stat signature every
    ``interval`` seconds. Rewrites, atomic renames (new inode) and
    deletions followed by re-creation all change the signature.

    The watcher thread is the only caller of ``on_change``, so
    overlapping change notifications are handled one at a time.
    Exceptions from ``on_change`` are logged and the watcher keeps
    running.
    """

    def __init__(
        self,
        path: str,
        on_change: Callable[[], None],
        interval: float = 1.0,
    ) -> None:
        self._path = path
        self._on_change = on_change
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._signature: FileSignature = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching. The current file state is the baseline."""
        if self.running:
            return
        self._signature = file_signature(self._path)
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"credential-watch:{os.path.basename(self._path)}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Watching credential file: {self._path}")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop watching and wait for the thread to exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def check(self) -> bool:
        """Compare the file against the last signature once.

        Returns:
            True if a change was seen and on_change was called.
        """
        signature = file_signature(self._path)
        if signature == self._signature:
            return False
        self._signature = signature

        # Deleted: keep the last good keys until the file comes back
        if signature is None:
            logger.warning(f"Credential file disappeared: {self._path}")
            return False

        try:
            self._on_change()
        except Exception as e:
            logger.error(f"Credential reload after file change failed: {e}")
        return True

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.check()
