"""Tracking of the files under a directory and reporting of their changes."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Iterator, Optional

from .entry import FileEntry

logger = logging.getLogger(__name__)

ChangedCallback = Callable[[FileEntry], None]
RemovedCallback = Callable[[str], None]


def _suffix(name: str) -> str:
    _, sep, tail = name.rpartition(".")
    return tail if sep else ""


def _mtime_ns(path: str) -> Optional[int]:
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


class FileMonitor:
    """Keeps the set of files under a directory and reports additions, updates and removals.

    Versions are the files' modification times in whole seconds.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        on_changed: Optional[ChangedCallback] = None,
        on_removed: Optional[RemovedCallback] = None,
    ) -> None:
        self.directory = os.path.abspath(os.fspath(directory))
        self._on_changed = on_changed
        self._on_removed = on_removed
        self._files: dict[str, FileEntry] = {}

    def start(self) -> None:
        """Build the initial file list, reporting every file found."""
        self.rescan()

    def current_files(self) -> list[FileEntry]:
        """Return the entries currently known."""
        return list(self._files.values())

    def _emit_changed(self, entry: FileEntry) -> None:
        logger.debug("changed: %s %s", entry.path, entry.version)
        if self._on_changed is not None:
            self._on_changed(entry)

    def _emit_removed(self, relative: str) -> None:
        logger.debug("removed: %s", relative)
        if self._on_removed is not None:
            self._on_removed(relative)

    def _relative(self, full_path: str) -> str:
        return Path(os.path.relpath(os.path.abspath(full_path), self.directory)).as_posix()

    def _absolute(self, relative: str) -> str:
        return os.path.join(self.directory, *relative.split("/"))

    def _entry_for(self, full_path: str) -> FileEntry:
        version = int(os.stat(full_path).st_mtime)
        return FileEntry(self._relative(full_path), _suffix(os.path.basename(full_path)), version)

    def _walk(self) -> Iterator[str]:
        for root, dirnames, filenames in os.walk(self.directory):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if name.startswith("."):
                    continue
                full = os.path.join(root, name)
                if os.path.isfile(full):
                    yield full

    def rescan(self) -> None:
        """Rebuild the file list, reporting new, updated and vanished files."""
        new_files: dict[str, FileEntry] = {}
        for full in self._walk():
            try:
                entry = self._entry_for(full)
            except OSError:
                continue
            new_files[entry.path] = entry
            old = self._files.get(entry.path)
            if old is None or old.version != entry.version:
                self._emit_changed(entry)

        for old_path in list(self._files):
            if old_path not in new_files:
                self._emit_removed(old_path)

        self._files = new_files

    def watched_paths(self) -> set[str]:
        """Return the absolute paths of every known file and of each directory leading to it."""
        paths: set[str] = set()
        for relative in self._files:
            full = self._absolute(relative)
            paths.add(full)
            parent = os.path.dirname(full)
            while parent.startswith(self.directory):
                paths.add(parent)
                if parent == self.directory:
                    break
                up = os.path.dirname(parent)
                if up == parent:
                    break
                parent = up
        return paths

    def file_changed(self, path: str | os.PathLike[str]) -> None:
        """Handle a change to one file, given by its absolute path."""
        full = os.path.abspath(os.fspath(path))
        if not os.path.exists(full):
            relative = self._relative(full)
            self._emit_removed(relative)
            self._files.pop(relative, None)
            return
        entry = self._entry_for(full)
        self._files[entry.path] = entry
        self._emit_changed(entry)

    def directory_changed(self, path: str | os.PathLike[str]) -> None:
        """Handle a change to a watched directory by rescanning."""
        self.rescan()

    def _watch_state(self) -> tuple[dict[str, Optional[int]], set[str]]:
        paths = self.watched_paths()
        directories = {p for p in paths if os.path.isdir(p)}
        directories.add(self.directory)
        state = {p: _mtime_ns(p) for p in paths}
        state[self.directory] = _mtime_ns(self.directory)
        return state, directories

    async def run(self, interval: float = 1.0) -> None:
        """Poll the watched paths every ``interval`` seconds until cancelled."""
        state, directories = self._watch_state()
        while True:
            await asyncio.sleep(interval)
            changed_dirs: list[str] = []
            for path, old in state.items():
                if _mtime_ns(path) == old:
                    continue
                if path in directories:
                    changed_dirs.append(path)
                else:
                    self.file_changed(path)
            if changed_dirs:
                self.directory_changed(changed_dirs[0])
            state, directories = self._watch_state()