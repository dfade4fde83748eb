"""Scanning of the configured media directories into the media store."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, MutableMapping
from os import PathLike
from pathlib import Path

from . import entries
from .store import OHFI_BASE_VALUE, MediaStore, Ohfi

__all__ = ["DEFAULT_UUID", "ROOTS", "OperationCancelled", "Indexer"]

log = logging.getLogger(__name__)

# account id used while no handheld has been registered
DEFAULT_UUID = "ffffffffffffffff"

# root categories scanned by a full index, in scanning order
ROOTS = (
    Ohfi.MUSIC,
    Ohfi.PHOTO,
    Ohfi.VIDEO,
    Ohfi.BACKUP,
    Ohfi.VITAAPP,
    Ohfi.PSPAPP,
    Ohfi.PSPSAVE,
    Ohfi.PSXAPP,
    Ohfi.PSMAPP,
)

_MEDIA_KEYS = {
    Ohfi.MUSIC: "musicPath",
    Ohfi.VIDEO: "videoPath",
    Ohfi.PHOTO: "photoPath",
}

_APP_DIRS = {
    Ohfi.BACKUP: "SYSTEM",
    Ohfi.VITAAPP: "APP",
    Ohfi.PSPAPP: "PGAME",
    Ohfi.PSPSAVE: "PSAVEDATA",
    Ohfi.PSXAPP: "PSGAME",
    Ohfi.PSMAPP: "PSM",
}

_TABLES = (
    "adjacent_objects",
    "sources",
    "music",
    "photos",
    "videos",
    "savedata",
    "application",
    "virtual_nodes",
    "object_node",
)


class OperationCancelled(Exception):
    """Raised when an indexing run is cancelled."""


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)
    except (FileNotFoundError, NotADirectoryError):
        return []


class Indexer:
    """Fills a :class:`MediaStore` from the directories named in the settings."""

    def __init__(
        self,
        store: MediaStore,
        settings: MutableMapping,
        *,
        on_file_added: Callable[[str], object] | None = None,
        on_directory_added: Callable[[str], object] | None = None,
        on_updated: Callable[[int], object] | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.uuid = str(settings.get("lastAccountId", DEFAULT_UUID))
        self.on_file_added = on_file_added
        self.on_directory_added = on_directory_added
        self.on_updated = on_updated
        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    def set_uuid(self, uuid: str) -> None:
        """Select the account whose backups are indexed and remember it."""
        self.uuid = uuid
        self.settings["lastAccountId"] = uuid
        sync = getattr(self.settings, "sync", None)
        if callable(sync):
            sync()

    def base_path(self, root_ohfi: int) -> str:
        """Return the directory that holds the objects of a root category."""
        if root_ohfi in _MEDIA_KEYS:
            return str(self.settings.get(_MEDIA_KEYS[root_ohfi], ""))
        if root_ohfi in _APP_DIRS:
            apps = str(self.settings.get("appsPath", ""))
            return f"{apps}/{_APP_DIRS[root_ohfi]}/{self.uuid}"
        raise ValueError(f"not a scanned root category: {root_ohfi:#x}")

    def _root_of(self, ohfi: int) -> int | None:
        if ohfi < OHFI_BASE_VALUE:
            return ohfi
        root = self.store.root_id(ohfi)
        if root is not None:
            return root
        # top-level application directories are tied to their root by app type
        row = self.store.connection.execute(
            "SELECT app_type FROM application WHERE object_id = ?", (int(ohfi),)
        ).fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def absolute_path(self, ohfi: int) -> str | None:
        """Return the file system path of an object, or None when it is unknown."""
        root = self._root_of(ohfi)
        if root is None:
            return None
        try:
            base = self.base_path(root)
        except ValueError:
            return None
        relative = self.store.relative_path(ohfi)
        return base if relative is None else f"{base}/{relative}"

    def cancel(self) -> None:
        """Ask a running scan to stop at the next entry."""
        self._cancelled.set()

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise OperationCancelled("indexing cancelled")

    def create(self) -> int:
        """Scan every root category; return the number of files added.

        Everything is added in one transaction, which is rolled back when the
        scan is cancelled.
        """
        try:
            with self.store.transaction():
                self.store.insert_virtual_entries()
                total = 0
                for root in ROOTS:
                    base = self.base_path(root)
                    if not base:
                        continue
                    total += self._scan(base, None, root, root)
        except OperationCancelled:
            self._cancelled.clear()
            raise
        return total

    def _scan(self, base: str, rel_path: str | None, parent_ohfi: int, root_ohfi: int) -> int:
        directory = Path(base) / rel_path if rel_path is not None else Path(base)
        total = 0
        for entry in _sorted_entries(directory):
            self._check_cancelled()
            rel_name = entry.name if rel_path is None else f"{rel_path}/{entry.name}"
            ohfi = entries.insert_object_entry(
                self.store, base, rel_name, parent_ohfi, root_ohfi
            )
            if not ohfi:
                continue
            if entry.is_dir():
                if self.on_directory_added is not None:
                    self.on_directory_added(str(Path(base) / rel_name))
                total += self._scan(base, rel_name, ohfi, root_ohfi)
                self.store.set_object_size(ohfi, self.store.children_total_size(ohfi))
            elif entry.is_file():
                if self.on_file_added is not None:
                    self.on_file_added(entry.name)
                total += 1
        return total

    def clear(self) -> None:
        """Remove every catalogued object and restart the identifiers."""
        connection = self.store.connection
        with self.store.transaction():
            for table in _TABLES:
                connection.execute(f"DELETE FROM {table}")
            connection.execute("DELETE FROM sqlite_sequence")
            self.store.initialize()

    def rescan(self) -> bool:
        """Rebuild the catalogue; False when no account is set or a scan is running.

        The number of files added, or -1 when the scan was cancelled, is
        passed to ``on_updated``.
        """
        if not self._lock.acquire(timeout=1.0):
            return False
        try:
            if self.uuid == DEFAULT_UUID:
                return False
            self._cancelled.clear()
            self.clear()
            try:
                count = self.create()
            except OperationCancelled:
                log.info("database indexing aborted by user")
                count = -1
            if self.on_updated is not None:
                self.on_updated(count)
            return True
        finally:
            self._lock.release()

    def insert_object_entry(
        self, path: str | PathLike[str], name: str, parent_ohfi: int
    ) -> int | None:
        """Add *name* (relative to *path*) under *parent_ohfi*; None if not added."""
        root = self._root_of(parent_ohfi)
        if root is None or (
            parent_ohfi >= OHFI_BASE_VALUE and self.store.object_type(parent_ohfi) is None
        ):
            return None
        with self.store.transaction():
            return entries.insert_object_entry(self.store, path, name, parent_ohfi, root)