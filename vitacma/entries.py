"""Registration of scanned files and directories in the media store."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from os import PathLike
from pathlib import Path, PurePath

from .sfo import SfoError, SfoReader
from .store import APP_ROOTS, DataType, DirType, MediaStore, OHFI_BASE_VALUE, Ohfi

__all__ = [
    "is_photo_file",
    "insert_default_entry",
    "insert_photo_entry",
    "insert_savedata_entry",
    "insert_application_entry",
    "insert_object_entry",
]

_PHOTO_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff"})

BasePath = str | PathLike[str]


def is_photo_file(name: str | PathLike[str]) -> bool:
    """Return whether *name* has the extension of a supported picture format."""
    return PurePath(name).suffix.lower() in _PHOTO_EXTENSIONS


def _base_name(name: str) -> str:
    """File name without directory and without anything from the first dot."""
    return PurePath(name).name.split(".", 1)[0]


def _birth_time(path: Path) -> int | None:
    try:
        info = path.stat()
    except OSError:
        return None
    return int(getattr(info, "st_birthtime", info.st_ctime))


def insert_default_entry(
    store: MediaStore,
    base_path: BasePath,
    name: str | None,
    title: str | None,
    parent_ohfi: int,
    data_type: int,
) -> int:
    """Add a plain node for *name* under *parent_ohfi* and return its id."""
    with store.transaction():
        ohfi = store.insert_node(title, DirType.REGULAR, data_type)
        if parent_ohfi >= OHFI_BASE_VALUE:
            store.link(ohfi, parent_ohfi)
        if name is not None:
            store.insert_source(ohfi, base_path, name)
    return ohfi


def insert_photo_entry(
    store: MediaStore, base_path: BasePath, name: str, parent_ohfi: int
) -> int | None:
    """Add a picture; None when *name* is not a supported picture."""
    if not is_photo_file(name):
        return None

    created = _birth_time(Path(base_path) / name)
    if created is None:
        date_created, month_created = 0, ""
    else:
        date_created = created
        month_created = datetime.fromtimestamp(created).strftime("%Y/%m")

    with store.transaction():
        ohfi = insert_default_entry(
            store, base_path, name, _base_name(name), parent_ohfi,
            DataType.FILE | DataType.PHOTO,
        )
        store.connection.execute(
            "REPLACE INTO photos "
            "(object_id, date_created, file_format, photo_codec, width, height, month_created) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (ohfi, date_created, 0, 0, 0, 0, month_created),
        )
    return ohfi


def insert_savedata_entry(
    store: MediaStore, base_path: BasePath, name: str, parent_ohfi: int
) -> int:
    """Add a file of a save directory, recording the save's SFO details."""
    file_name = PurePath(name).name
    title = detail = directory = None
    date_updated = 0

    if file_name.lower().endswith(".sfo"):
        path = Path(base_path) / name
        try:
            reader = SfoReader(path)
            date_updated = int(path.stat().st_mtime)
        except (SfoError, OSError):
            pass
        else:
            title = str(reader.value("TITLE", file_name))
            detail = str(reader.value("SAVEDATA_DETAIL", ""))
            directory = str(reader.value("SAVEDATA_DIRECTORY", file_name))

    with store.transaction():
        ohfi = insert_default_entry(
            store, base_path, name, title, parent_ohfi,
            DataType.FILE | DataType.SAVEDATA,
        )
        if title is not None:
            # the details belong to the save directory holding the SFO
            store.connection.execute(
                "REPLACE INTO savedata (object_id, detail, dir_name, title, date_updated) "
                "VALUES (?, ?, ?, ?, ?)",
                (int(parent_ohfi), detail, directory, title, date_updated),
            )
    return ohfi


def insert_application_entry(
    store: MediaStore, name: str, ohfi: int, app_type: int
) -> None:
    """Record *ohfi* as an application whose title id is the last part of *name*."""
    title_id = PurePath(name).name if name else ""
    try:
        store.connection.execute(
            "REPLACE INTO application (object_id, title, app_type) VALUES (?, ?, ?)",
            (int(ohfi), title_id, int(app_type)),
        )
    except sqlite3.IntegrityError as exc:
        raise sqlite3.IntegrityError(f"cannot register application {name!r}: {exc}") from exc


def insert_object_entry(
    store: MediaStore,
    base_path: BasePath,
    name: str,
    parent_ohfi: int,
    root_ohfi: int,
) -> int | None:
    """Register *name* (relative to *base_path*) under *parent_ohfi*.

    Returns the new id, or None when the file is not catalogued for *root_ohfi*.
    Music and video files are not catalogued: no media probing is available.
    """
    path = Path(base_path) / name

    if path.is_dir():
        with store.transaction():
            ohfi = insert_default_entry(
                store, base_path, name, path.name, parent_ohfi, DataType.FOLDER
            )
            if parent_ohfi in APP_ROOTS:
                insert_application_entry(store, name, ohfi, parent_ohfi)
        return ohfi

    if root_ohfi == Ohfi.PHOTO:
        return insert_photo_entry(store, base_path, name, parent_ohfi)
    if root_ohfi == Ohfi.PSPSAVE:
        return insert_savedata_entry(store, base_path, name, parent_ohfi)
    if root_ohfi in APP_ROOTS:
        return insert_default_entry(
            store, base_path, name, path.name, parent_ohfi, DataType.FILE | DataType.APP
        )
    return None