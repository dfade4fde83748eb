"""SQLite-backed catalogue of the objects offered to the handheld."""

from __future__ import annotations

import enum
import sqlite3
import stat
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

__all__ = [
    "OHFI_BASE_VALUE",
    "Ohfi",
    "DataType",
    "DirType",
    "Metadata",
    "MediaStore",
]

# first identifier handed out to real objects; lower values are the roots
OHFI_BASE_VALUE = 256


class Ohfi(enum.IntEnum):
    """Identifiers of the fixed root categories."""

    MUSIC = 0x01
    PHOTO = 0x02
    VIDEO = 0x03
    PACKAGE = 0x05
    BACKUP = 0x06
    VITAAPP = 0x0A
    PSPAPP = 0x0D
    PSPSAVE = 0x0E
    PSXAPP = 0x10
    PSMAPP = 0x12


class DataType(enum.IntFlag):
    """Kind of content an object holds."""

    FOLDER = 1 << 0
    FILE = 1 << 1
    APP = 1 << 2
    GAME = 1 << 3
    SAVEDATA = 1 << 4
    THUMBNAIL = 1 << 5
    MUSIC = 1 << 6
    PHOTO = 1 << 7
    VIDEO = 1 << 8
    PACKAGE = 1 << 9
    SFOFILE = 1 << 10


class DirType(enum.IntEnum):
    """How a node groups its children."""

    REGULAR = 0x01
    ALL = 0x02
    ARTISTS = 0x06
    ALBUMS = 0x07
    GENRES = 0x08
    PLAYLISTS = 0x09
    SONGS = 0x0A
    MONTH = 0x0C


APP_ROOTS = frozenset(
    {Ohfi.VITAAPP, Ohfi.PSPAPP, Ohfi.PSXAPP, Ohfi.PSMAPP, Ohfi.BACKUP}
)
_EMPTY_ROOTS = frozenset({Ohfi.MUSIC, Ohfi.PHOTO, Ohfi.VIDEO, Ohfi.PSPSAVE})


@dataclass
class Metadata:
    """Description of one catalogued object."""

    ohfi: int
    ohfi_parent: int
    path: str
    name: str
    type: DirType
    data_type: DataType
    size: int
    date_created: int

    @classmethod
    def _from_row(cls, row: tuple) -> Metadata:
        return cls(
            ohfi=int(row[0]),
            ohfi_parent=int(row[1] or 0),
            path=row[2] or "",
            name=row[3] or "",
            type=DirType.REGULAR,
            data_type=DataType(int(row[5] or 0)),
            size=int(row[6] or 0),
            date_created=int(row[7] or 0),
        )


_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = OFF",
    "PRAGMA user_version = 1",
    "PRAGMA journal_mode = MEMORY",
    "PRAGMA recursive_triggers = true",
)

_TABLES = (
    "CREATE TABLE IF NOT EXISTS adjacent_objects ("
    "parent_id INTEGER NOT NULL REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "child_id INTEGER NOT NULL REFERENCES object_node(object_id) ON DELETE CASCADE)",
    "CREATE TABLE IF NOT EXISTS object_node ("
    "object_id INTEGER PRIMARY KEY AUTOINCREMENT,"
    "type INTEGER NOT NULL,"
    "data_type INTEGER NOT NULL,"
    "title TEXT,"
    "child_count INTEGER NOT NULL DEFAULT 0,"
    "reference_count INTEGER NOT NULL DEFAULT 0)",
    "CREATE TABLE IF NOT EXISTS sources ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "path TEXT NOT NULL CHECK (LENGTH(path) > 0),"
    "size INTEGER,"
    "date_created TIMESTAMP,"
    "date_modified TIMESTAMP)",
    "CREATE TABLE IF NOT EXISTS music ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "file_format INTEGER,"
    "audio_bitrate INTEGER,"
    "audio_codec INTEGER,"
    "duration INTEGER,"
    "genre_id INTEGER REFERENCES object_node(object_id) ON DELETE SET NULL,"
    "track_id INTEGER REFERENCES object_node(object_id) ON DELETE SET NULL,"
    "artist_id INTEGER REFERENCES object_node(object_id) ON DELETE SET NULL,"
    "album_id INTEGER REFERENCES object_node(object_id) ON DELETE SET NULL,"
    "artist TEXT,"
    "album TEXT,"
    "track_number INTEGER)",
    "CREATE TABLE IF NOT EXISTS photos ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "date_created TIMESTAMP,"
    "month_created TEXT,"
    "file_format INTEGER,"
    "photo_codec INTEGER,"
    "width INTEGER,"
    "height INTEGER)",
    "CREATE TABLE IF NOT EXISTS videos ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "file_format INTEGER,"
    "parental_level INTEGER,"
    "explanation TEXT,"
    "copyright TEXT,"
    "width INTEGER,"
    "height INTEGER,"
    "video_codec INTEGER,"
    "video_bitrate INTEGER,"
    "audio_codec INTEGER,"
    "audio_bitrate INTEGER,"
    "duration INTEGER)",
    "CREATE TABLE IF NOT EXISTS savedata ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "detail TEXT,"
    "dir_name TEXT,"
    "title TEXT,"
    "date_updated TIMESTAMP)",
    "CREATE TABLE IF NOT EXISTS application ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "title TEXT NOT NULL CHECK (LENGTH(title) > 0),"
    "app_type INTEGER)",
    "CREATE TABLE IF NOT EXISTS virtual_nodes ("
    "object_id INTEGER PRIMARY KEY REFERENCES object_node(object_id) ON DELETE CASCADE,"
    "app_type INTEGER)",
)

_TRIGGERS = (
    "CREATE TRIGGER IF NOT EXISTS trg_objnode_deletechilds BEFORE DELETE ON object_node "
    "FOR EACH ROW BEGIN "
    "DELETE FROM object_node WHERE object_id IN "
    "(SELECT child_id FROM adjacent_objects WHERE parent_id == OLD.object_id);"
    "END",
    "CREATE TRIGGER IF NOT EXISTS trg_adjacentobjects_ins AFTER INSERT ON adjacent_objects "
    "FOR EACH ROW BEGIN "
    "UPDATE object_node SET child_count = child_count + 1 WHERE object_id = NEW.parent_id;"
    "UPDATE object_node SET reference_count = reference_count + 1 "
    "WHERE object_id = NEW.child_id;"
    "END",
    "CREATE TRIGGER IF NOT EXISTS trg_adjacentobjects_del AFTER DELETE ON adjacent_objects "
    "FOR EACH ROW BEGIN "
    "UPDATE object_node SET child_count = child_count - 1 WHERE object_id = OLD.parent_id;"
    "UPDATE object_node SET reference_count = reference_count - 1 "
    "WHERE object_id = OLD.child_id;"
    "DELETE FROM object_node WHERE object_id = OLD.parent_id AND child_count <= 0;"
    "DELETE FROM object_node WHERE object_id = OLD.child_id AND reference_count <= 0;"
    "END",
)

_VIRTUAL_ENTRIES = (
    ("Folders", DirType.REGULAR, DataType.VIDEO),
    ("All", DirType.ALL, DataType.VIDEO),
    ("Folders", DirType.REGULAR, DataType.PHOTO),
    ("Month", DirType.MONTH, DataType.PHOTO),
    ("All", DirType.ALL, DataType.PHOTO),
    ("Artists", DirType.ARTISTS, DataType.MUSIC),
    ("Albums", DirType.ALBUMS, DataType.MUSIC),
    ("Songs", DirType.SONGS, DataType.MUSIC),
    ("Genres", DirType.GENRES, DataType.MUSIC),
    ("Playlists", DirType.PLAYLISTS, DataType.MUSIC),
)

_METADATA_QUERY = (
    "SELECT t0.object_id, t1.parent_id, t2.path, t0.title, t0.type, t0.data_type, "
    "t2.size, t2.date_created "
    "FROM object_node t0 "
    "JOIN adjacent_objects t1 ON t1.child_id = t0.object_id "
    "JOIN sources t2 ON t2.object_id = t0.object_id "
    "WHERE t0.object_id = ?"
)

_CHILDREN_QUERY = (
    "SELECT t0.child_id, t0.parent_id, t2.path, t1.title, t1.type, t1.data_type, "
    "t2.size, t2.date_created "
    "FROM adjacent_objects t0 "
    "JOIN object_node t1 ON t0.child_id = t1.object_id "
    "JOIN sources t2 ON t0.child_id = t2.object_id "
    "WHERE t0.parent_id = ? ORDER BY t0.rowid"
)

_APPS_QUERY = (
    "SELECT t0.object_id, t0.app_type, t3.path, t0.title, t1.type, t1.data_type, "
    "t3.size, t3.date_created "
    "FROM application t0 "
    "JOIN object_node t1 ON t0.object_id = t1.object_id "
    "JOIN sources t3 ON t3.object_id = t0.object_id "
    "WHERE t0.app_type = ? ORDER BY t0.object_id"
)


def _birth_time(info) -> int:
    return int(getattr(info, "st_birthtime", info.st_ctime))


class MediaStore:
    """Object graph of media, applications and saves kept in SQLite."""

    def __init__(self, path: str | PathLike[str] = ":memory:") -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.connection = sqlite3.connect(
            self.path, isolation_level=None, check_same_thread=False
        )
        self._depth = 0
        for pragma in _PRAGMAS:
            self.connection.execute(pragma)
        self.initialize()

    def __enter__(self) -> MediaStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self.connection.close()

    def initialize(self) -> None:
        """Create the tables and triggers if they do not exist yet."""
        with self.transaction():
            for statement in _TABLES + _TRIGGERS:
                self.connection.execute(statement)
            # make the first real object receive OHFI_BASE_VALUE
            try:
                self.connection.execute(
                    "INSERT INTO object_node (object_id, data_type, type) "
                    "VALUES (?, 0, 0)",
                    (OHFI_BASE_VALUE - 1,),
                )
            except sqlite3.IntegrityError:
                pass
            else:
                self.connection.execute(
                    "DELETE FROM object_node WHERE object_id = ?", (OHFI_BASE_VALUE - 1,)
                )

    @contextmanager
    def transaction(self) -> Iterator[MediaStore]:
        """Group statements; roll back when the block raises. Nests freely."""
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return
        self.connection.execute("BEGIN")
        self._depth = 1
        try:
            yield self
        except BaseException:
            self.connection.execute("ROLLBACK")
            raise
        else:
            self.connection.execute("COMMIT")
        finally:
            self._depth = 0

    def _one(self, sql: str, params: tuple = ()) -> tuple | None:
        return self.connection.execute(sql, params).fetchone()

    def insert_node(self, title: str | None, type: int, data_type: int) -> int:
        """Add a node and return its identifier."""
        cursor = self.connection.execute(
            "INSERT INTO object_node (type, data_type, title) VALUES (?, ?, ?)",
            (int(type), int(data_type), title),
        )
        return int(cursor.lastrowid)

    def insert_source(
        self, object_id: int, base_path: str | PathLike[str], name: str
    ) -> None:
        """Record where *object_id* lives: *name* relative to *base_path*."""
        if not name:
            raise ValueError("source path must not be empty")
        try:
            info = (Path(base_path) / name).stat()
        except OSError:
            info = None
        if info is not None and stat.S_ISREG(info.st_mode):
            size, created = info.st_size, _birth_time(info)
        else:
            size, created = 0, 0
        modified = int(info.st_mtime) if info is not None else 0
        self.connection.execute(
            "REPLACE INTO sources (object_id, path, size, date_created, date_modified) "
            "VALUES (?, ?, ?, ?, ?)",
            (int(object_id), name, size, created, modified),
        )

    def link(self, child: int, parent: int) -> bool:
        """Make *child* a child of *parent*; return False if already linked."""
        if self._one(
            "SELECT 1 FROM adjacent_objects WHERE parent_id = ? AND child_id = ?",
            (int(parent), int(child)),
        ):
            return False
        self.connection.execute(
            "INSERT INTO adjacent_objects (parent_id, child_id) VALUES (?, ?)",
            (int(parent), int(child)),
        )
        return True

    def insert_virtual_entries(self) -> list[int]:
        """Create the browsing nodes (folders, albums, ...) and return their ids."""
        created = []
        with self.transaction():
            for title, dir_type, data_type in _VIRTUAL_ENTRIES:
                ohfi = self.insert_node(title, dir_type, data_type)
                self.connection.execute(
                    "REPLACE INTO virtual_nodes (object_id) VALUES (?)", (ohfi,)
                )
                created.append(ohfi)
        return created

    def delete_entry(self, ohfi: int) -> bool:
        """Delete an object and everything below it; False if it did not exist."""
        existed = self.object_type(ohfi) is not None
        self.connection.execute("DELETE FROM object_node WHERE object_id = ?", (int(ohfi),))
        return existed

    def child_count(self, parent_ohfi: int) -> int:
        """Return how many children are linked to *parent_ohfi*."""
        row = self._one(
            "SELECT count(child_id) FROM adjacent_objects WHERE parent_id = ?",
            (int(parent_ohfi),),
        )
        return int(row[0])

    def object_metadata(self, ohfi: int) -> Metadata | None:
        """Return the metadata of a linked object with a source, or None."""
        row = self._one(_METADATA_QUERY, (int(ohfi),))
        return Metadata._from_row(row) if row else None

    def object_metadatas(
        self, parent_ohfi: int, index: int = 0, max_number: int = 0
    ) -> list[Metadata]:
        """Return the children of *parent_ohfi*, paged when *max_number* > 0."""
        if parent_ohfi < OHFI_BASE_VALUE:
            return self.root_items(parent_ohfi)
        sql, params = _CHILDREN_QUERY, (int(parent_ohfi),)
        if max_number > 0:
            sql += " LIMIT ? OFFSET ?"
            params += (int(max_number), int(index))
        rows = self.connection.execute(sql, params).fetchall()
        return [Metadata._from_row(row) for row in rows]

    def root_items(self, root_ohfi: int) -> list[Metadata]:
        """Return the top-level items of a root category."""
        if root_ohfi in APP_ROOTS:
            rows = self.connection.execute(_APPS_QUERY, (int(root_ohfi),)).fetchall()
            return [Metadata._from_row(row) for row in rows]
        if root_ohfi in _EMPTY_ROOTS:
            return []
        raise ValueError(f"invalid root ohfi: {root_ohfi:#x}")

    def object_size(self, ohfi: int) -> int:
        """Return the stored size of an object, or the children's sum for a root."""
        if ohfi < OHFI_BASE_VALUE:
            return self.children_total_size(ohfi)
        row = self._one("SELECT size FROM sources WHERE object_id = ?", (int(ohfi),))
        if row is None:
            raise KeyError(ohfi)
        return int(row[0] or 0)

    def set_object_size(self, ohfi: int, size: int) -> None:
        """Store *size* for an object."""
        self.connection.execute(
            "UPDATE sources SET size = ? WHERE object_id = ?", (int(size), int(ohfi))
        )

    def children_total_size(self, ohfi: int) -> int:
        """Return the summed size of the direct children of *ohfi*."""
        row = self._one(
            "SELECT SUM(t0.size) FROM sources t0 "
            "JOIN adjacent_objects t1 ON t0.object_id = t1.child_id "
            "WHERE t1.parent_id = ?",
            (int(ohfi),),
        )
        return int(row[0] or 0)

    def path_id(self, path: str) -> int | None:
        """Return the object whose relative path is *path*."""
        row = self._one("SELECT object_id FROM sources WHERE path = ?", (path,))
        return int(row[0]) if row else None

    def relative_path(self, ohfi: int) -> str | None:
        """Return the stored relative path of an object."""
        row = self._one("SELECT path FROM sources WHERE object_id = ?", (int(ohfi),))
        return row[0] if row else None

    def parent_id(self, ohfi: int) -> int | None:
        """Return the parent of an object, or None when it has none."""
        row = self._one(
            "SELECT parent_id FROM adjacent_objects WHERE child_id = ? ORDER BY rowid",
            (int(ohfi),),
        )
        return int(row[0]) if row else None

    def root_id(self, ohfi: int) -> int | None:
        """Follow parents up to a root category; None if the chain breaks."""
        current = int(ohfi)
        seen = set()
        while current >= OHFI_BASE_VALUE:
            if current in seen:
                return None
            seen.add(current)
            parent = self.parent_id(current)
            if parent is None:
                return None
            current = parent
        return current

    def object_type(self, ohfi: int) -> int | None:
        """Return the grouping type of a node, or None when it does not exist."""
        row = self._one("SELECT type FROM object_node WHERE object_id = ?", (int(ohfi),))
        return int(row[0]) if row else None

    def rename_object(self, ohfi: int, name: str) -> bool:
        """Give an object a new name and refresh the paths below it."""
        if self.object_type(ohfi) is None:
            return False
        with self.transaction():
            self.connection.execute(
                "UPDATE object_node SET title = ? WHERE object_id = ?", (name, int(ohfi))
            )
            self._update_path(int(ohfi), name)
        return True

    def _update_path(self, ohfi: int, name: str) -> None:
        path = name
        parent = self.parent_id(ohfi)
        if parent is not None and parent >= OHFI_BASE_VALUE:
            parent_path = self.relative_path(parent)
            if parent_path is not None:
                path = f"{parent_path}/{name}"
        self.connection.execute(
            "UPDATE sources SET path = ? WHERE object_id = ?", (path, ohfi)
        )
        row = self._one("SELECT data_type FROM object_node WHERE object_id = ?", (ohfi,))
        if row is None or not int(row[0]) & DataType.FOLDER:
            return
        children = self.connection.execute(
            "SELECT t0.child_id, t1.path FROM adjacent_objects t0 "
            "JOIN sources t1 ON t1.object_id = t0.child_id "
            "WHERE t0.parent_id = ? ORDER BY t0.rowid",
            (ohfi,),
        ).fetchall()
        for child_id, child_path in children:
            self._update_path(int(child_id), child_path.rsplit("/", 1)[-1])