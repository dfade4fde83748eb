"""Listing, filtering and removal of the backups kept for the handheld."""

from __future__ import annotations

import enum
import json
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from .indexer import Indexer
from .sfo import SfoError, SfoReader
from .store import Ohfi

__all__ = [
    "FILTER_PLACEHOLDER",
    "CONFIRM_TEMPLATE",
    "BackupCategory",
    "BackupItem",
    "BackupManager",
    "format_size",
    "confirm_message",
]

# text shown in an empty filter field; filtering by it changes nothing
FILTER_PLACEHOLDER = "Filter"

CONFIRM_TEMPLATE = (
    "<html><head/><body>"
    '<p><span style="font-size:10pt;">{message}</span></p>'
    '<p><span style="font-size:12pt; font-weight:600;">{title}</span></p>'
    "</body></html>"
)

_GIB = 1024 * 1024 * 1024
_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")

# subdirectories of a PS Vita application directory and the tag each adds
_VITA_CONTENT = (("app", " [GAME]"), ("savedata", " [SAVE]"), ("patch", " [UPDATE]"), ("addcont", " [DLC]"))


def format_size(size: int, use_gb: bool = False) -> str:
    """Return *size* in bytes as readable text; *use_gb* forces gibibytes."""
    if use_gb:
        return f"{size / _GIB:.2f} GiB"
    value = float(size)
    for unit in _UNITS:
        if abs(value) < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.2f} {unit}"
        value /= 1024
    raise AssertionError("unreachable")


def confirm_message(message: str, title: str) -> str:
    """Return the rich text asking to confirm removal of *title*."""
    return CONFIRM_TEMPLATE.format(message=message, title=title)


class BackupCategory(enum.Enum):
    """The kinds of backup offered in the manager, in selection order."""

    VITA_APPS = 0
    PSP_APPS = 1
    PSM_APPS = 2
    PSX_APPS = 3
    PSP_SAVES = 4
    SYSTEM_BACKUPS = 5

    @classmethod
    def from_index(cls, index: int) -> BackupCategory:
        """Return the category at *index*; unknown indices select PS Vita apps."""
        try:
            return cls(index)
        except ValueError:
            return cls.VITA_APPS

    @property
    def ohfi(self) -> Ohfi:
        return _CATEGORY_INFO[self][0]

    @property
    def icon_width(self) -> int:
        return _CATEGORY_INFO[self][1]

    @property
    def system_dir(self) -> bool:
        """Whether the SFO and icon live in a ``sce_sys`` subdirectory."""
        return _CATEGORY_INFO[self][2]


_CATEGORY_INFO = {
    BackupCategory.VITA_APPS: (Ohfi.VITAAPP, 48, True),
    BackupCategory.PSP_APPS: (Ohfi.PSPAPP, 80, True),
    BackupCategory.PSM_APPS: (Ohfi.PSMAPP, 48, True),
    BackupCategory.PSX_APPS: (Ohfi.PSXAPP, 48, True),
    BackupCategory.PSP_SAVES: (Ohfi.PSPSAVE, 80, False),
    BackupCategory.SYSTEM_BACKUPS: (Ohfi.BACKUP, 48, False),
}


@dataclass
class BackupItem:
    """One backed-up application or save."""

    ohfi: int
    title: str
    path: str
    size: str
    info: str = ""
    icon_path: str = ""
    icon_width: int = 48
    try_dds: bool = False
    hidden: bool = False

    @property
    def game_id(self) -> str:
        return Path(self.path).name


def _read_title(directory: str, sfo_name: str, default: str) -> str:
    reader = SfoReader()
    try:
        reader.load(Path(directory) / sfo_name)
    except SfoError:
        return default
    return str(reader.value("TITLE", default))


class BackupManager:
    """Backup listing of one category, backed by an :class:`Indexer`."""

    def __init__(
        self,
        indexer: Indexer,
        confirm: Callable[[BackupItem], bool] | None = None,
    ) -> None:
        self.indexer = indexer
        self.store = indexer.store
        self.confirm = confirm
        self.category = BackupCategory.VITA_APPS
        self.items: list[BackupItem] = []
        self.usage = 0
        self.filter_text = ""
        self.account = ""

    @property
    def usage_text(self) -> str:
        return f"Backup disk usage: {format_size(self.usage, True)}"

    def load_listing(self, category: BackupCategory | int | None = None) -> list[BackupItem]:
        """Load the items of *category* (None or negative: the current one)."""
        self.account = str(self.indexer.settings.get("lastOnlineId", "Default account"))

        if isinstance(category, BackupCategory):
            self.category = category
        elif category is not None and category >= 0:
            self.category = BackupCategory.from_index(category)
        current = self.category
        ohfi = current.ohfi

        metadatas = self.store.object_metadatas(ohfi)
        self.items = []
        if not metadatas:
            self.usage = 0
            return self.items

        self.usage = self.store.object_size(ohfi)
        root = self.indexer.absolute_path(ohfi) or ""
        sfo_name = "param.sfo" if current.system_dir else "PARAM.SFO"
        icon_name = "icon0.png" if current.system_dir else "ICON0.PNG"

        for meta in metadatas:
            base = os.path.join(root, meta.name)
            parent = os.path.join(base, "sce_sys") if current.system_dir else base
            title = _read_title(parent, sfo_name, meta.name)

            use_gb = ohfi == Ohfi.BACKUP and meta.size > _GIB
            info = ""
            if current is BackupCategory.VITA_APPS:
                info = "".join(
                    tag for sub, tag in _VITA_CONTENT if os.path.isdir(os.path.join(base, sub))
                )

            self.items.append(
                BackupItem(
                    ohfi=meta.ohfi,
                    title=title,
                    path=base,
                    size=format_size(meta.size, use_gb),
                    info=info,
                    icon_path=os.path.join(os.path.abspath(parent), icon_name),
                    icon_width=current.icon_width,
                    try_dds=ohfi == Ohfi.PSMAPP,
                )
            )

        self.items.sort(key=lambda item: item.title)
        self.filter(self.filter_text)
        return self.items

    def filter(self, text: str) -> list[BackupItem]:
        """Hide items whose title lacks *text* (case-insensitive); return the visible."""
        if text != FILTER_PLACEHOLDER:
            self.filter_text = text
            needle = text.casefold()
            for item in self.items:
                item.hidden = needle not in item.title.casefold()
        return [item for item in self.items if not item.hidden]

    def remove_entry(self, item: BackupItem) -> bool:
        """Delete *item* from disk and from the catalogue once confirmed."""
        if self.confirm is not None and not self.confirm(item):
            return False

        parent = self.store.parent_id(item.ohfi)
        path = self.indexer.absolute_path(item.ohfi)
        if path:
            target = Path(path)
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target, ignore_errors=True)
            elif target.exists() or target.is_symlink():
                target.unlink()
        self.store.delete_entry(item.ohfi)

        self.items = [entry for entry in self.items if entry is not item]
        if parent is not None and parent > 0:
            self.usage = self.store.object_size(parent)
        return True

    def save_listing(self, path: str | PathLike[str]) -> list[dict[str, str]]:
        """Write every listed item to *path* as JSON and return what was written."""
        entries = [
            {"title": item.title, "gameid": item.game_id, "path": item.path, "size": item.size}
            for item in self.items
        ]
        Path(path).write_text(json.dumps(entries, indent=4, sort_keys=True) + "\n", encoding="utf-8")
        return entries