"""Persistent settings and the configuration they describe."""

from __future__ import annotations

import enum
import json
import os
from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

__all__ = [
    "PROTOCOL_MAX_VERSION",
    "PATH_KEYS",
    "Settings",
    "default_settings_path",
    "ProtocolMode",
    "VersionType",
    "Config",
    "protocol_fields_enabled",
    "version_field_enabled",
    "missing_paths",
]

PROTOCOL_MAX_VERSION = 1900010

# settings that must exist before the server can start
PATH_KEYS = ("photoPath", "musicPath", "videoPath", "appsPath", "urlPath")


def default_settings_path() -> Path:
    """Return the per-user location of the settings file."""
    return Path(user_config_dir("vitacma", appauthor=False)) / "settings.json"


class Settings(MutableMapping):
    """A JSON-backed key/value store written out by :meth:`sync`."""

    def __init__(self, path: str | PathLike[str] | None = None) -> None:
        self.path = Path(path) if path is not None else default_settings_path()
        self._values: dict[str, Any] = {}
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            loaded = {}
        if isinstance(loaded, dict):
            self._values = loaded

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._values[key] = value

    def __delitem__(self, key: str) -> None:
        del self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def sync(self) -> None:
        """Write the settings to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)


class ProtocolMode(enum.Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, text: object) -> ProtocolMode:
        for mode in (cls.MANUAL, cls.CUSTOM):
            if text == mode.value:
                return mode
        return cls.AUTOMATIC


class VersionType(enum.Enum):
    ZERO = "zero"
    HENKAKU = "henkaku"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, text: object) -> VersionType:
        for kind in (cls.CUSTOM, cls.HENKAKU):
            if text == kind.value:
                return kind
        return cls.ZERO


def protocol_fields_enabled(mode: ProtocolMode) -> tuple[bool, bool]:
    """Return whether the protocol list and the protocol number are editable."""
    return mode is ProtocolMode.MANUAL, mode is ProtocolMode.CUSTOM


def version_field_enabled(version_type: VersionType) -> bool:
    """Return whether the custom firmware version is editable."""
    return version_type is VersionType.CUSTOM


def missing_paths(settings: MutableMapping) -> list[str]:
    """Return the required path keys that are not yet configured."""
    return [key for key in PATH_KEYS if key not in settings]


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _native(path: Any) -> str:
    return str(path).replace("/", os.sep)


_PATH_FIELDS = (
    ("photoPath", "photo_path"),
    ("musicPath", "music_path"),
    ("videoPath", "video_path"),
    ("appsPath", "apps_path"),
    ("urlPath", "url_path"),
    ("pkgPath", "pkg_path"),
)

_BOOL_FIELDS = (
    ("offlineMode", "offline_mode"),
    ("skipMetadata", "skip_metadata"),
    ("disableUSB", "disable_usb"),
    ("disableWireless", "disable_wireless"),
    ("useMemoryStorage", "use_memory_storage"),
    ("photoSkip", "photo_skip"),
    ("videoSkip", "video_skip"),
    ("musicSkip", "music_skip"),
    ("ignorexml", "ignore_xml"),
    ("autorefresh", "autorefresh"),
)


@dataclass
class Config:
    """The user-editable configuration."""

    photo_path: str
    music_path: str
    video_path: str
    apps_path: str
    url_path: str
    pkg_path: str
    offline_mode: bool = True
    skip_metadata: bool = False
    disable_usb: bool = False
    disable_wireless: bool = False
    use_memory_storage: bool = True
    photo_skip: bool = False
    video_skip: bool = False
    music_skip: bool = False
    protocol_mode: ProtocolMode = ProtocolMode.AUTOMATIC
    protocol_index: int = 0
    protocol_version: int = PROTOCOL_MAX_VERSION
    ignore_xml: bool = True
    autorefresh: bool = False
    version_type: VersionType = VersionType.ZERO
    custom_version: str = "00.000.000"

    @classmethod
    def from_settings(
        cls, settings: MutableMapping, home: str | PathLike[str] | None = None
    ) -> Config:
        """Build a configuration from *settings*, filling in defaults under *home*."""
        home_dir = Path(home) if home is not None else Path.home()
        defaults = {
            "photoPath": home_dir / "Pictures",
            "musicPath": home_dir / "Music",
            "videoPath": home_dir / "Videos",
            "appsPath": home_dir / "PS Vita",
            "urlPath": home_dir / "PSV Updates",
            "pkgPath": home_dir / "PSV Packages",
        }
        values: dict[str, Any] = {
            attr: _native(settings.get(key, str(defaults[key])))
            for key, attr in _PATH_FIELDS
        }
        for key, attr in _BOOL_FIELDS:
            default = getattr(cls, attr)
            values[attr] = _to_bool(settings.get(key, default))

        values["protocol_mode"] = ProtocolMode.parse(settings.get("protocolMode", "automatic"))
        values["protocol_index"] = _to_int(settings.get("protocolIndex", 0)) or 0

        version = _to_int(settings.get("protocolVersion", PROTOCOL_MAX_VERSION))
        values["protocol_version"] = (
            version if version is not None and version > 0 else PROTOCOL_MAX_VERSION
        )

        values["version_type"] = VersionType.parse(settings.get("versiontype", "zero"))
        values["custom_version"] = str(settings.get("customversion", "00.000.000"))
        return cls(**values)

    def save(self, settings: MutableMapping) -> None:
        """Store the configuration in *settings*, creating the media directories."""
        for key, attr in _PATH_FIELDS:
            path = getattr(self, attr)
            if path.endswith(os.sep):
                path = path[:-1]
            settings[key] = path.replace(os.sep, "/")
            Path(path).mkdir(parents=True, exist_ok=True)

        for key, attr in _BOOL_FIELDS:
            settings[key] = bool(getattr(self, attr))

        settings["protocolIndex"] = self.protocol_index
        settings["protocolMode"] = self.protocol_mode.value
        settings["versiontype"] = self.version_type.value
        settings["customversion"] = self.custom_version
        settings["protocolVersion"] = (
            self.protocol_version if self.protocol_version > 0 else PROTOCOL_MAX_VERSION
        )

        sync = getattr(settings, "sync", None)
        if callable(sync):
            sync()