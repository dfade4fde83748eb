"""Reader for PARAM.SFO metadata files."""

from __future__ import annotations

import struct
from os import PathLike
from pathlib import Path
from typing import Union

__all__ = ["SfoError", "SfoReader", "read_title"]

_HEADER = struct.Struct("<4sIIII")
_INDEX = struct.Struct("<HBBIII")
_TYPE_INT32 = 0x04

SfoValue = Union[str, int]


class SfoError(Exception):
    """Raised when an SFO file cannot be read or is malformed."""


def _cstring(data: bytes, start: int) -> str:
    if start >= len(data):
        raise SfoError(f"key offset {start} lies outside the file")
    end = data.find(b"\0", start)
    if end < 0:
        raise SfoError(f"unterminated key at offset {start}")
    return data[start:end].decode("utf-8", errors="replace")


def _decode(raw: bytes, data_type: int) -> SfoValue:
    if data_type == _TYPE_INT32 and len(raw) >= 4:
        return int.from_bytes(raw[:4], "little")
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


class SfoReader:
    """Key/value view of a PARAM.SFO file."""

    def __init__(self, path: str | PathLike[str] | None = None) -> None:
        self._entries: dict[str, SfoValue] = {}
        if path is not None:
            self.load(path)

    def load(self, path: str | PathLike[str]) -> None:
        """Read and parse the SFO file at *path*."""
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise SfoError(f"cannot read {path}: {exc}") from exc
        self.loads(data)

    def loads(self, data: bytes) -> None:
        """Parse SFO content held in memory."""
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise SfoError("truncated SFO header")
        _magic, _version, key_offset, value_offset, count = _HEADER.unpack_from(data)

        entries: dict[str, SfoValue] = {}
        for number in range(count):
            position = _HEADER.size + number * _INDEX.size
            if position + _INDEX.size > len(data):
                raise SfoError(f"truncated index entry {number}")
            key_off, _align, data_type, size, _padded, data_off = _INDEX.unpack_from(
                data, position
            )
            key = _cstring(data, key_offset + key_off)
            start = value_offset + data_off
            if start + size > len(data):
                raise SfoError(f"value of {key!r} lies outside the file")
            entries.setdefault(key, _decode(data[start : start + size], data_type))
        self._entries = entries

    def value(self, key: str, default: SfoValue | None = None) -> SfoValue | None:
        """Return the value stored under *key*, or *default*."""
        return self._entries.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def read_title(directory: str | PathLike[str]) -> str | None:
    """Return the TITLE of an application directory, or None without an SFO."""
    base = Path(directory)
    reader = SfoReader()
    for candidate in (base / "sce_sys" / "param.sfo", base / "PARAM.SFO"):
        try:
            reader.load(candidate)
        except SfoError:
            continue
        title = reader.value("TITLE", "")
        return str(title)
    return None