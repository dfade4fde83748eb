"""Single running instance: later launches hand their message to the first."""

from __future__ import annotations

import logging
import os
import socket
import tempfile
from collections.abc import Callable
from contextlib import suppress
from os import PathLike
from typing import Union

__all__ = ["TIMEOUT", "default_address", "SingleInstance", "send_message"]

log = logging.getLogger(__name__)

TIMEOUT = 0.5
_KEY = "vitacma"

Address = Union[str, tuple]


def default_address() -> Address:
    """Return the per-user rendezvous address of the running instance."""
    if hasattr(socket, "AF_UNIX"):
        uid = os.getuid() if hasattr(os, "getuid") else 0
        return os.path.join(tempfile.gettempdir(), f"{_KEY}-{uid}.sock")
    return ("127.0.0.1", 47811)


def _normalise(address: Address | PathLike[str] | None) -> Address:
    if address is None:
        return default_address()
    if isinstance(address, PathLike):
        return os.fspath(address)
    return address


def _family(address: Address) -> int:
    if isinstance(address, str):
        return socket.AF_UNIX
    return socket.AF_INET


class SingleInstance:
    """Listening side that receives messages from later launches."""

    def __init__(
        self,
        address: Address | PathLike[str] | None = None,
        timeout: float = TIMEOUT,
        on_message: Callable[[str], object] | None = None,
    ) -> None:
        self.address = _normalise(address)
        self.timeout = timeout
        self.on_message = on_message
        self._server: socket.socket | None = None

    def __enter__(self) -> SingleInstance:
        self.listen()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def listen(self) -> None:
        """Start listening, taking over an address left behind by another instance."""
        if self._server is not None:
            return
        family = _family(self.address)
        if family == socket.AF_UNIX:
            with suppress(FileNotFoundError):
                os.unlink(self.address)
        server = socket.socket(family, socket.SOCK_STREAM)
        try:
            if family != socket.AF_UNIX:
                server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind(self.address)
            server.listen()
        except OSError:
            server.close()
            raise
        if family != socket.AF_UNIX:
            self.address = server.getsockname()[:2]
        self._server = server

    def receive(self) -> str | None:
        """Wait for one message; None when nothing arrives within the timeout."""
        if self._server is None:
            raise RuntimeError("the instance is not listening")
        self._server.settimeout(self.timeout)
        try:
            connection, _peer = self._server.accept()
        except socket.timeout:
            return None
        chunks: list[bytes] = []
        with connection:
            connection.settimeout(self.timeout)
            try:
                while chunk := connection.recv(4096):
                    chunks.append(chunk)
            except socket.timeout:
                if not chunks:
                    log.debug("no data received from the connecting instance")
                    return None
            except OSError as exc:
                log.debug("reading a message failed: %s", exc)
                return None
        message = b"".join(chunks).decode("utf-8", errors="replace")
        if self.on_message is not None:
            self.on_message(message)
        return message

    def close(self) -> None:
        """Stop listening and release the address."""
        if self._server is None:
            return
        self._server.close()
        self._server = None
        if _family(self.address) == socket.AF_UNIX:
            with suppress(FileNotFoundError):
                os.unlink(self.address)


def send_message(message: str, address: Address | PathLike[str] | None = None) -> bool:
    """Hand *message* to a running instance; False when none is listening."""
    target = _normalise(address)
    with socket.socket(_family(target), socket.SOCK_STREAM) as sock:
        sock.settimeout(TIMEOUT)
        try:
            sock.connect(target)
            sock.sendall(message.encode("utf-8"))
            sock.shutdown(socket.SHUT_WR)
        except OSError as exc:
            log.debug("no running instance at %s: %s", target, exc)
            return False
    return True