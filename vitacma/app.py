"""Application entry point: settings check, indexing and message handling."""

from __future__ import annotations

import argparse
import locale
import logging
import signal
import threading
from collections.abc import Callable, MutableMapping
from os import PathLike
from pathlib import Path

from platformdirs import user_data_dir

from .indexer import Indexer
from .instance import SingleInstance, send_message
from .settings import Settings, missing_paths
from .store import MediaStore

__all__ = [
    "APP_NAME",
    "VERSION",
    "PIN_TIMEOUT",
    "PinCountdown",
    "format_pin",
    "Application",
    "parse_args",
    "main",
]

log = logging.getLogger(__name__)

APP_NAME = "vitacma"
VERSION = "0.5.1"

# seconds a pairing PIN stays valid
PIN_TIMEOUT = 300

ALREADY_RUNNING = f"An instance of {APP_NAME} is already running"


def format_pin(pin: int) -> str:
    """Return *pin* as the eight-digit, zero-padded text shown to the user."""
    return str(pin).rjust(8, "0")


class PinCountdown:
    """A pairing PIN shown to the user until it expires."""

    def __init__(self, name: str, pin: int, seconds: int = PIN_TIMEOUT) -> None:
        self.name = name
        self.pin = pin
        self.remaining = seconds
        self.visible = True
        log.debug("got pin from user %s", name)

    @property
    def device_text(self) -> str:
        return f"Device: {self.name} (PS Vita)"

    @property
    def pin_text(self) -> str:
        return format_pin(self.pin)

    @property
    def time_text(self) -> str:
        return f"Time remaining: {self.remaining} seconds"

    def hide(self) -> None:
        """Dismiss the PIN before it expires."""
        self.visible = False

    def tick(self) -> int:
        """Advance one second; hide once the countdown reaches zero."""
        if self.remaining <= 0:
            return 0
        self.remaining -= 1
        if self.remaining == 0:
            self.visible = False
        return self.remaining


def _database_file(settings: MutableMapping) -> Path:
    directory = settings.get("databasePath") or user_data_dir(APP_NAME, appauthor=False)
    return Path(directory) / "qcma.sqlite"


class Application:
    """Ties the settings, the media store and the indexer together."""

    def __init__(
        self,
        settings: MutableMapping | None = None,
        *,
        show_systray: bool = True,
        notify: Callable[[str, str], object] | None = None,
        store_path: str | PathLike[str] | None = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self.show_systray = show_systray
        self.notify = notify
        self.store_path = store_path
        self.store: MediaStore | None = None
        self.indexer: Indexer | None = None
        self.first_run = False
        self.stopped = False
        self.messages: list[str] = []
        self.current_file = ""
        self.current_directory = ""
        self.last_count: int | None = None

    def prepare(self) -> bool:
        """Open the store and indexer, then check the settings.

        Returns True when the settings are complete and the server started.
        """
        if self.store is None:
            if self.store_path is not None:
                path: str | Path = str(self.store_path)
            elif self.settings.get("useMemoryStorage", True):
                path = ":memory:"
            else:
                path = _database_file(self.settings)
            self.store = MediaStore(path)
            self.indexer = Indexer(
                self.store,
                self.settings,
                on_file_added=self._file_added,
                on_directory_added=self._directory_added,
                on_updated=self._database_updated,
            )
        return self.check_settings()

    def check_settings(self) -> bool:
        """Start when every media path is set; otherwise mark a first run."""
        missing = missing_paths(self.settings)
        if missing:
            log.info("settings incomplete, missing: %s", ", ".join(missing))
            self.first_run = True
            return False
        self.first_run = False
        self.start()
        return True

    def config_finished(self, accepted: bool) -> None:
        """React to the configuration being accepted or dismissed."""
        if accepted:
            if self.first_run:
                self.first_run = False
                self.start()
        elif self.first_run:
            self.stop()

    def start(self) -> None:
        """Build the catalogue for the first use."""
        self.refresh_database()

    def refresh_database(self) -> bool:
        """Rescan the media directories; False when that is not possible."""
        if self.indexer is None:
            raise RuntimeError("the application has not been prepared")
        if not self.indexer.rescan():
            self.receive_message("No PS Vita system has been registered")
            return False
        return True

    def stop(self) -> None:
        """Ask the main loop to finish."""
        log.info("shutting down")
        self.stopped = True

    def close(self) -> None:
        """Release the store."""
        if self.store is not None:
            self.store.close()
            self.store = None
            self.indexer = None

    def receive_message(self, message: str) -> None:
        """Record a message and show it in the notification area if any."""
        self.messages.append(message)
        log.info("%s", message)
        if self.show_systray and self.notify is not None:
            self.notify("Information", message)

    def _file_added(self, name: str) -> None:
        self.current_file = name

    def _directory_added(self, path: str) -> None:
        self.current_directory = path

    def _database_updated(self, count: int) -> None:
        self.last_count = count
        if count >= 0:
            self.receive_message(f"Added {count} items to the database")
        else:
            self.receive_message("Database indexing aborted by user")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse the command line; unknown arguments are ignored."""
    parser = argparse.ArgumentParser(prog=APP_NAME, add_help=True)
    parser.add_argument("--with-debug", dest="debug", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--set-locale", dest="locale", default=None)
    parser.add_argument("--no-systray", dest="systray", action="store_false")
    parser.add_argument("--settings", default=None, help="settings file to use")
    parser.add_argument("--socket", default=None, help="address of the running instance")
    args, _unknown = parser.parse_known_args(argv)
    return args


def _configure_logging(args: argparse.Namespace) -> None:
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.CRITICAL + 1
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)


def _desktop_notify(title: str, message: str) -> None:
    print(f"[{title}] {message}", flush=True)


def main(argv: list[str] | None = None) -> int:
    """Run the application until it is stopped."""
    args = parse_args(argv)

    if send_message(ALREADY_RUNNING, args.socket):
        return 0

    _configure_logging(args)
    print(f"Starting {APP_NAME} {VERSION}", flush=True)

    current = args.locale or (locale.getlocale()[0] or "C")
    log.debug("current locale: %s", current)

    settings = Settings(args.settings) if args.settings else Settings()
    app = Application(settings, show_systray=args.systray, notify=_desktop_notify)

    refresh_requested = threading.Event()
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda *_: refresh_requested.set())
    signal.signal(signal.SIGTERM, lambda *_: app.stop())

    try:
        with SingleInstance(args.socket, on_message=app.receive_message) as instance:
            app.prepare()
            while not app.stopped:
                instance.receive()
                if refresh_requested.is_set():
                    refresh_requested.clear()
                    app.refresh_database()
    except KeyboardInterrupt:
        app.stop()
    finally:
        app.close()
    return 0