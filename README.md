# vitacma

A content manager assistant for the PS Vita. It keeps a catalogue of
your photos, applications, PSP saves and backups in a SQLite database,
reads titles from `PARAM.SFO` files, and lists, filters and removes the
backups stored on your computer.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running

```
vitacma
```

Only one instance runs at a time. Starting `vitacma` while another copy
is listening sends that copy a message and exits; the running copy shows
the message.

Options:

- `--verbose` logs at INFO level, `--with-debug` at DEBUG level; without
  either, logging is silenced.
- `--set-locale LOCALE` overrides the detected locale.
- `--no-systray` stops messages from being printed as notifications
  (they are still logged).
- `--settings FILE` uses another settings file (JSON).
- `--socket ADDRESS` uses another rendezvous address for the single
  instance.

On start the settings are checked. If any of `photoPath`, `musicPath`,
`videoPath`, `appsPath` or `urlPath` is missing, nothing is indexed;
write them with `Config.save` (see below). When they are all present the
catalogue is rebuilt. A rebuild needs a registered account in the
`lastAccountId` setting; while it holds the default `ffffffffffffffff`
the message "No PS Vita system has been registered" is shown instead.

The catalogue is kept in memory unless `useMemoryStorage` is false, in
which case it is stored as `qcma.sqlite` in `databasePath` or the user
data directory. On POSIX systems `SIGHUP` rebuilds the catalogue and
`SIGTERM` stops the program.

## Using the library

Reading a title from an SFO file:

```python
from vitacma.sfo import SfoReader, read_title

reader = SfoReader()
reader.load("PCSA00000/sce_sys/param.sfo")   # raises SfoError on failure
print(reader.value("TITLE", "unknown"))

print(read_title("PCSA00000"))   # None when the directory has no SFO
```

Settings and configuration:

```python
from vitacma.settings import Settings, Config, missing_paths

settings = Settings()            # JSON file in the user config directory
config = Config.from_settings(settings, home="/home/me")
config.save(settings)            # stores, creates the directories, syncs
print(missing_paths(settings))   # []
```

Indexing content and managing backups:

```python
from vitacma.store import MediaStore, Ohfi
from vitacma.indexer import Indexer, OperationCancelled
from vitacma.backups import BackupManager, BackupCategory, format_size

store = MediaStore("vitacma.sqlite")
indexer = Indexer(store, settings)
indexer.set_uuid("0123456789abcdef")
print(indexer.create(), "files indexed")

manager = BackupManager(indexer)
for item in manager.load_listing(BackupCategory.VITA_APPS):
    print(item.title, item.size, item.info)
manager.filter("gravity")
manager.save_listing("listing.json")
print(manager.usage_text)
```

`Indexer.rescan` clears the catalogue and runs `create`, reporting the
number of files (or -1 when cancelled) through `on_updated`.
`Indexer.cancel` makes a running scan raise `OperationCancelled`, and the
whole scan is rolled back. `BackupManager.remove_entry` deletes the
backup from disk and from the catalogue, after asking the optional
`confirm` callback.

The `vitacma.instance` module offers `SingleInstance` and `send_message`
for the single-instance hand-off, and `vitacma.app` offers
`PinCountdown` and `format_pin` for showing a pairing PIN.

## What it does not do

- It does not talk to a PS Vita: there is no USB or wireless connection,
  no transfer protocol and no pairing; the PIN countdown only keeps the
  text and the remaining time.
- Music and video files are not catalogued, since no media probing is
  available; only photos, applications, saves and backups are.
- There is no graphical interface or tray icon: messages are printed to
  the console, and icons in the backup listing are only recorded as
  paths.