from pathlib import Path

import pytest

from vitacma.indexer import DEFAULT_UUID, Indexer, OperationCancelled
from vitacma.store import MediaStore, Ohfi

UUID = "0123456789abcdef"


@pytest.fixture
def layout(tmp_path):
    photos = tmp_path / "photos"
    (photos / "sub").mkdir(parents=True)
    (photos / "a.jpg").write_bytes(b"jpegdata")
    (photos / "b.txt").write_text("not a picture")
    (photos / "sub" / "c.png").write_bytes(b"pngbytes12")
    music = tmp_path / "music"
    music.mkdir()
    (music / "song.mp3").write_bytes(b"mp3")
    videos = tmp_path / "videos"
    videos.mkdir()
    apps = tmp_path / "apps"
    game = apps / "APP" / UUID / "PCSE00001"
    game.mkdir(parents=True)
    (game / "eboot.bin").write_bytes(b"bin")
    settings = {
        "photoPath": str(photos),
        "musicPath": str(music),
        "videoPath": str(videos),
        "appsPath": str(apps),
        "lastAccountId": UUID,
    }
    return tmp_path, settings


@pytest.fixture
def store():
    with MediaStore(":memory:") as db:
        yield db


def test_uuid_defaults_when_unset(store):
    indexer = Indexer(store, {})
    assert indexer.uuid == DEFAULT_UUID


def test_set_uuid_persists(store):
    settings = {}
    indexer = Indexer(store, settings)
    indexer.set_uuid(UUID)
    assert indexer.uuid == UUID
    assert settings["lastAccountId"] == UUID


def test_base_path_for_media_and_apps(store):
    settings = {"musicPath": "/media/music", "appsPath": "/media/apps"}
    indexer = Indexer(store, settings)
    indexer.set_uuid(UUID)
    assert indexer.base_path(Ohfi.MUSIC) == "/media/music"
    assert indexer.base_path(Ohfi.VITAAPP) == f"/media/apps/APP/{UUID}"
    assert indexer.base_path(Ohfi.PSPSAVE) == f"/media/apps/PSAVEDATA/{UUID}"
    assert indexer.base_path(Ohfi.BACKUP) == f"/media/apps/SYSTEM/{UUID}"


def test_base_path_rejects_non_root(store):
    with pytest.raises(ValueError):
        Indexer(store, {}).base_path(Ohfi.PACKAGE)


def test_create_counts_catalogued_files(layout, store):
    _, settings = layout
    files, dirs = [], []
    indexer = Indexer(
        store, settings, on_file_added=files.append, on_directory_added=dirs.append
    )
    total = indexer.create()
    assert total == len(files)
    assert sorted(files) == ["a.jpg", "c.png", "eboot.bin"]
    assert str(Path(settings["photoPath"]) / "sub") in dirs
    assert store.path_id("b.txt") is None
    assert store.path_id("song.mp3") is None


def test_directory_size_is_children_total(layout, store):
    _, settings = layout
    Indexer(store, settings).create()
    sub = store.path_id("sub")
    child = store.path_id("sub/c.png")
    assert store.parent_id(child) == sub
    assert store.object_size(sub) == len(b"pngbytes12")
    assert store.object_size(sub) == store.children_total_size(sub)


def test_absolute_path(layout, store):
    _, settings = layout
    indexer = Indexer(store, settings)
    indexer.create()
    child = store.path_id("sub/c.png")
    assert indexer.absolute_path(child) == settings["photoPath"] + "/sub/c.png"
    assert indexer.absolute_path(Ohfi.PHOTO) == settings["photoPath"]
    game = store.path_id("PCSE00001")
    assert indexer.absolute_path(game) == f"{settings['appsPath']}/APP/{UUID}/PCSE00001"
    assert indexer.absolute_path(99999) is None


def test_cancel_rolls_back(layout, store):
    _, settings = layout
    indexer = Indexer(store, settings)
    indexer.cancel()
    with pytest.raises(OperationCancelled):
        indexer.create()
    assert store.path_id("a.jpg") is None
    # the cancellation is consumed; a new scan runs to completion
    assert indexer.create() >= 1
    assert store.path_id("a.jpg") is not None


def test_rescan_requires_account(layout, store):
    _, settings = layout
    settings.pop("lastAccountId")
    updates = []
    indexer = Indexer(store, settings, on_updated=updates.append)
    assert indexer.rescan() is False
    assert updates == []


def test_rescan_rebuilds_from_scratch(layout, store):
    _, settings = layout
    updates = []
    indexer = Indexer(store, settings, on_updated=updates.append)
    assert indexer.rescan() is True
    first_id = store.path_id("a.jpg")
    assert indexer.rescan() is True
    assert len(updates) == 2
    assert updates[0] == updates[1]
    assert store.path_id("a.jpg") == first_id


def test_clear_removes_objects(layout, store):
    _, settings = layout
    indexer = Indexer(store, settings)
    indexer.create()
    indexer.clear()
    assert store.path_id("a.jpg") is None
    assert store.child_count(store.path_id("sub") or 0) == 0


def test_insert_object_entry(layout, store):
    _, settings = layout
    indexer = Indexer(store, settings)
    indexer.create()
    photos = Path(settings["photoPath"])
    (photos / "new.jpg").write_bytes(b"x")
    new_id = indexer.insert_object_entry(photos, "new.jpg", Ohfi.PHOTO)
    assert new_id is not None
    assert store.path_id("new.jpg") == new_id

    sub = store.path_id("sub")
    (photos / "sub" / "d.png").write_bytes(b"y")
    child = indexer.insert_object_entry(photos, "sub/d.png", sub)
    assert store.parent_id(child) == sub


def test_insert_object_entry_unknown_parent(layout, store):
    _, settings = layout
    indexer = Indexer(store, settings)
    assert indexer.insert_object_entry(settings["photoPath"], "a.jpg", 99999) is None