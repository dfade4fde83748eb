import dataclasses
import os

import pytest

from vitacma.settings import (
    PROTOCOL_MAX_VERSION,
    Config,
    ProtocolMode,
    Settings,
    VersionType,
    missing_paths,
    protocol_fields_enabled,
    version_field_enabled,
)


@pytest.fixture
def settings(tmp_path):
    return Settings(tmp_path / "conf" / "settings.json")


def test_defaults_from_empty_settings(settings, tmp_path):
    config = Config.from_settings(settings, home=tmp_path)
    assert config.apps_path == str(tmp_path / "PS Vita")
    assert config.url_path == str(tmp_path / "PSV Updates")
    assert config.pkg_path == str(tmp_path / "PSV Packages")
    assert config.protocol_mode is ProtocolMode.AUTOMATIC
    assert config.version_type is VersionType.ZERO
    assert config.custom_version == "00.000.000"
    assert config.protocol_version == PROTOCOL_MAX_VERSION
    assert config.use_memory_storage is True
    assert config.offline_mode is True
    assert config.ignore_xml is True
    assert config.autorefresh is False


def test_save_and_reload_round_trip(settings, tmp_path):
    base = Config.from_settings(settings, home=tmp_path)
    config = dataclasses.replace(
        base,
        photo_path=str(tmp_path / "media" / "photos"),
        disable_usb=True,
        use_memory_storage=False,
        protocol_mode=ProtocolMode.CUSTOM,
        protocol_index=2,
        protocol_version=42,
        version_type=VersionType.HENKAKU,
        custom_version="03.600.000",
        autorefresh=True,
    )
    config.save(settings)

    reloaded = Config.from_settings(Settings(settings.path), home=tmp_path / "other")
    assert reloaded == config
    assert (tmp_path / "media" / "photos").is_dir()


def test_save_strips_trailing_separator(settings, tmp_path):
    config = Config.from_settings(settings, home=tmp_path)
    config.music_path = str(tmp_path / "music") + os.sep
    config.save(settings)
    assert settings["musicPath"] == (tmp_path / "music").as_posix()


def test_save_writes_enum_values(settings, tmp_path):
    config = Config.from_settings(settings, home=tmp_path)
    config.protocol_mode = ProtocolMode.MANUAL
    config.version_type = VersionType.CUSTOM
    config.save(settings)
    assert settings["protocolMode"] == "manual"
    assert settings["versiontype"] == "custom"


def test_nonpositive_protocol_version_saved_as_max(settings, tmp_path):
    config = Config.from_settings(settings, home=tmp_path)
    config.protocol_version = 0
    config.save(settings)
    assert settings["protocolVersion"] == PROTOCOL_MAX_VERSION


@pytest.mark.parametrize("stored", ["abc", 0, -3, None])
def test_invalid_protocol_version_falls_back(settings, tmp_path, stored):
    settings["protocolVersion"] = stored
    assert Config.from_settings(settings, home=tmp_path).protocol_version == PROTOCOL_MAX_VERSION


def test_protocol_version_from_string(settings, tmp_path):
    settings["protocolVersion"] = "17"
    assert Config.from_settings(settings, home=tmp_path).protocol_version == 17


@pytest.mark.parametrize(
    "stored, expected",
    [("manual", ProtocolMode.MANUAL), ("custom", ProtocolMode.CUSTOM), ("bogus", ProtocolMode.AUTOMATIC)],
)
def test_protocol_mode_parsing(settings, tmp_path, stored, expected):
    settings["protocolMode"] = stored
    assert Config.from_settings(settings, home=tmp_path).protocol_mode is expected


@pytest.mark.parametrize(
    "stored, expected",
    [("henkaku", VersionType.HENKAKU), ("custom", VersionType.CUSTOM), ("other", VersionType.ZERO)],
)
def test_version_type_parsing(settings, tmp_path, stored, expected):
    settings["versiontype"] = stored
    assert Config.from_settings(settings, home=tmp_path).version_type is expected


@pytest.mark.parametrize(
    "mode, expected",
    [
        (ProtocolMode.AUTOMATIC, (False, False)),
        (ProtocolMode.MANUAL, (True, False)),
        (ProtocolMode.CUSTOM, (False, True)),
    ],
)
def test_protocol_fields_enabled(mode, expected):
    assert protocol_fields_enabled(mode) == expected


@pytest.mark.parametrize(
    "kind, expected",
    [(VersionType.ZERO, False), (VersionType.HENKAKU, False), (VersionType.CUSTOM, True)],
)
def test_version_field_enabled(kind, expected):
    assert version_field_enabled(kind) is expected


def test_missing_paths(settings):
    assert missing_paths(settings) == ["photoPath", "musicPath", "videoPath", "appsPath", "urlPath"]
    settings["musicPath"] = "/tmp/music"
    settings["urlPath"] = "/tmp/url"
    assert missing_paths(settings) == ["photoPath", "videoPath", "appsPath"]


def test_missing_paths_after_save(settings, tmp_path):
    Config.from_settings(settings, home=tmp_path).save(settings)
    assert missing_paths(settings) == []


def test_settings_sync_persists(settings):
    settings["lastAccountId"] = "0123456789abcdef"
    settings["autorefresh"] = True
    settings.sync()
    reloaded = Settings(settings.path)
    assert reloaded["lastAccountId"] == "0123456789abcdef"
    assert reloaded.get("autorefresh") is True
    assert len(reloaded) == 2


def test_settings_delete_and_contains(settings):
    settings["pkgPath"] = "/tmp/pkg"
    assert "pkgPath" in settings
    del settings["pkgPath"]
    assert "pkgPath" not in settings
    with pytest.raises(KeyError):
        settings["pkgPath"]


def test_corrupt_settings_file_reads_empty(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert len(Settings(path)) == 0