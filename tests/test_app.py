import threading

import pytest

from vitacma.app import (
    ALREADY_RUNNING,
    PIN_TIMEOUT,
    Application,
    PinCountdown,
    format_pin,
    main,
    parse_args,
)
from vitacma.instance import SingleInstance
from vitacma.settings import PATH_KEYS


def _full_settings(tmp_path, uuid="0123456789abcdef"):
    settings = {}
    for key in PATH_KEYS:
        directory = tmp_path / key
        directory.mkdir()
        settings[key] = str(directory)
    settings["lastAccountId"] = uuid
    return settings


def test_format_pin_pads_to_eight_digits():
    assert format_pin(1234) == "00001234"
    assert format_pin(12345678) == "12345678"
    assert len(format_pin(7)) == 8


def test_pin_countdown_texts():
    countdown = PinCountdown("Vita", 42)
    assert countdown.device_text == "Device: Vita (PS Vita)"
    assert countdown.pin_text == format_pin(42)
    assert countdown.remaining == PIN_TIMEOUT
    countdown.tick()
    assert countdown.time_text == f"Time remaining: {PIN_TIMEOUT - 1} seconds"


def test_pin_countdown_expires_and_hides():
    countdown = PinCountdown("Vita", 1, seconds=3)
    assert [countdown.tick() for _ in range(3)] == [2, 1, 0]
    assert countdown.visible is False
    assert countdown.tick() == 0


def test_pin_countdown_hide():
    countdown = PinCountdown("Vita", 1)
    countdown.hide()
    assert countdown.visible is False


def test_parse_args_flags():
    args = parse_args(["--with-debug", "--no-systray", "--set-locale", "es", "-platform", "x"])
    assert args.debug is True
    assert args.systray is False
    assert args.locale == "es"
    assert args.verbose is False


def test_parse_args_defaults():
    args = parse_args([])
    assert args.systray is True
    assert args.locale is None
    assert args.debug is False


def test_missing_paths_mark_first_run(tmp_path):
    app = Application({}, show_systray=False)
    assert app.prepare() is False
    assert app.first_run is True
    assert app.messages == []
    app.close()


def test_dismissing_first_run_config_stops(tmp_path):
    app = Application({}, show_systray=False)
    app.prepare()
    app.config_finished(False)
    assert app.stopped is True
    app.close()


def test_unregistered_device_reports_message(tmp_path):
    settings = _full_settings(tmp_path, uuid="ffffffffffffffff")
    app = Application(settings, show_systray=False)
    assert app.prepare() is True
    assert app.first_run is False
    assert app.messages == ["No PS Vita system has been registered"]
    app.close()


def test_refresh_indexes_photos_and_notifies(tmp_path):
    settings = _full_settings(tmp_path)
    (tmp_path / "photoPath" / "a.jpg").write_bytes(b"jpeg")
    notes = []
    app = Application(settings, notify=lambda title, msg: notes.append((title, msg)))
    assert app.prepare() is True
    assert app.last_count == 1
    assert app.messages == ["Added 1 items to the database"]
    assert notes == [("Information", "Added 1 items to the database")]
    assert app.current_file == "a.jpg"
    app.close()


def test_refresh_without_prepare_raises():
    app = Application({})
    with pytest.raises(RuntimeError):
        app.refresh_database()


def test_receive_message_without_systray_does_not_notify():
    notes = []
    app = Application({}, show_systray=False, notify=lambda t, m: notes.append(m))
    app.receive_message("hello")
    assert app.messages == ["hello"]
    assert notes == []


def test_main_hands_over_to_running_instance(tmp_path):
    address = str(tmp_path / "s.sock")
    with SingleInstance(address, timeout=2.0) as instance:
        result = {}
        worker = threading.Thread(target=lambda: result.setdefault("code", main(["--socket", address])))
        worker.start()
        received = instance.receive()
        worker.join(timeout=5)
    assert result["code"] == 0
    assert received == ALREADY_RUNNING