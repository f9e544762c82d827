"""
Unit tests for clipboard and notification backend selection and the
command-based sinks.
"""

import subprocess
from unittest.mock import Mock, patch

import pytest

from screenclip.publishing import (
    CommandClipboardSink,
    LogNotificationSink,
    NotifySendNotificationSink,
    OsascriptNotificationSink,
    UnavailableClipboardSink,
    create_clipboard_sink,
    create_notification_sink,
    detect_clipboard_backend,
)
from screenclip.publishing.clipboard import CLIPBOARD_COMMANDS
from screenclip.validation import ClipboardWriteError, NotificationError


def _which(*available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


@pytest.mark.unit
class TestCommandClipboardSink:
    """Test cases for helper-command clipboards."""

    def test_writes_utf8_without_newline(self):
        sink = CommandClipboardSink("xclip", CLIPBOARD_COMMANDS["xclip"], timeout=2.0)
        with patch("screenclip.publishing.clipboard.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)
            sink.write_text("/home/u/Bildschirmfoto ä.png")

        args, kwargs = mock_run.call_args
        assert args[0] == ["xclip", "-selection", "clipboard", "-in"]
        assert kwargs["input"] == "/home/u/Bildschirmfoto ä.png".encode("utf-8")
        assert kwargs["stdout"] is subprocess.DEVNULL
        assert kwargs["timeout"] == 2.0

    def test_nonzero_exit_raises(self):
        sink = CommandClipboardSink("wl-copy", ["wl-copy"])
        with patch("screenclip.publishing.clipboard.subprocess.run",
                   return_value=Mock(returncode=1)):
            with pytest.raises(ClipboardWriteError, match="code 1"):
                sink.write_text("x")

    @pytest.mark.parametrize("error", [
        FileNotFoundError("no such file"),
        subprocess.TimeoutExpired("pbcopy", 2.0),
        PermissionError("denied"),
    ])
    def test_launch_failures_raise_clipboard_error(self, error):
        sink = CommandClipboardSink("pbcopy", ["pbcopy"])
        with patch("screenclip.publishing.clipboard.subprocess.run", side_effect=error):
            with pytest.raises(ClipboardWriteError):
                sink.write_text("x")

    def test_unavailable_sink_always_fails(self):
        with pytest.raises(ClipboardWriteError):
            UnavailableClipboardSink().write_text("x")


@pytest.mark.unit
class TestClipboardDetection:
    """Test cases for clipboard backend selection."""

    def test_macos(self):
        assert detect_clipboard_backend("Darwin", {}, _which("pbcopy")) == "pbcopy"

    def test_windows(self):
        assert detect_clipboard_backend("Windows", {}, _which("powershell")) == "powershell"

    def test_wayland_preferred(self):
        env = {"WAYLAND_DISPLAY": "wayland-0", "DISPLAY": ":0"}
        assert detect_clipboard_backend("Linux", env, _which("wl-copy", "xclip")) == "wl-copy"

    def test_x11_falls_back_to_xsel(self):
        assert detect_clipboard_backend("Linux", {"DISPLAY": ":0"}, _which("xsel")) == "xsel"

    def test_headless_has_no_backend(self):
        assert detect_clipboard_backend("Linux", {}, _which("xclip", "wl-copy")) is None

    def test_factory_none_backend(self):
        assert isinstance(create_clipboard_sink("none"), UnavailableClipboardSink)

    def test_factory_auto_without_backend(self):
        sink = create_clipboard_sink("auto", system="Linux", environ={}, which=_which())
        assert isinstance(sink, UnavailableClipboardSink)

    def test_factory_explicit_backend(self):
        sink = create_clipboard_sink("xsel", timeout=1.0)
        assert isinstance(sink, CommandClipboardSink)
        assert sink.command == CLIPBOARD_COMMANDS["xsel"]
        assert sink.timeout == 1.0

    def test_factory_pbcopy_sets_utf8_locale(self):
        sink = create_clipboard_sink("auto", system="Darwin", environ={}, which=_which("pbcopy"))
        assert sink.name == "pbcopy"
        assert "LANG" in sink.env

    def test_factory_unknown_backend(self):
        with pytest.raises(ValueError):
            create_clipboard_sink("pasteboard")


@pytest.mark.unit
class TestNotifiers:
    """Test cases for notification sinks and their selection."""

    def test_osascript_passes_values_as_arguments(self):
        with patch("screenclip.publishing.notifier.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stderr="")
            OsascriptNotificationSink().notify('Path "copied"', "a.png", "Glass")

        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "osascript"
        assert cmd[-3:] == ['Path "copied"', "a.png", "Glass"]

    def test_osascript_without_sound(self):
        with patch("screenclip.publishing.notifier.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stderr="")
            OsascriptNotificationSink().notify("Path copied", "a.png")

        cmd = mock_run.call_args[0][0]
        assert cmd[-2:] == ["Path copied", "a.png"]
        assert not any("sound name" in part for part in cmd)

    def test_notify_send_command(self):
        with patch("screenclip.publishing.notifier.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stderr="")
            NotifySendNotificationSink().notify("Path copied", "b.png")

        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "notify-send"
        assert cmd[-2:] == ["Path copied", "b.png"]

    def test_failures_raise_notification_error(self):
        with patch("screenclip.publishing.notifier.subprocess.run",
                   return_value=Mock(returncode=1, stderr="no bus")):
            with pytest.raises(NotificationError, match="no bus"):
                NotifySendNotificationSink().notify("t", "m")

        with patch("screenclip.publishing.notifier.subprocess.run",
                   side_effect=FileNotFoundError()):
            with pytest.raises(NotificationError):
                OsascriptNotificationSink().notify("t", "m")

    def test_log_sink(self, caplog):
        caplog.set_level("INFO", logger="screenclip.publishing.notifier")
        LogNotificationSink().notify("Path copied", "c.png")
        assert "Path copied: c.png" in caplog.text

    def test_factory_selection(self):
        assert isinstance(
            create_notification_sink("auto", "Darwin", {}, _which("osascript")),
            OsascriptNotificationSink,
        )
        assert isinstance(
            create_notification_sink(
                "auto", "Linux", {"DBUS_SESSION_BUS_ADDRESS": "unix:path=/x"}, _which("notify-send")
            ),
            NotifySendNotificationSink,
        )
        assert isinstance(
            create_notification_sink("auto", "Linux", {}, _which("notify-send")),
            LogNotificationSink,
        )
        assert isinstance(create_notification_sink("log"), LogNotificationSink)

    def test_factory_unknown_backend(self):
        with pytest.raises(ValueError):
            create_notification_sink("growl")
