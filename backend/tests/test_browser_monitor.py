"""
Tests for browser activity signals
"""
import pytest
from unittest.mock import Mock

from proctoring.models.violation import ViolationKind
from proctoring.signals.browser import BrowserActivityMonitor, build_shortcut

from conftest import logged_kinds


@pytest.fixture
def clock():
    return Mock(return_value=100.0)


@pytest.fixture
def monitor(mock_engine, clock):
    return BrowserActivityMonitor(mock_engine, clock=clock)


class TestBuildShortcut:
    """Test canonical shortcut strings"""

    @pytest.mark.parametrize("kwargs,expected", [
        ({"key": "i", "ctrl": True, "shift": True}, "Ctrl+Shift+I"),
        ({"key": "c", "ctrl": True}, "Ctrl+C"),
        ({"key": "F12"}, "F12"),
        ({"key": "Esc", "ctrl": True, "shift": True}, "Ctrl+Shift+Escape"),
        ({"key": "F4", "alt": True}, "Alt+F4"),
        ({"key": "3", "meta": True, "shift": True}, "Cmd+Shift+3"),
        ({"key": "Shift", "shift": True}, "Shift"),
    ])
    def test_build(self, kwargs, expected):
        assert build_shortcut(**kwargs) == expected


class TestKeyboard:
    """Test blocked keys and shortcuts"""

    @pytest.mark.parametrize("kwargs,shortcut", [
        ({"key": "F12"}, "F12"),
        ({"key": "I", "ctrl": True, "shift": True}, "Ctrl+Shift+I"),
        ({"key": "v", "ctrl": True}, "Ctrl+V"),
        ({"key": "p", "meta": True}, "Cmd+P"),
        ({"key": "u", "ctrl": True}, "Ctrl+U"),
        ({"key": "n", "ctrl": True, "shift": True}, "Ctrl+Shift+N"),
        ({"key": "F4", "alt": True}, "Alt+F4"),
        ({"key": "4", "meta": True, "shift": True}, "Cmd+Shift+4"),
    ])
    def test_blocked_shortcut(self, monitor, mock_engine, kwargs, shortcut):
        violation = monitor.handle_key_down(**kwargs)

        assert violation is not None
        kind, details = mock_engine.log_violation.call_args.args
        assert kind == ViolationKind.KEYBOARD_SHORTCUT
        assert details["shortcut"] == shortcut

    @pytest.mark.parametrize("kwargs,label", [
        ({"key": "Meta"}, "Windows/Meta Key"),
        ({"key": "Unidentified", "key_code": 92}, "Windows/Meta Key"),
        ({"key": "LaunchApplication2"}, "Copilot/Special Key"),
        ({"key": "Unidentified", "key_code": 235}, "Copilot/Special Key"),
        ({"key": "PrintScreen"}, "PrintScreen"),
    ])
    def test_system_keys(self, monitor, mock_engine, kwargs, label):
        monitor.handle_key_down(**kwargs)

        kind, details = mock_engine.log_violation.call_args.args
        assert kind == ViolationKind.KEYBOARD_SHORTCUT
        assert details["shortcut"] == label

    def test_alt_tab_is_tab_switch(self, monitor, mock_engine):
        monitor.handle_key_down("Tab", alt=True)

        assert logged_kinds(mock_engine) == [ViolationKind.TAB_SWITCH]

    @pytest.mark.parametrize("kwargs", [
        {"key": "a"},
        {"key": "Enter"},
        {"key": "A", "shift": True},
        {"key": "z", "ctrl": True},
    ])
    def test_ordinary_keys_pass(self, monitor, mock_engine, kwargs):
        assert monitor.handle_key_down(**kwargs) is None
        mock_engine.log_violation.assert_not_called()


class TestWindowEvents:
    """Test visibility, focus and window events"""

    def test_tab_hidden_and_returned(self, monitor, mock_engine, clock):
        monitor.handle_visibility_change(hidden=True)
        clock.return_value = 112.4
        monitor.handle_visibility_change(hidden=False)

        calls = mock_engine.log_violation.call_args_list
        assert calls[0].args == (ViolationKind.TAB_SWITCH, {"action": "hidden", "reason": "tab_switch"})
        assert calls[1].args == (ViolationKind.TAB_SWITCH, {"action": "returned", "duration": "12s"})

    def test_hidden_while_fullscreen_is_overlay(self, monitor, mock_engine):
        monitor.handle_visibility_change(hidden=True, fullscreen_active=True)

        _, details = mock_engine.log_violation.call_args.args
        assert details["reason"] == "overlay_detected"

    def test_visible_without_hidden_is_ignored(self, monitor, mock_engine):
        assert monitor.handle_visibility_change(hidden=False) is None
        mock_engine.log_violation.assert_not_called()

    def test_blur(self, monitor, mock_engine):
        monitor.handle_window_blur()
        monitor.handle_window_blur(fullscreen_active=True)

        reasons = [c.args[1]["reason"] for c in mock_engine.log_violation.call_args_list]
        assert reasons == ["window_blur", "overlay_or_system_window"]
        assert logged_kinds(mock_engine) == [ViolationKind.PAGE_BLUR, ViolationKind.PAGE_BLUR]

    def test_context_menu(self, monitor, mock_engine):
        monitor.handle_context_menu("IMG")

        assert mock_engine.log_violation.call_args.args == (ViolationKind.RIGHT_CLICK, {"target": "IMG"})

    def test_clipboard(self, monitor, mock_engine):
        monitor.handle_clipboard("paste")

        assert mock_engine.log_violation.call_args.args == (ViolationKind.COPY_PASTE, {"action": "paste"})

    def test_window_open(self, monitor, mock_engine):
        monitor.handle_window_open("https://example.com")

        assert logged_kinds(mock_engine) == [ViolationKind.NEW_WINDOW_ATTEMPT]

    def test_print(self, monitor, mock_engine):
        monitor.handle_before_print()

        kind, details = mock_engine.log_violation.call_args.args
        assert kind == ViolationKind.KEYBOARD_SHORTCUT
        assert details["shortcut"] == "Print Dialog"

    def test_stopped_monitor_ignores_events(self, monitor, mock_engine):
        monitor.stop()

        monitor.handle_visibility_change(hidden=True)
        monitor.handle_window_blur()
        monitor.handle_key_down("F12")
        monitor.handle_clipboard("copy")

        mock_engine.log_violation.assert_not_called()

    def test_reset_resumes_logging(self, monitor, mock_engine):
        monitor.stop()
        monitor.reset()

        assert monitor.handle_key_down("F12") is not None
        mock_engine.log_violation.assert_called_once()
