"""
Browser activity signals: tab visibility, window focus, context menu,
keyboard shortcuts, clipboard, window.open and print attempts.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

from ..models.violation import Violation, ViolationKind
from ..services.violation_engine import ViolationEngine

logger = logging.getLogger(__name__)


BLOCKED_SHORTCUTS: Dict[str, str] = {
    # developer tools
    "F12": "Developer Tools",
    "Ctrl+Shift+I": "Developer Tools",
    "Ctrl+Shift+J": "Console",
    "Ctrl+Shift+C": "Inspect Element",
    "Cmd+Alt+I": "Developer Tools (Mac)",
    "Cmd+Alt+J": "Console (Mac)",
    "Cmd+Alt+C": "Inspect Element (Mac)",
    # clipboard / selection
    "Ctrl+C": "Copy",
    "Ctrl+V": "Paste",
    "Ctrl+X": "Cut",
    "Ctrl+A": "Select All",
    "Cmd+C": "Copy (Mac)",
    "Cmd+V": "Paste (Mac)",
    "Cmd+X": "Cut (Mac)",
    "Cmd+A": "Select All (Mac)",
    # save / print
    "Ctrl+S": "Save",
    "Ctrl+P": "Print",
    "Cmd+S": "Save (Mac)",
    "Cmd+P": "Print (Mac)",
    # view source
    "Ctrl+U": "View Source",
    "Cmd+U": "View Source (Mac)",
    # new tab / window
    "Ctrl+N": "New Window",
    "Ctrl+T": "New Tab",
    "Ctrl+Shift+N": "Incognito Window",
    "Cmd+N": "New Window (Mac)",
    "Cmd+T": "New Tab (Mac)",
    "Cmd+Shift+N": "Incognito Window (Mac)",
    # system escapes
    "Ctrl+Shift+Escape": "Task Manager",
    "Ctrl+Alt+Delete": "Security Options",
    "Alt+F4": "Close Window",
    # macOS screenshots
    "Cmd+Shift+3": "Screenshot (Mac)",
    "Cmd+Shift+4": "Screenshot (Mac)",
    "Cmd+Shift+5": "Screenshot (Mac)",
}

KEY_ALIASES = {"Esc": "Escape", "Del": "Delete"}

SYSTEM_KEYS = {"Meta", "OS"}
SYSTEM_KEY_CODES = {91, 92, 93}
COPILOT_KEYS = {"LaunchApplication2", "BrowserSearch"}
COPILOT_KEY_CODE = 235
PRINT_SCREEN_KEYS = {"PrintScreen", "Print"}
PRINT_SCREEN_KEY_CODE = 44


def build_shortcut(
    key: str,
    ctrl: bool = False,
    shift: bool = False,
    alt: bool = False,
    meta: bool = False
) -> str:
    """Canonical combination string, e.g. ``Ctrl+Shift+I``"""
    parts = []
    if meta:
        parts.append("Cmd")
    if ctrl:
        parts.append("Ctrl")
    if shift and key != "Shift":
        parts.append("Shift")
    if alt and key != "Alt":
        parts.append("Alt")
    parts.append(key.upper() if len(key) == 1 else KEY_ALIASES.get(key, key))
    return "+".join(parts)


class BrowserActivityMonitor:
    """Turns raw browser events into engine violations"""

    def __init__(self, engine: ViolationEngine, clock: Callable[[], float] = time.monotonic):
        self.engine = engine
        self.clock = clock
        self.enabled = True
        self._hidden_since: Optional[float] = None

    def reset(self) -> None:
        self.enabled = True
        self._hidden_since = None

    def stop(self) -> None:
        self.enabled = False
        self._hidden_since = None

    def _log(self, kind: ViolationKind, details: Dict[str, Any]) -> Optional[Violation]:
        if not self.enabled:
            return None
        return self.engine.log_violation(kind, details)

    def handle_visibility_change(self, hidden: bool, fullscreen_active: bool = False) -> Optional[Violation]:
        if not self.enabled:
            return None
        if hidden:
            self._hidden_since = self.clock()
            # still fullscreen while hidden: a system overlay took focus
            return self._log(ViolationKind.TAB_SWITCH, {
                "action": "hidden",
                "reason": "overlay_detected" if fullscreen_active else "tab_switch",
            })
        if self._hidden_since is None:
            return None
        duration = int(self.clock() - self._hidden_since)
        self._hidden_since = None
        return self._log(ViolationKind.TAB_SWITCH, {
            "action": "returned",
            "duration": f"{duration}s",
        })

    def handle_window_blur(self, fullscreen_active: bool = False) -> Optional[Violation]:
        if fullscreen_active and self.enabled:
            logger.warning("Window blur while in fullscreen - possible overlay")
        return self._log(ViolationKind.PAGE_BLUR, {
            "reason": "overlay_or_system_window" if fullscreen_active else "window_blur",
        })

    def handle_context_menu(self, target: Optional[str] = None) -> Optional[Violation]:
        return self._log(ViolationKind.RIGHT_CLICK, {"target": target or "unknown"})

    def handle_key_down(
        self,
        key: str,
        key_code: Optional[int] = None,
        ctrl: bool = False,
        shift: bool = False,
        alt: bool = False,
        meta: bool = False
    ) -> Optional[Violation]:
        """Returns the violation when the key press was blocked, None when it may pass"""
        if not self.enabled:
            return None

        if key in SYSTEM_KEYS or key_code in SYSTEM_KEY_CODES:
            return self._log(ViolationKind.KEYBOARD_SHORTCUT, {
                "shortcut": "Windows/Meta Key",
                "action": "Special key blocked",
            })

        if key in COPILOT_KEYS or key_code == COPILOT_KEY_CODE:
            return self._log(ViolationKind.KEYBOARD_SHORTCUT, {
                "shortcut": "Copilot/Special Key",
                "action": "System overlay attempt",
                "key": key,
                "key_code": key_code,
            })

        if key in PRINT_SCREEN_KEYS or key_code == PRINT_SCREEN_KEY_CODE:
            return self._log(ViolationKind.KEYBOARD_SHORTCUT, {
                "shortcut": "PrintScreen",
                "action": "Screenshot attempt",
            })

        shortcut = build_shortcut(key, ctrl=ctrl, shift=shift, alt=alt, meta=meta)
        action = BLOCKED_SHORTCUTS.get(shortcut)
        if action is not None:
            return self._log(ViolationKind.KEYBOARD_SHORTCUT, {
                "shortcut": shortcut,
                "action": action,
            })

        if alt and key == "Tab":
            return self._log(ViolationKind.TAB_SWITCH, {"method": "Alt+Tab"})

        return None

    def handle_clipboard(self, action: str) -> Optional[Violation]:
        return self._log(ViolationKind.COPY_PASTE, {"action": action})

    def handle_window_open(self, url: Optional[str] = None) -> Optional[Violation]:
        return self._log(ViolationKind.NEW_WINDOW_ATTEMPT, {"url": url or "unknown"})

    def handle_before_print(self) -> Optional[Violation]:
        return self._log(ViolationKind.KEYBOARD_SHORTCUT, {
            "shortcut": "Print Dialog",
            "action": "Print attempt detected",
        })
