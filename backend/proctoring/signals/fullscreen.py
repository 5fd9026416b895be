import logging
from typing import Optional

from ..models.violation import ViolationKind
from ..services.fullscreen_controller import FullscreenPauseController
from ..services.violation_engine import ViolationEngine
from .devtools import WindowMetrics, detect_devtools

logger = logging.getLogger(__name__)


class FullscreenSignal:
    """Fullscreen change events from the browser, fed to the pause controller"""

    def __init__(
        self,
        engine: ViolationEngine,
        controller: FullscreenPauseController,
        devtools_threshold: Optional[int] = None
    ):
        self.engine = engine
        self.controller = controller
        self.devtools_threshold = devtools_threshold
        self.enabled = True

    def reset(self) -> None:
        self.enabled = True

    def stop(self) -> None:
        self.enabled = False

    def handle_change(self, is_fullscreen: bool, window: Optional[WindowMetrics] = None) -> bool:
        if not self.enabled:
            return False

        exited = self.controller.handle_fullscreen_change(is_fullscreen)
        if not exited:
            return False

        self.engine.log_violation(
            ViolationKind.FULLSCREEN_EXIT,
            {"exit_count": self.controller.state.exit_count}
        )

        # window size only differs from the viewport once out of fullscreen
        if window is not None and detect_devtools(window, self.devtools_threshold):
            logger.warning(f"DevTools detected after fullscreen exit in session {self.engine.session_id}")
            self.engine.log_violation(ViolationKind.DEVTOOLS_OPEN, {
                "method": "size_detection",
                "height_diff": window.outer_height - window.inner_height,
                "width_diff": window.outer_width - window.inner_width,
            })
        return True
