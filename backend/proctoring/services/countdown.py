import logging
from typing import Any, Callable, Optional

from ..utils.timers import PeriodicTimer

logger = logging.getLogger(__name__)


class AssessmentCountdown:
    """Assessment time limit; frozen while the fullscreen controller pauses the test"""

    def __init__(
        self,
        duration_seconds: int,
        on_expire: Optional[Callable[[], Any]] = None,
        tick_seconds: float = 1.0
    ):
        self.duration_seconds = duration_seconds
        self.remaining_seconds = duration_seconds
        self.on_expire = on_expire
        self.tick_seconds = tick_seconds
        self.paused = False
        self.expired = False
        self._timer: Optional[PeriodicTimer] = None

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.running

    def start(self) -> None:
        self.remaining_seconds = self.duration_seconds
        self.paused = False
        self.expired = False
        self.stop()
        self._timer = PeriodicTimer(self.tick_seconds, self.tick, name="assessment-countdown")
        self._timer.start()

    def set_paused(self, paused: bool) -> None:
        self.paused = paused

    def pause(self) -> None:
        self.set_paused(True)

    def resume(self) -> None:
        self.set_paused(False)

    def tick(self) -> None:
        if self.paused or self.expired:
            return
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        if self.remaining_seconds == 0:
            self.expired = True
            self.stop()
            logger.info("Assessment time is up")
            if self.on_expire is not None:
                self.on_expire()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
