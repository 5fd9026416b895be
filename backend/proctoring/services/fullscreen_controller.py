import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from ..core.config import settings
from ..models.fullscreen import FullscreenState
from ..utils.timers import PeriodicTimer
from ..utils.timezone import get_local_now

logger = logging.getLogger(__name__)


class FullscreenPauseController:
    """
    Pauses the assessment while the candidate is outside fullscreen and
    forces submission once the cumulative time outside reaches the ceiling.

    ``paused`` is derived: required and not fullscreen. Time outside only
    accumulates through ticks while paused and is never given back when the
    candidate returns; only reset() clears it, once per session start.
    """

    def __init__(
        self,
        ceiling_seconds: Optional[int] = None,
        tick_seconds: Optional[float] = None,
        on_force_submit: Optional[Callable[[int], Any]] = None,
        clock: Callable[[], datetime] = get_local_now
    ):
        self.ceiling_seconds = ceiling_seconds if ceiling_seconds is not None else settings.fullscreen_ceiling_seconds
        self.tick_seconds = tick_seconds or settings.fullscreen_tick_seconds
        self.on_force_submit = on_force_submit
        self.clock = clock
        self._pause_listeners: List[Callable[[bool], Any]] = []

        self._is_fullscreen = False
        self._required = False
        self._exit_count = 0
        self._total_outside = 0
        self._last_exit: Optional[datetime] = None
        self._stopped = False
        self._timer: Optional[PeriodicTimer] = None

    def add_pause_listener(self, listener: Callable[[bool], Any]) -> None:
        self._pause_listeners.append(listener)

    @property
    def paused(self) -> bool:
        return self._required and not self._is_fullscreen

    @property
    def ticking(self) -> bool:
        return self._timer is not None and self._timer.running

    @property
    def state(self) -> FullscreenState:
        return FullscreenState(
            is_fullscreen=self._is_fullscreen,
            required=self._required,
            exit_count=self._exit_count,
            total_time_outside_seconds=self._total_outside,
            last_exit_instant=self._last_exit
        )

    def set_required(self, required: bool, is_fullscreen: Optional[bool] = None) -> None:
        if self._stopped:
            return
        was_paused = self.paused
        self._required = required
        if is_fullscreen is not None:
            self._is_fullscreen = is_fullscreen
        self._sync(was_paused)

    def handle_fullscreen_change(self, is_fullscreen: bool) -> bool:
        """
        Apply a fullscreen change event. Returns True when it counted as an
        exit from required fullscreen.
        """
        if self._stopped:
            logger.debug("Fullscreen change ignored: controller stopped")
            return False
        if is_fullscreen == self._is_fullscreen:
            return False

        was_paused = self.paused
        self._is_fullscreen = is_fullscreen
        exited = False

        if self._required:
            if not is_fullscreen:
                self._exit_count += 1
                self._last_exit = self.clock()
                exited = True
                logger.warning(
                    f"Fullscreen exit #{self._exit_count}; "
                    f"{self.get_remaining_grace_seconds()}s of grace remaining"
                )
            else:
                self._last_exit = None
                logger.info("Fullscreen re-entered; assessment resumed")

        self._sync(was_paused)
        return exited

    def tick(self) -> None:
        """One second outside fullscreen"""
        if not self.paused or self._stopped:
            return
        self._total_outside += 1
        if self.should_force_submit():
            logger.warning(
                f"Time outside fullscreen reached {self._total_outside}s "
                f"(limit {self.ceiling_seconds}s); forcing submission"
            )
            if self.on_force_submit is not None:
                self.on_force_submit(self._total_outside)

    def get_remaining_grace_seconds(self) -> int:
        return max(0, self.ceiling_seconds - self._total_outside)

    def should_force_submit(self) -> bool:
        return self._total_outside >= self.ceiling_seconds

    def reset(self) -> None:
        was_paused = self.paused
        self._cancel_timer()
        self._exit_count = 0
        self._total_outside = 0
        self._last_exit = None
        self._required = False
        self._stopped = False
        if was_paused:
            self._notify(False)

    def stop(self) -> None:
        """Freeze the final state; later events and ticks are ignored"""
        self._cancel_timer()
        self._stopped = True

    def _sync(self, was_paused: bool) -> None:
        paused = self.paused
        if paused and not self.ticking:
            self._timer = PeriodicTimer(self.tick_seconds, self.tick, name="fullscreen-tick")
            self._timer.start()
        elif not paused:
            self._cancel_timer()
        if paused != was_paused:
            self._notify(paused)

    def _notify(self, paused: bool) -> None:
        for listener in self._pause_listeners:
            try:
                listener(paused)
            except Exception as e:
                logger.error(f"Pause listener failed: {e}", exc_info=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
