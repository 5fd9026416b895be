import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..core.config import settings
from ..models.violation import Violation, ViolationKind
from ..services.violation_engine import ViolationEngine

logger = logging.getLogger(__name__)


class WebcamMonitor:
    """
    Consumes periodic face-count samples from the webcam detector.

    The engine only sees thresholded "no face" durations and throttled
    "multiple faces" incidents, never raw frames.
    """

    def __init__(
        self,
        engine: ViolationEngine,
        no_face_threshold_seconds: Optional[float] = None,
        critical_no_face_seconds: Optional[float] = None,
        relog_interval_seconds: Optional[float] = None,
        on_critical: Optional[Callable[[ViolationKind, int], Any]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.engine = engine
        self.no_face_threshold = no_face_threshold_seconds if no_face_threshold_seconds is not None else settings.no_face_threshold_seconds
        self.critical_no_face = critical_no_face_seconds if critical_no_face_seconds is not None else settings.critical_no_face_seconds
        self.relog_interval = relog_interval_seconds if relog_interval_seconds is not None else settings.face_relog_interval_seconds
        self.on_critical = on_critical
        self.clock = clock

        self.enabled = True
        self._no_face_since: Optional[float] = None
        self._last_logged: Dict[ViolationKind, float] = {}

    def reset(self) -> None:
        """Re-arm after a stop with a fresh no-face window"""
        self.enabled = True
        self._no_face_since = None
        self._last_logged = {}

    def stop(self) -> None:
        self.enabled = False
        self._no_face_since = None
        self._last_logged = {}

    @property
    def no_face_seconds(self) -> float:
        if self._no_face_since is None:
            return 0.0
        return self.clock() - self._no_face_since

    def _throttled(self, kind: ViolationKind, now: float) -> bool:
        last = self._last_logged.get(kind)
        return last is not None and now - last < self.relog_interval

    def process_sample(self, face_count: int, valid: bool = True, at: Optional[float] = None) -> List[Violation]:
        if not self.enabled or not valid:
            return []

        now = at if at is not None else self.clock()
        logged: List[Violation] = []

        if face_count <= 0:
            if self._no_face_since is None:
                self._no_face_since = now
            duration = now - self._no_face_since

            if duration >= self.no_face_threshold and not self._throttled(ViolationKind.NO_FACE_DETECTED, now):
                violation = self.engine.log_violation(
                    ViolationKind.NO_FACE_DETECTED, {"duration": int(duration)}
                )
                self._last_logged[ViolationKind.NO_FACE_DETECTED] = now
                if violation is not None:
                    logged.append(violation)

            if duration >= self.critical_no_face:
                logger.warning(f"No face detected for {int(duration)}s")
                if self.on_critical is not None:
                    self.on_critical(ViolationKind.NO_FACE_DETECTED, int(duration))
        else:
            self._no_face_since = None

        if face_count > 1 and not self._throttled(ViolationKind.MULTIPLE_FACES, now):
            violation = self.engine.log_violation(
                ViolationKind.MULTIPLE_FACES, {"face_count": face_count}
            )
            self._last_logged[ViolationKind.MULTIPLE_FACES] = now
            if violation is not None:
                logged.append(violation)

        return logged
