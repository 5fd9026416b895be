"""
Submission Coordinator - single chokepoint for ending an assessment.

Violation thresholds, the fullscreen ceiling, the countdown and the candidate
can all ask for submission, possibly within the same tick. Only the first
request runs the teardown and hands the payload off; the rest return quietly.
"""
import asyncio
import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from pydantic import BaseModel, Field

from ..models.fullscreen import FullscreenState
from ..models.violation import ViolationKind, ViolationSummary
from ..utils.timezone import get_local_now
from .countdown import AssessmentCountdown
from .fullscreen_controller import FullscreenPauseController
from .violation_engine import ViolationEngine

logger = logging.getLogger(__name__)


class SubmitReason(str, Enum):
    VIOLATION_THRESHOLD = "violation_threshold"
    FULLSCREEN_TIMEOUT = "fullscreen_timeout"
    TIME_EXPIRED = "time_expired"
    CANDIDATE_SUBMITTED = "candidate_submitted"


class SubmissionPayload(BaseModel):
    assessment_id: Optional[str]
    session_id: Optional[str]
    reason: SubmitReason
    triggering_kind: Optional[ViolationKind] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    violation_summary: ViolationSummary
    fullscreen: FullscreenState
    submitted_at: datetime


SubmitHandler = Callable[[SubmissionPayload], Any]


class SubmissionCoordinator:
    def __init__(
        self,
        engine: ViolationEngine,
        fullscreen: FullscreenPauseController,
        on_submit: Optional[SubmitHandler] = None,
        countdown: Optional[AssessmentCountdown] = None,
        sensors: Iterable[Any] = (),
        clock: Callable[[], datetime] = get_local_now
    ):
        self.engine = engine
        self.fullscreen = fullscreen
        self.on_submit = on_submit
        self.countdown = countdown
        self.sensors = list(sensors)
        self.clock = clock

        self._submitting = False
        self._task: Optional[asyncio.Task] = None
        self.payload: Optional[SubmissionPayload] = None

    @property
    def submitted(self) -> bool:
        return self._submitting

    def add_sensor(self, sensor: Any) -> None:
        self.sensors.append(sensor)

    def reset(self) -> None:
        """Re-arm the guard and the sensors for a new session. Never call mid-session."""
        self._submitting = False
        self._task = None
        self.payload = None
        for sensor in self.sensors:
            try:
                sensor.reset()
            except Exception as e:
                logger.error(f"Failed to reset sensor {type(sensor).__name__}: {e}", exc_info=True)

    def submit(
        self,
        reason: SubmitReason,
        triggering_kind: Optional[ViolationKind] = None,
        meta: Optional[Dict[str, Any]] = None
    ) -> Optional[asyncio.Task]:
        # check-and-set with no await in between
        if self._submitting:
            logger.debug(f"Submission already in progress; ignoring trigger {reason.value}")
            return None
        self._submitting = True

        logger.warning(
            f"Submitting session {self.engine.session_id}: reason={reason.value}"
            + (f", kind={triggering_kind.value}" if triggering_kind else "")
        )
        self._stop_sources()
        self._task = asyncio.get_running_loop().create_task(
            self._finalize(reason, triggering_kind, dict(meta or {}))
        )
        return self._task

    async def wait(self) -> Optional[SubmissionPayload]:
        if self._task is None:
            return None
        return await self._task

    def _stop_sources(self) -> None:
        for sensor in self.sensors:
            try:
                sensor.stop()
            except Exception as e:
                logger.error(f"Failed to stop sensor {type(sensor).__name__}: {e}", exc_info=True)
        self.fullscreen.stop()
        if self.countdown is not None:
            self.countdown.stop()

    async def _finalize(
        self,
        reason: SubmitReason,
        triggering_kind: Optional[ViolationKind],
        meta: Dict[str, Any]
    ) -> SubmissionPayload:
        await self.engine.stop_session()

        payload = SubmissionPayload(
            assessment_id=self.engine.assessment_id,
            session_id=self.engine.session_id,
            reason=reason,
            triggering_kind=triggering_kind,
            meta=meta,
            violation_summary=self.engine.get_summary(),
            fullscreen=self.fullscreen.state,
            submitted_at=self.clock()
        )
        self.payload = payload

        if self.on_submit is not None:
            try:
                result = self.on_submit(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Submission hand-off failed for session {payload.session_id}: {e}", exc_info=True)
                raise

        logger.info(f"Session {payload.session_id} submitted ({reason.value})")
        return payload
