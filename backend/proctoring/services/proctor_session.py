"""
Composition root for one proctored assessment attempt.

Builds the engine, delivery pipeline, fullscreen controller, countdown,
submission coordinator and sensors, and wires every submit trigger through
the coordinator.
"""
import asyncio
import inspect
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..core.config import settings
from ..core.exceptions import DeliveryError
from ..core.fallback_store import FallbackStore, fallback_store
from ..models.violation import ViolationKind, ViolationPolicy
from ..signals.browser import BrowserActivityMonitor
from ..signals.fullscreen import FullscreenSignal
from ..signals.location import LocationLookup, LocationMonitor
from ..signals.webcam import WebcamMonitor
from ..utils.timers import PeriodicTimer
from .countdown import AssessmentCountdown
from .delivery import DeliveryPipeline, ViolationApiClient
from .fullscreen_controller import FullscreenPauseController
from .submission import SubmissionCoordinator, SubmissionPayload, SubmitReason
from .violation_engine import ViolationEngine

logger = logging.getLogger(__name__)


class ProctorSession:
    def __init__(
        self,
        assessment_id: str,
        session_id: Optional[str] = None,
        duration_seconds: Optional[int] = None,
        client: Optional[ViolationApiClient] = None,
        store: Optional[FallbackStore] = None,
        location_lookup: Optional[LocationLookup] = None,
        track_location: bool = True,
        on_submit: Optional[Callable[[SubmissionPayload], Any]] = None,
        policies: Optional[Mapping[ViolationKind, ViolationPolicy]] = None
    ):
        self.assessment_id = assessment_id
        self.session_id = session_id or str(uuid.uuid4())
        self.duration_seconds = duration_seconds or settings.default_assessment_minutes * 60
        self._owns_client = client is None
        self.client = client or ViolationApiClient()
        self.store = store or fallback_store
        self.track_location = track_location
        self._on_submit = on_submit
        self.alerts: List[Dict[str, Any]] = []
        self.finished_at: Optional[float] = None

        self.pipeline = DeliveryPipeline(self.client, self.store)
        self.engine = ViolationEngine(self.pipeline, policies=policies)
        self.fullscreen = FullscreenPauseController(on_force_submit=self._on_fullscreen_timeout)
        self.countdown = AssessmentCountdown(self.duration_seconds, on_expire=self._on_time_expired)
        self.fullscreen.add_pause_listener(self.countdown.set_paused)

        self.browser = BrowserActivityMonitor(self.engine)
        self.fullscreen_signal = FullscreenSignal(self.engine, self.fullscreen)
        self.webcam = WebcamMonitor(self.engine, on_critical=self._on_critical_no_face)
        self.location = LocationMonitor(self.engine, lookup=location_lookup)

        self.coordinator = SubmissionCoordinator(
            self.engine,
            self.fullscreen,
            on_submit=self._handle_submit,
            countdown=self.countdown,
            sensors=[self.browser, self.fullscreen_signal, self.webcam, self.location]
        )

    # --- lifecycle -------------------------------------------------------

    def start(self, is_fullscreen: bool = False) -> None:
        self.finished_at = None
        self.coordinator.reset()
        self.fullscreen.reset()
        self.fullscreen.set_required(True, is_fullscreen=is_fullscreen)
        self.engine.start_session(
            self.assessment_id, self.session_id, on_auto_submit=self._on_threshold
        )
        self.countdown.start()
        # fullscreen may already be paused, so the fresh countdown must follow it
        self.countdown.set_paused(self.fullscreen.paused)
        if self.track_location:
            self.location.start()
        logger.info(
            f"Proctor session {self.session_id} started for assessment {self.assessment_id} "
            f"({self.duration_seconds}s)"
        )

    def submit(
        self,
        reason: SubmitReason = SubmitReason.CANDIDATE_SUBMITTED,
        triggering_kind: Optional[ViolationKind] = None,
        meta: Optional[Dict[str, Any]] = None
    ) -> Optional[asyncio.Task]:
        return self.coordinator.submit(reason, triggering_kind, meta)

    async def close(self) -> Optional[SubmissionPayload]:
        """Submit if nothing has yet, then wait for finalisation and pending sends"""
        if not self.coordinator.submitted:
            self.submit(SubmitReason.CANDIDATE_SUBMITTED, meta={"closed": True})
        try:
            payload = await self.coordinator.wait()
        finally:
            try:
                await self.pipeline.drain()
            finally:
                if self._owns_client:
                    await self.client.aclose()
        return payload

    async def __aenter__(self) -> "ProctorSession":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --- status ----------------------------------------------------------

    @property
    def submitted(self) -> bool:
        return self.coordinator.submitted

    def status(self) -> Dict[str, Any]:
        return {
            "assessment_id": self.assessment_id,
            "session_id": self.session_id,
            "active": self.engine.active,
            "submitted": self.submitted,
            "paused": self.fullscreen.paused,
            "remaining_seconds": self.countdown.remaining_seconds,
            "fullscreen": self.fullscreen.state,
            "total_violations": len(self.engine.violations),
            "pending_violations": len(self.engine.pending_queue),
            "delivery": self.pipeline.stats.as_dict(),
            "alerts": list(self.alerts),
        }

    # --- triggers --------------------------------------------------------

    def _on_threshold(self, kind: ViolationKind, count: int) -> None:
        self.coordinator.submit(SubmitReason.VIOLATION_THRESHOLD, kind, {"count": count})

    def _on_fullscreen_timeout(self, total_seconds: int) -> None:
        self.coordinator.submit(
            SubmitReason.FULLSCREEN_TIMEOUT,
            ViolationKind.FULLSCREEN_EXIT,
            {"total_time_outside_seconds": total_seconds}
        )

    def _on_time_expired(self) -> None:
        self.coordinator.submit(SubmitReason.TIME_EXPIRED)

    def _on_critical_no_face(self, kind: ViolationKind, seconds: int) -> None:
        self.alerts.append({"kind": kind.value, "seconds": seconds})

    async def _handle_submit(self, payload: SubmissionPayload) -> None:
        try:
            await self._deliver_submission(payload)
        finally:
            self.finished_at = time.monotonic()

    async def _deliver_submission(self, payload: SubmissionPayload) -> None:
        if self._on_submit is not None:
            result = self._on_submit(payload)
            if inspect.isawaitable(result):
                await result
            return
        try:
            await self.client.submit_assessment(
                self.assessment_id, self.session_id, payload.model_dump(mode="json")
            )
        except DeliveryError as e:
            logger.error(f"Failed to submit assessment for session {self.session_id}: {e}")


class SessionRegistry:
    """
    Live proctor sessions keyed by session id. Keyword arguments given here
    (client, store, on_submit...) are passed to every session it creates.
    """

    def __init__(self, retention_seconds: Optional[float] = None, **session_defaults):
        self._sessions: Dict[str, ProctorSession] = {}
        self._defaults = session_defaults
        self.retention_seconds = retention_seconds if retention_seconds is not None else settings.session_retention_seconds
        self._prune_timer: Optional[PeriodicTimer] = None

    def create(self, assessment_id: str, session_id: Optional[str] = None, **kwargs) -> ProctorSession:
        if session_id and session_id in self._sessions:
            raise ValueError(f"Session {session_id} already exists")
        options = dict(self._defaults, **kwargs)
        session = ProctorSession(assessment_id, session_id=session_id, **options)
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Optional[ProctorSession]:
        return self._sessions.get(session_id)

    async def remove(self, session_id: str) -> Optional[ProctorSession]:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            await session.close()
        return session

    def expired(self, now: Optional[float] = None) -> List[str]:
        """Ids of submitted sessions finished longer than the retention period ago"""
        now = now if now is not None else time.monotonic()
        return [
            session_id for session_id, session in self._sessions.items()
            if session.finished_at is not None and now - session.finished_at >= self.retention_seconds
        ]

    async def prune(self, now: Optional[float] = None) -> List[str]:
        evicted = self.expired(now)
        for session_id in evicted:
            try:
                await self.remove(session_id)
            except Exception as e:
                logger.error(f"Error evicting session {session_id}: {e}", exc_info=True)
        if evicted:
            logger.info(f"Evicted {len(evicted)} finished proctoring sessions")
        return evicted

    def start_pruning(self, interval_seconds: Optional[float] = None) -> None:
        if self._prune_timer is not None and self._prune_timer.running:
            return
        self._prune_timer = PeriodicTimer(
            interval_seconds or settings.session_prune_interval_seconds, self.prune, name="session-prune"
        )
        self._prune_timer.start()

    def stop_pruning(self) -> None:
        if self._prune_timer is not None:
            self._prune_timer.cancel()
            self._prune_timer = None

    async def close_all(self) -> None:
        self.stop_pruning()
        for session_id in list(self._sessions):
            try:
                await self.remove(session_id)
            except Exception as e:
                logger.error(f"Error closing session {session_id}: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions


registry = SessionRegistry()
