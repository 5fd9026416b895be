from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
import logging

from ....api.deps import get_registry, get_session
from ....core.exceptions import UnknownViolationKindError
from ....core.policies import VIOLATION_POLICIES
from ....models.violation import Violation, ViolationKind
from ....schemas.proctoring import (
    BlurSignal,
    ClipboardSignal,
    ContextMenuSignal,
    FaceSignal,
    FullscreenChangeSignal,
    KeyDownSignal,
    LocationSignal,
    SessionStartRequest,
    SessionStatus,
    SignalResponse,
    SubmitRequest,
    SubmitResponse,
    SummaryResponse,
    ViolationCreate,
    ViolationRecord,
    VisibilitySignal,
    WindowOpenSignal,
)
from ....services.proctor_session import ProctorSession, SessionRegistry
from ....signals.location import LocationSnapshot

logger = logging.getLogger(__name__)

router = APIRouter()


def _signal_response(
    session: ProctorSession,
    violations: List[Optional[Violation]]
) -> SignalResponse:
    logged = [v for v in violations if v is not None]
    return SignalResponse(
        violations=[ViolationRecord.model_validate(v) for v in logged],
        should_warn=any(session.engine.should_warn(v.kind) for v in logged),
        paused=session.fullscreen.paused,
        submitted=session.submitted
    )


@router.post("/sessions", response_model=SessionStatus, status_code=status.HTTP_201_CREATED)
async def start_session(
    request: SessionStartRequest,
    sessions: SessionRegistry = Depends(get_registry)
):
    """Start proctoring an assessment attempt"""
    try:
        session = sessions.create(
            request.assessment_id,
            session_id=request.session_id,
            duration_seconds=request.duration_minutes * 60 if request.duration_minutes else None,
            track_location=request.track_location
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    session.start(is_fullscreen=request.is_fullscreen)
    return session.status()


@router.get("/sessions/{session_id}", response_model=SessionStatus)
async def get_session_status(session: ProctorSession = Depends(get_session)):
    return session.status()


@router.get("/sessions/{session_id}/summary", response_model=SummaryResponse)
async def get_violation_summary(session: ProctorSession = Depends(get_session)):
    return SummaryResponse(session_id=session.session_id, summary=session.engine.get_summary())


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit_session(
    request: SubmitRequest,
    session: ProctorSession = Depends(get_session)
):
    """Candidate-initiated submission; later triggers are ignored"""
    task = session.submit(request.reason, meta=request.meta)
    return SubmitResponse(
        session_id=session.session_id,
        accepted=task is not None,
        submitted=session.submitted
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: str,
    sessions: SessionRegistry = Depends(get_registry)
):
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Proctoring session not found")
    logger.info(f"Closing proctoring session {session_id}")
    await sessions.remove(session_id)


@router.post("/sessions/{session_id}/violations", response_model=SignalResponse)
async def log_violation(
    violation: ViolationCreate,
    session: ProctorSession = Depends(get_session)
):
    """Log a violation detected client-side"""
    try:
        logged = session.engine.log_violation(
            violation.kind, violation.details, severity_override=violation.severity
        )
    except UnknownViolationKindError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _signal_response(session, [logged])


# --- browser signals -----------------------------------------------------

@router.post("/sessions/{session_id}/signals/visibility", response_model=SignalResponse)
async def visibility_signal(signal: VisibilitySignal, session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_visibility_change(signal.hidden, signal.fullscreen_active)
    return _signal_response(session, [violation])


@router.post("/sessions/{session_id}/signals/blur", response_model=SignalResponse)
async def blur_signal(signal: BlurSignal, session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_window_blur(signal.fullscreen_active)
    return _signal_response(session, [violation])


@router.post("/sessions/{session_id}/signals/context-menu", response_model=SignalResponse)
async def context_menu_signal(signal: ContextMenuSignal, session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_context_menu(signal.target)
    return _signal_response(session, [violation])


@router.post("/sessions/{session_id}/signals/keydown", response_model=SignalResponse)
async def keydown_signal(signal: KeyDownSignal, session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_key_down(
        signal.key,
        key_code=signal.key_code,
        ctrl=signal.ctrl,
        shift=signal.shift,
        alt=signal.alt,
        meta=signal.meta
    )
    return _signal_response(session, [violation])


@router.post("/sessions/{session_id}/signals/clipboard", response_model=SignalResponse)
async def clipboard_signal(signal: ClipboardSignal, session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_clipboard(signal.action)
    return _signal_response(session, [violation])


@router.post("/sessions/{session_id}/signals/window-open", response_model=SignalResponse)
async def window_open_signal(signal: WindowOpenSignal, session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_window_open(signal.url)
    return _signal_response(session, [violation])


@router.post("/sessions/{session_id}/signals/print", response_model=SignalResponse)
async def print_signal(session: ProctorSession = Depends(get_session)):
    violation = session.browser.handle_before_print()
    return _signal_response(session, [violation])


# --- sensor signals ------------------------------------------------------

@router.post("/sessions/{session_id}/signals/face", response_model=SignalResponse)
async def face_signal(signal: FaceSignal, session: ProctorSession = Depends(get_session)):
    violations = session.webcam.process_sample(signal.face_count, valid=signal.valid)
    return _signal_response(session, violations)


@router.post("/sessions/{session_id}/signals/fullscreen", response_model=SignalResponse)
async def fullscreen_signal(signal: FullscreenChangeSignal, session: ProctorSession = Depends(get_session)):
    before = len(session.engine.violations)
    session.fullscreen_signal.handle_change(signal.is_fullscreen, signal.window)
    return _signal_response(session, list(session.engine.violations[before:]))


@router.post("/sessions/{session_id}/signals/location", response_model=SignalResponse)
async def location_signal(signal: LocationSignal, session: ProctorSession = Depends(get_session)):
    snapshot = LocationSnapshot(**signal.model_dump())
    violations = session.location.check(snapshot)
    return _signal_response(session, violations)


@router.get("/kinds")
async def list_violation_kinds():
    """Violation taxonomy with thresholds"""
    return {
        kind.value: VIOLATION_POLICIES[kind].model_dump(mode="json")
        for kind in ViolationKind
    }
