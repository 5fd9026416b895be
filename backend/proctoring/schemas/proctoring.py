from pydantic import BaseModel, Field, field_serializer
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.fullscreen import FullscreenState
from ..models.violation import Severity, ViolationKind, ViolationSummary
from ..services.submission import SubmitReason
from ..signals.devtools import WindowMetrics
from ..utils.timezone import format_duration, format_local_time


class SessionStartRequest(BaseModel):
    assessment_id: str
    session_id: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    is_fullscreen: bool = False
    track_location: bool = True


class SessionStatus(BaseModel):
    assessment_id: str
    session_id: str
    active: bool
    submitted: bool
    paused: bool
    remaining_seconds: int
    remaining_display: Optional[str] = None
    fullscreen: FullscreenState
    total_violations: int
    pending_violations: int
    delivery: Dict[str, int]
    alerts: List[Dict[str, Any]] = []

    @field_serializer('remaining_display')
    def serialize_remaining_display(self, value):
        return format_duration(self.remaining_seconds)


class ViolationRecord(BaseModel):
    id: str
    kind: ViolationKind
    severity: Severity
    sequence_count: int
    timestamp: datetime
    timestamp_local: Optional[str] = None
    details: Dict[str, Any] = {}

    @field_serializer('timestamp_local')
    def serialize_timestamp_local(self, value):
        return format_local_time(self.timestamp)

    class Config:
        from_attributes = True


class SignalResponse(BaseModel):
    violations: List[ViolationRecord] = []
    should_warn: bool = False
    paused: bool = False
    submitted: bool = False


class ViolationCreate(BaseModel):
    kind: str
    details: Dict[str, Any] = {}
    severity: Optional[Severity] = None


class SubmitRequest(BaseModel):
    reason: SubmitReason = SubmitReason.CANDIDATE_SUBMITTED
    meta: Dict[str, Any] = {}


class SubmitResponse(BaseModel):
    session_id: str
    accepted: bool
    submitted: bool


class SummaryResponse(BaseModel):
    session_id: str
    summary: ViolationSummary


# --- signal bodies -------------------------------------------------------

class VisibilitySignal(BaseModel):
    hidden: bool
    fullscreen_active: bool = False


class BlurSignal(BaseModel):
    fullscreen_active: bool = False


class ContextMenuSignal(BaseModel):
    target: Optional[str] = None


class KeyDownSignal(BaseModel):
    key: str
    key_code: Optional[int] = None
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False


class ClipboardSignal(BaseModel):
    action: str = Field(..., pattern="^(copy|paste|cut)$")


class WindowOpenSignal(BaseModel):
    url: Optional[str] = None


class FaceSignal(BaseModel):
    face_count: int = Field(..., ge=0)
    valid: bool = True


class FullscreenChangeSignal(BaseModel):
    is_fullscreen: bool
    window: Optional[WindowMetrics] = None


class LocationSignal(BaseModel):
    ip: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    city: Optional[str] = None
    country: Optional[str] = None
