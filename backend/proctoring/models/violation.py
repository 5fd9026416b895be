from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field, model_validator


class ViolationKind(str, Enum):
    TAB_SWITCH = "TAB_SWITCH"
    RIGHT_CLICK = "RIGHT_CLICK"
    KEYBOARD_SHORTCUT = "KEYBOARD_SHORTCUT"
    DEVTOOLS_OPEN = "DEVTOOLS_OPEN"
    NEW_WINDOW_ATTEMPT = "NEW_WINDOW_ATTEMPT"
    FULLSCREEN_EXIT = "FULLSCREEN_EXIT"
    NO_FACE_DETECTED = "NO_FACE_DETECTED"
    MULTIPLE_FACES = "MULTIPLE_FACES"
    IP_CHANGE = "IP_CHANGE"
    LOCATION_CHANGE = "LOCATION_CHANGE"
    COPY_PASTE = "COPY_PASTE"
    PAGE_BLUR = "PAGE_BLUR"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ViolationPolicy(BaseModel):
    """Thresholds and default severity for one violation kind"""
    warning_threshold: int = Field(..., ge=0)
    auto_submit_threshold: int = Field(..., ge=0)
    severity: Severity

    @model_validator(mode="after")
    def check_thresholds(self) -> "ViolationPolicy":
        if self.warning_threshold > self.auto_submit_threshold:
            raise ValueError(
                f"warning_threshold ({self.warning_threshold}) must not exceed "
                f"auto_submit_threshold ({self.auto_submit_threshold})"
            )
        return self

    class Config:
        frozen = True


class Violation(BaseModel):
    """A single detected incident. Append-only, never mutated after creation."""
    id: str
    session_id: str
    assessment_id: str
    kind: ViolationKind
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    severity: Severity
    sequence_count: int

    class Config:
        frozen = True

    def to_payload(self) -> Dict[str, Any]:
        """Wire form expected by the violations endpoint"""
        return {
            "type": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
            "severity": self.severity.value,
            "count": self.sequence_count,
        }


class KindCount(BaseModel):
    kind: ViolationKind
    count: int
    threshold: int


class ViolationSummary(BaseModel):
    total: int
    counts_by_kind: Dict[ViolationKind, int]
    by_kind: List[KindCount]
    counts_by_severity: Dict[Severity, int]
