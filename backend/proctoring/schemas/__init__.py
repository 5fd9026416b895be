from .proctoring import (
    SessionStartRequest,
    SessionStatus,
    ViolationRecord,
    SignalResponse,
    ViolationCreate,
    SubmitRequest,
    SubmitResponse,
    SummaryResponse,
)
__all__ = [
    "SessionStartRequest",
    "SessionStatus",
    "ViolationRecord",
    "SignalResponse",
    "ViolationCreate",
    "SubmitRequest",
    "SubmitResponse",
    "SummaryResponse",
]
