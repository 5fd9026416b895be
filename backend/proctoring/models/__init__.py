from .violation import (
    ViolationKind,
    Severity,
    ViolationPolicy,
    Violation,
    KindCount,
    ViolationSummary,
)
from .fullscreen import FullscreenState

__all__ = [
    "ViolationKind",
    "Severity",
    "ViolationPolicy",
    "Violation",
    "KindCount",
    "ViolationSummary",
    "FullscreenState",
]
