"""
Violation taxonomy: per-kind warning / auto-submit thresholds and severity.

Every ViolationKind has a policy. Looking up anything else is a programmer
error and raises, so a mismatch between a sensor and the taxonomy can never
fall back to a permissive default.
"""
from typing import Any, Mapping

from ..models.violation import ViolationKind, ViolationPolicy, Severity
from .exceptions import UnknownViolationKindError


VIOLATION_POLICIES: Mapping[ViolationKind, ViolationPolicy] = {
    ViolationKind.TAB_SWITCH: ViolationPolicy(
        warning_threshold=1, auto_submit_threshold=3, severity=Severity.HIGH
    ),
    ViolationKind.PAGE_BLUR: ViolationPolicy(
        warning_threshold=3, auto_submit_threshold=5, severity=Severity.HIGH
    ),
    ViolationKind.RIGHT_CLICK: ViolationPolicy(
        warning_threshold=3, auto_submit_threshold=5, severity=Severity.LOW
    ),
    ViolationKind.KEYBOARD_SHORTCUT: ViolationPolicy(
        warning_threshold=3, auto_submit_threshold=5, severity=Severity.MEDIUM
    ),
    ViolationKind.DEVTOOLS_OPEN: ViolationPolicy(
        warning_threshold=1, auto_submit_threshold=2, severity=Severity.CRITICAL
    ),
    ViolationKind.NEW_WINDOW_ATTEMPT: ViolationPolicy(
        warning_threshold=1, auto_submit_threshold=3, severity=Severity.HIGH
    ),
    ViolationKind.FULLSCREEN_EXIT: ViolationPolicy(
        warning_threshold=1, auto_submit_threshold=3, severity=Severity.HIGH
    ),
    ViolationKind.NO_FACE_DETECTED: ViolationPolicy(
        warning_threshold=2, auto_submit_threshold=7, severity=Severity.HIGH
    ),
    ViolationKind.MULTIPLE_FACES: ViolationPolicy(
        warning_threshold=1, auto_submit_threshold=3, severity=Severity.HIGH
    ),
    ViolationKind.IP_CHANGE: ViolationPolicy(
        warning_threshold=0, auto_submit_threshold=1, severity=Severity.CRITICAL
    ),
    ViolationKind.LOCATION_CHANGE: ViolationPolicy(
        warning_threshold=0, auto_submit_threshold=1, severity=Severity.CRITICAL
    ),
    ViolationKind.COPY_PASTE: ViolationPolicy(
        warning_threshold=3, auto_submit_threshold=8, severity=Severity.MEDIUM
    ),
}


def coerce_kind(value: Any) -> ViolationKind:
    """Convert a raw value (enum member or its string name) to a ViolationKind"""
    if isinstance(value, ViolationKind):
        return value
    if isinstance(value, str):
        try:
            return ViolationKind(value)
        except ValueError:
            raise UnknownViolationKindError(value) from None
    raise UnknownViolationKindError(value)


def validate_policy_table(policies: Mapping[ViolationKind, ViolationPolicy]) -> None:
    missing = [kind.value for kind in ViolationKind if kind not in policies]
    if missing:
        raise ValueError(f"Policy table is missing kinds: {', '.join(missing)}")


def policy_for(
    kind: Any,
    policies: Mapping[ViolationKind, ViolationPolicy] = VIOLATION_POLICIES
) -> ViolationPolicy:
    kind = coerce_kind(kind)
    try:
        return policies[kind]
    except KeyError:
        raise UnknownViolationKindError(kind) from None


validate_policy_table(VIOLATION_POLICIES)
