import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..core.policies import VIOLATION_POLICIES, coerce_kind, policy_for, validate_policy_table
from ..models.violation import (
    KindCount,
    Severity,
    Violation,
    ViolationKind,
    ViolationPolicy,
    ViolationSummary,
)
from ..utils.timezone import get_local_now
from .delivery import DeliveryPipeline

logger = logging.getLogger(__name__)

AutoSubmitHandler = Callable[[ViolationKind, int], Any]


def _zero_counts() -> Dict[ViolationKind, int]:
    return {kind: 0 for kind in ViolationKind}


class SessionState:
    """Live state of the proctoring session currently bound to an engine"""

    def __init__(
        self,
        assessment_id: Optional[str] = None,
        session_id: Optional[str] = None,
        on_auto_submit: Optional[AutoSubmitHandler] = None,
        active: bool = False
    ):
        self.active = active
        self.assessment_id = assessment_id
        self.session_id = session_id
        self.on_auto_submit = on_auto_submit
        self.violations: List[Violation] = []
        self.counts_by_kind: Dict[ViolationKind, int] = _zero_counts()


class ViolationEngine:
    """
    Aggregates violations for one assessment session.

    Counting and threshold checks run synchronously inside log_violation,
    before anything awaits, so a burst of signals is never under- or
    double-counted. Delivery is handed to the pipeline.

    The auto-submit handler may be invoked more than once if violations keep
    arriving past a threshold; violations are still recorded for the audit
    trail and the submission coordinator absorbs repeat triggers.
    """

    def __init__(
        self,
        pipeline: DeliveryPipeline,
        policies: Optional[Mapping[ViolationKind, ViolationPolicy]] = None,
        clock: Callable[[], datetime] = get_local_now
    ):
        self.pipeline = pipeline
        self.policies = dict(policies) if policies is not None else dict(VIOLATION_POLICIES)
        validate_policy_table(self.policies)
        self.clock = clock
        self._state = SessionState()

    # --- lifecycle -------------------------------------------------------

    def start_session(
        self,
        assessment_id: str,
        session_id: str,
        on_auto_submit: Optional[AutoSubmitHandler] = None
    ) -> None:
        if self._state.active:
            logger.info(
                f"Restarting proctoring: session {self._state.session_id} replaced by {session_id}"
            )
        self._state = SessionState(
            assessment_id=assessment_id,
            session_id=session_id,
            on_auto_submit=on_auto_submit,
            active=True
        )
        self.pipeline.start(assessment_id, session_id)
        logger.info(f"Proctoring started for assessment {assessment_id}, session {session_id}")

    async def stop_session(self) -> None:
        if not self._state.active:
            return
        self._state.active = False
        await self.pipeline.stop()
        logger.info(
            f"Proctoring stopped for session {self._state.session_id}: "
            f"{len(self._state.violations)} violations recorded"
        )

    # --- recording -------------------------------------------------------

    def log_violation(
        self,
        kind: Any,
        details: Optional[Dict[str, Any]] = None,
        severity_override: Optional[Severity] = None
    ) -> Optional[Violation]:
        kind = coerce_kind(kind)
        policy = policy_for(kind, self.policies)

        state = self._state
        if not state.active:
            logger.warning(f"Proctoring not active, violation not logged: {kind.value}")
            return None

        severity = Severity(severity_override) if severity_override else policy.severity
        state.counts_by_kind[kind] += 1
        count = state.counts_by_kind[kind]

        violation = Violation(
            id=str(uuid.uuid4()),
            session_id=state.session_id,
            assessment_id=state.assessment_id,
            kind=kind,
            timestamp=self.clock(),
            details=dict(details or {}),
            severity=severity,
            sequence_count=count
        )
        state.violations.append(violation)
        self.pipeline.enqueue(violation)

        log = logger.warning if severity in (Severity.HIGH, Severity.CRITICAL) else logger.info
        log(
            f"Violation {kind.value} in session {state.session_id}: "
            f"count {count}/{policy.auto_submit_threshold}, severity {severity.value}"
        )

        if severity == Severity.CRITICAL:
            self.pipeline.dispatch_immediate(violation)

        if count >= policy.auto_submit_threshold:
            logger.warning(
                f"Auto-submit triggered for session {state.session_id}: "
                f"{kind.value} {count}/{policy.auto_submit_threshold}"
            )
            if state.on_auto_submit is not None:
                state.on_auto_submit(kind, count)

        return violation

    # --- queries ---------------------------------------------------------

    def policy_for(self, kind: Any) -> ViolationPolicy:
        return policy_for(kind, self.policies)

    def should_warn(self, kind: Any) -> bool:
        kind = coerce_kind(kind)
        policy = self.policy_for(kind)
        count = self._state.counts_by_kind[kind]
        return policy.warning_threshold <= count < policy.auto_submit_threshold

    def should_auto_submit(self) -> bool:
        return any(
            self._state.counts_by_kind[kind] >= policy.auto_submit_threshold
            for kind, policy in self.policies.items()
        )

    def get_summary(self) -> ViolationSummary:
        counts = dict(self._state.counts_by_kind)
        by_severity = {severity: 0 for severity in Severity}
        for v in self._state.violations:
            by_severity[v.severity] += 1

        return ViolationSummary(
            total=len(self._state.violations),
            counts_by_kind=counts,
            by_kind=[
                KindCount(
                    kind=kind,
                    count=counts[kind],
                    threshold=self.policies[kind].auto_submit_threshold
                )
                for kind in ViolationKind
            ],
            counts_by_severity=by_severity
        )

    @property
    def active(self) -> bool:
        return self._state.active

    @property
    def session_id(self) -> Optional[str]:
        return self._state.session_id

    @property
    def assessment_id(self) -> Optional[str]:
        return self._state.assessment_id

    @property
    def violations(self) -> tuple:
        return tuple(self._state.violations)

    @property
    def counts_by_kind(self) -> Dict[ViolationKind, int]:
        return dict(self._state.counts_by_kind)

    @property
    def pending_queue(self) -> tuple:
        return self.pipeline.pending
