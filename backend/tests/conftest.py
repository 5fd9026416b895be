"""
Pytest Configuration for Proctoring Engine Tests
"""
import asyncio
import json
import uuid
from typing import Any, Dict, List, Optional

import httpx
import pytest
from unittest.mock import MagicMock

from proctoring.core.fallback_store import FallbackStore
from proctoring.models.violation import Severity, Violation, ViolationKind
from proctoring.services.delivery import DeliveryPipeline, ViolationApiClient
from proctoring.services.violation_engine import ViolationEngine
from proctoring.utils.timezone import get_local_now


class RecordingTransport:
    """httpx mock transport that records requests and can fail or stall on demand"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"ok": True})

    def as_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def bodies(self) -> List[Any]:
        return [json.loads(r.content) for r in self.requests]

    def requests_to(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]


class InMemoryFallbackStore(FallbackStore):
    """FallbackStore keeping records in a dict instead of Redis"""

    def __init__(self):
        super().__init__(redis_url="redis://unused:6379/0", ttl=0)
        self.records: Dict[str, List[Dict[str, Any]]] = {}
        self.fail = False
        self.fail_sessions = set()

    async def aappend(self, session_id, records):
        if self.fail or session_id in self.fail_sessions:
            return False
        self.records.setdefault(self.key_for(session_id), []).extend(records)
        return True

    async def aget_records(self, session_id):
        return list(self.records.get(self.key_for(session_id), []))

    async def ahealth_check(self):
        return not self.fail


def make_violation(
    kind: ViolationKind = ViolationKind.RIGHT_CLICK,
    session_id: str = "session-1",
    assessment_id: str = "assessment-1",
    severity: Severity = Severity.LOW,
    sequence_count: int = 1,
    details: Optional[Dict[str, Any]] = None
) -> Violation:
    return Violation(
        id=str(uuid.uuid4()),
        session_id=session_id,
        assessment_id=assessment_id,
        kind=kind,
        timestamp=get_local_now(),
        details=details or {},
        severity=severity,
        sequence_count=sequence_count
    )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def api_client(transport):
    return ViolationApiClient(
        base_url="http://assessment.test/api/v1",
        timeout=5,
        token="test-token",
        transport=transport.as_transport()
    )


@pytest.fixture
def store():
    return InMemoryFallbackStore()


@pytest.fixture
def pipeline(api_client, store):
    """Pipeline whose batch timer never fires during a test"""
    return DeliveryPipeline(api_client, store, batch_interval_seconds=3600, flush_timeout_seconds=2)


@pytest.fixture
def engine(pipeline):
    return ViolationEngine(pipeline)


@pytest.fixture
def mock_engine():
    """Engine stand-in for sensor tests; records log_violation calls"""
    engine = MagicMock()
    engine.session_id = "session-1"
    engine.log_violation.side_effect = lambda kind, details=None, **kwargs: make_violation(
        kind=kind, details=details
    )
    return engine


def logged_kinds(mock_engine) -> List[ViolationKind]:
    return [c.args[0] for c in mock_engine.log_violation.call_args_list]
