"""
Violation delivery: immediate sends for CRITICAL violations, periodic batches
for the rest, and local fallback storage whenever the network path fails.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

import httpx

from ..core.config import settings
from ..core.exceptions import DeliveryError
from ..core.fallback_store import FallbackStore
from ..models.violation import Violation
from ..utils.timers import PeriodicTimer

logger = logging.getLogger(__name__)


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    STORED_LOCALLY = "stored_locally"
    DROPPED = "dropped"


class ViolationApiClient:
    """HTTP transport to the assessment service's violation endpoints"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.violation_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.delivery_timeout_seconds
        self.token = token if token is not None else settings.violation_api_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport
            )
        return self._client

    @staticmethod
    def attempt_path(assessment_id: str, session_id: str) -> str:
        return f"/assessments/{assessment_id}/attempts/{session_id}"

    async def _post(self, path: str, body: Dict[str, Any]) -> None:
        try:
            response = await self.client.post(path, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"POST {path} returned {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"POST {path} failed: {e}") from e

    async def send_violation(self, violation: Violation) -> None:
        path = self.attempt_path(violation.assessment_id, violation.session_id) + "/violations"
        await self._post(path, violation.to_payload())

    async def send_batch(self, assessment_id: str, session_id: str, batch: List[Violation]) -> None:
        path = self.attempt_path(assessment_id, session_id) + "/violations/batch"
        await self._post(path, {"violations": [v.to_payload() for v in batch]})

    async def submit_assessment(self, assessment_id: str, session_id: str, payload: Dict[str, Any]) -> None:
        await self._post(self.attempt_path(assessment_id, session_id) + "/submit", payload)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class DeliveryStats:
    def __init__(self):
        self.delivered = 0
        self.stored_locally = 0
        self.dropped = 0

    def record(self, outcome: DeliveryOutcome, count: int = 1) -> None:
        if outcome == DeliveryOutcome.DELIVERED:
            self.delivered += count
        elif outcome == DeliveryOutcome.STORED_LOCALLY:
            self.stored_locally += count
        else:
            self.dropped += count

    def as_dict(self) -> Dict[str, int]:
        return {
            "delivered": self.delivered,
            "stored_locally": self.stored_locally,
            "dropped": self.dropped,
        }


class DeliveryPipeline:
    """
    Owns the pending queue and the batch timer for one session at a time.

    Queue mutation (enqueue, swap, removal of critical records) is synchronous,
    so a flush never loses or duplicates a record: anything enqueued while a
    batch is on the wire lands in the fresh queue.
    """

    def __init__(
        self,
        client: ViolationApiClient,
        store: FallbackStore,
        batch_interval_seconds: Optional[float] = None,
        flush_timeout_seconds: Optional[float] = None
    ):
        self.client = client
        self.store = store
        self.batch_interval = batch_interval_seconds or settings.batch_interval_seconds
        self.flush_timeout = flush_timeout_seconds or settings.flush_timeout_seconds
        self.stats = DeliveryStats()

        self.assessment_id: Optional[str] = None
        self.session_id: Optional[str] = None
        self._pending: List[Violation] = []
        self._timer: Optional[PeriodicTimer] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> tuple:
        return tuple(self._pending)

    @property
    def started(self) -> bool:
        return self._timer is not None and self._timer.running

    def start(self, assessment_id: str, session_id: str) -> None:
        """Bind to a session and start the batch timer, discarding prior state"""
        leftover = self.swap_pending()
        if leftover:
            logger.warning(
                f"Session {self.session_id} restarted with {len(leftover)} undelivered "
                f"violations; moving them to fallback storage"
            )
            self._spawn(self._store_locally(leftover))
        self._cancel_timer()

        self.assessment_id = assessment_id
        self.session_id = session_id
        self._timer = PeriodicTimer(
            self.batch_interval, self._on_batch_tick, name=f"violation-batch:{session_id}"
        )
        self._timer.start()

    def enqueue(self, violation: Violation) -> None:
        self._pending.append(violation)

    def swap_pending(self) -> List[Violation]:
        batch, self._pending = self._pending, []
        return batch

    def dispatch_immediate(self, violation: Violation) -> asyncio.Task:
        """Take a violation off the batch queue and send it right away"""
        self._pending = [v for v in self._pending if v.id != violation.id]
        return self._spawn(self.deliver_immediate(violation))

    async def deliver_immediate(self, violation: Violation) -> DeliveryOutcome:
        try:
            await self.client.send_violation(violation)
        except DeliveryError as e:
            logger.error(f"Failed to send critical violation {violation.id}: {e}")
            return await self._store_locally([violation])
        logger.info(f"Critical violation sent immediately: {violation.id} ({violation.kind.value})")
        self.stats.record(DeliveryOutcome.DELIVERED)
        return DeliveryOutcome.DELIVERED

    async def send_batch(self, batch: List[Violation], timeout: Optional[float] = None) -> DeliveryOutcome:
        """Send one batch, falling back to the local store on failure or timeout"""
        if not batch:
            return DeliveryOutcome.DELIVERED
        first = batch[0]
        try:
            await asyncio.wait_for(
                self.client.send_batch(first.assessment_id, first.session_id, batch),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Sending violation batch of {len(batch)} timed out after {timeout}s; storing locally"
            )
            return await self._store_locally(batch)
        except DeliveryError as e:
            logger.error(f"Failed to send violation batch of {len(batch)}: {e}")
            return await self._store_locally(batch)
        logger.info(f"Batch of {len(batch)} violations sent successfully")
        self.stats.record(DeliveryOutcome.DELIVERED, len(batch))
        return DeliveryOutcome.DELIVERED

    async def flush(self) -> Optional[DeliveryOutcome]:
        batch = self.swap_pending()
        if not batch:
            return None
        return await self.send_batch(batch)

    async def stop(self) -> Optional[DeliveryOutcome]:
        """Cancel the batch timer and send whatever is still queued"""
        self._cancel_timer()
        batch = self.swap_pending()
        if not batch:
            return None
        return await self.send_batch(batch, timeout=self.flush_timeout)

    async def drain(self) -> None:
        """Wait for in-flight immediate and batch sends to settle"""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _on_batch_tick(self) -> None:
        if self._pending:
            self._spawn(self.flush())

    async def _store_locally(self, violations: List[Violation]) -> DeliveryOutcome:
        by_session: Dict[str, List[Dict[str, Any]]] = {}
        for v in violations:
            by_session.setdefault(v.session_id, []).append(v.model_dump(mode="json"))

        # outcome is DROPPED if any session group failed; stats count each group separately
        outcome = DeliveryOutcome.STORED_LOCALLY
        for session_id, records in by_session.items():
            if await self.store.aappend(session_id, records):
                logger.info(f"Stored {len(records)} violations locally for session {session_id}")
                self.stats.record(DeliveryOutcome.STORED_LOCALLY, len(records))
            else:
                logger.error(f"Failed to store {len(records)} violations locally for session {session_id}")
                self.stats.record(DeliveryOutcome.DROPPED, len(records))
                outcome = DeliveryOutcome.DROPPED
        return outcome

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
