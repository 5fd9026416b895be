import redis.asyncio as aioredis
import json
import logging
from typing import Any, Dict, List, Optional

from proctoring.core.config import settings

logger = logging.getLogger(__name__)


class FallbackStore:
    """
    Local durable store for violation records that could not be delivered.

    Append-only Redis list per session, key ``violations_<session_id>``.
    Errors are logged and reported through return values, never raised:
    a failing backup must not break the proctoring session.
    """

    KEY_PREFIX = "violations_"

    def __init__(self, redis_url: Optional[str] = None, ttl: Optional[int] = None):
        self.redis_url = redis_url or settings.redis_url
        self.ttl = ttl if ttl is not None else settings.fallback_ttl_seconds

        self._async_client = None

    async def get_async_client(self) -> aioredis.Redis:
        if self._async_client is None:
            try:
                self._async_client = aioredis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True,
                    health_check_interval=30
                )
                await self._async_client.ping()
            except Exception as e:
                logger.error(f"Failed to create async Redis client: {e}")
                self._async_client = None
                raise
        return self._async_client

    def key_for(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    def _serialize_value(self, value: Any) -> str:
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Fallback serialization error: {e}")
            return json.dumps(str(value))

    def _deserialize_value(self, value: str) -> Any:
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"Fallback deserialization error: {e}, value: {value}")
            return value

    async def aappend(self, session_id: str, records: List[Dict[str, Any]]) -> bool:
        """Append records to the session's backup list"""
        if not records:
            return True
        key = self.key_for(session_id)
        try:
            client = await self.get_async_client()
            await client.rpush(key, *(self._serialize_value(r) for r in records))
            if self.ttl:
                await client.expire(key, self.ttl)
            return True
        except Exception as e:
            logger.error(f"Async fallback append error for key '{key}': {e}")
            if "connection" in str(e).lower() or "timeout" in str(e).lower():
                self._async_client = None
            return False

    async def aget_records(self, session_id: str) -> List[Any]:
        """Read back everything stored for a session (operator inspection)"""
        key = self.key_for(session_id)
        try:
            client = await self.get_async_client()
            values = await client.lrange(key, 0, -1)
            return [self._deserialize_value(v) for v in values]
        except Exception as e:
            logger.error(f"Async fallback read error for key '{key}': {e}")
            return []

    async def ahealth_check(self) -> bool:
        try:
            client = await self.get_async_client()
            return await client.ping()
        except Exception as e:
            logger.warning(f"Fallback store health check failed: {e}")
            return False

    async def aclose(self) -> None:
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None


fallback_store = FallbackStore()
