import logging
from typing import Dict, Optional, Protocol

from redis.asyncio import Redis

from ..domain.errors import StoredStateInvalid
from ..domain.model import QuizState
from ..schemas.storage_schemas import dump_state, load_state

logger = logging.getLogger(__name__)

REDIS_PREFIX = "triviaquest:session:"


class SessionStore(Protocol):
    async def load(self, session_id: str) -> Optional[QuizState]: ...

    async def save(self, session_id: str, state: QuizState) -> None: ...

    async def clear(self, session_id: str) -> None: ...


class RedisSessionStore:
    """One JSON blob per browser session, expiring after ``ttl_seconds``."""

    def __init__(self, redis: Redis, ttl_seconds: int = 6 * 60 * 60) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    def k_quiz(self, session_id: str) -> str:
        return f"{REDIS_PREFIX}{session_id}:quiz"

    async def load(self, session_id: str) -> Optional[QuizState]:
        raw = await self.redis.get(self.k_quiz(session_id))
        if raw is None:
            return None
        try:
            return load_state(raw)
        except StoredStateInvalid as e:
            logger.warning("Discarding stored quiz for session %s: %s", session_id[:8], e)
            await self.clear(session_id)
            return None

    async def save(self, session_id: str, state: QuizState) -> None:
        await self.redis.set(self.k_quiz(session_id), dump_state(state), ex=self.ttl_seconds)

    async def clear(self, session_id: str) -> None:
        await self.redis.delete(self.k_quiz(session_id))


class InMemorySessionStore:
    """Process-local store for development and tests. Blobs still go through the schema."""

    def __init__(self) -> None:
        self._blobs: Dict[str, str] = {}

    async def load(self, session_id: str) -> Optional[QuizState]:
        raw = self._blobs.get(session_id)
        if raw is None:
            return None
        try:
            return load_state(raw)
        except StoredStateInvalid as e:
            logger.warning("Discarding stored quiz for session %s: %s", session_id[:8], e)
            self._blobs.pop(session_id, None)
            return None

    async def save(self, session_id: str, state: QuizState) -> None:
        self._blobs[session_id] = dump_state(state)

    async def clear(self, session_id: str) -> None:
        self._blobs.pop(session_id, None)

    def put_raw(self, session_id: str, blob: str) -> None:
        """Seed a raw blob, e.g. one carried over from the browser."""
        self._blobs[session_id] = blob
