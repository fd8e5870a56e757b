import logging
from typing import Optional
import redis.asyncio as redis

from ..models.redis_models import UserSessionRedis

logger = logging.getLogger(__name__)

class RedisClient:
    """
    Redis client that owns login session storage.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    @staticmethod
    def _session_key(role: str, user_id: str) -> str:
        return f"sessions:{role}:{user_id}"

    # ===== User Session Management =====

    async def save_user_session(self, session: UserSessionRedis, ttl: int):
        """Stores the session with a TTL. Signing in again replaces the previous session."""
        key = self._session_key(session.role, session.user_id)
        await self._redis.set(key, session.model_dump_json(), ex=ttl)

    async def get_user_session(self, role: str, user_id: str) -> Optional[UserSessionRedis]:
        key = self._session_key(role, user_id)
        session_json = await self._redis.get(key)
        return UserSessionRedis.model_validate_json(session_json) if session_json else None

    async def delete_user_session(self, role: str, user_id: str) -> int:
        """Returns the number of deleted keys (0 when there was no session)."""
        key = self._session_key(role, user_id)
        return await self._redis.delete(key)
