from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from postmonitor.config import Settings
from postmonitor.models import RunSummary


logger = logging.getLogger("monitor-run-log")


class RunLog:
    """Append-only record of run summaries, newest first on read."""

    def __init__(self, settings: Settings, redis: Optional[Redis] = None) -> None:
        self._redis = redis if redis is not None else Redis.from_url(settings.monitor_redis_url, decode_responses=True)
        self._key = settings.monitor_run_log_key
        self._max_entries = max(1, settings.monitor_run_log_max_entries)
        self._memory: Deque[str] = deque(maxlen=self._max_entries)
        self._redis_available: Optional[bool] = None

    async def _use_redis(self) -> bool:
        if self._redis_available is not None:
            return self._redis_available
        try:
            await self._redis.ping()
            self._redis_available = True
        except (RedisError, OSError) as exc:
            logger.info("Redis unavailable (%s), keeping run log in memory", exc)
            self._redis_available = False
        return self._redis_available

    async def append(self, summary: RunSummary) -> None:
        # Posts are dropped from the log entry; counts and URLs are enough.
        payload = summary.model_dump(mode="json", exclude={"per_source": {"__all__": {"posts"}}})
        raw = json.dumps(payload, ensure_ascii=False)
        if await self._use_redis():
            await self._redis.lpush(self._key, raw)
            await self._redis.ltrim(self._key, 0, self._max_entries - 1)
            return
        self._memory.appendleft(raw)

    async def recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        limit = max(1, int(limit))
        if await self._use_redis():
            rows = await self._redis.lrange(self._key, 0, limit - 1)
        else:
            rows = list(self._memory)[:limit]
        return [json.loads(row) for row in rows]
