from __future__ import annotations

import base64
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from redis.asyncio import Redis
from redis.exceptions import RedisError

from postmonitor.config import Settings


logger = logging.getLogger("monitor-session-store")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Keeps cookies produced by a fresh credential login for later runs.

    Redis when reachable, process memory otherwise. Payloads are Fernet
    encrypted when an encryption key is configured.
    """

    def __init__(self, settings: Settings, redis: Optional[Redis] = None) -> None:
        self._redis = redis if redis is not None else Redis.from_url(settings.monitor_redis_url, decode_responses=True)
        self._redis_available: Optional[bool] = None
        self._memory_sessions: dict[str, dict[str, Any]] = {}
        self._fernet = self._build_fernet(settings.monitor_session_encryption_key)

    @staticmethod
    def _build_fernet(secret: str) -> Optional[Fernet]:
        if not secret:
            return None
        # Accept either raw secret string or already urlsafe-base64 32-byte key.
        if len(secret) == 44 and all(c.isalnum() or c in "-_=" for c in secret):
            key = secret.encode("utf-8")
        else:
            digest = hashlib.sha256(secret.encode("utf-8")).digest()
            key = base64.urlsafe_b64encode(digest)
        return Fernet(key)

    async def _use_redis(self) -> bool:
        if self._redis_available is not None:
            return self._redis_available
        try:
            await self._redis.ping()
            self._redis_available = True
        except (RedisError, OSError) as exc:
            logger.info("Redis unavailable (%s), keeping sessions in memory", exc)
            self._redis_available = False
        return self._redis_available

    @staticmethod
    def _key(account: str) -> str:
        digest = hashlib.sha256(account.strip().lower().encode("utf-8")).hexdigest()[:16]
        return f"monitor:session:{digest}"

    def _serialize(self, payload: Dict[str, Any]) -> str:
        raw = json.dumps(payload, ensure_ascii=False)
        if not self._fernet:
            return raw
        token = self._fernet.encrypt(raw.encode("utf-8")).decode("utf-8")
        return f"enc:{token}"

    def _deserialize(self, raw: str) -> Optional[Dict[str, Any]]:
        try:
            if raw.startswith("enc:"):
                if not self._fernet:
                    return None
                decrypted = self._fernet.decrypt(raw[4:].encode("utf-8")).decode("utf-8")
                parsed = json.loads(decrypted)
            else:
                parsed = json.loads(raw)
        except (InvalidToken, ValueError) as exc:
            logger.warning("Stored session unreadable: %s", exc.__class__.__name__)
            return None
        return parsed if isinstance(parsed, dict) else None

    async def save_cookies(self, account: str, cookies: List[Dict[str, Any]], *, source: str = "credential_login") -> None:
        payload = {
            "cookies": cookies,
            "source": source,
            "updated_at": _utc_now().isoformat(),
        }
        key = self._key(account)
        if await self._use_redis():
            await self._redis.set(key, self._serialize(payload))
        else:
            self._memory_sessions[key] = payload
        logger.info("Stored %d session cookies", len(cookies))

    async def load_cookies(self, account: str) -> Optional[List[Dict[str, Any]]]:
        key = self._key(account)
        payload: Optional[Dict[str, Any]]
        if await self._use_redis():
            raw = await self._redis.get(key)
            payload = self._deserialize(raw) if raw else None
        else:
            payload = self._memory_sessions.get(key)
        if not payload:
            return None
        cookies = payload.get("cookies")
        if not isinstance(cookies, list) or not cookies:
            return None
        return cookies

    async def delete(self, account: str) -> bool:
        key = self._key(account)
        if await self._use_redis():
            return bool(await self._redis.delete(key))
        return self._memory_sessions.pop(key, None) is not None
