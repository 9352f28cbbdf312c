from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, List, Tuple


Sleep = Callable[[float], Awaitable[None]]


class UserAgentPool:
    def __init__(self, raw_pool: str) -> None:
        # "|" separated; UA strings themselves contain commas.
        parsed = [item.strip() for item in raw_pool.split("|") if item.strip()]
        self._pool: List[str] = parsed or ["Mozilla/5.0"]

    def sample(self) -> str:
        return random.choice(self._pool)

    def __len__(self) -> int:
        return len(self._pool)


class ThinkTime:
    """Randomized pauses between form interactions."""

    def __init__(self, min_ms: int, max_ms: int, sleep: Sleep = asyncio.sleep) -> None:
        self._range = self._normalize_range(min_ms, max_ms)
        self._sleep = sleep

    @staticmethod
    def _normalize_range(lo: int, hi: int) -> Tuple[int, int]:
        lo, hi = int(lo), int(hi)
        if lo <= 0 and hi <= 0:
            return (0, 0)
        if lo <= 0:
            lo = hi
        if hi < lo:
            hi = lo
        return (lo, hi)

    @property
    def range_ms(self) -> Tuple[int, int]:
        return self._range

    async def pause(self) -> None:
        lo, hi = self._range
        if lo <= 0 and hi <= 0:
            return
        await self._sleep(random.uniform(lo, hi) / 1000)
