"""Time sources. Services take these as injectable callables."""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)
