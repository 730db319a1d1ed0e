"""
Exit code fixture: handlers with every supported result shape.
"""
import asyncio
from collections.abc import Awaitable

from sigil import command


async def _payload(code):
    await asyncio.sleep(0)
    return code


@command
def zero():
    pass


@command
def two() -> int:
    return 2


@command
async def three() -> int:
    await asyncio.sleep(0)
    return 3


@command
def deferred() -> Awaitable[int]:
    return _payload(4)


@command
async def quiet() -> None:
    await asyncio.sleep(0)


@command
def fail():
    raise RuntimeError("boom")
