import asyncio
from typing import Awaitable, Tuple, TypeVar, Union

A = TypeVar("A")
B = TypeVar("B")


async def join_pair(
    first: Awaitable[A], second: Awaitable[B]
) -> Tuple[Union[A, BaseException], Union[B, BaseException]]:
    """Wait until both awaitables complete and return their outcomes in input order.

    An awaitable that raised contributes its exception instead of a value; neither
    side is cancelled when the other fails.
    """
    first_outcome, second_outcome = await asyncio.gather(first, second, return_exceptions=True)
    return first_outcome, second_outcome
