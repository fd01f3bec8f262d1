"""
Cancellation token and timed execution of blocking collaborator calls.

Provider and LLM adapters are plain blocking clients (requests / openai).
The pipeline runs them in a worker thread so the orchestrator coroutine can
be suspended, time-boxed, and abandoned on cancellation.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from domain.errors import ErrorCode, ResolutionCancelled, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Thread-safe one-way flag shared by a single resolution."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ResolutionCancelled()


async def call_blocking(
    fn: Callable[..., T],
    *args: Any,
    timeout: Optional[float] = None,
    token: Optional[CancellationToken] = None,
    label: str = "call",
) -> T:
    """
    Run `fn(*args)` in a worker thread with an optional timeout.

    A timeout is reported as an UpstreamError(TIMEOUT) for this call only.
    If the token was cancelled while the call was in flight, its result is
    discarded and ResolutionCancelled is raised instead.
    """
    if token is not None:
        token.raise_if_cancelled()
    try:
        if timeout is not None and timeout > 0:
            result = await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
        else:
            result = await asyncio.to_thread(fn, *args)
    except asyncio.TimeoutError:
        if token is not None:
            token.raise_if_cancelled()
        logger.warning("%s timed out after %.1fs", label, timeout)
        raise UpstreamError(ErrorCode.TIMEOUT, f"{label} timed out after {timeout}s")
    except Exception:
        if token is not None:
            token.raise_if_cancelled()
        raise
    if token is not None:
        token.raise_if_cancelled()
    return result
