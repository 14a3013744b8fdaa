"""
core/deadline.py -- Per-request deadlines.

Every request gets one Deadline (see api/dependencies.py). It is passed down
into AuthService and ResourceGateway, which call check() between blocking
steps, and run_with_deadline() bounds the thread the work runs on. When the
deadline passes the request answers 504 instead of waiting on a slow database
or filesystem.

A thread cannot be killed from the outside. A timed-out worker finishes its
current step in the background and then stops at the next check().
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any, TypeVar

from core.errors import DeadlineExceededError

T = TypeVar("T")


class Deadline:
    """A point on the monotonic clock after which work should stop."""

    def __init__(self, expires_at: float) -> None:
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self) -> None:
        """Raise DeadlineExceededError if the deadline has passed."""
        if self.expired:
            raise DeadlineExceededError()


def check_deadline(deadline: Deadline | None) -> None:
    if deadline is not None:
        deadline.check()


async def run_with_deadline(deadline: Deadline, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run a blocking callable on a worker thread, bounded by deadline.

    Raises DeadlineExceededError when the deadline passes first. Exceptions
    raised by func propagate unchanged.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs),
            timeout=deadline.remaining(),
        )
    except asyncio.TimeoutError as exc:
        raise DeadlineExceededError() from exc
