from __future__ import annotations

import contextvars
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from config import parse_duration
from services.errors import DeadlineExceededError


@dataclass(frozen=True)
class Deadline:
    expires_at: float  # time.monotonic() reference
    timeout_seconds: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(expires_at=time.monotonic() + max(float(seconds), 0.0), timeout_seconds=float(seconds))

    def remaining(self) -> float:
        return self.expires_at - time.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0


_deadline_var: contextvars.ContextVar[Deadline | None] = contextvars.ContextVar(
    "operation_deadline",
    default=None,
)


def get_deadline() -> Deadline | None:
    return _deadline_var.get()


def check_deadline(component: str | None = None) -> None:
    deadline = _deadline_var.get()
    if deadline is None:
        return
    if deadline.expired():
        raise DeadlineExceededError(
            f"timeout of {deadline.timeout_seconds:g}s elapsed",
            component=component,
        )


@contextmanager
def operation_timeout(timeout: str | float | None) -> Iterator[Deadline | None]:
    """Scope every store call made inside the block to a single deadline.

    ``timeout`` is either seconds or a duration string such as ``"5s"``.
    ``None``, ``""`` and ``"none"`` leave the block unbounded. Nested scopes
    never extend an outer deadline.
    """
    seconds = parse_duration(timeout) if isinstance(timeout, str) or timeout is None else float(timeout)
    outer = _deadline_var.get()
    deadline = Deadline.after(seconds) if seconds is not None else None
    if outer is not None and (deadline is None or outer.expires_at < deadline.expires_at):
        deadline = outer
    token = _deadline_var.set(deadline)
    try:
        yield deadline
    finally:
        _deadline_var.reset(token)
