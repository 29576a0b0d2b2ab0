"""
Request-scoped review context.

A ReviewContext is created by the HTTP gateway for every admission review and
passed explicitly to webhooks, chains, mutators, validators and tracers. It
carries:
- the cancellation signal (deadline, explicit cancel, dropped connection)
- the structured log values accumulated for the request
- the current tracing span, if any

Contexts are immutable; the with_* helpers derive a new context that shares
the cancellation state of its parent.
"""

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class ReviewContext:
    deadline: float | None = None
    log_values: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    span: Any = None
    disconnected: Callable[[], bool] | None = None
    _cancelled: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @classmethod
    def background(cls) -> "ReviewContext":
        """Context with no deadline, never cancelled unless cancel() is called."""
        return cls()

    def with_timeout(self, seconds: float | None) -> "ReviewContext":
        """Derive a context whose deadline is at most `seconds` from now."""
        if seconds is None:
            return self
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return replace(self, deadline=deadline)

    def with_log_values(self, **values: Any) -> "ReviewContext":
        """Derive a context with extra structured log values."""
        merged = dict(self.log_values)
        merged.update(values)
        return replace(self, log_values=MappingProxyType(merged))

    def with_span(self, span: Any) -> "ReviewContext":
        return replace(self, span=span)

    def with_disconnect_probe(self, probe: Callable[[], bool]) -> "ReviewContext":
        return replace(self, disconnected=probe)

    def cancel(self) -> None:
        """Cancel this context and every context sharing its cancellation signal."""
        self._cancelled.set()

    def done(self) -> bool:
        """True when the review should stop: cancelled, past deadline or client gone."""
        if self._cancelled.is_set():
            return True
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return True
        return self.disconnected is not None and self.disconnected()

    def reason(self) -> str:
        """Why the context is done, empty if it isn't."""
        if self._cancelled.is_set():
            return "context cancelled"
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return "context deadline exceeded"
        if self.disconnected is not None and self.disconnected():
            return "client disconnected"
        return ""
