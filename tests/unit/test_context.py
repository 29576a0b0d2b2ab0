"""
Unit tests for the request-scoped review context.
"""

import time

from kubewebhook.context import ReviewContext


class TestReviewContext:
    def test_background_is_never_done(self):
        ctx = ReviewContext.background()

        assert ctx.done() is False
        assert ctx.reason() == ""

    def test_cancel(self):
        ctx = ReviewContext.background()
        ctx.cancel()

        assert ctx.done() is True
        assert ctx.reason() == "context cancelled"

    def test_derived_contexts_share_cancellation(self):
        parent = ReviewContext.background()
        child = parent.with_log_values(a=1).with_timeout(60)

        parent.cancel()

        assert child.done() is True

    def test_expired_deadline(self):
        ctx = ReviewContext.background().with_timeout(0)

        assert ctx.done() is True
        assert ctx.reason() == "context deadline exceeded"

    def test_timeout_never_extends_parent_deadline(self):
        parent = ReviewContext.background().with_timeout(1)
        child = parent.with_timeout(3600)

        assert child.deadline == parent.deadline
        assert child.deadline <= time.monotonic() + 1

    def test_no_timeout_keeps_context(self):
        ctx = ReviewContext.background()
        assert ctx.with_timeout(None) is ctx

    def test_disconnect_probe(self):
        connected = True
        ctx = ReviewContext.background().with_disconnect_probe(lambda: not connected)
        assert ctx.done() is False

        connected = False

        assert ctx.done() is True
        assert ctx.reason() == "client disconnected"

    def test_log_values_merge_without_touching_parent(self):
        parent = ReviewContext.background().with_log_values(a=1, b=2)
        child = parent.with_log_values(b=3, c=4)

        assert dict(parent.log_values) == {"a": 1, "b": 2}
        assert dict(child.log_values) == {"a": 1, "b": 3, "c": 4}

    def test_with_span(self):
        span = object()
        ctx = ReviewContext.background().with_span(span)
        assert ctx.span is span
