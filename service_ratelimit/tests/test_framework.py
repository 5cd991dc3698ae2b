"""
Unit tests for the scheduling framework seam.
"""

import asyncio
import time

import pytest

from service_ratelimit.app.framework import (
    CycleContext, FrameworkHandle, PluginRegistry, Status, Verdict
)
from service_ratelimit.app.main import build_registry
from service_ratelimit.app.plugin import NAME, RateLimitPlugin
from service_ratelimit.app.store.memory import InMemoryPodStore
from shared.errors import ContextCanceledError, DeadlineExceededError, PluginError


class TestStatus:
    """Test cases for Status."""

    def test_is_admitted(self):
        assert Status(Verdict.ADMIT).is_admitted() is True
        assert Status(Verdict.WAIT, "busy").is_admitted() is False
        assert Status(Verdict.ERROR, "boom").is_admitted() is False


class TestCycleContext:
    """Test cases for CycleContext."""

    @pytest.mark.asyncio
    async def test_run_without_deadline(self):
        """Test that calls without a deadline are awaited as-is."""
        async def call():
            return "done"

        assert await CycleContext().run(call()) == "done"
        assert CycleContext().remaining() is None

    @pytest.mark.asyncio
    async def test_run_within_deadline(self):
        async def call():
            return 42

        assert await CycleContext.with_timeout(5).run(call()) == 42

    @pytest.mark.asyncio
    async def test_expired_deadline_skips_call(self):
        """Test that an already-expired deadline never starts the call."""
        started = []

        async def call():
            started.append(True)

        ctx = CycleContext(deadline=time.monotonic() - 1)

        with pytest.raises(DeadlineExceededError) as exc_info:
            await ctx.run(call())

        assert str(exc_info.value) == "context deadline exceeded"
        assert started == []

    @pytest.mark.asyncio
    async def test_deadline_aborts_slow_call(self):
        """Test that a call outliving the deadline is cancelled."""
        cancelled = []

        async def slow_call():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with pytest.raises(DeadlineExceededError):
            await CycleContext.with_timeout(0.01).run(slow_call())

        assert cancelled == [True]

    def test_with_timeout_none(self):
        assert CycleContext.with_timeout(None).deadline is None

    @pytest.mark.asyncio
    async def test_canceled_context_skips_call(self):
        """Test that a canceled context never starts the call."""
        started = []

        async def call():
            started.append(True)

        ctx = CycleContext.with_timeout(5)
        ctx.cancel()

        with pytest.raises(ContextCanceledError) as exc_info:
            await ctx.run(call())

        assert str(exc_info.value) == "context canceled"
        assert ctx.canceled() is True
        assert started == []

    @pytest.mark.asyncio
    async def test_cancel_aborts_call_in_flight(self):
        """Test that cancel() interrupts a call that is still running."""
        cancelled = []

        async def slow_call():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        ctx = CycleContext()
        asyncio.get_running_loop().call_later(0.01, ctx.cancel)

        with pytest.raises(ContextCanceledError):
            await ctx.run(slow_call())

        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_cancel_wins_over_later_deadline(self):
        ctx = CycleContext.with_timeout(5)
        asyncio.get_running_loop().call_later(0.01, ctx.cancel)

        with pytest.raises(ContextCanceledError):
            await ctx.run(asyncio.sleep(10))

    @pytest.mark.asyncio
    async def test_call_errors_propagate(self):
        async def failing_call():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await CycleContext.with_timeout(5).run(failing_call())


class TestPluginRegistry:
    """Test cases for PluginRegistry."""

    @pytest.fixture
    def handle(self):
        return FrameworkHandle(pod_store=InMemoryPodStore())

    def test_register_and_create(self, handle):
        registry = PluginRegistry()
        registry.register("Custom", lambda args, h: RateLimitPlugin(h.pod_store))

        plugin = registry.create("Custom", handle)

        assert registry.names() == ["Custom"]
        assert isinstance(plugin, RateLimitPlugin)

    def test_duplicate_registration(self):
        registry = PluginRegistry()
        registry.register("Custom", lambda args, h: None)

        with pytest.raises(PluginError):
            registry.register("Custom", lambda args, h: None)

    def test_unknown_plugin(self, handle):
        with pytest.raises(PluginError) as exc_info:
            PluginRegistry().create("Missing", handle)

        assert exc_info.value.details == {"plugin": "Missing"}

    def test_default_registry(self, handle):
        """Test that the service registry ships the RateLimit plugin."""
        registry = build_registry()

        assert registry.names() == [NAME]
        plugin = registry.create(NAME, handle, {"retry_delay_seconds": 1})
        assert plugin.name() == NAME
        assert plugin.args.retry_delay_seconds == 1
