"""
Scheduling framework seam for permit plugins.

The host scheduler calls ``permit`` once per scheduling attempt and
interprets the returned verdict and retry delay. Plugins are registered by
name on a ``PluginRegistry`` and built from a ``FrameworkHandle``.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar

from shared.errors import ContextCanceledError, DeadlineExceededError, PluginError
from shared.metrics import MetricsCollector

from .models import Pod
from .store.base import PodStore

T = TypeVar("T")


class Verdict(str, Enum):
    """Permit verdicts returned to the scheduler."""
    ADMIT = "admit"
    WAIT = "wait"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    """Outcome of a permit evaluation."""
    verdict: Verdict
    message: str = ""

    def is_admitted(self) -> bool:
        return self.verdict == Verdict.ADMIT


class CycleContext:
    """Caller-owned deadline and cancel signal for one scheduling attempt.

    Plugins route their store calls through ``run`` so that a scheduling
    attempt abandoned by the host stops waiting on the network. Plugins
    never set deadlines or cancel themselves.
    """

    def __init__(self, deadline: Optional[float] = None):
        # Absolute time.monotonic() value, or None for no deadline.
        self.deadline = deadline
        self._canceled = asyncio.Event()

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "CycleContext":
        if seconds is None:
            return cls()
        return cls(deadline=time.monotonic() + seconds)

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def cancel(self):
        """Abort the attempt; calls in flight and later calls raise."""
        self._canceled.set()

    def canceled(self) -> bool:
        return self._canceled.is_set()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await a store call until it finishes, the deadline passes or the
        context is canceled.

        Raises:
            ContextCanceledError: ``cancel`` was called before or during the call.
            DeadlineExceededError: the deadline passed before or during the call.
        """
        remaining = self.remaining()
        if self.canceled() or (remaining is not None and remaining <= 0):
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            if self.canceled():
                raise ContextCanceledError()
            raise DeadlineExceededError()

        call = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._canceled.wait())
        try:
            done, _ = await asyncio.wait(
                {call, waiter}, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            call.cancel()
            raise
        finally:
            waiter.cancel()

        if call in done:
            return call.result()

        call.cancel()
        await asyncio.gather(call, return_exceptions=True)
        if self.canceled():
            raise ContextCanceledError()
        raise DeadlineExceededError()


class PermitPlugin(Protocol):
    """Contract a permit plugin satisfies."""

    def name(self) -> str:
        ...

    async def permit(self, ctx: CycleContext, pod: Pod, node_name: str) -> Tuple[Status, float]:
        """Decide whether ``pod`` may be bound to ``node_name``.

        Returns the status and the delay, in seconds, after which the host
        should evaluate the Pod again.
        """
        ...


@dataclass
class FrameworkHandle:
    """What the framework hands to plugin factories."""
    pod_store: PodStore
    metrics: Optional[MetricsCollector] = None


PluginFactory = Callable[[Optional[Dict[str, Any]], FrameworkHandle], PermitPlugin]


class PluginRegistry:
    """Name -> factory registry for permit plugins."""

    def __init__(self):
        self._factories: Dict[str, PluginFactory] = {}

    def register(self, name: str, factory: PluginFactory) -> None:
        if name in self._factories:
            raise PluginError(f"plugin {name!r} is already registered", {"plugin": name})
        self._factories[name] = factory

    def names(self) -> List[str]:
        return sorted(self._factories)

    def create(self, name: str, handle: FrameworkHandle,
               args: Optional[Dict[str, Any]] = None) -> PermitPlugin:
        try:
            factory = self._factories[name]
        except KeyError:
            raise PluginError(f"plugin {name!r} is not registered", {"plugin": name}) from None
        return factory(args, handle)
