"""
RateLimit permit plugin.

Delays Pods from being bound while too many comparable Pods already hold a
slot. Comparable Pods are selected by the query annotation and the ceiling
comes from the limit annotation, both on the Pod being scheduled.
"""

import time
from typing import Any, Callable, Dict, Optional, Tuple
from datetime import datetime

from opentelemetry import trace
from pydantic import BaseModel, Field, ValidationError

from shared.errors import PluginError, RateLimitException
from shared.logging import get_logger, set_pod_context
from shared.metrics import MetricsCollector

from ..framework import CycleContext, FrameworkHandle, Status, Verdict
from ..models import Pod
from ..store.base import PodStore
from .annotations import DEFAULT_PREFIX, AnnotationKeys, read_annotations
from .marker import AdmissionMarker, utcnow
from .occupancy import OccupancyCounter

# Name the plugin is registered under.
NAME = "RateLimit"


class RateLimitArgs(BaseModel):
    """Plugin arguments."""
    retry_delay_seconds: float = Field(default=15.0, ge=0, description="Delay before the Pod is evaluated again")
    annotation_prefix: str = Field(default=DEFAULT_PREFIX, min_length=1, description="Prefix of the gate annotations")


class RateLimitPlugin:
    """Permit plugin enforcing a per-query concurrency limit."""

    def __init__(self, pod_store: PodStore, args: Optional[RateLimitArgs] = None,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.args = args or RateLimitArgs()
        self.keys = AnnotationKeys.from_prefix(self.args.annotation_prefix)
        self.counter = OccupancyCounter(pod_store, self.keys)
        self.marker = AdmissionMarker(pod_store, self.keys, clock=clock)
        self.metrics = metrics
        self.logger = get_logger("ratelimit.plugin")
        self.tracer = trace.get_tracer(__name__)

    def name(self) -> str:
        return NAME

    async def permit(self, ctx: CycleContext, pod: Pod, node_name: str) -> Tuple[Status, float]:
        """Admit, delay or fail the binding of ``pod`` to ``node_name``.

        Every outcome comes with the same retry delay; retrying is left to
        the scheduler.
        """
        start_time = time.time()
        set_pod_context(pod.key, node_name)

        with self.tracer.start_as_current_span("ratelimit.permit") as span:
            span.set_attribute("pod", pod.key)
            span.set_attribute("node", node_name)
            status = await self._evaluate(ctx, pod)
            span.set_attribute("verdict", status.verdict.value)

        if self.metrics is not None:
            self.metrics.record_permit(status.verdict.value, time.time() - start_time)

        return status, self.args.retry_delay_seconds

    async def _evaluate(self, ctx: CycleContext, pod: Pod) -> Status:
        try:
            query, limit = read_annotations(pod, self.keys)
        except RateLimitException as e:
            return self._error(pod, e)

        try:
            running = await self.counter.count(query, exclude=pod.key, ctx=ctx)
        except Exception as e:
            return self._error(pod, e)

        count = len(running) + 1

        if count > limit:
            self.logger.info("Rate limit triggered", pod=pod.key, query=query, count=count, limit=limit)
            return Status(
                Verdict.WAIT,
                f"rate limiting has been triggered, query {query} returns {count} running Pods"
            )

        try:
            await self.marker.mark(pod, ctx)
        except Exception as e:
            return self._error(pod, e)

        self.logger.info("Pod admitted", pod=pod.key, query=query, count=count, limit=limit)
        return Status(Verdict.ADMIT)

    def _error(self, pod: Pod, error: Exception) -> Status:
        code = error.code if isinstance(error, RateLimitException) else type(error).__name__
        self.logger.warning("Permit failed", pod=pod.key, code=code, error=str(error))
        if self.metrics is not None:
            self.metrics.record_error(code)
        return Status(Verdict.ERROR, str(error))


def new(args: Optional[Dict[str, Any]], handle: FrameworkHandle) -> RateLimitPlugin:
    """Build the plugin from its arguments and the framework handle."""
    try:
        plugin_args = RateLimitArgs.model_validate(args or {})
    except ValidationError as e:
        raise PluginError(f"invalid {NAME} plugin arguments: {e}", {"plugin": NAME}) from e
    return RateLimitPlugin(handle.pod_store, plugin_args, metrics=handle.metrics)
