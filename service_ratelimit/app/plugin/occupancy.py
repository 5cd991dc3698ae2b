"""
Counting the Pods that currently hold a slot for a query.
"""

from typing import List, Optional

from shared.logging import get_logger

from ..framework import CycleContext
from ..models import INACTIVE_PHASES, Pod
from ..store.base import PodStore
from .annotations import DEFAULT_KEYS, AnnotationKeys, is_admitted


class OccupancyCounter:
    """Lists Pods matching a query and keeps those occupying a slot.

    Phase alone does not tell whether a Pod holds a slot: a Pending Pod may
    already have been admitted by an earlier permit. The scheduled
    annotation is what marks a Pod as occupying, so Pods that match the
    query without it are not counted.
    """

    def __init__(self, pod_store: PodStore, keys: AnnotationKeys = DEFAULT_KEYS):
        self.pod_store = pod_store
        self.keys = keys
        self.logger = get_logger("ratelimit.occupancy")

    async def count(self, query: str, exclude: Optional[str] = None,
                    ctx: Optional[CycleContext] = None) -> List[Pod]:
        """Return the Pods matching ``query`` that occupy a slot.

        ``exclude`` is a namespace/name key left out of the result, used so
        the candidate Pod is never counted against itself. Store errors are
        raised unchanged.
        """
        ctx = ctx or CycleContext()
        pods = await ctx.run(self.pod_store.list_pods(query))

        running: List[Pod] = []
        for pod in pods:
            if pod.phase in INACTIVE_PHASES:
                continue

            if not is_admitted(pod, self.keys):
                continue

            if exclude is not None and pod.key == exclude:
                continue

            running.append(pod)

        self.logger.debug("Occupancy counted", query=query, matched=len(pods), running=len(running))
        return running
