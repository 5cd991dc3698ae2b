"""
Write-once admission marking.
"""

import json
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic_core import PydanticSerializationError

from shared.errors import EncodingError
from shared.logging import get_logger

from ..framework import CycleContext
from ..mergepatch import create_merge_patch
from ..models import Pod
from ..store.base import PodStore
from .annotations import DEFAULT_KEYS, AnnotationKeys, is_admitted


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdmissionMarker:
    """Tags a Pod with the scheduled annotation so it counts as occupying a slot."""

    def __init__(self, pod_store: PodStore, keys: AnnotationKeys = DEFAULT_KEYS,
                 clock: Callable[[], datetime] = utcnow):
        self.pod_store = pod_store
        self.keys = keys
        self.clock = clock
        self.logger = get_logger("ratelimit.marker")

    async def mark(self, pod: Pod, ctx: Optional[CycleContext] = None) -> bool:
        """Mark ``pod`` as admitted.

        Returns False without touching the store when the Pod already carries
        the annotation. Otherwise a merge patch holding only the new
        annotation is sent, and on success ``pod`` is updated in place.

        Raises:
            EncodingError: the Pod could not be serialised or diffed.
            StoreError: the store rejected the patch; not retried here.
        """
        if is_admitted(pod, self.keys):
            return False

        ctx = ctx or CycleContext()
        timestamp = self.clock().isoformat()
        patch = self.build_patch(pod, timestamp)

        await ctx.run(self.pod_store.patch_pod(pod.metadata.namespace, pod.metadata.name, patch))

        pod.metadata.annotations = {**pod.annotations, self.keys.scheduled: timestamp}
        self.logger.info("Pod marked as scheduled", pod=pod.key, scheduled_at=timestamp)
        return True

    def build_patch(self, pod: Pod, timestamp: str) -> bytes:
        """Diff the Pod before and after adding the annotation.

        The Pod's ``resourceVersion``, when known, rides along as a
        precondition: the API server answers 409 if the stored Pod changed
        since this snapshot was read.
        """
        try:
            original = pod.to_document()

            updated = pod.model_copy(deep=True)
            updated.metadata.annotations = {**updated.annotations, self.keys.scheduled: timestamp}
            modified = updated.to_document()

            patch = create_merge_patch(original, modified)
            if pod.metadata.resource_version:
                patch.setdefault("metadata", {})["resourceVersion"] = pod.metadata.resource_version
            return json.dumps(patch, separators=(",", ":")).encode("utf-8")
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise EncodingError(f"unable to build admission patch: {e}", {"pod": pod.key}) from e
