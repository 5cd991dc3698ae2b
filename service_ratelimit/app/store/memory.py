"""
In-memory Pod store for local development and tests.
"""

import json
from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError

from shared.errors import StoreRequestError
from shared.logging import get_logger
from shared.metrics import MetricsCollector, count_calls

from ..mergepatch import apply_merge_patch
from ..models import Pod
from ..selectors import parse_selector


class InMemoryPodStore:
    """Pod store holding Pods in process memory.

    Label selectors are evaluated client-side and merge patches are applied
    the way the API server applies them. Each successful patch bumps the
    Pod's ``resourceVersion``.
    """

    def __init__(self, pods: Optional[Iterable[Pod]] = None, metrics: Optional[MetricsCollector] = None):
        self.metrics = metrics
        self.logger = get_logger("ratelimit.memory_store")
        self._pods: "OrderedDict[Tuple[str, str], Pod]" = OrderedDict()
        self._version = 0
        self.list_calls = 0
        self.patch_calls = 0
        for pod in pods or []:
            self.add(pod)

    def add(self, pod: Pod) -> Pod:
        """Insert or replace a Pod."""
        self._version += 1
        stored = pod.model_copy(deep=True)
        stored.metadata.resource_version = str(self._version)
        self._pods[(pod.metadata.namespace, pod.metadata.name)] = stored
        return stored.model_copy(deep=True)

    def get(self, namespace: str, name: str) -> Optional[Pod]:
        pod = self._pods.get((namespace, name))
        return pod.model_copy(deep=True) if pod is not None else None

    def remove(self, namespace: str, name: str) -> bool:
        return self._pods.pop((namespace, name), None) is not None

    @count_calls("store_requests_total", operation="list")
    async def list_pods(self, label_selector: str) -> List[Pod]:
        """List Pods in all namespaces matching the label selector."""
        self.list_calls += 1
        selector = parse_selector(label_selector)
        return [
            pod.model_copy(deep=True)
            for pod in self._pods.values()
            if selector.matches(pod.labels)
        ]

    @count_calls("store_requests_total", operation="patch")
    async def patch_pod(self, namespace: str, name: str, patch: bytes) -> Pod:
        """Apply a JSON merge patch to a Pod.

        A ``metadata.resourceVersion`` in the patch must match the stored
        Pod's, otherwise the patch is rejected with 409.
        """
        self.patch_calls += 1
        current = self._pods.get((namespace, name))
        if current is None:
            raise StoreRequestError(404, f'pods "{name}" not found')

        try:
            body = json.loads(patch)
        except ValueError as e:
            raise StoreRequestError(422, f"invalid patch: {e}")

        expected = (body.get("metadata") or {}).get("resourceVersion") if isinstance(body, dict) else None
        if expected is not None and expected != current.metadata.resource_version:
            raise StoreRequestError(
                409,
                f'Operation cannot be fulfilled on pods "{name}": the object has been modified; '
                "please apply your changes to the latest version and try again",
            )

        try:
            document = apply_merge_patch(current.to_document(), body)
            updated = Pod.model_validate(document)
        except (ValueError, ValidationError) as e:
            raise StoreRequestError(422, f"invalid patch: {e}")

        self.logger.debug("Pod patched", pod=f"{namespace}/{name}")
        return self.add(updated)

    async def check_health(self) -> str:
        return "ok"

    async def close(self):
        """Nothing to release."""
