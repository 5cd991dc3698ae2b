"""
Pod store contract used by the rate limit gate.
"""

from typing import List, Protocol

from ..models import Pod


class PodStore(Protocol):
    """Read and patch Pods in the cluster.

    Implementations raise ``shared.errors.StoreError`` subclasses and never
    retry on their own.
    """

    async def list_pods(self, label_selector: str) -> List[Pod]:
        """List Pods in all namespaces matching ``label_selector``."""
        ...

    async def patch_pod(self, namespace: str, name: str, patch: bytes) -> Pod:
        """Apply a JSON merge patch to one Pod and return the updated Pod."""
        ...

    async def close(self) -> None:
        ...

    async def check_health(self) -> str:
        """Return a short status string; raise when the store is unusable."""
        ...
