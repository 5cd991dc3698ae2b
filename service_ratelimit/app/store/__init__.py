"""
Pod store clients.
"""

from typing import Optional

from shared.config import BaseConfig
from shared.errors import StoreError
from shared.metrics import MetricsCollector

from .base import PodStore
from .kubernetes import KubernetesPodStore
from .memory import InMemoryPodStore

__all__ = ["PodStore", "KubernetesPodStore", "InMemoryPodStore", "build_pod_store"]


def build_pod_store(config: BaseConfig, metrics: Optional[MetricsCollector] = None) -> PodStore:
    """Build the Pod store selected by ``config.store_backend``."""
    backend = config.store_backend.lower()
    if backend == "kubernetes":
        return KubernetesPodStore.from_config(config, metrics=metrics)
    if backend == "memory":
        return InMemoryPodStore(metrics=metrics)
    raise StoreError(f"unknown store backend: {config.store_backend}", {"backend": config.store_backend})
