"""
Rate limit service: hosts the permit plugins behind an HTTP API.
"""

from typing import Dict, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import PluginError

from . import plugin as ratelimit
from .framework import CycleContext, FrameworkHandle, PermitPlugin, PluginRegistry
from .models import PermitRequest, PermitResponse
from .store import PodStore, build_pod_store


def build_registry() -> PluginRegistry:
    """Registry with every permit plugin this service ships."""
    registry = PluginRegistry()
    registry.register(ratelimit.NAME, ratelimit.new)
    return registry


class RateLimitService(BaseService):
    """Rate limit service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 pod_store: Optional[PodStore] = None,
                 registry: Optional[PluginRegistry] = None):
        super().__init__("ratelimit", 8013, config=config)

        self.pod_store = pod_store or build_pod_store(self.config, metrics=self.metrics)
        self.registry = registry or build_registry()
        self.handle = FrameworkHandle(pod_store=self.pod_store, metrics=self.metrics)
        self.plugins: Dict[str, PermitPlugin] = {
            name: self.registry.create(name, self.handle, self._plugin_args(name))
            for name in self.registry.names()
        }

        self._setup_ratelimit_routes()

    def _plugin_args(self, name: str) -> Dict[str, object]:
        if name == ratelimit.NAME:
            return {
                "retry_delay_seconds": self.config.retry_delay_seconds,
                "annotation_prefix": self.config.annotation_prefix,
            }
        return {}

    def _setup_ratelimit_routes(self):
        """Set up rate-limit-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "ratelimit",
                "message": "Scheduler Rate Limit Service",
                "version": "1.0.0",
                "plugins": sorted(self.plugins),
                "store_backend": self.config.store_backend,
            }

        @self.app.post("/permit", response_model=PermitResponse)
        async def permit(request: PermitRequest):
            """Run a permit plugin for a Pod about to be bound to a node."""
            plugin = self.get_plugin(request.plugin)
            ctx = CycleContext.with_timeout(self.config.cycle_timeout_seconds)

            status, retry_after = await plugin.permit(ctx, request.pod, request.node_name)

            return PermitResponse(
                plugin=plugin.name(),
                verdict=status.verdict.value,
                message=status.message,
                retry_after_seconds=retry_after,
            )

    def get_plugin(self, name: str) -> PermitPlugin:
        plugin = self.plugins.get(name)
        if plugin is None:
            raise PluginError(f"plugin {name!r} is not registered", {"plugin": name})
        return plugin

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"pod_store": await self.pod_store.check_health()}

    async def stop(self):
        """Release the Pod store."""
        await self.pod_store.close()
        self.logger.info("Rate limit service stopped")


def create_app():
    """Create rate limit service application."""
    service = RateLimitService()
    return service.app


if __name__ == "__main__":
    service = RateLimitService()
    service.run()
