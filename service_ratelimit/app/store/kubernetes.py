"""
Kubernetes API server Pod store.
"""

import ssl
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import ValidationError

from shared.config import BaseConfig
from shared.errors import StoreRequestError, StoreUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector, count_calls

from ..models import Pod, PodList

MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"


class KubernetesPodStore:
    """Pod store backed by the Kubernetes REST API."""

    def __init__(self, api_url: str, token: Optional[str] = None,
                 verify: Union[bool, str] = True, timeout: float = 10.0,
                 metrics: Optional[MetricsCollector] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.verify = verify
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("ratelimit.kubernetes_store")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: BaseConfig, metrics: Optional[MetricsCollector] = None) -> "KubernetesPodStore":
        """Build a store from configuration, falling back to the service account token."""
        token = config.kube_token
        if token is None:
            token_path = Path(config.kube_token_file)
            if token_path.is_file():
                token = token_path.read_text().strip()

        verify: Union[bool, str] = config.kube_verify_tls
        if verify and config.kube_ca_file and Path(config.kube_ca_file).is_file():
            verify = config.kube_ca_file

        return cls(
            config.kube_api_url,
            token=token,
            verify=verify,
            timeout=config.kube_request_timeout_seconds,
            metrics=metrics,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            verify = self.verify
            if isinstance(verify, str):
                verify = ssl.create_default_context(cafile=verify)
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers=headers,
                verify=verify,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            message = _error_text(e)
            self.logger.error("Kubernetes API unreachable", method=method, path=path, error=message)
            raise StoreUnavailableError(message, details={"method": method, "path": path})

        if response.is_error:
            message = _status_message(response)
            self.logger.warning(
                "Kubernetes API rejected request",
                method=method,
                path=path,
                status_code=response.status_code,
                message=message
            )
            raise StoreRequestError(response.status_code, message, details={"method": method, "path": path})

        try:
            return response.json()
        except ValueError as e:
            raise StoreRequestError(response.status_code, f"invalid JSON response: {e}")

    @count_calls("store_requests_total", operation="list")
    async def list_pods(self, label_selector: str) -> List[Pod]:
        """List Pods in all namespaces matching the label selector."""
        payload = await self._request("GET", "/api/v1/pods", params={"labelSelector": label_selector})
        try:
            return PodList.model_validate(payload).items
        except ValidationError as e:
            raise StoreRequestError(200, f"invalid PodList response: {e}")

    @count_calls("store_requests_total", operation="patch")
    async def patch_pod(self, namespace: str, name: str, patch: bytes) -> Pod:
        """Apply a JSON merge patch to a Pod."""
        payload = await self._request(
            "PATCH",
            f"/api/v1/namespaces/{namespace}/pods/{name}",
            content=patch,
            headers={"Content-Type": MERGE_PATCH_CONTENT_TYPE},
        )
        try:
            return Pod.model_validate(payload)
        except ValidationError as e:
            raise StoreRequestError(200, f"invalid Pod response: {e}")

    async def check_health(self) -> str:
        """Check the API server readiness endpoint."""
        client = self._get_client()
        try:
            response = await client.get("/readyz")
        except httpx.HTTPError as e:
            raise StoreUnavailableError(_error_text(e))
        return "ok" if response.status_code == 200 else f"degraded ({response.status_code})"

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _status_message(response: httpx.Response) -> str:
    """Extract the message of a Kubernetes Status body, or fall back to the HTTP reason."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"{response.status_code} {response.reason_phrase}".strip()


def _error_text(error: httpx.HTTPError) -> str:
    """Transport error text; some httpx timeouts carry an empty message."""
    return str(error) or type(error).__name__
