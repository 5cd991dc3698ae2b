"""
Unit tests for the Kubernetes Pod store.
"""

import json

import httpx
import pytest

from service_ratelimit.app.store.kubernetes import KubernetesPodStore, MERGE_PATCH_CONTENT_TYPE
from service_ratelimit.test_helpers import PodFactory, create_test_config
from shared.errors import StoreRequestError, StoreUnavailableError
from shared.metrics import MetricsCollector


def pod_document(name: str, **kwargs):
    return PodFactory.create_pod(name, **kwargs).to_document()


class TestKubernetesPodStore:
    """Test cases for KubernetesPodStore."""

    @pytest.fixture
    def requests(self):
        """Requests seen by the mock API server."""
        return []

    def _store(self, handler, requests, **kwargs) -> KubernetesPodStore:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return KubernetesPodStore(
            "https://kube.example:6443/",
            token="secret-token",
            transport=httpx.MockTransport(recording_handler),
            **kwargs
        )

    @pytest.mark.asyncio
    async def test_list_pods(self, requests):
        """Test a cluster-wide list with a label selector."""
        def handler(request):
            return httpx.Response(200, json={
                "kind": "PodList",
                "apiVersion": "v1",
                "metadata": {"resourceVersion": "100"},
                "items": [pod_document("a", scheduled="t"), pod_document("b")],
            })

        store = self._store(handler, requests)
        pods = await store.list_pods("app=batch,tier in (db)")
        await store.close()

        assert [pod.metadata.name for pod in pods] == ["a", "b"]
        request = requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/v1/pods"
        assert request.url.params["labelSelector"] == "app=batch,tier in (db)"
        assert request.headers["Authorization"] == "Bearer secret-token"

    @pytest.mark.asyncio
    async def test_patch_pod(self, requests):
        """Test that patches are sent as JSON merge patches."""
        def handler(request):
            return httpx.Response(200, json=pod_document("job-1", namespace="team-a", scheduled="ts"))

        store = self._store(handler, requests)
        patch = b'{"metadata":{"annotations":{"kube-scheduler-ratelimit/scheduled":"ts"}}}'
        pod = await store.patch_pod("team-a", "job-1", patch)
        await store.close()

        request = requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/api/v1/namespaces/team-a/pods/job-1"
        assert request.headers["Content-Type"] == MERGE_PATCH_CONTENT_TYPE
        assert request.content == patch
        assert pod.key == "team-a/job-1"

    @pytest.mark.asyncio
    async def test_transport_error(self, requests):
        """Test that connection failures raise StoreUnavailableError with the transport message."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = self._store(handler, requests)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.list_pods("app=batch")

        assert str(exc_info.value) == "connection refused"
        assert exc_info.value.code == "STORE_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_timeout_without_message(self, requests):
        """Test that an httpx timeout with empty text still yields a message."""
        def handler(request):
            raise httpx.ReadTimeout("", request=request)

        store = self._store(handler, requests)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.list_pods("app=batch")

        assert str(exc_info.value) == "ReadTimeout"

    @pytest.mark.asyncio
    async def test_check_health_timeout_without_message(self, requests):
        def handler(request):
            raise httpx.ConnectTimeout("", request=request)

        store = self._store(handler, requests)

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.check_health()

        assert str(exc_info.value) == "ConnectTimeout"

    @pytest.mark.asyncio
    async def test_status_error_uses_kubernetes_message(self, requests):
        """Test that API errors carry the Status message."""
        def handler(request):
            return httpx.Response(409, json={
                "kind": "Status",
                "status": "Failure",
                "message": "Operation cannot be fulfilled on pods \"job-1\"",
                "reason": "Conflict",
                "code": 409,
            })

        store = self._store(handler, requests)

        with pytest.raises(StoreRequestError) as exc_info:
            await store.patch_pod("default", "job-1", b"{}")

        assert exc_info.value.status_code == 409
        assert str(exc_info.value) == "Operation cannot be fulfilled on pods \"job-1\""

    @pytest.mark.asyncio
    async def test_status_error_without_body(self, requests):
        """Test the fallback message for non-JSON error bodies."""
        store = self._store(lambda request: httpx.Response(503, text="unavailable"), requests)

        with pytest.raises(StoreRequestError) as exc_info:
            await store.list_pods("app=batch")

        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "503 Service Unavailable"

    @pytest.mark.asyncio
    async def test_invalid_list_payload(self, requests):
        store = self._store(lambda request: httpx.Response(200, json={"items": [{"metadata": {}}]}), requests)

        with pytest.raises(StoreRequestError):
            await store.list_pods("app=batch")

    @pytest.mark.asyncio
    async def test_request_metrics(self, requests):
        """Test that store calls are counted by outcome."""
        metrics = MetricsCollector("ratelimit")
        responses = iter([
            httpx.Response(200, json={"items": []}),
            httpx.Response(500, json={"message": "boom"}),
        ])
        store = self._store(lambda request: next(responses), requests, metrics=metrics)

        await store.list_pods("app=batch")
        with pytest.raises(StoreRequestError):
            await store.list_pods("app=batch")

        sample = metrics.registry.get_sample_value
        assert sample("store_requests_total", {"operation": "list", "outcome": "success"}) == 1.0
        assert sample("store_requests_total", {"operation": "list", "outcome": "error"}) == 1.0

    @pytest.mark.asyncio
    async def test_check_health(self, requests):
        store = self._store(lambda request: httpx.Response(200, text="ok"), requests)

        assert await store.check_health() == "ok"
        assert requests[0].url.path == "/readyz"


class TestFromConfig:
    """Test cases for KubernetesPodStore.from_config."""

    def test_explicit_token(self):
        config = create_test_config(store_backend="kubernetes", kube_token="abc",
                                    kube_api_url="https://api.example", kube_ca_file=None)

        store = KubernetesPodStore.from_config(config)

        assert store.token == "abc"
        assert store.api_url == "https://api.example"
        assert store.verify is True

    def test_token_and_ca_files(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("file-token\n")
        ca_file = tmp_path / "ca.crt"
        ca_file.write_text("-----BEGIN CERTIFICATE-----\n")
        config = create_test_config(store_backend="kubernetes", kube_token_file=str(token_file),
                                    kube_ca_file=str(ca_file))

        store = KubernetesPodStore.from_config(config)

        assert store.token == "file-token"
        assert store.verify == str(ca_file)

    def test_missing_token_file(self, tmp_path):
        config = create_test_config(store_backend="kubernetes", kube_token_file=str(tmp_path / "none"),
                                    kube_verify_tls=False)

        store = KubernetesPodStore.from_config(config)

        assert store.token is None
        assert store.verify is False
