"""Tests for BackendClient."""

from __future__ import annotations

import aiohttp
import pytest
from aioresponses import aioresponses

from stepwise.core.errors import ApiError, SessionExpiredError, TransportError
from stepwise.transport.http import BackendClient, BackendClientConfig

BASE = "http://backend.test/api"


@pytest.fixture
async def client():
    async with BackendClient(BackendClientConfig(base_url=BASE + "/", token="tok-1")) as c:
        yield c


def sent_headers(mocked, method: str, url: str) -> dict:
    for (sent_method, sent_url), calls in mocked.requests.items():
        if sent_method == method and str(sent_url) == url:
            return calls[-1].kwargs["headers"]
    raise AssertionError(f"no {method} request to {url}")


class TestBackendClientEndpoints:
    """Tests for endpoint paths and response handling."""

    @pytest.mark.asyncio
    async def test_list_node_descriptors(self, client, descriptor_factory):
        with aioresponses() as m:
            m.get(f"{BASE}/generated-nodes", payload=[descriptor_factory("a")])

            descriptors = await client.list_node_descriptors()

            assert descriptors[0]["id"] == "a"
            headers = sent_headers(m, "GET", f"{BASE}/generated-nodes")
            assert headers["Authorization"] == "Bearer tok-1"
            assert headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_non_list_descriptor_payload_returned_as_is(self, client):
        with aioresponses() as m:
            m.get(f"{BASE}/generated-nodes", payload={"error": "proxy page"})

            assert await client.list_node_descriptors() == {"error": "proxy page"}

    @pytest.mark.asyncio
    async def test_get_node_descriptor(self, client, descriptor_factory):
        with aioresponses() as m:
            m.get(f"{BASE}/generated-nodes/geo", payload=descriptor_factory("geo"))

            descriptor = await client.get_node_descriptor("geo")

        assert descriptor["id"] == "geo"

    @pytest.mark.asyncio
    async def test_execution_endpoints(self, client, execution_factory):
        with aioresponses() as m:
            m.get(f"{BASE}/executions/exec-1", payload=execution_factory("running"))
            m.get(f"{BASE}/executions/exec-1/logs", payload=[{"message": "hi"}])
            m.get(f"{BASE}/executions/exec-1/nodes/n1/logs", payload=[{"message": "node"}])
            m.post(f"{BASE}/executions/exec-1/cancel", payload={"message": "Execution cancelled"})

            assert (await client.get_execution("exec-1"))["status"] == "running"
            assert await client.get_execution_logs("exec-1") == [{"message": "hi"}]
            assert await client.get_node_logs("exec-1", "n1") == [{"message": "node"}]
            assert await client.cancel_execution("exec-1") == {"message": "Execution cancelled"}

    @pytest.mark.asyncio
    async def test_set_token_applies_to_next_request(self, client):
        with aioresponses() as m:
            m.get(f"{BASE}/generated-nodes", payload=[])

            client.set_token(None)
            await client.list_node_descriptors()

            assert "Authorization" not in sent_headers(m, "GET", f"{BASE}/generated-nodes")


class TestBackendClientErrors:
    """Tests for error mapping."""

    @pytest.mark.asyncio
    async def test_api_error_message_from_body(self, client):
        with aioresponses() as m:
            m.post(
                f"{BASE}/executions/exec-1/cancel",
                status=400,
                payload={"error": "Execution cannot be cancelled"},
            )

            with pytest.raises(ApiError) as excinfo:
                await client.cancel_execution("exec-1")

        assert str(excinfo.value) == "Execution cannot be cancelled"
        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_api_error_without_json_body(self, client):
        with aioresponses() as m:
            m.get(f"{BASE}/executions/x", status=500, body="Internal Server Error")

            with pytest.raises(ApiError) as excinfo:
                await client.get_execution("x")

        assert str(excinfo.value) == "Backend returned 500"
        assert excinfo.value.body == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_401_runs_hook_then_raises(self):
        expired = []

        async def on_expired():
            expired.append(True)

        config = BackendClientConfig(base_url=BASE, token="old")
        async with BackendClient(config, on_session_expired=on_expired) as client:
            with aioresponses() as m:
                m.get(f"{BASE}/generated-nodes", status=401, payload={"error": "Invalid token"})

                with pytest.raises(SessionExpiredError) as excinfo:
                    await client.list_node_descriptors()

        assert expired == [True]
        assert isinstance(excinfo.value, ApiError)
        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_sync_hook_supported(self):
        expired = []
        config = BackendClientConfig(base_url=BASE)
        async with BackendClient(config, on_session_expired=lambda: expired.append(1)) as client:
            with aioresponses() as m:
                m.get(f"{BASE}/executions/e", status=401)

                with pytest.raises(SessionExpiredError):
                    await client.get_execution("e")

        assert expired == [1]

    @pytest.mark.asyncio
    async def test_connection_error_becomes_transport_error(self, client):
        with aioresponses() as m:
            m.get(f"{BASE}/generated-nodes", exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(TransportError):
                await client.list_node_descriptors()

    @pytest.mark.asyncio
    async def test_timeout_becomes_transport_error(self, client):
        with aioresponses() as m:
            m.get(f"{BASE}/executions/e", exception=TimeoutError())

            with pytest.raises(TransportError):
                await client.get_execution("e")
