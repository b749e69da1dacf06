import asyncio

import httpx
import pytest

from src.inventory.client import InventoryAPIError, InventoryClient


def _client(handler, sleeps):
    async def _sleep(delay):
        sleeps.append(delay)

    return InventoryClient(
        "http://inventory.test/api/v1",
        transport=httpx.MockTransport(handler),
        sleep=_sleep,
        backoff=0.5,
        retries=3,
    )


def test_get_retries_5xx_with_exponential_backoff():
    calls = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, json={"success": False, "message": "Database error occurred"})
        return httpx.Response(
            200,
            json={"success": True, "data": [], "pagination": {"page": 1, "size": 20, "total": 0, "total_pages": 0}},
        )

    async def run():
        async with _client(handler, sleeps) as client:
            return await client.list_resources(tags="Environment:Production", search=None)

    body = asyncio.run(run())
    assert body["pagination"]["total"] == 0
    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]
    assert calls[0].url.params["tags"] == "Environment:Production"
    assert "search" not in calls[0].url.params


def test_get_retries_transport_errors_then_gives_up():
    calls = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with _client(handler, sleeps) as client:
            await client.get_resource(1)

    with pytest.raises(httpx.ConnectError):
        asyncio.run(run())
    assert len(calls) == 4
    assert sleeps == [0.5, 1.0, 2.0]


def test_get_gives_up_after_retries_with_api_error():
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"success": False, "message": "Database error occurred"})

    async def run():
        async with _client(handler, sleeps) as client:
            await client.resource_stats()

    with pytest.raises(InventoryAPIError) as exc:
        asyncio.run(run())
    assert exc.value.status_code == 503
    assert exc.value.message == "Database error occurred"
    assert len(sleeps) == 3


def test_mutations_are_never_retried():
    calls = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, json={"success": False, "message": "Database error occurred"})

    async def run():
        async with _client(handler, sleeps) as client:
            await client.create_resource({"name": "vm", "type": "Virtual machine"})

    with pytest.raises(InventoryAPIError):
        asyncio.run(run())
    assert len(calls) == 1
    assert calls[0].method == "POST"
    assert sleeps == []


def test_client_errors_are_not_retried_and_unwrap_data():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path.endswith("/resources/1"):
            return httpx.Response(200, json={"success": True, "data": {"id": 1, "name": "vm"}})
        return httpx.Response(404, json={"success": False, "message": "Resource with id 2 not found"})

    async def run():
        async with _client(handler, []) as client:
            found = await client.get_resource(1)
            with pytest.raises(InventoryAPIError) as exc:
                await client.get_resource(2)
            return found, exc.value

    found, error = asyncio.run(run())
    assert found == {"id": 1, "name": "vm"}
    assert error.status_code == 404
    assert error.message == "Resource with id 2 not found"
    assert len(calls) == 2
    assert calls[0].url.path == "/api/v1/resources/1"


def test_non_object_error_body_raises_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json=["bad gateway"])

    async def run():
        async with _client(handler, []) as client:
            await client.delete_resource(1)

    with pytest.raises(InventoryAPIError) as exc:
        asyncio.run(run())
    assert exc.value.status_code == 502
    assert exc.value.message == "Bad Gateway"
