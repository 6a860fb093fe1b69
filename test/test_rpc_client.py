"""Tests for the JSON-RPC transport."""

import asyncio
import json

import httpx
import pytest

from aztec_monitor.errors import (
    AuthenticationFailure,
    HTTPStatusFailure,
    InvalidEndpointError,
    MalformedResponseError,
    RateLimitedFailure,
    RPCFailure,
    ServerFailure,
    TransportFailure,
)
from aztec_monitor.utils.rpc_client import EthRpcClient

RPC_URL = "https://rpc.example.org"


def make_client(handler, **kwargs) -> EthRpcClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EthRpcClient(RPC_URL, client=http_client, **kwargs)


def json_response(body, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=body)


class TestEthRpcClient:
    """Test suite for EthRpcClient."""

    @pytest.mark.parametrize("url", ["", "ftp://rpc.example.org", "localhost:8545", "http://"])
    def test_rejects_invalid_endpoint(self, url):
        with pytest.raises(InvalidEndpointError):
            EthRpcClient(url)

    @pytest.mark.asyncio
    async def test_eth_call_request_shape(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return json_response({"jsonrpc": "2.0", "id": 1, "result": "0x" + "0" * 63 + "1"})

        client = make_client(handler)
        value = await client.call("0x603bb2c05D474794ea97805e8De69bCcFb3bCA12", "0xa32bf597")

        assert value == "0x" + "0" * 63 + "1"
        assert seen[0]["method"] == "eth_call"
        assert seen[0]["jsonrpc"] == "2.0"
        assert seen[0]["params"] == [
            {"to": "0x603bb2c05D474794ea97805e8De69bCcFb3bCA12", "data": "0xa32bf597"},
            "latest",
        ]

    @pytest.mark.asyncio
    async def test_request_ids_increase(self):
        ids = []

        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            ids.append(payload["id"])
            return json_response({"jsonrpc": "2.0", "id": payload["id"], "result": "0x10"})

        client = make_client(handler)
        await client.get_block_number()
        await client.get_block_number()
        assert ids == [1, 2]

    @pytest.mark.asyncio
    async def test_block_number_parsed_from_hex(self):
        client = make_client(lambda request: json_response({"jsonrpc": "2.0", "id": 1, "result": "0x1b4"}))
        assert await client.get_block_number() == 436

    @pytest.mark.asyncio
    async def test_chain_id(self):
        client = make_client(lambda request: json_response({"jsonrpc": "2.0", "id": 1, "result": "0x1"}))
        assert await client.get_chain_id() == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [
        (429, RateLimitedFailure),
        (401, AuthenticationFailure),
        (403, AuthenticationFailure),
        (502, ServerFailure),
        (404, HTTPStatusFailure),
    ])
    async def test_status_classification(self, status, expected):
        client = make_client(lambda request: httpx.Response(status, text="x" * 500))
        with pytest.raises(expected) as excinfo:
            await client.call("0x603bb2c05D474794ea97805e8De69bCcFb3bCA12", "0x00")
        assert type(excinfo.value) is expected
        assert excinfo.value.status_code == status
        assert len(excinfo.value.body_excerpt) == 200

    @pytest.mark.asyncio
    async def test_rpc_error_object(self):
        client = make_client(lambda request: json_response({
            "jsonrpc": "2.0", "id": 1, "error": {"code": 3, "message": "execution reverted"}
        }))
        with pytest.raises(RPCFailure) as excinfo:
            await client.call("0x603bb2c05D474794ea97805e8De69bCcFb3bCA12", "0x00")
        assert excinfo.value.code == 3
        assert "execution reverted" in str(excinfo.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=[1, 2]),
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 1}),
        httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": 5}),
    ])
    async def test_malformed_bodies(self, response):
        client = make_client(lambda request: response)
        with pytest.raises(MalformedResponseError):
            await client.call("0x603bb2c05D474794ea97805e8De69bCcFb3bCA12", "0x00")

    @pytest.mark.asyncio
    async def test_network_error_is_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(TransportFailure):
            await client.get_block_number()

    @pytest.mark.asyncio
    async def test_redirect_loop_is_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.TooManyRedirects("redirect loop", request=request)

        client = make_client(handler)
        with pytest.raises(TransportFailure):
            await client.get_block_number()

    @pytest.mark.asyncio
    async def test_undecodable_body_is_malformed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"content-encoding": "gzip"}, content=b"definitely not gzip"
            )

        client = make_client(handler)
        with pytest.raises(MalformedResponseError):
            await client.get_block_number()

    @pytest.mark.asyncio
    async def test_throttle_spaces_requests(self, monkeypatch):
        now = [100.0]
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        monkeypatch.setattr("aztec_monitor.utils.rpc_client.asyncio.sleep", fake_sleep)
        client = make_client(
            lambda request: json_response({"jsonrpc": "2.0", "id": 1, "result": "0x1"}),
            rate_limit_enabled=True,
            requests_per_second=4.0,
            clock=lambda: now[0],
        )

        await client.get_block_number()
        await client.get_block_number()
        now[0] += 1.0
        await client.get_block_number()

        assert client.min_interval == 0.25
        assert sleeps == [pytest.approx(0.25)]

    @pytest.mark.asyncio
    async def test_throttle_serialises_concurrent_callers(self, monkeypatch):
        now = [0.0]
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        monkeypatch.setattr("aztec_monitor.utils.rpc_client.asyncio.sleep", fake_sleep)
        client = make_client(
            lambda request: json_response({"jsonrpc": "2.0", "id": 1, "result": "0x1"}),
            rate_limit_enabled=True,
            requests_per_second=2.0,
            clock=lambda: now[0],
        )

        await asyncio.gather(*(client.get_block_number() for _ in range(3)))

        # First request goes straight through, the other two each wait a full interval
        assert sleeps == [pytest.approx(0.5), pytest.approx(0.5)]

    @pytest.mark.asyncio
    async def test_unthrottled_client_never_sleeps(self, monkeypatch):
        async def fail_sleep(seconds):
            raise AssertionError("sleep should not be called")

        monkeypatch.setattr("aztec_monitor.utils.rpc_client.asyncio.sleep", fail_sleep)
        client = make_client(lambda request: json_response({"jsonrpc": "2.0", "id": 1, "result": "0x1"}))
        await client.get_block_number()
        await client.get_block_number()
        assert client.min_interval == 0.0

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: json_response({})))
        async with EthRpcClient(RPC_URL, client=http_client):
            pass
        assert not http_client.is_closed
        await http_client.aclose()
