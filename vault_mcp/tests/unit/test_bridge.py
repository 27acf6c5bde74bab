"""Unit tests for the stdio bridge."""

import io
import json

import httpx

from vault_mcp.bridge import StdioBridge


def _bridge(handler) -> StdioBridge:
    client = httpx.Client(
        base_url="http://gateway.test",
        headers={"X-API-Key": "k"},
        transport=httpx.MockTransport(handler),
    )
    return StdioBridge(client)


def test_forwards_line_with_api_key() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.headers["X-API-Key"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "result": {}, "id": 1})

    reply = _bridge(handler).forward('{"jsonrpc":"2.0","method":"ping","id":1}')

    assert reply == {"jsonrpc": "2.0", "result": {}, "id": 1}
    assert seen == {"path": "/rpc", "key": "k", "body": {"jsonrpc": "2.0", "method": "ping", "id": 1}}


def test_empty_reply_for_notifications() -> None:
    bridge = _bridge(lambda request: httpx.Response(200, content=b""))

    assert bridge.forward('{"method":"notifications/initialized"}') is None


def test_gateway_rejection_becomes_rpc_error() -> None:
    bridge = _bridge(lambda request: httpx.Response(401, json={"error": "Unauthorized"}))

    reply = bridge.forward('{"method":"ping","id":"x"}')

    assert reply == {
        "jsonrpc": "2.0",
        "error": {"code": -32603, "message": "HTTP 401: Unauthorized"},
        "id": "x",
    }


def test_transport_failure_becomes_rpc_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    reply = _bridge(handler).forward('{"method":"ping","id":5}')

    assert reply["id"] == 5
    assert reply["error"]["code"] == -32603
    assert "connection refused" in reply["error"]["message"]


def test_serve_writes_one_line_per_reply() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if "id" not in body:
            return httpx.Response(200, content=b"")
        return httpx.Response(200, json={"jsonrpc": "2.0", "result": {}, "id": body["id"]})

    stdin = io.StringIO('{"method":"ping","id":1}\n\n{"method":"notifications/x"}\n{"method":"ping","id":2}\n')
    stdout = io.StringIO()

    _bridge(handler).serve(stdin, stdout)

    lines = stdout.getvalue().splitlines()
    assert [json.loads(line)["id"] for line in lines] == [1, 2]


def test_rejected_notifications_get_no_reply() -> None:
    bridge = _bridge(lambda request: httpx.Response(429, json={"error": "Too many requests"}))

    assert bridge.forward('{"jsonrpc":"2.0","method":"notifications/initialized"}') is None
    assert bridge.forward('{"jsonrpc":"2.0","method":"ping","id":null}')["id"] is None


def test_failed_notifications_get_no_reply() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    stdout = io.StringIO()

    _bridge(handler).serve(io.StringIO('{"method":"notifications/initialized"}\n'), stdout)

    assert stdout.getvalue() == ""
