"""Integration tests for the HTTP gateway: auth, quota, routing and JSON-RPC framing."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from vault_mcp.src.api.main import create_app
from vault_mcp.src.services.config import AppConfig
from vault_mcp.src.services.rate_limiter import RateLimiter

API_KEY = "test-key-123"
HEADERS = {"X-API-Key": API_KEY}


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(vault_path=tmp_path / "vault", vault_name="Test Vault", api_key=API_KEY)


@pytest.fixture
def client(config: AppConfig) -> TestClient:
    return TestClient(create_app(config))


def _rpc(client: TestClient, method: str, params=None, request_id=1):
    body = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        body["params"] = params
    return client.post("/rpc", json=body, headers=HEADERS)


class TestGatewayChecks:
    """Tests for the checks that run before dispatch."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["server"] == "vault-mcp"
        assert data["version"] == "1.0.0"
        assert data["vault"] == "Test Vault"
        assert data["timestamp"]
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.parametrize("headers", [{}, {"X-API-Key": "wrong"}, {"X-API-Key": ""}])
    def test_rejects_bad_api_key(self, client: TestClient, headers) -> None:
        response = client.post("/rpc", json={"method": "ping", "id": 1}, headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["access-control-allow-headers"] == "Content-Type, X-API-Key"

    def test_unconfigured_key_rejects_everything(self, tmp_path: Path) -> None:
        client = TestClient(create_app(AppConfig(vault_path=tmp_path / "vault")))

        response = client.get("/health", headers={"X-API-Key": ""})

        assert response.status_code == 401

    def test_preflight_skips_auth(self, client: TestClient) -> None:
        response = client.options("/rpc")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"

    @pytest.mark.parametrize("method,path", [("GET", "/nope"), ("GET", "/rpc"), ("POST", "/health")])
    def test_unknown_routes(self, client: TestClient, method: str, path: str) -> None:
        response = client.request(method, path, headers=HEADERS)

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_rate_limit(self, config: AppConfig) -> None:
        client = TestClient(create_app(config, rate_limiter=RateLimiter(max_requests=2)))

        statuses = [client.get("/health", headers=HEADERS).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        assert client.get("/health", headers=HEADERS).json() == {"error": "Rate limit exceeded"}

    def test_unauthorized_requests_do_not_use_quota(self, config: AppConfig) -> None:
        client = TestClient(create_app(config, rate_limiter=RateLimiter(max_requests=1)))

        for _ in range(3):
            client.get("/health")

        assert client.get("/health", headers=HEADERS).status_code == 200


class TestJsonRpcFraming:
    """Tests for request parsing and response envelopes."""

    def test_parse_error(self, client: TestClient) -> None:
        response = client.post(
            "/rpc",
            content=b"{not json",
            headers={**HEADERS, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "jsonrpc": "2.0",
            "error": {"code": -32700, "message": "Parse error"},
            "id": None,
        }

    @pytest.mark.parametrize(
        "body,expected_id",
        [([1, 2], None), ({"id": 7}, 7), ({"method": "", "id": "a"}, "a"), ({"method": 5}, None)],
    )
    def test_invalid_request(self, client: TestClient, body, expected_id) -> None:
        response = client.post("/rpc", json=body, headers=HEADERS)

        assert response.status_code == 400
        assert response.json() == {
            "jsonrpc": "2.0",
            "error": {"code": -32600, "message": "Invalid request - missing method"},
            "id": expected_id,
        }

    def test_initialize(self, client: TestClient) -> None:
        response = _rpc(client, "initialize", {}, request_id="init-1")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "init-1"
        assert data["result"]["protocolVersion"] == "2024-11-05"

    def test_handler_errors_use_internal_error_code(self, client: TestClient) -> None:
        response = _rpc(client, "get_file_contents", {"filepath": "missing.md"}, request_id=3)

        assert response.status_code == 200
        assert response.json() == {
            "jsonrpc": "2.0",
            "error": {"code": -32603, "message": "File not found: missing.md"},
            "id": 3,
        }

    def test_unknown_method(self, client: TestClient) -> None:
        response = _rpc(client, "resources/list")

        assert response.json()["error"] == {"code": -32603, "message": "Unknown method: resources/list"}

    def test_notification_has_empty_body(self, client: TestClient) -> None:
        response = client.post(
            "/rpc",
            json={"jsonrpc": "2.0", "method": "notifications/initialized"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.content == b""

    def test_failing_notification_has_empty_body(self, client: TestClient) -> None:
        response = client.post(
            "/rpc",
            json={"jsonrpc": "2.0", "method": "get_file_contents", "params": {"filepath": "x.md"}},
            headers=HEADERS,
        )

        assert response.status_code == 200
        assert response.content == b""

    def test_notification_still_executes(self, client: TestClient) -> None:
        client.post(
            "/rpc",
            json={"method": "append_content", "params": {"filepath": "n.md", "content": "hi"}},
            headers=HEADERS,
        )

        assert _rpc(client, "get_file_contents", {"filepath": "n.md"}).json()["result"] == "hi"

    def test_null_id_is_a_request(self, client: TestClient) -> None:
        response = _rpc(client, "ping", request_id=None)

        assert response.json() == {"jsonrpc": "2.0", "result": {}, "id": None}

    def test_mutating_methods_return_null(self, client: TestClient) -> None:
        response = _rpc(client, "append_content", {"filepath": "a.md", "content": "x"})

        assert response.json() == {"jsonrpc": "2.0", "result": None, "id": 1}


class TestToolRoundTrips:
    """End-to-end tool calls through the gateway."""

    def test_tools_call_and_direct_call_agree(self, client: TestClient) -> None:
        _rpc(client, "append_content", {"filepath": "X.md", "content": "# X\nbody\n"})

        wrapped = _rpc(
            client,
            "tools/call",
            {"name": "get_file_contents", "arguments": {"filepath": "X.md"}},
        ).json()["result"]
        direct = _rpc(client, "get_file_contents", {"filepath": "X.md"}).json()["result"]

        assert wrapped == {"content": [{"type": "text", "text": direct}]}

    def test_patch_then_read(self, client: TestClient) -> None:
        _rpc(client, "append_content", {"filepath": "doc.md", "content": "# Tasks\n- a\n# Done\n"})

        patched = _rpc(
            client,
            "tools/call",
            {
                "name": "patch_content",
                "arguments": {
                    "filepath": "doc.md",
                    "operation": "append",
                    "target_type": "heading",
                    "target": "Tasks",
                    "content": "- b\n",
                },
            },
        ).json()["result"]

        assert patched == {"content": [{"type": "text", "text": "Content patched successfully"}]}
        text = _rpc(client, "get_file_contents", {"filepath": "doc.md"}).json()["result"]
        assert text == "# Tasks\n- a\n- b\n# Done\n"

    def test_tools_list(self, client: TestClient) -> None:
        tools = _rpc(client, "tools/list").json()["result"]["tools"]

        assert "patch_content" in [tool["name"] for tool in tools]

    def test_search_results_are_plain_json(self, client: TestClient) -> None:
        _rpc(client, "append_content", {"filepath": "pets.md", "content": "Cat cat scatter"})

        results = _rpc(client, "simple_search", {"query": "cat", "context_length": 2}).json()["result"]

        assert [r["position"] for r in results] == [0, 4, 9]
        assert results[0] == {"file": "pets.md", "match": "Cat c", "position": 0}
