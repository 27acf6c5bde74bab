#!/usr/bin/env python3
"""Exercise every tool exposed by a running vault gateway."""

from __future__ import annotations

import argparse
import itertools
import json
import os
import sys
import uuid
from typing import Any, Dict

import httpx

_ids = itertools.count(1)


class RpcError(Exception):
    pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Test vault gateway tools end-to-end")
    parser.add_argument(
        "--url",
        default=os.environ.get("VAULT_MCP_URL", "http://127.0.0.1:27125"),
        help="Gateway base URL",
    )
    parser.add_argument(
        "--api-key",
        default=os.environ.get("MCP_API_KEY"),
        help="API key sent as X-API-Key (or set MCP_API_KEY env variable)",
    )
    parser.add_argument(
        "--note",
        default=f"mcp-test-{uuid.uuid4().hex}.md",
        help="Temporary note path to create and delete during the test",
    )
    return parser


def call_tool(client: httpx.Client, name: str, arguments: Dict[str, Any]) -> Any:
    response = client.post(
        "/rpc",
        json={
            "jsonrpc": "2.0",
            "id": next(_ids),
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
        },
    )
    response.raise_for_status()
    body = response.json()
    if "error" in body:
        raise RpcError(body["error"]["message"])
    return body["result"]["content"][0]["text"]


def exercise_tools(url: str, api_key: str, note_path: str) -> Dict[str, Any]:
    with httpx.Client(base_url=url, headers={"X-API-Key": api_key}, timeout=30.0) as client:
        results: Dict[str, Any] = {}

        results["health"] = client.get("/health").json()
        tools = client.post(
            "/rpc", json={"jsonrpc": "2.0", "id": next(_ids), "method": "tools/list"}
        ).json()
        results["list_tools"] = [tool["name"] for tool in tools["result"]["tools"]]

        results["list_files_before"] = call_tool(client, "list_files_in_vault", {})

        body = "---\ntags: [mcp]\n---\n# MCP Test\n\n## Log\nCreated by the audit script. ^audit\n"
        results["append_content"] = call_tool(
            client, "append_content", {"filepath": note_path, "content": body}
        )
        results["patch_heading"] = call_tool(
            client,
            "patch_content",
            {
                "filepath": note_path,
                "operation": "append",
                "target_type": "heading",
                "target": "Log",
                "content": "Patched under the heading.\n",
            },
        )
        results["patch_frontmatter"] = call_tool(
            client,
            "patch_content",
            {
                "filepath": note_path,
                "operation": "append",
                "target_type": "frontmatter",
                "target": "tags",
                "content": "audit",
            },
        )
        results["get_file_contents"] = call_tool(client, "get_file_contents", {"filepath": note_path})
        results["simple_search"] = call_tool(
            client, "simple_search", {"query": "audit script", "context_length": 20}
        )

        # Structured queries can be disabled on the server.
        try:
            results["dataview_query"] = call_tool(client, "dataview_query", {"query": "LIST FROM #mcp"})
            results["validate_dataview_query"] = call_tool(
                client, "validate_dataview_query", {"query": "TABLE tags FROM #mcp"}
            )
        except RpcError as exc:
            results["dataview_error"] = str(exc)
        results["get_rendered_content"] = call_tool(
            client, "get_rendered_content", {"filepath": note_path}
        )

        results["delete_file"] = call_tool(
            client, "delete_file", {"filepath": note_path, "confirm": True}
        )
        results["list_files_after"] = call_tool(client, "list_files_in_vault", {})

        return results


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if not args.api_key:
        parser.error("API key must be provided via --api-key or MCP_API_KEY env variable")

    try:
        results = exercise_tools(args.url.rstrip("/"), args.api_key, args.note)
    except (httpx.HTTPError, RpcError) as exc:  # pragma: no cover
        print(f"Error exercising MCP tools: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    json.dump(results, sys.stdout, indent=2, sort_keys=True)
    print()


if __name__ == "__main__":
    main()
