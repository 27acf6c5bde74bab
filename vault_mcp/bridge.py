"""Stdio bridge: relays newline-delimited JSON-RPC from stdin to the HTTP gateway.

Lets MCP clients that only speak stdio use a running gateway. Replies go to
stdout one per line; logs go to stderr so they never corrupt the stream.
"""

import json
import logging
import os
import sys
from typing import Any, Dict, Optional, TextIO

import httpx
from dotenv import load_dotenv

from vault_mcp.src.models.rpc import INTERNAL_ERROR, rpc_error

logger = logging.getLogger("vault_mcp.bridge")

DEFAULT_URL = "http://127.0.0.1:27125"
DEFAULT_TIMEOUT = 30.0


def _parse(line: str) -> Any:
    try:
        return json.loads(line)
    except ValueError:
        return None


def _request_id(line: str) -> Any:
    payload = _parse(line)
    return payload.get("id") if isinstance(payload, dict) else None


def _is_notification(line: str) -> bool:
    """A message without an ``id`` member never gets a reply."""
    payload = _parse(line)
    return isinstance(payload, dict) and "id" not in payload


class StdioBridge:
    """Forwards each stdin line as a POST to ``<base_url>/rpc``."""

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    def forward(self, line: str) -> Optional[Dict[str, Any]]:
        """
        Send one message and return the reply to print, if any.

        Returns None for notifications, including ones the gateway rejected.
        """
        request_id = _request_id(line)
        notification = _is_notification(line)
        try:
            response = self.client.post(
                "/rpc", content=line.encode("utf-8"), headers={"Content-Type": "application/json"}
            )
        except httpx.HTTPError as exc:
            logger.error(f"Gateway request failed: {exc}")
            if notification:
                return None
            return rpc_error(request_id, INTERNAL_ERROR, f"Gateway request failed: {exc}")

        if not response.content:
            return None

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Gateway returned non-JSON body (HTTP {response.status_code})")
            if notification:
                return None
            return rpc_error(
                request_id, INTERNAL_ERROR, f"Invalid response from gateway (HTTP {response.status_code})"
            )

        if isinstance(body, dict) and "jsonrpc" in body:
            return body

        # Gateway-level rejections (401, 429, 404) carry {"error": "..."}.
        message = body.get("error") if isinstance(body, dict) else None
        logger.warning(f"Gateway rejected request: HTTP {response.status_code} {message}")
        if notification:
            return None
        return rpc_error(
            request_id, INTERNAL_ERROR, f"HTTP {response.status_code}: {message or 'Request failed'}"
        )

    def serve(self, in_stream: TextIO, out_stream: TextIO) -> None:
        for line in in_stream:
            line = line.strip()
            if not line:
                continue
            reply = self.forward(line)
            if reply is None:
                continue
            out_stream.write(json.dumps(reply) + "\n")
            out_stream.flush()


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    base_url = os.getenv("VAULT_MCP_URL", DEFAULT_URL).rstrip("/")
    api_key = os.getenv("MCP_API_KEY", "")
    if not api_key:
        logger.warning("MCP_API_KEY is not set; the gateway will reject every request")

    logger.info(f"Bridging stdio to {base_url}/rpc")
    with httpx.Client(
        base_url=base_url, headers={"X-API-Key": api_key}, timeout=DEFAULT_TIMEOUT
    ) as client:
        StdioBridge(client).serve(sys.stdin, sys.stdout)


if __name__ == "__main__":
    main()
