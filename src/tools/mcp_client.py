# src/tools/mcp_client.py — v1
"""MCP JSON-RPC 2.0 client over streamable HTTP.

Every request runs the handshake first (``initialize`` then
``notifications/initialized``), reusing the ``mcp-session-id`` header the
server hands back. Responses may be plain JSON or an SSE body whose
``data:`` lines carry the JSON payload.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from teamrun.core.errors import ToolExecutionError
from teamrun.llm.models import ToolSpec
from teamrun.tools.models import RemoteTarget

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2025-03-26"
SESSION_HEADER = "mcp-session-id"

# Headers a server binding may not override.
_BLOCKED_HEADERS = frozenset({
    "authorization",
    "host",
    "content-type",
    "content-length",
    "transfer-encoding",
    "connection",
    "cookie",
    "set-cookie",
    "x-forwarded-for",
    "x-forwarded-host",
    "x-forwarded-proto",
    "proxy-authorization",
})


class McpToolClient:
    """Discover and call tools on remote MCP servers."""

    def __init__(
        self,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._transport = transport

    async def list_tools(self, target: RemoteTarget) -> list[ToolSpec]:
        """Fetch the server's tool declarations.

        Raises:
            ToolExecutionError: On transport or JSON-RPC errors.
        """
        body = {"jsonrpc": "2.0", "method": "tools/list", "id": 1}
        result = await self._request(target, body)
        return [
            ToolSpec(
                name=tool["name"],
                description=tool.get("description") or "",
                input_schema=tool.get("inputSchema") or {"type": "object", "properties": {}},
            )
            for tool in result.get("tools") or []
        ]

    async def call_tool(self, target: RemoteTarget, name: str, arguments: dict[str, Any]) -> Any:
        """Call one tool and return the JSON-RPC ``result``.

        Raises:
            ToolExecutionError: On transport or JSON-RPC errors.
        """
        body = {
            "jsonrpc": "2.0",
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
            "id": 1,
        }
        return await self._request(target, body)

    async def _request(self, target: RemoteTarget, body: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
            try:
                session_id = await self._initialize(client, target)
                await self._post(client, target, {
                    "jsonrpc": "2.0", "method": "notifications/initialized",
                }, session_id)
                resp = await self._post(client, target, body, session_id)
            except httpx.HTTPError as e:
                raise ToolExecutionError(f"MCP request to {target.url} failed: {e}") from e

        if resp.status_code != 200:
            raise ToolExecutionError(
                f"MCP server {target.server_name or target.url} returned "
                f"HTTP {resp.status_code}: {resp.text[:500]}"
            )

        payload = parse_body(resp.text)
        if not isinstance(payload, dict):
            raise ToolExecutionError("MCP server returned an unreadable response")
        if "error" in payload:
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ToolExecutionError(f"MCP error: {message}")
        return payload.get("result") or {}

    async def _initialize(self, client: httpx.AsyncClient, target: RemoteTarget) -> str | None:
        body = {
            "jsonrpc": "2.0",
            "method": "initialize",
            "id": 0,
            "params": {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "teamrun", "version": "1.0"},
            },
        }
        resp = await self._post(client, target, body, None)
        if resp.status_code != 200:
            raise ToolExecutionError(
                f"MCP initialize failed with HTTP {resp.status_code}: {resp.text[:500]}"
            )
        return resp.headers.get(SESSION_HEADER)

    async def _post(
        self,
        client: httpx.AsyncClient,
        target: RemoteTarget,
        body: dict[str, Any],
        session_id: str | None,
    ) -> httpx.Response:
        headers = build_headers(target)
        if session_id:
            headers[SESSION_HEADER] = session_id
        return await client.post(target.url, json=body, headers=headers)


def build_headers(target: RemoteTarget) -> dict[str, str]:
    """Request headers: fixed content negotiation, bearer key, then safe custom headers."""
    headers = {
        "content-type": "application/json",
        "accept": "application/json, text/event-stream",
    }
    if target.api_key:
        headers["authorization"] = f"Bearer {target.api_key}"
    for key, value in target.headers.items():
        key, value = str(key).lower(), str(value)
        if key in _BLOCKED_HEADERS or _has_control_chars(key) or _has_control_chars(value):
            logger.warning("Dropping disallowed MCP header %r for %s", key, target.url)
            continue
        headers[key] = value
    return headers


def parse_body(text: str) -> Any:
    """Decode a JSON body, or the joined ``data:`` lines of an SSE body."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    data = "\n".join(
        line[len("data:"):].lstrip()
        for line in text.split("\n")
        if line.startswith("data:")
    )
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        return text


def _has_control_chars(value: str) -> bool:
    return any(c in value for c in ("\r", "\n", "\0"))
