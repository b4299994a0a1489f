# tests/unit/tools/test_unit_mcp_resolver.py — v1
"""Tests for tools/mcp_client.py (over httpx.MockTransport) and tools/resolver.py."""

from __future__ import annotations

import json

import httpx
import pytest

from teamrun.core.errors import ToolExecutionError
from teamrun.core.models import AgentDefinition, AgentToolBinding
from teamrun.llm.models import ToolSpec
from teamrun.reports.memory_sink import MemoryReportSink
from teamrun.tools.builtin import BuiltinRegistry, ReportTools
from teamrun.tools.mcp_client import McpToolClient, build_headers, parse_body
from teamrun.tools.models import BuiltinTarget, RemoteTarget
from teamrun.tools.resolver import resolve_tools

TOOLS = [
    {"name": "search", "description": "Search", "inputSchema": {"type": "object"}},
    {"name": "fetch"},
]


class FakeServer:
    """Records requests and answers the MCP handshake plus one method."""

    def __init__(self, result=None, error=None, status: int = 200, sse: bool = False):
        self.result = result
        self.error = error
        self.status = status
        self.sse = sse
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        method = body.get("method")
        if method == "initialize":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 0, "result": {}},
                                  headers={"mcp-session-id": "sess-1"})
        if method == "notifications/initialized":
            return httpx.Response(202)
        if self.status != 200:
            return httpx.Response(self.status, text="server exploded")
        payload = {"jsonrpc": "2.0", "id": 1}
        if self.error is not None:
            payload["error"] = self.error
        else:
            payload["result"] = self.result
        if self.sse:
            return httpx.Response(200, text=f"event: message\ndata: {json.dumps(payload)}\n\n")
        return httpx.Response(200, json=payload)


def _client(server: FakeServer) -> McpToolClient:
    return McpToolClient(timeout_s=5, transport=httpx.MockTransport(server))


TARGET = RemoteTarget(url="http://mcp.test/rpc", server_name="search", api_key="k1",
                      headers={"X-Team": "blue", "Authorization": "evil", "X-Bad": "a\r\nb"})


class TestMcpToolClient:
    @pytest.mark.asyncio
    async def test_list_tools_handshake(self):
        server = FakeServer(result={"tools": TOOLS})
        specs = await _client(server).list_tools(TARGET)

        assert [s.name for s in specs] == ["search", "fetch"]
        assert specs[1].input_schema == {"type": "object", "properties": {}}
        methods = [json.loads(r.content)["method"] for r in server.requests]
        assert methods == ["initialize", "notifications/initialized", "tools/list"]
        assert json.loads(server.requests[0].content)["params"]["protocolVersion"] == "2025-03-26"
        assert "mcp-session-id" not in server.requests[0].headers
        assert server.requests[2].headers["mcp-session-id"] == "sess-1"
        assert server.requests[2].headers["authorization"] == "Bearer k1"
        assert server.requests[2].headers["x-team"] == "blue"

    @pytest.mark.asyncio
    async def test_call_tool_sse(self):
        server = FakeServer(result={"content": [{"type": "text", "text": "hit"}]}, sse=True)
        result = await _client(server).call_tool(TARGET, "search", {"q": "x"})
        assert result == {"content": [{"type": "text", "text": "hit"}]}
        assert json.loads(server.requests[-1].content)["params"] == {"name": "search", "arguments": {"q": "x"}}

    @pytest.mark.asyncio
    async def test_jsonrpc_error(self):
        server = FakeServer(error={"code": -32601, "message": "no such tool"})
        with pytest.raises(ToolExecutionError, match="no such tool"):
            await _client(server).call_tool(TARGET, "nope", {})

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        with pytest.raises(ToolExecutionError, match="HTTP 500"):
            await _client(FakeServer(status=500)).call_tool(TARGET, "t", {})

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        client = McpToolClient(transport=httpx.MockTransport(refuse))
        with pytest.raises(ToolExecutionError, match="failed"):
            await client.list_tools(TARGET)


class TestHeadersAndBody:
    def test_blocked_and_control_char_headers_dropped(self):
        headers = build_headers(TARGET)
        assert headers["authorization"] == "Bearer k1"
        assert headers["x-team"] == "blue"
        assert "x-bad" not in headers
        assert headers["accept"] == "application/json, text/event-stream"

    def test_parse_body(self):
        assert parse_body('{"a": 1}') == {"a": 1}
        assert parse_body('event: m\ndata: {"a": 2}\n\n') == {"a": 2}
        assert parse_body("garbage") == "garbage"


class FakeDiscovery:
    def __init__(self, specs=None, error=None):
        self.specs = specs or []
        self.error = error
        self.targets: list = []

    async def list_tools(self, target):
        self.targets.append(target)
        if self.error:
            raise self.error
        return self.specs


class TestResolveTools:
    @pytest.fixture
    def builtins(self):
        return BuiltinRegistry([ReportTools(MemoryReportSink())])

    @pytest.mark.asyncio
    async def test_builtin_with_allowed_filter(self, builtins):
        agent = AgentDefinition(name="a", tools=[
            AgentToolBinding(kind="builtin", name="reports", allowed=["reports__get"]),
        ])
        resolved = await resolve_tools(agent, builtins)
        assert [s.name for s in resolved.specs] == ["reports__get"]
        assert isinstance(resolved.targets["reports__get"], BuiltinTarget)
        assert resolved.errors == []

    @pytest.mark.asyncio
    async def test_remote_inline_and_discovered(self, builtins):
        discovery = FakeDiscovery(specs=[ToolSpec(name="fetch")])
        agent = AgentDefinition(name="a", tools=[
            AgentToolBinding(kind="remote", name="inline", url="http://one",
                             tools=[ToolSpec(name="search")]),
            AgentToolBinding(kind="remote", name="found", url="http://two", api_key="k"),
        ])
        resolved = await resolve_tools(agent, builtins, discovery)

        assert [s.name for s in resolved.specs] == ["search", "fetch"]
        assert resolved.targets["search"].url == "http://one"
        assert resolved.targets["fetch"] == RemoteTarget(url="http://two", server_name="found", api_key="k")
        assert len(discovery.targets) == 1

    @pytest.mark.asyncio
    async def test_duplicate_name_last_wins(self, builtins):
        agent = AgentDefinition(name="a", tools=[
            AgentToolBinding(kind="remote", name="one", url="http://one", tools=[ToolSpec(name="t")]),
            AgentToolBinding(kind="remote", name="two", url="http://two", tools=[ToolSpec(name="t")]),
        ])
        resolved = await resolve_tools(agent, builtins)
        assert len(resolved.specs) == 1
        assert resolved.targets["t"].url == "http://two"

    @pytest.mark.asyncio
    async def test_unresolvable_bindings_collected(self, builtins):
        agent = AgentDefinition(name="a", tools=[
            AgentToolBinding(kind="builtin", name="search"),
            AgentToolBinding(kind="remote", name="nourl"),
            AgentToolBinding(kind="remote", name="down", url="http://down"),
        ])
        discovery = FakeDiscovery(error=ToolExecutionError("refused"))
        resolved = await resolve_tools(agent, builtins, discovery)
        assert resolved.specs == []
        assert len(resolved.errors) == 3
        assert "Unknown builtin tool set: search" in resolved.errors
