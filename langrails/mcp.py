"""Client for Model Context Protocol servers over HTTP JSON-RPC."""

from __future__ import annotations

import json
import threading
from typing import Any, Mapping, Optional

import httpx

from .core import ToolDefinition
from .tools import Executor

_PROTOCOL_VERSION = "2025-03-26"


class MCPError(Exception):
    """Raised when an MCP server cannot be reached or reports an error."""


class MCPClient(Executor):
    """Discovers and runs tools on an MCP server.

    Usable directly as the executor of :func:`langrails.tools.run_loop`.
    """

    def __init__(
        self,
        base_url: str,
        bearer_token: Optional[str] = None,
        api_key: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url
        self._headers = {"Content-Type": "application/json"}
        if bearer_token is not None:
            self._headers["Authorization"] = "Bearer " + bearer_token
        if api_key is not None:
            self._headers["X-API-Key"] = api_key
        self._headers.update(headers or {})
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)
        self._lock = threading.Lock()
        self._tools: list[dict[str, Any]] = []

        try:
            self._call(
                "initialize",
                {
                    "protocolVersion": _PROTOCOL_VERSION,
                    "capabilities": {},
                    "clientInfo": {"name": "langrails", "version": "1.0.0"},
                },
            )
        except MCPError as exc:
            self.close()
            raise MCPError(f"mcp: failed to initialize: {exc}") from exc
        try:
            self._discover_tools()
        except MCPError as exc:
            self.close()
            raise MCPError(f"mcp: failed to discover tools: {exc}") from exc

    def tool_definitions(self) -> list[ToolDefinition]:
        """Return the discovered tools as tool definitions."""
        with self._lock:
            return [
                ToolDefinition(
                    name=t.get("name", ""),
                    description=t.get("description", ""),
                    parameters=t.get("inputSchema"),
                )
                for t in self._tools
            ]

    def execute(self, name: str, arguments: str) -> str:
        """Call a tool; return its first text content, or the raw result."""
        try:
            args = json.loads(arguments)
            if args is not None and not isinstance(args, dict):
                raise ValueError
        except ValueError:
            args = {"input": arguments}

        try:
            result = self._call("tools/call", {"name": name, "arguments": args})
        except MCPError as exc:
            raise MCPError(f"mcp: tool call {name!r} failed: {exc}") from exc

        raw = json.dumps(result, separators=(",", ":"))
        if isinstance(result, dict) and isinstance(result.get("content"), list):
            for block in result["content"]:
                if isinstance(block, dict) and block.get("type") == "text":
                    return str(block.get("text", ""))
        return raw

    def refresh_tools(self) -> None:
        """Discover tools from the server again."""
        self._discover_tools()

    def close(self) -> None:
        """Release the HTTP client if this client created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> MCPClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _discover_tools(self) -> None:
        result = self._call("tools/list", None)
        tools = result.get("tools") if isinstance(result, dict) else None
        if tools is None:
            tools = []
        if not isinstance(tools, list) or not all(isinstance(t, dict) for t in tools):
            raise MCPError("failed to parse tools list")
        with self._lock:
            self._tools = tools

    def _call(self, method: str, params: Any) -> Any:
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": 1, "method": method}
        if params is not None:
            body["params"] = params
        try:
            resp = self._client.post(self.base_url, content=json.dumps(body), headers=self._headers)
        except httpx.HTTPError as exc:
            raise MCPError(f"request failed: {exc}") from exc

        if resp.status_code != 200:
            raise MCPError(f"server returned status {resp.status_code}: {resp.text}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MCPError(f"failed to parse JSON-RPC response: {exc}") from exc
        if not isinstance(payload, dict):
            raise MCPError("failed to parse JSON-RPC response: not an object")
        error = payload.get("error")
        if error:
            raise MCPError(f"RPC error {error.get('code', 0)}: {error.get('message', '')}")
        return payload.get("result")