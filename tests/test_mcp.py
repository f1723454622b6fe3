import json

import httpx
import pytest

from langrails.mcp import MCPClient, MCPError

URL = "http://localhost/mcp"


def _server(seen):
    def handler(request):
        seen.append(request)
        req = json.loads(request.content)
        method = req["method"]
        if method == "initialize":
            result = {"protocolVersion": "2025-03-26", "capabilities": {}}
        elif method == "tools/list":
            result = {
                "tools": [
                    {
                        "name": "get_weather",
                        "description": "Get current weather for a city",
                        "inputSchema": {
                            "type": "object",
                            "properties": {"city": {"type": "string"}},
                            "required": ["city"],
                        },
                    },
                    {
                        "name": "search",
                        "description": "Search the web",
                        "inputSchema": {"type": "object", "properties": {"query": {"type": "string"}}},
                    },
                ]
            }
        elif method == "tools/call":
            if req["params"]["name"] == "get_weather":
                text = '{"temp": 22, "condition": "sunny"}'
            else:
                text = "search results here"
            result = {"content": [{"type": "text", "text": text}]}
        else:
            return httpx.Response(
                400,
                json={"jsonrpc": "2.0", "id": req["id"], "error": {"code": -32601, "message": "method not found"}},
            )
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": req["id"], "result": result})

    return httpx.Client(transport=httpx.MockTransport(handler))


def _client(seen, **kwargs):
    kwargs.setdefault("bearer_token", "token")
    return MCPClient(URL, http_client=_server(seen), **kwargs)


def test_discover_tools():
    seen = []
    with _client(seen) as client:
        defs = client.tool_definitions()
    assert [d.name for d in defs] == ["get_weather", "search"]
    assert defs[0].description == "Get current weather for a city"
    assert all(r.headers["Authorization"] == "Bearer token" for r in seen)


def test_execute_tool():
    client = _client([])
    assert client.execute("get_weather", '{"city":"Istanbul"}') == '{"temp": 22, "condition": "sunny"}'


def test_execute_other_tool():
    assert _client([]).execute("search", '{"query":"test"}') == "search results here"


def test_execute_non_json_arguments():
    seen = []
    _client(seen).execute("search", "plain text")
    assert json.loads(seen[-1].content)["params"]["arguments"] == {"input": "plain text"}


def test_parameters_present():
    defs = _client([]).tool_definitions()
    assert defs[0].parameters["type"] == "object"


def test_refresh_tools():
    seen = []
    client = _client(seen)
    client.refresh_tools()
    assert len(client.tool_definitions()) == 2
    assert [json.loads(r.content)["method"] for r in seen] == ["initialize", "tools/list", "tools/list"]


def test_api_key_and_custom_header():
    seen = []
    _client(seen, bearer_token=None, api_key="placeholder", headers={"X-Custom": "value"})
    assert seen[0].headers["X-API-Key"] == "placeholder"
    assert seen[0].headers["X-Custom"] == "value"


def test_error_status():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom")))
    with pytest.raises(MCPError, match="failed to initialize"):
        MCPClient(URL, http_client=client)


def test_rpc_error():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -1, "message": "bad"}})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(MCPError, match="RPC error -1: bad"):
        MCPClient(URL, http_client=client)