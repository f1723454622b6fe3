import json

import pytest

from langrails.core import CompletionRequest, CompletionResponse, Message, Provider, TokenUsage, ToolCall
from langrails.tools import MapExecutor, ToolLoopError, run_loop


class FakeProvider(Provider):
    def __init__(self, responses):
        self.responses = responses
        self.calls = 0

    def complete(self, request):
        idx = self.calls
        self.calls += 1
        if idx < len(self.responses):
            return self.responses[idx]
        return CompletionResponse(content="done")

    def stream(self, request):
        return iter(())


def _request(text):
    return CompletionRequest(model="test", messages=[Message(role="user", content=text)])


def test_no_tools():
    provider = FakeProvider([CompletionResponse(content="Hello!", usage=TokenUsage(total_tokens=10))])
    result = run_loop(provider, _request("Hi"), MapExecutor())
    assert result.response.content == "Hello!"
    assert result.iterations == 1


def test_single_tool_call():
    provider = FakeProvider([
        CompletionResponse(
            tool_calls=[ToolCall(id="call_1", name="get_weather", arguments='{"city":"Istanbul"}')],
            usage=TokenUsage(10, 5, 15),
        ),
        CompletionResponse(content="It's 22°C in Istanbul.", usage=TokenUsage(20, 10, 30)),
    ])
    seen = []

    def weather(args):
        seen.append(json.loads(args)["city"])
        return '{"temp": 22, "condition": "sunny"}'

    request = _request("Weather in Istanbul?")
    result = run_loop(provider, request, MapExecutor({"get_weather": weather}))
    assert result.response.content == "It's 22°C in Istanbul."
    assert result.iterations == 2
    assert result.total_usage.total_tokens == 45
    assert seen == ["Istanbul"]
    assert [m.role for m in request.messages] == ["user", "assistant", "tool"]
    assert request.messages[2].tool_call_id == "call_1"


def test_max_iterations():
    looping = CompletionResponse(tool_calls=[ToolCall(id="call", name="loop_tool", arguments="{}")])
    provider = FakeProvider([looping] * 10)
    with pytest.raises(ToolLoopError):
        run_loop(provider, _request("loop"), MapExecutor({"loop_tool": lambda a: "ok"}), max_iterations=3)
    assert provider.calls == 3


def test_tool_call_hook():
    provider = FakeProvider([
        CompletionResponse(tool_calls=[ToolCall(id="c1", name="test_tool", arguments="{}")]),
        CompletionResponse(content="done"),
    ])
    calls = []
    run_loop(
        provider,
        _request("test"),
        MapExecutor({"test_tool": lambda a: "result"}),
        on_tool_call=lambda call, result, err: calls.append((call.name, result, err)),
    )
    assert calls == [("test_tool", "result", None)]


def test_tool_error_becomes_message():
    provider = FakeProvider([
        CompletionResponse(tool_calls=[ToolCall(id="c1", name="missing", arguments="{}")]),
        CompletionResponse(content="done"),
    ])
    request = _request("x")
    run_loop(provider, request, MapExecutor())
    assert request.messages[-1].content == '{"error": "unknown tool: missing"}'


def test_map_executor_unknown_tool():
    with pytest.raises(LookupError):
        MapExecutor({}).execute("nonexistent", "{}")