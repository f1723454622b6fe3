"""Automatic tool-calling loop."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from .core import CompletionRequest, CompletionResponse, Message, Provider, TokenUsage, ToolCall

MAX_ITERATIONS = 20

ToolFunc = Callable[[str], str]
ToolCallHook = Callable[[ToolCall, str, Optional[BaseException]], None]


class ToolLoopError(Exception):
    """Raised when the tool loop fails or runs out of iterations."""


class Executor(abc.ABC):
    """Runs tool calls by name."""

    @abc.abstractmethod
    def execute(self, name: str, arguments: str) -> str:
        """Run the named tool with JSON-encoded arguments and return its result."""


class MapExecutor(Executor):
    """An executor backed by a mapping of tool name to function."""

    def __init__(self, funcs: Optional[Mapping[str, ToolFunc]] = None) -> None:
        self.funcs = dict(funcs or {})

    def execute(self, name: str, arguments: str) -> str:
        try:
            fn = self.funcs[name]
        except KeyError:
            raise LookupError(f"unknown tool: {name}") from None
        return fn(arguments)


@dataclass
class RunLoopResult:
    """Final response, usage summed over all calls, and the number of calls."""

    response: CompletionResponse
    total_usage: TokenUsage = field(default_factory=TokenUsage)
    iterations: int = 0


def run_loop(
    provider: Provider,
    request: CompletionRequest,
    executor: Executor,
    max_iterations: int = MAX_ITERATIONS,
    on_tool_call: Optional[ToolCallHook] = None,
) -> RunLoopResult:
    """Call the provider, run requested tools and repeat until a plain answer.

    Assistant and tool messages are appended to ``request.messages``.
    """
    total = TokenUsage()
    for iteration in range(1, max_iterations + 1):
        try:
            resp = provider.complete(request)
        except Exception as exc:
            raise ToolLoopError(f"tool loop iteration {iteration}: {exc}") from exc

        total = total + resp.usage
        if not resp.tool_calls:
            return RunLoopResult(response=resp, total_usage=total, iterations=iteration)

        request.messages.append(
            Message(role="assistant", content=resp.content, tool_calls=list(resp.tool_calls))
        )
        for call in resp.tool_calls:
            error: Optional[BaseException] = None
            try:
                result = executor.execute(call.name, call.arguments)
            except Exception as exc:
                result, error = "", exc
            if on_tool_call is not None:
                on_tool_call(call, result, error)
            if error is not None:
                result = f'{{"error": "{error}"}}'
            request.messages.append(Message(role="tool", content=result, tool_call_id=call.id))

    raise ToolLoopError(f"tool loop exceeded maximum iterations ({max_iterations})")