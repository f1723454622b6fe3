"""Shared data model: messages, requests, responses, stream events and errors."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional


@dataclass
class ContentPart:
    """One part of a multimodal message: either text or an image."""

    type: str
    text: str = ""
    image_url: str = ""


def text_part(text: str) -> ContentPart:
    """Create a text content part."""
    return ContentPart(type="text", text=text)


def image_url_part(url: str) -> ContentPart:
    """Create an image content part from an HTTP(S) or data URL."""
    return ContentPart(type="image", image_url=url)


def image_base64_part(data: str, media_type: str) -> ContentPart:
    """Create an image content part from base64 data and a media type such as image/png."""
    return ContentPart(type="image", image_url=f"data:{media_type};base64,{data}")


@dataclass
class ToolCall:
    """A request from the model to call a tool.

    ``metadata`` carries provider-specific data that has to be sent back
    with the call in later requests.
    """

    id: str = ""
    name: str = ""
    arguments: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class Message:
    """A single message in a conversation.

    When ``content_parts`` is non-empty it takes precedence over ``content``.
    """

    role: str
    content: str = ""
    content_parts: list[ContentPart] = field(default_factory=list)
    tool_call_id: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class ToolDefinition:
    """A tool the model may call; ``parameters`` is a JSON schema object."""

    name: str
    description: str = ""
    parameters: Any = None


@dataclass
class CompletionRequest:
    """A request to an LLM provider. ``None`` means the provider default."""

    model: str = ""
    messages: list[Message] = field(default_factory=list)
    system_prompt: str = ""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop: list[str] = field(default_factory=list)
    seed: Optional[int] = None
    tools: list[ToolDefinition] = field(default_factory=list)
    output_schema: Any = None
    thinking: bool = False
    thinking_budget: Optional[int] = None


@dataclass
class TokenUsage:
    """Token consumption statistics for a request."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class CompletionResponse:
    """The response from an LLM provider."""

    content: str = ""
    thinking: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: str = ""
    model: str = ""


class EventType(str, enum.Enum):
    """Kind of a streaming event."""

    CONTENT = "content"
    TOOL_CALL = "tool_call"
    DONE = "done"
    ERROR = "error"


@dataclass
class StreamEvent:
    """A single event in a streaming response.

    Usage-only events carry no type, matching what providers emit.
    """

    type: Optional[EventType] = None
    content: str = ""
    tool_call: Optional[ToolCall] = None
    error: Optional[BaseException] = None
    usage: Optional[TokenUsage] = None


class APIError(Exception):
    """An error response returned by a provider's HTTP API."""

    def __init__(self, status_code: int, message: str, provider: str) -> None:
        super().__init__(f"{provider}: API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.provider = provider

    def is_retryable(self) -> bool:
        """True for rate limits and server-side failures."""
        return self.status_code == 429 or self.status_code >= 500

    def is_auth_error(self) -> bool:
        """True when the key was rejected or lacks permission."""
        return self.status_code in (401, 403)


class Provider(abc.ABC):
    """The interface every LLM provider implements."""

    @abc.abstractmethod
    def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a request and return the full response."""

    @abc.abstractmethod
    def stream(self, request: CompletionRequest) -> Iterator[StreamEvent]:
        """Send a request and return an iterator over stream events.

        Connection errors are raised by this call; failures while reading
        are reported as ``EventType.ERROR`` events.
        """


def iter_sse_data(lines: Iterable[str | bytes]) -> Iterator[str]:
    """Yield the data payload of each server-sent event in ``lines``."""
    data: list[str] = []
    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        line = line.rstrip("\r\n")
        if not line:
            if data:
                yield "\n".join(data)
                data = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name != "data":
            continue
        if value.startswith(" "):
            value = value[1:]
        data.append(value)
    if data:
        yield "\n".join(data)