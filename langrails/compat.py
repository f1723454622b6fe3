"""Provider for OpenAI-compatible chat completion APIs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

import httpx

from .core import (
    APIError,
    CompletionRequest,
    CompletionResponse,
    EventType,
    Provider,
    StreamEvent,
    TokenUsage,
    ToolCall,
    iter_sse_data,
)

_DEFAULT_TIMEOUT = 300.0


@dataclass
class CompatConfig:
    """Settings for an OpenAI-compatible provider.

    ``base_url`` is the full chat completions endpoint. When ``http_client``
    is ``None`` a client with a five-minute timeout is created.
    """

    name: str
    base_url: str
    api_key: str = ""
    extra_headers: dict[str, str] = field(default_factory=dict)
    http_client: Optional[httpx.Client] = None


def _json_value(value: Any, what: str) -> Any:
    """Return ``value`` as a JSON-ready object, parsing str or bytes input."""
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError as exc:
            raise ValueError(f"invalid JSON for {what}: {exc}") from exc
    return value


def enforce_strict_schema(schema: Any) -> Any:
    """Return the schema with ``additionalProperties: false`` at the top level.

    Accepts a mapping or JSON text. Anything that is not a JSON object is
    returned unchanged.
    """
    if isinstance(schema, (str, bytes, bytearray)):
        try:
            text = bytes(schema).decode("utf-8") if not isinstance(schema, str) else schema
            parsed = json.loads(text)
        except ValueError:
            return schema
    else:
        parsed = schema
    if not isinstance(parsed, dict):
        return schema
    return {**parsed, "additionalProperties": False}


def convert_messages(request: CompletionRequest) -> list[dict[str, Any]]:
    """Convert the request's system prompt and messages to the wire format."""
    msgs: list[dict[str, Any]] = []
    if request.system_prompt:
        msgs.append({"role": "system", "content": request.system_prompt})

    for m in request.messages:
        msg: dict[str, Any] = {"role": m.role}
        if m.content_parts:
            parts: list[dict[str, Any]] = []
            for part in m.content_parts:
                if part.type == "text":
                    entry: dict[str, Any] = {"type": "text"}
                    if part.text:
                        entry["text"] = part.text
                    parts.append(entry)
                elif part.type == "image":
                    parts.append({"type": "image_url", "image_url": {"url": part.image_url}})
            msg["content"] = parts
        else:
            msg["content"] = m.content

        if m.tool_call_id:
            msg["tool_call_id"] = m.tool_call_id
        if m.tool_calls:
            msg["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": tc.arguments},
                }
                for tc in m.tool_calls
            ]
        msgs.append(msg)
    return msgs


def _reasoning_effort(budget: Optional[int]) -> str:
    if budget is not None:
        if budget <= 1024:
            return "low"
        if budget >= 16384:
            return "high"
    return "medium"


def _usage(data: Any) -> TokenUsage:
    if not isinstance(data, dict):
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=int(data.get("prompt_tokens") or 0),
        completion_tokens=int(data.get("completion_tokens") or 0),
        total_tokens=int(data.get("total_tokens") or 0),
    )


class CompatProvider(Provider):
    """A provider speaking the OpenAI chat completions protocol."""

    def __init__(self, config: CompatConfig) -> None:
        self.config = config
        self._client = config.http_client or httpx.Client(timeout=_DEFAULT_TIMEOUT)

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a non-streaming completion request."""
        name = self.config.name
        body = self._build_body(request, stream=False)
        try:
            resp = self._client.post(
                self.config.base_url, content=json.dumps(body), headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise ConnectionError(f"{name}: request failed: {exc}") from exc

        if resp.status_code != 200:
            raise self._api_error(resp.status_code, resp.content)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ValueError(f"{name}: failed to parse response: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"{name}: failed to parse response: not an object")
        return self._parse_response(payload)

    def stream(self, request: CompletionRequest) -> Iterator[StreamEvent]:
        """Open a streaming request and return an iterator of events."""
        name = self.config.name
        body = self._build_body(request, stream=True)
        http_request = self._client.build_request(
            "POST", self.config.base_url, content=json.dumps(body), headers=self._headers()
        )
        try:
            resp = self._client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            raise ConnectionError(f"{name}: request failed: {exc}") from exc

        if resp.status_code != 200:
            try:
                raw = resp.read()
            except httpx.HTTPError:
                raw = b""
            finally:
                resp.close()
            raise self._api_error(resp.status_code, raw)
        return self._read_stream(resp)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": "Bearer " + self.config.api_key,
        }
        headers.update(self.config.extra_headers)
        return headers

    def _api_error(self, status: int, raw: bytes) -> APIError:
        message = f"status {status}"
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            text = data["error"].get("message")
            if isinstance(text, str) and text:
                message = text
        return APIError(status_code=status, message=message, provider=self.config.name)

    def _read_stream(self, resp: httpx.Response) -> Iterator[StreamEvent]:
        name = self.config.name
        pending: list[ToolCall] = []

        def flush() -> Iterator[StreamEvent]:
            for call in pending:
                yield StreamEvent(type=EventType.TOOL_CALL, tool_call=call)
            yield StreamEvent(type=EventType.DONE)

        try:
            try:
                for data in iter_sse_data(resp.iter_lines()):
                    if data == "[DONE]":
                        yield from flush()
                        return
                    try:
                        chunk = json.loads(data)
                        if not isinstance(chunk, dict):
                            raise ValueError("chunk is not an object")
                    except ValueError as exc:
                        yield StreamEvent(
                            type=EventType.ERROR,
                            error=ValueError(f"{name}: failed to parse stream chunk: {exc}"),
                        )
                        return

                    choices = chunk.get("choices") or []
                    if not choices:
                        continue
                    choice = choices[0] if isinstance(choices[0], dict) else {}
                    delta = choice.get("delta") or {}

                    text = delta.get("content") or ""
                    if text:
                        yield StreamEvent(type=EventType.CONTENT, content=text)

                    for tc in delta.get("tool_calls") or []:
                        index = int(tc.get("index") or 0)
                        while len(pending) <= index:
                            pending.append(ToolCall())
                        call = pending[index]
                        if tc.get("id"):
                            call.id = tc["id"]
                        function = tc.get("function") or {}
                        if function.get("name"):
                            call.name = function["name"]
                        call.arguments += function.get("arguments") or ""

                    if choice.get("finish_reason") in ("stop", "tool_calls"):
                        if chunk.get("usage") is not None:
                            yield StreamEvent(usage=_usage(chunk["usage"]))
            except httpx.HTTPError as exc:
                yield StreamEvent(
                    type=EventType.ERROR,
                    error=ConnectionError(f"{name}: stream read error: {exc}"),
                )
                return
            yield from flush()
        finally:
            resp.close()

    def _build_body(self, request: CompletionRequest, stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": convert_messages(request),
            "stream": stream,
        }
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.top_p is not None:
            body["top_p"] = request.top_p
        if request.frequency_penalty is not None:
            body["frequency_penalty"] = request.frequency_penalty
        if request.presence_penalty is not None:
            body["presence_penalty"] = request.presence_penalty
        if request.stop:
            body["stop"] = list(request.stop)
        if request.seed is not None:
            body["seed"] = request.seed

        if request.thinking:
            body["reasoning"] = {"effort": _reasoning_effort(request.thinking_budget)}

        if request.tools:
            body["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": _json_value(t.parameters, f"tool {t.name!r} parameters"),
                    },
                }
                for t in request.tools
            ]

        if request.output_schema is not None:
            schema = _json_value(enforce_strict_schema(request.output_schema), "output schema")
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": schema, "strict": True},
            }
        return body

    def _parse_response(self, payload: dict[str, Any]) -> CompletionResponse:
        result = CompletionResponse(
            model=payload.get("model") or "",
            usage=_usage(payload.get("usage")),
        )
        choices = payload.get("choices") or []
        if choices:
            choice = choices[0]
            message = choice.get("message") or {}
            result.content = message.get("content") or ""
            result.finish_reason = choice.get("finish_reason") or ""
            for tc in message.get("tool_calls") or []:
                function = tc.get("function") or {}
                result.tool_calls.append(
                    ToolCall(
                        id=tc.get("id") or "",
                        name=function.get("name") or "",
                        arguments=function.get("arguments") or "",
                    )
                )
        return result