"""Provider for Google's Gemini generateContent API."""

from __future__ import annotations

import json
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

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
THOUGHT_SIGNATURE = "thoughtSignature"

_DEFAULT_TIMEOUT = 300.0
_PROVIDER = "gemini"


def _as_json(value: Any, what: str) -> Any:
    """Return ``value`` as a JSON-ready object, parsing str or bytes input."""
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError as exc:
            raise ValueError(f"gemini: invalid JSON for {what}: {exc}") from exc
    return value


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def _parse_object(text: str) -> Optional[dict[str, Any]]:
    """Parse ``text`` as a JSON object; None when it is anything else."""
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _usage(data: Any) -> TokenUsage:
    if not isinstance(data, dict):
        return TokenUsage()
    return TokenUsage(
        prompt_tokens=int(data.get("promptTokenCount") or 0),
        completion_tokens=int(data.get("candidatesTokenCount") or 0),
        total_tokens=int(data.get("totalTokenCount") or 0),
    )


def _tool_call(function_call: dict[str, Any]) -> ToolCall:
    name = function_call.get("name") or ""
    # Gemini does not assign call IDs, so the function name stands in.
    call = ToolCall(id=name, name=name, arguments=_compact(function_call.get("args")))
    signature = function_call.get(THOUGHT_SIGNATURE)
    if signature:
        call.metadata = {THOUGHT_SIGNATURE: signature}
    return call


def _first_candidate(payload: dict[str, Any]) -> Optional[dict[str, Any]]:
    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return None
    return candidates[0]


def _parts(candidate: dict[str, Any]) -> list[dict[str, Any]]:
    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        return []
    return [p for p in content.get("parts") or [] if isinstance(p, dict)]


def convert_messages(request: CompletionRequest) -> list[dict[str, Any]]:
    """Convert the request's messages to Gemini ``contents``.

    Assistant messages take the ``model`` role, tool results become user
    messages with a ``functionResponse`` part, and tool calls become
    ``functionCall`` parts.
    """
    contents: list[dict[str, Any]] = []
    for m in request.messages:
        role = "model" if m.role == "assistant" else m.role
        if m.role == "tool":
            response = _parse_object(m.content)
            if response is None:
                response = {"result": m.content}
            contents.append(
                {
                    "role": "user",
                    "parts": [
                        {"functionResponse": {"name": m.tool_call_id, "response": response}}
                    ],
                }
            )
        elif m.tool_calls:
            parts = []
            for tc in m.tool_calls:
                function_call: dict[str, Any] = {
                    "name": tc.name,
                    "args": _parse_object(tc.arguments),
                }
                signature = (tc.metadata or {}).get(THOUGHT_SIGNATURE)
                if signature:
                    function_call[THOUGHT_SIGNATURE] = signature
                parts.append({"functionCall": function_call})
            contents.append({"role": role, "parts": parts})
        else:
            part = {"text": m.content} if m.content else {}
            contents.append({"role": role, "parts": [part]})
    return contents


class GeminiProvider(Provider):
    """A provider for Gemini models; the API key travels in the query string."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self._client = http_client or httpx.Client(timeout=_DEFAULT_TIMEOUT)

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a non-streaming completion request."""
        body = self._build_body(request)
        url = f"{self.base_url}/{request.model}:generateContent"
        try:
            resp = self._client.post(
                url,
                params={"key": self.api_key},
                content=json.dumps(body),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ConnectionError(f"gemini: request failed: {exc}") from exc

        if resp.status_code != 200:
            raise self._api_error(resp.status_code, resp.content)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ValueError(f"gemini: failed to parse response: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValueError("gemini: failed to parse response: not an object")
        return self._parse_response(payload)

    def stream(self, request: CompletionRequest) -> Iterator[StreamEvent]:
        """Open a streaming request and return an iterator of events."""
        body = self._build_body(request)
        url = f"{self.base_url}/{request.model}:streamGenerateContent"
        http_request = self._client.build_request(
            "POST",
            url,
            params={"alt": "sse", "key": self.api_key},
            content=json.dumps(body),
            headers={"Content-Type": "application/json"},
        )
        try:
            resp = self._client.send(http_request, stream=True)
        except httpx.HTTPError as exc:
            raise ConnectionError(f"gemini: request failed: {exc}") from exc

        if resp.status_code != 200:
            try:
                raw = resp.read()
            except httpx.HTTPError:
                raw = b""
            finally:
                resp.close()
            raise self._api_error(resp.status_code, raw)
        return self._read_stream(resp)

    @staticmethod
    def _api_error(status: int, raw: bytes) -> APIError:
        message = f"status {status}"
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            text = data["error"].get("message")
            if isinstance(text, str) and text:
                message = text
        return APIError(status_code=status, message=message, provider=_PROVIDER)

    def _read_stream(self, resp: httpx.Response) -> Iterator[StreamEvent]:
        try:
            try:
                for data in iter_sse_data(resp.iter_lines()):
                    try:
                        payload = json.loads(data)
                        if payload is None:
                            payload = {}
                        if not isinstance(payload, dict):
                            raise ValueError("chunk is not an object")
                    except ValueError as exc:
                        yield StreamEvent(
                            type=EventType.ERROR,
                            error=ValueError(f"gemini: failed to parse stream chunk: {exc}"),
                        )
                        return

                    candidate = _first_candidate(payload)
                    if candidate is None:
                        continue

                    for part in _parts(candidate):
                        text = part.get("text") or ""
                        if text:
                            yield StreamEvent(type=EventType.CONTENT, content=text)
                        function_call = part.get("functionCall")
                        if isinstance(function_call, dict):
                            yield StreamEvent(
                                type=EventType.TOOL_CALL, tool_call=_tool_call(function_call)
                            )

                    if candidate.get("finishReason") == "STOP" and payload.get(
                        "usageMetadata"
                    ) is not None:
                        yield StreamEvent(usage=_usage(payload["usageMetadata"]))
            except httpx.HTTPError as exc:
                yield StreamEvent(
                    type=EventType.ERROR,
                    error=ConnectionError(f"gemini: stream read error: {exc}"),
                )
                return
            yield StreamEvent(type=EventType.DONE)
        finally:
            resp.close()

    @staticmethod
    def _build_body(request: CompletionRequest) -> dict[str, Any]:
        body: dict[str, Any] = {"contents": convert_messages(request)}

        if request.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}

        config: dict[str, Any] = {}
        if request.temperature is not None:
            config["temperature"] = request.temperature
        if request.max_tokens is not None:
            config["maxOutputTokens"] = request.max_tokens
        if request.top_p is not None:
            config["topP"] = request.top_p
        if request.top_k is not None:
            config["topK"] = request.top_k
        if request.stop:
            config["stopSequences"] = list(request.stop)
        if request.output_schema is not None:
            config["responseMimeType"] = "application/json"
            config["responseSchema"] = _as_json(request.output_schema, "output schema")
        if config:
            body["generationConfig"] = config

        if request.tools:
            body["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": t.name,
                            "description": t.description,
                            "parameters": _as_json(t.parameters, f"tool {t.name!r} parameters"),
                        }
                        for t in request.tools
                    ]
                }
            ]
        return body

    @staticmethod
    def _parse_response(payload: dict[str, Any]) -> CompletionResponse:
        result = CompletionResponse()
        if payload.get("usageMetadata") is not None:
            result.usage = _usage(payload["usageMetadata"])

        candidate = _first_candidate(payload)
        if candidate is not None:
            result.finish_reason = candidate.get("finishReason") or ""
            for part in _parts(candidate):
                text = part.get("text") or ""
                if text:
                    result.content += text
                function_call = part.get("functionCall")
                if isinstance(function_call, dict):
                    result.tool_calls.append(_tool_call(function_call))
        return result