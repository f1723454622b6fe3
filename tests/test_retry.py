import threading

import pytest

from langrails.core import (
    APIError,
    CompletionRequest,
    CompletionResponse,
    EventType,
    Provider,
    StreamEvent,
)
from langrails.retry import RetryProvider, with_retry


class MockProvider(Provider):
    def __init__(self, complete_func=None, stream_func=None):
        self.complete_func = complete_func
        self.stream_func = stream_func
        self.calls = 0

    def complete(self, request):
        self.calls += 1
        return self.complete_func(self.calls)

    def stream(self, request):
        self.calls += 1
        return self.stream_func(self.calls)


def test_succeeds_first_attempt():
    inner = MockProvider(complete_func=lambda n: CompletionResponse(content="hello"))
    provider = with_retry(inner, 3, base_delay=0.001)
    resp = provider.complete(CompletionRequest())
    assert resp.content == "hello"
    assert inner.calls == 1


def test_retries_on_server_error():
    def complete(n):
        if n < 3:
            raise APIError(500, "server error", "test")
        return CompletionResponse(content="ok")

    inner = MockProvider(complete_func=complete)
    provider = with_retry(inner, 3, base_delay=0.001)
    assert provider.complete(CompletionRequest()).content == "ok"
    assert inner.calls == 3


def test_does_not_retry_auth_error():
    def complete(n):
        raise APIError(401, "unauthorized", "test")

    inner = MockProvider(complete_func=complete)
    provider = with_retry(inner, 3, base_delay=0.001)
    with pytest.raises(APIError) as info:
        provider.complete(CompletionRequest())
    assert info.value.status_code == 401
    assert inner.calls == 1


def test_respects_cancellation():
    def complete(n):
        raise APIError(429, "rate limited", "test")

    inner = MockProvider(complete_func=complete)
    cancel = threading.Event()
    cancel.set()
    provider = with_retry(inner, 3, base_delay=1.0)
    with pytest.raises(APIError) as info:
        provider.complete(CompletionRequest(), cancel=cancel)
    assert info.value.status_code == 429
    assert inner.calls == 1


def test_exhausts_retries():
    def complete(n):
        raise APIError(500, "always fails", "test")

    inner = MockProvider(complete_func=complete)
    provider = with_retry(inner, 2, base_delay=0.001)
    with pytest.raises(APIError):
        provider.complete(CompletionRequest())
    assert inner.calls == 3


def test_does_not_retry_non_api_error():
    def complete(n):
        raise ConnectionError("network error")

    inner = MockProvider(complete_func=complete)
    provider = with_retry(inner, 3, base_delay=0.001)
    with pytest.raises(ConnectionError):
        provider.complete(CompletionRequest())
    assert inner.calls == 1


def test_stream_success():
    inner = MockProvider(
        stream_func=lambda n: iter([StreamEvent(type=EventType.CONTENT, content="hi")])
    )
    provider = with_retry(inner, 3, base_delay=0.001)
    events = provider.stream(CompletionRequest())
    assert next(events).content == "hi"


def test_stream_retries_on_error():
    def stream(n):
        if n < 2:
            raise APIError(500, "fail", "test")
        return iter([StreamEvent(type=EventType.DONE)])

    inner = MockProvider(stream_func=stream)
    provider = with_retry(inner, 3, base_delay=0.001)
    events = list(provider.stream(CompletionRequest()))
    assert inner.calls == 2
    assert events[0].type is EventType.DONE


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        RetryProvider(MockProvider(), -1)