import json

import httpx
import pytest

from langrails import providers
from langrails.core import CompletionRequest, EventType, Message

KEYED = [
    (providers.openai, "openai", providers.OPENAI_URL),
    (providers.deepseek, "deepseek", providers.DEEPSEEK_URL),
    (providers.groq, "groq", providers.GROQ_URL),
    (providers.fireworks, "fireworks", providers.FIREWORKS_URL),
    (providers.xai, "xai", providers.XAI_URL),
    (providers.openrouter, "openrouter", providers.OPENROUTER_URL),
    (providers.together, "together", providers.TOGETHER_URL),
    (providers.mistral, "mistral", providers.MISTRAL_URL),
    (providers.cohere, "cohere", providers.COHERE_URL),
    (providers.perplexity, "perplexity", providers.PERPLEXITY_URL),
]

COMPLETION = {
    "id": "chatcmpl-123",
    "model": "test-model",
    "choices": [
        {"message": {"role": "assistant", "content": "Hello!"}, "finish_reason": "stop"}
    ],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
}

STREAM_BODY = (
    b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'
    b"data: [DONE]\n\n"
)


def _client(seen, body, content_type="application/json"):
    def handler(request):
        seen.append(request)
        data = body if isinstance(body, bytes) else json.dumps(body).encode()
        return httpx.Response(200, content=data, headers={"Content-Type": content_type})

    return httpx.Client(transport=httpx.MockTransport(handler))


def _request():
    return CompletionRequest(model="test-model", messages=[Message(role="user", content="Hi")])


@pytest.mark.parametrize("factory,name,url", KEYED)
def test_complete(factory, name, url):
    seen = []
    provider = factory("placeholder", base_url="http://test.local/chat", http_client=_client(seen, COMPLETION))
    resp = provider.complete(_request())
    assert resp.content == "Hello!"
    assert resp.usage.total_tokens == 15
    assert seen[0].headers["Authorization"] == "Bearer placeholder"
    assert str(seen[0].url) == "http://test.local/chat"


@pytest.mark.parametrize("factory,name,url", KEYED)
def test_default_url_and_name(factory, name, url):
    seen = []
    provider = factory("placeholder", http_client=_client(seen, COMPLETION))
    provider.complete(_request())
    assert str(seen[0].url) == url
    assert provider.config.name == name


@pytest.mark.parametrize("factory,name,url", KEYED)
def test_stream(factory, name, url):
    seen = []
    provider = factory(
        "placeholder",
        base_url="http://test.local/chat",
        http_client=_client(seen, STREAM_BODY, "text/event-stream"),
    )
    events = list(provider.stream(_request()))
    content = "".join(e.content for e in events if e.type == EventType.CONTENT)
    assert content == "Hi"
    assert events[-1].type == EventType.DONE


def test_ollama_complete():
    seen = []
    body = dict(COMPLETION, model="llama3.2")
    body["choices"] = [
        {"message": {"role": "assistant", "content": "Hello from Ollama!"}, "finish_reason": "stop"}
    ]
    body["usage"] = {"prompt_tokens": 10, "completion_tokens": 8, "total_tokens": 18}
    provider = providers.ollama(base_url="http://test.local/chat", http_client=_client(seen, body))
    resp = provider.complete(_request())
    assert resp.content == "Hello from Ollama!"
    assert resp.usage.total_tokens == 18


def test_ollama_defaults():
    seen = []
    provider = providers.ollama(http_client=_client(seen, COMPLETION))
    provider.complete(_request())
    assert str(seen[0].url) == "http://localhost:11434/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer ollama"
    assert provider.config.name == "ollama"


def test_ollama_stream():
    seen = []
    provider = providers.ollama(
        base_url="http://test.local/chat",
        http_client=_client(seen, STREAM_BODY, "text/event-stream"),
    )
    content = "".join(e.content for e in provider.stream(_request()) if e.type == EventType.CONTENT)
    assert content == "Hi"


def test_openrouter_site_info_headers():
    seen = []
    provider = providers.openrouter(
        "placeholder",
        base_url="http://test.local/chat",
        http_client=_client(seen, COMPLETION),
        site_referer="https://myapp.example.com",
        site_title="My App",
    )
    resp = provider.complete(_request())
    assert resp.content == "Hello!"
    assert seen[0].headers["HTTP-Referer"] == "https://myapp.example.com"
    assert seen[0].headers["X-Title"] == "My App"


def test_openrouter_without_site_info_sends_no_headers():
    seen = []
    provider = providers.openrouter(
        "placeholder", base_url="http://test.local/chat", http_client=_client(seen, COMPLETION)
    )
    provider.complete(_request())
    assert "HTTP-Referer" not in seen[0].headers
    assert "X-Title" not in seen[0].headers