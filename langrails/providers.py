"""Factories for hosted and local providers that speak the OpenAI-compatible protocol."""

from __future__ import annotations

from typing import Optional

import httpx

from .compat import CompatConfig, CompatProvider

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEEPSEEK_URL = "https://api.deepseek.com/v1/chat/completions"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
FIREWORKS_URL = "https://api.fireworks.ai/inference/v1/chat/completions"
XAI_URL = "https://api.x.ai/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
TOGETHER_URL = "https://api.together.xyz/v1/chat/completions"
MISTRAL_URL = "https://api.mistral.ai/v1/chat/completions"
COHERE_URL = "https://api.cohere.com/compatibility/v1/chat/completions"
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"
OLLAMA_URL = "http://localhost:11434/v1/chat/completions"

# Local Ollama servers accept any bearer value; this one is sent by default.
_OLLAMA_AUTH = "ollama"


def _compat(
    name: str,
    api_key: str,
    base_url: str,
    http_client: Optional[httpx.Client],
    extra_headers: Optional[dict[str, str]] = None,
) -> CompatProvider:
    return CompatProvider(
        CompatConfig(
            name=name,
            base_url=base_url,
            api_key=api_key,
            extra_headers=dict(extra_headers or {}),
            http_client=http_client,
        )
    )


def openai(
    api_key: str, base_url: str = OPENAI_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create an OpenAI provider; ``base_url`` may point at a proxy or Azure."""
    return _compat("openai", api_key, base_url, http_client)


def deepseek(
    api_key: str, base_url: str = DEEPSEEK_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a DeepSeek provider."""
    return _compat("deepseek", api_key, base_url, http_client)


def groq(
    api_key: str, base_url: str = GROQ_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a Groq provider."""
    return _compat("groq", api_key, base_url, http_client)


def fireworks(
    api_key: str, base_url: str = FIREWORKS_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a Fireworks AI provider."""
    return _compat("fireworks", api_key, base_url, http_client)


def xai(
    api_key: str, base_url: str = XAI_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create an xAI provider."""
    return _compat("xai", api_key, base_url, http_client)


def openrouter(
    api_key: str,
    base_url: str = OPENROUTER_URL,
    http_client: Optional[httpx.Client] = None,
    site_referer: Optional[str] = None,
    site_title: Optional[str] = None,
) -> CompatProvider:
    """Create an OpenRouter provider.

    When a site referer or title is given, both the ``HTTP-Referer`` and
    ``X-Title`` headers are sent for OpenRouter's rankings.
    """
    headers: dict[str, str] = {}
    if site_referer is not None or site_title is not None:
        headers["HTTP-Referer"] = site_referer or ""
        headers["X-Title"] = site_title or ""
    return _compat("openrouter", api_key, base_url, http_client, headers)


def together(
    api_key: str, base_url: str = TOGETHER_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a Together AI provider."""
    return _compat("together", api_key, base_url, http_client)


def mistral(
    api_key: str, base_url: str = MISTRAL_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a Mistral AI provider."""
    return _compat("mistral", api_key, base_url, http_client)


def cohere(
    api_key: str, base_url: str = COHERE_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a Cohere provider."""
    return _compat("cohere", api_key, base_url, http_client)


def perplexity(
    api_key: str, base_url: str = PERPLEXITY_URL, http_client: Optional[httpx.Client] = None
) -> CompatProvider:
    """Create a Perplexity provider."""
    return _compat("perplexity", api_key, base_url, http_client)


def ollama(base_url: str = OLLAMA_URL, http_client: Optional[httpx.Client] = None) -> CompatProvider:
    """Create a provider for a local Ollama server; no key is needed."""
    return _compat("ollama", _OLLAMA_AUTH, base_url, http_client)