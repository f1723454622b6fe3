"""A client for OpenAI-compatible and Gemini LLM APIs with streaming, tool calling, retries, memory, prompts and MCP."""

__version__ = "0.1.0"

__all__ = [
    "compat",
    "core",
    "gemini",
    "mcp",
    "memory",
    "prompt",
    "providers",
    "retry",
    "tools",
]