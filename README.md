# langrails

langrails is a small library for sending chat requests to large language
model APIs through a single interface. A provider has two methods:
`complete(request)` returns a whole `CompletionResponse`, and
`stream(request)` returns an iterator of `StreamEvent` objects.

The data model lives in `langrails.core`: `Message`, `ContentPart` (with the
helpers `text_part`, `image_url_part` and `image_base64_part`),
`ToolDefinition`, `ToolCall`, `CompletionRequest`, `CompletionResponse`,
`TokenUsage`, `StreamEvent`, `EventType`, `APIError` and the abstract
`Provider` base class.

Providers:

- `langrails.compat.CompatProvider` speaks the OpenAI chat-completions
  protocol. `langrails.providers` has ready-made constructors for it:
  `openai`, `deepseek`, `groq`, `fireworks`, `xai`, `openrouter`, `together`,
  `mistral`, `cohere`, `perplexity` and `ollama`.
- `langrails.gemini.GeminiProvider` talks to Google's Gemini API.

Helpers:

- `langrails.retry` – retries with exponential backoff on rate limits and
  server errors.
- `langrails.memory` – conversation history limited by message count or
  estimated tokens.
- `langrails.prompt` – templates with `{{ name }}` variables, filters and
  simple `if`/`range`/`with` blocks, plus a `Builder`.
- `langrails.tools` – a loop that runs tool calls until the model answers.
- `langrails.mcp` – a client for Model Context Protocol servers, usable as
  the tool executor.

The only runtime dependency is `httpx`.

## Making a request

```python
from langrails.core import CompletionRequest, Message
from langrails.providers import openai

provider = openai(api_key="placeholder")

response = provider.complete(
    CompletionRequest(
        model="gpt-4o",
        system_prompt="Be concise.",
        messages=[Message(role="user", content="Hello!")],
    )
)
print(response.content)
print(response.usage.total_tokens)
```

Every constructor in `langrails.providers` takes `base_url` (to use a proxy
or another endpoint) and `http_client` (an `httpx.Client`). `ollama()` needs
no key and defaults to `http://localhost:11434/v1/chat/completions`.
`openrouter()` also accepts `site_referer` and `site_title`, sent as the
`HTTP-Referer` and `X-Title` headers.

For any other OpenAI-compatible service, build the provider directly:

```python
from langrails.compat import CompatConfig, CompatProvider

provider = CompatProvider(
    CompatConfig(
        name="local",
        base_url="http://localhost:8000/v1/chat/completions",
        api_key="placeholder",
        extra_headers={"X-Custom": "value"},
    )
)
```

For Gemini:

```python
from langrails.gemini import GeminiProvider

provider = GeminiProvider(api_key="placeholder")
```

Optional request fields – `temperature`, `max_tokens`, `top_p`, `top_k`,
`frequency_penalty`, `presence_penalty`, `stop`, `seed`, `tools`,
`output_schema` and `thinking`/`thinking_budget` – are only sent when set.
The OpenAI-compatible provider turns `output_schema` into a strict
`json_schema` response format (adding `additionalProperties: false` at the
top level) and `thinking` into a reasoning effort of `low`, `medium` or
`high` depending on `thinking_budget`; it does not send `top_k`. Gemini sends
`output_schema` as its `responseSchema` with a JSON MIME type. Tool
parameters and schemas may be given as dicts or as JSON text.

Messages with `content_parts` carry text and images together; the
OpenAI-compatible provider sends them as multimodal parts.

## Streaming

```python
from langrails.core import EventType

for event in provider.stream(request):
    if event.type is EventType.CONTENT:
        print(event.content, end="", flush=True)
    elif event.type is EventType.TOOL_CALL:
        print("tool call:", event.tool_call.name, event.tool_call.arguments)
    elif event.type is EventType.ERROR:
        raise event.error
    elif event.usage is not None:
        print("usage:", event.usage.total_tokens)
```

Events that only carry token usage have no type. The OpenAI-compatible
provider gathers tool-call fragments during the stream and emits the
complete calls just before the final `DONE` event; Gemini emits each tool
call as it arrives. Gemini gives no call IDs, so a tool call's ID is its
function name.

## Errors and retries

Opening a request raises `APIError` when the server answers with a non-200
status; it carries `status_code`, `message` and `provider`.
`is_retryable()` is true for status 429 and 5xx, and `is_auth_error()` for
401 and 403. Network failures raise `ConnectionError`. Failures while a
stream is being read arrive as `ERROR` events instead.

```python
from langrails.retry import with_retry

provider = with_retry(openai(api_key="placeholder"), 3)
```

The wrapped provider makes one attempt and up to three retries, waiting one
second, then two, then four (`base_delay` sets the first wait). Errors that
are not retryable are raised at once. For a stream, only opening it is
retried. Both `complete` and `stream` accept a `cancel` argument, a
`threading.Event`; once it is set, waiting stops and the last error is
raised.

## Conversation memory

```python
from langrails.memory import Memory

memory = Memory(max_messages=50)
memory.add_user_message("Hello!")
memory.add_assistant_message("Hi there!")

request = CompletionRequest(model="gpt-4o", messages=memory.messages())
print(len(memory), memory.token_count(), memory.last(1))
```

With `max_messages` or `max_tokens` set (0 means unlimited), the oldest
messages are dropped; system messages at the start and the newest message
are always kept. Tokens are estimated at about four bytes each plus four per
message. `Memory` is safe to share between threads.

## Prompt templates

```python
from langrails.prompt import Builder, Template

greeting = Template("greeting", "Hello {{ name | upper }}, you are a {{ role }}.")
print(greeting.render({"name": "alice", "role": "admin"}))

builder = Builder()
builder.add_line("You are a helpful assistant.")
builder.add_line("The user's name is {{ name }}.")
builder.add_section("Rules", "- Be concise\n- Be accurate")
print(builder.build({"name": "Alice"}))
```

Built-in functions are `join`, `upper`, `lower`, `trim`, `contains`,
`replace` and `default`. Blocks use `{{if .x}}`, `{{range .x}}` and
`{{with .x}}` with `{{else}}` and `{{end}}`. A missing key renders as
`<no value>`. A template that cannot be parsed or rendered raises
`TemplateError`.

## Tool calling

`run_loop` sends the request, runs every tool call the model asks for,
appends the assistant and tool messages to `request.messages`, and asks
again until the model answers without tool calls. It raises `ToolLoopError`
after 20 rounds unless `max_iterations` says otherwise. A failing tool does
not stop the loop; its error is sent back to the model as
`{"error": "..."}`. `on_tool_call` is called after each tool with the call,
its result and the exception, if any.

```python
import json

from langrails.core import ToolDefinition
from langrails.tools import MapExecutor, run_loop

def get_weather(arguments):
    city = json.loads(arguments)["city"]
    return json.dumps({"city": city, "temp": 22})

request = CompletionRequest(
    model="gpt-4o",
    messages=[Message(role="user", content="Weather in Istanbul?")],
    tools=[
        ToolDefinition(
            name="get_weather",
            description="Get current weather for a city",
            parameters={"type": "object", "properties": {"city": {"type": "string"}}},
        )
    ],
)

result = run_loop(provider, request, MapExecutor({"get_weather": get_weather}))
print(result.response.content, result.iterations, result.total_usage.total_tokens)
```

## MCP servers

`MCPClient` connects to an MCP endpoint over HTTP JSON-RPC, initialises a
session, discovers the server's tools and runs them. It is an `Executor`, so
it can be passed straight to `run_loop`.

```python
from langrails.mcp import MCPClient

with MCPClient("http://localhost:8080/mcp", bearer_token="token") as client:
    request.tools = client.tool_definitions()
    result = run_loop(provider, request, client)
```

`api_key` sets an `X-API-Key` header and `headers` adds any others.
`refresh_tools()` asks the server for its tools again. Failures talking to
the server raise `MCPError`.

## What is not included

- Only OpenAI-compatible services and Gemini are supported; there is no
  provider for Anthropic's Claude models.
- Providers are created with their own constructors; there is no lookup
  that builds a provider from a name string.
- The library is synchronous; there is no asyncio interface.