"""Conversation history with message-count and token limits."""

from __future__ import annotations

import copy
import threading

from .core import Message

_ROLE_OVERHEAD = 4


def estimate_tokens(text: str) -> int:
    """Estimate tokens in ``text`` at roughly four bytes per token."""
    return len(text.encode("utf-8")) // 4 + 1


class Memory:
    """Thread-safe conversation history.

    When ``max_messages`` or ``max_tokens`` (0 means unlimited) is exceeded,
    the oldest messages are dropped, keeping leading system messages and
    always the most recent message.
    """

    def __init__(self, max_messages: int = 0, max_tokens: int = 0) -> None:
        self.max_messages = max_messages
        self.max_tokens = max_tokens
        self._messages: list[Message] = []
        self._lock = threading.RLock()

    def add(self, message: Message) -> None:
        """Append a message and trim to the configured limits."""
        with self._lock:
            self._messages.append(message)
            self._trim()

    def add_user_message(self, content: str) -> None:
        """Append a user message."""
        self.add(Message(role="user", content=content))

    def add_assistant_message(self, content: str) -> None:
        """Append an assistant message."""
        self.add(Message(role="assistant", content=content))

    def messages(self) -> list[Message]:
        """Return a copy of the conversation history."""
        with self._lock:
            return [copy.copy(m) for m in self._messages]

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def token_count(self) -> int:
        """Return the estimated token count of all messages."""
        with self._lock:
            return self._token_count()

    def clear(self) -> None:
        """Remove all messages."""
        with self._lock:
            self._messages.clear()

    def last(self, n: int) -> list[Message]:
        """Return copies of the last ``n`` messages, or all if fewer exist."""
        with self._lock:
            if n >= len(self._messages):
                selected = self._messages
            elif n <= 0:
                selected = []
            else:
                selected = self._messages[-n:]
            return [copy.copy(m) for m in selected]

    def _token_count(self) -> int:
        return sum(estimate_tokens(m.content) + _ROLE_OVERHEAD for m in self._messages)

    def _trim(self) -> None:
        if self.max_messages > 0 and len(self._messages) > self.max_messages:
            self._remove_oldest(len(self._messages) - self.max_messages)

        if self.max_tokens > 0:
            while self._token_count() > self.max_tokens and len(self._messages) > 1:
                if not self._remove_oldest(1):
                    break

    def _remove_oldest(self, n: int) -> int:
        """Remove up to ``n`` oldest non-system messages; return how many went."""
        start = 0
        while start < len(self._messages) and self._messages[start].role == "system":
            start += 1
        removable = max(0, min(n, len(self._messages) - 1 - start))
        del self._messages[start : start + removable]
        return removable