"""Shared provider wrapper interface and helpers.

The classes in ``code_assistant.lib.ai_providers`` are thin wrappers around
provider-specific SDK clients. They expose a common streaming chat interface
while still allowing backend-specific access via ``provider.inner``.
"""

from __future__ import annotations

import abc
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

PromptInput = str | Sequence[Mapping[str, str]]


def normalize_messages(prompt_or_messages: PromptInput) -> list[dict[str, str]]:
    """Normalize caller input into chat-style ``[{role, content}]`` messages."""
    if isinstance(prompt_or_messages, str):
        return [{"role": "user", "content": prompt_or_messages}]

    normalized: list[dict[str, str]] = []
    for msg in prompt_or_messages:
        role = str(msg.get("role", "user"))
        content = str(msg.get("content", ""))
        normalized.append({"role": role, "content": content})
    return normalized


class AIProvider(abc.ABC):
    """Common provider wrapper interface with lazy inner client loading."""

    name: str
    api_key_env_var: str
    default_model: str

    def __init__(self, *, inner: Any | None = None) -> None:
        """Initialise a provider wrapper.

        Args:
            inner: Pre-built SDK client. When ``None`` (default), the client
                is lazily constructed on first access via ``_build_inner``.
        """
        self._inner = inner

    @property
    def inner(self) -> Any:
        """Provider-specific underlying SDK object."""
        if self._inner is None:
            self._inner = self._build_inner()
        return self._inner

    @abc.abstractmethod
    def _build_inner(self) -> Any:
        """Construct the provider-specific SDK client/module."""

    @abc.abstractmethod
    def _stream_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        **kwargs: Any,
    ) -> Iterator[str]:
        """Provider-specific streaming call yielding text deltas."""

    def resolve_model(self, model: str | None) -> str:
        if not model or model == "default":
            return self.default_model
        return model

    def stream(
        self,
        prompt_or_messages: PromptInput,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> Iterator[str]:
        """Stream text deltas for a chat completion."""
        messages = normalize_messages(prompt_or_messages)
        return self._stream_impl(
            inner=self.inner,
            messages=messages,
            model=self.resolve_model(model),
            **kwargs,
        )

    def complete(
        self,
        prompt_or_messages: PromptInput,
        *,
        model: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Run a chat completion and return the concatenated text."""
        return "".join(self.stream(prompt_or_messages, model=model, **kwargs))
