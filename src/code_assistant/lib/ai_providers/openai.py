"""OpenAI provider wrapper."""

from __future__ import annotations

__all__ = ["OPENAI_PROVIDER", "OpenAIProvider"]

import os
from collections.abc import Iterator
from typing import Any

from openai import OpenAI

from code_assistant.lib.ai_providers.types import AIProvider

_MAX_COMPLETION_TOKENS = 4096


class OpenAIProvider(AIProvider):
    """Wrapper around the OpenAI Python SDK client."""

    name = "openai"
    api_key_env_var = "OPENAI_API_KEY"
    base_url_env_var = "OPENAI_BASE_URL"
    default_model = "gpt-4o-mini"

    def _build_inner(self) -> Any:
        """Lazily construct an ``openai.OpenAI`` client.

        Uses ``OPENAI_API_KEY`` and ``OPENAI_BASE_URL`` from the environment
        when available; otherwise falls back to the SDK's default resolution.
        """
        kwargs: dict[str, str] = {}
        api_key = os.environ.get(self.api_key_env_var)
        if api_key:
            kwargs["api_key"] = api_key
        base_url = os.environ.get(self.base_url_env_var)
        if base_url:
            kwargs["base_url"] = base_url
        return OpenAI(**kwargs)

    def _stream_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        **kwargs: Any,
    ) -> Iterator[str]:
        """Call ``inner.chat.completions.create(stream=True)`` and yield deltas."""
        kwargs.setdefault("max_completion_tokens", _MAX_COMPLETION_TOKENS)
        stream = inner.chat.completions.create(
            model=model,
            messages=messages,
            stream=True,
            **kwargs,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            if content:
                yield content


OPENAI_PROVIDER = OpenAIProvider()
