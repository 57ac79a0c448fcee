from __future__ import annotations

from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any
from unittest import mock

from code_assistant.lib.ai_providers import OPENAI_PROVIDER, PROVIDERS
from code_assistant.lib.ai_providers.openai import OpenAIProvider
from code_assistant.lib.ai_providers.types import AIProvider, normalize_messages


class _FakeProvider(AIProvider):
    name = "fake"
    api_key_env_var = "FAKE_API_KEY"
    default_model = "fake-model"

    def __init__(self, *, inner: Any | None = None) -> None:
        super().__init__(inner=inner)
        self.calls: list[dict[str, Any]] = []

    def _build_inner(self) -> Any:
        return {"client": "fake"}

    def _stream_impl(
        self,
        *,
        inner: Any,
        messages: list[dict[str, str]],
        model: str,
        **kwargs: Any,
    ) -> Iterator[str]:
        self.calls.append(
            {"inner": inner, "messages": messages, "model": model, "kwargs": kwargs}
        )
        yield "Hel"
        yield "lo"


def _chunk(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=content))]
    )


def test_normalize_messages_from_string() -> None:
    assert normalize_messages("hello") == [{"role": "user", "content": "hello"}]


def test_normalize_messages_from_sequence() -> None:
    messages = [{"role": "system", "content": "rules"}, {"content": "hi"}]
    assert normalize_messages(messages) == [
        {"role": "system", "content": "rules"},
        {"role": "user", "content": "hi"},
    ]


def test_base_provider_complete_uses_default_model() -> None:
    provider = _FakeProvider(inner={"client": "injected"})
    assert provider.complete("do work", temperature=0.1) == "Hello"
    (call,) = provider.calls
    assert call["messages"] == [{"role": "user", "content": "do work"}]
    assert call["model"] == "fake-model"
    assert call["inner"] == {"client": "injected"}
    assert call["kwargs"] == {"temperature": 0.1}


def test_base_provider_explicit_model() -> None:
    provider = _FakeProvider()
    list(provider.stream("hi", model="other-model"))
    assert provider.calls[0]["model"] == "other-model"
    assert provider.inner == {"client": "fake"}


def test_provider_registry() -> None:
    assert isinstance(OPENAI_PROVIDER, OpenAIProvider)
    assert set(PROVIDERS) == {"openai"}


def test_openai_provider_streams_deltas() -> None:
    calls: dict[str, Any] = {}

    class _Completions:
        def create(self, **kwargs: Any) -> list[SimpleNamespace]:
            calls.update(kwargs)
            return [
                _chunk("Hel"),
                SimpleNamespace(choices=[]),
                _chunk(None),
                _chunk("lo"),
            ]

    class _Inner:
        chat = SimpleNamespace(completions=_Completions())

    provider = OpenAIProvider(inner=_Inner())
    assert list(provider.stream("hello")) == ["Hel", "lo"]
    assert calls["model"] == "gpt-4o-mini"
    assert calls["messages"] == [{"role": "user", "content": "hello"}]
    assert calls["stream"] is True
    assert calls["max_completion_tokens"] == 4096


def test_openai_provider_kwargs_override_token_limit() -> None:
    calls: dict[str, Any] = {}

    class _Completions:
        def create(self, **kwargs: Any) -> list[SimpleNamespace]:
            calls.update(kwargs)
            return []

    class _Inner:
        chat = SimpleNamespace(completions=_Completions())

    OpenAIProvider(inner=_Inner()).complete("hi", max_completion_tokens=10)
    assert calls["max_completion_tokens"] == 10


def test_openai_build_inner_reads_env(monkeypatch: Any) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_BASE_URL", "http://llm.local/v1")
    with mock.patch("code_assistant.lib.ai_providers.openai.OpenAI") as openai_cls:
        inner = OpenAIProvider().inner
    openai_cls.assert_called_once_with(api_key="sk-test", base_url="http://llm.local/v1")
    assert inner is openai_cls.return_value


def test_openai_build_inner_without_env(monkeypatch: Any) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    with mock.patch("code_assistant.lib.ai_providers.openai.OpenAI") as openai_cls:
        inner = OpenAIProvider().inner
    openai_cls.assert_called_once_with()
    assert inner is openai_cls.return_value
