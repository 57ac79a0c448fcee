"""Provider wrapper layer for the LLM backend used by the chat server.

Related interfaces:
- Used by ``code_assistant.server.app`` to stream chat completions.
- ``provider.inner`` exposes the underlying SDK client when needed.
"""

from code_assistant.lib.ai_providers.openai import OPENAI_PROVIDER, OpenAIProvider
from code_assistant.lib.ai_providers.types import AIProvider

PROVIDERS: dict[str, AIProvider] = {
    OPENAI_PROVIDER.name: OPENAI_PROVIDER,
}

__all__ = [
    "OPENAI_PROVIDER",
    "PROVIDERS",
    "AIProvider",
    "OpenAIProvider",
]
