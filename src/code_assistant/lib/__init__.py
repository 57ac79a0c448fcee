"""Core library: directive parsing, stream control, actions and providers.

Primary namespaces:
- ``code_assistant.lib.directives`` for the tag grammar and incremental parser.
- ``code_assistant.lib.stream`` for SSE framing and the stream controller.
- ``code_assistant.lib.actions`` for the policy, queue, executors and batches.
- ``code_assistant.lib.ai_providers`` for provider wrappers and defaults.
- ``code_assistant.lib.meta`` for shared cross-cutting tooling.
"""
