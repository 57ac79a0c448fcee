"""Incremental message parsing over a growing stream buffer.

``parse_directives`` re-scans the whole buffer on every call. It is pure and
memoized by buffer content, so calling it once per streamed chunk is cheap for
buffers bounded by one chat message.

Detecting *new* directives is the caller's job: ``DirectiveTracker`` keeps the
keys already reported during one stream and returns only directives whose key
has not been seen, so a directive is reported once no matter how the buffer
was chunked.
"""

from __future__ import annotations

__all__ = ["DirectiveTracker", "parse_directives"]

import logging
from collections.abc import Hashable, Iterable
from functools import lru_cache
from typing import TypeVar

from code_assistant.lib.directives import grammar
from code_assistant.lib.directives.types import (
    DIRECTIVE_KINDS,
    Directive,
    ParsedDirectives,
)

logger = logging.getLogger(__name__)

_D = TypeVar("_D", bound=Directive)


def _unique(items: Iterable[_D]) -> tuple[_D, ...]:
    """Drop later items whose key repeats an earlier one."""
    seen: set[Hashable] = set()
    unique: list[_D] = []
    for item in items:
        if item.key in seen:
            continue
        seen.add(item.key)
        unique.append(item)
    return tuple(unique)


@lru_cache(maxsize=256)
def parse_directives(buffer: str) -> ParsedDirectives:
    """Parse every directive kind out of *buffer*."""
    return ParsedDirectives(
        file_edits=_unique(grammar.parse_file_edits(buffer)),
        shell_commands=_unique(grammar.parse_shell_commands(buffer)),
        package_installs=_unique(grammar.parse_package_installs(buffer)),
        workflow_configs=_unique(grammar.parse_workflow_configs(buffer)),
        deployment_configs=_unique(grammar.parse_deployment_configs(buffer)),
        tool_nudges=_unique(grammar.parse_tool_nudges(buffer)),
        rag_sources=_unique(grammar.parse_rag_sources(buffer)),
        action_summary=grammar.parse_action_summary(buffer),
    )


class DirectiveTracker:
    """Report each directive the first time its key appears in a snapshot."""

    def __init__(self) -> None:
        self._seen: dict[str, set[Hashable]] = {kind: set() for kind in DIRECTIVE_KINDS}
        self.action_summary: str | None = None

    def observe(self, parsed: ParsedDirectives) -> list[Directive]:
        """Return directives in *parsed* that were not reported before."""
        fresh: list[Directive] = []
        for kind in DIRECTIVE_KINDS:
            seen = self._seen[kind]
            for directive in parsed.kind(kind):
                if directive.key in seen:
                    continue
                seen.add(directive.key)
                fresh.append(directive)
        if self.action_summary is None and parsed.action_summary is not None:
            self.action_summary = parsed.action_summary
        if fresh:
            logger.debug("Detected %d new directive(s)", len(fresh))
        return fresh

    def seen_count(self) -> int:
        return sum(len(keys) for keys in self._seen.values())

    def reset(self) -> None:
        for keys in self._seen.values():
            keys.clear()
        self.action_summary = None
