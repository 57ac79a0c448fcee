"""Directive parsing for streamed assistant messages.

- ``types``: frozen directive records and the ``ParsedDirectives`` snapshot.
- ``grammar``: pure tag parsers, one per directive kind.
- ``parser``: memoized whole-buffer parsing and cross-chunk new-directive
  tracking.
"""

from code_assistant.lib.directives.parser import DirectiveTracker, parse_directives
from code_assistant.lib.directives.types import (
    DIRECTIVE_KINDS,
    DeploymentConfig,
    Directive,
    FileEdit,
    PackageInstall,
    ParsedDirectives,
    RAGSourceRef,
    ShellCommand,
    ToolNudge,
    WorkflowConfig,
)

__all__ = [
    "DIRECTIVE_KINDS",
    "DeploymentConfig",
    "Directive",
    "DirectiveTracker",
    "FileEdit",
    "PackageInstall",
    "ParsedDirectives",
    "RAGSourceRef",
    "ShellCommand",
    "ToolNudge",
    "WorkflowConfig",
    "parse_directives",
]
