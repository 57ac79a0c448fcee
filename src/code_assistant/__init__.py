"""code_assistant: streaming coding assistant with directive execution."""

__version__ = "0.1.0"
