"""Utility helpers shared across mcplink."""

from .exceptions import (
    ErrorCategory,
    McpLinkError,
    ServerStartError,
    ToolCallError,
    ToolNameError,
    sanitize_error_message,
)

__all__ = [
    "ErrorCategory",
    "McpLinkError",
    "ServerStartError",
    "ToolCallError",
    "ToolNameError",
    "sanitize_error_message",
]
