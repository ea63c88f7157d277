"""
Exception hierarchy and error helpers for mcplink.

Provides:
- Custom exception classes with error codes
- Error categorization (validation, fatal, retryable)
- Safe error message formatting (no sensitive data leak)

Only programmer errors and unrecoverable environment failures are raised.
Failures of a live protocol exchange are reported through ToolOutcome.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"
    FATAL = "fatal"
    RETRYABLE = "retryable"


class McpLinkError(Exception):
    """Base exception for all mcplink errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ToolNameError(McpLinkError, ValueError):
    """Tool name is missing, empty or whitespace only."""

    def __init__(self, tool_name: Any = None):
        super().__init__(
            "Tool name cannot be empty.",
            code="INVALID_TOOL_NAME",
            category=ErrorCategory.VALIDATION,
            details={"tool_name": tool_name},
        )


class ServerStartError(McpLinkError, RuntimeError):
    """The tool server process could not be launched or never became ready."""

    def __init__(self, server_path: str, message: str):
        super().__init__(
            f"Failed to start MCP server process '{server_path}': {message}",
            code="SERVER_START_FAILED",
            category=ErrorCategory.FATAL,
            details={"server_path": server_path},
        )


class ToolCallError(McpLinkError):
    """Raised by ToolOutcome.unwrap() for callers that prefer exceptions."""

    def __init__(self, message: str):
        super().__init__(message, code="TOOL_CALL_FAILED", category=ErrorCategory.RETRYABLE)


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
    re.compile(r"xox[baprs]-[a-zA-Z0-9\-]+"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
