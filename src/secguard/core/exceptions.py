"""
Custom exceptions for SecGuard.

This module defines custom exceptions used throughout the package
to provide clear error handling and debugging information.
"""


class SecGuardError(Exception):
    """Base exception for SecGuard."""
    pass


class ConfigError(SecGuardError):
    """Configuration-related errors."""
    pass


class LLMError(SecGuardError):
    """Model endpoint errors."""
    pass


class ToolError(SecGuardError):
    """Tool execution errors."""
    pass


class TransportError(ToolError):
    """SSE or HTTP transport errors while talking to a tool server."""
    pass


class ProtocolError(ToolError):
    """JSON-RPC or handshake errors reported by a tool server."""
    pass


class ToolTimeoutError(ToolError):
    """Tool call exceeded its deadline."""
    pass


class PolicyError(SecGuardError):
    """A requested tool is outside the allowed tool list."""
    pass
