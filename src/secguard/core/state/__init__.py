"""
State models module for SecGuard.

This module provides the data models exchanged between the ReAct loop,
the MCP client and the configuration layer.
"""

from secguard.core.state.model import (
    ChatMessage,
    Conversation,
    Role,
    ServerRegistration,
    StepEvent,
    StepEventType,
    ToolDescriptor,
)

__all__ = [
    "StepEvent",
    "StepEventType",
    "ChatMessage",
    "Conversation",
    "Role",
    "ToolDescriptor",
    "ServerRegistration",
]
