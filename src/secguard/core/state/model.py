"""
State data models for SecGuard.

This module defines the data models shared by the ReAct loop, the MCP
client and the configuration layer: step events, conversation messages,
tool descriptors and server registrations.
"""

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StepEventType(str, Enum):
    """Step event type enumeration."""
    THOUGHT = "thought"
    ACTION = "action"
    OBSERVATION = "observation"
    FINAL = "final"
    WARNING = "warning"
    PENDING = "pending"
    ERROR = "error"


class StepEvent(BaseModel):
    """One unit of observable progress emitted by the ReAct loop."""
    type: StepEventType = Field(..., description="Event type")
    step: int = Field(..., ge=1, description="1-based step counter")
    content: str = Field(default="", description="Free-text content")
    action: Optional[str] = Field(None, description="Action name (action events only)")
    input: Optional[str] = Field(None, description="Raw action input (action events only)")


class Role(str, Enum):
    """Conversation role enumeration."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """A role-tagged conversation message."""
    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class Conversation:
    """Append-only message history for one ReAct run."""

    def __init__(self, system_prompt: str, user_prompt: str):
        self._messages: List[ChatMessage] = [
            ChatMessage(role=Role.SYSTEM, content=system_prompt),
            ChatMessage(role=Role.USER, content=user_prompt),
        ]

    def append_observation(self, assistant_text: str, observation: str):
        """Record one tool round-trip."""
        self._messages.append(ChatMessage(role=Role.ASSISTANT, content=assistant_text))
        self._messages.append(ChatMessage(role=Role.USER, content=f"Observation: {observation}"))

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def to_payload(self) -> List[Dict[str, str]]:
        return [message.to_payload() for message in self._messages]

    def __len__(self) -> int:
        return len(self._messages)


class ToolDescriptor(BaseModel):
    """Uniform description of a tool exposed by an MCP server.

    Only ``name`` is required. Fields the server sends beyond the known
    ones are kept as extras so they can be displayed unchanged.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Tool name, the stable identity")
    description: Optional[str] = Field(None, description="Human readable description")
    argument_schema: Optional[Dict[str, Any]] = Field(
        None, alias="inputSchema", description="JSON schema of the arguments"
    )
    return_schema: Optional[Dict[str, Any]] = Field(
        None, alias="outputSchema", description="JSON schema of the result"
    )
    enabled: bool = Field(default=True, description="Client-side allow flag")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Validate tool name."""
        v = v.strip()
        if not v:
            raise ValueError("Tool name cannot be empty")
        return v


class ServerRegistration(BaseModel):
    """A user-registered MCP server."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Client-generated id")
    name: str = Field(default="", description="Display name")
    url: str = Field(..., description="SSE endpoint URL")
    tools: List[ToolDescriptor] = Field(default_factory=list, description="Known tool catalog")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        """Validate server URL."""
        v = v.strip()
        if not v:
            raise ValueError("Server URL cannot be empty")
        return v

    def enabled_tool_names(self) -> List[str]:
        return [tool.name for tool in self.tools if tool.enabled]
