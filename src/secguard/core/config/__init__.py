"""
Configuration management module for SecGuard.

This module provides typed settings for the model endpoint, the ReAct
loop, MCP servers and logging, loaded from YAML and the environment.
"""

from secguard.core.config.manager import (
    AgentConfig,
    ConfigManager,
    LLMConfig,
    LoggingConfig,
    MCPConfig,
    NoActionPolicy,
    SecGuardSettings,
)

__all__ = [
    "ConfigManager",
    "SecGuardSettings",
    "LLMConfig",
    "AgentConfig",
    "MCPConfig",
    "LoggingConfig",
    "NoActionPolicy",
]
