"""
Core framework components for SecGuard.

This module provides the foundational components shared by the agent and
the tool clients: configuration, exceptions and state models.
"""

from secguard.core.config.manager import ConfigManager, SecGuardSettings
from secguard.core.exceptions import SecGuardError

__all__ = [
    "ConfigManager",
    "SecGuardSettings",
    "SecGuardError",
]
